"""yuzu-cmd runtime configuration file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .errors import ConfigWriteFailure

LOGGER = logging.getLogger("horizon_run.emulator_config")

CONFIG_FILENAME = "yuzu.ini"


def render_emulator_config(log_filter: str, gdbstub_port: Optional[int] = None) -> str:
    """Return the ini text; the ``[Debugging]`` section only appears with a port."""
    lines = [
        "[Miscellaneous]",
        f"log_filter={log_filter}",
    ]
    if gdbstub_port is not None:
        lines += [
            "",
            "[Debugging]",
            f"gdbstub_port={int(gdbstub_port)}",
            "use_gdbstub=true",
        ]
    return "\n".join(lines) + "\n"


def write_emulator_config(directory: Path, log_filter: str, gdbstub_port: Optional[int] = None) -> Path:
    path = Path(directory) / CONFIG_FILENAME
    text = render_emulator_config(log_filter, gdbstub_port)
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ConfigWriteFailure(f"writing emulator config {path}") from exc
    LOGGER.debug("wrote %s (gdbstub=%s)", path, gdbstub_port)
    return path


__all__ = ["CONFIG_FILENAME", "render_emulator_config", "write_emulator_config"]
