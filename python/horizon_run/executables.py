"""Locating the emulator, debugger and converter binaries."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .errors import ExecutableNotFound

LOGGER = logging.getLogger("horizon_run.executables")


def resolve_executable(
    override: Optional[Union[str, Path]],
    candidates: Iterable[str],
    *,
    what: str,
) -> Path:
    """Return *override* when it exists, else the first candidate on PATH."""
    tried: List[str] = []
    if override is not None:
        path = Path(override).expanduser()
        if path.is_file():
            return path
        # a bare name such as "gdb-multiarch" is also accepted
        found = shutil.which(str(override))
        if found:
            return Path(found)
        raise ExecutableNotFound(what, [str(override)])
    for name in candidates:
        tried.append(name)
        found = shutil.which(name)
        if found:
            LOGGER.debug("resolved %s -> %s", what, found)
            return Path(found)
    raise ExecutableNotFound(what, tried)


__all__ = ["resolve_executable"]
