"""gdb start-up command assembly.

gdb executes ``-iex``/``-ex`` directives in the order they appear on the
command line, so the order built here is significant.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .config import DebuggerSettings

LOGGER = logging.getLogger("horizon_run.gdb")

GDB_CANDIDATES = ("gdb-multiarch", "gdb")


@dataclass
class DebuggerInvocation:
    argv: List[str]
    env: Dict[str, str]


def build_debugger_invocation(
    gdb_path: Path,
    settings: DebuggerSettings,
    port: int,
    symbols_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DebuggerInvocation:
    env = dict(os.environ if environ is None else environ)
    argv: List[str] = [str(gdb_path)]

    printers = settings.rust_pretty_printers_dir
    if printers is not None:
        printers_dir = str(printers)
        # pretty printer modules are imported by gdb's embedded python
        existing = env.get("PYTHONPATH")
        env["PYTHONPATH"] = f"{existing}{os.pathsep}{printers_dir}" if existing else printers_dir
        argv += ["-d", printers_dir]
        argv += ["-iex", f"add-auto-load-safe-path {printers_dir}"]
    else:
        LOGGER.info("pretty printers path not configured, running without them")

    if symbols_file is not None:
        argv += ["-ex", f"file {symbols_file}"]
    else:
        LOGGER.info("symbols file not specified, loading without debug symbols")

    argv += ["-ex", f"target remote localhost:{int(port)}"]

    for command in settings.gdbinit_commands:
        argv += ["-ex", command]

    return DebuggerInvocation(argv=argv, env=env)


__all__ = ["GDB_CANDIDATES", "DebuggerInvocation", "build_debugger_invocation"]
