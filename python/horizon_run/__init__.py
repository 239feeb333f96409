"""
horizon-run package.

Runs homebrew programs inside the yuzu emulator, recovers the program's
debug-console output from the emulator's log stream and optionally attaches
gdb to the emulator's gdbstub. Use ``python -m horizon_run`` or
``python/horizon-run.py`` to launch it.
"""

from __future__ import annotations

from .cli import main

__all__ = ["main"]
__version__ = "0.1.0"
