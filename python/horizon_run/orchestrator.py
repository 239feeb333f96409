"""Process orchestration for a single emulator (and debugger) run.

A :class:`ProcessOrchestrator` owns a temporary run directory holding the
emulator configuration file and any converted program image. The directory is
removed when the orchestrator is closed, whichever way the run ends.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from .config import Config
from .converter import BinaryConverter, Elf2NroConverter
from .emulator_config import write_emulator_config
from .errors import HorizonRunError, SpawnFailure
from .executables import resolve_executable
from .gdb import GDB_CANDIDATES, build_debugger_invocation

LOGGER = logging.getLogger("horizon_run.orchestrator")

EMULATOR_CANDIDATES = ("yuzu-cmd",)


class ProcessOrchestrator:
    """Materialises the run scope and spawns the emulator and debugger."""

    def __init__(
        self,
        config: Config,
        *,
        converter: Optional[BinaryConverter] = None,
    ) -> None:
        self.config = config
        self.converter = converter or Elf2NroConverter(config.build.converter)
        self.config_path: Optional[Path] = None
        self._scope: Optional[tempfile.TemporaryDirectory] = None

    # ------------------------------------------------------------------
    # Run scope
    # ------------------------------------------------------------------
    def open(self) -> Path:
        if self._scope is None:
            self._scope = tempfile.TemporaryDirectory(prefix="horizon-run-")
            LOGGER.debug("run directory %s", self._scope.name)
        return Path(self._scope.name)

    def close(self) -> None:
        scope = self._scope
        self._scope = None
        self.config_path = None
        if scope is not None:
            scope.cleanup()

    def __enter__(self) -> "ProcessOrchestrator":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def workdir(self) -> Path:
        if self._scope is None:
            raise HorizonRunError("run directory is not open")
        return Path(self._scope.name)

    # ------------------------------------------------------------------
    # Preparation
    # ------------------------------------------------------------------
    def prepare_program(self, program: Union[str, Path]) -> Path:
        return self.converter.convert(Path(program), self.workdir)

    def write_config(self, gdbstub_port: Optional[int] = None) -> Path:
        self.config_path = write_emulator_config(
            self.workdir,
            self.config.emulator.log_filter,
            gdbstub_port,
        )
        return self.config_path

    def emulator_command(self, program: Path) -> List[str]:
        if self.config_path is None:
            self.write_config()
        emulator = resolve_executable(
            self.config.emulator.yuzu_cmd_path,
            EMULATOR_CANDIDATES,
            what="yuzu-cmd",
        )
        return [str(emulator), "-c", str(self.config_path), str(program)]

    # ------------------------------------------------------------------
    # Spawning
    # ------------------------------------------------------------------
    def spawn_emulator(self, program: Path) -> subprocess.Popen:
        """Start yuzu-cmd with its diagnostic stream (stderr) piped."""
        cmd = self.emulator_command(program)
        LOGGER.debug("starting emulator: %s", " ".join(cmd))
        try:
            return subprocess.Popen(cmd, stderr=subprocess.PIPE)
        except OSError as exc:
            raise SpawnFailure(f"spawning {cmd[0]}") from exc

    def spawn_debugger(self, port: int, symbols_file: Optional[Path] = None) -> subprocess.Popen:
        settings = self.config.debugger
        gdb_path = resolve_executable(settings.gdb_location, GDB_CANDIDATES, what="gdb")
        invocation = build_debugger_invocation(gdb_path, settings, port, symbols_file)
        LOGGER.debug("starting debugger: %s", " ".join(invocation.argv))
        try:
            return subprocess.Popen(invocation.argv, env=invocation.env)
        except OSError as exc:
            raise SpawnFailure(f"spawning {gdb_path}") from exc


__all__ = ["EMULATOR_CANDIDATES", "ProcessOrchestrator"]
