"""Wires the orchestrator, demultiplexer and coordinator into one run."""

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from .config import Config
from .converter import BinaryConverter
from .coordinator import DualRunCoordinator, ProcessTask, RunOutcome, RunTask
from .demux import DebugConsole, LogDemultiplexer, LogFrameParser, LogSink, open_log_sink, pump_diagnostic_stream
from .errors import during
from .orchestrator import ProcessOrchestrator

LOGGER = logging.getLogger("horizon_run.runner")

EMULATOR_TASK = "emulator"
DEBUGGER_TASK = "debugger"


def _emulator_driver(parser: LogFrameParser, console: DebugConsole, log_sink: LogSink):
    def drive(proc: subprocess.Popen) -> None:
        if proc.stderr is None:
            return
        demux = LogDemultiplexer(parser)
        pump_diagnostic_stream(proc.stderr, demux, console, log_sink)

    return drive


def run_target(
    config: Config,
    program: Union[str, Path],
    *,
    log_path: Optional[Union[str, Path]] = None,
    gdbstub_port: Optional[int] = None,
    attach_debugger: bool = False,
    symbols_file: Optional[Union[str, Path]] = None,
    converter: Optional[BinaryConverter] = None,
    console_stream: Optional[BinaryIO] = None,
    parser: Optional[LogFrameParser] = None,
    coordinator: Optional[DualRunCoordinator] = None,
) -> RunOutcome:
    """Run *program* in the emulator, optionally with gdb attached.

    ``gdbstub_port`` enables the emulator's gdbstub without starting a
    debugger; with ``attach_debugger`` the port defaults to the configured
    one. The returned outcome is the first failure observed, or success.
    """
    program = Path(program)
    parser = parser or LogFrameParser()
    console = DebugConsole(console_stream if console_stream is not None else sys.stdout.buffer)
    port = gdbstub_port
    if attach_debugger and port is None:
        port = config.emulator.gdbstub_port
    symbols = Path(symbols_file) if symbols_file is not None else program

    with during("opening the log file"):
        log_sink = open_log_sink(log_path)
    with log_sink, ProcessOrchestrator(config, converter=converter) as orchestrator:
        with during(f"converting {program}"):
            loadable = orchestrator.prepare_program(program)
        with during("writing the emulator config"):
            orchestrator.write_config(port)

        tasks: List[RunTask] = [
            ProcessTask(
                EMULATOR_TASK,
                lambda: orchestrator.spawn_emulator(loadable),
                _emulator_driver(parser, console, log_sink),
            )
        ]
        if attach_debugger:
            assert port is not None
            tasks.append(ProcessTask(DEBUGGER_TASK, lambda: orchestrator.spawn_debugger(port, symbols)))

        if port is not None:
            LOGGER.info("gdbstub enabled on port %d", port)
        outcome = (coordinator or DualRunCoordinator()).run(tasks)
    if not outcome.ok:
        LOGGER.debug("run failed in %s: %s", outcome.source, outcome.error)
    return outcome


__all__ = ["EMULATOR_TASK", "DEBUGGER_TASK", "run_target"]
