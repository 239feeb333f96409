"""Demultiplexer for the emulator diagnostic stream.

yuzu writes its own structured log frames and the target program's
``OutputDebugString`` text to the same stderr pipe. Frames look like::

    [  12.345678] Debug.Emulated <Debug> core/hle/kernel/svc.cpp:OutputDebugString:1234: text

Text the program prints over several lines is only tagged on its first line;
the following lines arrive raw. :class:`LogDemultiplexer` tracks whether the
last frame was an ``OutputDebugString`` frame and classifies every line
accordingly. Everything operates on ``bytes`` so multi-byte sequences split
across line boundaries survive untouched.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .errors import LogFileError, StreamReadFailure

LOGGER = logging.getLogger("horizon_run.demux")

DEBUG_OUTPUT_FUNCTION = "OutputDebugString"

LOG_FRAME_PATTERN = (
    rb"^(?:\x1b\[[0-9;]+[A-Za-z])*"
    rb"\[ *(?P<time>[0-9.]+)\] "
    rb"(?P<channel>[A-Za-z.]+) "
    rb"<(?P<level>[A-Za-z]+)> "
    rb"(?P<file>[^:]+):(?P<function>[^:]+):(?P<line>[0-9]+): "
    rb"(?P<content>.*)\n?$"
)


@dataclass(frozen=True)
class StructuredLogFrame:
    # None when the stamp is not a valid number, e.g. "1.2.3"
    timestamp: Optional[float]
    channel: str
    level: str
    file: str
    function: str
    line: int
    content: bytes


class LogFrameParser:
    """Compiled log-frame grammar, built once and shared between demultiplexers."""

    def __init__(self, pattern: bytes = LOG_FRAME_PATTERN) -> None:
        self._regex = re.compile(pattern)

    def parse(self, line: bytes) -> Optional[StructuredLogFrame]:
        match = self._regex.match(line)
        if match is None:
            return None
        try:
            timestamp: Optional[float] = float(match.group("time"))
        except ValueError:
            timestamp = None
        return StructuredLogFrame(
            timestamp=timestamp,
            channel=match.group("channel").decode("ascii"),
            level=match.group("level").decode("ascii"),
            file=match.group("file").decode("utf-8", "replace"),
            function=match.group("function").decode("utf-8", "replace"),
            line=int(match.group("line")),
            content=match.group("content"),
        )


@dataclass(frozen=True)
class Emit:
    """First fragment of a debug-console run."""

    text: bytes


@dataclass(frozen=True)
class EmitContinuation:
    """Untagged follow-up line of a multi-line debug-console run."""

    text: bytes


class _Ignore:
    _instance: Optional["_Ignore"] = None

    def __new__(cls) -> "_Ignore":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "IGNORE"


IGNORE = _Ignore()

DemuxAction = Union[Emit, EmitContinuation, _Ignore]


class LogDemultiplexer:
    """Classify diagnostic lines into debug-console fragments or noise."""

    def __init__(self, parser: LogFrameParser) -> None:
        self.parser = parser
        self.capturing = False

    def consume(self, line: bytes) -> DemuxAction:
        frame = self.parser.parse(line)
        if frame is not None:
            if frame.function == DEBUG_OUTPUT_FUNCTION:
                self.capturing = True
                return Emit(frame.content)
            self.capturing = False
            return IGNORE
        if not self.capturing:
            return IGNORE
        if line.endswith(b"\n"):
            line = line[:-1]
        return EmitContinuation(line)


class DebugConsole:
    """Writes demultiplexed debug text to a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def apply(self, action: DemuxAction) -> None:
        if isinstance(action, Emit):
            self.stream.write(action.text)
        elif isinstance(action, EmitContinuation):
            self.stream.write(b"\n" + action.text)
        else:
            return
        self.stream.flush()


class LogSink:
    """Raw side channel that receives every diagnostic line verbatim."""

    def write(self, line: bytes) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self) -> "LogSink":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class NullLogSink(LogSink):
    """No log file configured."""

    def write(self, line: bytes) -> None:
        return None


class FileLogSink(LogSink):
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        try:
            self._handle: Optional[BinaryIO] = self.path.open("wb")
        except OSError as exc:
            raise LogFileError(f"could not open log file {self.path}") from exc

    def write(self, line: bytes) -> None:
        if self._handle is None:
            return
        try:
            self._handle.write(line)
        except OSError as exc:
            raise LogFileError(f"writing the log file {self.path}") from exc

    def close(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.close()


def open_log_sink(path: Optional[Union[str, Path]]) -> LogSink:
    if path is None:
        return NullLogSink()
    return FileLogSink(Path(path))


def pump_diagnostic_stream(
    stream: BinaryIO,
    demux: LogDemultiplexer,
    console: DebugConsole,
    log_sink: Optional[LogSink] = None,
) -> int:
    """Drive *demux* over *stream* until EOF; returns the number of lines seen."""
    sink = log_sink or NullLogSink()
    count = 0
    while True:
        try:
            line = stream.readline()
        except OSError as exc:
            raise StreamReadFailure("reading the emulator diagnostic stream") from exc
        if not line:
            break
        count += 1
        sink.write(line)
        console.apply(demux.consume(line))
    LOGGER.debug("diagnostic stream closed after %d lines", count)
    return count


__all__ = [
    "DEBUG_OUTPUT_FUNCTION",
    "LOG_FRAME_PATTERN",
    "StructuredLogFrame",
    "LogFrameParser",
    "Emit",
    "EmitContinuation",
    "IGNORE",
    "DemuxAction",
    "LogDemultiplexer",
    "DebugConsole",
    "LogSink",
    "NullLogSink",
    "FileLogSink",
    "open_log_sink",
    "pump_diagnostic_stream",
]
