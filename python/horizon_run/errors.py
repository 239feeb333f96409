"""Error taxonomy for horizon-run.

Every failure raised by the package derives from :class:`HorizonRunError`.
Callers wrap failures with the operation they were performing using
:func:`during`, which keeps the original error reachable through
``__cause__`` so the CLI can print the full chain.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence


class HorizonRunError(RuntimeError):
    """Base class for all horizon-run failures."""


class ConfigError(HorizonRunError):
    """Raised when configuration values cannot be interpreted."""


class ExecutableNotFound(HorizonRunError):
    """Raised when the emulator, debugger or converter cannot be located."""

    def __init__(self, what: str, tried: Sequence[str] = ()) -> None:
        self.what = what
        self.tried = list(tried)
        detail = f" (tried: {', '.join(self.tried)})" if self.tried else ""
        super().__init__(f"could not locate {what} executable{detail}")


class ConfigWriteFailure(HorizonRunError):
    """Raised when the emulator runtime configuration cannot be written."""


class SpawnFailure(HorizonRunError):
    """Raised when a child process cannot be started."""


class StreamReadFailure(HorizonRunError):
    """Raised when reading the emulator diagnostic pipe fails."""


class ConversionFailure(HorizonRunError):
    """Raised by the binary converter."""


class LogFileError(HorizonRunError):
    """Raised when the raw log file cannot be opened or written."""


class SubprocessFailure(HorizonRunError):
    """A supervised process exited with a non-zero status."""

    def __init__(self, exit_code: int, process: str) -> None:
        self.exit_code = int(exit_code)
        self.process = process
        super().__init__(f"{process} exited with status {self.exit_code}")


class OperationError(HorizonRunError):
    """Wraps a failure with the operation it occurred during."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(operation)


@contextmanager
def during(operation: str) -> Iterator[None]:
    """Re-raise ``HorizonRunError``/``OSError`` as ``OperationError(operation)``."""
    try:
        yield
    except (HorizonRunError, OSError) as exc:
        raise OperationError(operation) from exc


def error_chain(exc: BaseException) -> List[BaseException]:
    """Return *exc* followed by its causes, outermost first."""
    chain: List[BaseException] = []
    current: Optional[BaseException] = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or (None if current.__suppress_context__ else current.__context__)
    return chain


def format_error_chain(exc: BaseException) -> str:
    chain = error_chain(exc)
    lines = [f"error: {chain[0]}"]
    for cause in chain[1:]:
        lines.append(f"  caused by: {cause}")
    return "\n".join(lines)


def exit_code_for(exc: BaseException) -> int:
    """Exit status mirroring the innermost failing subprocess, else 1."""
    code = 1
    for link in error_chain(exc):
        if isinstance(link, SubprocessFailure) and link.exit_code != 0:
            code = link.exit_code
    # Signals are reported by Popen as negative codes.
    if code < 0:
        return 128 + (-code)
    return code


__all__ = [
    "HorizonRunError",
    "ConfigError",
    "ExecutableNotFound",
    "ConfigWriteFailure",
    "SpawnFailure",
    "StreamReadFailure",
    "ConversionFailure",
    "LogFileError",
    "SubprocessFailure",
    "OperationError",
    "during",
    "error_chain",
    "format_error_chain",
    "exit_code_for",
]
