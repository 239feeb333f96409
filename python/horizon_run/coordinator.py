"""Concurrent supervision of the emulator and debugger.

Each :class:`RunTask` runs on its own thread and publishes exactly one
:class:`RunOutcome` to a shared queue. The coordinator drains the queue in
arrival order: the first failure resolves the run, otherwise the run
succeeds once every task has reported. Outcomes arriving after resolution
are discarded.
"""

from __future__ import annotations

import enum
import logging
import queue
import subprocess
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import HorizonRunError, OperationError, SubprocessFailure

LOGGER = logging.getLogger("horizon_run.coordinator")

DEFAULT_STOP_TIMEOUT = 5.0


class CoordinatorState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class RunOutcome:
    source: str
    error: Optional[HorizonRunError] = None

    @classmethod
    def success(cls, source: str) -> "RunOutcome":
        return cls(source)

    @classmethod
    def failure(cls, source: str, error: HorizonRunError) -> "RunOutcome":
        return cls(source, error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_failure(self) -> None:
        if self.error is not None:
            raise self.error


class RunTask:
    """Unit of work supervised by the coordinator."""

    name: str = "task"

    def run(self) -> None:
        """Block until the work is done; raise ``HorizonRunError`` on failure."""
        raise NotImplementedError

    def stop(self, timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
        """Ask a running task to finish early. Must be safe to call from any thread."""


SpawnFn = Callable[[], subprocess.Popen]
DriveFn = Callable[[subprocess.Popen], None]


class ProcessTask(RunTask):
    """Spawns a child process, optionally drives its output, and waits for it."""

    def __init__(self, name: str, spawn: SpawnFn, drive: Optional[DriveFn] = None) -> None:
        self.name = name
        self._spawn = spawn
        self._drive = drive
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._stop_requested = False

    @property
    def process(self) -> Optional[subprocess.Popen]:
        return self._process

    def run(self) -> None:
        proc = self._spawn()
        with self._lock:
            self._process = proc
            stop_early = self._stop_requested
        if stop_early:
            self._terminate(proc, DEFAULT_STOP_TIMEOUT)
        try:
            if self._drive is not None:
                self._drive(proc)
            code = proc.wait()
        except BaseException:
            self._terminate(proc, DEFAULT_STOP_TIMEOUT)
            raise
        finally:
            for stream in (proc.stdin, proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()
        LOGGER.debug("%s exited with status %s", self.name, code)
        if code != 0:
            raise SubprocessFailure(code, self.name)

    def stop(self, timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
        with self._lock:
            self._stop_requested = True
            proc = self._process
        if proc is not None:
            self._terminate(proc, timeout)

    def _terminate(self, proc: subprocess.Popen, timeout: float) -> None:
        if proc.poll() is not None:
            return
        LOGGER.info("stopping %s (pid %s)", self.name, proc.pid)
        proc.terminate()
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            LOGGER.warning("%s did not stop within %.1fs, killing", self.name, timeout)
            proc.kill()
            proc.wait()


def _supervise(task: RunTask, channel: "queue.Queue[RunOutcome]") -> None:
    try:
        task.run()
    except HorizonRunError as exc:
        channel.put(RunOutcome.failure(task.name, exc))
    except Exception as exc:
        error = OperationError(f"supervising {task.name}")
        error.__cause__ = exc
        channel.put(RunOutcome.failure(task.name, error))
    else:
        channel.put(RunOutcome.success(task.name))


class DualRunCoordinator:
    """Runs tasks in parallel and resolves on the first failure or joint success."""

    def __init__(self, *, stop_siblings: bool = True, stop_timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
        self.stop_siblings = stop_siblings
        self.stop_timeout = stop_timeout
        self.state = CoordinatorState.IDLE

    def run(self, tasks: Sequence[RunTask]) -> RunOutcome:
        if self.state is not CoordinatorState.IDLE:
            raise HorizonRunError(f"coordinator is {self.state.value}")
        if not tasks:
            raise HorizonRunError("nothing to run")
        channel: "queue.Queue[RunOutcome]" = queue.Queue()
        threads: List[threading.Thread] = []
        self.state = CoordinatorState.RUNNING
        try:
            for task in tasks:
                thread = threading.Thread(
                    target=_supervise,
                    args=(task, channel),
                    name=f"horizon-run-{task.name}",
                    daemon=True,
                )
                thread.start()
                threads.append(thread)
            try:
                resolved, pending = self._drain(tasks, channel)
            except BaseException:
                LOGGER.info("run interrupted, stopping all tasks")
                self._stop_tasks(tasks, threads)
                raise
            self.state = CoordinatorState.RESOLVED
            if pending:
                self._settle_siblings(pending, threads, channel)
            return resolved
        finally:
            self.state = CoordinatorState.IDLE

    def _drain(
        self,
        tasks: Sequence[RunTask],
        channel: "queue.Queue[RunOutcome]",
    ) -> Tuple[RunOutcome, List[RunTask]]:
        pending = list(tasks)
        while pending:
            outcome = channel.get()
            for index, task in enumerate(pending):
                if task.name == outcome.source:
                    del pending[index]
                    break
            if not outcome.ok:
                LOGGER.debug("run resolved by %s failure: %s", outcome.source, outcome.error)
                return outcome, pending
        return RunOutcome.success("run"), pending

    def _stop_tasks(self, tasks: Sequence[RunTask], threads: Sequence[threading.Thread]) -> None:
        for task in tasks:
            task.stop(self.stop_timeout)
        for thread in threads:
            thread.join(timeout=self.stop_timeout + 1.0)

    def _settle_siblings(
        self,
        pending: Sequence[RunTask],
        threads: Sequence[threading.Thread],
        channel: "queue.Queue[RunOutcome]",
    ) -> None:
        if not self.stop_siblings:
            return
        self._stop_tasks(pending, threads)
        while True:
            try:
                late = channel.get_nowait()
            except queue.Empty:
                break
            LOGGER.debug("discarding outcome from %s after resolution (ok=%s)", late.source, late.ok)


__all__ = [
    "CoordinatorState",
    "RunOutcome",
    "RunTask",
    "ProcessTask",
    "DualRunCoordinator",
    "DEFAULT_STOP_TIMEOUT",
]
