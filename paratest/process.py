"""
Supervision of spawned node processes.

Every process is started with piped stdout/stderr and released through
`ProcessSupervisor.supervise`, which terminates it gracefully (SIGTERM, then a
bounded wait, then kill), reaps it and dumps its captured output on every exit
path.
"""

import contextlib
import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import IO

from paratest.errors import SpawnFailure

logger = logging.getLogger(__name__)

# Bound on how long to wait for the reader threads once the process is reaped.
DRAIN_JOIN_TIMEOUT = 5.0


@dataclass(frozen=True)
class SpawnSpec:
    """What to execute: command line, and optionally environment and cwd."""

    cmd: list[str]
    env: dict[str, str] | None = None
    cwd: str | None = None


@dataclass
class _Capture:
    """Accumulates one pipe's output from a background reader thread."""

    chunks: list[str] = field(default_factory=list)
    error: Exception | None = None
    thread: threading.Thread | None = None

    def text(self) -> str:
        return "".join(self.chunks)


def _pump(stream: IO[bytes], capture: _Capture) -> None:
    try:
        for line in iter(stream.readline, b""):
            capture.chunks.append(line.decode(errors="replace"))
    except (OSError, ValueError) as e:
        capture.error = e
    finally:
        with contextlib.suppress(OSError):
            stream.close()


class ChildProcess:
    """
    Handle on one spawned process and its captured output.

    Owned by exactly one supervisor context. `stdout` and `stderr` only hold
    the complete output after the handle was released.
    """

    def __init__(self, name: str, proc: subprocess.Popen):
        self.name = name
        self.proc = proc
        self.stdout = ""
        self.stderr = ""
        self.forced_kill = False
        self.released = False
        self._logger = logging.getLogger(f"service.{name}")
        self._captures = {
            "stdout": self._start_capture(proc.stdout, "stdout"),
            "stderr": self._start_capture(proc.stderr, "stderr"),
        }

    def _start_capture(self, stream: IO[bytes] | None, label: str) -> _Capture:
        capture = _Capture()
        if stream is None:
            capture.error = OSError(f"{label} not captured")
            return capture
        capture.thread = threading.Thread(
            target=_pump,
            args=(stream, capture),
            name=f"{self.name}-{label}",
            daemon=True,
        )
        capture.thread.start()
        return capture

    @property
    def pid(self) -> int:
        return self.proc.pid

    def has_exited(self) -> bool:
        return self.proc.poll() is not None

    def drain(self) -> None:
        """
        Collect whatever the reader threads captured into the buffers.

        A pipe that failed to read contributes nothing rather than an error.
        """
        for label, capture in self._captures.items():
            if capture.thread is not None:
                capture.thread.join(timeout=DRAIN_JOIN_TIMEOUT)
            if capture.error is not None:
                self._logger.debug(f"could not read {label}: {capture.error}")
            setattr(self, label, capture.text())

    def dump_output(self) -> None:
        logger.info("process '%s' stdout:\n%s\n", self.name, self.stdout)
        logger.info("process '%s' stderr:\n%s\n", self.name, self.stderr)


class ProcessSupervisor:
    """
    Spawns processes and guarantees their graceful-then-forced termination.

    Usage:
        supervisor = ProcessSupervisor()
        with supervisor.supervise("alice", SpawnSpec(cmd)) as alice:
            ...
        # alice is reaped here and its output has been logged
    """

    def __init__(
        self,
        termination_retries: int = 30,
        termination_backoff: float = 1.0,
        use_signals: bool | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if termination_retries < 1:
            raise ValueError("termination_retries must be at least 1")
        self.termination_retries = termination_retries
        self.termination_backoff = termination_backoff
        self.use_signals = os.name == "posix" if use_signals is None else use_signals
        self._sleep = sleep

    def acquire(self, name: str, spec: SpawnSpec) -> ChildProcess:
        """
        Spawn a process with stdout and stderr captured.

        Raises:
            SpawnFailure: If the process could not be created.
        """
        env = None
        if spec.env is not None:
            env = os.environ.copy()
            env.update(spec.env)

        logger.info(f"starting process '{name}': {' '.join(spec.cmd)}")
        try:
            proc = subprocess.Popen(
                spec.cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                cwd=spec.cwd,
            )
        except (OSError, ValueError) as e:
            raise SpawnFailure(name, spec.cmd, str(e)) from e

        return ChildProcess(name, proc)

    def release(self, handle: ChildProcess) -> None:
        """Terminate, reap and drain the process, then dump its output."""
        try:
            self.terminate(handle)
        finally:
            handle.drain()
            handle.released = True
            handle.dump_output()

    def terminate(self, handle: ChildProcess) -> None:
        """
        Stop the process. A no-op if it already exited.

        Blocks for at most `termination_retries * termination_backoff` seconds
        before falling back to a kill.
        """
        if handle.has_exited():
            handle.proc.wait()
            return

        if self.use_signals:
            handle.proc.send_signal(signal.SIGTERM)
            if not self._wait_for_exit(handle):
                logger.warning(
                    f"process '{handle.name}' did not exit after "
                    f"{self.termination_retries} attempts, killing it"
                )
                self._kill(handle)
        else:
            self._kill(handle)

        handle.proc.wait()

    def _wait_for_exit(self, handle: ChildProcess) -> bool:
        for attempt in range(1, self.termination_retries + 1):
            if handle.has_exited():
                return True
            if attempt < self.termination_retries:
                self._sleep(self.termination_backoff)
        return False

    def _kill(self, handle: ChildProcess) -> None:
        handle.forced_kill = True
        # The process may exit between the last poll and the kill.
        with contextlib.suppress(ProcessLookupError):
            handle.proc.kill()

    @contextlib.contextmanager
    def supervise(self, name: str, spec: SpawnSpec) -> Iterator[ChildProcess]:
        """Acquire a process for the duration of the block."""
        handle = self.acquire(name, spec)
        try:
            yield handle
        finally:
            self.release(handle)
