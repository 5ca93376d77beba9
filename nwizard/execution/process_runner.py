"""Background command execution polled from the render loop.

One child at a time. Its stdout and stderr are pipes switched to non-blocking
mode so ``poll_output`` can be called every tick without ever stalling the
caller. The exit status is only collected after both pipes report closed, so
trailing output is never dropped.
"""

from __future__ import annotations

import os
import signal
import subprocess
import threading
from dataclasses import dataclass
from typing import IO, Optional, Tuple

from nwizard.config.settings import (
    DEFAULT_SHELL,
    KILLED_EXIT_CODE,
    OUTPUT_PROGRESS_LOG_INTERVAL,
    SIGNAL_EXIT_BASE,
)
from nwizard.exceptions import CommandAlreadyRunningError, SpawnError
from nwizard.logging import LoggerFactory, ThrottledLogger

READ_CHUNK_SIZE = 4096
# Upper bound per stream per poll so a fast producer cannot hold the tick.
MAX_CHUNKS_PER_POLL = 256


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    output: str
    error_output: str
    exit_code: int


def exit_code_from_returncode(returncode: int) -> int:
    """Map a Popen return code to a shell-style exit code (signal N -> 128 + N)."""
    if returncode < 0:
        return SIGNAL_EXIT_BASE + (-returncode)
    return returncode


class ProcessRunner:
    """Spawns shell commands and drains their output without blocking."""

    def __init__(self, shell: str = DEFAULT_SHELL) -> None:
        self.shell = shell
        # Re-entrant: a signal handler may kill the child while the main thread polls.
        self._lock = threading.RLock()
        self._process: Optional[subprocess.Popen] = None
        self._command: Optional[str] = None
        self._output = bytearray()
        self._error_output = bytearray()
        self._running = False
        self._exit_code: Optional[int] = None
        self._stdout_open = False
        self._stderr_open = False
        self._log = LoggerFactory.for_executor()
        self._progress_log = ThrottledLogger(self._log, OUTPUT_PROGRESS_LOG_INTERVAL)

    def start(self, command_line: str) -> None:
        """Spawn ``command_line`` through the configured shell.

        Raises:
            CommandAlreadyRunningError: the previous command is still running.
            SpawnError: the shell could not be started.
        """
        with self._lock:
            if self._running:
                raise CommandAlreadyRunningError(command_line)
            self._release_process()
            self._output.clear()
            self._error_output.clear()
            self._exit_code = None
            self._command = command_line
            self._log = LoggerFactory.for_executor()
            self._progress_log = ThrottledLogger(self._log, OUTPUT_PROGRESS_LOG_INTERVAL)
            try:
                process = subprocess.Popen(
                    [self.shell, "-c", command_line],
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    process_group=0,
                )
            except (OSError, ValueError) as error:
                self._log.error(f"Failed to spawn {self.shell}: {error}")
                raise SpawnError(command_line, error) from error
            for stream in (process.stdout, process.stderr):
                os.set_blocking(stream.fileno(), False)
            self._process = process
            self._stdout_open = True
            self._stderr_open = True
            self._running = True
            self._log.info(f"Started pid {process.pid}: {command_line}")

    def poll_output(self) -> bool:
        """Read whatever is buffered on both pipes; True if any byte arrived."""
        with self._lock:
            if not self._running or self._process is None:
                return False
            any_read = False
            if self._stdout_open:
                read, closed = self._drain(self._process.stdout, self._output)
                any_read = any_read or read
                self._stdout_open = not closed
            if self._stderr_open:
                read, closed = self._drain(self._process.stderr, self._error_output)
                any_read = any_read or read
                self._stderr_open = not closed
            if any_read:
                self._progress_log.trace(
                    "output",
                    f"{len(self._output)} stdout, {len(self._error_output)} stderr bytes read",
                )
            if not self._stdout_open and not self._stderr_open:
                self._reap()
            return any_read

    @staticmethod
    def _drain(stream: Optional[IO[bytes]], buffer: bytearray) -> Tuple[bool, bool]:
        """Returns (read_any, closed). Any read error other than would-block closes the stream."""
        if stream is None:
            return False, True
        read_any = False
        for _ in range(MAX_CHUNKS_PER_POLL):
            try:
                chunk = os.read(stream.fileno(), READ_CHUNK_SIZE)
            except BlockingIOError:
                return read_any, False
            except (OSError, ValueError):
                return read_any, True
            if not chunk:
                return read_any, True
            buffer.extend(chunk)
            read_any = True
        return read_any, False

    def _reap(self) -> None:
        if not self._running:
            return
        # Pipes can close before the process is gone; retry on the next poll.
        returncode = self._process.poll()
        if returncode is None:
            return
        self._running = False
        self._exit_code = exit_code_from_returncode(returncode)
        if self._exit_code == 0:
            self._log.info(f"Command finished: {self._command}")
        else:
            self._log.warning(f"Command exited with {self._exit_code}: {self._command}")

    def kill(self) -> None:
        """Best-effort SIGKILL; the handle stops running immediately.

        Called from signal handlers, so it must not log.
        """
        with self._lock:
            if not self._running or self._process is None:
                return
            try:
                os.killpg(self._process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            except PermissionError:
                try:
                    self._process.kill()
                except OSError:
                    pass
            self._running = False
            self._exit_code = KILLED_EXIT_CODE

    def cleanup(self) -> None:
        """Kill anything still running and release the child and its pipes."""
        self.kill()
        with self._lock:
            if self._process is not None:
                try:
                    self._process.wait(timeout=1.0)
                except subprocess.TimeoutExpired:
                    self._log.warning(f"pid {self._process.pid} did not exit after SIGKILL")
            self._release_process()

    def _release_process(self) -> None:
        process = self._process
        if process is None:
            return
        for stream in (process.stdout, process.stderr):
            if stream is not None:
                try:
                    stream.close()
                except OSError:
                    pass
        process.poll()
        self._process = None
        self._stdout_open = False
        self._stderr_open = False

    # -- snapshot accessors ---------------------------------------------------

    def get_output(self) -> str:
        with self._lock:
            return self._output.decode("utf-8", errors="replace")

    def get_error_output(self) -> str:
        with self._lock:
            return self._error_output.decode("utf-8", errors="replace")

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def get_exit_code(self) -> Optional[int]:
        with self._lock:
            return self._exit_code

    @property
    def command(self) -> Optional[str]:
        with self._lock:
            return self._command

    @property
    def pid(self) -> Optional[int]:
        with self._lock:
            if not self._running or self._process is None:
                return None
            return self._process.pid

    def get_result(self) -> ExecutionResult:
        with self._lock:
            exit_code = self._exit_code if self._exit_code is not None else 0
            return ExecutionResult(
                success=exit_code == 0,
                output=self._output.decode("utf-8", errors="replace"),
                error_output=self._error_output.decode("utf-8", errors="replace"),
                exit_code=exit_code,
            )
