"""Handle over a spawned worker process."""

from __future__ import annotations

import contextlib
import logging
import subprocess
from typing import IO

from vmlauncher.launcher.domain.process_control_port import ProcessControlPort

logger = logging.getLogger(__name__)


class ChildProcessHandle(ProcessControlPort):
    """
    Spawned worker: pid, standard streams and exit status.

    Owned by the process supervisor. Futures only see it through
    ``ProcessControlPort`` (pid, liveness, kill).
    """

    def __init__(self, process: subprocess.Popen[bytes]) -> None:
        self._process = process
        self._pid = process.pid

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def exit_code(self) -> int | None:
        return self._process.returncode

    @property
    def stdout(self) -> IO[bytes] | None:
        return self._process.stdout

    @property
    def stderr(self) -> IO[bytes] | None:
        return self._process.stderr

    def is_alive(self) -> bool:
        return self._process.poll() is None

    def kill(self) -> None:
        if self._process.poll() is not None:
            return
        logger.info("Killing worker (PID %s)", self._pid)
        with contextlib.suppress(ProcessLookupError):
            self._process.kill()

    def wait(self, timeout: float | None = None) -> int:
        """
        Block until the worker exits and reap its status.

        Args:
            timeout: Seconds to wait (None waits indefinitely)

        Returns:
            The exit code (negative signal number if killed by a signal)

        Raises:
            subprocess.TimeoutExpired: If the timeout elapses first
        """
        return self._process.wait(timeout=timeout)

    def __repr__(self) -> str:
        return f"ChildProcessHandle(pid={self._pid}, exit_code={self.exit_code})"
