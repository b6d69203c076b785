"""Error kinds raised by the launcher.

Configuration errors are raised synchronously to whoever builds or starts a
launch. Every other kind is delivered through ``VmFuture.get()``.
"""

from __future__ import annotations


class VmError(Exception):
    """Base class for all launcher errors."""


class ConfigurationError(VmError, ValueError):
    """Invalid launch configuration (missing console, blank environment entry, ...)."""


class LaunchError(VmError):
    """The worker could not be started or never connected back."""


class TaskError(VmError):
    """The task ran inside the worker and raised.

    Attributes:
        error_type: Qualified name of the exception class raised in the worker
        remote_traceback: Formatted traceback captured in the worker
    """

    def __init__(self, error_type: str, message: str, remote_traceback: str = "") -> None:
        super().__init__(f"{error_type}: {message}")
        self.error_type = error_type
        self.message = message
        self.remote_traceback = remote_traceback


class CrashError(VmError):
    """The worker exited without sending a result.

    Attributes:
        exit_code: Exit status of the worker process
        console_tail: Last lines the worker wrote before exiting
    """

    def __init__(self, exit_code: int | None, console_tail: list[str] | None = None) -> None:
        self.exit_code = exit_code
        self.console_tail = list(console_tail or [])
        message = f"worker exited with code {exit_code} without sending a result"
        if self.console_tail:
            message += "\n" + "\n".join(self.console_tail)
        super().__init__(message)


class VmCancelledError(VmError):
    """The launch was cancelled before it reached a terminal state."""


class VmTimeoutError(VmCancelledError, TimeoutError):
    """The caller's deadline elapsed; the launch was cancelled."""


class RemoteTraceback(Exception):
    """Carries a traceback formatted in the worker so it shows up as a cause."""

    def __init__(self, tb: str) -> None:
        super().__init__(tb)
        self.tb = tb

    def __str__(self) -> str:
        return self.tb
