"""Process control port interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ProcessControlPort(ABC):
    """Abstract port for the part of a worker process a future may touch.

    The supervisor owns the process; a future only needs to query it and
    to kill it on cancellation.
    """

    @property
    @abstractmethod
    def pid(self) -> int:
        """Process id of the worker."""
        raise NotImplementedError

    @property
    @abstractmethod
    def exit_code(self) -> int | None:
        """Exit status once the worker has been reaped, else None."""
        raise NotImplementedError

    @abstractmethod
    def is_alive(self) -> bool:
        """Return True while the worker process is running."""
        raise NotImplementedError

    @abstractmethod
    def kill(self) -> None:
        """Forcibly terminate the worker. No-op if it already exited."""
        raise NotImplementedError
