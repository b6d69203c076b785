"""Launch status enumeration."""

from enum import StrEnum, auto


class VmStatus(StrEnum):
    """Represents the state of one launched worker.

    Attributes:
        PENDING: The worker is being spawned
        RUNNING: The worker process exists
        COMPLETED: The task returned a value
        FAILED: The task raised, the worker crashed, or the launch failed
        CANCELLED: Cancelled by the caller or by a deadline
    """

    PENDING = auto()
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()
    CANCELLED = auto()

    def is_terminal(self) -> bool:
        """Check if this status is terminal (the launch has settled).

        Returns:
            True if status is COMPLETED, FAILED or CANCELLED
        """
        return self in (VmStatus.COMPLETED, VmStatus.FAILED, VmStatus.CANCELLED)

    def is_successful(self) -> bool:
        """Check if this status indicates a returned value.

        Returns:
            True only if status is COMPLETED
        """
        return self == VmStatus.COMPLETED
