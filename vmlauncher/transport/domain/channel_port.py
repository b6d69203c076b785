"""Channel port interface for the host/worker round trip."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ChannelClosedError(ConnectionError):
    """The peer closed the connection before a complete message arrived."""


class ChannelPort(ABC):
    """Abstract port for a message channel between host and worker.

    A channel carries exactly two messages over its lifetime: the task
    envelope from host to worker, then the result envelope back. Messages
    are opaque byte strings; framing is up to the implementation.
    """

    @abstractmethod
    def send(self, payload: bytes) -> None:
        """Send one complete message.

        Args:
            payload: Message bytes
        """
        raise NotImplementedError

    @abstractmethod
    def receive(self) -> bytes:
        """Block until one complete message arrives.

        Returns:
            Message bytes

        Raises:
            ChannelClosedError: If the peer closed the connection mid-message or before it
        """
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release the underlying connection."""
        raise NotImplementedError

    def __enter__(self) -> ChannelPort:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()
