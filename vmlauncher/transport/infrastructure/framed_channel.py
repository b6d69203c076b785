"""Length-prefixed message framing over a socket."""

from __future__ import annotations

import contextlib
import logging
import socket
import struct

from vmlauncher.transport.domain.channel_port import ChannelClosedError, ChannelPort

logger = logging.getLogger(__name__)

# 4-byte unsigned big-endian payload length
HEADER = struct.Struct(">I")
MAX_FRAME_SIZE = (1 << 32) - 1


class FramedChannel(ChannelPort):
    """
    Channel sending each message as ``<length><payload>``.

    The receiver reads the 4-byte header, then exactly that many payload
    bytes. There is no multiplexing: one message is in flight at a time.

    Example:
        ```python
        with FramedChannel(sock) as channel:
            channel.send(task_bytes)
            result_bytes = channel.receive()
        ```
    """

    def __init__(self, sock: socket.socket, max_frame_size: int = MAX_FRAME_SIZE) -> None:
        """
        Wrap a connected socket.

        Args:
            sock: Connected stream socket; the channel takes ownership
            max_frame_size: Largest payload accepted in either direction

        Raises:
            ValueError: If max_frame_size is outside 1..2**32-1
        """
        if not 0 < max_frame_size <= MAX_FRAME_SIZE:
            raise ValueError(f"max_frame_size must be in 1..{MAX_FRAME_SIZE}")
        self._sock = sock
        self._max_frame_size = max_frame_size
        self._closed = False

    def send(self, payload: bytes) -> None:
        """
        Send one framed message.

        Raises:
            ValueError: If the payload is larger than max_frame_size
            OSError: If the connection fails
        """
        if len(payload) > self._max_frame_size:
            raise ValueError(
                f"message of {len(payload)} bytes exceeds frame limit {self._max_frame_size}"
            )
        self._sock.sendall(HEADER.pack(len(payload)) + payload)
        logger.debug("Sent frame of %d bytes", len(payload))

    def receive(self) -> bytes:
        """
        Receive one framed message.

        Raises:
            ChannelClosedError: If the peer closes before a full frame arrives
            ValueError: If the announced length is larger than max_frame_size
            OSError: If the connection fails
        """
        (length,) = HEADER.unpack(self._read_exactly(HEADER.size))
        if length > self._max_frame_size:
            raise ValueError(
                f"announced frame of {length} bytes exceeds limit {self._max_frame_size}"
            )
        payload = self._read_exactly(length)
        logger.debug("Received frame of %d bytes", length)
        return payload

    def _read_exactly(self, size: int) -> bytes:
        buffer = bytearray(size)
        view = memoryview(buffer)
        received = 0
        while received < size:
            count = self._sock.recv_into(view[received:], size - received)
            if count == 0:
                raise ChannelClosedError(
                    f"connection closed after {received} of {size} bytes"
                )
            received += count
        return bytes(buffer)

    def close(self) -> None:
        """Shut down and close the socket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        with contextlib.suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)
        self._sock.close()
