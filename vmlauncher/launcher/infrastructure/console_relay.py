"""Forwarding of worker output to a console sink."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import IO

from vmlauncher.config.domain.launch_configuration import ConsoleSink

logger = logging.getLogger(__name__)


class ConsoleRelay:
    """
    Reads one worker stream line by line and hands each line to a sink.

    Runs on its own daemon thread until the stream reaches EOF, which
    happens when the worker exits. Lines are delivered in the order the
    worker wrote them, without their line terminator. The last few lines are
    kept for crash diagnostics.
    """

    def __init__(
        self,
        stream: IO[bytes],
        sink: ConsoleSink,
        name: str = "console-relay",
        tail_lines: int = 50,
        encoding: str = "utf-8",
    ) -> None:
        """
        Initialize the relay.

        Args:
            stream: Binary stream to read (a process pipe)
            sink: Called once per line
            name: Thread name
            tail_lines: Number of trailing lines to remember
            encoding: Text encoding of the stream (undecodable bytes are replaced)
        """
        self._stream = stream
        self._sink = sink
        self._encoding = encoding
        self._tail: deque[str] = deque(maxlen=tail_lines)
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> ConsoleRelay:
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> bool:
        """
        Wait for the stream to close.

        Returns:
            True if the relay finished within the timeout
        """
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def tail(self) -> list[str]:
        """Return the most recent lines, oldest first."""
        with self._lock:
            return list(self._tail)

    def _run(self) -> None:
        try:
            for raw in iter(self._stream.readline, b""):
                line = raw.decode(self._encoding, errors="replace").rstrip("\r\n")
                with self._lock:
                    self._tail.append(line)
                try:
                    self._sink(line)
                except Exception:
                    logger.exception("Console sink raised; continuing")
        except (OSError, ValueError) as error:
            # stream closed underneath us
            logger.debug("Console stream ended: %s", error)
        finally:
            self._stream.close()
