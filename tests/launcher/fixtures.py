"""Test helpers shared by launcher tests."""

import threading


class ConsoleCollector:
    """Thread-safe console sink that remembers every line it receives."""

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._condition = threading.Condition()

    def __call__(self, line: str) -> None:
        with self._condition:
            self._lines.append(line)
            self._condition.notify_all()

    @property
    def lines(self) -> list[str]:
        with self._condition:
            return list(self._lines)

    def wait_for(self, line: str, timeout: float = 10.0) -> bool:
        """Block until ``line`` has been received; False on timeout."""
        with self._condition:
            return self._condition.wait_for(lambda: line in self._lines, timeout)
