"""Module-level tasks run inside worker processes.

Defined at module level so they are sent to workers by reference and
imported there from the forwarded import path.
"""

import os
import sys
import threading
import time
from collections.abc import Callable


def return_one() -> int:
    """Return 1."""
    return 1


def raise_runtime_error() -> None:
    """Task that always fails."""
    raise RuntimeError("boom")


def read_test_env() -> str | None:
    """Return the value of the TestEnv variable."""
    return os.environ.get("TestEnv")


def current_directory() -> str:
    """Return the worker's working directory."""
    return os.getcwd()


def list_current_directory() -> list[str]:
    """Return the sorted entries of the working directory."""
    return sorted(os.listdir("."))


def print_lines() -> str:
    """Write three lines to stdout."""
    for line in ("L1", "L2", "L3"):
        print(line)
    return "printed"


def print_to_stderr() -> str:
    """Write one line to each standard stream."""
    print("to stdout")
    print("to stderr", file=sys.stderr)
    return "printed"


def exit_hard() -> None:
    """Terminate the worker without sending a result."""
    print("about to exit")
    os._exit(3)


def raise_system_exit() -> None:
    """Leave the interpreter through SystemExit."""
    sys.exit(4)


def sleep_long() -> str:
    """Sleep far longer than any test waits."""
    time.sleep(60)
    return "woke up"


def return_pid() -> int:
    """Return the worker's process id."""
    return os.getpid()


def return_unpicklable() -> object:
    """Return a generator, which cannot be pickled."""
    return (n for n in range(3))


def make_multiplier(factor: int) -> Callable[[], int]:
    """Return a nested closure capturing ``factor``."""

    def multiply() -> int:
        return 7 * factor

    return multiply


def read_sys_path() -> list[str]:
    """Return the worker's import path."""
    return list(sys.path)


def return_leaving_thread() -> int:
    """Return at once but leave a non-daemon thread that keeps the worker alive."""
    threading.Thread(target=time.sleep, args=(6,)).start()
    return 1
