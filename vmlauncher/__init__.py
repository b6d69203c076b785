"""
Run a callable in a freshly spawned Python interpreter.

Example:
    ```python
    import vmlauncher

    launcher = vmlauncher.new_vm().set_callable(compute).set_console(print).build()
    value = launcher.start_and_get(timeout=60)
    ```
"""

from vmlauncher.config import LaunchConfiguration, LauncherSettings, VmBuilder
from vmlauncher.errors import (
    ConfigurationError,
    CrashError,
    LaunchError,
    RemoteTraceback,
    TaskError,
    VmCancelledError,
    VmError,
    VmTimeoutError,
)
from vmlauncher.launcher import VmFuture, VmLauncher, VmStatus

__version__ = "0.1.0"


def new_vm() -> VmBuilder:
    """Return a fresh builder for a new launcher."""
    return VmBuilder()


__all__ = [
    "ConfigurationError",
    "CrashError",
    "LaunchConfiguration",
    "LaunchError",
    "LauncherSettings",
    "RemoteTraceback",
    "TaskError",
    "VmBuilder",
    "VmCancelledError",
    "VmError",
    "VmFuture",
    "VmLauncher",
    "VmStatus",
    "VmTimeoutError",
    "new_vm",
]
