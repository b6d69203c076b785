"""
Worker launching.

Spawns one interpreter per launch and exposes its outcome as a ``VmFuture``.
"""

from vmlauncher.launcher.domain import ProcessControlPort, VmFuture, VmStatus
from vmlauncher.launcher.infrastructure import VmLauncher

__all__ = ["ProcessControlPort", "VmFuture", "VmLauncher", "VmStatus"]
