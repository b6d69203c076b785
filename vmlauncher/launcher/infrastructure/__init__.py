"""Launcher infrastructure implementations."""

from vmlauncher.launcher.infrastructure.child_process_handle import ChildProcessHandle
from vmlauncher.launcher.infrastructure.console_relay import ConsoleRelay
from vmlauncher.launcher.infrastructure.process_supervisor import (
    ProcessSupervisor,
    WorkerExitedError,
)
from vmlauncher.launcher.infrastructure.vm_launcher import VmLauncher
from vmlauncher.launcher.infrastructure.worker_session import WorkerSession

__all__ = [
    "ChildProcessHandle",
    "ConsoleRelay",
    "ProcessSupervisor",
    "VmLauncher",
    "WorkerExitedError",
    "WorkerSession",
]
