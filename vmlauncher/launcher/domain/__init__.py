"""Launcher domain models."""

from vmlauncher.launcher.domain.process_control_port import ProcessControlPort
from vmlauncher.launcher.domain.vm_future import VmFuture
from vmlauncher.launcher.domain.vm_status import VmStatus

__all__ = ["ProcessControlPort", "VmFuture", "VmStatus"]
