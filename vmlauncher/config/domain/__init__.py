"""Launch configuration domain models."""

from vmlauncher.config.domain.launch_configuration import (
    ClassResolver,
    ConsoleSink,
    LaunchConfiguration,
)
from vmlauncher.config.domain.vm_builder import VmBuilder

__all__ = ["ClassResolver", "ConsoleSink", "LaunchConfiguration", "VmBuilder"]
