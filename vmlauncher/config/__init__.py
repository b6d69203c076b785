"""
Launch configuration.

Builder, immutable configuration and launcher-wide settings.
"""

from vmlauncher.config.domain import (
    ClassResolver,
    ConsoleSink,
    LaunchConfiguration,
    VmBuilder,
)
from vmlauncher.config.settings import LauncherSettings

__all__ = [
    "ClassResolver",
    "ConsoleSink",
    "LaunchConfiguration",
    "LauncherSettings",
    "VmBuilder",
]
