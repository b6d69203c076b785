"""Pytest configuration and shared fixtures."""

import pytest

from tests.launcher.fixtures import ConsoleCollector
from vmlauncher import VmBuilder, new_vm
from vmlauncher.config.settings import LauncherSettings


@pytest.fixture
def console() -> ConsoleCollector:
    """Create a console sink collecting worker output."""
    return ConsoleCollector()


@pytest.fixture
def settings() -> LauncherSettings:
    """Return settings with test-friendly timeouts."""
    return LauncherSettings(connect_timeout=20.0, result_grace_period=2.0)


@pytest.fixture
def builder(console: ConsoleCollector, settings: LauncherSettings) -> VmBuilder:
    """Create a builder wired to the collecting console."""
    return new_vm().set_console(console).set_settings(settings)
