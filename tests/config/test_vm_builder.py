"""Tests for VmBuilder."""

import os
from pathlib import Path

import pytest

import vmlauncher
from tests.launcher import worker_tasks
from vmlauncher import ConfigurationError, VmBuilder, VmLauncher, new_vm
from vmlauncher.config.settings import LauncherSettings


def noop_console(line: str) -> None:
    """Discard a console line."""


@pytest.fixture
def configured() -> VmBuilder:
    """Create a builder with a console sink."""
    return new_vm().set_console(noop_console)


class TestVmBuilderValidation:
    """Test cases for builder input validation."""

    def test_build_without_console_fails(self) -> None:
        """Test that a console sink is mandatory."""
        with pytest.raises(ConfigurationError, match="set_console"):
            new_vm().build()

    def test_configuration_error_is_value_error(self) -> None:
        """Test that configuration errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            new_vm().build()

    @pytest.mark.parametrize("key", ["", "   "])
    def test_blank_environment_key(self, configured: VmBuilder, key: str) -> None:
        """Test that a blank environment key is rejected."""
        with pytest.raises(ConfigurationError):
            configured.set_environment(key, "value")

    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_blank_environment_value(self, configured: VmBuilder, value: str | None) -> None:
        """Test that a missing or blank value is rejected."""
        with pytest.raises(ConfigurationError):
            configured.set_environment("KEY", value)

    def test_blank_value_in_mapping(self, configured: VmBuilder) -> None:
        """Test that mappings are validated entry by entry."""
        with pytest.raises(ConfigurationError):
            configured.set_environment({"GOOD": "1", "BAD": ""})

    def test_mapping_with_value(self, configured: VmBuilder) -> None:
        """Test that a mapping and a value cannot be combined."""
        with pytest.raises(ConfigurationError):
            configured.set_environment({"KEY": "1"}, "2")

    def test_non_callable_task(self, configured: VmBuilder) -> None:
        """Test that the task must be callable."""
        with pytest.raises(ConfigurationError):
            configured.set_callable("not callable")  # type: ignore[arg-type]

    def test_missing_working_directory(self, configured: VmBuilder, tmp_path: Path) -> None:
        """Test that the working directory must exist."""
        with pytest.raises(ConfigurationError, match="does not exist"):
            configured.set_working_directory(tmp_path / "missing")

    def test_bare_string_user_paths(self, configured: VmBuilder) -> None:
        """Test that a single string is not mistaken for a list of paths."""
        with pytest.raises(ConfigurationError):
            configured.add_user_paths("/opt/lib")

    def test_heap_min_above_max(self, configured: VmBuilder) -> None:
        """Test that heap_min may not exceed heap_max."""
        configured.set_heap_min("2g").set_heap_max("1g")

        with pytest.raises(ConfigurationError, match="heap_min"):
            configured.build()

    def test_invalid_heap_size(self, configured: VmBuilder) -> None:
        """Test that unparseable sizes are rejected."""
        with pytest.raises(ConfigurationError):
            configured.set_heap_max("lots")

    def test_blank_interpreter_option(self, configured: VmBuilder) -> None:
        """Test that interpreter options must be non-blank strings."""
        with pytest.raises(ConfigurationError):
            configured.add_interpreter_options("-X", " ")


class TestVmBuilderConfiguration:
    """Test cases for the produced configuration."""

    def test_build_returns_launcher(self, configured: VmBuilder) -> None:
        """Test that build produces a launcher."""
        launcher = configured.set_callable(worker_tasks.return_one).build()

        assert isinstance(launcher, VmLauncher)
        assert launcher.configuration.task is worker_tasks.return_one

    def test_new_vm_returns_fresh_builders(self) -> None:
        """Test that every call gives a new builder."""
        assert isinstance(vmlauncher.new_vm(), VmBuilder)
        assert vmlauncher.new_vm() is not vmlauncher.new_vm()

    def test_environment_snapshot(
        self, configured: VmBuilder, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that the host environment is captured when the builder is created."""
        monkeypatch.setenv("VMLAUNCHER_TEST_LATE", "late")

        configuration = configured.set_environment("TestEnv", "k1").build_configuration()

        assert configuration.environment["TestEnv"] == "k1"
        assert "VMLAUNCHER_TEST_LATE" not in configuration.environment
        assert configuration.environment.get("PATH") == os.environ.get("PATH")

    def test_environment_is_read_only(self, configured: VmBuilder) -> None:
        """Test that a built configuration cannot be mutated."""
        configuration = configured.build_configuration()

        with pytest.raises(TypeError):
            configuration.environment["NEW"] = "value"  # type: ignore[index]

    def test_later_changes_do_not_leak(self, configured: VmBuilder) -> None:
        """Test that each build is independent of later builder changes."""
        first = configured.set_environment("TestEnv", "first").build_configuration()
        configured.set_environment("TestEnv", "second")

        assert first.environment["TestEnv"] == "first"

    def test_options_are_recorded(self, configured: VmBuilder, tmp_path: Path) -> None:
        """Test that every option ends up in the configuration."""
        errors: list[str] = []
        configuration = (
            configured.set_error_console(errors.append)
            .exclude_host_path()
            .add_user_paths([tmp_path, tmp_path])
            .set_heap_min("16m")
            .set_heap_max(1 << 30)
            .add_interpreter_options("-X", "utf8")
            .set_working_directory(tmp_path)
            .build_configuration()
        )

        assert configuration.error_console == errors.append
        assert not configuration.include_host_path
        assert configuration.user_paths == (str(tmp_path),)
        assert configuration.heap_min == 16 << 20
        assert configuration.heap_max == 1 << 30
        assert configuration.interpreter_options == ("-X", "utf8")
        assert configuration.working_directory == tmp_path.resolve()
        assert configuration.to_dict()["separate_stderr"] is True

    def test_add_user_path_from_module(self, configured: VmBuilder) -> None:
        """Test that a module's import root is added."""
        configuration = configured.add_user_path_from(worker_tasks).build_configuration()

        root = Path(worker_tasks.__file__).resolve().parents[2]
        assert str(root) in configuration.user_paths

    def test_host_path_captured_at_build(
        self, configured: VmBuilder, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that the host import path is fixed when the configuration is built."""
        configuration = configured.build_configuration()
        monkeypatch.syspath_prepend(str(tmp_path))

        assert str(tmp_path) not in configuration.host_path
        assert str(tmp_path) in configured.build_configuration().host_path

    def test_excluded_host_path_is_not_captured(self, configured: VmBuilder) -> None:
        """Test that no host entries are recorded when the host path is excluded."""
        assert configured.exclude_host_path().build_configuration().host_path == ()

    def test_invalid_setting_in_environment(self, configured: VmBuilder) -> None:
        """Test that a bad VMLAUNCHER_* value is reported as a configuration error."""
        configured.set_environment("VMLAUNCHER_CONNECT_TIMEOUT", "soon")

        with pytest.raises(ConfigurationError, match="VMLAUNCHER_"):
            configured.build()

    def test_settings_from_environment(self, configured: VmBuilder) -> None:
        """Test that settings are read from the snapshotted environment."""
        configuration = configured.set_environment(
            "VMLAUNCHER_CONNECT_TIMEOUT", "7.5"
        ).build_configuration()

        assert configuration.settings.connect_timeout == 7.5

    def test_explicit_settings(self, configured: VmBuilder) -> None:
        """Test that explicit settings win over the environment."""
        settings = LauncherSettings(connect_timeout=3)

        configuration = configured.set_settings(settings).build_configuration()

        assert configuration.settings is settings
