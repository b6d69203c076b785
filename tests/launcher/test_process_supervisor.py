"""Tests for ProcessSupervisor command and environment assembly."""

import os
import socket
import sys
from pathlib import Path

import pytest

import vmlauncher
from vmlauncher.config.domain.launch_configuration import LaunchConfiguration
from vmlauncher.config.settings import LauncherSettings
from vmlauncher.errors import LaunchError
from vmlauncher.launcher.infrastructure.process_supervisor import (
    BOOTSTRAP_MODULE,
    ProcessSupervisor,
    launcher_import_root,
)
from vmlauncher.transport.utils.ports import validate_loopback_host, validate_port


def make_configuration(**overrides: object) -> LaunchConfiguration:
    """Create a configuration with a no-op console."""
    values: dict[str, object] = {
        "console": lambda line: None,
        "environment": {"HOME": "/home/worker"},
        "settings": LauncherSettings(connect_timeout=0.5),
    }
    values.update(overrides)
    return LaunchConfiguration(**values)  # type: ignore[arg-type]


class TestBuildCommand:
    """Test cases for the worker command line."""

    def test_command_layout(self) -> None:
        """Test interpreter, module, host and port placement."""
        supervisor = ProcessSupervisor(make_configuration(include_host_path=False))

        command = supervisor.build_command(5000)

        assert command[0] == sys.executable
        assert command[1:3] == ["-m", BOOTSTRAP_MODULE]
        assert command[-3:] == ["--host", "127.0.0.1", "5000"]
        assert "--path" not in command

    def test_interpreter_options_before_module(self) -> None:
        """Test that interpreter options precede -m."""
        supervisor = ProcessSupervisor(
            make_configuration(interpreter_options=("-X", "utf8"), include_host_path=False)
        )

        command = supervisor.build_command(5000)

        assert command[1:5] == ["-X", "utf8", "-m", BOOTSTRAP_MODULE]

    def test_heap_flags(self) -> None:
        """Test that heap limits are passed as byte counts."""
        supervisor = ProcessSupervisor(
            make_configuration(heap_min=1 << 20, heap_max=1 << 30, include_host_path=False)
        )

        command = supervisor.build_command(5000)

        assert command[command.index("--heap-min") + 1] == str(1 << 20)
        assert command[command.index("--heap-max") + 1] == str(1 << 30)

    def test_user_paths_come_first(self, tmp_path: Path) -> None:
        """Test that user entries precede the captured host path, without duplicates."""
        supervisor = ProcessSupervisor(
            make_configuration(
                user_paths=(str(tmp_path),), host_path=("/host/lib", str(tmp_path))
            )
        )

        assert supervisor.import_path() == [str(tmp_path), "/host/lib"]

    def test_host_path_read_from_configuration(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that later changes to the host sys.path do not reach the worker."""
        supervisor = ProcessSupervisor(make_configuration(host_path=("/host/lib",)))
        monkeypatch.syspath_prepend(str(tmp_path))

        assert supervisor.import_path() == ["/host/lib"]

    def test_excluded_host_path(self, tmp_path: Path) -> None:
        """Test that only user entries remain when the host path is excluded."""
        supervisor = ProcessSupervisor(
            make_configuration(user_paths=(str(tmp_path),), include_host_path=False)
        )

        command = supervisor.build_command(5000)

        assert command[command.index("--path") + 1] == str(tmp_path)

    def test_port_out_of_range(self) -> None:
        """Test that an invalid port is rejected before spawning."""
        supervisor = ProcessSupervisor(make_configuration())

        with pytest.raises(LaunchError, match="port out of range:70000"):
            supervisor.build_command(70000)


class TestBuildEnvironment:
    """Test cases for the worker environment."""

    def test_snapshot_and_defaults(self) -> None:
        """Test that the snapshot is used and output is unbuffered."""
        env = ProcessSupervisor(make_configuration()).build_environment()

        assert env["HOME"] == "/home/worker"
        assert env["PYTHONUNBUFFERED"] == "1"
        assert env["PYTHONPATH"] == launcher_import_root()

    def test_existing_pythonpath_is_kept(self) -> None:
        """Test that the launcher root is prepended to an existing PYTHONPATH."""
        configuration = make_configuration(environment={"PYTHONPATH": "/opt/lib"})

        env = ProcessSupervisor(configuration).build_environment()

        assert env["PYTHONPATH"] == os.pathsep.join([launcher_import_root(), "/opt/lib"])

    def test_launcher_root_contains_package(self) -> None:
        """Test that the launcher root is the directory holding the package."""
        root = Path(launcher_import_root())

        assert (root / "vmlauncher" / "__init__.py").exists()
        assert Path(vmlauncher.__file__).resolve().parent.parent == root


class TestListener:
    """Test cases for binding and accepting."""

    def test_bind_returns_loopback_port(self) -> None:
        """Test that bind listens on an ephemeral port."""
        supervisor = ProcessSupervisor(make_configuration())

        port = supervisor.bind()
        try:
            assert 0 < port <= 0xFFFF
            with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
                connection = supervisor.accept()
                assert connection.getpeername() == client.getsockname()
                connection.close()
        finally:
            supervisor.close_listener()

    def test_accept_times_out(self) -> None:
        """Test that nobody connecting within the timeout is a launch error."""
        supervisor = ProcessSupervisor(make_configuration())
        supervisor.bind()

        with pytest.raises(LaunchError, match="did not connect"):
            supervisor.accept()

    def test_accept_before_bind(self) -> None:
        """Test that accept requires a listener."""
        with pytest.raises(LaunchError):
            ProcessSupervisor(make_configuration()).accept()

    def test_close_listener_is_idempotent(self) -> None:
        """Test closing the listener twice."""
        supervisor = ProcessSupervisor(make_configuration())
        supervisor.bind()

        supervisor.close_listener()
        supervisor.close_listener()


class TestValidatePort:
    """Test cases for port validation."""

    @pytest.mark.parametrize("value", [0, 1, 8080, 65535, "5000", " 42 "])
    def test_valid_ports(self, value: object) -> None:
        """Test values inside 0..65535."""
        assert validate_port(value) == int(str(value).strip())

    @pytest.mark.parametrize("value", [-1, 65536, "abc", "", "1.5"])
    def test_invalid_ports(self, value: object) -> None:
        """Test that invalid values name the offending input."""
        with pytest.raises(LaunchError, match=f"port out of range:{value}"):
            validate_port(value)


class TestValidateLoopbackHost:
    """Test cases for loopback host validation."""

    @pytest.mark.parametrize("host", ["127.0.0.1", "127.1.2.3", "::1"])
    def test_loopback_addresses(self, host: str) -> None:
        """Test that IPv4 and IPv6 loopback addresses are accepted."""
        assert validate_loopback_host(host) == host

    @pytest.mark.parametrize("host", ["0.0.0.0", "192.168.1.10", "localhost", ""])
    def test_other_hosts_rejected(self, host: str) -> None:
        """Test that names and routable addresses are refused."""
        with pytest.raises(LaunchError, match="host is not a loopback address"):
            validate_loopback_host(host)
