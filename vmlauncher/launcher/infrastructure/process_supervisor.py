"""Spawning and lifetime management of worker processes."""

from __future__ import annotations

import contextlib
import logging
import os
import socket
import subprocess
import sys
import time
from pathlib import Path

import vmlauncher
from vmlauncher.config.domain.launch_configuration import LaunchConfiguration
from vmlauncher.errors import LaunchError
from vmlauncher.launcher.infrastructure.child_process_handle import ChildProcessHandle
from vmlauncher.transport.utils.ports import validate_port

logger = logging.getLogger(__name__)

BOOTSTRAP_MODULE = "vmlauncher.bootstrap"
ACCEPT_POLL_INTERVAL = 0.1


class WorkerExitedError(LaunchError):
    """The worker process ended while the host was still waiting for it to connect.

    Attributes:
        exit_code: Exit status of the worker process
        console_tail: Last lines the worker wrote before exiting
    """

    def __init__(self, exit_code: int | None, console_tail: list[str] | None = None) -> None:
        self.exit_code = exit_code
        self.console_tail = list(console_tail or [])
        message = f"worker exited with code {exit_code} before connecting"
        if self.console_tail:
            message += "\n" + "\n".join(self.console_tail)
        super().__init__(message)


def launcher_import_root() -> str:
    """Directory that has to be on the worker's path for ``vmlauncher`` to import."""
    return str(Path(vmlauncher.__file__).resolve().parent.parent)


class ProcessSupervisor:
    """
    Turns a launch configuration into one worker process and owns it.

    Lifecycle of a single launch:
    1. ``bind()`` listens on an ephemeral loopback port, before spawning, so
       the worker can never try to connect to a port nobody listens on
    2. ``spawn(port)`` starts ``python -m vmlauncher.bootstrap ... <port>``
    3. ``accept()`` takes exactly one connection within the connect timeout
    4. ``wait()`` reaps the exit status; ``kill()`` forces termination

    A supervisor is used for one launch only.
    """

    def __init__(self, configuration: LaunchConfiguration) -> None:
        self._configuration = configuration
        self._settings = configuration.settings
        self._listener: socket.socket | None = None
        self._handle: ChildProcessHandle | None = None

    @property
    def handle(self) -> ChildProcessHandle | None:
        return self._handle

    def import_path(self) -> list[str]:
        """
        Assemble the worker's import path.

        Returns:
            Explicit user entries first, then the host path captured at build
            time unless excluded
        """
        entries = list(self._configuration.user_paths)
        if self._configuration.include_host_path:
            for entry in self._configuration.host_path:
                if entry not in entries:
                    entries.append(entry)
        return entries

    def build_command(self, port: int) -> list[str]:
        """
        Build the worker command line.

        Args:
            port: Port the worker connects back to

        Returns:
            ``[python, *options, -m, vmlauncher.bootstrap, *bootstrap flags, port]``

        Raises:
            LaunchError: If the port is out of range
        """
        port = validate_port(port)
        config = self._configuration

        command = [sys.executable, *config.interpreter_options, "-m", BOOTSTRAP_MODULE]
        entries = self.import_path()
        if entries:
            command += ["--path", os.pathsep.join(entries)]
        if config.heap_min is not None:
            command += ["--heap-min", str(config.heap_min)]
        if config.heap_max is not None:
            command += ["--heap-max", str(config.heap_max)]
        command += ["--host", self._settings.bind_host, str(port)]
        return command

    def build_environment(self) -> dict[str, str]:
        """
        Build the worker environment from the configuration snapshot.

        Output is unbuffered so the console relay sees lines as they are
        written, and the launcher itself is put on ``PYTHONPATH`` so the
        bootstrap module imports even when the host path is excluded.
        """
        env = dict(self._configuration.environment)
        env.setdefault("PYTHONUNBUFFERED", "1")
        root = launcher_import_root()
        existing = env.get("PYTHONPATH")
        env["PYTHONPATH"] = os.pathsep.join([root, existing]) if existing else root
        return env

    def bind(self) -> int:
        """
        Listen on an ephemeral loopback port.

        Returns:
            The bound port

        Raises:
            LaunchError: If the socket cannot be bound
        """
        host = self._settings.bind_host
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        try:
            listener = socket.create_server((host, 0), family=family, backlog=1)
        except OSError as error:
            raise LaunchError(f"cannot listen on {host}: {error}") from error

        listener.settimeout(ACCEPT_POLL_INTERVAL)
        self._listener = listener
        port = listener.getsockname()[1]
        logger.debug("Listening for worker on %s:%s", host, port)
        return validate_port(port)

    def spawn(self, port: int) -> ChildProcessHandle:
        """
        Start the worker process.

        Args:
            port: Port returned by ``bind()``

        Returns:
            Handle with pid and standard streams

        Raises:
            LaunchError: If the process cannot be started
        """
        command = self.build_command(port)
        config = self._configuration
        stderr = subprocess.PIPE if config.error_console is not None else subprocess.STDOUT

        logger.debug("Command: %s", " ".join(command))
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=stderr,
                cwd=config.working_directory,
                env=self.build_environment(),
            )
        except OSError as error:
            raise LaunchError(f"failed to spawn worker: {error}") from error

        self._handle = ChildProcessHandle(process)
        logger.info("Worker started (PID %s, port %s)", process.pid, port)
        return self._handle

    def accept(self) -> socket.socket:
        """
        Accept the worker's connection. The listener is closed afterwards.

        Returns:
            Connected socket in blocking mode

        Raises:
            WorkerExitedError: If the worker exited before connecting
            LaunchError: If no worker connects within the connect timeout
        """
        listener = self._listener
        if listener is None:
            raise LaunchError("accept() called before bind()")

        timeout = self._settings.connect_timeout
        deadline = time.monotonic() + timeout
        try:
            while True:
                try:
                    connection, address = listener.accept()
                    break
                except TimeoutError:
                    if self._handle is not None and not self._handle.is_alive():
                        raise WorkerExitedError(self._handle.exit_code) from None
                    if time.monotonic() >= deadline:
                        raise LaunchError(f"worker did not connect within {timeout}s") from None
        except OSError as error:
            raise LaunchError(f"accepting worker connection failed: {error}") from error
        finally:
            self.close_listener()

        connection.settimeout(None)
        logger.debug("Worker connected from %s", address)
        return connection

    def close_listener(self) -> None:
        """Close the listening socket. Safe to call more than once."""
        listener, self._listener = self._listener, None
        if listener is not None:
            with contextlib.suppress(OSError):
                listener.close()

    def kill(self) -> None:
        """Force-terminate the worker if it is still running."""
        if self._handle is not None:
            self._handle.kill()

    def wait(self) -> int:
        """Block until the worker exits and return its exit code."""
        if self._handle is None:
            raise LaunchError("wait() called before spawn()")
        return self._handle.wait()
