"""Host-side coordination of one worker launch."""

from __future__ import annotations

import logging
import threading
from typing import Any

from vmlauncher.config.domain.launch_configuration import LaunchConfiguration
from vmlauncher.errors import CrashError, LaunchError, TaskError
from vmlauncher.launcher.domain.vm_future import VmFuture
from vmlauncher.launcher.infrastructure.child_process_handle import ChildProcessHandle
from vmlauncher.launcher.infrastructure.console_relay import ConsoleRelay
from vmlauncher.launcher.infrastructure.process_supervisor import (
    ProcessSupervisor,
    WorkerExitedError,
)
from vmlauncher.transport.domain.channel_port import ChannelPort
from vmlauncher.transport.domain.result_envelope import ResultEnvelope
from vmlauncher.transport.domain.task_envelope import TaskEnvelope
from vmlauncher.transport.infrastructure.framed_channel import FramedChannel

logger = logging.getLogger(__name__)


class WorkerSession:
    """
    Runs one task envelope through one worker and settles its future.

    Threads started per session:
    - acceptor: waits for the worker to connect, sends the task envelope
    - reader: waits for the result envelope and settles the future
    - waiter: reaps the process; reports a crash if the worker connected
      but no result arrived
    - one console relay per monitored stream

    All of them settle the same single-assignment ``VmFuture``; whichever
    gets there first wins.
    """

    def __init__(
        self,
        configuration: LaunchConfiguration,
        envelope: TaskEnvelope,
        future: VmFuture[Any] | None = None,
    ) -> None:
        self._configuration = configuration
        self._settings = configuration.settings
        self._envelope = envelope
        self.future: VmFuture[Any] = future or VmFuture()
        self._supervisor = ProcessSupervisor(configuration)
        self._handle: ChildProcessHandle | None = None
        self._relays: list[ConsoleRelay] = []
        self._acceptor: threading.Thread | None = None
        self._reader: threading.Thread | None = None

    def start(self) -> VmFuture[Any]:
        """
        Bind, spawn and start the session threads.

        Launch failures do not raise; they settle the future as ``FAILED``.

        Returns:
            The session's future
        """
        try:
            port = self._supervisor.bind()
            handle = self._supervisor.spawn(port)
        except LaunchError as error:
            logger.error("Failed to launch worker for %s: %s", self.future.launch_id, error)
            self._supervisor.close_listener()
            self.future.set_failure(error)
            return self.future

        self._handle = handle
        if not self.future.set_running(handle):
            handle.kill()

        name = f"vm-{handle.pid}"
        tail_lines = self._settings.console_tail_lines
        if handle.stdout is not None:
            self._relays.append(
                ConsoleRelay(
                    handle.stdout, self._configuration.console, f"{name}-stdout", tail_lines
                ).start()
            )
        if handle.stderr is not None and self._configuration.error_console is not None:
            self._relays.append(
                ConsoleRelay(
                    handle.stderr, self._configuration.error_console, f"{name}-stderr", tail_lines
                ).start()
            )

        self._acceptor = threading.Thread(target=self._accept, name=f"{name}-acceptor", daemon=True)
        self._acceptor.start()
        threading.Thread(target=self._wait_for_exit, name=f"{name}-waiter", daemon=True).start()
        return self.future

    def _accept(self) -> None:
        try:
            connection = self._supervisor.accept()
        except WorkerExitedError as error:
            # settled here so the exit waiter's crash report is discarded
            self._join_relays()
            failure = WorkerExitedError(error.exit_code, self.console_tail())
            if self.future.set_failure(failure):
                logger.error(
                    "Worker for launch %s exited with code %s before connecting",
                    self.future.launch_id,
                    error.exit_code,
                )
            return
        except LaunchError as error:
            logger.error("Worker for launch %s: %s", self.future.launch_id, error)
            if self.future.set_failure(error):
                self._supervisor.kill()
            return

        channel = FramedChannel(connection, self._settings.max_frame_size)
        try:
            channel.send(self._envelope.encode())
        except (OSError, ValueError) as error:
            channel.close()
            if self.future.set_failure(LaunchError(f"could not deliver task to worker: {error}")):
                self._supervisor.kill()
            return

        self._reader = threading.Thread(
            target=self._read_result,
            args=(channel,),
            name=threading.current_thread().name.replace("acceptor", "reader"),
            daemon=True,
        )
        self._reader.start()

    def _read_result(self, channel: ChannelPort) -> None:
        try:
            with channel:
                payload = channel.receive()
        except (OSError, ValueError) as error:
            # connection reset after a cancel, or the worker died mid-task;
            # the future is already cancelled or the exit waiter reports the crash
            logger.debug("No result from launch %s: %s", self.future.launch_id, error)
            return

        resolver = self._configuration.class_resolver
        try:
            envelope = ResultEnvelope.decode(payload)
            if envelope.is_success:
                self.future.set_result(envelope.load_value(resolver))
            else:
                assert envelope.error is not None
                self.future.set_failure(envelope.error.to_error(resolver))
        except Exception as error:
            logger.exception("Could not decode result of launch %s", self.future.launch_id)
            failure = TaskError(type(error).__name__, f"result could not be decoded: {error}")
            failure.__cause__ = error
            self.future.set_failure(failure)

    def _wait_for_exit(self) -> None:
        assert self._handle is not None
        exit_code = self._supervisor.wait()
        logger.info("Worker exited (PID %s, code %s)", self._handle.pid, exit_code)

        self._join_relays()
        if self._acceptor is not None:
            self._acceptor.join()
        if self._reader is not None:
            self._reader.join(self._settings.result_grace_period)

        self._supervisor.close_listener()
        if self.future.set_failure(CrashError(exit_code, self.console_tail())):
            logger.warning(
                "Worker for launch %s exited with code %s without a result",
                self.future.launch_id,
                exit_code,
            )

    def _join_relays(self) -> None:
        grace = self._settings.result_grace_period
        for relay in self._relays:
            relay.join(grace)

    def console_tail(self) -> list[str]:
        """Last lines relayed from every monitored stream."""
        lines: list[str] = []
        for relay in self._relays:
            lines.extend(relay.tail())
        return lines
