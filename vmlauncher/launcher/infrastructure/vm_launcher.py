"""Launcher that runs tasks in freshly spawned worker processes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from vmlauncher.config.domain.launch_configuration import LaunchConfiguration
from vmlauncher.errors import ConfigurationError
from vmlauncher.launcher.domain.vm_future import VmFuture
from vmlauncher.launcher.infrastructure.worker_session import WorkerSession
from vmlauncher.transport.domain.task_envelope import TaskEnvelope

logger = logging.getLogger(__name__)


class VmLauncher:
    """
    Starts one worker process per launch.

    A launcher holds an immutable configuration and can be used any number of
    times, from any thread. Launches share nothing but the configuration.
    """

    def __init__(self, configuration: LaunchConfiguration) -> None:
        self._configuration = configuration

    @property
    def configuration(self) -> LaunchConfiguration:
        return self._configuration

    def start_async(self, task: Callable[[], Any] | None = None) -> VmFuture[Any]:
        """
        Start a worker and return immediately.

        Args:
            task: Callable to run instead of the configured default

        Returns:
            A future that is ``RUNNING`` with a pid, or already ``FAILED`` if
            the worker could not be started

        Raises:
            ConfigurationError: If there is no task, or it cannot be encoded
        """
        task = task if task is not None else self._configuration.task
        if task is None:
            raise ConfigurationError("no task given and none configured with set_callable()")
        envelope = TaskEnvelope.from_callable(task)

        session = WorkerSession(self._configuration, envelope)
        logger.info("Starting launch %s", session.future.launch_id)
        return session.start()

    def start_and_get(
        self, task: Callable[[], Any] | None = None, timeout: float | None = None
    ) -> Any:
        """
        Start a worker and block for its value.

        Args:
            task: Callable to run instead of the configured default
            timeout: Seconds to wait before cancelling the launch

        Returns:
            The value returned by the task

        Raises:
            ConfigurationError: If there is no task, or it cannot be encoded
            VmError: Any outcome error, see ``VmFuture.get``
        """
        return self.start_async(task).get(timeout)

    async def start_and_get_async(
        self, task: Callable[[], Any] | None = None, timeout: float | None = None
    ) -> Any:
        """Await the value of a new launch without blocking the event loop."""
        return await self.start_async(task).get_async(timeout)

    def __repr__(self) -> str:
        return f"VmLauncher(working_directory={self._configuration.working_directory})"
