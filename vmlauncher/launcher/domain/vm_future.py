"""Caller-facing handle over a worker's eventual outcome."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from uuid6 import uuid7

from vmlauncher.errors import VmCancelledError, VmError, VmTimeoutError
from vmlauncher.launcher.domain.process_control_port import ProcessControlPort
from vmlauncher.launcher.domain.vm_status import VmStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class VmFuture(Generic[T]):
    """Single-assignment future for one launched worker.

    Created ``PENDING`` when spawning starts, moved to ``RUNNING`` once the
    process exists, then settled exactly once to ``COMPLETED``, ``FAILED`` or
    ``CANCELLED``. Several host threads (result reader, exit waiter,
    canceller) race to settle it; the first one wins and later attempts are
    discarded.

    Example:
        ```python
        future = launcher.start_async()
        print(future.pid)
        try:
            value = future.get(timeout=30)
        except TaskError as error:
            print(error.remote_traceback)
        ```
    """

    def __init__(self, launch_id: uuid.UUID | None = None) -> None:
        """Create a pending future.

        Args:
            launch_id: Identifier of the launch (default: new uuid7)
        """
        self.launch_id = launch_id or uuid7()
        self._condition = threading.Condition()
        self._status = VmStatus.PENDING
        self._value: T | None = None
        self._error: VmError | None = None
        self._process: ProcessControlPort | None = None
        self._callbacks: list[Callable[[VmFuture[T]], Any]] = []

    @property
    def status(self) -> VmStatus:
        return self._status

    @property
    def pid(self) -> int | None:
        """Process id of the worker, None until it has been spawned."""
        process = self._process
        return process.pid if process is not None else None

    @property
    def exit_code(self) -> int | None:
        """Worker exit status once it has been reaped."""
        process = self._process
        return process.exit_code if process is not None else None

    def is_alive(self) -> bool:
        """Return True while the worker process is running."""
        process = self._process
        return process is not None and process.is_alive()

    def done(self) -> bool:
        return self._status.is_terminal()

    def cancelled(self) -> bool:
        return self._status == VmStatus.CANCELLED

    def set_running(self, process: ProcessControlPort) -> bool:
        """
        Attach the spawned process and move to ``RUNNING``.

        Returns:
            False if the future had already settled (the caller should kill the process)
        """
        with self._condition:
            if self._status.is_terminal():
                return False
            self._process = process
            self._status = VmStatus.RUNNING
            self._condition.notify_all()
        logger.debug("Launch %s running as PID %s", self.launch_id, process.pid)
        return True

    def set_result(self, value: T) -> bool:
        """Settle to ``COMPLETED``. Returns False if already settled."""
        return self._settle(VmStatus.COMPLETED, value=value)

    def set_failure(self, error: VmError) -> bool:
        """Settle to ``FAILED``. Returns False if already settled."""
        return self._settle(VmStatus.FAILED, error=error)

    def cancel(self) -> bool:
        """
        Cancel the launch and kill the worker.

        Returns:
            True if this call cancelled it, False if it had already settled
        """
        return self._cancel(VmCancelledError(f"launch {self.launch_id} was cancelled"))

    def _cancel(self, error: VmCancelledError) -> bool:
        # settle before killing so a reset seen by the reader is discarded
        callbacks = self._transition(VmStatus.CANCELLED, None, error)
        if callbacks is None:
            return False
        process = self._process
        if process is not None:
            process.kill()
        self._run_callbacks(callbacks)
        return True

    def _settle(self, status: VmStatus, value: Any = None, error: VmError | None = None) -> bool:
        callbacks = self._transition(status, value, error)
        if callbacks is None:
            return False
        self._run_callbacks(callbacks)
        return True

    def _transition(
        self, status: VmStatus, value: Any, error: VmError | None
    ) -> list[Callable[[VmFuture[T]], Any]] | None:
        with self._condition:
            if self._status.is_terminal():
                logger.debug(
                    "Launch %s already %s, discarding %s", self.launch_id, self._status, status
                )
                return None
            self._status = status
            self._value = value
            self._error = error
            self._condition.notify_all()
            callbacks, self._callbacks = self._callbacks, []
        logger.debug("Launch %s settled as %s", self.launch_id, status)
        return callbacks

    def _run_callbacks(self, callbacks: list[Callable[[VmFuture[T]], Any]]) -> None:
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                logger.exception("Done callback for launch %s raised", self.launch_id)

    def add_done_callback(self, callback: Callable[[VmFuture[T]], Any]) -> None:
        """
        Call ``callback(future)`` once the future settles.

        Runs immediately in the calling thread if it has already settled,
        otherwise in whichever host thread settles it.
        """
        with self._condition:
            if not self._status.is_terminal():
                self._callbacks.append(callback)
                return
        self._run_callbacks([callback])

    def get(self, timeout: float | None = None) -> T:
        """
        Block until the launch settles and return the task's value.

        Args:
            timeout: Seconds to wait; None waits indefinitely. When the
                deadline passes the launch is cancelled and the worker killed.

        Returns:
            The value returned by the task

        Raises:
            TaskError: The task raised inside the worker
            CrashError: The worker exited without a result
            LaunchError: The worker could not be started or never connected
            VmTimeoutError: The deadline passed
            VmCancelledError: The launch was cancelled
        """
        with self._condition:
            settled = self._condition.wait_for(self.done, timeout)
        if not settled:
            self._cancel(
                VmTimeoutError(f"launch {self.launch_id} got no result within {timeout}s")
            )
        return self._outcome()

    async def get_async(self, timeout: float | None = None) -> T:
        """Await the outcome without blocking the event loop (see ``get``)."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.get, timeout)

    def exception(self, timeout: float | None = None) -> VmError | None:
        """Like ``get`` but return the error instead of raising it (None on success)."""
        try:
            self.get(timeout)
        except VmError as error:
            return error
        return None

    def _outcome(self) -> T:
        with self._condition:
            if self._status == VmStatus.COMPLETED:
                return self._value  # type: ignore[return-value]
            error = self._error
        assert error is not None
        raise error

    def __repr__(self) -> str:
        return f"VmFuture(launch_id={self.launch_id}, pid={self.pid}, status={self._status})"
