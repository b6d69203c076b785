"""Task envelope: the unit of work shipped to a worker."""

from __future__ import annotations

import pickle
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from vmlauncher.errors import ConfigurationError
from vmlauncher.transport.utils.closure_pickler import PICKLE_PROTOCOL, dumps

ENVELOPE_VERSION = 1


def _python_version() -> str:
    return f"{sys.version_info.major}.{sys.version_info.minor}"


@dataclass(frozen=True)
class TaskEnvelope:
    """A callable plus its captured state, encoded for the worker.

    The encoding is versioned: ``version`` is the envelope layout and
    ``python`` the interpreter version the task bytes were produced with.
    Functions that cannot be imported by name are carried by value, so both
    sides must run the same interpreter version.

    Attributes:
        task: Closure-pickled callable
        version: Envelope layout version
        python: ``major.minor`` of the interpreter that encoded the task
    """

    task: bytes
    version: int = ENVELOPE_VERSION
    python: str = field(default_factory=_python_version)

    def __post_init__(self) -> None:
        """Validate the envelope."""
        if not self.task:
            raise ValueError("task payload must not be empty")
        if self.version < 1:
            raise ValueError("version must be positive")

    @classmethod
    def from_callable(cls, task: Callable[[], Any]) -> TaskEnvelope:
        """
        Encode a callable taking no arguments.

        Module functions, lambdas, nested closures, ``functools.partial``
        objects, bound methods and callable instances are accepted as long as
        the state they capture can be pickled.

        Args:
            task: Callable to run in the worker

        Returns:
            TaskEnvelope carrying the encoded callable

        Raises:
            ConfigurationError: If ``task`` is not callable or cannot be encoded
        """
        if not callable(task):
            raise ConfigurationError(f"task must be callable, got {type(task).__name__}")
        try:
            payload = dumps(task)
        except (pickle.PicklingError, TypeError, AttributeError, RecursionError) as error:
            raise ConfigurationError(f"task cannot be sent to a worker: {error}") from error
        return cls(task=payload)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation.

        Returns:
            Dictionary containing the envelope fields
        """
        return {"version": self.version, "python": self.python, "task": self.task}

    def encode(self) -> bytes:
        """Serialize the envelope for the transport channel."""
        return pickle.dumps(self.to_dict(), protocol=PICKLE_PROTOCOL)

    @classmethod
    def decode(cls, data: bytes) -> TaskEnvelope:
        """
        Deserialize an envelope received from the host.

        Raises:
            ValueError: If the payload is not a task envelope, was written by a
                newer envelope layout, or by a different interpreter version
        """
        fields = pickle.loads(data)
        if not isinstance(fields, dict) or "task" not in fields:
            raise ValueError("payload is not a task envelope")

        envelope = cls(
            task=fields["task"],
            version=fields.get("version", 0),
            python=fields.get("python", ""),
        )
        if envelope.version > ENVELOPE_VERSION:
            raise ValueError(
                f"unsupported task envelope version {envelope.version} "
                f"(this worker reads up to {ENVELOPE_VERSION})"
            )
        if envelope.python != _python_version():
            raise ValueError(
                f"task was encoded by Python {envelope.python}, worker runs {_python_version()}"
            )
        return envelope

    def load_task(self) -> Callable[[], Any]:
        """
        Rebuild the callable inside the worker.

        Raises:
            Exception: Whatever importing the task's modules or unpickling raises
        """
        task = pickle.loads(self.task)
        if not callable(task):
            raise TypeError(f"decoded task is not callable: {type(task).__name__}")
        return task
