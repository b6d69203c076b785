"""Result envelope: the single message a worker sends back."""

from __future__ import annotations

import io
import logging
import pickle
import traceback
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Any

from vmlauncher.config.domain.launch_configuration import ClassResolver
from vmlauncher.errors import RemoteTraceback, TaskError
from vmlauncher.transport.utils.closure_pickler import PICKLE_PROTOCOL, dumps

logger = logging.getLogger(__name__)


class ResultKind(StrEnum):
    """Tag of a result envelope."""

    SUCCESS = auto()
    FAILURE = auto()


class _ResolvingUnpickler(pickle.Unpickler):
    """Unpickler that asks a caller-supplied resolver for classes first."""

    def __init__(self, file: io.BytesIO, resolver: ClassResolver | None) -> None:
        super().__init__(file)
        self._resolver = resolver

    def find_class(self, module: str, name: str) -> Any:
        if self._resolver is not None:
            resolved = self._resolver(module, name)
            if resolved is not None:
                return resolved
        return super().find_class(module, name)


def loads(data: bytes, resolver: ClassResolver | None = None) -> Any:
    """Unpickle ``data``, resolving classes through ``resolver`` when given."""
    return _ResolvingUnpickler(io.BytesIO(data), resolver).load()


def _qualified_name(cls: type) -> str:
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


@dataclass(frozen=True)
class ErrorDescription:
    """Description of an exception raised in the worker.

    Attributes:
        error_type: Qualified class name (builtins without module prefix)
        message: ``str()`` of the exception
        traceback: Traceback formatted in the worker
        exception: The pickled exception, or None if it could not be pickled
    """

    error_type: str
    message: str
    traceback: str = ""
    exception: bytes | None = None

    def __post_init__(self) -> None:
        """Validate the description."""
        if not self.error_type:
            raise ValueError("error_type must not be empty")

    @classmethod
    def from_exception(cls, error: BaseException) -> ErrorDescription:
        """Capture type, message, traceback and (if possible) the exception itself."""
        try:
            pickled: bytes | None = dumps(error)
        except Exception as exc:
            logger.debug("Exception %s is not picklable: %s", type(error).__name__, exc)
            pickled = None

        return cls(
            error_type=_qualified_name(type(error)),
            message=str(error),
            traceback="".join(traceback.format_exception(error)),
            exception=pickled,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "traceback": self.traceback,
            "exception": self.exception,
        }

    def to_error(self, resolver: ClassResolver | None = None) -> TaskError:
        """
        Reconstruct the failure on the host.

        The returned ``TaskError`` has the original exception as its cause
        when it could be unpickled, with the remote traceback chained below
        it; otherwise the remote traceback is the direct cause.

        Args:
            resolver: Optional class resolver for unpickling the exception

        Returns:
            TaskError describing the remote failure
        """
        remote = RemoteTraceback(self.traceback)
        error = TaskError(self.error_type, self.message, self.traceback)

        original: Any = None
        if self.exception is not None:
            try:
                original = loads(self.exception, resolver)
            except Exception as exc:
                logger.debug("Could not rebuild remote %s: %s", self.error_type, exc)

        if isinstance(original, BaseException):
            original.__cause__ = remote
            error.__cause__ = original
        else:
            error.__cause__ = remote
        return error


@dataclass(frozen=True)
class ResultEnvelope:
    """Tagged result: ``SUCCESS`` with a pickled value or ``FAILURE`` with an error.

    Attributes:
        kind: SUCCESS or FAILURE
        value: Closure-pickled return value (SUCCESS only)
        error: Error description (FAILURE only)
    """

    kind: ResultKind
    value: bytes | None = None
    error: ErrorDescription | None = None

    def __post_init__(self) -> None:
        """Validate that exactly one side is populated."""
        if self.kind == ResultKind.SUCCESS:
            if self.value is None or self.error is not None:
                raise ValueError("a success envelope carries a value and no error")
        elif self.error is None or self.value is not None:
            raise ValueError("a failure envelope carries an error and no value")

    @property
    def is_success(self) -> bool:
        return self.kind == ResultKind.SUCCESS

    @classmethod
    def success(cls, value: Any) -> ResultEnvelope:
        """
        Wrap a return value.

        Raises:
            pickle.PicklingError: If the value cannot be pickled (or TypeError etc.)
        """
        return cls(kind=ResultKind.SUCCESS, value=dumps(value))

    @classmethod
    def failure(cls, error: BaseException) -> ResultEnvelope:
        """Wrap an exception raised by the task."""
        return cls(kind=ResultKind.FAILURE, error=ErrorDescription.from_exception(error))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind.value,
            "value": self.value,
            "error": self.error.to_dict() if self.error else None,
        }

    def encode(self) -> bytes:
        """Serialize the envelope for the transport channel."""
        return pickle.dumps(self.to_dict(), protocol=PICKLE_PROTOCOL)

    @classmethod
    def decode(cls, data: bytes) -> ResultEnvelope:
        """
        Deserialize an envelope received from a worker.

        Raises:
            ValueError: If the payload is not a result envelope
        """
        fields = pickle.loads(data)
        if not isinstance(fields, dict) or "kind" not in fields:
            raise ValueError("payload is not a result envelope")
        error = fields.get("error")
        return cls(
            kind=ResultKind(fields["kind"]),
            value=fields.get("value"),
            error=ErrorDescription(**error) if error else None,
        )

    def load_value(self, resolver: ClassResolver | None = None) -> Any:
        """Unpickle the success value on the host."""
        if self.value is None:
            raise ValueError("failure envelope has no value")
        return loads(self.value, resolver)
