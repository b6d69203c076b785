"""Immutable description of how to spawn and run a worker."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from vmlauncher.config.settings import LauncherSettings
from vmlauncher.errors import ConfigurationError

ConsoleSink = Callable[[str], None]
ClassResolver = Callable[[str, str], Any]


@dataclass(frozen=True)
class LaunchConfiguration:
    """Everything a launch needs, fixed at build time.

    Instances are produced by ``VmBuilder.build()`` and never change
    afterwards; the same configuration can back any number of independent
    launches, including concurrent ones.

    Attributes:
        console: Sink called once per line the worker writes to stdout
        task: Default callable run by the worker (a launch may override it)
        class_resolver: Optional ``(module, name) -> object`` used to decode
            results and errors on the host
        error_console: Sink for stderr lines; None merges stderr into ``console``
        user_paths: Explicit import path entries, searched before the host's
        include_host_path: Whether the host's ``sys.path`` is forwarded
        host_path: Host import path captured at build time (absolute entries)
        interpreter_options: Extra interpreter flags placed before ``-m``
        heap_min: Minimum address space the worker must be allowed, in bytes
        heap_max: Address space limit applied in the worker, in bytes
        environment: Full worker environment (host snapshot plus overrides)
        working_directory: Worker's working directory
        settings: Timeouts and limits for the launch
    """

    console: ConsoleSink
    task: Callable[[], Any] | None = None
    class_resolver: ClassResolver | None = None
    error_console: ConsoleSink | None = None
    user_paths: tuple[str, ...] = ()
    include_host_path: bool = True
    host_path: tuple[str, ...] = ()
    interpreter_options: tuple[str, ...] = ()
    heap_min: int | None = None
    heap_max: int | None = None
    environment: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    working_directory: Path = field(default_factory=Path.cwd)
    settings: LauncherSettings = field(default_factory=LauncherSettings)

    def __post_init__(self) -> None:
        """Validate the configuration."""
        if self.console is None:
            raise ConfigurationError("set_console(sink) was not called")
        if not callable(self.console):
            raise ConfigurationError("console sink must be callable")
        if self.error_console is not None and not callable(self.error_console):
            raise ConfigurationError("error console sink must be callable")
        if self.task is not None and not callable(self.task):
            raise ConfigurationError("task must be callable")
        if (
            self.heap_min is not None
            and self.heap_max is not None
            and self.heap_min > self.heap_max
        ):
            raise ConfigurationError(
                f"heap_min ({self.heap_min}) is larger than heap_max ({self.heap_max})"
            )
        # freeze the environment so callers cannot mutate a shared configuration
        if not isinstance(self.environment, MappingProxyType):
            object.__setattr__(self, "environment", MappingProxyType(dict(self.environment)))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation (callables and environment omitted).

        Returns:
            Dictionary describing the launch settings
        """
        return {
            "task": getattr(self.task, "__qualname__", None) if self.task else None,
            "user_paths": list(self.user_paths),
            "include_host_path": self.include_host_path,
            "host_path": list(self.host_path),
            "interpreter_options": list(self.interpreter_options),
            "heap_min": self.heap_min,
            "heap_max": self.heap_max,
            "working_directory": str(self.working_directory),
            "separate_stderr": self.error_console is not None,
            "settings": self.settings.model_dump(),
        }
