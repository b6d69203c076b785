"""
Fluent builder for launch configurations.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from vmlauncher.config.domain.launch_configuration import (
    ClassResolver,
    ConsoleSink,
    LaunchConfiguration,
)
from vmlauncher.config.settings import LauncherSettings
from vmlauncher.config.utils.path_utils import (
    host_import_path,
    module_import_roots,
    normalize_paths,
    parse_size,
)
from vmlauncher.errors import ConfigurationError

if TYPE_CHECKING:
    from vmlauncher.launcher.infrastructure.vm_launcher import VmLauncher


class VmBuilder:
    """
    Collects launch options and produces a ``VmLauncher``.

    The host environment and working directory are snapshotted when the
    builder is created; later changes to ``os.environ`` do not leak into
    workers started from the built launcher.

    Example:
        launcher = (
            VmBuilder()
            .set_callable(compute)
            .set_environment("MODE", "batch")
            .set_heap_max("512m")
            .set_console(print)
            .build()
        )
        value = launcher.start_and_get()
    """

    def __init__(self) -> None:
        self._task: Callable[[], Any] | None = None
        self._class_resolver: ClassResolver | None = None
        self._console: ConsoleSink | None = None
        self._error_console: ConsoleSink | None = None
        self._include_host_path = True
        self._user_paths: list[str] = []
        self._interpreter_options: list[str] = []
        self._heap_min: int | None = None
        self._heap_max: int | None = None
        self._environment: dict[str, str] = dict(os.environ)
        self._working_directory = Path.cwd()
        self._settings: LauncherSettings | None = None

    def set_callable(self, task: Callable[[], Any]) -> VmBuilder:
        """Set the default task run by each launch."""
        if task is None or not callable(task):
            raise ConfigurationError("task must be callable")
        self._task = task
        return self

    def set_class_resolver(self, resolver: ClassResolver) -> VmBuilder:
        """Set the ``(module, name) -> object`` lookup used to decode results on the host."""
        if resolver is None or not callable(resolver):
            raise ConfigurationError("class resolver must be callable")
        self._class_resolver = resolver
        return self

    def set_console(self, sink: ConsoleSink) -> VmBuilder:
        """Set the sink receiving the worker's output, one line per call."""
        if sink is None or not callable(sink):
            raise ConfigurationError("console sink must be callable")
        self._console = sink
        return self

    def set_error_console(self, sink: ConsoleSink) -> VmBuilder:
        """Relay stderr to its own sink instead of merging it into the console."""
        if sink is None or not callable(sink):
            raise ConfigurationError("error console sink must be callable")
        self._error_console = sink
        return self

    def exclude_host_path(self) -> VmBuilder:
        """Do not forward the host's ``sys.path`` to the worker."""
        self._include_host_path = False
        return self

    def add_user_path_from(self, module: ModuleType | str) -> VmBuilder:
        """Add the import roots of ``module`` and every package above it."""
        self._user_paths.extend(module_import_roots(module))
        return self

    def add_user_paths(self, paths: Iterable[str | os.PathLike[str]]) -> VmBuilder:
        """Add explicit import path entries (directories or zip archives)."""
        if isinstance(paths, str | os.PathLike):
            raise ConfigurationError("add_user_paths expects a collection of paths")
        self._user_paths.extend(normalize_paths(paths))
        return self

    def set_heap_min(self, size: str | int) -> VmBuilder:
        """Require the worker to be allowed at least ``size`` of address space."""
        self._heap_min = parse_size(size)
        return self

    def set_heap_max(self, size: str | int) -> VmBuilder:
        """Limit the worker's address space to ``size``."""
        self._heap_max = parse_size(size)
        return self

    def add_interpreter_options(self, *options: str) -> VmBuilder:
        """Append interpreter flags, e.g. ``add_interpreter_options("-X", "utf8")``."""
        for option in options:
            if not isinstance(option, str) or not option.strip():
                raise ConfigurationError(f"invalid interpreter option: {option!r}")
        self._interpreter_options.extend(options)
        return self

    def set_environment(
        self, key_or_mapping: str | Mapping[str, str], value: str | None = None
    ) -> VmBuilder:
        """
        Override worker environment variables.

        Accepts either a mapping or a single key and value. Overrides are
        merged onto the snapshot of the host environment.

        Raises:
            ConfigurationError: If a key or value is blank.
        """
        if isinstance(key_or_mapping, Mapping):
            if value is not None:
                raise ConfigurationError("value must not be given together with a mapping")
            items = list(key_or_mapping.items())
        else:
            items = [(key_or_mapping, value)]

        for key, val in items:
            if not isinstance(key, str) or not key.strip():
                raise ConfigurationError("environment key is None or empty")
            if not isinstance(val, str) or not val.strip():
                raise ConfigurationError(f"environment value for {key!r} is None or empty")
        self._environment.update(items)
        return self

    def set_working_directory(self, path: str | os.PathLike[str]) -> VmBuilder:
        """Set the worker's working directory."""
        directory = Path(path).expanduser().resolve()
        if not directory.is_dir():
            raise ConfigurationError(f"working directory does not exist: {directory}")
        self._working_directory = directory
        return self

    def set_settings(self, settings: LauncherSettings) -> VmBuilder:
        """Use explicit settings instead of ``LauncherSettings.from_env()``."""
        self._settings = settings
        return self

    def build_configuration(self) -> LaunchConfiguration:
        """
        Freeze the collected options.

        The host import path is captured here, so every launch made from the
        configuration sees the same entries.

        Returns:
            A new immutable ``LaunchConfiguration``.

        Raises:
            ConfigurationError: If no console sink was set, or a ``VMLAUNCHER_*``
                variable holds an invalid value.
        """
        if self._console is None:
            raise ConfigurationError("set_console(sink) was not called")

        settings = self._settings
        if settings is None:
            try:
                settings = LauncherSettings.from_env(self._environment)
            except ValidationError as error:
                raise ConfigurationError(f"invalid VMLAUNCHER_* setting: {error}") from error

        host_path = host_import_path(Path.cwd()) if self._include_host_path else []
        return LaunchConfiguration(
            console=self._console,
            task=self._task,
            class_resolver=self._class_resolver,
            error_console=self._error_console,
            user_paths=tuple(dict.fromkeys(self._user_paths)),
            include_host_path=self._include_host_path,
            host_path=tuple(host_path),
            interpreter_options=tuple(self._interpreter_options),
            heap_min=self._heap_min,
            heap_max=self._heap_max,
            environment=dict(self._environment),
            working_directory=self._working_directory,
            settings=settings,
        )

    def build(self) -> VmLauncher:
        """
        Build a launcher over a frozen configuration.

        Returns:
            A ``VmLauncher``; each of its launches spawns a new worker.

        Raises:
            ConfigurationError: If no console sink was set, or settings are invalid.
        """
        from vmlauncher.launcher.infrastructure.vm_launcher import VmLauncher

        return VmLauncher(self.build_configuration())
