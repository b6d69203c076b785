"""
Import path helpers.
Discover where modules were imported from and normalise path entries.
"""

import importlib
import os
import re
import sys
from collections.abc import Iterable
from pathlib import Path
from types import ModuleType

from vmlauncher.errors import ConfigurationError

_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*([kmgt]?)b?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"": 1, "k": 1 << 10, "m": 1 << 20, "g": 1 << 30, "t": 1 << 40}


def module_import_roots(module: ModuleType | str) -> list[str]:
    """
    Collect the import roots a module and its parent packages were loaded from.

    Walks the dotted name from the module up to its top-level package. For
    every level the directory that has to be on ``sys.path`` for that level
    to be importable is recorded. Namespace packages may contribute several
    roots.

    Args:
        module: Module object or dotted module name.

    Returns:
        Absolute root entries, de-duplicated, nearest level first.

    Raises:
        ConfigurationError: If the module has no file location (builtins, ``__main__`` run
            from stdin, ...).
    """
    if isinstance(module, str):
        module = importlib.import_module(module)

    parts = module.__name__.split(".")
    roots: list[str] = []
    for depth in range(len(parts), 0, -1):
        current = sys.modules.get(".".join(parts[:depth]))
        if current is None:
            continue
        for location in _module_locations(current):
            # a package directory sits `depth` levels below its root,
            # a plain module file one level below its parent directory
            root = Path(location).resolve()
            for _ in range(depth):
                root = root.parent
            entry = str(root)
            if entry not in roots:
                roots.append(entry)

    if not roots:
        raise ConfigurationError(f"cannot determine an import root for module '{module.__name__}'")
    return roots


def _module_locations(module: ModuleType) -> list[str]:
    package_paths = getattr(module, "__path__", None)
    if package_paths is not None:
        return [str(p) for p in package_paths]
    location = getattr(module, "__file__", None)
    return [location] if location else []


def host_import_path(cwd: str | Path) -> list[str]:
    """
    Return the host's ``sys.path`` as absolute entries.

    The empty entry (current directory) is replaced by ``cwd`` so that the
    worker resolves it the same way even when it runs elsewhere.

    Args:
        cwd: Directory the empty entry stands for.

    Returns:
        List of path entries in ``sys.path`` order.
    """
    entries: list[str] = []
    for entry in sys.path:
        absolute = str(cwd) if entry == "" else os.path.abspath(entry)
        if absolute not in entries:
            entries.append(absolute)
    return entries


def normalize_paths(paths: Iterable[str | os.PathLike[str]]) -> list[str]:
    """Make every entry absolute, dropping duplicates while keeping order."""
    entries: list[str] = []
    for path in paths:
        absolute = os.path.abspath(os.fspath(path))
        if absolute not in entries:
            entries.append(absolute)
    return entries


def parse_size(size: str | int) -> int:
    """
    Parse a memory size such as ``"16m"``, ``"1g"``, ``"512k"`` or a byte count.

    Args:
        size: Size string with an optional k/m/g/t suffix, or an int in bytes.

    Returns:
        Size in bytes.

    Raises:
        ConfigurationError: If the value cannot be parsed or is not positive.
    """
    if isinstance(size, bool):
        raise ConfigurationError(f"invalid memory size: {size!r}")
    if isinstance(size, int):
        value = size
    else:
        match = _SIZE_PATTERN.match(str(size))
        if match is None:
            raise ConfigurationError(f"invalid memory size: {size!r}")
        value = int(match.group(1)) * _SIZE_UNITS[match.group(2).lower()]

    if value <= 0:
        raise ConfigurationError(f"memory size must be positive: {size!r}")
    return value
