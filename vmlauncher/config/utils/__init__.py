"""Utilities for launch configuration."""

from vmlauncher.config.utils.path_utils import (
    host_import_path,
    module_import_roots,
    normalize_paths,
    parse_size,
)

__all__ = ["host_import_path", "module_import_roots", "normalize_paths", "parse_size"]
