"""Utilities for the transport channel."""

from vmlauncher.transport.utils.closure_pickler import (
    ClosurePickler,
    dumps,
    is_importable,
    make_function_skeleton,
    restore_function_state,
)
from vmlauncher.transport.utils.ports import validate_loopback_host, validate_port

__all__ = [
    "ClosurePickler",
    "dumps",
    "is_importable",
    "make_function_skeleton",
    "restore_function_state",
    "validate_loopback_host",
    "validate_port",
]
