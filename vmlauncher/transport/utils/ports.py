"""Connection parameter validation."""

import ipaddress
from typing import Any

from vmlauncher.errors import LaunchError

MIN_PORT = 0
MAX_PORT = 0xFFFF


def validate_port(value: Any) -> int:
    """
    Parse and range-check a port number.

    Done before any socket is created, so a bad value never reaches the
    network layer.

    Args:
        value: Port as int or decimal string.

    Returns:
        The port as int.

    Raises:
        LaunchError: ``"port out of range:<value>"`` for non-numeric or out-of-range values.
    """
    try:
        port = int(str(value).strip())
    except ValueError:
        raise LaunchError(f"port out of range:{value}") from None
    if not MIN_PORT <= port <= MAX_PORT:
        raise LaunchError(f"port out of range:{value}")
    return port


def validate_loopback_host(host: str) -> str:
    """
    Check that ``host`` is a loopback IP address.

    Raises:
        LaunchError: ``"host is not a loopback address:<host>"`` otherwise.
    """
    try:
        loopback = ipaddress.ip_address(host).is_loopback
    except ValueError:
        loopback = False
    if not loopback:
        raise LaunchError(f"host is not a loopback address:{host}")
    return host
