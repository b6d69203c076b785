"""
Transport channel.

One framed round trip per worker: task envelope out, result envelope back.
"""

from vmlauncher.transport.domain import (
    ChannelClosedError,
    ChannelPort,
    ErrorDescription,
    ResultEnvelope,
    ResultKind,
    TaskEnvelope,
)
from vmlauncher.transport.infrastructure import FramedChannel

__all__ = [
    "ChannelClosedError",
    "ChannelPort",
    "ErrorDescription",
    "FramedChannel",
    "ResultEnvelope",
    "ResultKind",
    "TaskEnvelope",
]
