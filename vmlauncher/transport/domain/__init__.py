"""Transport domain models."""

from vmlauncher.transport.domain.channel_port import ChannelClosedError, ChannelPort
from vmlauncher.transport.domain.result_envelope import (
    ErrorDescription,
    ResultEnvelope,
    ResultKind,
)
from vmlauncher.transport.domain.task_envelope import ENVELOPE_VERSION, TaskEnvelope

__all__ = [
    "ChannelClosedError",
    "ChannelPort",
    "ENVELOPE_VERSION",
    "ErrorDescription",
    "ResultEnvelope",
    "ResultKind",
    "TaskEnvelope",
]
