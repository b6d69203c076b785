"""Transport infrastructure implementations."""

from vmlauncher.transport.infrastructure.framed_channel import FramedChannel

__all__ = ["FramedChannel"]
