"""Launcher-wide tunables."""

from __future__ import annotations

import ipaddress
import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "VMLAUNCHER_"


class LauncherSettings(BaseModel):
    """
    Timeouts and limits shared by every launch made with a configuration.

    Values can be overridden through ``VMLAUNCHER_<FIELD>`` environment
    variables, e.g. ``VMLAUNCHER_CONNECT_TIMEOUT=5``.
    """

    model_config = ConfigDict(frozen=True)

    connect_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for the worker to connect back",
    )
    result_grace_period: float = Field(
        default=5.0,
        ge=0,
        description="Seconds the exit waiter gives the result reader after the worker exits",
    )
    console_tail_lines: int = Field(
        default=50,
        ge=0,
        description="Number of trailing console lines kept for crash diagnostics",
    )
    max_frame_size: int = Field(
        default=(1 << 32) - 1,
        gt=0,
        le=(1 << 32) - 1,
        description="Largest payload accepted on the transport channel",
    )
    bind_host: str = Field(
        default="127.0.0.1",
        description="Loopback address the host listens on",
        examples=["127.0.0.1", "::1"],
    )

    @field_validator("bind_host")
    @classmethod
    def _must_be_loopback(cls, value: str) -> str:
        if not ipaddress.ip_address(value).is_loopback:
            raise ValueError(f"bind_host must be a loopback address, got {value!r}")
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LauncherSettings:
        """
        Build settings from ``VMLAUNCHER_*`` variables.

        Args:
            environ: Mapping to read from (default: ``os.environ``).

        Returns:
            Settings with every variable found applied over the defaults.
        """
        source = os.environ if environ is None else environ
        overrides = {
            name: source[ENV_PREFIX + name.upper()]
            for name in cls.model_fields
            if ENV_PREFIX + name.upper() in source
        }
        return cls(**overrides)
