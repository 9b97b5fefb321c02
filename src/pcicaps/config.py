"""Decoder configuration with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})

# Environment variables consulted by DecoderConfig.from_env()
ENV_STRICT_ALIGNMENT = "PCICAPS_STRICT_ALIGNMENT"
ENV_FAIL_FAST = "PCICAPS_FAIL_FAST"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class DecoderConfig:
    """Options controlling how capability lists are walked and decoded."""

    # Stop the legacy walk at a misaligned or out-of-range pointer
    # instead of recording a note and continuing.
    strict_alignment: bool = False
    # Re-raise the first per-capability decode error.
    fail_fast: bool = False
    # Device identity for legacy vendor-specific dispatch. When None the
    # values are read from offsets 0x00/0x02 of the config space buffer.
    vendor_id: int | None = None
    device_id: int | None = None

    @classmethod
    def from_env(cls, **overrides: object) -> DecoderConfig:
        """Build a config from PCICAPS_* environment variables.

        Keyword overrides take precedence over the environment.
        """
        config = cls(
            strict_alignment=_env_flag(ENV_STRICT_ALIGNMENT, False),
            fail_fast=_env_flag(ENV_FAIL_FAST, False),
        )
        return replace(config, **overrides) if overrides else config


DEFAULT_CONFIG = DecoderConfig()
