#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Engine configuration for the translation-number modules.

All knobs are read from the environment with strict parsers:

  TRANSNUM_TOLERANCE   default certified error bound for tau estimates (rational string, e.g. "1/1024")
  TRANSNUM_PROBE_BITS  opaque lifts are checked on the dyadic grid j/2^bits of [0, 1]
  TRANSNUM_MAX_ORBIT   budget of distinct terms explored by the semiconjugacy synthesizer
  TRANSNUM_MAX_RADIUS  word-ball radius used when terms cannot be deduplicated structurally

Redlines:
  - Invalid values must raise (deployment/config error); no silent downgrade to defaults.
  - Library modules never install logging handlers; only smoke runners do.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from fractions import Fraction
from typing import Optional

_logger = logging.getLogger(__name__)

_DEFAULT_TOLERANCE = Fraction(1, 2 ** 10)
_DEFAULT_PROBE_BITS = 6
_DEFAULT_MAX_ORBIT = 4096
_DEFAULT_MAX_RADIUS = 6


def _env_int(name: str, *, default: int, minimum: int) -> int:
    """
    Read an env var as int (base-10), strict.
    """
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return int(default)
    try:
        val = int(str(raw).strip(), 10)
    except Exception as e:
        raise ValueError(f"{name} must be an integer (base-10), got {raw!r}") from e
    if val < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {val}")
    return val


def _env_fraction(name: str, *, default: Fraction) -> Fraction:
    """
    Read an env var as a positive rational. Floats written as decimals ("0.001") are
    parsed exactly by Fraction; exponent notation and garbage raise.
    """
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return Fraction(default)
    try:
        val = Fraction(str(raw).strip())
    except Exception as e:
        raise ValueError(f"{name} must be a rational string like '1/1024', got {raw!r}") from e
    if val <= 0:
        raise ValueError(f"{name} must be > 0, got {raw!r}")
    return val


@dataclass(frozen=True)
class EngineConfig:
    default_tolerance: Fraction = _DEFAULT_TOLERANCE
    probe_bits: int = _DEFAULT_PROBE_BITS
    max_orbit: int = _DEFAULT_MAX_ORBIT
    max_radius: int = _DEFAULT_MAX_RADIUS

    def __post_init__(self) -> None:
        if not isinstance(self.default_tolerance, Fraction) or self.default_tolerance <= 0:
            raise ValueError(f"default_tolerance must be a positive Fraction, got {self.default_tolerance!r}")
        if not isinstance(self.probe_bits, int) or self.probe_bits < 1:
            raise ValueError(f"probe_bits must be int >= 1, got {self.probe_bits!r}")
        if not isinstance(self.max_orbit, int) or self.max_orbit < 1:
            raise ValueError(f"max_orbit must be int >= 1, got {self.max_orbit!r}")
        if not isinstance(self.max_radius, int) or self.max_radius < 0:
            raise ValueError(f"max_radius must be int >= 0, got {self.max_radius!r}")

    @property
    def probe_size(self) -> int:
        return 2 ** int(self.probe_bits)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            default_tolerance=_env_fraction("TRANSNUM_TOLERANCE", default=_DEFAULT_TOLERANCE),
            probe_bits=_env_int("TRANSNUM_PROBE_BITS", default=_DEFAULT_PROBE_BITS, minimum=1),
            max_orbit=_env_int("TRANSNUM_MAX_ORBIT", default=_DEFAULT_MAX_ORBIT, minimum=1),
            max_radius=_env_int("TRANSNUM_MAX_RADIUS", default=_DEFAULT_MAX_RADIUS, minimum=0),
        )


_config_lock = threading.Lock()
_config: Optional[EngineConfig] = None


def load_config() -> EngineConfig:
    """Process-wide config, parsed from the environment once."""
    global _config
    with _config_lock:
        if _config is None:
            _config = EngineConfig.from_env()
            _logger.debug(
                "engine config: tolerance=%s probe_bits=%s max_orbit=%s max_radius=%s",
                _config.default_tolerance, _config.probe_bits, _config.max_orbit, _config.max_radius,
            )
        return _config


def reset_config() -> None:
    global _config
    with _config_lock:
        _config = None


def configure_smoke_logging() -> None:
    """Only install a default handler when the host application has not configured logging."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="[%(levelname)s] %(name)s: %(message)s",
        )
    root.setLevel(logging.INFO)
