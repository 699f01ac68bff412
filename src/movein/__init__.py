"""MoveIn - utility setup checkout for a new address (water, electricity, internet)."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from importlib.metadata import PackageNotFoundError, version
from typing import TypeVar

_logger = logging.getLogger(__name__)

N = TypeVar("N", int, float)

try:
    __version__ = version("movein")
except PackageNotFoundError:
    __version__ = "0.0.0+local"


def _env_number(name: str, default: N, cast: Callable[[str], N]) -> N:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        _logger.warning("Ignoring %s=%r (not a %s); using %s", name, raw, cast.__name__, default)
        return default


def parse_int_env(name: str, default: int) -> int:
    """Integer from environment variable *name*, or *default* when unset or malformed."""
    return _env_number(name, default, int)


def parse_float_env(name: str, default: float) -> float:
    return _env_number(name, default, float)
