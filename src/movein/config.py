"""Configuration for the checkout flow.

Settings live in ``~/.movein/config.yaml``.  Every key is optional.

Precedence (highest first):
    1. Explicit keyword arguments to :func:`load_config`
    2. Environment variables (``MOVEIN_CONSUMER_API_URL``, etc.)
    3. Config file (``~/.movein/config.yaml``)
    4. Built-in defaults
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

from movein import parse_float_env
from movein.eligibility import ELIGIBILITY_PATHS, PATH_DWELLING

logger = logging.getLogger(__name__)

DEFAULT_CONSUMER_API_URL = "https://consumer-api.2tion.example/api/v1"
DEFAULT_ERCOT_API_URL = "https://ercot.api.comparepower.com"


@dataclass(frozen=True)
class FlowConfig:
    consumer_api_url: str = DEFAULT_CONSUMER_API_URL
    ercot_api_url: str = DEFAULT_ERCOT_API_URL
    timeout: float = 30.0
    debounce_seconds: float = 0.3
    min_loading_seconds: float = 1.5
    eligibility_path: str = PATH_DWELLING
    default_zip: str = "75205"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# key -> (env var, type)
_SETTINGS: dict[str, tuple[str, type]] = {
    "consumer_api_url": ("MOVEIN_CONSUMER_API_URL", str),
    "ercot_api_url": ("MOVEIN_ERCOT_API_URL", str),
    "timeout": ("MOVEIN_HTTP_TIMEOUT", float),
    "debounce_seconds": ("MOVEIN_DEBOUNCE_SECONDS", float),
    "min_loading_seconds": ("MOVEIN_MIN_LOADING_SECONDS", float),
    "eligibility_path": ("MOVEIN_ELIGIBILITY_PATH", str),
    "default_zip": ("MOVEIN_DEFAULT_ZIP", str),
}


def get_config_path() -> Path:
    """Return the default config file path (``~/.movein/config.yaml``)."""
    return Path.home() / ".movein" / "config.yaml"


def _validate_config_schema(data: dict[str, Any], path: Path) -> None:
    """Log warnings for unknown keys in the config file."""
    unknown = set(data.keys()) - set(_SETTINGS)
    for key in sorted(unknown):
        logger.warning(
            "Config file %s contains unknown key %r (expected one of: %s)",
            path,
            key,
            ", ".join(sorted(_SETTINGS)),
        )


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read and parse the YAML config file; return ``{}`` on any failure."""
    if not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        if not isinstance(data, dict):
            return {}
        _validate_config_schema(data, path)
        return data
    except yaml.YAMLError as exc:
        logger.warning("Config file %s has invalid YAML: %s", path, exc)
        return {}
    except OSError as exc:
        logger.warning("Could not read config file %s: %s", path, exc)
        return {}


def _coerce(key: str, value: Any, kind: type, source: str) -> Any:
    if kind is float:
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid %s value %r from %s", key, value, source)
            return None
    return str(value).strip() or None


def load_config(path: Path | None = None, **overrides: Any) -> FlowConfig:
    """Resolve the effective configuration.

    :param path: Config file; defaults to :func:`get_config_path`.
    :param overrides: Explicit values; ``None`` entries are ignored.
    :raises ValueError: If an override names an unknown key or the
        resolved eligibility path is not recognised.
    """
    unknown = set(overrides) - set(_SETTINGS)
    if unknown:
        raise ValueError(f"Unknown config key(s): {', '.join(sorted(unknown))}")

    config_path = path or get_config_path()
    raw = _read_config_file(config_path)
    values: dict[str, Any] = {}

    for key, (env_var, kind) in _SETTINGS.items():
        if key in raw and raw[key] is not None:
            coerced = _coerce(key, raw[key], kind, str(config_path))
            if coerced is not None:
                values[key] = coerced
        if kind is float:
            env_value = parse_float_env(env_var, -1.0)
            if env_value >= 0:
                values[key] = env_value
        else:
            env_value = os.environ.get(env_var, "").strip()
            if env_value:
                values[key] = env_value
        if overrides.get(key) is not None:
            values[key] = _coerce(key, overrides[key], kind, "arguments")

    config = FlowConfig(**{k: v for k, v in values.items() if v is not None})
    if config.eligibility_path not in ELIGIBILITY_PATHS:
        raise ValueError(
            f"Unknown eligibility_path {config.eligibility_path!r}. "
            f"Expected one of: {', '.join(ELIGIBILITY_PATHS)}"
        )
    return config
