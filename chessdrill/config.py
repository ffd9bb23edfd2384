"""Environment-driven configuration and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from chessdrill.models import DrillType

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class DrillConfig:
    base_url: str = "http://localhost:8080"
    timeout_s: float = 10.0
    log_level: str = "INFO"
    drill_type: DrillType = DrillType.NAME_SQUARE
    input_method: str = "type"
    perspective: str = "white"
    html_fragments: bool = False


def _get(environ: Mapping[str, str], key: str, default: str) -> str:
    value = environ.get(key)
    return value if value else default


def _get_float(environ: Mapping[str, str], key: str, default: float) -> float:
    value = environ.get(key)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def load_config(environ: Mapping[str, str] | None = None) -> DrillConfig:
    """Build a DrillConfig from CHESSDRILL_* environment variables.

    Args:
        environ: Mapping to read instead of os.environ.

    Returns:
        The loaded configuration. Malformed numbers fall back to defaults.

    Raises:
        ValueError: If CHESSDRILL_DRILL_TYPE names an unknown drill type.
    """
    env = os.environ if environ is None else environ
    defaults = DrillConfig()
    return DrillConfig(
        base_url=_get(env, "CHESSDRILL_BASE_URL", defaults.base_url).rstrip("/"),
        timeout_s=_get_float(env, "CHESSDRILL_TIMEOUT", defaults.timeout_s),
        log_level=_get(env, "CHESSDRILL_LOG_LEVEL", defaults.log_level).upper(),
        drill_type=DrillType.parse(env.get("CHESSDRILL_DRILL_TYPE")),
        input_method=_get(env, "CHESSDRILL_INPUT_METHOD", defaults.input_method),
        perspective=_get(env, "CHESSDRILL_PERSPECTIVE", defaults.perspective),
        html_fragments=env.get("CHESSDRILL_HTMX") == "1",
    )


def configure_logging(level: str = "INFO") -> None:
    """Install a stderr handler on the root logger at the given level."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=_LOG_FORMAT)
