"""
Configuration loader for burnflow.

Loads engine settings from <data_dir>/burnflow.env, with BURNFLOW_* environment
variables taking precedence. Unknown or invalid values fall back to defaults
with a warning rather than failing.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from . import envparse

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "burnflow.env"
ENV_PREFIX = "BURNFLOW_"
DATA_DIR_ENV = "BURNFLOW_DATA_DIR"

VALID_VALUE_UNITS = ("hours", "minutes", "seconds")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
DEFAULT_FETCH_CONCURRENCY = 8


@dataclass
class EngineConfig:
    """Engine and CLI settings from burnflow.env"""
    value_unit: str = "hours"  # Unit of series values
    fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY  # Tasks fetched at once
    log_level: str = "WARNING"
    color: bool = True


def resolve_data_dir(explicit: str | None = None) -> Path:
    """Data directory from --data-dir, then BURNFLOW_DATA_DIR, then cwd."""
    if explicit:
        return Path(explicit)
    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    return Path.cwd()


def load_engine_config(data_dir: Path | None, environ: dict[str, str] | None = None) -> EngineConfig:
    """Load burnflow.env (if present) plus environment overrides.

    Raises:
        ValueError: if burnflow.env has invalid syntax
    """
    env = {}
    if data_dir is not None:
        config_path = data_dir / CONFIG_FILENAME
        if config_path.exists():
            env = envparse.load_env(config_path)
    env.update(envparse.env_overrides(ENV_PREFIX, environ))

    value_unit = env.get("VALUE_UNIT", "hours").lower()
    if value_unit not in VALID_VALUE_UNITS:
        logger.warning(
            f"Unknown VALUE_UNIT '{value_unit}', defaulting to 'hours'. "
            f"Valid units: {', '.join(VALID_VALUE_UNITS)}"
        )
        value_unit = "hours"

    raw_concurrency = env.get("FETCH_CONCURRENCY", str(DEFAULT_FETCH_CONCURRENCY))
    try:
        fetch_concurrency = int(raw_concurrency)
        if fetch_concurrency < 1:
            raise ValueError(raw_concurrency)
    except ValueError:
        logger.warning(
            f"Invalid FETCH_CONCURRENCY '{raw_concurrency}', defaulting to {DEFAULT_FETCH_CONCURRENCY}"
        )
        fetch_concurrency = DEFAULT_FETCH_CONCURRENCY

    log_level = env.get("LOG_LEVEL", "WARNING").upper()
    if log_level not in VALID_LOG_LEVELS:
        logger.warning(f"Unknown LOG_LEVEL '{log_level}', defaulting to 'WARNING'")
        log_level = "WARNING"

    return EngineConfig(
        value_unit=value_unit,
        fetch_concurrency=fetch_concurrency,
        log_level=log_level,
        color=env.get("COLOR", "true").lower() == "true",
    )
