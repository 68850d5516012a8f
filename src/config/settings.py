"""
Configuration settings for the Users Backend
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
DEFAULT_RETRY_INTERVAL_SECONDS = 5.0
DEFAULT_RETRY_MAX_ATTEMPTS = 0  # 0 = retry forever
DEFAULT_LOG_LEVEL = "INFO"

# Connection string variables, first non-blank wins
DATABASE_URL_VARIABLES = ("DATABASE_URL", "POSTGRES_URL")


class ConfigurationError(Exception):
    """Process configuration is missing or malformed"""


@dataclass(frozen=True)
class Settings:
    """Process-wide settings resolved once at startup"""

    database_url: str
    port: int = DEFAULT_PORT
    db_retry_interval: float = DEFAULT_RETRY_INTERVAL_SECONDS
    db_retry_max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = DEFAULT_LOG_LEVEL


def _read_number(environ: Mapping[str, str], name: str, default, cast):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _read_log_level(environ: Mapping[str, str]) -> str:
    level = (environ.get("LOG_LEVEL") or "").strip().upper() or DEFAULT_LOG_LEVEL
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"LOG_LEVEL must be a logging level name, got {level!r}")
    return level


def _read_database_url(environ: Mapping[str, str]) -> Optional[str]:
    for name in DATABASE_URL_VARIABLES:
        value = environ.get(name)
        if value and value.strip():
            return value.strip()
    return None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Raises:
        ConfigurationError: connection string missing/blank or a numeric
            variable does not parse, or LOG_LEVEL is not a level name
    """
    if environ is None:
        environ = os.environ

    database_url = _read_database_url(environ)
    if not database_url:
        raise ConfigurationError(
            f"missing {DATABASE_URL_VARIABLES[0]} (or {DATABASE_URL_VARIABLES[1]})."
        )

    port = _read_number(environ, "PORT", DEFAULT_PORT, int)
    retry_interval = _read_number(
        environ, "DB_RETRY_INTERVAL_SECONDS", DEFAULT_RETRY_INTERVAL_SECONDS, float
    )
    retry_max_attempts = _read_number(
        environ, "DB_RETRY_MAX_ATTEMPTS", DEFAULT_RETRY_MAX_ATTEMPTS, int
    )
    if retry_interval < 0:
        raise ConfigurationError("DB_RETRY_INTERVAL_SECONDS must be >= 0")
    if retry_max_attempts < 0:
        raise ConfigurationError("DB_RETRY_MAX_ATTEMPTS must be >= 0")

    allowed_origins = [
        origin.strip()
        for origin in environ.get("ALLOWED_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    settings = Settings(
        database_url=database_url,
        port=port,
        db_retry_interval=retry_interval,
        db_retry_max_attempts=retry_max_attempts,
        allowed_origins=allowed_origins,
        log_level=_read_log_level(environ),
    )
    logger.info(
        f"Settings loaded - port: {settings.port}, "
        f"db retry: every {settings.db_retry_interval}s "
        f"({settings.db_retry_max_attempts or 'unlimited'} attempts)"
    )
    return settings
