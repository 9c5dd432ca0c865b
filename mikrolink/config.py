"""
Configuration – reads from environment variables or .env file.

All optional:
  MIKROTIK_HOST      – Router API host (default: 192.168.88.1)
  MIKROTIK_PORT      – Router API port (default: 8728)
  MIKROTIK_USER      – Router API username (default: admin)
  MIKROTIK_PASS      – Router API password (default: empty)
  MIKROTIK_TIMEOUT   – Socket timeout in seconds (default: none, block forever)
  MIKROTIK_LOGIN     – Login method: challenge | plain (default: challenge)
  MIKROTIK_MOCK      – Set to 1 to talk to the built-in mock router (demo mode)
  LOG_LEVEL          – Logging level: DEBUG | INFO | WARNING | ERROR (default: INFO)
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .login import LOGIN_METHODS

log = logging.getLogger("Config")


def _optional_int(key: str, default: int | None = None) -> int | None:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"Config: {key}='{raw}' is not a valid integer, using default {default}")
        return default


def _optional_float(key: str, default: float | None = None) -> float | None:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning(f"Config: {key}='{raw}' is not a valid number, using default {default}")
        return default
    if value <= 0:
        log.warning(f"Config: {key}='{raw}' must be positive, using default {default}")
        return default
    return value


def _optional_str(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip() or default


def _optional_bool(key: str) -> bool:
    return os.environ.get(key, "").lower() in ("1", "true", "yes")


def _valid_log_level(level: str) -> str:
    if level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        log.warning(f"Config: LOG_LEVEL='{level}' is invalid, defaulting to INFO")
        return "INFO"
    return level.upper()


def _valid_login_method(method: str) -> str:
    if method.lower() not in LOGIN_METHODS:
        log.warning(f"Config: MIKROTIK_LOGIN='{method}' is invalid, defaulting to challenge")
        return "challenge"
    return method.lower()


@dataclass
class Settings:
    host: str = "192.168.88.1"
    port: int = 8728
    username: str = "admin"
    password: str = ""
    timeout: float | None = None
    login_method: str = "challenge"
    log_level: str = "INFO"
    mock: bool = False


def load_settings(env_file: str | None = None) -> Settings:
    load_dotenv(env_file)
    return Settings(
        host=_optional_str("MIKROTIK_HOST", "192.168.88.1"),
        port=_optional_int("MIKROTIK_PORT", 8728) or 8728,
        username=_optional_str("MIKROTIK_USER", "admin"),
        # passwords may legitimately contain surrounding spaces
        password=os.environ.get("MIKROTIK_PASS", ""),
        timeout=_optional_float("MIKROTIK_TIMEOUT"),
        login_method=_valid_login_method(_optional_str("MIKROTIK_LOGIN", "challenge")),
        log_level=_valid_log_level(_optional_str("LOG_LEVEL", "INFO")),
        mock=_optional_bool("MIKROTIK_MOCK"),
    )
