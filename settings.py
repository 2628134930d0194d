from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_LISTEN_ADDR_ENV = "TAGDATA_ADDR"
_INFLUX_CONFIG_ENV = "TAGDATA_INFLUX_CONFIG"
_INFLUX_URL_ENV = "INFLUX_URL"
_INFLUX_TOKEN_ENV = "INFLUX_TOKEN"
_INFLUX_ORG_ENV = "INFLUX_ORG"
_INFLUX_BUCKET_ENV = "INFLUX_BUCKET"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_LISTEN_ADDR = ":8900"


@dataclass(frozen=True)
class Settings:
    listen_addr: str = DEFAULT_LISTEN_ADDR
    influx_config_path: Optional[str] = None
    influx_url: Optional[str] = None
    influx_token: Optional[str] = None
    influx_org: Optional[str] = None
    influx_bucket: Optional[str] = None
    log_level: str = "INFO"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def parse_listen_addr(addr: str) -> Tuple[str, int]:
    """Split a ``host:port`` listen address; an empty host binds every interface."""
    host, sep, port = addr.strip().rpartition(":")
    if not sep:
        raise ValueError(f"Listen address {addr!r} is missing a port.")
    try:
        parsed = int(port)
    except ValueError as exc:
        raise ValueError(f"Listen address {addr!r} has an invalid port.") from exc
    if not 0 <= parsed <= 65535:
        raise ValueError(f"Listen address {addr!r} has an out-of-range port.")
    host = host.strip("[]")
    return host or "0.0.0.0", parsed


@lru_cache
def get_settings() -> Settings:
    return Settings(
        listen_addr=_read_str_env(_LISTEN_ADDR_ENV, DEFAULT_LISTEN_ADDR),
        influx_config_path=_read_optional_env(_INFLUX_CONFIG_ENV),
        influx_url=_read_optional_env(_INFLUX_URL_ENV),
        influx_token=_read_optional_env(_INFLUX_TOKEN_ENV),
        influx_org=_read_optional_env(_INFLUX_ORG_ENV),
        influx_bucket=_read_optional_env(_INFLUX_BUCKET_ENV),
        log_level=_read_log_level("INFO"),
    )
