"""InfluxDB connection settings, token lookup, and first-run onboarding."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Optional

from influxdb_client import InfluxDBClient
from influxdb_client.domain.onboarding_request import OnboardingRequest
from influxdb_client.rest import ApiException
from influxdb_client.service.setup_service import SetupService
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from urllib3.exceptions import HTTPError

from settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_ORG = "wirelesstags"
DEFAULT_BUCKET = "wirelesstags"
DEFAULT_RETENTION_PERIOD = 365 * 24 * 60 * 60
DEFAULT_USERNAME = "admin"
DEFAULT_PASSWORD = "password1"

TOKEN_FILE_SUFFIX = ".token"
SETUP_ATTEMPTS = 10
SETUP_RETRY_DELAY = 2.0

_RETRYABLE_SETUP_ERRORS = (ApiException, HTTPError, OSError)


class ConfigError(Exception):
    """Raised when a sink cannot be configured; fatal at startup."""


@dataclass(frozen=True)
class InfluxConfig:
    url: str
    token: Optional[str] = field(default=None, repr=False)
    org: str = DEFAULT_ORG
    bucket: str = DEFAULT_BUCKET
    username: str = DEFAULT_USERNAME
    password: str = field(default=DEFAULT_PASSWORD, repr=False)
    retention_period: int = DEFAULT_RETENTION_PERIOD


class _InfluxConfigFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str = ""
    username: str = ""
    password: str = ""
    token: str = ""
    org: str = ""
    bucket: str = ""
    retention_period: int = Field(default=0, ge=0, description="Bucket retention in seconds.")


SetupFunc = Callable[[InfluxConfig], str]


def read_config(
    path: Path,
    setup: Optional[SetupFunc] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> InfluxConfig:
    """Load an InfluxDB config file and make sure it carries a write token.

    A token missing from the file is looked up in ``<path>.token``; failing
    that, the database is onboarded and the issued token is saved there.
    """
    try:
        raw = path.read_text()
    except OSError as exc:
        raise ConfigError(f"{path}: {exc}") from exc

    try:
        parsed = _InfluxConfigFile.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigError(f"{path}: {exc}") from exc

    if not parsed.url:
        raise ConfigError(f'{path}: "url" is missing')

    config = InfluxConfig(
        url=parsed.url,
        token=parsed.token or None,
        org=parsed.org or DEFAULT_ORG,
        bucket=parsed.bucket or DEFAULT_BUCKET,
        username=parsed.username or DEFAULT_USERNAME,
        password=parsed.password or DEFAULT_PASSWORD,
        retention_period=parsed.retention_period or DEFAULT_RETENTION_PERIOD,
    )
    if config.token:
        return config

    token_file = path.with_name(path.name + TOKEN_FILE_SUFFIX)
    token = load_token_file(token_file)
    if token:
        logger.info("Loaded influxdb token from file", extra={"path": str(token_file)})
        return replace(config, token=token)

    token = _obtain_token(config, setup=setup, sleep=sleep)
    try:
        create_token_file(token_file, token)
    except OSError as exc:
        logger.warning(
            "influxdb setup was successful, but token could not be saved: %s",
            exc,
            extra={"path": str(token_file)},
        )
    return replace(config, token=token)


def config_from_settings(
    settings: Settings,
    setup: Optional[SetupFunc] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> InfluxConfig:
    """Build a config from inline settings; onboarding tokens are not persisted."""
    if not settings.influx_url:
        raise ConfigError("influxdb url is not configured")
    config = InfluxConfig(
        url=settings.influx_url,
        token=settings.influx_token,
        org=settings.influx_org or DEFAULT_ORG,
        bucket=settings.influx_bucket or DEFAULT_BUCKET,
    )
    if config.token:
        return config
    return replace(config, token=_obtain_token(config, setup=setup, sleep=sleep))


def load_token_file(path: Path) -> Optional[str]:
    try:
        token = path.read_text().strip()
    except OSError:
        return None
    return token or None


def create_token_file(path: Path, token: str) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o400)
    with os.fdopen(fd, "w") as handle:
        handle.write(token)


def onboard(config: InfluxConfig) -> str:
    """Run the database's initial setup and return the issued operator token."""
    request = OnboardingRequest(
        username=config.username,
        password=config.password,
        org=config.org,
        bucket=config.bucket,
        retention_period_seconds=config.retention_period,
    )
    with InfluxDBClient(url=config.url) as client:
        response = SetupService(client.api_client).post_setup(request)
    token = response.auth.token if response.auth is not None else None
    if not token:
        raise ConfigError("setup completed successfully, but token was missing")
    return token


def setup_with_retries(
    config: InfluxConfig,
    setup: Optional[SetupFunc] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Call ``setup`` until it succeeds; the database may still be starting up."""
    setup = setup or onboard
    for attempt in range(1, SETUP_ATTEMPTS + 1):
        try:
            return setup(config)
        except _RETRYABLE_SETUP_ERRORS as exc:
            logger.warning(
                "try %d/%d: %s",
                attempt,
                SETUP_ATTEMPTS,
                exc,
                extra={"attempt": attempt},
            )
            sleep(SETUP_RETRY_DELAY)
    return setup(config)


def _obtain_token(
    config: InfluxConfig,
    setup: Optional[SetupFunc],
    sleep: Callable[[float], None],
) -> str:
    try:
        return setup_with_retries(config, setup=setup, sleep=sleep)
    except Exception as exc:
        logger.warning("influxdb setup failed: %s", exc)
        raise ConfigError("token was not configured and setup cannot be performed") from exc
