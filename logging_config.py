from __future__ import annotations

import logging
import time
from logging.config import dictConfig
from typing import Iterable, Iterator, Sequence

from settings import get_settings

# Request and sink attributes passed through ``extra=`` that end up on the line.
_DEFAULT_EXTRA_KEYS = (
    "user_agent",
    "remote_addr",
    "status",
    "tag_id",
    "sink",
    "attempt",
    "path",
    "content_length",
    "body_size",
)

_configured = False


class KeyValueFormatter(logging.Formatter):
    """Formats in UTC and appends known ``extra`` attributes as ``key=value``.

    Values containing whitespace, such as most user agents, are quoted so the
    pairs stay splittable. Attributes that are missing, ``None`` or empty are
    left off.
    """

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._extra_keys: Sequence[str] = tuple(extra_keys or _DEFAULT_EXTRA_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = " ".join(self._pairs(record))
        return f"{line} | {pairs}" if pairs else line

    def _pairs(self, record: logging.LogRecord) -> Iterator[str]:
        for key in self._extra_keys:
            value = getattr(record, key, None)
            if value is None or value == "":
                continue
            text = str(value)
            if any(char.isspace() for char in text):
                text = '"' + text.replace('"', '\\"') + '"'
            yield f"{key}={text}"


def configure_logging(level: str | int | None = None) -> None:
    """Send all records to stderr through :class:`KeyValueFormatter`.

    Only the first call has an effect. ``level`` defaults to ``LOG_LEVEL``.
    """
    global _configured
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "key_value": {
                    "()": "logging_config.KeyValueFormatter",
                    "fmt": "%(asctime)sZ %(levelname)-7s %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "extra_keys": list(_DEFAULT_EXTRA_KEYS),
                }
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "key_value",
                }
            },
            "root": {"handlers": ["stderr"], "level": log_level},
        }
    )

    _configured = True
