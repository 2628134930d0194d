"""Fan-out of decoded tag updates to the configured sinks."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from models.records import UpdateContext, WirelessTagUpdate
from settings import Settings, get_settings
from sinks.base import UpdateSink
from sinks.influx_config import config_from_settings, read_config
from sinks.influxdb import InfluxDBSink

logger = logging.getLogger(__name__)


class Dispatcher:
    """Delivers each update to every sink, in registration order.

    Delivery stops at the first sink that raises and that exception is
    propagated as-is. Sinks registered after it never see the update, and
    the caller cannot tell which earlier sinks already accepted it.
    """

    def __init__(self, sinks: Iterable[UpdateSink] = ()) -> None:
        self._sinks: Tuple[UpdateSink, ...] = tuple(sinks)

    @property
    def sinks(self) -> Tuple[UpdateSink, ...]:
        return self._sinks

    def update(self, ctx: UpdateContext, update: WirelessTagUpdate) -> None:
        """Hand the same ``ctx`` and ``update`` to each sink in turn."""
        for sink in self._sinks:
            sink.update(ctx, update)

    def close(self) -> None:
        """Close every sink that holds resources."""
        for sink in self._sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                close()


def build_default_dispatcher(settings: Optional[Settings] = None) -> Dispatcher:
    """Wire the sinks named in settings; raises ``ConfigError`` if one cannot be set up."""
    settings = settings or get_settings()
    sinks: List[UpdateSink] = []

    if settings.influx_config_path:
        config = read_config(Path(settings.influx_config_path))
        sinks.append(InfluxDBSink(config))
        logger.info(
            "configured influxdb using %s",
            settings.influx_config_path,
            extra={"sink": InfluxDBSink.name},
        )
    elif settings.influx_url:
        config = config_from_settings(settings)
        sinks.append(InfluxDBSink(config))
        logger.info(
            "configured influxdb at %s", config.url, extra={"sink": InfluxDBSink.name}
        )

    if not sinks:
        logger.warning("No sinks configured; updates will be acknowledged and dropped.")
    return Dispatcher(sinks)
