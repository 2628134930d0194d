"""Time-series sink that writes tag readings to InfluxDB 2."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Optional

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import WriteApi

from models.records import UpdateContext, WirelessTagUpdate
from sinks.influx_config import InfluxConfig

logger = logging.getLogger(__name__)


def _make_client(config: InfluxConfig) -> InfluxDBClient:
    return InfluxDBClient(url=config.url, token=config.token, org=config.org)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SinkClosedError(RuntimeError):
    """Raised when an update arrives after the sink was closed."""


class InfluxDBSink:
    """Splits each update into temperature, humidity and battery points.

    Points are handed to the client's batching write API, which flushes them
    in the background. Failed batches are reported by the client library's
    own logging and are not raised from :meth:`update`.

    The client is created on the first update. Once :meth:`close` has run the
    sink refuses further updates instead of reconnecting.
    """

    name = "influxdb"

    def __init__(
        self,
        config: InfluxConfig,
        client_factory: Callable[[InfluxConfig], InfluxDBClient] = _make_client,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self._client_factory = client_factory
        self._clock = clock
        self._client: Optional[InfluxDBClient] = None
        self._write_api: Optional[WriteApi] = None
        self._closed = False
        self._lock = Lock()

    def update(self, ctx: UpdateContext, update: WirelessTagUpdate) -> None:
        # Enqueueing never blocks on the network, so ``ctx`` is not consulted.
        tags = {
            "tag_number": update.tag_id,
            "tag_name": update.name,
        }
        timestamp = update.timestamp or self._clock()

        points = [
            self._point("temperature", update.degrees_c, tags, timestamp),
            self._point("humidity", update.humidity, tags, timestamp),
            self._point("battery_voltage", update.battery, tags, timestamp),
        ]
        with self._lock:
            if self._closed:
                raise SinkClosedError(f"{self.name} sink is closed")
            self._ensure_write_api().write(
                bucket=self.config.bucket, org=self.config.org, record=points
            )

    def close(self) -> None:
        with self._lock:
            write_api, client = self._write_api, self._client
            self._write_api = None
            self._client = None
            self._closed = True

        if write_api is not None:
            logger.info("flushing influxdb writes...", extra={"sink": self.name})
            write_api.flush()
            write_api.close()
        if client is not None:
            logger.info("stopping influxdb client...", extra={"sink": self.name})
            client.close()

    def _ensure_write_api(self) -> WriteApi:
        """Return the write API, connecting on first use. Caller holds ``_lock``."""
        if self._write_api is None:
            logger.info(
                "Connecting to influxdb at %s", self.config.url, extra={"sink": self.name}
            )
            self._client = self._client_factory(self.config)
            self._write_api = self._client.write_api()
        return self._write_api

    @staticmethod
    def _point(
        measurement: str, value: float, tags: Dict[str, str], timestamp: datetime
    ) -> Point:
        point = Point(measurement)
        for key, tag_value in tags.items():
            point = point.tag(key, tag_value)
        return point.field("value", value).time(timestamp, WritePrecision.NS)
