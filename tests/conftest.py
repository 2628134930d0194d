from __future__ import annotations

from typing import Any, List, Tuple

import pytest


class FakeWriteApi:
    def __init__(self) -> None:
        self.writes: List[Tuple[str, str, List[Any]]] = []
        self.flushed = False
        self.closed = False

    def write(self, bucket: str, org: str, record: Any) -> None:
        self.writes.append((bucket, org, list(record)))

    def flush(self) -> None:
        self.flushed = True

    def close(self) -> None:
        self.closed = True


class FakeInfluxClient:
    def __init__(self, config) -> None:
        self.config = config
        self.api = FakeWriteApi()
        self.closed = False

    def write_api(self) -> FakeWriteApi:
        return self.api

    def close(self) -> None:
        self.closed = True


class FakeClientFactory:
    def __init__(self) -> None:
        self.created: List[FakeInfluxClient] = []

    def __call__(self, config) -> FakeInfluxClient:
        client = FakeInfluxClient(config)
        self.created.append(client)
        return client


@pytest.fixture()
def fake_influx() -> FakeClientFactory:
    return FakeClientFactory()
