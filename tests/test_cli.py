from __future__ import annotations

from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from settings import get_settings

_ENV_NAMES = (
    "TAGDATA_ADDR",
    "TAGDATA_INFLUX_CONFIG",
    "INFLUX_URL",
    "INFLUX_TOKEN",
    "INFLUX_ORG",
    "INFLUX_BUCKET",
    "TAGDATA_BASE_URL",
)


class StubClient:
    def __init__(self, config, response: str = "OK! WirelessTagUpdate(...)\r\n") -> None:
        self.config = config
        self.response = response
        self.payloads: List[Dict[str, Any]] = []
        self.closed = False

    def send_update(self, payload: Dict[str, Any]) -> str:
        self.payloads.append(payload)
        return self.response

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner(monkeypatch) -> CliRunner:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield CliRunner()
    get_settings.cache_clear()


@pytest.fixture()
def uvicorn_calls(monkeypatch) -> List[tuple]:
    calls: List[tuple] = []

    def fake_run(api, **kwargs) -> None:
        calls.append((api, kwargs))

    monkeypatch.setattr("cli.app.uvicorn.run", fake_run)
    return calls


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_send_posts_gateway_payload(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(
        app,
        [
            "--base-url",
            "http://127.0.0.1:8288/",
            "send",
            "--tag-name",
            "kitchen",
            "--tag-id",
            "A1",
            "--degrees-c",
            "21.5",
            "--now",
            "2023-05-01T12:00:00Z",
        ],
    )

    assert result.exit_code == 0
    assert stub.config.base_url == "http://127.0.0.1:8288"
    assert stub.payloads == [
        {
            "tag_name": "kitchen",
            "tag_id": "A1",
            "degrees_c": 21.5,
            "humidity": 0.0,
            "battery": 0.0,
            "now": "2023-05-01T12:00:00Z",
        }
    ]
    assert "OK! WirelessTagUpdate" in result.stdout
    assert stub.closed is True


def test_send_omits_timestamp_by_default(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["send", "--degrees-c", "123.34"])

    assert result.exit_code == 0
    assert stub.config.base_url == "http://localhost:8900"
    assert "now" not in stub.payloads[0]
    assert stub.payloads[0]["tag_name"] == "test"


def test_serve_without_sinks(runner: CliRunner, uvicorn_calls) -> None:
    result = runner.invoke(app, ["serve", "--addr", "127.0.0.1:8288"])

    assert result.exit_code == 0
    api, kwargs = uvicorn_calls[0]
    assert kwargs == {"host": "127.0.0.1", "port": 8288, "log_config": None, "access_log": False}
    assert api.state.dispatcher.sinks == ()


def test_serve_with_inline_influx(runner: CliRunner, uvicorn_calls) -> None:
    result = runner.invoke(
        app,
        ["serve", "--influx-url", "http://influx:8086", "--influx-token", "secret"],
    )

    assert result.exit_code == 0
    api, kwargs = uvicorn_calls[0]
    assert (kwargs["host"], kwargs["port"]) == ("0.0.0.0", 8900)
    (sink,) = api.state.dispatcher.sinks
    assert sink.config.url == "http://influx:8086"
    assert sink.config.token == "secret"


def test_serve_refuses_to_start_without_usable_config(
    runner: CliRunner, uvicorn_calls, tmp_path
) -> None:
    result = runner.invoke(app, ["serve", "--influx", str(tmp_path / "missing.json")])

    assert result.exit_code == 1
    assert "error setting up influxdb" in result.output
    assert uvicorn_calls == []


def test_serve_rejects_bad_address(runner: CliRunner, uvicorn_calls) -> None:
    result = runner.invoke(app, ["serve", "--addr", "nowhere"])

    assert result.exit_code == 2
    assert uvicorn_calls == []


def test_serve_reports_onboarding_failure(monkeypatch, runner: CliRunner, uvicorn_calls) -> None:
    def broken_onboard(config) -> str:
        raise ValueError("Invalid URL")

    monkeypatch.setattr("sinks.influx_config.onboard", broken_onboard)

    result = runner.invoke(app, ["serve", "--influx-url", "influx:8086"])

    assert result.exit_code == 1
    assert "error setting up influxdb" in result.output
    assert uvicorn_calls == []
