from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import uvicorn

from app.main import create_app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_acknowledgement, render_update
from settings import get_settings, parse_listen_addr
from sinks.influx_config import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class CLIState:
    config: CLIConfig


app = typer.Typer(
    help="Receive wireless tag readings and forward them to time-series sinks.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL used by 'send' (defaults to TAGDATA_BASE_URL env or http://localhost:8900).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the service to answer.",
    ),
) -> None:
    """Entry point for the CLI."""
    ctx.obj = CLIState(config=load_config(base_url=base_url, timeout=timeout))


@app.command("serve")
def serve_command(
    addr: Optional[str] = typer.Option(
        None, "--addr", help="Address for the web server (defaults to TAGDATA_ADDR env or :8900)."
    ),
    influx: Optional[Path] = typer.Option(
        None, "--influx", dir_okay=False, help="Config file for influxdb."
    ),
    influx_url: Optional[str] = typer.Option(None, "--influx-url", help="InfluxDB URL."),
    influx_token: Optional[str] = typer.Option(None, "--influx-token", help="InfluxDB write token."),
    influx_org: Optional[str] = typer.Option(None, "--influx-org", help="InfluxDB organization."),
    influx_bucket: Optional[str] = typer.Option(None, "--influx-bucket", help="InfluxDB bucket."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level."),
) -> None:
    """Run the HTTP endpoint the tag manager posts readings to."""
    overrides: Dict[str, Any] = {
        "listen_addr": addr,
        "influx_config_path": str(influx) if influx is not None else None,
        "influx_url": influx_url,
        "influx_token": influx_token,
        "influx_org": influx_org,
        "influx_bucket": influx_bucket,
        "log_level": log_level.upper() if log_level else None,
    }
    settings = replace(
        get_settings(), **{key: value for key, value in overrides.items() if value is not None}
    )

    try:
        host, port = parse_listen_addr(settings.listen_addr)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--addr") from exc

    try:
        api = create_app(settings=settings)
    except ConfigError as exc:
        typer.secho(f"error setting up influxdb: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    logger.info("Listening on %s", settings.listen_addr)
    uvicorn.run(api, host=host, port=port, log_config=None, access_log=False)


@app.command("send")
def send_command(
    ctx: typer.Context,
    tag_name: str = typer.Option("test", "--tag-name", help="Tag label."),
    tag_id: str = typer.Option("", "--tag-id", help="Tag identifier."),
    degrees_c: float = typer.Option(0.0, "--degrees-c", help="Temperature in degrees Celsius."),
    humidity: float = typer.Option(0.0, "--humidity", help="Relative humidity in percent."),
    battery: float = typer.Option(0.0, "--battery", help="Battery voltage."),
    now: Optional[str] = typer.Option(
        None, "--now", help="RFC 3339 timestamp; omitted to let the sinks use their own clock."
    ),
) -> None:
    """Post one reading to a running service, shaped like a tag manager callback."""
    state = _get_state(ctx)
    payload: Dict[str, Any] = {
        "tag_name": tag_name,
        "tag_id": tag_id,
        "degrees_c": degrees_c,
        "humidity": humidity,
        "battery": battery,
    }
    if now is not None:
        payload["now"] = now

    client = ApiClient(state.config)
    ctx.call_on_close(client.close)

    typer.echo(f"Sending update to {state.config.base_url} ...")
    render_update(payload)
    text = client.send_update(payload)
    render_acknowledgement(text)
