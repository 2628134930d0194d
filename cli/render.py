from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_update(payload: Dict[str, Any]) -> None:
    echo_heading("Update")
    echo_key_values(
        [
            ("tag_name", payload.get("tag_name")),
            ("tag_id", payload.get("tag_id")),
            ("degrees_c", payload.get("degrees_c")),
            ("humidity", payload.get("humidity")),
            ("battery", payload.get("battery")),
            ("now", payload.get("now", "(server time)")),
        ]
    )


def render_acknowledgement(text: str) -> None:
    typer.echo()
    echo_heading("Response")
    typer.echo(text.rstrip("\r\n"))
