"""ASGI middleware that writes one access-log line per HTTP request."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


@dataclass
class RequestLogData:
    method: str
    url: str
    user_agent: str
    remote_addr: str
    start: float
    status: int = 200
    first_byte_at: Optional[float] = None

    def __str__(self) -> str:
        elapsed = ""
        if self.first_byte_at is not None and self.first_byte_at > self.start:
            elapsed = f" {self.first_byte_at - self.start:.3f}s"
        return f"{self.remote_addr} - {self.method} {self.url} - {self.status}{elapsed}"


def _request_url(scope: Scope) -> str:
    raw_path = scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else scope.get("path", "")
    query = scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


def _remote_addr(scope: Scope) -> str:
    client = scope.get("client")
    if not client:
        return ""
    host, port = client
    if ":" in host:
        host = f"[{host}]"
    return f"{host}:{port}"


class RequestLoggerMiddleware:
    """Log method, URL, status and time-to-first-byte once the handler returns.

    The status starts out as 200 and is replaced by whatever the response
    declares. Elapsed time is only reported if something was sent.
    """

    def __init__(self, app: ASGIApp, clock: Callable[[], float] = time.perf_counter) -> None:
        self.app = app
        self.clock = clock

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        data = RequestLogData(
            method=scope["method"],
            url=_request_url(scope),
            user_agent=headers.get("user-agent", ""),
            remote_addr=_remote_addr(scope),
            start=self.clock(),
        )

        async def logging_send(message: Message) -> None:
            if message["type"] == "http.response.start":
                data.status = message["status"]
                data.first_byte_at = self.clock()
            elif message["type"] == "http.response.body" and data.first_byte_at is None:
                data.first_byte_at = self.clock()
            await send(message)

        try:
            await self.app(scope, receive, logging_send)
        finally:
            logger.info(str(data), extra={"user_agent": data.user_agent})
