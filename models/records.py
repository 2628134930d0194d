"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from threading import Event
from typing import Optional


@dataclass(frozen=True, slots=True)
class WirelessTagUpdate:
    """A single reading pushed by the wireless tag manager.

    ``timestamp`` is ``None`` when the gateway did not send one; sinks fill in
    the current time themselves when they write.
    """

    name: str
    tag_id: str
    degrees_c: float
    humidity: float
    battery: float
    timestamp: Optional[datetime] = None


class UpdateContext:
    """Cancellation signal for the request an update arrived on.

    The HTTP layer cancels it when the client goes away while sinks are still
    running. Sinks that block may poll :attr:`cancelled` or :meth:`wait` on
    it; sinks that only enqueue are free to ignore it.
    """

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; returns :attr:`cancelled`."""
        return self._cancelled.wait(timeout)

    def __repr__(self) -> str:
        return f"UpdateContext(cancelled={self.cancelled})"
