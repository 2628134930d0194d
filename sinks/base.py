"""Contract shared by every destination an update can be written to."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from models.records import UpdateContext, WirelessTagUpdate


@runtime_checkable
class UpdateSink(Protocol):
    """Records one update; raises when the update could not be recorded.

    ``ctx`` is cancelled if the client that sent the update disconnects.
    """

    def update(self, ctx: UpdateContext, update: WirelessTagUpdate) -> None: ...


class NoopSink:
    """Accepts every update and records nothing."""

    def update(self, ctx: UpdateContext, update: WirelessTagUpdate) -> None:
        return None

    def close(self) -> None:
        return None
