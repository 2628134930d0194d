"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

import re
from datetime import timezone
from typing import Any, Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator, model_validator

from models.records import WirelessTagUpdate

# date "T" time, optional fraction, then "Z" or a numeric offset.
_RFC3339 = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:\d{2})"
)


class WirelessTagPayload(BaseModel):
    """JSON body sent by the tag manager's "URL Calling" template.

    The template configured on the tag manager is::

        {"tag_name":"{0}","tag_id":"{1}","degrees_c":{2},"humidity":{3},"now":"{5}","battery":{6}}

    Keys are matched case-insensitively and a ``null`` value leaves the field
    at its default. Numbers must be JSON numbers and ``now`` must be an
    RFC 3339 string with an offset.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    tag_name: str = ""
    tag_id: str = ""
    degrees_c: float = Field(default=0.0, strict=True)
    humidity: float = Field(default=0.0, strict=True)
    battery: float = Field(default=0.0, strict=True)
    now: Optional[AwareDatetime] = Field(default=None, description="Time the reading was taken.")

    @model_validator(mode="before")
    @classmethod
    def _fold_keys(cls, data: Any) -> Any:
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data
        known = {name.lower(): name for name in cls.model_fields}
        folded = {}
        for key, value in data.items():
            name = known.get(key.lower(), key) if isinstance(key, str) else key
            if name in cls.model_fields and value is None:
                folded.pop(name, None)
                continue
            folded[name] = value
        return folded

    @field_validator("now", mode="before")
    @classmethod
    def _require_rfc3339(cls, value: Any) -> Any:
        if not isinstance(value, str) or not _RFC3339.fullmatch(value):
            raise ValueError("now must be an RFC 3339 timestamp such as 2006-01-02T15:04:05Z")
        return value

    def to_update(self) -> WirelessTagUpdate:
        return WirelessTagUpdate(
            name=self.tag_name,
            tag_id=self.tag_id,
            degrees_c=self.degrees_c,
            humidity=self.humidity,
            battery=self.battery,
            timestamp=self.now.astimezone(timezone.utc) if self.now is not None else None,
        )


class HealthResponse(BaseModel):
    status: str
    sinks: int = Field(..., ge=0, description="Number of configured sinks.")
