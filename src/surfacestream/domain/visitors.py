"""Visitor records and the resolved attribute view used during evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, field_validator

# Closed set of custom attribute value types, enforced when a record is written.
CustomValue = Union[StrictStr, StrictBool, StrictInt, StrictFloat, None]


def normalize_dt(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def epoch_ms(value: datetime | None) -> int | None:
    """Timestamps are compared as UTC epoch milliseconds."""
    if value is None:
        return None
    return int(normalize_dt(value).timestamp() * 1000)


class DeviceInfo(BaseModel):
    """Client device details captured by the SDK."""

    model_config = ConfigDict(populate_by_name=True)

    device_type: str | None = Field(default=None, alias="deviceType")
    browser: str | None = None
    os: str | None = None


class LocationInfo(BaseModel):
    """Geo lookup result for the visitor."""

    model_config = ConfigDict(populate_by_name=True)

    country: str | None = None
    country_code: str | None = Field(default=None, alias="countryCode")
    city: str | None = None
    region: str | None = None


class VisitorEvent(BaseModel):
    """A tracked visitor event (used by event-count conditions)."""

    name: str = Field(..., min_length=1)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz(cls, value: datetime) -> datetime:
        return normalize_dt(value)


class VisitorRecord(BaseModel):
    """Stored visitor profile for one workspace."""

    model_config = ConfigDict(populate_by_name=True)

    visitor_id: str = Field(..., alias="visitorId", description="Visitor identifier")
    workspace_id: str = Field(..., alias="workspaceId", description="Owning workspace")
    email: str | None = None
    name: str | None = None
    external_user_id: str | None = Field(default=None, alias="externalUserId")
    first_seen_at: datetime | None = Field(default=None, alias="firstSeenAt")
    last_seen_at: datetime | None = Field(default=None, alias="lastSeenAt")
    device: DeviceInfo | None = None
    referrer: str | None = None
    location: LocationInfo | None = None
    custom_attributes: dict[str, CustomValue] = Field(
        default_factory=dict, alias="customAttributes", description="Caller-defined primitive attributes"
    )
    events: list[VisitorEvent] = Field(default_factory=list, description="Tracked events")

    @field_validator("first_seen_at", "last_seen_at")
    @classmethod
    def _ensure_tz(cls, value: datetime | None) -> datetime | None:
        return normalize_dt(value)


@dataclass(frozen=True)
class VisitorAttributes:
    """Read-only view of a visitor, rebuilt for every evaluation pass."""

    visitor_id: str
    system: Mapping[str, object]
    custom_attributes: Mapping[str, object] = field(default_factory=dict)
    events: tuple[VisitorEvent, ...] = ()
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_record(cls, record: VisitorRecord, now: datetime | None = None) -> VisitorAttributes:
        device = record.device or DeviceInfo()
        location = record.location or LocationInfo()
        system = {
            "email": record.email,
            "name": record.name,
            "externalUserId": record.external_user_id,
            "firstSeenAt": epoch_ms(record.first_seen_at),
            "lastSeenAt": epoch_ms(record.last_seen_at),
            "device": device.device_type,
            "browser": device.browser,
            "os": device.os,
            "referrer": record.referrer,
            "country": location.country,
            "countryCode": location.country_code,
            "city": location.city,
            "region": location.region,
        }
        return cls(
            visitor_id=record.visitor_id,
            system=MappingProxyType(system),
            custom_attributes=MappingProxyType(dict(record.custom_attributes)),
            events=tuple(record.events),
            evaluated_at=normalize_dt(now) or datetime.now(timezone.utc),
        )
