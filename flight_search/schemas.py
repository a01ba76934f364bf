"""Typed views over the upstream search graph and the normalised flight summary."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

PRICE_UNIT_MILLI = "PRICE_UNIT_MILLI"

TripType = Literal["Nonstop", "One Stop", "Multi Stop"]


class UpstreamModel(BaseModel):
    """Base for upstream payload fragments: camelCase keys, unknown keys ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class UpstreamDateTime(UpstreamModel):
    year: int | None = None
    month: int | None = None
    day: int | None = None
    hour: int | None = None
    minute: int | None = None

    @field_validator("year", "month", "day", "hour", "minute", mode="before")
    @classmethod
    def drop_non_numeric(cls, value: Any) -> int | None:
        """Non-numeric components become None instead of failing the whole graph."""

        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return None

    def to_datetime(self) -> datetime | None:
        """Return a naive datetime, or None when a component is missing or invalid."""

        parts = (self.year, self.month, self.day, self.hour, self.minute)
        if any(part is None for part in parts):
            return None
        try:
            return datetime(*parts)
        except ValueError:
            return None


class UpstreamPlace(UpstreamModel):
    iata: str | None = None
    name: str | None = None
    type: str | None = None


class UpstreamCarrier(UpstreamModel):
    name: str | None = None
    display_code: str | None = None
    iata: str | None = None


class UpstreamSegment(UpstreamModel):
    origin_place_id: str | None = None
    destination_place_id: str | None = None
    departure_date_time: UpstreamDateTime | None = None
    arrival_date_time: UpstreamDateTime | None = None


class UpstreamLeg(UpstreamModel):
    origin_place_id: str | None = None
    destination_place_id: str | None = None
    departure_date_time: UpstreamDateTime | None = None
    arrival_date_time: UpstreamDateTime | None = None
    duration_in_minutes: int | None = None
    stop_count: int | None = None
    marketing_carrier_ids: list[str] = Field(default_factory=list)
    segment_ids: list[str] = Field(default_factory=list)


class UpstreamPrice(UpstreamModel):
    amount: str | int | None = None
    unit: str | None = None


class UpstreamPricingItem(UpstreamModel):
    deep_link: str | None = None


class UpstreamPricingOption(UpstreamModel):
    price: UpstreamPrice | None = None
    items: list[UpstreamPricingItem] = Field(default_factory=list)


class UpstreamItinerary(UpstreamModel):
    leg_ids: list[str] = Field(default_factory=list)
    pricing_options: list[UpstreamPricingOption] = Field(default_factory=list)


class UpstreamResults(UpstreamModel):
    """The ``content.results`` mapping returned by search/create."""

    itineraries: dict[str, UpstreamItinerary] | None = None
    legs: dict[str, UpstreamLeg] | None = None
    carriers: dict[str, UpstreamCarrier] | None = None
    places: dict[str, UpstreamPlace] = Field(default_factory=dict)
    segments: dict[str, UpstreamSegment] = Field(default_factory=dict)


class SearchEnvelope(UpstreamModel):
    """Top-level search/create response; only the fields we validate are typed."""

    session_token: str | None = None
    refresh_session_token: str | None = None
    status: str | None = None
    content: dict[str, Any] | None = None

    @property
    def results(self) -> dict[str, Any] | None:
        results = (self.content or {}).get("results")
        return results if isinstance(results, dict) else None


class FlightSummary(BaseModel):
    """One display-ready flight offer."""

    model_config = ConfigDict(frozen=True)

    trip_type: TripType
    airline: str
    duration: str
    origin: str
    destination: str
    price_raw: NonNegativeInt = 0
    price: str
    departure_time: str
    arrival_time: str
    stops: str
    stop_count: NonNegativeInt = 0
    layovers: tuple[str, ...] = ()
    deep_links: tuple[str, ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_stop_consistency(self) -> FlightSummary:
        if self.stop_count == 0 and (self.layovers or self.trip_type != "Nonstop"):
            raise ValueError("nonstop flights cannot carry layovers")
        if self.stop_count > 0 and self.trip_type == "Nonstop":
            raise ValueError("flights with stops cannot be nonstop")
        return self

    @property
    def is_direct(self) -> bool:
        return self.stop_count == 0

    @property
    def layover_text(self) -> str | None:
        return "; ".join(self.layovers) if self.layovers else None

    @property
    def booking_link(self) -> str:
        return self.deep_links[0]


class Extraction(BaseModel):
    """Outcome of turning an upstream result graph into flight summaries."""

    flights: list[FlightSummary] = Field(default_factory=list)
    itineraries_seen: int = 0
    skipped: int = 0
    reason: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.flights


def trip_type_for(stop_count: int) -> TripType:
    if stop_count == 0:
        return "Nonstop"
    if stop_count == 1:
        return "One Stop"
    return "Multi Stop"


def stops_label(stop_count: int) -> str:
    if stop_count == 0:
        return "Direct"
    return f"{stop_count} stop{'s' if stop_count > 1 else ''}"


__all__ = [
    "Extraction",
    "FlightSummary",
    "PRICE_UNIT_MILLI",
    "SearchEnvelope",
    "TripType",
    "UpstreamCarrier",
    "UpstreamDateTime",
    "UpstreamItinerary",
    "UpstreamLeg",
    "UpstreamPlace",
    "UpstreamPrice",
    "UpstreamPricingItem",
    "UpstreamPricingOption",
    "UpstreamResults",
    "UpstreamSegment",
    "stops_label",
    "trip_type_for",
]
