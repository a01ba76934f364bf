"""Flatten the upstream itinerary/leg/segment graph into flight summaries."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from flight_search.schemas import (
    PRICE_UNIT_MILLI,
    Extraction,
    FlightSummary,
    UpstreamCarrier,
    UpstreamItinerary,
    UpstreamLeg,
    UpstreamPricingOption,
    UpstreamResults,
    stops_label,
    trip_type_for,
)
from shared.flight_utils import (
    DEFAULT_CURRENCY,
    InvalidInput,
    format_clock_time,
    format_duration,
    format_price,
)

logger = logging.getLogger(__name__)

MAX_ITINERARIES = 10
UNKNOWN_AIRLINE = "Unknown Airline"
UNKNOWN_PLACE = "Unknown"
PRICE_NOT_AVAILABLE = "Price N/A"


def extract(
    raw_results: Mapping[str, Any] | UpstreamResults | None,
    origin_fallback: str,
    destination_fallback: str,
    *,
    currency: str = DEFAULT_CURRENCY,
    default_link: str = "https://farefirst.com",
    limit: int = MAX_ITINERARIES,
) -> Extraction:
    """Return flight summaries for the first ``limit`` itineraries, in upstream order.

    Missing itinerary/leg/carrier mappings produce an empty result. Itineraries
    whose leg cannot be resolved are skipped. Any other failure while building
    a summary discards the whole batch, so callers never render partial data.
    """

    try:
        results = (
            raw_results
            if isinstance(raw_results, UpstreamResults)
            else UpstreamResults.model_validate(raw_results or {})
        )
    except ValidationError as exc:
        logger.warning("Malformed upstream result graph: %s", exc)
        return Extraction(reason="malformed results")

    if results.itineraries is None or results.legs is None or results.carriers is None:
        logger.warning("Upstream results missing itineraries, legs or carriers")
        return Extraction(reason="missing required mappings")

    itineraries = list(results.itineraries.values())[:limit]
    builder = _SummaryBuilder(
        results,
        origin_fallback=origin_fallback,
        destination_fallback=destination_fallback,
        currency=currency,
        default_link=default_link,
    )
    flights: list[FlightSummary] = []
    skipped = 0
    try:
        for itinerary in itineraries:
            summary = builder.build(itinerary)
            if summary is None:
                skipped += 1
                continue
            flights.append(summary)
    except (InvalidInput, ValidationError, ValueError, TypeError, KeyError, OverflowError) as exc:
        logger.warning("Discarding extraction after itinerary failure: %s", exc)
        return Extraction(itineraries_seen=len(itineraries), reason=str(exc))

    logger.info("Extracted %d flights from %d itineraries", len(flights), len(itineraries))
    return Extraction(
        flights=flights,
        itineraries_seen=len(itineraries),
        skipped=skipped,
        reason=None if flights else "no usable itineraries",
    )


class _SummaryBuilder:
    def __init__(
        self,
        results: UpstreamResults,
        *,
        origin_fallback: str,
        destination_fallback: str,
        currency: str,
        default_link: str,
    ) -> None:
        self._results = results
        self._origin_fallback = origin_fallback
        self._destination_fallback = destination_fallback
        self._currency = currency
        self._default_link = default_link

    def build(self, itinerary: UpstreamItinerary) -> FlightSummary | None:
        leg = self._first_leg(itinerary)
        if leg is None:
            return None

        option = itinerary.pricing_options[0] if itinerary.pricing_options else None
        price_raw = _raw_price(option)
        stop_count = max(leg.stop_count or 0, 0)
        departure = leg.departure_date_time
        arrival = leg.arrival_date_time

        return FlightSummary(
            trip_type=trip_type_for(stop_count),
            airline=self._airline_name(leg),
            duration=format_duration(leg.duration_in_minutes or 0),
            origin=self._place_code(leg.origin_place_id) or self._origin_fallback,
            destination=self._place_code(leg.destination_place_id) or self._destination_fallback,
            price_raw=price_raw,
            price=format_price(price_raw, self._currency) if price_raw else PRICE_NOT_AVAILABLE,
            departure_time=format_clock_time(
                departure.hour if departure else None,
                departure.minute if departure else None,
            ),
            arrival_time=format_clock_time(
                arrival.hour if arrival else None,
                arrival.minute if arrival else None,
            ),
            stops=stops_label(stop_count),
            stop_count=stop_count,
            layovers=tuple(self._layovers(leg)) if stop_count > 0 else (),
            deep_links=tuple(_deep_links(option)) or (self._default_link,),
        )

    def _first_leg(self, itinerary: UpstreamItinerary) -> UpstreamLeg | None:
        if not itinerary.leg_ids:
            logger.debug("Skipping itinerary without leg reference")
            return None
        leg = (self._results.legs or {}).get(itinerary.leg_ids[0])
        if leg is None:
            logger.debug("Skipping itinerary with unresolvable leg %s", itinerary.leg_ids[0])
        return leg

    def _airline_name(self, leg: UpstreamLeg) -> str:
        carrier: UpstreamCarrier | None = None
        if leg.marketing_carrier_ids:
            carrier = (self._results.carriers or {}).get(leg.marketing_carrier_ids[0])
        if carrier is None:
            return UNKNOWN_AIRLINE
        for candidate in (carrier.name, carrier.display_code, carrier.iata):
            if candidate and candidate.strip():
                return candidate.strip()
        return UNKNOWN_AIRLINE

    def _place_code(self, place_id: str | None) -> str | None:
        if not place_id:
            return None
        place = self._results.places.get(place_id)
        return place.iata if place and place.iata else None

    def _layovers(self, leg: UpstreamLeg) -> list[str]:
        if len(leg.segment_ids) < 2:
            return []
        layovers: list[str] = []
        for first_id, second_id in zip(leg.segment_ids, leg.segment_ids[1:]):
            first = self._results.segments.get(first_id)
            second = self._results.segments.get(second_id)
            if first is None or second is None:
                continue
            city = self._place_code(first.destination_place_id) or UNKNOWN_PLACE
            arrived = first.arrival_date_time.to_datetime() if first.arrival_date_time else None
            departs = second.departure_date_time.to_datetime() if second.departure_date_time else None
            gap_minutes = None
            if arrived is not None and departs is not None:
                gap_minutes = int((departs - arrived).total_seconds() // 60)
            if gap_minutes is None or gap_minutes <= 0:
                layovers.append(f"Layover in {city}")
            else:
                layovers.append(f"{format_duration(gap_minutes)} layover in {city}")
        return layovers


def _raw_price(option: UpstreamPricingOption | None) -> int:
    price = option.price if option else None
    if price is None or price.unit != PRICE_UNIT_MILLI or price.amount in (None, ""):
        return 0
    try:
        amount = int(price.amount)
    except (TypeError, ValueError):
        return 0
    return max(amount, 0)


def _deep_links(option: UpstreamPricingOption | None) -> list[str]:
    if option is None:
        return []
    return [item.deep_link for item in option.items if item.deep_link]


__all__ = ["MAX_ITINERARIES", "UNKNOWN_AIRLINE", "extract"]
