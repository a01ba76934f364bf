"""Flight search service wrapping the upstream search/create endpoint."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from typing import Any, Literal

import httpx
from pydantic import BaseModel, Field, ValidationError, conint

from flight_search.extractor import MAX_ITINERARIES, extract
from flight_search.schemas import FlightSummary, SearchEnvelope
from shared.flight_utils import currency_for_country, format_price

logger = logging.getLogger(__name__)

CabinClass = Literal[
    "CABIN_CLASS_ECONOMY",
    "CABIN_CLASS_PREMIUM_ECONOMY",
    "CABIN_CLASS_BUSINESS",
    "CABIN_CLASS_FIRST",
]


class FlightSearchError(RuntimeError):
    """Raised when the upstream search call fails or returns an unusable payload."""


class FlightSearchRequest(BaseModel):
    """Resolved search parameters submitted upstream."""

    origin: str = Field(..., min_length=1, description="Origin IATA code or the raw user input.")
    destination: str = Field(..., min_length=1)
    travel_date: date
    adults: conint(ge=1, le=9) = 1
    children: conint(ge=0, le=8) = 0
    cabin_class: CabinClass = "CABIN_CLASS_ECONOMY"
    market: str = "US"
    locale: str = "en-US"
    origin_entity_id: str | None = None
    destination_entity_id: str | None = None

    @property
    def currency(self) -> str:
        return currency_for_country(self.market)

    def to_payload(self) -> dict[str, Any]:
        return {
            "query": {
                "market": self.market,
                "locale": self.locale,
                "currency": self.currency,
                "queryLegs": [
                    {
                        "originPlaceId": _place_reference(self.origin_entity_id, self.origin),
                        "destinationPlaceId": _place_reference(
                            self.destination_entity_id, self.destination
                        ),
                        "date": {
                            "year": self.travel_date.year,
                            "month": self.travel_date.month,
                            "day": self.travel_date.day,
                        },
                    }
                ],
                "adults": self.adults,
                "children": self.children,
                "cabinClass": self.cabin_class,
            }
        }


class FlightSearchResult(BaseModel):
    """Flights returned for one search, flagged when they are placeholders."""

    flights: list[FlightSummary] = Field(default_factory=list)
    origin_entity_id: str | None = None
    destination_entity_id: str | None = None
    session_token: str | None = None
    is_fallback: bool = False


class FlightSearchClient:
    """Async HTTP client for the search/create endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        live: bool = True,
        timeout: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._live = live
        self._timeout = timeout
        self._transport = transport

    async def create_search(self, request: FlightSearchRequest) -> SearchEnvelope:
        url = f"{self._base_url}/live/search/create"
        headers = {"Content-Type": "application/json", "x-api-key": self._api_key}
        params = {"live": str(self._live).lower()}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    url, params=params, headers=headers, json=request.to_payload()
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as exc:
            raise FlightSearchError(
                f"Flight search failed with status {exc.response.status_code}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise FlightSearchError("Flight search timed out") from exc
        except httpx.HTTPError as exc:
            raise FlightSearchError("Flight search failed") from exc
        except ValueError as exc:
            raise FlightSearchError("Flight search returned a non-JSON body") from exc

        try:
            envelope = SearchEnvelope.model_validate(body)
        except ValidationError as exc:
            raise FlightSearchError("Invalid search response envelope") from exc
        if envelope.results is None:
            raise FlightSearchError("Invalid search response: missing content.results")
        if not envelope.session_token:
            raise FlightSearchError("Invalid search response: missing sessionToken")
        return envelope


class FlightSearchService:
    """Submits searches, extracts summaries and degrades to sample fares on failure."""

    def __init__(
        self,
        client: FlightSearchClient,
        *,
        booking_url: str = "https://farefirst.com",
        max_itineraries: int = MAX_ITINERARIES,
    ) -> None:
        self._client = client
        self._booking_url = booking_url
        self._max_itineraries = max_itineraries

    async def search(self, request: FlightSearchRequest) -> FlightSearchResult:
        logger.info(
            "Searching %s -> %s on %s (market %s, currency %s)",
            request.origin_entity_id or request.origin,
            request.destination_entity_id or request.destination,
            request.travel_date.isoformat(),
            request.market,
            request.currency,
        )
        try:
            envelope = await self._client.create_search(request)
        except FlightSearchError as exc:
            logger.warning("Flight search failed, serving fallback fares: %s", exc)
            return FlightSearchResult(
                flights=fallback_flights(
                    request.origin,
                    request.destination,
                    currency=request.currency,
                    booking_url=self._booking_url,
                ),
                is_fallback=True,
            )

        extraction = extract(
            envelope.results,
            request.origin,
            request.destination,
            currency=request.currency,
            default_link=self._booking_url,
            limit=self._max_itineraries,
        )
        if extraction.is_empty:
            logger.info("Search returned no usable flights: %s", extraction.reason)
        return FlightSearchResult(
            flights=extraction.flights,
            origin_entity_id=request.origin_entity_id,
            destination_entity_id=request.destination_entity_id,
            session_token=envelope.session_token,
        )


def sort_flights(flights: Iterable[FlightSummary]) -> list[FlightSummary]:
    """Direct flights first in their original order, then stopped flights by ascending price."""

    flights = list(flights)
    direct = [flight for flight in flights if flight.stop_count == 0]
    stopped = sorted(
        (flight for flight in flights if flight.stop_count > 0),
        key=lambda flight: flight.price_raw,
    )
    return direct + stopped


def fallback_flights(
    origin: str,
    destination: str,
    *,
    currency: str = "INR",
    booking_url: str = "https://farefirst.com",
) -> list[FlightSummary]:
    """Return the two illustrative fares shown when live search is unavailable."""

    return [
        FlightSummary(
            trip_type="Nonstop",
            airline="IndiGo",
            duration="2h 40m",
            origin=origin,
            destination=destination,
            price_raw=3_500_000,
            price=format_price(3_500_000, currency),
            departure_time="07:20",
            arrival_time="09:55",
            stops="Direct",
            stop_count=0,
            deep_links=(booking_url,),
        ),
        FlightSummary(
            trip_type="One Stop",
            airline="Air India",
            duration="10h 35m",
            origin=origin,
            destination=destination,
            price_raw=4_000_000,
            price=format_price(4_000_000, currency),
            departure_time="13:30",
            arrival_time="00:05",
            stops="1 stop",
            stop_count=1,
            layovers=("6h 25m layover in DEL",),
            deep_links=(booking_url,),
        ),
    ]


def _place_reference(entity_id: str | None, code: str) -> dict[str, str]:
    if entity_id:
        return {"entityId": entity_id}
    return {"iata": code.upper()}


__all__ = [
    "CabinClass",
    "FlightSearchClient",
    "FlightSearchError",
    "FlightSearchRequest",
    "FlightSearchResult",
    "FlightSearchService",
    "fallback_flights",
    "sort_flights",
]
