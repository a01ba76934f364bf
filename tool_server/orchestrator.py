"""Flight search orchestration: airport disambiguation, caching and rendering."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel

from airports.service import (
    AirportResolver,
    AirportSuggestion,
    AmbiguousAirports,
    ResolvedAirport,
    match_candidate,
)
from flight_search.schemas import FlightSummary
from flight_search.service import FlightSearchRequest, FlightSearchService, sort_flights
from tool_server.protocol import ResolveAirportArguments, SearchFlightsArguments
from tool_server.renderers import (
    format_ambiguity_prompt,
    format_flight_cards,
    format_flights_markdown,
    format_no_flights,
    format_not_found,
    format_past_date,
    format_resolved_airport,
    results_link,
)
from tool_server.state import (
    CacheEntry,
    PendingSession,
    SearchCache,
    SessionStore,
    SideResolution,
    make_cache_key,
)

logger = logging.getLogger(__name__)

_IATA_CODE = re.compile(r"^[A-Za-z]{3}$")

ReplyStatus = Literal["results", "fallback", "empty", "ambiguous", "not_found", "invalid"]


class ToolReply(BaseModel):
    """Outcome of a tool call, always rendered as text for the conversation."""

    status: ReplyStatus
    text: str
    cards: list[dict[str, Any]] | None = None
    cached: bool = False


class _Side(BaseModel):
    label: str
    term: str
    resolution: SideResolution | None = None
    candidates: list[AirportSuggestion] | None = None
    needs_lookup: bool = False
    not_found: bool = False
    pending_term: str | None = None
    pending_candidates: list[AirportSuggestion] | None = None


class FlightSearchOrchestrator:
    """Sequences airport resolution, upstream search, sorting, rendering and caching."""

    def __init__(
        self,
        resolver: AirportResolver,
        flight_service: FlightSearchService,
        *,
        cache: SearchCache | None = None,
        sessions: SessionStore | None = None,
        booking_url: str = "https://farefirst.com",
        results_url: str = "https://staging.net.in/flight-results/",
        default_market: str = "US",
        locale: str = "en-US",
        today: Callable[[], date] = date.today,
    ) -> None:
        self._resolver = resolver
        self._flight_service = flight_service
        self._cache = cache or SearchCache()
        self._sessions = sessions or SessionStore()
        self._booking_url = booking_url.rstrip("/")
        self._results_url = results_url
        self._default_market = default_market.upper()
        self._locale = locale
        self._today = today

    async def search(self, args: SearchFlightsArguments) -> ToolReply:
        if args.travel_date < self._today():
            return ToolReply(status="invalid", text=format_past_date(args.travel_date))

        market = (args.user_country or self._default_market).upper()
        session = self._sessions.get(args.session_id)
        if session is not None and session.travel_date != args.travel_date:
            logger.info("Discarding pending session %s after date change", args.session_id)
            self._sessions.clear(args.session_id)
            session = None

        origin = _plan_side(
            "origin",
            args.selected_from_iata or args.origin,
            entity_id=args.from_entity_id,
            candidates=session.origin_candidates if session else None,
            previous=session.origin if session else None,
            previous_term=session.origin_term if session else None,
        )
        destination = _plan_side(
            "destination",
            args.selected_to_iata or args.destination,
            entity_id=args.to_entity_id,
            candidates=session.destination_candidates if session else None,
            previous=session.destination if session else None,
            previous_term=session.destination_term if session else None,
        )
        await self._lookup_sides([origin, destination], market)

        for side in (origin, destination):
            if side.not_found:
                return ToolReply(status="not_found", text=format_not_found(side.label, side.term))

        if origin.candidates or destination.candidates:
            self._sessions.save(
                args.session_id,
                PendingSession(
                    origin_term=origin.term,
                    destination_term=destination.term,
                    travel_date=args.travel_date,
                    adults=args.adults,
                    children=args.children,
                    cabin_class=args.cabin_class,
                    market=market,
                    origin_candidates=origin.candidates,
                    destination_candidates=destination.candidates,
                    origin=origin.resolution,
                    destination=destination.resolution,
                ),
            )
            prompt = format_ambiguity_prompt(
                (origin.term, origin.candidates) if origin.candidates else None,
                (destination.term, destination.candidates) if destination.candidates else None,
            )
            return ToolReply(status="ambiguous", text=prompt)

        self._sessions.clear(args.session_id)
        return await self._run_search(args, origin.resolution, destination.resolution, market)

    async def resolve_airport(self, args: ResolveAirportArguments) -> ToolReply:
        market = (args.user_country or self._default_market).upper()
        resolution = await self._resolver.resolve(args.search_term, market)
        if isinstance(resolution, ResolvedAirport):
            return ToolReply(
                status="results",
                text=format_resolved_airport(args.search_term, resolution.airport),
            )
        if isinstance(resolution, AmbiguousAirports):
            return ToolReply(
                status="ambiguous",
                text=f"{resolution.message}\n\nPlease reply with the IATA code to continue.",
            )
        return ToolReply(status="not_found", text=format_not_found("an", args.search_term))

    async def _lookup_sides(self, sides: list[_Side], market: str) -> None:
        pending = [side for side in sides if side.needs_lookup]
        if not pending:
            return
        resolutions = await asyncio.gather(
            *(self._resolver.resolve(side.term, market) for side in pending)
        )
        for side, resolution in zip(pending, resolutions):
            side.needs_lookup = False
            if isinstance(resolution, ResolvedAirport):
                airport = resolution.airport
                side.resolution = SideResolution(
                    entity_id=airport.entity_id or None,
                    iata_code=airport.iata_code or side.term.upper(),
                )
                side.candidates = None
                logger.info(
                    "Resolved %s %r -> %s (%s)",
                    side.label,
                    side.term,
                    side.resolution.iata_code,
                    side.resolution.entity_id,
                )
            elif isinstance(resolution, AmbiguousAirports):
                side.candidates = resolution.airports
            elif side.pending_candidates:
                logger.info("No match for %s %r, repeating the pending choice", side.label, side.term)
                side.term = side.pending_term or side.term
                side.candidates = side.pending_candidates
            elif _IATA_CODE.match(side.term):
                logger.warning("Could not resolve %s %r, falling back to IATA", side.label, side.term)
                side.resolution = SideResolution(iata_code=side.term.upper())
            else:
                side.not_found = True

    async def _run_search(
        self,
        args: SearchFlightsArguments,
        origin: SideResolution,
        destination: SideResolution,
        market: str,
    ) -> ToolReply:
        travel_date = args.travel_date
        cache_key = make_cache_key(
            origin.iata_code,
            destination.iata_code,
            travel_date.isoformat(),
            args.adults,
            args.children,
            args.cabin_class,
            market,
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            return self._reply(args, cached.markdown, cached.flights, status="results", cached=True)

        request = FlightSearchRequest(
            origin=origin.iata_code,
            destination=destination.iata_code,
            travel_date=travel_date,
            adults=args.adults,
            children=args.children,
            cabin_class=args.cabin_class,
            market=market,
            locale=self._locale,
            origin_entity_id=origin.entity_id,
            destination_entity_id=destination.entity_id,
        )
        result = await self._flight_service.search(request)
        flights = sort_flights(result.flights)
        view_all_url = results_link(
            self._results_url,
            origin=origin.iata_code,
            destination=destination.iata_code,
            travel_date=travel_date,
            adults=args.adults,
            children=args.children,
            cabin_class=args.cabin_class,
            origin_entity_id=origin.entity_id,
            destination_entity_id=destination.entity_id,
        )
        if not flights:
            text = format_no_flights(
                origin=origin.iata_code,
                destination=destination.iata_code,
                travel_date=travel_date,
                view_all_url=view_all_url,
            )
            return ToolReply(status="empty", text=text)

        markdown = format_flights_markdown(
            flights,
            origin=origin.iata_code,
            destination=destination.iata_code,
            travel_date=travel_date,
            cabin_class=args.cabin_class,
            booking_url=self._booking_url,
            view_all_url=view_all_url,
            placeholder=result.is_fallback,
        )
        if result.is_fallback:
            return self._reply(args, markdown, flights, status="fallback")

        self._cache.store(
            CacheEntry(
                key=cache_key,
                markdown=markdown,
                flights=flights,
                origin_entity_id=origin.entity_id,
                destination_entity_id=destination.entity_id,
            )
        )
        logger.info("Cached %d flights under %s", len(flights), cache_key)
        return self._reply(args, markdown, flights, status="results")

    def _reply(
        self,
        args: SearchFlightsArguments,
        markdown: str,
        flights: list[FlightSummary],
        *,
        status: ReplyStatus,
        cached: bool = False,
    ) -> ToolReply:
        if args.response_format == "cards":
            heading = (
                f"{len(flights)} flights found for {args.origin} → {args.destination} "
                f"on {args.travel_date.isoformat()}."
            )
            return ToolReply(
                status=status, text=heading, cards=format_flight_cards(flights), cached=cached
            )
        return ToolReply(status=status, text=markdown, cached=cached)


def _plan_side(
    label: str,
    term: str,
    *,
    entity_id: str | None,
    candidates: list[AirportSuggestion] | None,
    previous: SideResolution | None,
    previous_term: str | None,
) -> _Side:
    side = _Side(label=label, term=term.strip())
    if entity_id:
        side.resolution = SideResolution(entity_id=entity_id, iata_code=side.term.upper())
        return side
    if candidates:
        if previous_term is not None and _same_term(side.term, previous_term):
            side.term = previous_term
            side.candidates = candidates
            return side
        match = match_candidate(side.term, candidates)
        if match is not None:
            side.resolution = SideResolution(
                entity_id=match.entity_id or None,
                iata_code=match.iata_code or side.term.upper(),
            )
            return side
        side.needs_lookup = True
        side.pending_term = previous_term
        side.pending_candidates = candidates
        return side
    if previous is not None and (
        _same_term(side.term, previous_term) or _same_term(side.term, previous.iata_code)
    ):
        side.resolution = previous
        return side
    side.needs_lookup = True
    return side


def _same_term(left: str, right: str | None) -> bool:
    return right is not None and left.strip().upper() == right.strip().upper()


__all__ = ["FlightSearchOrchestrator", "ToolReply"]
