from __future__ import annotations

import asyncio
from datetime import date
from typing import Any

from airports.service import (
    AirportNotFound,
    AirportSuggestion,
    AmbiguousAirports,
    ResolvedAirport,
)
from flight_search.schemas import FlightSummary
from flight_search.service import FlightSearchRequest, FlightSearchResult, fallback_flights
from tool_server.orchestrator import FlightSearchOrchestrator, ToolReply
from tool_server.protocol import ResolveAirportArguments, SearchFlightsArguments

TODAY = date(2026, 10, 19)


def _airport(entity_id: str, iata: str, name: str) -> AirportSuggestion:
    return AirportSuggestion(
        entity_id=entity_id,
        iata_code=iata,
        name=name,
        city_name=name.split()[0],
        country_name="United Kingdom" if name.startswith("London") else "India",
        place_type="airport",
    )


LHR = _airport("10", "LHR", "London Heathrow")
LGW = _airport("11", "LGW", "London Gatwick")
DEL = _airport("20", "DEL", "Delhi Indira Gandhi")
BOM = _airport("30", "BOM", "Mumbai Chhatrapati Shivaji")


class FakeResolver:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.resolutions: dict[str, Any] = {
            "DEL": ResolvedAirport(airport=DEL),
            "DELHI": ResolvedAirport(airport=DEL),
            "BOM": ResolvedAirport(airport=BOM),
            "MUMBAI": ResolvedAirport(airport=BOM),
            "LONDON": AmbiguousAirports(airports=[LHR, LGW], message="London airports"),
        }

    async def resolve(self, search_term: str, market: str):
        self.calls.append((search_term, market))
        return self.resolutions.get(search_term.strip().upper(), AirportNotFound())


def _flight(stop_count: int, price_raw: int, airline: str) -> FlightSummary:
    return FlightSummary(
        trip_type="Nonstop" if stop_count == 0 else "One Stop",
        airline=airline,
        duration="2h 10m",
        origin="DEL",
        destination="BOM",
        price_raw=price_raw,
        price=f"₹{price_raw // 1000:,}",
        departure_time="06:00",
        arrival_time="08:10",
        stops="Direct" if stop_count == 0 else "1 stop",
        stop_count=stop_count,
        layovers=("1h 5m layover in HYD",) if stop_count else (),
        deep_links=(f"https://book.example.com/{airline}",),
    )


class FakeFlightService:
    def __init__(self, flights: list[FlightSummary] | None = None, *, fallback: bool = False) -> None:
        self.requests: list[FlightSearchRequest] = []
        self._flights = flights if flights is not None else [
            _flight(1, 5_000_000, "Vistara"),
            _flight(0, 6_000_000, "IndiGo"),
        ]
        self._fallback = fallback

    async def search(self, request: FlightSearchRequest) -> FlightSearchResult:
        self.requests.append(request)
        if self._fallback:
            return FlightSearchResult(
                flights=fallback_flights(request.origin, request.destination, currency="INR"),
                is_fallback=True,
            )
        return FlightSearchResult(
            flights=self._flights,
            origin_entity_id=request.origin_entity_id,
            destination_entity_id=request.destination_entity_id,
        )


def _orchestrator(
    resolver: FakeResolver | None = None,
    service: FakeFlightService | None = None,
) -> FlightSearchOrchestrator:
    return FlightSearchOrchestrator(
        resolver or FakeResolver(),
        service or FakeFlightService(),
        today=lambda: TODAY,
    )


def _search(orchestrator: FlightSearchOrchestrator, **arguments: Any) -> ToolReply:
    payload = {"from": "DEL", "to": "BOM", "date": "2026-11-20", **arguments}
    return asyncio.run(orchestrator.search(SearchFlightsArguments.model_validate(payload)))


def test_past_date_is_rejected_before_any_upstream_call() -> None:
    resolver, service = FakeResolver(), FakeFlightService()

    reply = _search(_orchestrator(resolver, service), date="2026-10-18")

    assert reply.status == "invalid"
    assert "October 18, 2026" in reply.text
    assert "in the past" in reply.text
    assert resolver.calls == []
    assert service.requests == []


def test_today_is_not_in_the_past() -> None:
    reply = _search(_orchestrator(), date="2026-10-19")

    assert reply.status == "results"


def test_identical_searches_hit_the_cache() -> None:
    service = FakeFlightService()
    orchestrator = _orchestrator(service=service)

    first = _search(orchestrator, **{"from": "del", "to": "bom"})
    second = _search(orchestrator, **{"from": "DEL", "to": "BOM"})

    assert first.text == second.text
    assert not first.cached
    assert second.cached
    assert len(service.requests) == 1


def test_results_are_rendered_direct_first() -> None:
    service = FakeFlightService()

    reply = _search(_orchestrator(service=service))

    assert reply.text.index("IndiGo") < reply.text.index("Vistara")
    assert "### Best Flights (Direct)" in reply.text
    assert "### Cheapest Flights (1 Stop)" in reply.text
    request = service.requests[0]
    assert request.origin_entity_id == "20"
    assert request.destination_entity_id == "30"
    assert request.market == "US"


def test_ambiguous_origin_then_selection_runs_search() -> None:
    resolver, service = FakeResolver(), FakeFlightService()
    orchestrator = _orchestrator(resolver, service)

    prompt = _search(orchestrator, **{"from": "London", "sessionId": "chat-1"})

    assert prompt.status == "ambiguous"
    assert 'There are multiple origin airports for "London"' in prompt.text
    assert "London Gatwick (LGW)" in prompt.text
    assert service.requests == []

    reply = _search(
        orchestrator,
        **{"from": "London", "selectedFromIata": "LGW", "sessionId": "chat-1"},
    )

    assert reply.status == "results"
    assert service.requests[0].origin_entity_id == "11"
    assert service.requests[0].origin == "LGW"
    assert len(resolver.calls) == 2


def test_unmatched_follow_up_re_emits_prompt_without_new_lookup() -> None:
    resolver = FakeResolver()
    orchestrator = _orchestrator(resolver)

    first = _search(orchestrator, **{"to": "London"})
    second = _search(orchestrator, **{"to": "London"})

    assert second.status == "ambiguous"
    assert second.text == first.text
    assert [term for term, _ in resolver.calls] == ["DEL", "London"]


def test_unknown_follow_up_repeats_original_candidates() -> None:
    resolver = FakeResolver()
    orchestrator = _orchestrator(resolver)

    first = _search(orchestrator, **{"to": "London"})
    second = _search(orchestrator, **{"to": "Paris"})

    assert second.status == "ambiguous"
    assert second.text == first.text
    assert [term for term, _ in resolver.calls] == ["DEL", "London", "Paris"]


def test_route_change_leaves_pending_choice() -> None:
    service = FakeFlightService()
    orchestrator = _orchestrator(service=service)

    _search(orchestrator, **{"to": "London"})
    reply = _search(orchestrator, **{"from": "BOM", "to": "DEL"})

    assert reply.status == "results"
    assert service.requests[0].origin_entity_id == "30"
    assert service.requests[0].destination_entity_id == "20"

    again = _search(orchestrator, **{"from": "BOM", "to": "DEL"})

    assert again.cached


def test_follow_up_with_new_ambiguous_city_shows_new_candidates() -> None:
    resolver = FakeResolver()
    resolver.resolutions["NEW YORK"] = AmbiguousAirports(
        airports=[_airport("40", "JFK", "New York JFK"), _airport("41", "EWR", "Newark")],
        message="New York airports",
    )
    orchestrator = _orchestrator(resolver)

    _search(orchestrator, **{"to": "London"})
    reply = _search(orchestrator, **{"to": "New York"})

    assert reply.status == "ambiguous"
    assert 'There are multiple destination airports for "New York"' in reply.text
    assert "London" not in reply.text


def test_follow_up_matches_candidate_by_name() -> None:
    service = FakeFlightService()
    orchestrator = _orchestrator(service=service)

    _search(orchestrator, **{"to": "London"})
    reply = _search(orchestrator, **{"to": "heathrow"})

    assert reply.status == "results"
    assert service.requests[0].destination_entity_id == "10"


def test_date_change_discards_pending_session() -> None:
    resolver = FakeResolver()
    orchestrator = _orchestrator(resolver)

    _search(orchestrator, **{"from": "London"})
    reply = _search(orchestrator, **{"from": "LHR", "date": "2026-11-21"})

    assert reply.status == "results"
    assert ("LHR", "US") in resolver.calls


def test_sessions_are_isolated_by_session_id() -> None:
    service = FakeFlightService()
    orchestrator = _orchestrator(service=service)

    _search(orchestrator, **{"from": "London", "sessionId": "alice"})
    other = _search(orchestrator, **{"from": "London", "sessionId": "bob"})
    reply = _search(orchestrator, **{"from": "LHR", "sessionId": "alice"})

    assert other.status == "ambiguous"
    assert reply.status == "results"
    assert service.requests[0].origin_entity_id == "10"


def test_unknown_airport_reports_not_found() -> None:
    reply = _search(_orchestrator(), **{"to": "Atlantis"})

    assert reply.status == "not_found"
    assert reply.text == (
        'Could not find destination airport for "Atlantis". '
        "Please try a different name or IATA code."
    )


def test_unresolved_iata_code_falls_back_to_code_search() -> None:
    service = FakeFlightService()

    reply = _search(_orchestrator(service=service), **{"to": "XYZ"})

    assert reply.status == "results"
    assert service.requests[0].destination == "XYZ"
    assert service.requests[0].destination_entity_id is None


def test_entity_ids_skip_resolution() -> None:
    resolver, service = FakeResolver(), FakeFlightService()

    _search(_orchestrator(resolver, service), fromEntityId="95673476")

    assert [term for term, _ in resolver.calls] == ["BOM"]
    assert service.requests[0].origin_entity_id == "95673476"


def test_fallback_results_are_labelled_and_not_cached() -> None:
    service = FakeFlightService(fallback=True)
    orchestrator = _orchestrator(service=service)

    first = _search(orchestrator)
    _search(orchestrator)

    assert first.status == "fallback"
    assert "sample fares" in first.text
    assert "IndiGo" in first.text
    assert len(service.requests) == 2


def test_empty_results_render_search_link() -> None:
    reply = _search(_orchestrator(service=FakeFlightService(flights=[])))

    assert reply.status == "empty"
    assert reply.text.startswith("No flights found for DEL → BOM on 2026-11-20.")
    assert "20-20261120-30?adults=1&children=0" in reply.text


def test_cards_format_returns_structured_cards() -> None:
    reply = _search(_orchestrator(), responseFormat="cards")

    assert reply.cards is not None
    assert [card["action"]["label"] for card in reply.cards] == ["Book", "Book"]
    assert reply.cards[0]["title"].startswith("IndiGo")


def test_market_override_changes_search_market() -> None:
    service = FakeFlightService()

    _search(_orchestrator(service=service), userCountry="in")

    assert service.requests[0].market == "IN"
    assert service.requests[0].currency == "INR"


def test_resolve_airport_describes_outcomes() -> None:
    orchestrator = _orchestrator()

    resolved = asyncio.run(orchestrator.resolve_airport(ResolveAirportArguments(searchTerm="Delhi")))
    ambiguous = asyncio.run(orchestrator.resolve_airport(ResolveAirportArguments(searchTerm="London")))
    missing = asyncio.run(orchestrator.resolve_airport(ResolveAirportArguments(searchTerm="Atlantis")))

    assert "Delhi Indira Gandhi (DEL)" in resolved.text
    assert ambiguous.status == "ambiguous"
    assert missing.status == "not_found"
