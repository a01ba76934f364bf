from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from airports.service import (
    AirportNotFound,
    AirportResolver,
    AirportSuggestion,
    AmbiguousAirports,
    AutosuggestClient,
    ResolvedAirport,
    choose_airport,
    match_candidate,
)


def _place(entity_id: str, iata: str, name: str, place_type: str = "PLACE_TYPE_AIRPORT") -> dict[str, Any]:
    return {
        "entityId": entity_id,
        "iataCode": iata,
        "name": name,
        "cityName": name.split()[0],
        "countryName": "India",
        "type": place_type,
    }


def _resolver(places: list[dict[str, Any]], seen: list[httpx.Request] | None = None) -> AirportResolver:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(200, json={"places": places})

    client = AutosuggestClient(
        "https://example.com/autosuggest/flights",
        "key",
        transport=httpx.MockTransport(handler),
    )
    return AirportResolver(client)


def test_exact_iata_match_wins_over_ambiguity() -> None:
    resolver = _resolver([_place("1", "DEL", "Delhi Indira Gandhi"), _place("2", "BOM", "Mumbai")])

    resolution = asyncio.run(resolver.resolve("del", "IN"))

    assert isinstance(resolution, ResolvedAirport)
    assert resolution.airport.iata_code == "DEL"


def test_multiple_airports_are_ambiguous_and_deduplicated() -> None:
    places = [
        _place("10", "LHR", "London Heathrow"),
        _place("11", "LGW", "London Gatwick"),
        _place("10", "LHR", "London Heathrow"),
        _place("99", "", "London", "PLACE_TYPE_CITY"),
    ]

    resolution = asyncio.run(_resolver(places).resolve("London", "GB"))

    assert isinstance(resolution, AmbiguousAirports)
    assert [airport.entity_id for airport in resolution.airports] == ["10", "11"]
    assert "London Heathrow (LHR)" in resolution.message


def test_single_airport_among_cities_resolves() -> None:
    places = [_place("5", "", "Goa", "PLACE_TYPE_CITY"), _place("6", "GOI", "Goa Dabolim")]

    resolution = asyncio.run(_resolver(places).resolve("Goa", "IN"))

    assert isinstance(resolution, ResolvedAirport)
    assert resolution.airport.entity_id == "6"


def test_city_only_results_resolve_to_first_suggestion() -> None:
    places = [_place("7", "NYC", "New York", "PLACE_TYPE_CITY"), _place("8", "", "Newark", "PLACE_TYPE_CITY")]

    resolution = asyncio.run(_resolver(places).resolve("New York", "US"))

    assert isinstance(resolution, ResolvedAirport)
    assert resolution.airport.entity_id == "7"
    assert resolution.airport.place_type == "city"


def test_no_suggestions_is_not_found() -> None:
    assert isinstance(asyncio.run(_resolver([]).resolve("Atlantis", "US")), AirportNotFound)


def test_http_failure_is_not_found() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    client = AutosuggestClient("https://example.com/a", "key", transport=httpx.MockTransport(handler))

    resolution = asyncio.run(AirportResolver(client).resolve("Goa", "IN"))

    assert isinstance(resolution, AirportNotFound)


def test_autosuggest_request_shape() -> None:
    seen: list[httpx.Request] = []
    asyncio.run(_resolver([_place("1", "GOI", "Goa")], seen).resolve("Goa", "IN"))

    body = json.loads(seen[0].content)
    assert body["query"]["searchTerm"] == "Goa"
    assert body["query"]["market"] == "IN"
    assert body["query"]["includedEntityTypes"] == ["PLACE_TYPE_CITY", "PLACE_TYPE_AIRPORT"]
    assert body["limit"] == 7
    assert seen[0].headers["x-api-key"] == "key"


def test_match_candidate_rule_order() -> None:
    candidates = [
        AirportSuggestion(entity_id="1", iata_code="JFK", name="New York John F. Kennedy", place_type="airport"),
        AirportSuggestion(entity_id="2", iata_code="EWR", name="Newark", place_type="airport"),
        AirportSuggestion(entity_id="3", iata_code="LGA", name="New York LaGuardia", place_type="airport"),
    ]

    assert match_candidate("lga", candidates).entity_id == "3"
    assert match_candidate("Newark", candidates).entity_id == "2"
    assert match_candidate("laguardia", candidates).entity_id == "3"
    assert match_candidate("Boston", candidates) is None
    assert match_candidate("Newark", candidates, iata_only=True) is None


def test_choose_airport_single_suggestion_resolves_directly() -> None:
    only = AirportSuggestion(entity_id="4", iata_code="", name="Goa", place_type="city")

    resolution = choose_airport("Goa", [only])

    assert isinstance(resolution, ResolvedAirport)
    assert resolution.airport is only


def test_non_string_place_fields_do_not_escape_the_resolver() -> None:
    places = [{"entityId": 1, "iataCode": 123, "name": None, "type": "PLACE_TYPE_AIRPORT"}]

    resolution = asyncio.run(_resolver(places).resolve("123", "US"))

    assert isinstance(resolution, ResolvedAirport)
    assert resolution.airport.entity_id == "1"
    assert resolution.airport.iata_code == "123"


def test_malformed_places_payload_is_not_found() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"places": "unavailable"})

    client = AutosuggestClient("https://example.com/a", "key", transport=httpx.MockTransport(handler))

    assert isinstance(asyncio.run(AirportResolver(client).resolve("Goa", "IN")), AirportNotFound)


def test_airports_without_entity_ids_stay_distinct() -> None:
    places = [_place("", "LHR", "London Heathrow"), _place("", "LGW", "London Gatwick")]

    resolution = asyncio.run(_resolver(places).resolve("London", "GB"))

    assert isinstance(resolution, AmbiguousAirports)
    assert [airport.iata_code for airport in resolution.airports] == ["LHR", "LGW"]
