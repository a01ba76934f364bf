"""Airport resolution on top of the upstream autosuggest endpoint."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Annotated, Any, Literal, Union

import httpx
from pydantic import BaseModel, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)

INCLUDED_ENTITY_TYPES: tuple[str, ...] = ("PLACE_TYPE_CITY", "PLACE_TYPE_AIRPORT")
SUGGESTION_LIMIT = 7


class AirportLookupError(RuntimeError):
    """Raised when the autosuggest endpoint cannot be reached or parsed."""


class AirportSuggestion(BaseModel):
    """One candidate place returned by autosuggest."""

    entity_id: str
    iata_code: str = ""
    name: str = ""
    city_name: str = ""
    country_name: str = ""
    place_type: Literal["city", "airport"] = "city"

    @classmethod
    def from_place(cls, place: dict[str, Any]) -> AirportSuggestion:
        name = _text(place.get("name"))
        return cls(
            entity_id=_text(place.get("entityId")),
            iata_code=_text(place.get("iataCode")).upper(),
            name=name,
            city_name=_text(place.get("cityName")) or name,
            country_name=_text(place.get("countryName")),
            place_type="airport" if "AIRPORT" in _text(place.get("type")).upper() else "city",
        )

    @property
    def is_airport(self) -> bool:
        return self.place_type == "airport"

    @property
    def identity(self) -> str:
        """Key used to tell candidates apart when autosuggest omits the entity id."""

        return self.entity_id or self.iata_code or self.name

    def describe(self) -> str:
        location = ", ".join(part for part in (self.city_name, self.country_name) if part)
        label = f"{self.name} ({self.iata_code})" if self.iata_code else self.name
        return f"{label} - {location}" if location else label


class ResolvedAirport(BaseModel):
    status: Literal["resolved"] = "resolved"
    airport: AirportSuggestion


class AmbiguousAirports(BaseModel):
    status: Literal["ambiguous"] = "ambiguous"
    airports: list[AirportSuggestion]
    message: str = ""

    @model_validator(mode="after")
    def check_candidates(self) -> AmbiguousAirports:
        identities = [airport.identity for airport in self.airports]
        if len(identities) < 2:
            raise ValueError("an ambiguous resolution needs at least two candidates")
        if len(set(identities)) != len(identities):
            raise ValueError("ambiguous candidates must be distinct")
        return self


class AirportNotFound(BaseModel):
    status: Literal["not_found"] = "not_found"


AirportResolution = Annotated[
    Union[ResolvedAirport, AmbiguousAirports, AirportNotFound],
    Field(discriminator="status"),
]


class AutosuggestClient:
    """Async HTTP client for the place autosuggest endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        locale: str = "en-US",
        limit: int = SUGGESTION_LIMIT,
        timeout: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._locale = locale
        self._limit = limit
        self._timeout = timeout
        self._transport = transport

    async def suggest(self, search_term: str, market: str) -> list[AirportSuggestion]:
        body = {
            "query": {
                "market": market,
                "locale": self._locale,
                "searchTerm": search_term,
                "includedEntityTypes": list(INCLUDED_ENTITY_TYPES),
            },
            "limit": self._limit,
            "isDestination": True,
        }
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "x-api-key": self._api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._url, params={"live": "true"}, headers=headers, json=body
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise AirportLookupError(
                f"Autosuggest failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AirportLookupError("Autosuggest failed") from exc
        except ValueError as exc:
            raise AirportLookupError("Autosuggest returned a non-JSON body") from exc

        places = payload.get("places") if isinstance(payload, dict) else None
        if not isinstance(places, list):
            return []
        try:
            suggestions = [
                AirportSuggestion.from_place(place) for place in places if isinstance(place, dict)
            ]
        except (ValidationError, TypeError, AttributeError) as exc:
            raise AirportLookupError("Autosuggest returned malformed places") from exc
        logger.debug(
            "Autosuggest market=%s term=%r -> %d result(s)", market, search_term, len(suggestions)
        )
        return suggestions[: self._limit]


def match_candidate(
    term: str,
    candidates: Sequence[AirportSuggestion],
    *,
    iata_only: bool = False,
) -> AirportSuggestion | None:
    """Pick the candidate a user meant, case-insensitively.

    Rules are tried in order across all candidates: exact IATA code, exact
    name, then name containing the term. ``iata_only`` stops after the first rule.
    """

    query = (term or "").strip().upper()
    if not query:
        return None
    for candidate in candidates:
        if candidate.iata_code.upper() == query:
            return candidate
    if iata_only:
        return None
    for candidate in candidates:
        if candidate.name.upper() == query:
            return candidate
    for candidate in candidates:
        if query in candidate.name.upper():
            return candidate
    return None


def dedupe_airports(suggestions: Sequence[AirportSuggestion]) -> list[AirportSuggestion]:
    seen: set[str] = set()
    airports: list[AirportSuggestion] = []
    for suggestion in suggestions:
        if not suggestion.is_airport or suggestion.identity in seen:
            continue
        seen.add(suggestion.identity)
        airports.append(suggestion)
    return airports


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def describe_candidates(airports: Sequence[AirportSuggestion]) -> str:
    return "\n".join(f"• {airport.describe()}" for airport in airports)


class AirportResolver:
    """Maps free-text airport input to a resolved, ambiguous or missing place."""

    def __init__(self, client: AutosuggestClient) -> None:
        self._client = client

    async def resolve(
        self,
        search_term: str,
        market: str,
    ) -> AirportResolution:
        try:
            suggestions = await self._client.suggest(search_term, market)
        except AirportLookupError as exc:
            logger.warning("Autosuggest lookup for %r failed: %s", search_term, exc)
            return AirportNotFound()
        return choose_airport(search_term, suggestions)


def choose_airport(
    search_term: str,
    suggestions: Sequence[AirportSuggestion],
) -> AirportResolution:
    """Apply the disambiguation rules to a list of autosuggest results."""

    if not suggestions:
        return AirportNotFound()
    if len(suggestions) == 1:
        return ResolvedAirport(airport=suggestions[0])

    airports = dedupe_airports(suggestions)
    exact = match_candidate(search_term, airports, iata_only=True)
    if exact is not None:
        return ResolvedAirport(airport=exact)
    if len(airports) == 1:
        return ResolvedAirport(airport=airports[0])
    if len(airports) > 1:
        message = f'There are multiple airports for "{search_term}"\n{describe_candidates(airports)}'
        return AmbiguousAirports(airports=airports, message=message)
    return ResolvedAirport(airport=suggestions[0])


__all__ = [
    "AirportLookupError",
    "AirportNotFound",
    "AirportResolution",
    "AirportResolver",
    "AirportSuggestion",
    "AmbiguousAirports",
    "AutosuggestClient",
    "ResolvedAirport",
    "choose_airport",
    "dedupe_airports",
    "describe_candidates",
    "match_candidate",
]
