"""JSON-RPC envelope, tool descriptors and tool argument contracts."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, conint, field_validator

from flight_search.service import CabinClass
from tool_server.state import DEFAULT_SESSION_ID

JSONRPC_VERSION = "2.0"
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

SEARCH_FLIGHTS = "search_flights"
RESOLVE_AIRPORT = "resolve_airport"

CABIN_CLASSES: tuple[str, ...] = (
    "CABIN_CLASS_ECONOMY",
    "CABIN_CLASS_PREMIUM_ECONOMY",
    "CABIN_CLASS_BUSINESS",
    "CABIN_CLASS_FIRST",
)
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ProtocolError(RuntimeError):
    """Request-level failure reported as a JSON-RPC error object."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class RpcRequest(BaseModel):
    """Incoming JSON-RPC request or notification."""

    jsonrpc: str = JSONRPC_VERSION
    id: int | str | None = None
    method: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


class SearchFlightsArguments(BaseModel):
    """Arguments accepted by the ``search_flights`` tool."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    origin: str = Field(..., alias="from", min_length=1)
    destination: str = Field(..., alias="to", min_length=1)
    travel_date: date = Field(..., alias="date")
    adults: conint(ge=1, le=9) = 1
    children: conint(ge=0, le=8) = 0
    cabin_class: CabinClass = Field("CABIN_CLASS_ECONOMY", alias="cabinClass")
    from_entity_id: str | None = Field(None, alias="fromEntityId")
    to_entity_id: str | None = Field(None, alias="toEntityId")
    selected_from_iata: str | None = Field(None, alias="selectedFromIata")
    selected_to_iata: str | None = Field(None, alias="selectedToIata")
    user_country: str | None = Field(None, alias="userCountry", min_length=2, max_length=2)
    session_id: str = Field(DEFAULT_SESSION_ID, alias="sessionId", min_length=1)
    response_format: Literal["markdown", "cards"] = Field("markdown", alias="responseFormat")

    @field_validator("travel_date", mode="before")
    @classmethod
    def require_iso_date(cls, value: Any) -> Any:
        if isinstance(value, str) and not _ISO_DATE.match(value.strip()):
            raise ValueError("date must use the YYYY-MM-DD format")
        return value.strip() if isinstance(value, str) else value

    @field_validator("cabin_class", mode="before")
    @classmethod
    def normalise_cabin_class(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        normalised = value.strip().upper().replace(" ", "_").replace("-", "_")
        if not normalised.startswith("CABIN_CLASS_"):
            normalised = f"CABIN_CLASS_{normalised}"
        return normalised


class ResolveAirportArguments(BaseModel):
    """Arguments accepted by the ``resolve_airport`` tool."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    search_term: str = Field(..., alias="searchTerm", min_length=1)
    user_country: str | None = Field(None, alias="userCountry", min_length=2, max_length=2)


SEARCH_FLIGHTS_DESCRIPTION = " ".join(
    [
        "Search one-way flights between two airports on a given date.",
        "Pass city names or IATA codes for `from` and `to`; autosuggest runs server-side automatically.",
        "If either airport is ambiguous the tool returns a list; call it again with selectedFromIata "
        "and/or selectedToIata set to the IATA code the user chose, keeping the same sessionId.",
        "The server resolves all entityIds internally and only executes the flight search when both "
        "airports are fully resolved.",
        "If the flight search service is unavailable, sample fares are returned; direct the user to "
        "continue their booking at https://farefirst.com.",
    ]
)

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": SEARCH_FLIGHTS,
        "description": SEARCH_FLIGHTS_DESCRIPTION,
        "inputSchema": {
            "type": "object",
            "required": ["from", "to", "date"],
            "properties": {
                "from": {
                    "type": "string",
                    "description": "Origin city name or IATA code (e.g. 'Goa' or 'GOI')",
                },
                "to": {
                    "type": "string",
                    "description": "Destination city name or IATA code (e.g. 'New York' or 'JFK')",
                },
                "date": {"type": "string", "description": "Travel date in ISO format YYYY-MM-DD"},
                "adults": {"type": "number", "minimum": 1, "maximum": 9},
                "children": {"type": "number", "minimum": 0, "maximum": 8},
                "cabinClass": {"type": "string", "enum": list(CABIN_CLASSES)},
                "fromEntityId": {
                    "type": "string",
                    "description": "Pre-resolved origin entity id; skips autosuggest for the origin.",
                },
                "toEntityId": {
                    "type": "string",
                    "description": "Pre-resolved destination entity id; skips autosuggest for the destination.",
                },
                "selectedFromIata": {
                    "type": "string",
                    "description": "IATA code the user chose for origin from an ambiguous list (e.g. 'GOI'). "
                    "Set ONLY after the tool returned an ambiguous origin list.",
                },
                "selectedToIata": {
                    "type": "string",
                    "description": "IATA code the user chose for destination from an ambiguous list (e.g. 'JFK'). "
                    "Set ONLY after the tool returned an ambiguous destination list.",
                },
                "userCountry": {
                    "type": "string",
                    "description": "Two-letter market/country override used to pick the currency.",
                },
                "sessionId": {
                    "type": "string",
                    "description": "Conversation identifier; reuse it for disambiguation follow-ups.",
                },
                "responseFormat": {"type": "string", "enum": ["markdown", "cards"]},
            },
        },
    },
    {
        "name": RESOLVE_AIRPORT,
        "description": "Resolve a city or airport name to a single airport, or list the candidates "
        "when the name is ambiguous.",
        "inputSchema": {
            "type": "object",
            "required": ["searchTerm"],
            "properties": {
                "searchTerm": {"type": "string", "description": "City, airport name or IATA code"},
                "userCountry": {"type": "string", "description": "Two-letter market hint"},
            },
        },
    },
]


def rpc_result(request_id: int | str | None, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def rpc_error(request_id: int | str | None, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": {"code": code, "message": message}}


def text_content(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


__all__ = [
    "CABIN_CLASSES",
    "INTERNAL_ERROR",
    "INVALID_REQUEST",
    "JSONRPC_VERSION",
    "METHOD_NOT_FOUND",
    "ProtocolError",
    "RESOLVE_AIRPORT",
    "ResolveAirportArguments",
    "RpcRequest",
    "SEARCH_FLIGHTS",
    "SearchFlightsArguments",
    "TOOL_DEFINITIONS",
    "rpc_error",
    "rpc_result",
    "text_content",
]
