"""JSON-RPC tool protocol handler with an AWS Lambda-style entry point."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from airports.service import AirportResolver, AutosuggestClient
from config.settings import Settings, get_settings
from flight_search.service import FlightSearchClient, FlightSearchService
from tool_server.orchestrator import FlightSearchOrchestrator, ToolReply
from tool_server.protocol import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    RESOLVE_AIRPORT,
    SEARCH_FLIGHTS,
    TOOL_DEFINITIONS,
    ProtocolError,
    ResolveAirportArguments,
    RpcRequest,
    SearchFlightsArguments,
    rpc_error,
    rpc_result,
    text_content,
)
from tool_server.state import SearchCache, SessionStore

logger = logging.getLogger(__name__)

MISSING_SEARCH_FIELDS = "Please provide origin, destination, and travel date."
MISSING_SEARCH_TERM = "Please provide an airport or city name to resolve."

_orchestrator: FlightSearchOrchestrator | None = None


def build_orchestrator(settings: Settings) -> FlightSearchOrchestrator:
    """Wire HTTP clients, stores and the orchestrator from settings."""

    autosuggest = AutosuggestClient(
        str(settings.autosuggest_url),
        settings.flights_api_key,
        locale=settings.locale,
        limit=settings.autosuggest_limit,
        timeout=settings.http_timeout_seconds,
    )
    search_client = FlightSearchClient(
        str(settings.flights_api_base_url),
        settings.flights_api_key,
        live=settings.flights_api_live,
        timeout=settings.http_timeout_seconds,
    )
    booking_url = str(settings.booking_url).rstrip("/")
    return FlightSearchOrchestrator(
        AirportResolver(autosuggest),
        FlightSearchService(
            search_client,
            booking_url=booking_url,
            max_itineraries=settings.max_itineraries,
        ),
        cache=SearchCache(
            max_size=settings.search_cache_size,
            ttl_seconds=settings.search_cache_ttl_seconds,
        ),
        sessions=SessionStore(
            max_size=settings.session_store_size,
            ttl_seconds=settings.session_ttl_seconds,
        ),
        booking_url=booking_url,
        results_url=str(settings.results_url),
        default_market=settings.default_market,
        locale=settings.locale,
    )


def _get_orchestrator() -> FlightSearchOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator(get_settings())
    return _orchestrator


async def handle_request(
    body: Mapping[str, Any],
    orchestrator: FlightSearchOrchestrator | None = None,
) -> dict[str, Any] | None:
    """Dispatch one JSON-RPC message; notifications return None."""

    request_id = body.get("id") if isinstance(body, Mapping) else None
    try:
        request = RpcRequest.model_validate(body)
    except ValidationError as exc:
        logger.error("Invalid JSON-RPC envelope: %s", exc)
        return rpc_error(request_id, INVALID_REQUEST, "Invalid Request")

    try:
        return await _dispatch(request, orchestrator)
    except ProtocolError as exc:
        return rpc_error(request.id, exc.code, exc.message)
    except Exception as exc:
        logger.exception("Unhandled error while serving %s", request.method)
        return rpc_error(request.id, INTERNAL_ERROR, str(exc) or "Internal server error")


async def _dispatch(
    request: RpcRequest,
    orchestrator: FlightSearchOrchestrator | None,
) -> dict[str, Any] | None:
    if request.method == "initialize":
        settings = get_settings()
        return rpc_result(
            request.id,
            {
                "protocolVersion": settings.protocol_version,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": settings.server_name, "version": settings.server_version},
            },
        )
    if request.method.startswith("notifications/"):
        return None
    if request.method == "ping":
        return rpc_result(request.id, {})
    if request.method == "tools/list":
        return rpc_result(request.id, {"tools": TOOL_DEFINITIONS})
    if request.method == "tools/call":
        name = request.params.get("name")
        arguments = request.params.get("arguments") or {}
        result = await call_tool(name, arguments, orchestrator or _get_orchestrator())
        return rpc_result(request.id, result)
    raise ProtocolError(METHOD_NOT_FOUND, "Method not found")


async def call_tool(
    name: str | None,
    arguments: Mapping[str, Any],
    orchestrator: FlightSearchOrchestrator,
) -> dict[str, Any]:
    """Run a named tool and package its reply as MCP content blocks."""

    if name == SEARCH_FLIGHTS:
        try:
            parsed = SearchFlightsArguments.model_validate(arguments)
        except ValidationError as exc:
            return _tool_result(ToolReply(status="invalid", text=_describe_search_error(exc)))
        return _tool_result(await orchestrator.search(parsed))

    if name == RESOLVE_AIRPORT:
        try:
            parsed_term = ResolveAirportArguments.model_validate(arguments)
        except ValidationError:
            return _tool_result(ToolReply(status="invalid", text=MISSING_SEARCH_TERM))
        return _tool_result(await orchestrator.resolve_airport(parsed_term))

    raise ProtocolError(METHOD_NOT_FOUND, f"Unknown tool: {name}")


def _tool_result(reply: ToolReply) -> dict[str, Any]:
    result: dict[str, Any] = {"content": [text_content(reply.text)]}
    if reply.cards is not None:
        result["structuredContent"] = {"cards": reply.cards}
    return result


def _describe_search_error(exc: ValidationError) -> str:
    required = {"from", "to", "date"}
    problems: list[str] = []
    for error in exc.errors():
        field = str(error["loc"][0]) if error.get("loc") else "arguments"
        if field in required and error["type"] in ("missing", "string_too_short"):
            return MISSING_SEARCH_FIELDS
        problems.append(f"{field}: {error['msg']}")
    return "Invalid search request. " + "; ".join(problems)


def lambda_handler(event: dict[str, Any], _context: Any | None = None) -> dict[str, Any] | None:
    """Entry point compatible with AWS Lambda."""

    return asyncio.run(handle_request(event))


__all__ = [
    "build_orchestrator",
    "call_tool",
    "handle_request",
    "lambda_handler",
]
