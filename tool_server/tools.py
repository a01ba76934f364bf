"""Strands tools exposing flight search and airport resolution to an agent."""

from __future__ import annotations

import asyncio
from typing import Any

from strands import tool

from tool_server import handler
from tool_server.protocol import RESOLVE_AIRPORT, SEARCH_FLIGHTS


def _run(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    result = asyncio.run(handler.call_tool(name, arguments, handler._get_orchestrator()))
    text = "\n\n".join(block["text"] for block in result["content"])
    payload: dict[str, Any] = {"status": "success", "text": text}
    if "structuredContent" in result:
        payload["cards"] = result["structuredContent"]["cards"]
    return payload


@tool
def search_flights(request: dict[str, Any]) -> dict[str, Any]:
    """
    Search one-way flights and return display-ready markdown.

    Args:
        request: JSON with from, to, date (YYYY-MM-DD) and optional adults, children, cabinClass,
            selectedFromIata/selectedToIata for disambiguation follow-ups, userCountry, sessionId
            and responseFormat ("markdown" or "cards").
    Returns:
        Dict with status=success and the rendered text (results, ambiguity prompt or a message).
    """

    return _run(SEARCH_FLIGHTS, request)


@tool
def resolve_airport(search_term: str) -> dict[str, Any]:
    """
    Resolve a city or airport name to a single airport or a list of candidates.

    Args:
        search_term: City name, airport name or IATA code.
    Returns:
        Dict with status=success and a textual description of the resolution.
    """

    return _run(RESOLVE_AIRPORT, {"searchTerm": search_term})


__all__ = ["resolve_airport", "search_flights"]
