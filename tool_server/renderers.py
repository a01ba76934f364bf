"""Markdown and card renderers for tool responses."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any

from airports.service import AirportSuggestion, describe_candidates
from flight_search.schemas import FlightSummary

CABIN_LABELS: dict[str, tuple[str, str]] = {
    "CABIN_CLASS_ECONOMY": ("Economy", "Y"),
    "CABIN_CLASS_PREMIUM_ECONOMY": ("Premium Economy", "W"),
    "CABIN_CLASS_BUSINESS": ("Business", "C"),
    "CABIN_CLASS_FIRST": ("First", "F"),
}

VERBATIM_PREAMBLE = (
    "IMPORTANT: Output the following flight results EXACTLY as shown below.",
    "Do not summarize, group, reorder, or reformat. Show every flight card in full.",
)

PLACEHOLDER_NOTE = (
    "_Live fares are unavailable right now. The options below are sample fares for "
    "illustration only; please continue your booking at {booking_url}._"
)

TABLE_HEADER = (
    "| Airline | Departure | Arrival | Duration | Stops | Price | Book |",
    "|---------|-----------|---------|----------|-------|-------|------|",
)


def readable_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def results_link(
    results_url: str,
    *,
    origin: str,
    destination: str,
    travel_date: date,
    adults: int,
    children: int,
    cabin_class: str,
    origin_entity_id: str | None = None,
    destination_entity_id: str | None = None,
) -> str:
    """Return the "view all results" URL for a route, date and party."""

    cabin_code = CABIN_LABELS.get(cabin_class, ("Economy", "Y"))[1]
    path = (
        f"{origin_entity_id or origin}-{travel_date:%Y%m%d}-{destination_entity_id or destination}"
    )
    query = (
        f"adults={adults}&children={children}&ages=&cabin_class={cabin_code}&trip_type=oneway"
    )
    return f"{results_url.rstrip('/')}/{path}?{query}"


def format_flights_markdown(
    flights: Sequence[FlightSummary],
    *,
    origin: str,
    destination: str,
    travel_date: date,
    cabin_class: str,
    booking_url: str,
    view_all_url: str,
    placeholder: bool = False,
) -> str:
    """Render sorted flights as the direct/cheapest markdown tables."""

    direct = [flight for flight in flights if flight.is_direct]
    stopped = sorted(
        (flight for flight in flights if not flight.is_direct),
        key=lambda flight: flight.price_raw,
    )
    cabin_label = CABIN_LABELS.get(cabin_class, ("Economy", "Y"))[0]

    lines: list[str] = [*VERBATIM_PREAMBLE, ""]
    lines.extend(
        [
            f"## Flights: {origin} → {destination} | {travel_date.isoformat()}",
            f"{len(flights)} flights found | {cabin_label} | Per adult",
            "",
        ]
    )
    if placeholder:
        lines.extend([PLACEHOLDER_NOTE.format(booking_url=booking_url), ""])

    if direct:
        lines.extend(["### Best Flights (Direct)", "", *TABLE_HEADER])
        lines.extend(_render_row(flight) for flight in direct)
        lines.append("")

    if stopped:
        title = (
            "Cheapest Flights (1 Stop)"
            if all(flight.stop_count == 1 for flight in stopped)
            else "Cheapest Flights (1+ Stops)"
        )
        lines.extend([f"### {title}", "", *TABLE_HEADER])
        lines.extend(_render_row(flight) for flight in stopped)
        lines.append("")

    lines.extend(
        [
            "---",
            "",
            f"[Book on FareFirst]({booking_url})",
            "",
            f"[View All Results]({view_all_url})",
            "",
        ]
    )
    return "\n".join(lines)


def format_no_flights(
    *,
    origin: str,
    destination: str,
    travel_date: date,
    view_all_url: str,
) -> str:
    return (
        f"No flights found for {origin} → {destination} on {travel_date.isoformat()}.\n\n"
        f"Please visit [Search on FareFirst]({view_all_url}) for more options."
    )


def format_flight_cards(flights: Sequence[FlightSummary]) -> list[dict[str, Any]]:
    """Return one structured card per flight with labeled fields and a booking action."""

    cards: list[dict[str, Any]] = []
    for flight in flights:
        stops = flight.stops
        if flight.layover_text:
            stops = f"{stops} ({flight.layover_text})"
        cards.append(
            {
                "title": f"{flight.airline} · {flight.origin} → {flight.destination}",
                "tripType": flight.trip_type,
                "fields": [
                    {"label": "Departure", "value": flight.departure_time},
                    {"label": "Arrival", "value": flight.arrival_time},
                    {"label": "Duration", "value": flight.duration},
                    {"label": "Stops", "value": stops},
                    {"label": "Price", "value": flight.price},
                ],
                "action": {"label": "Book", "url": flight.booking_link},
            }
        )
    return cards


def format_ambiguity_prompt(
    origin: tuple[str, Sequence[AirportSuggestion]] | None,
    destination: tuple[str, Sequence[AirportSuggestion]] | None,
) -> str:
    """Ask the user to pick between candidate airports for one or both sides."""

    blocks: list[str] = []
    if origin:
        blocks.append(_ambiguity_block("origin", *origin))
    if destination:
        blocks.append(_ambiguity_block("destination", *destination))
    if len(blocks) > 1:
        suffix = 'Please reply with both IATA codes (e.g. "GOI" for Goa, "JFK" for New York).'
    else:
        suffix = "Please reply with the IATA code to continue."
    return "\n\n".join(blocks) + "\n\n" + suffix


def format_not_found(label: str, term: str) -> str:
    return (
        f'Could not find {label} airport for "{term}". '
        "Please try a different name or IATA code."
    )


def format_past_date(travel_date: date) -> str:
    return (
        f"Travel date ({readable_date(travel_date)}) is in the past. "
        "Please provide a future date."
    )


def format_resolved_airport(term: str, airport: AirportSuggestion) -> str:
    return f'"{term}" resolved to {airport.describe()} [entity {airport.entity_id}]'


def _ambiguity_block(label: str, term: str, airports: Sequence[AirportSuggestion]) -> str:
    return f'There are multiple {label} airports for "{term}"\n{describe_candidates(airports)}'


def _render_row(flight: FlightSummary) -> str:
    stops = flight.stops
    if flight.layover_text:
        stops = f"{stops} ({flight.layover_text})"
    cells = [
        flight.airline,
        flight.departure_time,
        flight.arrival_time,
        flight.duration,
        stops,
        flight.price,
        f"[Book]({flight.booking_link})",
    ]
    return "| " + " | ".join(_escape_cell(cell) for cell in cells) + " |"


def _escape_cell(value: str) -> str:
    return value.replace("|", "\\|")


__all__ = [
    "CABIN_LABELS",
    "format_ambiguity_prompt",
    "format_flight_cards",
    "format_flights_markdown",
    "format_no_flights",
    "format_not_found",
    "format_past_date",
    "format_resolved_airport",
    "readable_date",
    "results_link",
]
