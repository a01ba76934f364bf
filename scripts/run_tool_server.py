#!/usr/bin/env python3
"""Send a JSON-RPC message through the flight tool server locally."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date, timedelta
from typing import Any

from dotenv import load_dotenv

from config.settings import get_settings
from tool_server.handler import lambda_handler
from tool_server.protocol import CABIN_CLASSES


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Call search_flights (or another JSON-RPC method) through the local handler."
    )
    parser.add_argument("--from", dest="origin", default="Goa", help="Origin city or IATA code.")
    parser.add_argument("--to", dest="destination", default="New York", help="Destination city or IATA code.")
    parser.add_argument(
        "--date",
        default=(date.today() + timedelta(days=7)).isoformat(),
        help="Travel date (YYYY-MM-DD). Defaults to one week from today.",
    )
    parser.add_argument("--adults", type=int, default=1)
    parser.add_argument("--children", type=int, default=0)
    parser.add_argument("--cabin-class", choices=CABIN_CLASSES, default="CABIN_CLASS_ECONOMY")
    parser.add_argument("--select-from", help="IATA code picked for an ambiguous origin.")
    parser.add_argument("--select-to", help="IATA code picked for an ambiguous destination.")
    parser.add_argument("--session", default="local-cli", help="Session id for follow-up calls.")
    parser.add_argument("--cards", action="store_true", help="Request structured cards.")
    parser.add_argument(
        "--method",
        default="tools/call",
        help="JSON-RPC method; anything other than tools/call is sent without params.",
    )
    return parser.parse_args()


def build_request(args: argparse.Namespace) -> dict[str, Any]:
    if args.method != "tools/call":
        return {"jsonrpc": "2.0", "id": 1, "method": args.method}

    arguments: dict[str, Any] = {
        "from": args.origin,
        "to": args.destination,
        "date": args.date,
        "adults": args.adults,
        "children": args.children,
        "cabinClass": args.cabin_class,
        "sessionId": args.session,
    }
    if args.select_from:
        arguments["selectedFromIata"] = args.select_from
    if args.select_to:
        arguments["selectedToIata"] = args.select_to
    if args.cards:
        arguments["responseFormat"] = "cards"
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "tools/call",
        "params": {"name": "search_flights", "arguments": arguments},
    }


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=get_settings().log_level)
    response = lambda_handler(build_request(parse_args()), None)
    if response is None:
        print("(notification acknowledged, no content)")
        return
    print(json.dumps(response, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
