"""In-process search cache and per-conversation disambiguation sessions."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import date

from cachetools import TTLCache
from pydantic import BaseModel, Field

from airports.service import AirportSuggestion
from flight_search.schemas import FlightSummary

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


class CacheEntry(BaseModel):
    """Rendered output and flights for one completed search."""

    key: str
    markdown: str
    flights: list[FlightSummary] = Field(default_factory=list)
    origin_entity_id: str | None = None
    destination_entity_id: str | None = None


class SideResolution(BaseModel):
    """Airport chosen for one side of the route."""

    entity_id: str | None = None
    iata_code: str


class PendingSession(BaseModel):
    """Search parameters stashed while the user picks between candidate airports."""

    origin_term: str
    destination_term: str
    travel_date: date
    adults: int = 1
    children: int = 0
    cabin_class: str = "CABIN_CLASS_ECONOMY"
    market: str = "US"
    origin_candidates: list[AirportSuggestion] | None = None
    destination_candidates: list[AirportSuggestion] | None = None
    origin: SideResolution | None = None
    destination: SideResolution | None = None


def make_cache_key(
    origin: str,
    destination: str,
    travel_date: str,
    adults: int,
    children: int,
    cabin_class: str,
    market: str,
) -> str:
    parts = [origin, destination, travel_date, str(adults), str(children), cabin_class, market]
    return "|".join(part.strip() for part in parts).upper()


class SearchCache:
    """Bounded LRU of rendered searches with a time-to-live."""

    def __init__(
        self,
        *,
        max_size: int = 32,
        ttl_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: TTLCache[str, CacheEntry] = TTLCache(
            maxsize=max(1, max_size), ttl=ttl_seconds, timer=clock
        )
        self._lock = threading.Lock()

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is not None:
            logger.debug("Search cache hit for %s", key)
        return entry

    def store(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[entry.key] = entry

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)


class SessionStore:
    """Pending disambiguation sessions keyed by caller-supplied session id."""

    def __init__(
        self,
        *,
        max_size: int = 256,
        ttl_seconds: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: TTLCache[str, PendingSession] = TTLCache(
            maxsize=max(1, max_size), ttl=ttl_seconds, timer=clock
        )
        self._lock = threading.Lock()

    def get(self, session_id: str) -> PendingSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def save(self, session_id: str, session: PendingSession) -> None:
        with self._lock:
            self._sessions[session_id] = session

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            self._sessions.expire()
            return len(self._sessions)


__all__ = [
    "CacheEntry",
    "DEFAULT_SESSION_ID",
    "PendingSession",
    "SearchCache",
    "SessionStore",
    "SideResolution",
    "make_cache_key",
]
