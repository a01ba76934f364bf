from __future__ import annotations

import pytest

from config.settings import get_settings


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure required env vars exist during tests."""

    monkeypatch.setenv("FLIGHTS_API_KEY", "test-flights-key")
    get_settings.cache_clear()
