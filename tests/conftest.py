"""Shared pytest fixtures for lycanstats tests."""

from datetime import datetime, timezone

import pytest

from lycanstats.catalog import catalog_from_json, load_catalog


@pytest.fixture
def now():
    return datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def bundled_catalog():
    return load_catalog()


@pytest.fixture
def win_rate_catalog():
    """A catalogue with only the win-rate family, for isolating one stat."""
    tiers = {
        tier: {"title": f"win {tier}", "emoji": "", "description": ""}
        for tier in ("extremeHigh", "high", "average", "low", "extremeLow")
    }
    return catalog_from_json({"tiers": {"winRate": tiers}, "combinations": []})
