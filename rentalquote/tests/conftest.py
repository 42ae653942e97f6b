"""Shared pytest fixtures for rentalquote tests."""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable
from typing import Any

import pytest

from rentalquote.domain.listing import Listing
from rentalquote.domain.tax import TaxTable
from rentalquote.runtime import reset_settings
from rentalquote.tests.fakes import NOW, FakeGeocoder, listing_resource


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep developer credentials and overrides out of the tests."""
    for name in (
        "RENTALQUOTE_CONFIG_DIR",
        "MAPBOX_ACCESS_TOKEN",
        "GOOGLE_MAPS_API_KEY",
        "GEOCODER_PROVIDERS",
        "MARKETPLACE_CLIENT_ID",
        "MARKETPLACE_CLIENT_SECRET",
        "STRIPE_SECRET_KEY",
        "COUPON_STORE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def now() -> dt.datetime:
    return NOW


@pytest.fixture
def make_listing() -> Callable[..., Listing]:
    def _make(**kwargs: Any) -> Listing:
        return Listing.from_api(listing_resource(**kwargs))

    return _make


@pytest.fixture
def tax_table() -> TaxTable:
    return TaxTable.from_rates({"Ontario": 13, "Quebec": "14.975"})


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()
