"""Address -> region lookup over the Google Maps and Mapbox geocoding APIs.

Geocoding never fails a pricing request: every provider error is logged and
the lookup falls through to the next provider, then to an all-null result.
"""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx

from rentalquote.runtime.logging import get_logger
from rentalquote.runtime.settings import Settings, get_settings

logger = get_logger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"


@dataclass(frozen=True)
class GeocodeResult:
    state_name: str | None = None
    state_code: str | None = None
    country: str | None = None

    @property
    def found(self) -> bool:
        return self.state_name is not None


EMPTY_RESULT = GeocodeResult()


class GeocodingError(RuntimeError):
    """Raised by a single provider when it cannot answer; never escapes Geocoder.geocode()."""


def _first_mapping(value: Any) -> Mapping[str, Any] | None:
    if isinstance(value, list) and value and isinstance(value[0], Mapping):
        return value[0]
    return None


def _mappings(value: Any) -> list[Mapping[str, Any]]:
    return [item for item in value if isinstance(item, Mapping)] if isinstance(value, list) else []


def parse_google_response(payload: dict[str, Any]) -> GeocodeResult | None:
    first = _first_mapping(payload.get("results"))
    if payload.get("status") != "OK" or first is None:
        return None

    state_name = state_code = country = None
    for component in _mappings(first.get("address_components")):
        types = component.get("types") or []
        if "administrative_area_level_1" in types:
            state_name = component.get("long_name") or None
            short_name = component.get("short_name")
            state_code = short_name.upper() if short_name else None
        if "country" in types:
            short_name = component.get("short_name")
            country = short_name.upper() if short_name else component.get("long_name") or None
    return GeocodeResult(state_name, state_code, country)


def parse_mapbox_response(payload: dict[str, Any]) -> GeocodeResult | None:
    first = _first_mapping(payload.get("features"))
    if first is None:
        return None

    state_name = state_code = country = None
    for item in _mappings(first.get("context")):
        item_id = item.get("id") or ""
        short_code = item.get("short_code")
        if item_id.startswith("region."):
            state_name = item.get("text") or None
            state_code = short_code.upper() if short_code else state_name
        if item_id.startswith("country."):
            country = short_code.upper() if short_code else item.get("text") or None
    return GeocodeResult(state_name, state_code, country)


class Geocoder:
    """Async geocoder trying each configured provider in order."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings or get_settings()
        self._client = client

    def _providers(self) -> list[str]:
        providers = []
        for name in self.settings.geocoder_providers:
            if name == "google" and self.settings.google_maps_api_key:
                providers.append(name)
            elif name == "mapbox" and self.settings.mapbox_access_token:
                providers.append(name)
        return providers

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        if self._client is not None:
            response = await self._client.get(url, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.settings.geocoder_timeout) as client:
                response = await client.get(url, params=params)

        if response.status_code != 200:
            raise GeocodingError(f"{url} returned {response.status_code}")
        payload = response.json()
        if not isinstance(payload, dict):
            raise GeocodingError(f"{url} returned a non-object payload")
        return payload

    async def _geocode_google(self, address: str) -> GeocodeResult | None:
        payload = await self._get_json(
            GOOGLE_GEOCODE_URL,
            {"address": address, "key": self.settings.google_maps_api_key},
        )
        return parse_google_response(payload)

    async def _geocode_mapbox(self, address: str) -> GeocodeResult | None:
        payload = await self._get_json(
            f"{MAPBOX_GEOCODE_URL}/{quote(address, safe='')}.json",
            {"access_token": self.settings.mapbox_access_token, "limit": 1},
        )
        return parse_mapbox_response(payload)

    async def geocode(self, address: str | None) -> GeocodeResult:
        """Resolve an address string to its region and country; all-null when nothing answers."""
        if not address or not isinstance(address, str):
            return EMPTY_RESULT

        providers = self._providers()
        if not providers:
            logger.warning("No geocoding provider configured; skipping lookup")
            return EMPTY_RESULT

        for name in providers:
            lookup = self._geocode_google if name == "google" else self._geocode_mapbox
            try:
                result = await lookup(address)
            except (httpx.HTTPError, GeocodingError, ValueError, AttributeError, TypeError, KeyError) as exc:
                logger.error("%s geocoding failed: %s", name, exc)
                continue
            if result is not None:
                logger.debug("Geocoded via %s: region=%s country=%s", name, result.state_name, result.country)
                return result
            logger.info("%s geocoding returned no match", name)

        return EMPTY_RESULT
