"""Marketplace Integration API access over httpx.

Only the reads the pricing engine needs, plus the profile write used to keep
coupon usage counts on the provider's private data.
"""

from __future__ import annotations

import datetime as dt
import time
from collections.abc import Mapping
from typing import Any

import httpx

from rentalquote.domain.commission import QUALIFYING_TRANSITIONS, CommissionOverride, CommissionPair
from rentalquote.domain.coupon import Coupon, normalize_coupon_code
from rentalquote.domain.listing import Listing, dig
from rentalquote.runtime.coupon_store import CouponNotFoundError, DuplicateCouponError
from rentalquote.runtime.logging import get_logger
from rentalquote.runtime.settings import Settings, get_settings

logger = get_logger(__name__)

COMMISSION_ASSET_PATH = "transactions/commission.json"


class MarketplaceUnavailable(RuntimeError):
    """Raised when the marketplace API cannot be reached or answers with an error."""


class MarketplaceClient:
    """Thin Integration API client with a cached client-credentials token."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(timeout=self.settings.marketplace_timeout)
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        if not self.settings.marketplace_client_id or not self.settings.marketplace_client_secret:
            raise MarketplaceUnavailable("Marketplace client credentials are not configured")

        base = self.settings.marketplace_api_base_url.rstrip("/")
        try:
            response = await self._client.post(
                f"{base}/v1/auth/token",
                data={
                    "client_id": self.settings.marketplace_client_id,
                    "client_secret": self.settings.marketplace_client_secret,
                    "grant_type": "client_credentials",
                    "scope": "integ",
                },
            )
        except httpx.RequestError as e:
            logger.error("Failed to connect to marketplace auth: %s", e)
            raise MarketplaceUnavailable(f"Failed to connect to marketplace auth: {e}") from e

        if response.status_code != 200:
            raise MarketplaceUnavailable(f"Marketplace auth error: {response.status_code}")
        payload = response.json()
        self._token = payload["access_token"]
        # Refresh a minute early.
        self._token_expires_at = time.monotonic() + float(payload.get("expires_in", 3600)) - 60
        return self._token

    async def request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        token = await self._access_token()
        base = self.settings.marketplace_api_base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        try:
            response = await self._client.request(method, f"{base}{path}", headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.error("Failed to connect to marketplace API: %s", e)
            raise MarketplaceUnavailable(f"Failed to connect to marketplace API: {e}") from e

        if response.status_code >= 400:
            logger.error("Marketplace API error on %s %s: %s", method, path, response.status_code)
            raise MarketplaceUnavailable(f"Marketplace API error: {response.status_code}")
        return response.json()

    async def fetch_asset(self, asset_path: str) -> dict[str, Any]:
        client_id = self.settings.marketplace_client_id
        base = self.settings.marketplace_assets_base_url.rstrip("/")
        url = f"{base}/v1/assets/pub/{client_id}/a/latest/{asset_path}"
        try:
            response = await self._client.get(url)
        except httpx.RequestError as e:
            logger.error("Failed to fetch asset %s: %s", asset_path, e)
            raise MarketplaceUnavailable(f"Failed to fetch asset {asset_path}: {e}") from e
        if response.status_code != 200:
            raise MarketplaceUnavailable(f"Asset {asset_path} error: {response.status_code}")
        return response.json()

    async def show_user(self, user_id: str) -> dict[str, Any]:
        payload = await self.request("GET", "/v1/integration_api/users/show", params={"id": user_id})
        return payload.get("data") or {}


class HttpMarketplaceGateway:
    """MarketplaceGateway over the Integration API."""

    def __init__(self, client: MarketplaceClient) -> None:
        self.client = client

    async def show_listing(self, listing_id: str) -> Listing:
        payload = await self.client.request(
            "GET",
            "/v1/integration_api/listings/show",
            params={"id": listing_id, "include": "author"},
        )
        return Listing.from_api(payload.get("data") or {})

    async def fetch_commission(self) -> CommissionPair:
        asset = await self.client.fetch_asset(COMMISSION_ASSET_PATH)
        # Asset responses wrap the JSON document as {"data": {"type": "jsonAsset", "attributes": {"data": ...}}}
        data = dig(asset, "data", "attributes", "data")
        if dig(asset, "data", "type") != "jsonAsset" or not isinstance(data, Mapping):
            logger.warning("Commission asset missing or not a jsonAsset; using zero commissions")
            data = {}
        return CommissionPair.from_asset(data)

    async def custom_commission(self, user_id: str) -> CommissionOverride | None:
        user = await self.client.show_user(user_id)
        raw = dig(user, "attributes", "profile", "publicData", "customCommission")
        return CommissionOverride.from_dict(raw if isinstance(raw, Mapping) else None)

    async def has_prior_transactions(self, customer_id: str, listing_id: str) -> bool:
        payload = await self.client.request(
            "GET",
            "/v1/integration_api/transactions/query",
            params={
                "customerId": customer_id,
                "listingId": listing_id,
                "lastTransitions": ",".join(QUALIFYING_TRANSITIONS),
                "perPage": 1,
            },
        )
        return bool(payload.get("data"))


class ProfileCouponStore:
    """CouponStore kept in ``profile.privateData.coupons`` of the provider.

    The profile update is a plain read-modify-write; concurrent redemptions of the
    same coupon may race past ``max_redemptions``.
    """

    def __init__(self, client: MarketplaceClient) -> None:
        self.client = client

    async def _private_data(self, provider_id: str) -> dict[str, Any]:
        user = await self.client.show_user(provider_id)
        private_data = dig(user, "attributes", "profile", "privateData")
        return dict(private_data) if isinstance(private_data, Mapping) else {}

    async def _write(self, provider_id: str, private_data: dict[str, Any], coupons: list[Coupon]) -> None:
        await self.client.request(
            "POST",
            "/v1/integration_api/users/update_profile",
            json={"id": provider_id, "privateData": {**private_data, "coupons": [c.to_dict() for c in coupons]}},
        )

    async def list_for_provider(self, provider_id: str) -> list[Coupon]:
        private_data = await self._private_data(provider_id)
        return [Coupon.from_dict(raw, provider_id=provider_id) for raw in private_data.get("coupons") or ()]

    async def get(self, provider_id: str, code: str) -> Coupon | None:
        wanted = normalize_coupon_code(code)
        return next((c for c in await self.list_for_provider(provider_id) if c.code == wanted), None)

    async def add(self, coupon: Coupon) -> Coupon:
        private_data = await self._private_data(coupon.provider_id)
        coupons = [Coupon.from_dict(raw, provider_id=coupon.provider_id) for raw in private_data.get("coupons") or ()]
        if any(c.code == coupon.code for c in coupons):
            raise DuplicateCouponError("Coupon code already exists")
        await self._write(coupon.provider_id, private_data, [*coupons, coupon])
        return coupon

    async def replace(self, coupon: Coupon) -> Coupon:
        private_data = await self._private_data(coupon.provider_id)
        coupons = [Coupon.from_dict(raw, provider_id=coupon.provider_id) for raw in private_data.get("coupons") or ()]
        if not any(c.code == coupon.code for c in coupons):
            raise CouponNotFoundError(coupon.code)
        await self._write(coupon.provider_id, private_data, [coupon if c.code == coupon.code else c for c in coupons])
        return coupon

    async def increment_usage(self, provider_id: str, code: str, *, now: dt.datetime) -> Coupon | None:
        wanted = normalize_coupon_code(code)
        private_data = await self._private_data(provider_id)
        coupons = [Coupon.from_dict(raw, provider_id=provider_id) for raw in private_data.get("coupons") or ()]
        current = next((c for c in coupons if c.code == wanted), None)
        if current is None:
            logger.warning("Coupon %s not found for provider %s", wanted, provider_id)
            return None
        if current.is_exhausted:
            logger.warning("Coupon %s already at max redemptions; not counting another", wanted)
            return None
        updated = current.redeemed(now)
        await self._write(provider_id, private_data, [updated if c.code == wanted else c for c in coupons])
        logger.info("Coupon %s usage count updated to %d", wanted, updated.used_count)
        return updated
