"""Collaborator interfaces the pricing workflows depend on.

Runtime provides the real implementations; tests pass fakes.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from rentalquote.domain.commission import CommissionOverride, CommissionPair
from rentalquote.domain.listing import Listing
from rentalquote.runtime.coupon_store import CouponStore
from rentalquote.runtime.geocoding import GeocodeResult
from rentalquote.runtime.payments import PaymentIntent


class MarketplaceGateway(Protocol):
    async def show_listing(self, listing_id: str) -> Listing: ...

    async def fetch_commission(self) -> CommissionPair: ...

    async def custom_commission(self, user_id: str) -> CommissionOverride | None: ...

    async def has_prior_transactions(self, customer_id: str, listing_id: str) -> bool: ...


class AddressGeocoder(Protocol):
    async def geocode(self, address: str | None) -> GeocodeResult: ...


class PaymentProcessor(Protocol):
    async def create_payment_intent(
        self, amount: int, currency: str, metadata: Mapping[str, str]
    ) -> PaymentIntent: ...

    async def confirm_payment_intent(
        self, payment_intent_id: str, payment_method_id: str, return_url: str | None = None
    ) -> PaymentIntent: ...


__all__ = [
    "AddressGeocoder",
    "CouponStore",
    "MarketplaceGateway",
    "PaymentIntent",
    "PaymentProcessor",
]
