"""In-process fakes and payload builders shared by the tests."""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from typing import Any

from rentalquote.domain.commission import Commission, CommissionOverride, CommissionPair
from rentalquote.domain.listing import Listing
from rentalquote.runtime.geocoding import EMPTY_RESULT, GeocodeResult
from rentalquote.runtime.payments import PaymentIntent

NOW = dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.UTC)


def listing_resource(
    *,
    listing_id: str = "listing-1",
    author_id: str | None = "provider-1",
    unit_type: str = "day",
    amount: int = 10000,
    currency: str = "CAD",
    **public_data: Any,
) -> dict[str, Any]:
    """A listing as the marketplace API returns it (``data`` member)."""
    resource: dict[str, Any] = {
        "id": {"uuid": listing_id},
        "type": "listing",
        "attributes": {
            "price": {"amount": amount, "currency": currency},
            "publicData": {"unitType": unit_type, **public_data},
        },
    }
    if author_id is not None:
        resource["relationships"] = {"author": {"data": {"id": {"uuid": author_id}, "type": "user"}}}
    return resource


class FakeGeocoder:
    def __init__(self, result: GeocodeResult = EMPTY_RESULT) -> None:
        self.result = result
        self.calls: list[str | None] = []

    async def geocode(self, address: str | None) -> GeocodeResult:
        self.calls.append(address)
        return self.result


class FakeGateway:
    def __init__(
        self,
        listing: Listing,
        commissions: CommissionPair | None = None,
        custom: Mapping[str, CommissionOverride] | None = None,
        prior_transactions: bool = False,
    ) -> None:
        self.listing = listing
        self.commissions = commissions or CommissionPair(Commission(), Commission())
        self.custom = dict(custom or {})
        self.prior_transactions = prior_transactions
        self.history_queries: list[tuple[str, str]] = []

    async def show_listing(self, listing_id: str) -> Listing:
        return self.listing

    async def fetch_commission(self) -> CommissionPair:
        return self.commissions

    async def custom_commission(self, user_id: str) -> CommissionOverride | None:
        return self.custom.get(user_id)

    async def has_prior_transactions(self, customer_id: str, listing_id: str) -> bool:
        self.history_queries.append((customer_id, listing_id))
        return self.prior_transactions


class FakePayments:
    def __init__(self, confirm_status: str = "succeeded") -> None:
        self.confirm_status = confirm_status
        self.created: list[PaymentIntent] = []
        self.confirmed: list[tuple[str, str, str | None]] = []

    async def create_payment_intent(self, amount: int, currency: str, metadata: Mapping[str, str]) -> PaymentIntent:
        intent = PaymentIntent(
            id=f"pi_{len(self.created) + 1}",
            status="requires_payment_method",
            amount=amount,
            currency=currency,
            client_secret="secret",
            metadata=dict(metadata),
        )
        self.created.append(intent)
        return intent

    async def confirm_payment_intent(
        self, payment_intent_id: str, payment_method_id: str, return_url: str | None = None
    ) -> PaymentIntent:
        self.confirmed.append((payment_intent_id, payment_method_id, return_url))
        created = next((i for i in self.created if i.id == payment_intent_id), None)
        return PaymentIntent(
            id=payment_intent_id,
            status=self.confirm_status,
            amount=created.amount if created else 0,
            currency=created.currency if created else "CAD",
            metadata=created.metadata if created else {},
        )


