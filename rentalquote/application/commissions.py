"""Effective commission lookup for a (customer, listing) pair."""

from __future__ import annotations

import asyncio

from rentalquote.application.ports import MarketplaceGateway
from rentalquote.domain.commission import (
    CommissionOverride,
    CommissionPair,
    RecurringCommissionPolicy,
    resolve_commission,
)
from rentalquote.domain.listing import Listing
from rentalquote.runtime import get_logger

logger = get_logger(__name__)


async def _no_override() -> CommissionOverride | None:
    return None


async def _no_history() -> bool:
    return False


async def resolve_commission_pair(
    gateway: MarketplaceGateway,
    listing: Listing,
    customer_id: str | None,
    recurring: RecurringCommissionPolicy | None,
) -> CommissionPair:
    """Fetch default, custom and history data concurrently, then resolve both sides."""
    default, provider_custom, customer_custom, has_prior = await asyncio.gather(
        gateway.fetch_commission(),
        gateway.custom_commission(listing.author_id) if listing.author_id else _no_override(),
        gateway.custom_commission(customer_id) if customer_id else _no_override(),
        gateway.has_prior_transactions(customer_id, listing.id) if customer_id else _no_history(),
    )
    if has_prior:
        logger.info(
            "Customer %s has prior transactions on listing %s; recurring commission %s applies",
            customer_id,
            listing.id,
            recurring.version if recurring else "(none)",
        )

    return CommissionPair(
        provider=resolve_commission(
            "provider",
            default=default.provider,
            custom=provider_custom,
            recurring=recurring,
            has_prior_transactions=has_prior,
        ),
        customer=resolve_commission(
            "customer",
            default=default.customer,
            custom=customer_custom,
            recurring=recurring,
            has_prior_transactions=has_prior,
        ),
    )
