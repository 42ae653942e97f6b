"""Pricing workflow orchestration: listing + commissions + coupon -> line items."""

from __future__ import annotations

import asyncio
import datetime as dt
from dataclasses import dataclass, field
from typing import Any

from rentalquote.application.checkout import redeem_coupon, start_payment
from rentalquote.application.commissions import resolve_commission_pair
from rentalquote.application.line_items import compute_line_items
from rentalquote.application.ports import AddressGeocoder, CouponStore, MarketplaceGateway, PaymentProcessor
from rentalquote.domain.commission import CommissionPair, RecurringCommissionPolicy
from rentalquote.domain.coupon import Coupon, CouponLookup, find_redeemable_coupon
from rentalquote.domain.line_item import (
    LineItem,
    commission_total,
    construct_valid_line_items,
    payin_total,
    payout_total,
)
from rentalquote.domain.listing import Listing
from rentalquote.domain.money import Money
from rentalquote.domain.order import OrderData
from rentalquote.domain.tax import TaxTable
from rentalquote.runtime import get_logger
from rentalquote.runtime.marketplace import MarketplaceUnavailable
from rentalquote.runtime.payments import PaymentIntent

logger = get_logger(__name__)


@dataclass(frozen=True)
class PricingRequest:
    """Inputs for pricing one order."""

    listing_id: str
    order: OrderData
    customer_id: str | None = None
    speculative: bool = True


@dataclass(frozen=True)
class PricingResult:
    """Validated line items plus the totals derived from them."""

    listing: Listing
    line_items: list[LineItem]
    commissions: CommissionPair
    coupon: CouponLookup | None = None
    speculative: bool = True
    payment_intent: PaymentIntent | None = None
    redeemed_coupon: Coupon | None = None
    computed_at: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.UTC))

    @property
    def currency(self) -> str:
        return self.listing.currency

    @property
    def payin_total(self) -> Money:
        return payin_total(self.line_items, self.currency)

    @property
    def payout_total(self) -> Money:
        return payout_total(self.line_items, self.currency)

    @property
    def commission_total(self) -> Money:
        return commission_total(self.line_items, self.currency)

    def to_dict(self) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "payinTotal": self.payin_total.to_dict(),
            "payoutTotal": self.payout_total.to_dict(),
            "commissionTotal": self.commission_total.to_dict(),
            "speculative": self.speculative,
        }
        if self.coupon is not None:
            meta["coupon"] = {"code": self.coupon.code, "status": self.coupon.status, "message": self.coupon.message}
        if self.payment_intent is not None:
            meta["paymentIntent"] = self.payment_intent.to_dict()
        if self.redeemed_coupon is not None:
            meta["redeemedCoupon"] = self.redeemed_coupon.to_dict()
        return {"data": [item.to_dict() for item in self.line_items], "meta": meta}


async def lookup_coupon(
    coupon_store: CouponStore,
    listing: Listing,
    code: str,
    now: dt.datetime,
) -> CouponLookup | None:
    """Find a redeemable coupon for the listing's provider; None when the store cannot be read."""
    if not listing.author_id:
        logger.warning("Listing %s has no author; coupon %s ignored", listing.id, code)
        return None
    try:
        coupons = await coupon_store.list_for_provider(listing.author_id)
    except (MarketplaceUnavailable, OSError, ValueError) as exc:
        logger.error("Error loading coupons for provider %s: %s", listing.author_id, exc)
        return None

    lookup = find_redeemable_coupon(coupons, code, listing_id=listing.id, now=now, currency=listing.currency)
    if lookup.ok:
        logger.info("Applying coupon %s to listing %s", lookup.code, listing.id)
    else:
        logger.info("Coupon %s not applied: %s", lookup.code, lookup.message)
    return lookup


async def _no_coupon() -> CouponLookup | None:
    return None


async def run_pricing(
    request: PricingRequest,
    *,
    gateway: MarketplaceGateway,
    coupon_store: CouponStore,
    tax_table: TaxTable,
    geocoder: AddressGeocoder,
    recurring: RecurringCommissionPolicy | None = None,
    payments: PaymentProcessor | None = None,
    now: dt.datetime | None = None,
) -> PricingResult:
    """Run pricing flow: listing -> commissions + coupon -> line items -> totals.

    Final (non-speculative) requests also open a payment intent for the payin total.
    When there is nothing to charge, the applied coupon is counted right away.

    Raises:
        PricingError: order data is missing or invalid.
        MarketplaceUnavailable: the listing or commission data cannot be fetched.
        PaymentProcessorError: a final request's payment intent cannot be created.
    """
    now = now or dt.datetime.now(dt.UTC)
    listing = await gateway.show_listing(request.listing_id)

    order = request.order
    wants_coupon = order.coupon_code is not None and order.coupon is None
    commissions, coupon_lookup = await asyncio.gather(
        resolve_commission_pair(gateway, listing, request.customer_id, recurring),
        lookup_coupon(coupon_store, listing, order.coupon_code, now) if wants_coupon else _no_coupon(),  # type: ignore[arg-type]
    )
    if coupon_lookup is not None and coupon_lookup.ok:
        order = order.with_coupon(coupon_lookup.coupon)

    line_items = await compute_line_items(
        listing,
        order,
        commissions.provider,
        commissions.customer,
        tax_table=tax_table,
        geocoder=geocoder,
    )
    line_items = construct_valid_line_items(line_items)

    payment_intent = None
    redeemed_coupon = None
    if not request.speculative:
        if payments is None:
            raise ValueError("A payment processor is required for non-speculative pricing")
        payment_intent = await start_payment(listing, line_items, order.coupon, payments)
        if payment_intent is None and order.coupon is not None and listing.author_id:
            # Nothing to charge, so no confirmation will ever count the coupon.
            redeemed_coupon = await redeem_coupon(coupon_store, listing.author_id, order.coupon.code, now)

    return PricingResult(
        listing=listing,
        line_items=line_items,
        commissions=commissions,
        coupon=coupon_lookup,
        speculative=request.speculative,
        payment_intent=payment_intent,
        redeemed_coupon=redeemed_coupon,
        computed_at=now,
    )
