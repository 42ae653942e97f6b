"""Payment workflow: create the payin intent for a final quote, confirm it, count coupon usage."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Literal

from rentalquote.application.ports import CouponStore, PaymentProcessor
from rentalquote.domain.coupon import Coupon
from rentalquote.domain.line_item import LineItem, payin_total
from rentalquote.domain.listing import Listing
from rentalquote.runtime import get_logger
from rentalquote.runtime.marketplace import MarketplaceUnavailable
from rentalquote.runtime.payments import PaymentIntent

logger = get_logger(__name__)

ConfirmStatus = Literal["succeeded", "requires_action", "failed"]


def payment_metadata(listing: Listing, coupon: Coupon | None) -> dict[str, str]:
    metadata = {"listingId": listing.id}
    if listing.author_id:
        metadata["providerId"] = listing.author_id
    if coupon is not None:
        metadata["couponCode"] = coupon.code
    return metadata


async def start_payment(
    listing: Listing,
    line_items: list[LineItem],
    coupon: Coupon | None,
    processor: PaymentProcessor,
) -> PaymentIntent | None:
    """Create a payment intent for the payin total; None when there is nothing to charge."""
    total = payin_total(line_items, listing.currency)
    if total.amount <= 0:
        logger.info("Payin total for listing %s is %s; no payment intent created", listing.id, total)
        return None
    return await processor.create_payment_intent(total.amount, total.currency, payment_metadata(listing, coupon))


@dataclass(frozen=True)
class ConfirmPaymentRequest:
    """Inputs for confirming a customer's payment."""

    payment_intent_id: str
    payment_method_id: str
    return_url: str | None = None


@dataclass(frozen=True)
class ConfirmPaymentResult:
    status: ConfirmStatus
    payment_intent: PaymentIntent
    redeemed_coupon: Coupon | None = None


async def redeem_coupon(
    coupon_store: CouponStore,
    provider_id: str,
    code: str,
    now: dt.datetime,
) -> Coupon | None:
    """Count one coupon redemption. Failures are logged and never raised."""
    try:
        return await coupon_store.increment_usage(provider_id, code, now=now)
    except (MarketplaceUnavailable, OSError, ValueError) as exc:
        logger.error("Error updating coupon %s usage count: %s", code, exc)
        return None


async def confirm_payment(
    request: ConfirmPaymentRequest,
    *,
    processor: PaymentProcessor,
    coupon_store: CouponStore,
    now: dt.datetime | None = None,
) -> ConfirmPaymentResult:
    """Confirm the intent; after a successful charge, count the coupon it carried.

    Raises:
        PaymentProcessorError: the processor is unreachable or rejects the confirmation.
    """
    intent = await processor.confirm_payment_intent(
        request.payment_intent_id,
        request.payment_method_id,
        request.return_url,
    )
    if intent.status in ("requires_action", "processing"):
        return ConfirmPaymentResult(status="requires_action", payment_intent=intent)
    if not intent.succeeded:
        logger.warning("Payment intent %s ended in status %s", intent.id, intent.status)
        return ConfirmPaymentResult(status="failed", payment_intent=intent)

    provider_id = intent.metadata.get("providerId")
    code = intent.metadata.get("couponCode")
    redeemed = None
    if provider_id and code:
        redeemed = await redeem_coupon(coupon_store, provider_id, code, now or dt.datetime.now(dt.UTC))
    return ConfirmPaymentResult(status="succeeded", payment_intent=intent, redeemed_coupon=redeemed)
