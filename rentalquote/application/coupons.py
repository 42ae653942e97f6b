"""Coupon workflows: checkout-time validation and provider-side create/update."""

from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from rentalquote.application.ports import CouponStore, MarketplaceGateway
from rentalquote.domain.coupon import (
    Coupon,
    CouponLookup,
    discount_amount,
    find_redeemable_coupon,
    normalize_coupon_code,
    validate_coupon_data,
)
from rentalquote.domain.errors import InvalidCouponError
from rentalquote.runtime import get_logger
from rentalquote.runtime.coupon_store import CouponNotFoundError

logger = get_logger(__name__)

# Fields a provider may not change through an update.
PROTECTED_FIELDS = ("id", "providerId", "code", "fundedBy", "usedCount", "createdAt", "updatedAt")


@dataclass(frozen=True)
class CouponValidationRequest:
    """Checkout-time check of a code against an order total (minor units)."""

    code: str
    listing_id: str
    order_total: int
    currency: str | None = None


@dataclass(frozen=True)
class CouponValidationResult:
    lookup: CouponLookup
    currency: str
    original_total: int
    discount: int = 0

    @property
    def ok(self) -> bool:
        return self.lookup.ok

    @property
    def final_total(self) -> int:
        return self.original_total - self.discount

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"success": False, "error": self.lookup.message, "status": self.lookup.status}
        coupon = self.lookup.coupon
        assert coupon is not None
        coupon_data = coupon.to_dict()
        return {
            "success": True,
            "data": {
                "coupon": {key: coupon_data[key] for key in ("id", "code", "type", "amount", "fundedBy")},
                "discount": {"amount": self.discount, "currency": self.currency, "type": coupon.type},
                "orderSummary": {
                    "originalTotal": self.original_total,
                    "discountAmount": self.discount,
                    "finalTotal": self.final_total,
                },
            },
        }


async def validate_coupon(
    request: CouponValidationRequest,
    *,
    gateway: MarketplaceGateway,
    coupon_store: CouponStore,
    now: dt.datetime | None = None,
) -> CouponValidationResult:
    """Check a code for a listing and compute its discount on ``order_total``.

    Raises:
        MarketplaceUnavailable: the listing cannot be fetched.
    """
    now = now or dt.datetime.now(dt.UTC)
    listing = await gateway.show_listing(request.listing_id)
    currency = request.currency or listing.currency

    coupons = await coupon_store.list_for_provider(listing.author_id) if listing.author_id else []
    lookup = find_redeemable_coupon(coupons, request.code, listing_id=listing.id, now=now, currency=currency)
    if not lookup.ok:
        logger.info("Coupon %s rejected for listing %s: %s", lookup.code, listing.id, lookup.status)
        return CouponValidationResult(lookup=lookup, currency=currency, original_total=request.order_total)

    discount = discount_amount(lookup.coupon, request.order_total)  # type: ignore[arg-type]
    return CouponValidationResult(
        lookup=lookup,
        currency=currency,
        original_total=request.order_total,
        discount=discount,
    )


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


async def create_coupon(
    provider_id: str,
    raw: Mapping[str, Any],
    *,
    coupon_store: CouponStore,
    now: dt.datetime | None = None,
) -> Coupon:
    """Validate and store a new coupon. Codes are stored upper-case.

    Raises:
        InvalidCouponError: the definition fails validation.
        DuplicateCouponError: the provider already has this code.
    """
    now = now or dt.datetime.now(dt.UTC)
    errors = validate_coupon_data(raw, now)
    if errors:
        raise InvalidCouponError(errors)

    coupon = Coupon.from_dict(
        {
            **raw,
            "id": str(uuid.uuid4()),
            "code": normalize_coupon_code(raw["code"]),
            "currency": raw.get("currency") if raw.get("type") == "fixed" else None,
            "fundedBy": "provider",
            "usedCount": 0,
            "isActive": _parse_bool(raw.get("isActive", True)),
            "createdAt": now,
            "updatedAt": now,
        },
        provider_id=provider_id,
    )
    await coupon_store.add(coupon)
    logger.info("Created coupon %s for provider %s", coupon.code, provider_id)
    return coupon


async def update_coupon(
    provider_id: str,
    code: str,
    changes: Mapping[str, Any],
    *,
    coupon_store: CouponStore,
    now: dt.datetime | None = None,
) -> Coupon:
    """Merge ``changes`` into an existing coupon and re-validate the result.

    Identity, funding, usage count and creation time are preserved.

    Raises:
        CouponNotFoundError: no such coupon for the provider.
        InvalidCouponError: the merged definition fails validation.
    """
    now = now or dt.datetime.now(dt.UTC)
    existing = await coupon_store.get(provider_id, code)
    if existing is None:
        raise CouponNotFoundError(normalize_coupon_code(code))

    current = existing.to_dict()
    merged = {
        **current,
        **{key: value for key, value in changes.items() if key not in PROTECTED_FIELDS},
    }
    if "isActive" in changes:
        merged["isActive"] = _parse_bool(changes["isActive"])
    merged["currency"] = (changes.get("currency") or current["currency"]) if merged.get("type") == "fixed" else None

    errors = validate_coupon_data(merged, now)
    if errors:
        raise InvalidCouponError(errors)

    updated = Coupon.from_dict({**merged, "updatedAt": now}, provider_id=provider_id)
    await coupon_store.replace(updated)
    logger.info("Updated coupon %s for provider %s", updated.code, provider_id)
    return updated
