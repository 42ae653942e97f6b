"""Provider coupons: model, redeemability lookup, and discount evaluation."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Literal

from rentalquote.domain.line_item import COUPON_DISCOUNT_CODE, LineItem, is_commission_code
from rentalquote.domain.money import MINOR_UNITS_PER_MAJOR, Money, Number, round_half_up, to_decimal

CouponType = Literal["fixed", "percentage"]
COUPON_TYPES: frozenset[str] = frozenset({"fixed", "percentage"})

MIN_CODE_LENGTH = 3

CouponStatus = Literal[
    "valid",
    "not_found",
    "inactive",
    "expired",
    "exhausted",
    "not_applicable",
    "currency_mismatch",
]

_REJECTION_MESSAGES: dict[str, str] = {
    "not_found": "Invalid coupon code",
    "inactive": "Coupon is inactive",
    "expired": "Coupon has expired",
    "exhausted": "Coupon has reached maximum redemptions",
    "not_applicable": "Coupon is not applicable to this listing",
    "currency_mismatch": "Coupon currency does not match order currency",
}


def normalize_coupon_code(code: str) -> str:
    return code.strip().upper()


def parse_timestamp(value: Any) -> dt.datetime | None:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Not a timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed


def _format_timestamp(value: dt.datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(dt.UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Coupon:
    """A provider-owned discount code. Identity is (provider_id, code)."""

    provider_id: str
    code: str
    type: str
    amount: Decimal
    currency: str | None = None
    expires_at: dt.datetime | None = None
    max_redemptions: int | None = None
    used_count: int = 0
    applicable_listing_ids: tuple[str, ...] = ()
    is_active: bool = True
    id: str | None = None
    funded_by: str = "provider"
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.provider_id, self.code)

    def is_expired(self, now: dt.datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    @property
    def is_exhausted(self) -> bool:
        return bool(self.max_redemptions) and self.used_count >= self.max_redemptions  # type: ignore[operator]

    def applies_to(self, listing_id: str) -> bool:
        return not self.applicable_listing_ids or listing_id in self.applicable_listing_ids

    def redeemed(self, now: dt.datetime) -> Coupon:
        """Coupon after one more redemption; deactivated once it reaches its maximum."""
        used_count = self.used_count + 1
        is_active = self.is_active
        if self.max_redemptions and used_count >= self.max_redemptions:
            is_active = False
        return replace(self, used_count=used_count, is_active=is_active, updated_at=now)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], provider_id: str | None = None) -> Coupon:
        owner = provider_id or raw.get("providerId")
        if not owner:
            raise ValueError("Coupon has no provider id")
        max_redemptions = raw.get("maxRedemptions")
        return cls(
            provider_id=str(owner),
            code=normalize_coupon_code(str(raw.get("code", ""))),
            type=str(raw.get("type", "")),
            amount=to_decimal(raw.get("amount", 0)),
            currency=raw.get("currency") or None,
            expires_at=parse_timestamp(raw.get("expiresAt")),
            max_redemptions=int(max_redemptions) if max_redemptions else None,
            used_count=int(raw.get("usedCount") or 0),
            applicable_listing_ids=tuple(str(listing_id) for listing_id in raw.get("applicableListingIds") or ()),
            is_active=bool(raw.get("isActive", True)),
            id=raw.get("id"),
            funded_by=str(raw.get("fundedBy") or "provider"),
            created_at=parse_timestamp(raw.get("createdAt")),
            updated_at=parse_timestamp(raw.get("updatedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        amount = self.amount
        return {
            "id": self.id,
            "providerId": self.provider_id,
            "code": self.code,
            "type": self.type,
            "amount": int(amount) if amount == amount.to_integral_value() else float(amount),
            "currency": self.currency,
            "fundedBy": self.funded_by,
            "expiresAt": _format_timestamp(self.expires_at),
            "maxRedemptions": self.max_redemptions,
            "usedCount": self.used_count,
            "applicableListingIds": list(self.applicable_listing_ids),
            "isActive": self.is_active,
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
        }


@dataclass(frozen=True)
class CouponLookup:
    """Outcome of finding a redeemable coupon: the coupon, or the reason it was rejected."""

    status: CouponStatus
    code: str
    coupon: Coupon | None = None

    @property
    def ok(self) -> bool:
        return self.status == "valid"

    @property
    def message(self) -> str:
        if self.ok:
            return "Coupon is valid"
        if self.status == "currency_mismatch" and self.coupon is not None:
            return f"Coupon currency ({self.coupon.currency}) does not match order currency"
        return _REJECTION_MESSAGES[self.status]


def find_redeemable_coupon(
    coupons: Iterable[Coupon],
    code: str,
    *,
    listing_id: str,
    now: dt.datetime,
    currency: str | None = None,
) -> CouponLookup:
    """Check a code against a provider's coupons, most specific rejection first."""
    wanted = normalize_coupon_code(code)
    coupon = next((c for c in coupons if c.code == wanted), None)

    if coupon is None:
        return CouponLookup("not_found", wanted)
    if not coupon.is_active:
        return CouponLookup("inactive", wanted, coupon)
    if coupon.is_expired(now):
        return CouponLookup("expired", wanted, coupon)
    if coupon.is_exhausted:
        return CouponLookup("exhausted", wanted, coupon)
    if not coupon.applies_to(listing_id):
        return CouponLookup("not_applicable", wanted, coupon)
    if currency is not None and coupon.type == "fixed" and coupon.currency != currency:
        return CouponLookup("currency_mismatch", wanted, coupon)
    return CouponLookup("valid", wanted, coupon)


def coupon_subtotal(line_items: Iterable[LineItem]) -> Number:
    """Customer-facing subtotal a coupon may discount. Commissions are never discounted."""
    subtotal: Number = 0
    for item in line_items:
        if not item.is_for_customer or is_commission_code(item.code):
            continue
        subtotal += item.raw_total()
    return subtotal


def discount_amount(coupon: Coupon, subtotal: Number) -> int:
    """Discount in minor units, clamped to ``[0, subtotal]``."""
    if coupon.type == "percentage":
        discount = round_half_up(subtotal * coupon.amount / 100)
    elif coupon.type == "fixed":
        discount = round_half_up(coupon.amount * MINOR_UNITS_PER_MAJOR)
    else:
        discount = 0
    return max(0, min(discount, round_half_up(subtotal)))


def apply_coupon(coupon: Coupon | None, base_line_items: Iterable[LineItem], currency: str) -> LineItem | None:
    """Discount line item for ``coupon`` against the base items, or None if it has no effect."""
    if coupon is None or not coupon.code:
        return None

    discount = discount_amount(coupon, coupon_subtotal(base_line_items))
    if discount <= 0:
        return None

    return LineItem(
        code=COUPON_DISCOUNT_CODE,
        unit_price=Money(-discount, currency),
        quantity=1,
    )


def validate_coupon_data(raw: Mapping[str, Any], now: dt.datetime) -> list[str]:
    """Validation errors for a provider-submitted coupon definition (empty when valid)."""
    errors: list[str] = []

    code = raw.get("code")
    if not isinstance(code, str) or len(code.strip()) < MIN_CODE_LENGTH:
        errors.append(f"Coupon code must be at least {MIN_CODE_LENGTH} characters long")

    coupon_type = raw.get("type")
    if coupon_type not in COUPON_TYPES:
        errors.append('Type must be either "fixed" or "percentage"')

    amount: Decimal | None
    try:
        amount = to_decimal(raw.get("amount"))
    except (TypeError, ValueError):
        amount = None
    if amount is None or amount <= 0:
        errors.append("Amount must be a positive number")
    elif coupon_type == "percentage" and amount > 100:
        errors.append("Percentage discount cannot exceed 100%")

    currency = raw.get("currency")
    if coupon_type == "fixed" and (not isinstance(currency, str) or not currency):
        errors.append("Currency is required for fixed amount discounts")

    try:
        expires_at = parse_timestamp(raw.get("expiresAt"))
    except ValueError:
        errors.append("Expiration date must be a valid ISO-8601 timestamp")
    else:
        if expires_at is not None and expires_at <= now:
            errors.append("Expiration date must be in the future")

    max_redemptions = raw.get("maxRedemptions")
    if max_redemptions not in (None, ""):
        try:
            valid_max = int(max_redemptions) >= 1
        except (TypeError, ValueError):
            valid_max = False
        if not valid_max:
            errors.append("Max redemptions must be a positive number")

    listing_ids = raw.get("applicableListingIds")
    if listing_ids is not None and not isinstance(listing_ids, list):
        errors.append("Applicable listing IDs must be an array")

    return errors
