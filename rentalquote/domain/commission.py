"""Commission resolution (recurring > custom > default) and commission line items."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

from rentalquote.domain.line_item import (
    CUSTOMER_COMMISSION_CODE,
    PROVIDER_COMMISSION_CODE,
    LineItem,
    is_commission_code,
)
from rentalquote.domain.money import Money, Number, round_half_up, to_decimal

Side = Literal["provider", "customer"]

# Last transitions that count a prior transaction as completed or accepted.
QUALIFYING_TRANSITIONS: tuple[str, ...] = (
    "transition/accept",
    "transition/complete",
    "transition/operator-accept",
    "transition/review-1-by-provider",
    "transition/review-2-by-provider",
    "transition/review-1-by-customer",
    "transition/review-2-by-customer",
    "transition/expire-customer-review-period",
    "transition/expire-provider-review-period",
    "transition/expire-review-period",
    "transition/confirm-payment",
)


def _parse_minimum(value: Any) -> int:
    minimum = to_decimal(value)
    if minimum < 0:
        raise ValueError(f"Commission minimum_amount must not be negative: {value!r}")
    return round_half_up(minimum)


def _parse_percentage(value: Any) -> Decimal:
    percentage = to_decimal(value)
    if percentage < 0:
        raise ValueError(f"Commission percentage must not be negative: {value!r}")
    return percentage


@dataclass(frozen=True)
class Commission:
    """Effective commission for one side: a percentage with a minimum amount in minor units."""

    percentage: Decimal = Decimal(0)
    minimum_amount: int = 0

    @property
    def is_noop(self) -> bool:
        return self.percentage == 0 and self.minimum_amount == 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> Commission:
        raw = raw or {}
        return cls(
            percentage=_parse_percentage(raw.get("percentage") or 0),
            minimum_amount=_parse_minimum(raw.get("minimum_amount") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        percentage = self.percentage
        return {
            "percentage": int(percentage) if percentage == percentage.to_integral_value() else float(percentage),
            "minimum_amount": self.minimum_amount,
        }


@dataclass(frozen=True)
class CommissionOverride:
    """Custom commission stored on a party's public profile. Each field overrides independently."""

    percentage: Decimal | None = None
    minimum_amount: int | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> CommissionOverride | None:
        if not raw:
            return None
        percentage = raw.get("percentage")
        minimum = raw.get("minimum_amount")
        return cls(
            percentage=None if percentage in (None, "") else _parse_percentage(percentage),
            minimum_amount=None if minimum in (None, "") else _parse_minimum(minimum),
        )


@dataclass(frozen=True)
class CommissionPair:
    provider: Commission
    customer: Commission

    @classmethod
    def from_asset(cls, data: Mapping[str, Any] | None) -> CommissionPair:
        """Parse the platform commission asset ``{providerCommission, customerCommission}``."""
        data = data or {}
        return cls(
            provider=Commission.from_dict(data.get("providerCommission")),
            customer=Commission.from_dict(data.get("customerCommission")),
        )


@dataclass(frozen=True)
class RecurringCommissionPolicy:
    """Versioned commission constants for customers who already transacted on a listing."""

    version: str
    provider: Commission
    customer: Commission
    applies_to_customer: bool = False

    def for_side(self, side: Side) -> Commission:
        return self.provider if side == "provider" else self.customer


def resolve_commission(
    side: Side,
    *,
    default: Commission,
    custom: CommissionOverride | None,
    recurring: RecurringCommissionPolicy | None,
    has_prior_transactions: bool,
) -> Commission:
    """Pick the effective commission for one side.

    Precedence, per field:
    1. recurring policy, when the customer has a qualifying prior transaction on the
       listing (provider side always, customer side only if the policy says so)
    2. custom commission on the party's profile (an explicit 0 counts)
    3. platform default
    """
    if recurring is not None and has_prior_transactions:
        if side == "provider" or recurring.applies_to_customer:
            return recurring.for_side(side)

    if custom is None:
        return default
    return Commission(
        percentage=custom.percentage if custom.percentage is not None else default.percentage,
        minimum_amount=custom.minimum_amount if custom.minimum_amount is not None else default.minimum_amount,
    )


def commission_basis(line_items: Iterable[LineItem], side: Side) -> Number:
    """Sum of post-coupon line totals counted for ``side``, commission items excluded."""
    basis: Number = 0
    for item in line_items:
        if side not in item.include_for or is_commission_code(item.code):
            continue
        basis += item.raw_total()
    return basis


def commission_amount(commission: Commission, basis: Number) -> int:
    return max(commission.minimum_amount, round_half_up(basis * commission.percentage / 100))


def compute_commission(
    commission: Commission | None,
    base_line_items_with_coupon: Iterable[LineItem],
    side: Side,
    currency: str,
) -> LineItem | None:
    """Commission line item for ``side``: negative for the provider, positive for the customer."""
    if commission is None or commission.is_noop:
        return None

    amount = commission_amount(commission, commission_basis(base_line_items_with_coupon, side))
    if amount == 0:
        return None

    if side == "provider":
        return LineItem(
            code=PROVIDER_COMMISSION_CODE,
            unit_price=Money(-amount, currency),
            quantity=1,
            include_for=frozenset({"provider"}),
        )
    return LineItem(
        code=CUSTOMER_COMMISSION_CODE,
        unit_price=Money(amount, currency),
        quantity=1,
        include_for=frozenset({"customer"}),
    )
