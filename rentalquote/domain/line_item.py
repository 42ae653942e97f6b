"""LineItem model and total helpers for transaction price breakdowns.

All line items dedicated to the customer define the "payin total". Similarly, the
sum of all line items included for the provider creates the "payout total". The
platform keeps the difference between the two as its commission.

A line item must carry exactly one pricing mode: ``quantity``, ``percentage``, or
both ``units`` and ``seats``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Literal

from rentalquote.domain.money import Money, Number, normalize_number, round_half_up

Party = Literal["customer", "provider"]

CUSTOMER: Party = "customer"
PROVIDER: Party = "provider"
BOTH_PARTIES: frozenset[str] = frozenset({CUSTOMER, PROVIDER})

CODE_PREFIX = "line-item/"
MAX_CODE_LENGTH = 64

SHIPPING_FEE_CODE = "line-item/shipping-fee"
COUPON_DISCOUNT_CODE = "line-item/coupon-discount"
PROVIDER_COMMISSION_CODE = "line-item/provider-commission"
CUSTOMER_COMMISSION_CODE = "line-item/customer-commission"


def clip_code(code: str) -> str:
    """Trim a generated code to the marketplace's 64 character limit."""
    return code[:MAX_CODE_LENGTH]


def is_commission_code(code: str) -> bool:
    return "commission" in code


@dataclass(frozen=True)
class LineItem:
    """One priced row of a transaction breakdown."""

    code: str
    unit_price: Money
    include_for: frozenset[str] = BOTH_PARTIES
    quantity: Number | None = None
    units: Number | None = None
    seats: int | None = None
    percentage: Number | None = None
    line_total: Money | None = None
    reversal: bool | None = None

    def __post_init__(self) -> None:
        if not self.code.startswith(CODE_PREFIX):
            raise ValueError(f"Line item code must start with {CODE_PREFIX!r}: {self.code!r}")
        if len(self.code) > MAX_CODE_LENGTH:
            raise ValueError(f"Line item code exceeds {MAX_CODE_LENGTH} characters: {self.code!r}")
        if not self.include_for or not self.include_for <= BOTH_PARTIES:
            raise ValueError(f"include_for must be a non-empty subset of {sorted(BOTH_PARTIES)}: {self.include_for}")

        modes = [
            self.quantity is not None,
            self.percentage is not None,
            self.units is not None and self.seats is not None,
        ]
        if sum(modes) != 1:
            raise ValueError(f"Line item {self.code!r} needs exactly one of quantity, percentage, or units and seats")

    @property
    def is_for_customer(self) -> bool:
        return CUSTOMER in self.include_for

    @property
    def is_for_provider(self) -> bool:
        return PROVIDER in self.include_for

    def raw_total(self) -> Number:
        """Unrounded total in minor units (fractional for hour-based quantities)."""
        unit = self.unit_price.amount
        if self.quantity is not None:
            return unit * self.quantity
        if self.units is not None and self.seats is not None:
            return unit * self.units * self.seats
        if self.percentage is not None:
            return Decimal(unit) * Decimal(self.percentage) / 100
        return unit

    def computed_total(self) -> Money:
        return Money(round_half_up(self.raw_total()), self.unit_price.currency)

    def with_totals(self) -> LineItem:
        return replace(self, line_total=self.computed_total(), reversal=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the marketplace API's camelCase field names."""
        result: dict[str, Any] = {
            "code": self.code,
            "unitPrice": self.unit_price.to_dict(),
        }
        if self.quantity is not None:
            result["quantity"] = _json_number(self.quantity)
        if self.units is not None:
            result["units"] = _json_number(self.units)
        if self.seats is not None:
            result["seats"] = self.seats
        if self.percentage is not None:
            result["percentage"] = _json_number(self.percentage)
        if self.line_total is not None:
            result["lineTotal"] = self.line_total.to_dict()
        result["includeFor"] = sorted(self.include_for)
        if self.reversal is not None:
            result["reversal"] = self.reversal
        return result


def _json_number(value: Number) -> int | float:
    value = normalize_number(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def construct_valid_line_items(line_items: Iterable[LineItem]) -> list[LineItem]:
    """Add ``line_total`` and ``reversal`` the way the marketplace API does on its own responses."""
    return [item.with_totals() for item in line_items]


def _sum_for(line_items: Iterable[LineItem], party: str, currency: str) -> Money:
    total = 0
    for item in line_items:
        if party in item.include_for:
            item_total = item.line_total or item.computed_total()
            if item_total.currency != currency:
                raise ValueError(f"Currency mismatch in {item.code!r}: {item_total.currency} vs {currency}")
            total += item_total.amount
    return Money(total, currency)


def payin_total(line_items: Iterable[LineItem], currency: str) -> Money:
    """What the customer pays."""
    return _sum_for(line_items, CUSTOMER, currency)


def payout_total(line_items: Iterable[LineItem], currency: str) -> Money:
    """What the provider receives."""
    return _sum_for(line_items, PROVIDER, currency)


def commission_total(line_items: Iterable[LineItem], currency: str) -> Money:
    """Platform's cut: payin minus payout."""
    items = list(line_items)
    return payin_total(items, currency) - payout_total(items, currency)
