"""Money value type expressed in integer minor currency units."""

from __future__ import annotations

import decimal
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from beancount.core import amount
from beancount.core.number import D

MINOR_UNITS_PER_MAJOR = 100

Number = int | Decimal


def round_half_up(value: Number) -> int:
    """Round a possibly fractional minor-unit amount to the nearest whole unit."""
    if isinstance(value, int):
        return value
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_decimal(value: Any) -> Decimal:
    """Parse user/config supplied numbers (str, int, float, Decimal) into a Decimal."""
    if isinstance(value, bool):
        raise TypeError(f"Expected a number, got {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() first so 12.3 stays 12.3 instead of its binary expansion
        value = str(value)
    if isinstance(value, str) and not value.strip():
        raise ValueError("Not a number: empty string")
    try:
        number = D(value) if isinstance(value, str) else Decimal(value)
    except (decimal.InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"Not a number: {value!r}") from exc
    if number is None or not number.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return number


def normalize_number(value: Number) -> Number:
    """Collapse integral Decimals back to int so quantities serialize cleanly."""
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return int(value)
    return value


@dataclass(frozen=True)
class Money:
    """An amount of minor units (cents) in a single ISO 4217 currency."""

    amount: int
    currency: str

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(f"Money amount must be an integer number of minor units, got {self.amount!r}")
        if not self.currency:
            raise ValueError("Money currency is required")

    @classmethod
    def from_major(cls, value: Any, currency: str) -> Money:
        """Build Money from a major-unit amount such as "25.00"."""
        return cls(round_half_up(to_decimal(value) * MINOR_UNITS_PER_MAJOR), currency)

    @classmethod
    def from_dict(cls, raw: Any) -> Money:
        if not isinstance(raw, dict):
            raise ValueError(f"Money must be an object with amount and currency, got {raw!r}")
        raw_amount = raw.get("amount")
        if isinstance(raw_amount, bool) or not isinstance(raw_amount, int):
            raise ValueError(f"Money amount must be an integer, got {raw_amount!r}")
        currency = raw.get("currency")
        if not isinstance(currency, str) or not currency:
            raise ValueError(f"Money currency must be a non-empty string, got {currency!r}")
        return cls(raw_amount, currency)

    def __neg__(self) -> Money:
        return Money(-self.amount, self.currency)

    def __add__(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def _check_currency(self, other: Money) -> None:
        if other.currency != self.currency:
            raise ValueError(f"Currency mismatch: {self.currency} vs {other.currency}")

    def to_amount(self) -> amount.Amount:
        """Major-unit beancount Amount, used for display and ledger export."""
        return amount.Amount(D(self.amount) / MINOR_UNITS_PER_MAJOR, self.currency)

    def to_dict(self) -> dict[str, Any]:
        return {"amount": self.amount, "currency": self.currency}

    def __str__(self) -> str:
        return f"{self.to_amount().number:.2f} {self.currency}"


def zero(currency: str) -> Money:
    return Money(0, currency)
