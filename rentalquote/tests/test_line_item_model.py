from __future__ import annotations

from decimal import Decimal

import pytest

from rentalquote.domain.line_item import (
    LineItem,
    clip_code,
    commission_total,
    construct_valid_line_items,
    payin_total,
    payout_total,
)
from rentalquote.domain.money import Money


def _e2e_items() -> list[LineItem]:
    return [
        LineItem(code="line-item/day", unit_price=Money(10000, "CAD"), quantity=3),
        LineItem(
            code="line-item/provider-commission",
            unit_price=Money(-3000, "CAD"),
            quantity=1,
            include_for=frozenset({"provider"}),
        ),
        LineItem(
            code="line-item/customer-commission",
            unit_price=Money(1500, "CAD"),
            quantity=1,
            include_for=frozenset({"customer"}),
        ),
    ]


def test_money_parses_major_units_and_checks_currency() -> None:
    assert Money.from_major("25.00", "CAD") == Money(2500, "CAD")
    assert Money.from_major(12.345, "CAD") == Money(1235, "CAD")
    assert str(Money(12345, "CAD")) == "123.45 CAD"
    assert Money(10000, "CAD").to_amount().number == Decimal("100")

    with pytest.raises(ValueError):
        Money(1, "CAD") + Money(1, "USD")
    with pytest.raises(TypeError):
        Money(1.5, "CAD")  # type: ignore[arg-type]


def test_line_item_code_must_be_prefixed_and_short() -> None:
    with pytest.raises(ValueError):
        LineItem(code="day", unit_price=Money(1, "CAD"), quantity=1)
    with pytest.raises(ValueError):
        LineItem(code="line-item/" + "x" * 60, unit_price=Money(1, "CAD"), quantity=1)

    assert len(clip_code("line-item/" + "x" * 60)) == 64


def test_line_item_needs_exactly_one_pricing_mode() -> None:
    with pytest.raises(ValueError):
        LineItem(code="line-item/day", unit_price=Money(1, "CAD"))
    with pytest.raises(ValueError):
        LineItem(code="line-item/day", unit_price=Money(1, "CAD"), quantity=1, percentage=10)
    with pytest.raises(ValueError):
        LineItem(code="line-item/day", unit_price=Money(1, "CAD"), units=2)

    item = LineItem(code="line-item/day", unit_price=Money(1000, "CAD"), units=3, seats=2)
    assert item.raw_total() == 6000


def test_include_for_must_name_known_parties() -> None:
    with pytest.raises(ValueError):
        LineItem(code="line-item/day", unit_price=Money(1, "CAD"), quantity=1, include_for=frozenset())
    with pytest.raises(ValueError):
        LineItem(code="line-item/day", unit_price=Money(1, "CAD"), quantity=1, include_for=frozenset({"operator"}))


def test_construct_valid_line_items_adds_rounded_totals() -> None:
    items = construct_valid_line_items(
        [LineItem(code="line-item/hour", unit_price=Money(3333, "CAD"), quantity=Decimal("1.5"))]
    )

    (item,) = items
    assert item.line_total == Money(5000, "CAD")
    assert item.reversal is False
    assert item.to_dict() == {
        "code": "line-item/hour",
        "unitPrice": {"amount": 3333, "currency": "CAD"},
        "quantity": 1.5,
        "lineTotal": {"amount": 5000, "currency": "CAD"},
        "includeFor": ["customer", "provider"],
        "reversal": False,
    }


def test_payin_payout_and_commission_totals() -> None:
    items = construct_valid_line_items(_e2e_items())

    assert payin_total(items, "CAD") == Money(31500, "CAD")
    assert payout_total(items, "CAD") == Money(27000, "CAD")
    assert commission_total(items, "CAD") == Money(4500, "CAD")
