from __future__ import annotations

import datetime as dt
import re

from beancount.core import flags
from beancount.core.number import D
from beancount.parser import printer

from rentalquote.domain.ledger import LedgerAccounts, breakdown_transaction
from rentalquote.domain.line_item import LineItem
from rentalquote.domain.money import Money


def _breakdown() -> list[LineItem]:
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


def test_breakdown_balances_payin_payout_and_commission() -> None:
    txn = breakdown_transaction(_breakdown(), "CAD", date=dt.date(2026, 3, 1), payee="Listing listing-1")

    assert txn.flag == flags.FLAG_OKAY
    assert [(p.account, p.units.number, p.units.currency) for p in txn.postings] == [
        ("Assets:PaymentProcessor:Clearing", D("315"), "CAD"),
        ("Liabilities:Payable:Providers", D("-270"), "CAD"),
        ("Income:Marketplace:Commission", D("-45"), "CAD"),
    ]
    assert sum(p.units.number for p in txn.postings) == 0


def test_commission_free_breakdown_has_two_postings() -> None:
    accounts = LedgerAccounts(clearing="Assets:Stripe")
    items = [LineItem(code="line-item/night", unit_price=Money(12345, "CAD"), quantity=1)]

    txn = breakdown_transaction(items, "CAD", date=dt.date(2026, 3, 1), payee="Listing x", accounts=accounts)

    assert [p.account for p in txn.postings] == ["Assets:Stripe", "Liabilities:Payable:Providers"]
    assert txn.postings[0].units.number == D("123.45")


def test_printed_entry() -> None:
    txn = breakdown_transaction(
        _breakdown(),
        "CAD",
        date=dt.date(2026, 3, 1),
        payee="Listing listing-1",
        narration="Transaction line items",
    )

    text = printer.format_entry(txn)

    assert text.startswith('2026-03-01 * "Listing listing-1" "Transaction line items"')
    assert re.search(r"Assets:PaymentProcessor:Clearing\s+315 CAD", text)
    assert re.search(r"Income:Marketplace:Commission\s+-45 CAD", text)
