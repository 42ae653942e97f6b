"""Render a priced breakdown as a balanced Beancount transaction for platform bookkeeping."""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from dataclasses import dataclass

from beancount.core import data, flags

from rentalquote.domain.line_item import LineItem, payin_total, payout_total
from rentalquote.domain.money import Money


@dataclass(frozen=True)
class LedgerAccounts:
    clearing: str = "Assets:PaymentProcessor:Clearing"
    provider_payable: str = "Liabilities:Payable:Providers"
    commission_income: str = "Income:Marketplace:Commission"


def _posting(account: str, money: Money) -> data.Posting:
    return data.Posting(account, money.to_amount(), None, None, None, None)


def breakdown_transaction(
    line_items: Sequence[LineItem],
    currency: str,
    *,
    date: datetime.date,
    payee: str,
    narration: str = "",
    meta: dict[str, object] | None = None,
    accounts: LedgerAccounts | None = None,
) -> data.Transaction:
    """Payin lands in clearing, payout is owed to the provider, the difference is commission income."""
    accounts = accounts or LedgerAccounts()
    payin = payin_total(line_items, currency)
    payout = payout_total(line_items, currency)
    commission = payin - payout

    txn = data.Transaction(
        meta=meta or {},
        date=date,
        flag=flags.FLAG_OKAY,
        payee=payee,
        narration=narration,
        tags=frozenset(),
        links=frozenset(),
        postings=[],
    )
    txn.postings.append(_posting(accounts.clearing, payin))
    txn.postings.append(_posting(accounts.provider_payable, -payout))
    if commission.amount != 0:
        txn.postings.append(_posting(accounts.commission_income, -commission))
    return txn
