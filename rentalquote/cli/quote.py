"""CLI commands for offline quoting and serving the pricing API."""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from beancount.parser import printer

from rentalquote.application.line_items import compute_line_items
from rentalquote.domain.commission import CommissionPair
from rentalquote.domain.coupon import Coupon, find_redeemable_coupon
from rentalquote.domain.ledger import breakdown_transaction
from rentalquote.domain.line_item import (
    LineItem,
    commission_total,
    construct_valid_line_items,
    payin_total,
    payout_total,
)
from rentalquote.domain.listing import Listing
from rentalquote.domain.order import OrderData
from rentalquote.runtime import get_logger, load_tax_table, uvicorn_log_config
from rentalquote.runtime.geocoding import Geocoder

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuoteInput:
    """Everything needed to price an order without calling the marketplace."""

    listing: Listing
    order: OrderData
    commissions: CommissionPair
    coupons: tuple[Coupon, ...] = ()


def parse_quote_input(raw: dict[str, Any]) -> QuoteInput:
    listing = Listing.from_api(raw.get("listing") or {})
    coupons = tuple(
        Coupon.from_dict(item, provider_id=listing.author_id or item.get("providerId"))
        for item in raw.get("coupons") or ()
    )
    return QuoteInput(
        listing=listing,
        order=OrderData.from_dict(raw.get("orderData")),
        commissions=CommissionPair.from_asset(raw.get("commission")),
        coupons=coupons,
    )


def _read_json(source: str) -> dict[str, Any]:
    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"{source}: expected a JSON object")
    return data


async def price_quote(quote: QuoteInput, tax_table_path: str | None = None) -> list[LineItem]:
    order = quote.order
    if order.coupon_code and order.coupon is None:
        lookup = find_redeemable_coupon(
            quote.coupons,
            order.coupon_code,
            listing_id=quote.listing.id,
            now=dt.datetime.now(dt.UTC),
            currency=quote.listing.currency,
        )
        if lookup.ok:
            order = order.with_coupon(lookup.coupon)
        else:
            print(f"Coupon {lookup.code} not applied: {lookup.message}", file=sys.stderr)

    line_items = await compute_line_items(
        quote.listing,
        order,
        quote.commissions.provider,
        quote.commissions.customer,
        tax_table=load_tax_table(tax_table_path),
        geocoder=Geocoder(),
    )
    return construct_valid_line_items(line_items)


def cmd_quote(args: argparse.Namespace) -> int:
    """Price a quote file and print line items as JSON, or as a Beancount transaction."""
    try:
        quote = parse_quote_input(_read_json(args.input))
        line_items = asyncio.run(price_quote(quote, args.tax_table))
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    currency = quote.listing.currency
    if args.beancount:
        txn = breakdown_transaction(
            line_items,
            currency,
            date=dt.date.today(),
            payee=f"Listing {quote.listing.id}",
            narration="Transaction line items",
        )
        print(printer.format_entry(txn), end="")
        return 0

    payload = {
        "data": [item.to_dict() for item in line_items],
        "meta": {
            "payinTotal": payin_total(line_items, currency).to_dict(),
            "payoutTotal": payout_total(line_items, currency).to_dict(),
            "commissionTotal": commission_total(line_items, currency).to_dict(),
        },
    }
    print(json.dumps(payload, indent=2))
    return 0


def cmd_tax_rate(args: argparse.Namespace) -> int:
    """Show the combined sales tax rate for a region."""
    table = load_tax_table(args.tax_table)
    jurisdiction = table.lookup(args.region)
    if jurisdiction is None:
        print(f"No sales tax jurisdiction for {args.region!r}")
        return 1
    print(f"{jurisdiction.region}: {jurisdiction.total_applicable_tax_rate}%")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the pricing API server."""
    import uvicorn

    from rentalquote.api.server import create_app

    logger.info("Starting pricing server on %s:%d", args.host, args.port)
    uvicorn.run(create_app(), host=args.host, port=args.port, log_config=uvicorn_log_config())
    return 0
