"""Quantity resolution per unit type, plus unit-type specific extra line items."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from rentalquote.domain.line_item import SHIPPING_FEE_CODE, LineItem
from rentalquote.domain.listing import DATE_RANGE_UNIT_TYPES, Listing
from rentalquote.domain.money import Money, Number, normalize_number
from rentalquote.domain.order import DELIVERY_SHIPPING, OrderData


@dataclass(frozen=True)
class QuantityResolution:
    quantity: Number | None = None
    units: Number | None = None
    seats: int | None = None
    extra_line_items: tuple[LineItem, ...] = ()

    @property
    def has_seats(self) -> bool:
        return bool(self.units) and bool(self.seats)

    def missing_fields(self) -> tuple[str, ...]:
        """Names of the absent fields, empty when the order can be priced."""
        if self.quantity or self.has_seats:
            return ()
        missing = []
        if not self.quantity:
            missing.append("quantity")
        if not self.units:
            missing.append("units")
        if not self.seats:
            missing.append("seats")
        return tuple(missing)

    def pricing_fields(self) -> dict[str, Any]:
        """Keyword arguments carrying the pricing mode for a base LineItem."""
        if self.has_seats:
            return {"units": self.units, "seats": self.seats}
        return {"quantity": self.quantity}


def calculate_shipping_fee(
    one_item: int | None,
    additional_items: int | None,
    currency: str,
    quantity: int | None,
) -> Money | None:
    """Shipping for ``quantity`` items: the first at the one-item rate, the rest at the additional rate."""
    if one_item is None or not quantity:
        return None
    if quantity == 1:
        return Money(one_item, currency)
    if additional_items is None:
        return None
    return Money(one_item + additional_items * (quantity - 1), currency)


def calculate_quantity_from_dates(start: dt.datetime, end: dt.datetime, code: str) -> int:
    """Calendar days (or nights) between the booking dates; at least one when end is after start.

    Both ``line-item/day`` and ``line-item/night`` treat the end date as exclusive.
    """
    if code not in ("line-item/day", "line-item/night"):
        raise ValueError(f"Not a date-range line item code: {code!r}")
    if end <= start:
        return 0
    start_date = start.astimezone(dt.UTC).date()
    end_date = end.astimezone(dt.UTC).date()
    return max(1, (end_date - start_date).days)


def calculate_quantity_from_hours(start: dt.datetime, end: dt.datetime) -> Number:
    """Elapsed hours at minute granularity, e.g. 90 minutes -> 1.5."""
    if end <= start:
        return 0
    minutes = int((end - start).total_seconds() // 60)
    return normalize_number(Decimal(minutes) / 60)


def _with_seats(units: Number | None, seats: int | None) -> QuantityResolution:
    # Seats split the quantity into factors, e.g. 3 nights x 4 seats.
    if seats:
        return QuantityResolution(units=units, seats=seats)
    return QuantityResolution(quantity=units)


def _item_resolution(order: OrderData, listing: Listing) -> QuantityResolution:
    quantity = order.stock_reservation_quantity
    extra: tuple[LineItem, ...] = ()
    if order.delivery_method == DELIVERY_SHIPPING:
        shipping_fee = calculate_shipping_fee(
            listing.shipping_price_one_item,
            listing.shipping_price_additional_items,
            listing.currency,
            quantity,
        )
        # Pickup is free, so only shipping ever adds a delivery line item.
        if shipping_fee is not None:
            extra = (LineItem(code=SHIPPING_FEE_CODE, unit_price=shipping_fee, quantity=1),)
    return QuantityResolution(quantity=quantity, extra_line_items=extra)


def resolve_quantity(unit_type: str, order: OrderData, listing: Listing) -> QuantityResolution:
    """Derive quantity, or units and seats, for an order on a listing priced per ``unit_type``."""
    if unit_type == "item":
        return _item_resolution(order, listing)

    if unit_type == "fixed":
        if order.seats:
            return QuantityResolution(units=1, seats=order.seats)
        return QuantityResolution(quantity=1)

    start, end = order.booking_start, order.booking_end
    if unit_type == "hour":
        units = calculate_quantity_from_hours(start, end) if start and end else None
        return _with_seats(units, order.seats)

    if unit_type in DATE_RANGE_UNIT_TYPES:
        code = f"line-item/{unit_type}"
        units = calculate_quantity_from_dates(start, end, code) if start and end else None
        return _with_seats(units, order.seats)

    return QuantityResolution()
