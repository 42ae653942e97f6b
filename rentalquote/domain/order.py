"""Order data bag and the validation pass that runs before pricing."""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from rentalquote.domain.coupon import Coupon
from rentalquote.domain.errors import InvalidOrderDataError
from rentalquote.domain.listing import DATE_RANGE_UNIT_TYPES, Listing, dig

PROVIDER_LOCATION = "providerLocation"
DELIVERY_SHIPPING = "shipping"
DELIVERY_PICKUP = "pickup"
BOOKING_QUESTION_KEYS = ("bookingQuestion1", "bookingQuestion2", "bookingQuestion3")


def _parse_datetime(name: str, value: Any) -> dt.datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidOrderDataError(name, f"not an ISO-8601 timestamp: {value!r}") from exc
    else:
        raise InvalidOrderDataError(name, f"not an ISO-8601 timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed


def _parse_positive_int(name: str, value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidOrderDataError(name, f"expected a positive integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidOrderDataError(name, f"expected a positive integer, got {value!r}") from exc
    if number != value and not (isinstance(value, str) and value.strip() == str(number)):
        raise InvalidOrderDataError(name, f"expected a positive integer, got {value!r}")
    if number <= 0:
        raise InvalidOrderDataError(name, f"expected a positive integer, got {value!r}")
    return number


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


@dataclass(frozen=True)
class OrderData:
    """Per-request order parameters. Owned by the caller, never persisted here."""

    booking_start: dt.datetime | None = None
    booking_end: dt.datetime | None = None
    seats: int | None = None
    stock_reservation_quantity: int | None = None
    delivery_method: str | None = None
    price_variant_name: str | None = None
    price_variant_names: tuple[str, ...] = ()
    coupon_code: str | None = None
    coupon: Coupon | None = None
    location_choice: str | None = None
    selected_state_name: str | None = None
    selected_address: str | None = None
    booking_questions: Mapping[str, str] = field(default_factory=dict)

    def with_coupon(self, coupon: Coupon | None) -> OrderData:
        return replace(self, coupon=coupon)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> OrderData:
        """Parse the camelCase order payload, raising InvalidOrderDataError on malformed fields."""
        raw = raw or {}
        if not isinstance(raw, Mapping):
            raise InvalidOrderDataError("orderData", "expected an object")

        variant_names = raw.get("priceVariantNames") or ()
        if not isinstance(variant_names, (list, tuple)) or not all(isinstance(name, str) for name in variant_names):
            raise InvalidOrderDataError("priceVariantNames", "expected a list of variant names")

        coupon_code = _optional_str(raw.get("couponCode")) or _optional_str(dig(raw, "coupon", "code"))

        questions = {key: str(raw[key]) for key in BOOKING_QUESTION_KEYS if raw.get(key)}

        return cls(
            booking_start=_parse_datetime("bookingStart", raw.get("bookingStart")),
            booking_end=_parse_datetime("bookingEnd", raw.get("bookingEnd")),
            seats=_parse_positive_int("seats", raw.get("seats")),
            stock_reservation_quantity=_parse_positive_int(
                "stockReservationQuantity", raw.get("stockReservationQuantity")
            ),
            delivery_method=_optional_str(raw.get("deliveryMethod")),
            price_variant_name=_optional_str(raw.get("priceVariantName")),
            price_variant_names=tuple(variant_names),
            coupon_code=coupon_code,
            location_choice=_optional_str(raw.get("locationChoice")),
            selected_state_name=_optional_str(dig(raw, "location", "selectedPlace", "stateName")),
            selected_address=_optional_str(dig(raw, "location", "selectedPlace", "address")),
            booking_questions=questions,
        )


def validate_order_data(listing: Listing, order: OrderData) -> None:
    """Reject inconsistent orders before any line item is built.

    Absent quantity inputs are left to the quantity check, which names the missing
    quantity/units/seats fields; this pass only rejects values that are present but
    unusable.
    """
    if order.booking_start is not None and order.booking_end is not None:
        if order.booking_end <= order.booking_start:
            raise InvalidOrderDataError("bookingEnd", "must be after bookingStart")

    if order.delivery_method not in (None, DELIVERY_SHIPPING, DELIVERY_PICKUP):
        raise InvalidOrderDataError("deliveryMethod", f"unsupported delivery method {order.delivery_method!r}")

    if listing.unit_type in DATE_RANGE_UNIT_TYPES or listing.unit_type == "hour":
        if (order.booking_start is None) != (order.booking_end is None):
            missing = "bookingEnd" if order.booking_end is None else "bookingStart"
            raise InvalidOrderDataError(missing, "is required when the other booking boundary is given")

    for name in order.price_variant_names:
        variant = listing.find_variant(name)
        if variant is None:
            raise InvalidOrderDataError("priceVariantNames", f"listing {listing.id} has no price variant {name!r}")
        if not variant.has_valid_price:
            raise InvalidOrderDataError("priceVariantNames", f"price variant {name!r} has no valid price")
