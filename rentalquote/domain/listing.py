"""Listing model consumed from the marketplace API."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from rentalquote.domain.errors import InvalidListingError
from rentalquote.domain.money import Money

UnitType = Literal["day", "night", "hour", "fixed", "item"]

UNIT_TYPES: frozenset[str] = frozenset({"day", "night", "hour", "fixed", "item"})
BOOKABLE_UNIT_TYPES: frozenset[str] = frozenset({"day", "night", "hour", "fixed"})
DATE_RANGE_UNIT_TYPES: frozenset[str] = frozenset({"day", "night"})


def dig(data: Any, *path: str) -> Any:
    """Walk nested mappings, returning None as soon as a key is missing."""
    current = data
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


@dataclass(frozen=True)
class PriceVariant:
    """A named alternate price/duration pairing (e.g. a service tier)."""

    name: str
    price_in_subunits: int | None = None
    booking_length_in_minutes: int | None = None

    @property
    def has_valid_price(self) -> bool:
        return self.price_in_subunits is not None and self.price_in_subunits >= 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> PriceVariant:
        return cls(
            name=str(raw.get("name", "")),
            price_in_subunits=_optional_int(raw.get("priceInSubunits")),
            booking_length_in_minutes=_optional_int(raw.get("bookingLengthInMinutes")),
        )


@dataclass(frozen=True)
class Listing:
    id: str
    author_id: str | None
    unit_type: str
    price: Money
    price_variants: tuple[PriceVariant, ...] = ()
    price_variations_enabled: bool = False
    shipping_price_one_item: int | None = None
    shipping_price_additional_items: int | None = None
    address: str | None = None
    public_data: Mapping[str, Any] = field(default_factory=dict)

    @property
    def currency(self) -> str:
        return self.price.currency

    @property
    def is_bookable(self) -> bool:
        return self.unit_type in BOOKABLE_UNIT_TYPES

    def find_variant(self, name: str | None) -> PriceVariant | None:
        if not name:
            return None
        for variant in self.price_variants:
            if variant.name == name:
                return variant
        return None

    @classmethod
    def from_api(cls, resource: Mapping[str, Any]) -> Listing:
        """Build a Listing from a marketplace API resource (``data`` member of a listing response)."""
        listing_id = dig(resource, "id", "uuid") or dig(resource, "id")
        if not isinstance(listing_id, str) or not listing_id:
            raise InvalidListingError("Listing resource has no id")

        attributes = dig(resource, "attributes") or {}
        public_data = dig(attributes, "publicData") or {}

        raw_price = dig(attributes, "price")
        try:
            price = Money.from_dict(raw_price)
        except ValueError as exc:
            raise InvalidListingError(f"Listing {listing_id} has no usable price: {exc}") from exc

        unit_type = public_data.get("unitType")
        if unit_type not in UNIT_TYPES:
            raise InvalidListingError(f"Listing {listing_id} has unsupported unitType {unit_type!r}")

        author_id = dig(resource, "relationships", "author", "data", "id", "uuid") or dig(
            resource, "relationships", "author", "data", "id"
        )
        variants = tuple(
            PriceVariant.from_dict(raw) for raw in public_data.get("priceVariants") or () if isinstance(raw, Mapping)
        )
        address = dig(public_data, "location", "address")

        return cls(
            id=listing_id,
            author_id=author_id if isinstance(author_id, str) else None,
            unit_type=unit_type,
            price=price,
            price_variants=variants,
            price_variations_enabled=bool(public_data.get("priceVariationsEnabled")),
            shipping_price_one_item=_optional_int(public_data.get("shippingPriceInSubunitsOneItem")),
            shipping_price_additional_items=_optional_int(public_data.get("shippingPriceInSubunitsAdditionalItems")),
            address=address if isinstance(address, str) and address else None,
            public_data=public_data,
        )
