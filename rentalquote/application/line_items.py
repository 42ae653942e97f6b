"""Line item assembly: the full breakdown for one order on one listing."""

from __future__ import annotations

from rentalquote.application.ports import AddressGeocoder
from rentalquote.application.tax import resolve_tax
from rentalquote.domain.commission import Commission, compute_commission
from rentalquote.domain.coupon import apply_coupon
from rentalquote.domain.errors import MissingOrderDataError
from rentalquote.domain.line_item import CODE_PREFIX, LineItem, clip_code
from rentalquote.domain.listing import Listing
from rentalquote.domain.money import Money
from rentalquote.domain.order import OrderData, validate_order_data
from rentalquote.domain.quantity import QuantityResolution, resolve_quantity
from rentalquote.domain.tax import TaxTable
from rentalquote.runtime import get_logger

logger = get_logger(__name__)


def resolve_unit_price(listing: Listing, order: OrderData) -> Money:
    """Selected variant price for bookable listings with variations enabled, else the listing price."""
    variant = listing.find_variant(order.price_variant_name)
    if listing.is_bookable and listing.price_variations_enabled and variant is not None and variant.has_valid_price:
        return Money(variant.price_in_subunits, listing.currency)  # type: ignore[arg-type]
    return listing.price


def build_base_line_items(
    listing: Listing,
    order: OrderData,
    unit_price: Money,
    resolution: QuantityResolution,
) -> list[LineItem]:
    """Unit-type extras followed by the base item, or one item per selected price variant."""
    items = list(resolution.extra_line_items)

    if not order.price_variant_names:
        items.append(
            LineItem(
                code=f"{CODE_PREFIX}{listing.unit_type}",
                unit_price=unit_price,
                **resolution.pricing_fields(),
            )
        )
        return items

    # validate_order_data has already rejected unknown or unpriced variants.
    for name in order.price_variant_names:
        variant = listing.find_variant(name)
        assert variant is not None
        items.append(
            LineItem(
                code=clip_code(f"{CODE_PREFIX}{name} ({variant.booking_length_in_minutes} minutes)"),
                unit_price=Money(variant.price_in_subunits, listing.currency),  # type: ignore[arg-type]
                quantity=order.seats or 1,
            )
        )
    return items


async def compute_line_items(
    listing: Listing,
    order: OrderData,
    provider_commission: Commission | None,
    customer_commission: Commission | None,
    *,
    tax_table: TaxTable,
    geocoder: AddressGeocoder,
) -> list[LineItem]:
    """Price an order.

    Order of the result: base/extra items, sales tax, coupon discount, provider
    commission, customer commission. Only missing or invalid order data raises;
    tax, coupon and commission items are simply left out when they do not apply.

    Raises:
        InvalidOrderDataError: order fields are present but unusable.
        MissingOrderDataError: neither quantity nor units and seats resolve.
    """
    validate_order_data(listing, order)

    currency = listing.currency
    unit_price = resolve_unit_price(listing, order)

    resolution = resolve_quantity(listing.unit_type, order, listing)
    missing = resolution.missing_fields()
    if missing:
        raise MissingOrderDataError(missing)

    base_items = build_base_line_items(listing, order, unit_price, resolution)

    coupon_item = apply_coupon(order.coupon, base_items, currency)
    coupon_items = [coupon_item] if coupon_item is not None else []
    if coupon_item is not None:
        logger.debug("Coupon %s discounts %s", order.coupon.code, -coupon_item.unit_price)  # type: ignore[union-attr]

    base_with_coupon = [*base_items, *coupon_items]

    tax_item = await resolve_tax(order, listing, base_with_coupon, currency, tax_table, geocoder)
    tax_items = [tax_item] if tax_item is not None else []

    commission_items = [
        item
        for item in (
            compute_commission(provider_commission, base_with_coupon, "provider", currency),
            compute_commission(customer_commission, base_with_coupon, "customer", currency),
        )
        if item is not None
    ]

    return [*base_items, *tax_items, *coupon_items, *commission_items]
