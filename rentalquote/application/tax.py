"""Sales tax resolution: pick the region for an order, then price it from the tax table."""

from __future__ import annotations

from collections.abc import Sequence

from rentalquote.application.ports import AddressGeocoder
from rentalquote.domain.line_item import LineItem
from rentalquote.domain.listing import Listing
from rentalquote.domain.order import PROVIDER_LOCATION, OrderData
from rentalquote.domain.tax import TaxTable, compute_tax
from rentalquote.runtime import get_logger

logger = get_logger(__name__)


async def resolve_tax_region(order: OrderData, listing: Listing, geocoder: AddressGeocoder) -> str | None:
    """Region the order is taxed in.

    Provider-location orders use the listing's geocoded address; everything else
    uses the state the customer picked.
    """
    if order.location_choice != PROVIDER_LOCATION:
        return order.selected_state_name

    if not listing.address:
        logger.info("Listing %s has no address to geocode; no sales tax region", listing.id)
        return None
    result = await geocoder.geocode(listing.address)
    return result.state_name


async def resolve_tax(
    order: OrderData,
    listing: Listing,
    line_items: Sequence[LineItem],
    currency: str,
    tax_table: TaxTable,
    geocoder: AddressGeocoder,
) -> LineItem | None:
    region = await resolve_tax_region(order, listing, geocoder)
    jurisdiction = tax_table.lookup(region)
    if jurisdiction is None:
        if region:
            logger.info("No sales tax jurisdiction for region %r", region)
        return None
    return compute_tax(jurisdiction, line_items, currency)
