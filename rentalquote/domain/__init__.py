"""Core pricing domain: pure models and calculations with no I/O.

This package provides:
- Money, LineItem: breakdown value types and payin/payout totals
- Listing, OrderData: consumed inputs and the order validation pass
- Quantity, coupon, commission and tax calculators

Usage:
    from rentalquote.domain import LineItem, Money, OrderData
"""

from rentalquote.domain.commission import (
    Commission,
    CommissionOverride,
    CommissionPair,
    RecurringCommissionPolicy,
    compute_commission,
    resolve_commission,
)
from rentalquote.domain.coupon import Coupon, CouponLookup, apply_coupon, find_redeemable_coupon
from rentalquote.domain.errors import (
    InvalidListingError,
    InvalidOrderDataError,
    MissingOrderDataError,
    PricingError,
)
from rentalquote.domain.line_item import (
    LineItem,
    commission_total,
    construct_valid_line_items,
    payin_total,
    payout_total,
)
from rentalquote.domain.listing import Listing, PriceVariant
from rentalquote.domain.money import Money
from rentalquote.domain.order import OrderData, validate_order_data
from rentalquote.domain.quantity import QuantityResolution, resolve_quantity
from rentalquote.domain.tax import TaxJurisdiction, TaxTable, compute_tax

__all__ = [
    "Commission",
    "CommissionOverride",
    "CommissionPair",
    "RecurringCommissionPolicy",
    "compute_commission",
    "resolve_commission",
    "Coupon",
    "CouponLookup",
    "apply_coupon",
    "find_redeemable_coupon",
    "PricingError",
    "MissingOrderDataError",
    "InvalidOrderDataError",
    "InvalidListingError",
    "LineItem",
    "construct_valid_line_items",
    "payin_total",
    "payout_total",
    "commission_total",
    "Listing",
    "PriceVariant",
    "Money",
    "OrderData",
    "validate_order_data",
    "QuantityResolution",
    "resolve_quantity",
    "TaxJurisdiction",
    "TaxTable",
    "compute_tax",
]
