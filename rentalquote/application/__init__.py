"""Pricing workflows: orchestrate domain calculations over runtime services."""

from rentalquote.application.checkout import ConfirmPaymentRequest, ConfirmPaymentResult, confirm_payment
from rentalquote.application.coupons import (
    CouponValidationRequest,
    CouponValidationResult,
    create_coupon,
    update_coupon,
    validate_coupon,
)
from rentalquote.application.line_items import compute_line_items
from rentalquote.application.quote import PricingRequest, PricingResult, run_pricing

__all__ = [
    "compute_line_items",
    "PricingRequest",
    "PricingResult",
    "run_pricing",
    "CouponValidationRequest",
    "CouponValidationResult",
    "validate_coupon",
    "create_coupon",
    "update_coupon",
    "ConfirmPaymentRequest",
    "ConfirmPaymentResult",
    "confirm_payment",
]
