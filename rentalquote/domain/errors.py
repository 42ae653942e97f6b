"""Errors raised by the pure pricing domain."""

from __future__ import annotations

from collections.abc import Sequence


class PricingError(ValueError):
    """Base class for pricing input faults. Always a client error."""

    status = 400


class MissingOrderDataError(PricingError):
    """Raised when neither a quantity nor units and seats can be resolved for an order."""

    def __init__(self, missing_fields: Sequence[str]) -> None:
        self.missing_fields = tuple(missing_fields)
        message = (
            f"orderData is missing the following information: {', '.join(self.missing_fields)}. "
            "Quantity or either units & seats is required."
        )
        super().__init__(message)


class InvalidOrderDataError(PricingError):
    """Raised by the validation pass when an order field is present but unusable."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid orderData.{field}: {reason}")


class InvalidListingError(PricingError):
    """Raised when a listing payload cannot be priced (missing price, bad unit type)."""


class InvalidCouponError(PricingError):
    """Raised when a provider-submitted coupon definition fails validation."""

    def __init__(self, details: Sequence[str]) -> None:
        self.details = tuple(details)
        super().__init__(f"Validation failed: {'; '.join(self.details)}")
