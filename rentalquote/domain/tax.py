"""Sales tax jurisdictions and the tax line item."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from rentalquote.domain.line_item import CODE_PREFIX, LineItem, clip_code, is_commission_code
from rentalquote.domain.money import Money, Number, round_half_up


@dataclass(frozen=True)
class TaxJurisdiction:
    region: str
    total_applicable_tax_rate: Decimal
    region_code: str | None = None


class TaxTable:
    """Read-only region -> rate table. Region lookups are case-insensitive."""

    def __init__(self, jurisdictions: Iterable[TaxJurisdiction]) -> None:
        self._by_region: dict[str, TaxJurisdiction] = {}
        for jurisdiction in jurisdictions:
            self._by_region[jurisdiction.region.strip().lower()] = jurisdiction
            if jurisdiction.region_code:
                self._by_region.setdefault(jurisdiction.region_code.strip().lower(), jurisdiction)

    def __len__(self) -> int:
        return len({j.region for j in self._by_region.values()})

    def lookup(self, region: str | None) -> TaxJurisdiction | None:
        if not region:
            return None
        return self._by_region.get(region.strip().lower())

    @classmethod
    def from_rates(cls, rates: Mapping[str, Number | str]) -> TaxTable:
        return cls(TaxJurisdiction(region, Decimal(str(rate))) for region, rate in rates.items())


def tax_code(region: str) -> str:
    return clip_code(f"{CODE_PREFIX}Sales Tax ({region})")


def taxable_subtotal(line_items: Iterable[LineItem]) -> Number:
    """Pre-tax, pre-commission subtotal of base items plus any coupon discount."""
    subtotal: Number = 0
    for item in line_items:
        if is_commission_code(item.code):
            continue
        subtotal += item.raw_total()
    return subtotal


def compute_tax(jurisdiction: TaxJurisdiction, line_items: Iterable[LineItem], currency: str) -> LineItem | None:
    amount = round_half_up(taxable_subtotal(line_items) * jurisdiction.total_applicable_tax_rate / 100)
    if amount <= 0:
        return None
    return LineItem(
        code=tax_code(jurisdiction.region),
        unit_price=Money(amount, currency),
        quantity=1,
    )
