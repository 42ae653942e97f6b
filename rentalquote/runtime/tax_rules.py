"""Runtime loader for the sales tax jurisdiction table."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path

from rentalquote.domain.money import to_decimal
from rentalquote.domain.tax import TaxJurisdiction, TaxTable
from rentalquote.runtime.logging import get_logger
from rentalquote.runtime.settings import get_settings

logger = get_logger(__name__)


@lru_cache(maxsize=4)
def load_tax_table(config_path: str | None = None) -> TaxTable:
    """
    Load sales tax jurisdictions from TOML.

    Returns:
        TaxTable keyed by lower-cased region name and region code.
    """
    path = Path(config_path) if config_path is not None else get_settings().sales_tax_table
    if not path.exists():
        raise FileNotFoundError(f"Sales tax table not found: {path}")

    with open(path, "rb") as f:
        config = tomllib.load(f)

    jurisdictions: list[TaxJurisdiction] = []
    for entry in config.get("jurisdictions", []):
        region = str(entry.get("region", "")).strip()
        rate = entry.get("total_applicable_tax_rate")
        if not region or rate is None:
            logger.warning("Skipping incomplete tax jurisdiction in %s: %s", path, entry)
            continue
        code = str(entry.get("region_code", "")).strip() or None
        jurisdictions.append(TaxJurisdiction(region, to_decimal(rate), region_code=code))

    if not jurisdictions:
        raise ValueError(f"No valid tax jurisdictions found in {path}")

    logger.debug("Loaded %d tax jurisdictions from %s", len(jurisdictions), path)
    return TaxTable(jurisdictions)
