"""Runtime loader for the versioned recurring-customer commission policy."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path

from rentalquote.domain.commission import Commission, RecurringCommissionPolicy
from rentalquote.runtime.logging import get_logger
from rentalquote.runtime.settings import get_settings

logger = get_logger(__name__)


@lru_cache(maxsize=4)
def load_recurring_commission_policy(config_path: str | None = None) -> RecurringCommissionPolicy:
    """
    Load the recurring commission policy from TOML.

    Raises:
        FileNotFoundError: If the policy file does not exist.
        ValueError: If the file has no version or a commission table is malformed.
    """
    path = Path(config_path) if config_path is not None else get_settings().recurring_commission
    if not path.exists():
        raise FileNotFoundError(f"Recurring commission policy not found: {path}")

    with open(path, "rb") as f:
        config = tomllib.load(f)

    version = str(config.get("version", "")).strip()
    if not version:
        raise ValueError(f"Recurring commission policy in {path} has no version")

    policy = RecurringCommissionPolicy(
        version=version,
        provider=Commission.from_dict(config.get("provider_commission")),
        customer=Commission.from_dict(config.get("customer_commission")),
        applies_to_customer=bool(config.get("applies_to_customer", False)),
    )
    logger.debug("Loaded recurring commission policy %s from %s", policy.version, path)
    return policy
