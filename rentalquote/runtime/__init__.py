"""Runtime infrastructure for rentalquote.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Settings resolution via get_settings(), Settings
- Rule/config loaders for the sales tax table and recurring commission policy

Usage:
    from rentalquote.runtime import get_logger, get_settings

    logger = get_logger(__name__)
    settings = get_settings()
    print(settings.sales_tax_table)
"""

from rentalquote.runtime.commission_rules import load_recurring_commission_policy
from rentalquote.runtime.logging import (
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    configure_logging,
    get_logger,
    parse_log_level,
    set_log_level,
    uvicorn_log_config,
)
from rentalquote.runtime.settings import Settings, get_settings, reset_settings
from rentalquote.runtime.tax_rules import load_tax_table

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_log_level",
    "parse_log_level",
    "uvicorn_log_config",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FORMAT_DEBUG",
    # Rules
    "load_tax_table",
    "load_recurring_commission_policy",
    # Settings
    "get_settings",
    "reset_settings",
    "Settings",
]
