"""Centralized runtime settings: config file locations and service credentials.

This module provides a single source of truth for everything read from the
environment, so the rest of the package never calls ``os.environ`` directly.

Environment variables:
    RENTALQUOTE_CONFIG_DIR: Directory holding sales_tax.toml / recurring_commission.toml
                            overrides. Default: the bundled rules/ directory.
    MAPBOX_ACCESS_TOKEN: Mapbox geocoding token.
    GOOGLE_MAPS_API_KEY: Google Maps geocoding key.
    GEOCODER_PROVIDERS: Comma separated provider order. Default: "google,mapbox".
    MARKETPLACE_API_BASE_URL, MARKETPLACE_CLIENT_ID, MARKETPLACE_CLIENT_SECRET,
    MARKETPLACE_ASSETS_BASE_URL: Marketplace Integration API access.
    STRIPE_SECRET_KEY: Payment processor key.
    COUPON_STORE_PATH: Directory for the JSON coupon store. Default: provider profiles when
                       marketplace credentials are set, else an in-memory store.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _bundled_rules_dir() -> Path:
    # rentalquote/runtime/settings.py -> rentalquote/rules
    return Path(__file__).resolve().parent.parent / "rules"


def _env(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or default


def _env_or(name: str, default: str) -> str:
    return _env(name) or default


def _env_path(name: str) -> Path | None:
    value = _env(name)
    return Path(value).expanduser() if value else None


@dataclass
class Settings:
    """Runtime configuration resolved once from the environment."""

    config_dir: Path | None = field(default_factory=lambda: _env_path("RENTALQUOTE_CONFIG_DIR"))

    mapbox_access_token: str | None = field(default_factory=lambda: _env("MAPBOX_ACCESS_TOKEN"))
    google_maps_api_key: str | None = field(default_factory=lambda: _env("GOOGLE_MAPS_API_KEY"))
    geocoder_providers: tuple[str, ...] = field(
        default_factory=lambda: tuple(
            p.strip().lower() for p in _env_or("GEOCODER_PROVIDERS", "google,mapbox").split(",") if p.strip()
        )
    )
    geocoder_timeout: float = 10.0

    marketplace_api_base_url: str = field(
        default_factory=lambda: _env_or("MARKETPLACE_API_BASE_URL", "https://flex-integ-api.sharetribe.com")
    )
    marketplace_assets_base_url: str = field(
        default_factory=lambda: _env_or("MARKETPLACE_ASSETS_BASE_URL", "https://cdn.st-api.com")
    )
    marketplace_client_id: str | None = field(default_factory=lambda: _env("MARKETPLACE_CLIENT_ID"))
    marketplace_client_secret: str | None = field(default_factory=lambda: _env("MARKETPLACE_CLIENT_SECRET"))
    marketplace_timeout: float = 30.0

    stripe_secret_key: str | None = field(default_factory=lambda: _env("STRIPE_SECRET_KEY"))
    stripe_api_base_url: str = "https://api.stripe.com"

    coupon_store_path: Path | None = field(default_factory=lambda: _env_path("COUPON_STORE_PATH"))

    # --- Configuration files ---
    @property
    def rules_dir(self) -> Path:
        """Bundled default rule files (rentalquote/rules/)."""
        return _bundled_rules_dir()

    def _config_file(self, name: str) -> Path:
        if self.config_dir is not None and (self.config_dir / name).exists():
            return self.config_dir / name
        return self.rules_dir / name

    @property
    def sales_tax_table(self) -> Path:
        """Sales tax jurisdictions TOML file."""
        return self._config_file("sales_tax.toml")

    @property
    def recurring_commission(self) -> Path:
        """Recurring-customer commission policy TOML file."""
        return self._config_file("recurring_commission.toml")


# Module-level singleton
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the singleton Settings instance.

    Returns:
        The global Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment. Useful for testing."""
    global _settings
    _settings = None
