"""Keyed coupon storage: (provider_id, code) -> Coupon.

Two implementations share the same async interface:

    InMemoryCouponStore   - process-local dict, used by tests and the default server
    JsonFileCouponStore   - one JSON document per provider under a directory

Usage increments are compare-and-swap under an asyncio.Lock, which makes them
atomic within one process. Several processes sharing a JSON directory can still
lose an update (last writer wins), so redemption counts are best-effort.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import json
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from rentalquote.domain.coupon import Coupon, normalize_coupon_code
from rentalquote.runtime.logging import get_logger

logger = get_logger(__name__)


class DuplicateCouponError(ValueError):
    """Raised when a provider already has a coupon with the same code."""


class CouponNotFoundError(KeyError):
    """Raised when updating a coupon that does not exist."""


class CouponStore(Protocol):
    async def list_for_provider(self, provider_id: str) -> list[Coupon]: ...

    async def get(self, provider_id: str, code: str) -> Coupon | None: ...

    async def add(self, coupon: Coupon) -> Coupon: ...

    async def replace(self, coupon: Coupon) -> Coupon: ...

    async def increment_usage(self, provider_id: str, code: str, *, now: dt.datetime) -> Coupon | None: ...


class _CouponStoreBase:
    """Shared CAS logic; subclasses provide _load/_save for one provider's coupons."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    def _load(self, provider_id: str) -> dict[str, Coupon]:
        raise NotImplementedError

    def _save(self, provider_id: str, coupons: dict[str, Coupon]) -> None:
        raise NotImplementedError

    async def list_for_provider(self, provider_id: str) -> list[Coupon]:
        async with self._lock:
            return list(self._load(provider_id).values())

    async def get(self, provider_id: str, code: str) -> Coupon | None:
        async with self._lock:
            return self._load(provider_id).get(normalize_coupon_code(code))

    async def add(self, coupon: Coupon) -> Coupon:
        async with self._lock:
            coupons = self._load(coupon.provider_id)
            if coupon.code in coupons:
                raise DuplicateCouponError("Coupon code already exists")
            coupons[coupon.code] = coupon
            self._save(coupon.provider_id, coupons)
            return coupon

    async def replace(self, coupon: Coupon) -> Coupon:
        async with self._lock:
            coupons = self._load(coupon.provider_id)
            if coupon.code not in coupons:
                raise CouponNotFoundError(coupon.code)
            coupons[coupon.code] = coupon
            self._save(coupon.provider_id, coupons)
            return coupon

    async def increment_usage(self, provider_id: str, code: str, *, now: dt.datetime) -> Coupon | None:
        """Count one redemption unless the coupon is missing or already exhausted.

        Returns:
            The updated coupon, or None when nothing was written.
        """
        wanted = normalize_coupon_code(code)
        async with self._lock:
            coupons = self._load(provider_id)
            current = coupons.get(wanted)
            if current is None:
                logger.warning("Coupon %s not found for provider %s", wanted, provider_id)
                return None
            if current.is_exhausted:
                logger.warning(
                    "Coupon %s already at max redemptions (%s); not counting another",
                    wanted,
                    current.max_redemptions,
                )
                return None
            updated = current.redeemed(now)
            coupons[wanted] = updated
            self._save(provider_id, coupons)
            logger.info("Coupon %s usage count updated to %d", wanted, updated.used_count)
            return updated


class InMemoryCouponStore(_CouponStoreBase):
    def __init__(self, coupons: Iterable[Coupon] = ()) -> None:
        super().__init__()
        self._data: dict[str, dict[str, Coupon]] = {}
        for coupon in coupons:
            self._data.setdefault(coupon.provider_id, {})[coupon.code] = coupon

    def _load(self, provider_id: str) -> dict[str, Coupon]:
        return dict(self._data.get(provider_id, {}))

    def _save(self, provider_id: str, coupons: dict[str, Coupon]) -> None:
        self._data[provider_id] = dict(coupons)


_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileCouponStore(_CouponStoreBase):
    """Coupons persisted as ``<root>/<provider_id>.json`` arrays."""

    def __init__(self, root: Path) -> None:
        super().__init__()
        self.root = root

    def _path(self, provider_id: str) -> Path:
        return self.root / f"{_SAFE_NAME.sub('_', provider_id)}.json"

    def _load(self, provider_id: str) -> dict[str, Coupon]:
        path = self._path(provider_id)
        if not path.exists():
            return {}
        raw = json.loads(path.read_text(encoding="utf-8"))
        coupons = (Coupon.from_dict(item, provider_id=provider_id) for item in raw)
        return {coupon.code: coupon for coupon in coupons}

    def _save(self, provider_id: str, coupons: dict[str, Coupon]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(provider_id)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps([c.to_dict() for c in coupons.values()], indent=2), encoding="utf-8")
        tmp_path.replace(path)
        logger.debug("Saved %d coupon(s) to %s", len(coupons), path)
