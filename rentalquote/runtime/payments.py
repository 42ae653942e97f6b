"""Payment intents over the Stripe REST API (form-encoded, basic auth with the secret key)."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from rentalquote.runtime.logging import get_logger
from rentalquote.runtime.settings import Settings, get_settings

logger = get_logger(__name__)


class PaymentProcessorError(RuntimeError):
    """Raised when the payment processor is unreachable or rejects a request."""


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    status: str
    amount: int
    currency: str
    client_secret: str | None = None
    metadata: Mapping[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> PaymentIntent:
        return cls(
            id=str(payload["id"]),
            status=str(payload.get("status", "")),
            amount=int(payload.get("amount") or 0),
            currency=str(payload.get("currency", "")).upper(),
            client_secret=payload.get("client_secret"),
            metadata=dict(payload.get("metadata") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "amount": self.amount,
            "currency": self.currency,
            "clientSecret": self.client_secret,
            "metadata": dict(self.metadata),
        }


class StripePaymentProcessor:
    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(timeout=30.0)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, form: dict[str, Any]) -> PaymentIntent:
        if not self.settings.stripe_secret_key:
            raise PaymentProcessorError("STRIPE_SECRET_KEY is not configured")

        url = f"{self.settings.stripe_api_base_url.rstrip('/')}{path}"
        try:
            response = await self._client.post(url, data=form, auth=(self.settings.stripe_secret_key, ""))
        except httpx.RequestError as e:
            logger.error("Failed to connect to payment processor: %s", e)
            raise PaymentProcessorError(f"Failed to connect to payment processor: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code != 200 or not isinstance(payload, dict):
            payload = payload if isinstance(payload, dict) else {}
            message = (payload.get("error") or {}).get("message") or f"HTTP {response.status_code}"
            logger.error("Payment processor rejected %s: %s", path, message)
            raise PaymentProcessorError(message)
        return PaymentIntent.from_api(payload)

    async def create_payment_intent(self, amount: int, currency: str, metadata: Mapping[str, str]) -> PaymentIntent:
        form: dict[str, Any] = {
            "amount": amount,
            "currency": currency.lower(),
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = value
        intent = await self._post("/v1/payment_intents", form)
        logger.info("Created payment intent %s for %d %s", intent.id, amount, currency)
        return intent

    async def confirm_payment_intent(
        self, payment_intent_id: str, payment_method_id: str, return_url: str | None = None
    ) -> PaymentIntent:
        form: dict[str, Any] = {"payment_method": payment_method_id}
        if return_url:
            form["return_url"] = return_url
        intent = await self._post(f"/v1/payment_intents/{payment_intent_id}/confirm", form)
        logger.info("Payment intent %s is %s", intent.id, intent.status)
        return intent
