"""FastAPI server exposing transaction pricing, coupon management and payment confirmation."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from rentalquote.application.checkout import ConfirmPaymentRequest, confirm_payment
from rentalquote.application.coupons import (
    CouponValidationRequest,
    create_coupon,
    update_coupon,
    validate_coupon,
)
from rentalquote.application.ports import AddressGeocoder, CouponStore, MarketplaceGateway, PaymentProcessor
from rentalquote.application.quote import PricingRequest, run_pricing
from rentalquote.domain.commission import RecurringCommissionPolicy
from rentalquote.domain.errors import InvalidCouponError, PricingError
from rentalquote.domain.order import OrderData
from rentalquote.domain.tax import TaxTable
from rentalquote.runtime import (
    get_logger,
    get_settings,
    load_recurring_commission_policy,
    load_tax_table,
    uvicorn_log_config,
)
from rentalquote.runtime.coupon_store import (
    CouponNotFoundError,
    DuplicateCouponError,
    InMemoryCouponStore,
    JsonFileCouponStore,
)
from rentalquote.runtime.geocoding import Geocoder
from rentalquote.runtime.marketplace import (
    HttpMarketplaceGateway,
    MarketplaceClient,
    MarketplaceUnavailable,
    ProfileCouponStore,
)
from rentalquote.runtime.payments import PaymentProcessorError, StripePaymentProcessor
from rentalquote.runtime.settings import Settings

logger = get_logger(__name__)


@dataclass
class Services:
    """Collaborators shared by every request."""

    gateway: MarketplaceGateway
    coupon_store: CouponStore
    tax_table: TaxTable
    geocoder: AddressGeocoder
    payments: PaymentProcessor | None = None
    recurring: RecurringCommissionPolicy | None = None
    # HTTP clients opened for these services, closed on shutdown.
    resources: tuple[Any, ...] = ()

    async def aclose(self) -> None:
        for resource in self.resources:
            await resource.aclose()


def build_services(settings: Settings | None = None) -> Services:
    """Wire the runtime implementations from settings."""
    settings = settings or get_settings()
    client = MarketplaceClient(settings)

    coupon_store: CouponStore
    if settings.coupon_store_path is not None:
        coupon_store = JsonFileCouponStore(settings.coupon_store_path)
    elif settings.marketplace_client_id and settings.marketplace_client_secret:
        coupon_store = ProfileCouponStore(client)
    else:
        logger.warning("No coupon store configured; coupons live in memory for this process only")
        coupon_store = InMemoryCouponStore()

    payments = StripePaymentProcessor(settings) if settings.stripe_secret_key else None

    return Services(
        gateway=HttpMarketplaceGateway(client),
        coupon_store=coupon_store,
        tax_table=load_tax_table(str(settings.sales_tax_table)),
        geocoder=Geocoder(settings),
        payments=payments,
        recurring=load_recurring_commission_policy(str(settings.recurring_commission)),
        resources=(client, payments) if payments is not None else (client,),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"success": False, "error": message, **extra}, status_code=status_code)


def _listing_id(raw: Any) -> str | None:
    if isinstance(raw, Mapping):
        raw = raw.get("uuid")
    return raw if isinstance(raw, str) and raw else None


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise PricingError("Request body must be a JSON object") from exc
    if not isinstance(body, dict):
        raise PricingError("Request body must be a JSON object")
    return body


def create_app(services: Services | None = None) -> FastAPI:
    """Build the app. Without ``services`` the runtime implementations are wired on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = None
        if getattr(app.state, "services", None) is None:
            owned = app.state.services = build_services()
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()
                app.state.services = None

    app = FastAPI(title="Rental Quote", lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(PricingError)
    async def pricing_error(request: Request, exc: PricingError) -> JSONResponse:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return _error(str(exc), exc.status)

    @app.exception_handler(MarketplaceUnavailable)
    async def marketplace_unavailable(request: Request, exc: MarketplaceUnavailable) -> JSONResponse:
        return _error(str(exc), 502)

    @app.exception_handler(PaymentProcessorError)
    async def payment_error(request: Request, exc: PaymentProcessorError) -> JSONResponse:
        return _error(str(exc), 502)

    @app.post("/api/transaction-line-items")
    async def transaction_line_items(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
        """Price an order; final requests also open a payment intent."""
        body = await _json_body(request)
        listing_id = _listing_id(body.get("listingId"))
        if listing_id is None:
            return _error("Missing required field: listingId", 400)

        raw_order = body.get("orderData") or {}
        if not isinstance(raw_order, Mapping):
            return _error("orderData must be an object", 400)
        raw_order = dict(raw_order)
        coupon_code = (body.get("coupon") or {}).get("code") if isinstance(body.get("coupon"), Mapping) else None
        if coupon_code and not raw_order.get("couponCode"):
            raw_order["couponCode"] = coupon_code

        speculative = body.get("isSpeculative", True) is not False
        if not speculative and services.payments is None:
            return _error("Payments are not configured", 503)

        result = await run_pricing(
            PricingRequest(
                listing_id=listing_id,
                order=OrderData.from_dict(raw_order),
                customer_id=body.get("customerId"),
                speculative=speculative,
            ),
            gateway=services.gateway,
            coupon_store=services.coupon_store,
            tax_table=services.tax_table,
            geocoder=services.geocoder,
            recurring=services.recurring,
            payments=services.payments,
        )
        return JSONResponse(result.to_dict())

    @app.post("/api/validate-coupon")
    async def validate_coupon_endpoint(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
        body = await _json_body(request)
        code = body.get("couponCode") or body.get("code")
        listing_id = _listing_id(body.get("listingId"))
        order_total = body.get("orderTotal")
        if not code or listing_id is None or order_total is None:
            return _error("Missing required fields: couponCode, listingId, orderTotal", 400)
        if isinstance(order_total, bool) or not isinstance(order_total, int):
            return _error("orderTotal must be an integer amount in minor units", 400)

        result = await validate_coupon(
            CouponValidationRequest(
                code=code,
                listing_id=listing_id,
                order_total=order_total,
                currency=body.get("currency"),
            ),
            gateway=services.gateway,
            coupon_store=services.coupon_store,
        )
        if result.ok:
            status_code = 200
        elif result.lookup.status == "not_found":
            status_code = 404
        else:
            status_code = 400
        return JSONResponse(result.to_dict(), status_code=status_code)

    @app.post("/api/coupons")
    async def create_coupon_endpoint(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
        body = await _json_body(request)
        provider_id = body.pop("providerId", None)
        if not provider_id:
            return _error("Missing required field: providerId", 400)
        try:
            coupon = await create_coupon(provider_id, body, coupon_store=services.coupon_store)
        except InvalidCouponError as exc:
            return _error("Validation failed", 400, details=list(exc.details))
        except DuplicateCouponError as exc:
            return _error(str(exc), 400)
        return JSONResponse({"success": True, "data": coupon.to_dict()}, status_code=201)

    @app.get("/api/coupons/{provider_id}")
    async def list_coupons(provider_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
        coupons = await services.coupon_store.list_for_provider(provider_id)
        return {"success": True, "data": [coupon.to_dict() for coupon in coupons]}

    @app.patch("/api/coupons/{provider_id}/{code}")
    async def update_coupon_endpoint(
        provider_id: str,
        code: str,
        request: Request,
        services: Services = Depends(get_services),
    ) -> JSONResponse:
        body = await _json_body(request)
        try:
            coupon = await update_coupon(provider_id, code, body, coupon_store=services.coupon_store)
        except CouponNotFoundError:
            return _error("Coupon not found", 404)
        except InvalidCouponError as exc:
            return _error("Validation failed", 400, details=list(exc.details))
        return JSONResponse({"success": True, "data": coupon.to_dict()})

    @app.post("/api/confirm-payment")
    async def confirm_payment_endpoint(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
        """Confirm a payment intent; a successful charge counts the coupon it carried."""
        body = await _json_body(request)
        payment_intent_id = body.get("paymentIntentId")
        payment_method_id = body.get("paymentMethodId")
        if not payment_intent_id or not payment_method_id:
            return _error("Missing required parameters.", 400)
        if services.payments is None:
            return _error("Payments are not configured", 503)

        result = await confirm_payment(
            ConfirmPaymentRequest(payment_intent_id, payment_method_id, body.get("returnUrl")),
            processor=services.payments,
            coupon_store=services.coupon_store,
        )
        payload: dict[str, Any] = {
            "status": result.status,
            "paymentIntent": result.payment_intent.to_dict(),
        }
        if result.redeemed_coupon is not None:
            payload["redeemedCoupon"] = result.redeemed_coupon.to_dict()
        return JSONResponse(payload)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000, log_config=uvicorn_log_config())
