from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from rentalquote.api import server
from rentalquote.api.server import Services, create_app
from rentalquote.domain.commission import Commission, CommissionPair
from rentalquote.domain.coupon import Coupon
from rentalquote.runtime.coupon_store import InMemoryCouponStore
from rentalquote.runtime.marketplace import MarketplaceUnavailable
from rentalquote.tests.fakes import FakeGateway, FakeGeocoder, FakePayments

ORDER = {"bookingStart": "2026-03-01T00:00:00Z", "bookingEnd": "2026-03-04T00:00:00Z"}
DEFAULTS = CommissionPair(Commission(Decimal(10), 0), Commission(Decimal(5), 0))


@pytest.fixture
def coupon_store() -> InMemoryCouponStore:
    return InMemoryCouponStore(
        [Coupon(provider_id="provider-1", code="SAVE20", type="percentage", amount=Decimal(20))]
    )


@pytest.fixture
def payments() -> FakePayments:
    return FakePayments()


@pytest.fixture
def client(make_listing, tax_table, coupon_store, payments) -> TestClient:
    services = Services(
        gateway=FakeGateway(make_listing(), DEFAULTS),
        coupon_store=coupon_store,
        tax_table=tax_table,
        geocoder=FakeGeocoder(),
        payments=payments,
    )
    return TestClient(create_app(services))


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_speculative_line_items(client, payments) -> None:
    response = client.post("/api/transaction-line-items", json={"listingId": {"uuid": "listing-1"}, "orderData": ORDER})

    assert response.status_code == 200
    body = response.json()
    assert [item["code"] for item in body["data"]] == [
        "line-item/day",
        "line-item/provider-commission",
        "line-item/customer-commission",
    ]
    assert body["data"][0]["lineTotal"] == {"amount": 30000, "currency": "CAD"}
    assert body["data"][1]["includeFor"] == ["provider"]
    assert body["meta"]["payinTotal"] == {"amount": 31500, "currency": "CAD"}
    assert body["meta"]["speculative"] is True
    assert payments.created == []


def test_coupon_from_request_body_and_final_payment_intent(client, payments) -> None:
    response = client.post(
        "/api/transaction-line-items",
        json={
            "listingId": "listing-1",
            "orderData": ORDER,
            "coupon": {"code": "save20"},
            "isSpeculative": False,
        },
    )

    body = response.json()
    assert response.status_code == 200
    assert "line-item/coupon-discount" in [item["code"] for item in body["data"]]
    assert body["meta"]["coupon"]["status"] == "valid"
    assert body["meta"]["paymentIntent"]["id"] == "pi_1"
    assert payments.created[0].metadata["couponCode"] == "SAVE20"


def test_line_items_input_errors(client) -> None:
    missing = client.post("/api/transaction-line-items", json={"orderData": ORDER})
    incomplete = client.post("/api/transaction-line-items", json={"listingId": "listing-1", "orderData": {}})
    malformed = client.post(
        "/api/transaction-line-items",
        json={"listingId": "listing-1", "orderData": {**ORDER, "seats": 0}},
    )

    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing required field: listingId"
    assert incomplete.status_code == 400
    assert incomplete.json()["error"].startswith("orderData is missing the following information")
    assert malformed.status_code == 400


def test_marketplace_outage_is_bad_gateway(make_listing, tax_table) -> None:
    class DownGateway(FakeGateway):
        async def show_listing(self, listing_id):
            raise MarketplaceUnavailable("Marketplace API error: 503")

    services = Services(DownGateway(make_listing()), InMemoryCouponStore(), tax_table, FakeGeocoder())
    response = TestClient(create_app(services)).post(
        "/api/transaction-line-items",
        json={"listingId": "listing-1", "orderData": ORDER},
    )

    assert response.status_code == 502
    assert response.json() == {"success": False, "error": "Marketplace API error: 503"}


def test_final_pricing_without_payments_is_unavailable(make_listing, tax_table) -> None:
    services = Services(FakeGateway(make_listing()), InMemoryCouponStore(), tax_table, FakeGeocoder())
    response = TestClient(create_app(services)).post(
        "/api/transaction-line-items",
        json={"listingId": "listing-1", "orderData": ORDER, "isSpeculative": False},
    )

    assert response.status_code == 503


def test_validate_coupon_endpoint(client) -> None:
    ok = client.post("/api/validate-coupon", json={"couponCode": "save20", "listingId": "listing-1", "orderTotal": 10000})
    unknown = client.post("/api/validate-coupon", json={"couponCode": "NOPE", "listingId": "listing-1", "orderTotal": 1})
    missing = client.post("/api/validate-coupon", json={"couponCode": "SAVE20"})
    fractional = client.post(
        "/api/validate-coupon",
        json={"couponCode": "SAVE20", "listingId": "listing-1", "orderTotal": 99.5},
    )

    assert ok.status_code == 200
    assert ok.json()["data"]["orderSummary"] == {"originalTotal": 10000, "discountAmount": 2000, "finalTotal": 8000}
    assert unknown.status_code == 404
    assert unknown.json()["status"] == "not_found"
    assert missing.status_code == 400
    assert fractional.status_code == 400


def test_coupon_crud(client) -> None:
    created = client.post(
        "/api/coupons",
        json={"providerId": "provider-1", "code": "flat5", "type": "fixed", "amount": 5, "currency": "CAD"},
    )
    duplicate = client.post(
        "/api/coupons",
        json={"providerId": "provider-1", "code": "FLAT5", "type": "fixed", "amount": 5, "currency": "CAD"},
    )
    invalid = client.post("/api/coupons", json={"providerId": "provider-1", "code": "ab", "type": "percentage"})
    updated = client.patch("/api/coupons/provider-1/flat5", json={"amount": 7, "usedCount": 99})
    missing = client.patch("/api/coupons/provider-1/GHOST", json={"amount": 7})
    listed = client.get("/api/coupons/provider-1")

    assert created.status_code == 201
    assert created.json()["data"]["code"] == "FLAT5"
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "Coupon code already exists"
    assert invalid.status_code == 400
    assert invalid.json()["details"] == [
        "Coupon code must be at least 3 characters long",
        "Amount must be a positive number",
    ]
    assert updated.json()["data"]["amount"] == 7
    assert updated.json()["data"]["usedCount"] == 0
    assert missing.status_code == 404
    assert sorted(coupon["code"] for coupon in listed.json()["data"]) == ["FLAT5", "SAVE20"]


def test_confirm_payment_counts_coupon(client, payments, coupon_store) -> None:
    client.post(
        "/api/transaction-line-items",
        json={"listingId": "listing-1", "orderData": {**ORDER, "couponCode": "SAVE20"}, "isSpeculative": False},
    )

    response = client.post("/api/confirm-payment", json={"paymentIntentId": "pi_1", "paymentMethodId": "pm_card"})
    missing = client.post("/api/confirm-payment", json={"paymentIntentId": "pi_1"})

    assert response.status_code == 200
    assert response.json()["status"] == "succeeded"
    assert response.json()["redeemedCoupon"]["usedCount"] == 1
    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing required parameters."


class _ClosingClient:
    def __init__(self) -> None:
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


def test_lifespan_closes_clients_it_built(monkeypatch, make_listing, tax_table) -> None:
    marketplace, stripe = _ClosingClient(), _ClosingClient()
    built = Services(
        gateway=FakeGateway(make_listing(), DEFAULTS),
        coupon_store=InMemoryCouponStore(),
        tax_table=tax_table,
        geocoder=FakeGeocoder(),
        resources=(marketplace, stripe),
    )
    monkeypatch.setattr(server, "build_services", lambda: built)

    with TestClient(create_app()) as client:
        assert client.get("/health").status_code == 200
        assert not marketplace.closed

    assert marketplace.closed
    assert stripe.closed


def test_lifespan_leaves_injected_services_open(make_listing, tax_table) -> None:
    marketplace = _ClosingClient()
    services = Services(
        gateway=FakeGateway(make_listing(), DEFAULTS),
        coupon_store=InMemoryCouponStore(),
        tax_table=tax_table,
        geocoder=FakeGeocoder(),
        resources=(marketplace,),
    )

    with TestClient(create_app(services)) as client:
        assert client.get("/health").status_code == 200

    assert not marketplace.closed
