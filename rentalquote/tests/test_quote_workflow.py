from __future__ import annotations

import asyncio
from decimal import Decimal

from rentalquote.application.quote import PricingRequest, run_pricing
from rentalquote.domain.commission import Commission, CommissionOverride, CommissionPair, RecurringCommissionPolicy
from rentalquote.domain.coupon import Coupon
from rentalquote.domain.money import Money
from rentalquote.domain.order import OrderData
from rentalquote.runtime.coupon_store import InMemoryCouponStore
from rentalquote.tests.fakes import NOW, FakeGateway, FakeGeocoder, FakePayments

DEFAULTS = CommissionPair(Commission(Decimal(10), 0), Commission(Decimal(5), 0))
RECURRING = RecurringCommissionPolicy("2025-01", Commission(Decimal(8), 0), Commission(Decimal(0), 0), True)


def _order(**extra) -> OrderData:
    return OrderData.from_dict({"bookingStart": "2026-03-01T00:00:00Z", "bookingEnd": "2026-03-04T00:00:00Z", **extra})


def _price(gateway, store, tax_table, request, payments=None):
    return asyncio.run(
        run_pricing(
            request,
            gateway=gateway,
            coupon_store=store,
            tax_table=tax_table,
            geocoder=FakeGeocoder(),
            recurring=RECURRING,
            payments=payments,
            now=NOW,
        )
    )


def test_pricing_applies_provider_coupon_and_totals(make_listing, tax_table) -> None:
    gateway = FakeGateway(make_listing(), DEFAULTS)
    store = InMemoryCouponStore(
        [Coupon(provider_id="provider-1", code="SAVE20", type="percentage", amount=Decimal(20))]
    )

    result = _price(gateway, store, tax_table, PricingRequest("listing-1", _order(couponCode="save20")))

    assert [item.code for item in result.line_items] == [
        "line-item/day",
        "line-item/coupon-discount",
        "line-item/provider-commission",
        "line-item/customer-commission",
    ]
    assert result.coupon.ok
    assert all(item.line_total is not None for item in result.line_items)
    # 30000 base, 6000 off, commissions on 24000
    assert result.payin_total == Money(24000 + 1200, "CAD")
    assert result.payout_total == Money(24000 - 2400, "CAD")
    assert result.commission_total == Money(3600, "CAD")


def test_rejected_coupon_is_reported_not_applied(make_listing, tax_table) -> None:
    gateway = FakeGateway(make_listing(), DEFAULTS)
    store = InMemoryCouponStore(
        [Coupon(provider_id="provider-1", code="OLD", type="percentage", amount=Decimal(20), is_active=False)]
    )

    result = _price(gateway, store, tax_table, PricingRequest("listing-1", _order(couponCode="old")))

    assert result.coupon.status == "inactive"
    assert "line-item/coupon-discount" not in [item.code for item in result.line_items]
    assert result.to_dict()["meta"]["coupon"] == {"code": "OLD", "status": "inactive", "message": "Coupon is inactive"}


def test_unreadable_coupon_store_degrades_to_no_coupon(make_listing, tax_table) -> None:
    class BrokenStore(InMemoryCouponStore):
        async def list_for_provider(self, provider_id):
            raise OSError("disk gone")

    gateway = FakeGateway(make_listing(), DEFAULTS)

    result = _price(gateway, BrokenStore(), tax_table, PricingRequest("listing-1", _order(couponCode="SAVE20")))

    assert result.coupon is None
    assert [item.code for item in result.line_items][0] == "line-item/day"


def test_custom_and_recurring_commissions(make_listing, tax_table) -> None:
    custom = {"provider-1": CommissionOverride(percentage=Decimal(20)), "customer-1": CommissionOverride(percentage=0)}
    fresh = FakeGateway(make_listing(), DEFAULTS, custom=custom)
    returning = FakeGateway(make_listing(), DEFAULTS, custom=custom, prior_transactions=True)
    request = PricingRequest("listing-1", _order(), customer_id="customer-1")

    fresh_result = _price(fresh, InMemoryCouponStore(), tax_table, request)
    returning_result = _price(returning, InMemoryCouponStore(), tax_table, request)

    assert fresh_result.commissions == CommissionPair(Commission(Decimal(20), 0), Commission(Decimal(0), 0))
    assert returning_result.commissions == CommissionPair(RECURRING.provider, RECURRING.customer)
    assert returning.history_queries == [("customer-1", "listing-1")]
    assert [item.unit_price.amount for item in returning_result.line_items] == [10000, -2400]


def test_anonymous_customer_skips_history_query(make_listing, tax_table) -> None:
    gateway = FakeGateway(make_listing(), DEFAULTS, prior_transactions=True)

    result = _price(gateway, InMemoryCouponStore(), tax_table, PricingRequest("listing-1", _order()))

    assert gateway.history_queries == []
    assert result.commissions == DEFAULTS


def test_speculative_pricing_has_no_side_effects(make_listing, tax_table) -> None:
    payments = FakePayments()

    result = _price(
        FakeGateway(make_listing(), DEFAULTS),
        InMemoryCouponStore(),
        tax_table,
        PricingRequest("listing-1", _order()),
        payments=payments,
    )

    assert result.speculative is True
    assert result.payment_intent is None
    assert payments.created == []


def test_final_pricing_opens_payment_intent_for_payin(make_listing, tax_table) -> None:
    payments = FakePayments()
    store = InMemoryCouponStore(
        [Coupon(provider_id="provider-1", code="SAVE20", type="percentage", amount=Decimal(20))]
    )

    result = _price(
        FakeGateway(make_listing(), DEFAULTS),
        store,
        tax_table,
        PricingRequest("listing-1", _order(couponCode="SAVE20"), speculative=False),
        payments=payments,
    )

    (intent,) = payments.created
    assert result.payment_intent == intent
    assert intent.amount == result.payin_total.amount
    assert intent.metadata == {"listingId": "listing-1", "providerId": "provider-1", "couponCode": "SAVE20"}
    assert result.to_dict()["meta"]["paymentIntent"]["clientSecret"] == "secret"


def test_free_final_order_counts_coupon_without_payment(make_listing, tax_table) -> None:
    payments = FakePayments()
    store = InMemoryCouponStore(
        [Coupon(provider_id="provider-1", code="FREE100", type="percentage", amount=Decimal(100), max_redemptions=1)]
    )
    request = PricingRequest("listing-1", _order(couponCode="free100"), speculative=False)

    first = _price(FakeGateway(make_listing(), DEFAULTS), store, tax_table, request, payments=payments)
    second = _price(FakeGateway(make_listing(), DEFAULTS), store, tax_table, request, payments=payments)

    assert first.payin_total == Money(0, "CAD")
    assert first.payment_intent is None
    assert first.redeemed_coupon.used_count == 1
    assert first.to_dict()["meta"]["redeemedCoupon"]["isActive"] is False
    assert second.coupon.status == "inactive"
    assert second.redeemed_coupon is None
    assert [intent.amount for intent in payments.created] == [second.payin_total.amount]
    assert asyncio.run(store.get("provider-1", "FREE100")).used_count == 1
