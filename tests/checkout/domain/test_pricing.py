"""Tests for the pricing engine."""

from datetime import UTC, datetime, timedelta

import pytest
from storefront.checkout.pricing import (
    CouponTerms,
    LineInput,
    OfferTerms,
    PriceSummary,
    calculate_price_breakdown,
    coupon_discount_for,
    price_line,
)
from storefront.utils.money import to_decimal

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _line(price=850.0, quantity=1, category="Exterior", product_id="prod-1"):
    return LineInput(product_id=product_id, name="Carbon Fibre Spoiler", base_price=price, quantity=quantity, category=category)


class TestWithoutPromotions:
    def test_empty_cart_is_all_zero(self):
        breakdown = calculate_price_breakdown([], shipping_fee=99.0, now=NOW)
        assert breakdown.lines == ()
        assert breakdown.summary == PriceSummary()

    def test_total_equals_subtotal(self):
        breakdown = calculate_price_breakdown([_line(850.0, 2), _line(120.5, 3, product_id="prod-2")], now=NOW)
        assert breakdown.summary.subtotal == 2061.5
        assert breakdown.summary.total == breakdown.summary.subtotal
        assert breakdown.coupon_code is None

    def test_shipping_and_tax_are_added(self):
        breakdown = calculate_price_breakdown([_line(1000.0)], shipping_fee=50.0, now=NOW, tax_rate=0.18)
        assert breakdown.summary.tax == 180.0
        assert breakdown.summary.shipping == 50.0
        assert breakdown.summary.total == 1230.0

    def test_rounds_half_up(self):
        breakdown = calculate_price_breakdown([_line(0.125)], now=NOW)
        assert breakdown.summary.subtotal == 0.13


class TestOffers:
    def test_percentage_offer_lowers_unit_price(self):
        offer = OfferTerms(discount_type="percentage", value=20)
        line = price_line(_line(850.0, 2), offer, NOW)
        assert line.final_unit_price == 680.0
        assert line.line_subtotal == 1700.0
        assert line.line_total == 1360.0
        assert line.offer_discount == 340.0

    def test_flat_offer_is_floored_at_zero(self):
        offer = OfferTerms(discount_type="flat", value=1000)
        assert price_line(_line(850.0), offer, NOW).final_unit_price == 0.0

    def test_category_offer_skips_other_categories(self):
        offer = OfferTerms(discount_type="percentage", value=10, applicable="interior")
        breakdown = calculate_price_breakdown(
            [_line(100.0, category="Interior"), _line(200.0, category="Exterior", product_id="prod-2")],
            offer=offer,
            now=NOW,
        )
        assert breakdown.summary.subtotal == 300.0
        assert breakdown.summary.offer_discount_total == 10.0
        assert breakdown.summary.discounted_subtotal == 290.0

    def test_offer_outside_window_is_ignored(self):
        offer = OfferTerms(discount_type="percentage", value=10, ends_at=NOW - timedelta(days=1))
        breakdown = calculate_price_breakdown([_line(850.0)], offer=offer, now=NOW)
        assert breakdown.summary.offer_discount_total == 0.0

    def test_inactive_offer_is_ignored(self):
        offer = OfferTerms(discount_type="percentage", value=10, is_active=False)
        assert calculate_price_breakdown([_line(850.0)], offer=offer, now=NOW).summary.total == 850.0


class TestCoupons:
    def test_percentage_coupon(self):
        coupon = CouponTerms(code="WELCOME10", disc_type="percentage", disc_value=10)
        breakdown = calculate_price_breakdown([_line(850.0)], coupon=coupon, now=NOW)
        assert breakdown.summary.coupon_discount == 85.0
        assert breakdown.summary.total == 765.0
        assert breakdown.coupon_code == "WELCOME10"

    def test_percentage_coupon_is_capped_by_max_discount(self):
        coupon = CouponTerms(code="BIG50", disc_type="percentage", disc_value=50, max_discount=100)
        assert calculate_price_breakdown([_line(850.0)], coupon=coupon, now=NOW).summary.coupon_discount == 100.0

    def test_flat_coupon_never_exceeds_discounted_subtotal(self):
        coupon = CouponTerms(code="FLAT1000", disc_type="flat", disc_value=1000)
        breakdown = calculate_price_breakdown([_line(850.0)], coupon=coupon, now=NOW)
        assert breakdown.summary.coupon_discount == 850.0
        assert breakdown.summary.total == 0.0

    def test_coupon_below_minimum_gives_no_discount(self):
        coupon = CouponTerms(code="MIN2000", disc_type="flat", disc_value=200, min_order=2000)
        breakdown = calculate_price_breakdown([_line(850.0)], coupon=coupon, now=NOW)
        assert breakdown.summary.coupon_discount == 0.0
        assert breakdown.coupon_code is None

    def test_expired_coupon_gives_no_discount(self):
        coupon = CouponTerms(code="OLD", disc_type="flat", disc_value=50, expiry=NOW - timedelta(seconds=1))
        assert coupon_discount_for(coupon, to_decimal(850), NOW) == 0

    def test_coupon_applies_after_offer(self):
        offer = OfferTerms(discount_type="percentage", value=20)
        coupon = CouponTerms(code="WELCOME10", disc_type="percentage", disc_value=10)
        breakdown = calculate_price_breakdown([_line(1000.0)], coupon=coupon, offer=offer, now=NOW)
        assert breakdown.summary.discounted_subtotal == 800.0
        assert breakdown.summary.coupon_discount == 80.0
        assert breakdown.summary.total == 720.0

    def test_minimum_order_is_checked_against_offer_adjusted_subtotal(self):
        offer = OfferTerms(discount_type="percentage", value=20)
        coupon = CouponTerms(code="MIN900", disc_type="flat", disc_value=100, min_order=900)
        breakdown = calculate_price_breakdown([_line(1000.0)], coupon=coupon, offer=offer, now=NOW)
        assert breakdown.summary.coupon_discount == 0.0


@pytest.mark.parametrize(
    "coupon",
    [
        CouponTerms(code="P", disc_type="percentage", disc_value=70, max_discount=300),
        CouponTerms(code="F", disc_type="flat", disc_value=5000),
        CouponTerms(code="FC", disc_type="flat", disc_value=500, max_discount=200),
    ],
)
def test_coupon_discount_bounds(coupon):
    summary = calculate_price_breakdown([_line(850.0, 2)], coupon=coupon, now=NOW).summary
    assert summary.coupon_discount <= summary.discounted_subtotal
    if coupon.max_discount:
        assert summary.coupon_discount <= coupon.max_discount


def test_same_inputs_give_identical_breakdowns():
    lines = [_line(333.33, 3), _line(19.99, 2, product_id="prod-2")]
    offer = OfferTerms(discount_type="percentage", value=15)
    coupon = CouponTerms(code="WELCOME10", disc_type="percentage", disc_value=10)
    first = calculate_price_breakdown(lines, coupon=coupon, offer=offer, now=NOW, tax_rate=0.05)
    second = calculate_price_breakdown(lines, coupon=coupon, offer=offer, now=NOW, tax_rate=0.05)
    assert first == second


def test_flat_coupon_respects_max_discount():
    coupon = CouponTerms(code="FLAT500", disc_type="flat", disc_value=500, max_discount=200)
    summary = calculate_price_breakdown([_line(850.0)], coupon=coupon, now=NOW).summary
    assert summary.coupon_discount == 200.0
    assert summary.total == 650.0
