"""Pricing engine — cart lines + optional coupon + optional offer -> itemized totals.

Pure and deterministic: no I/O and no implicit clock. The caller passes ``now``
so a breakdown computed during validation can be reproduced exactly at commit
time.

Order of application:
    1. The offer lowers each eligible unit price (percentage or flat, floored at 0).
    2. ``discounted_subtotal = subtotal - offer_discount_total``.
    3. The coupon applies to ``discounted_subtotal`` when it is active, unexpired
       and the minimum order is met; percentage coupons are capped at
       ``max_discount``, every coupon is capped at ``discounted_subtotal``.
    4. ``tax = (discounted_subtotal - coupon_discount) * tax_rate``.
    5. ``total = discounted_subtotal - coupon_discount + tax + shipping``.

All money is rounded half-up to cents.

Coupons and offers are duck-typed: Coupon/Offer aggregates and the
``CouponTerms`` / ``OfferTerms`` value types below are both accepted.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from storefront.utils.clock import as_utc
from storefront.utils.money import ZERO, quantize, to_decimal

PERCENTAGE = "percentage"
FLAT = "flat"
DEFAULT_VARIANT = "Standard"


@dataclass(frozen=True)
class LineInput:
    """A resolved cart line: the cart quantity joined with the current product."""

    product_id: str
    name: str
    base_price: float
    quantity: int
    category: str | None = None
    variant: str = DEFAULT_VARIANT
    image: str = ""


@dataclass(frozen=True)
class CouponTerms:
    code: str
    disc_type: str
    disc_value: float
    min_order: float = 0.0
    max_discount: float | None = None
    expiry: datetime | None = None
    is_active: bool = True


@dataclass(frozen=True)
class OfferTerms:
    discount_type: str
    value: float
    applicable: str = "all"
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    is_active: bool = True


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    name: str
    category: str | None
    variant: str
    image: str
    quantity: int
    base_price: float
    final_unit_price: float
    line_subtotal: float
    line_total: float

    @property
    def offer_discount(self) -> float:
        return float(quantize(to_decimal(self.line_subtotal) - to_decimal(self.line_total)))


@dataclass(frozen=True)
class PriceSummary:
    subtotal: float = 0.0
    offer_discount_total: float = 0.0
    discounted_subtotal: float = 0.0
    coupon_discount: float = 0.0
    tax: float = 0.0
    shipping: float = 0.0
    total: float = 0.0


@dataclass(frozen=True)
class PriceBreakdown:
    lines: tuple[PricedLine, ...]
    summary: PriceSummary
    coupon_code: str | None = None


def offer_is_live(offer, now: datetime) -> bool:
    if offer is None or not getattr(offer, "is_active", True):
        return False
    starts_at = as_utc(getattr(offer, "starts_at", None))
    ends_at = as_utc(getattr(offer, "ends_at", None))
    return (starts_at is None or now >= starts_at) and (ends_at is None or now <= ends_at)


def offer_applies_to(offer, category: str | None) -> bool:
    applicable = (getattr(offer, "applicable", None) or "all").lower()
    if applicable == "all":
        return True
    return bool(category) and category.lower() == applicable


def coupon_is_live(coupon, now: datetime) -> bool:
    if coupon is None or not getattr(coupon, "is_active", True):
        return False
    expiry = as_utc(getattr(coupon, "expiry", None))
    return expiry is None or now <= expiry


def _unit_offer_discount(offer, base_price: Decimal) -> Decimal:
    value = to_decimal(offer.value)
    if offer.discount_type == PERCENTAGE:
        return base_price * value / Decimal(100)
    if offer.discount_type == FLAT:
        return value
    return ZERO


def price_line(line: LineInput, offer=None, now: datetime | None = None) -> PricedLine:
    base_price = quantize(line.base_price)
    final_unit_price = base_price

    if offer is not None and now is not None and offer_is_live(offer, now) and offer_applies_to(offer, line.category):
        final_unit_price = quantize(max(ZERO, base_price - _unit_offer_discount(offer, base_price)))

    return PricedLine(
        product_id=str(line.product_id),
        name=line.name,
        category=line.category,
        variant=line.variant or DEFAULT_VARIANT,
        image=line.image or "",
        quantity=line.quantity,
        base_price=float(base_price),
        final_unit_price=float(final_unit_price),
        line_subtotal=float(quantize(base_price * line.quantity)),
        line_total=float(quantize(final_unit_price * line.quantity)),
    )


def coupon_qualifies(coupon, discounted_subtotal: Decimal, now: datetime) -> bool:
    if not coupon_is_live(coupon, now):
        return False
    return discounted_subtotal >= to_decimal(getattr(coupon, "min_order", 0) or 0)


def coupon_discount_for(coupon, discounted_subtotal: Decimal, now: datetime) -> Decimal:
    """Discount a coupon grants on ``discounted_subtotal``; zero when it does not qualify."""
    if not coupon_qualifies(coupon, discounted_subtotal, now):
        return ZERO

    value = to_decimal(coupon.disc_value)
    if coupon.disc_type == FLAT:
        discount = value
    elif coupon.disc_type == PERCENTAGE:
        discount = discounted_subtotal * value / Decimal(100)
    else:
        discount = ZERO

    # The cap binds flat and percentage coupons alike
    max_discount = getattr(coupon, "max_discount", None)
    if max_discount:
        discount = min(discount, to_decimal(max_discount))

    return quantize(min(discount, discounted_subtotal))


def calculate_price_breakdown(
    lines,
    coupon=None,
    offer=None,
    shipping_fee=0.0,
    *,
    now: datetime,
    tax_rate=0.0,
) -> PriceBreakdown:
    priced = tuple(price_line(line, offer, now) for line in lines)

    subtotal = sum((to_decimal(p.line_subtotal) for p in priced), ZERO)
    discounted_subtotal = sum((to_decimal(p.line_total) for p in priced), ZERO)
    offer_discount_total = subtotal - discounted_subtotal

    coupon_applied = bool(priced) and coupon_qualifies(coupon, discounted_subtotal, now)
    coupon_discount = coupon_discount_for(coupon, discounted_subtotal, now) if coupon_applied else ZERO
    tax = quantize((discounted_subtotal - coupon_discount) * to_decimal(tax_rate))
    shipping = quantize(shipping_fee) if priced else ZERO
    total = quantize(discounted_subtotal - coupon_discount + tax + shipping)

    summary = PriceSummary(
        subtotal=float(quantize(subtotal)),
        offer_discount_total=float(quantize(offer_discount_total)),
        discounted_subtotal=float(quantize(discounted_subtotal)),
        coupon_discount=float(coupon_discount),
        tax=float(tax),
        shipping=float(shipping),
        total=float(total),
    )
    coupon_code = coupon.code if coupon_applied else None
    return PriceBreakdown(lines=priced, summary=summary, coupon_code=coupon_code)
