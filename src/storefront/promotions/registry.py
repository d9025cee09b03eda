"""Promotion registry — read-side lookup of coupons and offers, plus usage counting.

``increment_usage`` is the only write. It runs inside the checkout unit of work,
after stock and wallet checks have passed and after the order exists.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.checkout.pricing import coupon_qualifies
from storefront.errors import CouponExhausted, CouponExpired, CouponMinOrderNotMet, CouponNotFound
from storefront.promotions.coupon import Coupon, normalize_code
from storefront.promotions.offer import Offer
from storefront.utils.money import to_decimal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PublicCoupon:
    code: str
    disc_type: str
    disc_value: float
    min_order: float
    max_discount: float | None
    expiry: object
    is_expired: bool


class PromotionRegistry:
    def find_applicable_offer(self, now):
        """The newest live auto-apply offer, or None. At most one offer applies per order."""
        offers = current_domain.repository_for(Offer).find_live(now, auto_apply_only=True)
        return offers[0] if offers else None

    def active_offers(self, now):
        return current_domain.repository_for(Offer).find_live(now)

    def public_coupons(self, now):
        return [
            PublicCoupon(
                code=c.code,
                disc_type=c.disc_type,
                disc_value=c.disc_value,
                min_order=c.min_order or 0.0,
                max_discount=c.max_discount,
                expiry=c.expiry,
                is_expired=c.is_expired(now),
            )
            for c in current_domain.repository_for(Coupon).find_active()
        ]

    def find_coupon(self, code):
        """Look up an active coupon by code; raise ``CouponNotFound`` otherwise."""
        normalized = normalize_code(code)
        coupon = current_domain.repository_for(Coupon).find_by_code(normalized) if normalized else None
        if coupon is None:
            raise CouponNotFound(normalized or str(code))
        return coupon

    def validate_coupon(self, code, now, discounted_subtotal=None):
        """Return the coupon for ``code`` if it can be used right now.

        ``discounted_subtotal`` is the offer-adjusted subtotal; pass None to skip
        the minimum-order check (e.g. before the cart has been priced).
        """
        coupon = self.find_coupon(code)

        if coupon.is_expired(now):
            raise CouponExpired(coupon.code)
        if coupon.is_exhausted():
            raise CouponExhausted(coupon.code, coupon.usage_limit)
        if discounted_subtotal is not None and not coupon_qualifies(coupon, to_decimal(discounted_subtotal), now):
            raise CouponMinOrderNotMet(coupon.code, coupon.min_order or 0.0, discounted_subtotal)

        return coupon

    def increment_usage(self, coupon_id, order_id, now=None):
        """Count one use of the coupon for ``order_id``, re-reading it first.

        Idempotent per order: a repeat call for the same order changes nothing.
        """
        repo = current_domain.repository_for(Coupon)
        try:
            coupon = repo.get(coupon_id)
        except ObjectNotFoundError:
            raise CouponNotFound(str(coupon_id)) from None

        if not coupon.redeem(order_id, now):
            logger.info("Coupon already redeemed for order", coupon_code=coupon.code, order_id=str(order_id))
            return coupon

        repo.add(coupon)
        logger.info(
            "Coupon usage incremented",
            coupon_code=coupon.code,
            order_id=str(order_id),
            used_count=coupon.used_count,
        )
        return coupon
