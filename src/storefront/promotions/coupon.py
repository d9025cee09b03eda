"""Coupon aggregate — a user-entered promotional code.

Coupons are read-mostly. ``used_count`` is the only field an order mutates and
it moves by exactly one per committed order: every redemption is recorded
against the order id, and redeeming the same order twice is a no-op.

Redemptions load with the coupon, so a coupon without ``usage_limit`` carries a
list that grows with every order it is used on. Long-running public codes
should be given a limit or rotated.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from storefront.domain import storefront
from storefront.errors import CouponExhausted
from storefront.promotions.events import CouponRedeemed
from storefront.utils.clock import as_utc, newest_first

MAX_PERCENTAGE_DISCOUNT = 70


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


def normalize_code(code):
    return (code or "").strip().upper()


@storefront.entity(part_of="Coupon")
class CouponRedemption:
    order_id = Identifier(required=True)
    redeemed_at = DateTime(required=True)


@storefront.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    disc_type = String(required=True, choices=DiscountType)
    disc_value = Float(required=True, min_value=0.0)
    min_order = Float(default=0.0, min_value=0.0)
    max_discount = Float(min_value=0.0)
    usage_limit = Integer(min_value=1)
    used_count = Integer(default=0, min_value=0)
    expiry = DateTime()
    is_active = Boolean(default=True)
    redemptions = HasMany(CouponRedemption)
    created_at = DateTime()

    @invariant.post
    def percentage_discount_is_capped(self):
        if self.disc_type == DiscountType.PERCENTAGE.value and (self.disc_value or 0) > MAX_PERCENTAGE_DISCOUNT:
            raise ValidationError({"disc_value": [f"Percentage discount cannot exceed {MAX_PERCENTAGE_DISCOUNT}%"]})

    @invariant.post
    def usage_stays_within_limit(self):
        if self.usage_limit is not None and (self.used_count or 0) > self.usage_limit:
            raise ValidationError({"used_count": ["Coupon used more often than its usage limit"]})

    @classmethod
    def create(
        cls,
        code,
        disc_type,
        disc_value,
        min_order=0.0,
        max_discount=None,
        usage_limit=None,
        expiry=None,
        is_active=True,
        created_at=None,
    ):
        return cls(
            code=normalize_code(code),
            disc_type=disc_type.value if isinstance(disc_type, DiscountType) else disc_type,
            disc_value=disc_value,
            min_order=min_order or 0.0,
            max_discount=max_discount,
            usage_limit=usage_limit,
            used_count=0,
            expiry=expiry,
            is_active=is_active,
            created_at=created_at or datetime.now(UTC),
        )

    def is_expired(self, now):
        return self.expiry is not None and as_utc(self.expiry) < now

    def is_exhausted(self):
        return self.usage_limit is not None and (self.used_count or 0) >= self.usage_limit

    def has_redeemed(self, order_id):
        return any(str(r.order_id) == str(order_id) for r in self.redemptions)

    def redeem(self, order_id, now=None):
        """Count one use of the coupon for ``order_id``.

        Returns False when this order already redeemed the coupon.
        """
        if self.has_redeemed(order_id):
            return False
        if self.is_exhausted():
            raise CouponExhausted(self.code, self.usage_limit)

        now = now or datetime.now(UTC)
        self.used_count = (self.used_count or 0) + 1
        self.add_redemptions(CouponRedemption(order_id=order_id, redeemed_at=now))

        self.raise_(
            CouponRedeemed(
                coupon_id=str(self.id),
                code=self.code,
                order_id=str(order_id),
                used_count=self.used_count,
                redeemed_at=now,
            )
        )
        return True


@storefront.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code):
        """Return the active coupon for ``code`` (normalized), or None."""
        matches = self._dao.query.filter(code=normalize_code(code), is_active=True).all().items
        return matches[0] if matches else None

    def find_active(self):
        return newest_first(self._dao.query.filter(is_active=True).all().items)
