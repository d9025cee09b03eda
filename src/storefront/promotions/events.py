"""Domain events for promotions."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Coupon")
class CouponRedeemed:
    """A coupon was consumed by a committed order."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    order_id = Identifier(required=True)
    used_count = Integer(required=True)
    redeemed_at = DateTime(required=True)
