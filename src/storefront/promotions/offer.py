"""Offer aggregate — an auto-applied, code-free discount.

An offer is live while it is active and ``now`` falls inside its optional
start/end window. It applies to every product (``applicable == "all"``) or to
one category, matched case-insensitively.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, String

from storefront.checkout.pricing import offer_applies_to, offer_is_live
from storefront.domain import storefront
from storefront.promotions.coupon import MAX_PERCENTAGE_DISCOUNT, DiscountType
from storefront.utils.clock import newest_first

APPLICABLE_TO_ALL = "all"


@storefront.aggregate
class Offer:
    title = String(required=True, max_length=200)
    discount_type = String(required=True, choices=DiscountType)
    value = Float(required=True, min_value=0.0)
    applicable = String(max_length=100, default=APPLICABLE_TO_ALL)
    starts_at = DateTime()
    ends_at = DateTime()
    auto_apply = Boolean(default=True)
    is_active = Boolean(default=True)
    created_at = DateTime()

    @invariant.post
    def percentage_discount_is_capped(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and (self.value or 0) > MAX_PERCENTAGE_DISCOUNT:
            raise ValidationError({"value": [f"Percentage discount cannot exceed {MAX_PERCENTAGE_DISCOUNT}%"]})

    @classmethod
    def create(
        cls,
        title,
        discount_type,
        value,
        applicable=APPLICABLE_TO_ALL,
        starts_at=None,
        ends_at=None,
        auto_apply=True,
        is_active=True,
        created_at=None,
    ):
        return cls(
            title=title.strip(),
            discount_type=discount_type.value if isinstance(discount_type, DiscountType) else discount_type,
            value=value,
            applicable=(applicable or APPLICABLE_TO_ALL).strip().lower(),
            starts_at=starts_at,
            ends_at=ends_at,
            auto_apply=auto_apply,
            is_active=is_active,
            created_at=created_at or datetime.now(UTC),
        )

    def is_live(self, now):
        return offer_is_live(self, now)

    def applies_to(self, category):
        return offer_applies_to(self, category)


@storefront.repository(part_of=Offer)
class OfferRepository:
    def find_live(self, now, auto_apply_only=False):
        """Live offers, newest first."""
        offers = self._dao.query.filter(is_active=True).all().items
        live = [o for o in offers if o.is_live(now) and (o.auto_apply or not auto_apply_only)]
        return newest_first(live)
