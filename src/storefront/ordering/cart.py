"""Cart aggregate — one per user, cleared (not deleted) when it becomes an order.

Each line keeps a unit-price snapshot taken when the line was last added to;
checkout always re-prices from the current catalogue and treats a drift as a
changed cart.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from storefront.checkout.pricing import DEFAULT_VARIANT
from storefront.domain import storefront
from storefront.ordering.events import CartCleared, CartCouponApplied, CartItemAdded

MAX_QUANTITY_PER_ITEM = 5
MAX_DISTINCT_ITEMS = 20


@storefront.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    variant = String(max_length=100, default=DEFAULT_VARIANT)
    unit_price = Float(required=True, min_value=0.0)
    sequence = Integer(required=True, min_value=1)
    added_at = DateTime()


@storefront.aggregate
class Cart:
    user_id = Identifier(required=True, unique=True)
    lines = HasMany(CartLine)
    coupon_code = String(max_length=50)
    coupon_id = Identifier()
    coupon_discount = Float(default=0.0, min_value=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, coupon_discount=0.0, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_empty(self):
        return not self.lines

    def ordered_lines(self):
        return sorted(self.lines, key=lambda line: line.sequence)

    def find_line(self, line_id):
        return next((line for line in self.lines if str(line.id) == str(line_id)), None)

    def find_matching_line(self, product_id, variant):
        return next(
            (
                line
                for line in self.lines
                if str(line.product_id) == str(product_id) and (line.variant or DEFAULT_VARIANT) == variant
            ),
            None,
        )

    def snapshot(self):
        """Comparable view of the cart contents: (product, variant, quantity) per line."""
        return tuple(
            sorted((str(line.product_id), line.variant or DEFAULT_VARIANT, line.quantity) for line in self.lines)
        )

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(
        self,
        product_id,
        quantity,
        unit_price,
        variant=DEFAULT_VARIANT,
        max_quantity_per_item=MAX_QUANTITY_PER_ITEM,
        max_distinct_items=MAX_DISTINCT_ITEMS,
    ):
        """Add a product to the cart, merging with an existing line for the same variant."""
        variant = variant or DEFAULT_VARIANT
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if quantity > max_quantity_per_item:
            raise ValidationError({"quantity": [f"Maximum quantity per item is {max_quantity_per_item}"]})

        existing = self.find_matching_line(product_id, variant)
        now = datetime.now(UTC)

        if existing:
            new_quantity = existing.quantity + quantity
            if new_quantity > max_quantity_per_item:
                raise ValidationError(
                    {"quantity": [f"Total quantity for this item cannot exceed {max_quantity_per_item}"]}
                )
            existing.quantity = new_quantity
            existing.unit_price = unit_price
            line = existing
        else:
            if len(self.lines) >= max_distinct_items:
                raise ValidationError({"lines": [f"Cart cannot have more than {max_distinct_items} distinct items"]})
            line = CartLine(
                product_id=product_id,
                quantity=quantity,
                variant=variant,
                unit_price=unit_price,
                sequence=max((line.sequence for line in self.lines), default=0) + 1,
                added_at=now,
            )
            self.add_lines(line)

        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                line_id=str(line.id),
                product_id=str(product_id),
                variant=variant,
                quantity=line.quantity,
                unit_price=unit_price,
            )
        )
        return line

    def update_item_quantity(self, line_id, quantity, max_quantity_per_item=MAX_QUANTITY_PER_ITEM):
        line = self.find_line(line_id)
        if line is None:
            raise ValidationError({"line_id": ["Item not found in cart"]})
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if quantity > max_quantity_per_item:
            raise ValidationError({"quantity": [f"Maximum quantity per item is {max_quantity_per_item}"]})

        line.quantity = quantity
        self.updated_at = datetime.now(UTC)
        return line

    def remove_item(self, line_id):
        line = self.find_line(line_id)
        if line is None:
            raise ValidationError({"line_id": ["Item not found in cart"]})

        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Coupon
    # -------------------------------------------------------------------
    def apply_coupon(self, code, coupon_id, discount_amount):
        self.coupon_code = code
        self.coupon_id = coupon_id
        self.coupon_discount = discount_amount
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCouponApplied(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                coupon_code=code,
                discount_amount=discount_amount,
            )
        )

    def remove_coupon(self):
        self.coupon_code = None
        self.coupon_id = None
        self.coupon_discount = 0.0
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def clear(self):
        """Empty the cart and drop the applied coupon. The cart itself is kept."""
        for line in list(self.lines):
            self.remove_lines(line)
        self.coupon_code = None
        self.coupon_id = None
        self.coupon_discount = 0.0
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                cleared_at=now,
            )
        )


@storefront.repository(part_of=Cart)
class CartRepository:
    def find_by_user(self, user_id):
        carts = self._dao.query.filter(user_id=str(user_id)).all().items
        return carts[0] if carts else None
