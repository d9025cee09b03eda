"""Domain events for the Cart and Order aggregates."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
@storefront.event(part_of="Cart")
class CartItemAdded:
    """A product was added to the cart or its quantity was increased."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant = String(required=True)
    quantity = Integer(required=True)
    unit_price = Float(required=True)


@storefront.event(part_of="Cart")
class CartCouponApplied:
    """A coupon was validated and attached to the cart with its cached discount."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount_amount = Float(required=True)


@storefront.event(part_of="Cart")
class CartCleared:
    """The cart was emptied, normally because its contents became an order."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    cleared_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------
@storefront.event(part_of="Order")
class OrderPlaced:
    """A cart was turned into a committed order."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    reference = String(required=True)
    item_count = Integer(required=True)
    total = Float(required=True)
    payment_method = String(required=True)
    is_paid = Boolean(default=False)
    coupon_code = String()
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    """An order moved from one lifecycle status to the next."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    actor = String(required=True)
    comment = String()
    changed_at = DateTime(required=True)
