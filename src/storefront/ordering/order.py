"""Order aggregate — the committed result of a checkout.

Items, shipping address and contact details are snapshots taken at commit
time and never follow later catalogue or address-book changes. Status changes
append to ``status_history``; earlier entries are never edited or removed.

State machine:
    pending → confirmed → shipped → out_for_delivery → delivered
    any of the above except delivered → cancelled
    delivered → return_requested → returned   (or back to confirmed)
    delivered → returned
    cancelled and returned are terminal.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from storefront.domain import storefront
from storefront.errors import InvalidPaymentMethod, InvalidTransition
from storefront.ordering.events import OrderPlaced, OrderStatusChanged
from storefront.utils.money import ZERO, quantize, to_decimal

REFERENCE_PREFIX = "MV-"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURN_REQUESTED = "return_requested"
    RETURNED = "returned"


class PaymentMethod(Enum):
    COD = "cod"
    WALLET = "wallet"
    MOCK_WALLET = "mock_wallet"
    RAZORPAY = "razorpay"
    MOCK_RAZORPAY = "mock_razorpay"


# Paid out of the customer's wallet inside the checkout unit of work
WALLET_SETTLED = {PaymentMethod.WALLET, PaymentMethod.MOCK_WALLET}

# Marked paid at creation
PREPAID = WALLET_SETTLED | {PaymentMethod.MOCK_RAZORPAY}


def order_reference(order_id):
    return f"{REFERENCE_PREFIX}{str(order_id)[-8:].upper()}"


def parse_payment_method(value):
    try:
        return PaymentMethod(str(value or "").strip().lower())
    except ValueError:
        raise InvalidPaymentMethod(str(value)) from None


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.RETURN_REQUESTED, OrderStatus.RETURNED},  # Return branch only
    OrderStatus.RETURN_REQUESTED: {OrderStatus.RETURNED, OrderStatus.CONFIRMED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.RETURNED: set(),  # Terminal
}


def parse_status(value):
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {value}"]}) from None


def allowed_transitions(status):
    """Statuses reachable in one step from ``status``, in lifecycle order.

    This table is authoritative. Admin screens may show it as a hint but every
    change is validated against it again by ``Order.transition``.
    """
    current = parse_status(status)
    order = list(OrderStatus)
    return sorted(_VALID_TRANSITIONS[current], key=order.index)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class ShippingAddress:
    """Delivery address as it was when the order was placed."""

    full_name = String(required=True, max_length=255)
    phone = String(required=True, max_length=20)
    house = String(max_length=255)
    street = String(required=True, max_length=255)
    landmark = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    pincode = String(required=True, max_length=10)


@storefront.value_object(part_of="Order")
class ContactDetails:
    email = String(max_length=254)
    phone = String(max_length=20)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    """A purchased line: product name, prices and image frozen at commit time.

    ``price`` is the catalogue unit price, ``final_price`` the unit price after
    the order's offer.
    """

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    final_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    image = String(max_length=500, default="")
    variant = String(max_length=100, default="Standard")
    position = Integer(required=True, min_value=1)


@storefront.entity(part_of="Order")
class StatusEntry:
    status = String(required=True, choices=OrderStatus)
    actor = String(required=True, max_length=100)
    comment = String(max_length=500)
    sequence = Integer(required=True, min_value=1)
    timestamp = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    user_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    contact = ValueObject(ContactDetails)
    subtotal = Float(required=True, min_value=0.0)
    offer_discount = Float(default=0.0, min_value=0.0)
    coupon_code = String(max_length=50)
    coupon_discount = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    payment_method = String(required=True, choices=PaymentMethod)
    is_paid = Boolean(default=False)
    paid_at = DateTime()
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    status_history = HasMany(StatusEntry)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def totals_must_balance(self):
        expected = quantize(
            to_decimal(self.subtotal)
            - to_decimal(self.offer_discount)
            - to_decimal(self.coupon_discount)
            + to_decimal(self.tax)
            + to_decimal(self.shipping)
        )
        if quantize(self.total) != expected:
            raise ValidationError({"total": [f"Total {self.total} does not match computed total {expected}"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, order_id, user_id, breakdown, shipping_address, payment_method, contact=None, now=None):
        """Create a pending order from a price breakdown.

        Args:
            order_id: Identity chosen by the caller before the unit of work opens.
            breakdown: ``PriceBreakdown`` computed at commit time.
            shipping_address: Dict of ``ShippingAddress`` fields.
            payment_method: ``PaymentMethod`` or its string value.
            contact: Optional dict with ``email`` and ``phone``.
        """
        method = parse_payment_method(payment_method)
        if not breakdown.lines:
            raise ValidationError({"items": ["An order needs at least one item"]})

        items_total = sum((to_decimal(line.line_subtotal) for line in breakdown.lines), ZERO)
        if quantize(items_total) != quantize(breakdown.summary.subtotal):
            raise ValidationError({"subtotal": ["Item totals do not add up to the subtotal"]})

        now = now or datetime.now(UTC)
        summary = breakdown.summary
        is_paid = method in PREPAID

        order = cls(
            id=str(order_id),
            user_id=str(user_id),
            shipping_address=ShippingAddress(**shipping_address),
            contact=ContactDetails(**contact) if contact else None,
            subtotal=summary.subtotal,
            offer_discount=summary.offer_discount_total,
            coupon_code=breakdown.coupon_code,
            coupon_discount=summary.coupon_discount,
            tax=summary.tax,
            shipping=summary.shipping,
            total=summary.total,
            payment_method=method.value,
            is_paid=is_paid,
            paid_at=now if is_paid else None,
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

        for position, line in enumerate(breakdown.lines, start=1):
            order.add_items(
                OrderItem(
                    product_id=line.product_id,
                    name=line.name,
                    price=line.base_price,
                    final_price=line.final_unit_price,
                    quantity=line.quantity,
                    image=line.image or "",
                    variant=line.variant,
                    position=position,
                )
            )

        order._append_history(OrderStatus.PENDING, str(user_id), "Order placed successfully", now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                user_id=str(user_id),
                reference=order.reference,
                item_count=len(breakdown.lines),
                total=order.total,
                payment_method=order.payment_method,
                is_paid=is_paid,
                coupon_code=order.coupon_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def reference(self):
        """Short, human-facing order number, e.g. ``MV-1A2B3C4D``."""
        return order_reference(self.id)

    def ordered_items(self):
        return sorted(self.items, key=lambda item: item.position)

    def history(self):
        return sorted(self.status_history, key=lambda entry: entry.sequence)

    def can_transition_to(self, target):
        return parse_status(target) in _VALID_TRANSITIONS[parse_status(self.status)]

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def _append_history(self, status, actor, comment, now):
        self.add_status_history(
            StatusEntry(
                status=status.value,
                actor=str(actor),
                comment=comment,
                sequence=len(self.status_history) + 1,
                timestamp=now,
            )
        )

    def transition(self, target, actor, comment=None, now=None):
        """Move to ``target`` and record it in the history; raises ``InvalidTransition``."""
        current = parse_status(self.status)
        target = parse_status(target)
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        now = now or datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        self._append_history(target, actor, comment, now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                user_id=str(self.user_id),
                from_status=current.value,
                to_status=target.value,
                actor=str(actor),
                comment=comment,
                changed_at=now,
            )
        )

    def mark_paid(self, actor, now=None):
        """Record payment without moving the order; returns False if it was already paid."""
        if self.is_paid:
            return False

        now = now or datetime.now(UTC)
        self.is_paid = True
        self.paid_at = now
        self.updated_at = now
        self._append_history(parse_status(self.status), actor, "Payment received", now)
        return True


@storefront.repository(part_of=Order)
class OrderRepository:
    def find_by_user(self, user_id):
        orders = self._dao.query.filter(user_id=str(user_id)).all().items
        return sorted(orders, key=lambda o: o.created_at, reverse=True)
