"""Checkout orchestrator — turns a user's cart into a committed order.

Validation runs first, read-only and outside any unit of work, so obviously
doomed requests never open one. The writes then run in a fixed order inside a
single unit of work:

    verify → decrement_stock → debit_wallet → create_order
           → increment_coupon_usage → clear_cart

Each step is only safe once the earlier ones have succeeded; the cart is
emptied last.
"""

from dataclasses import dataclass
from uuid import uuid4

import structlog
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.checkout.cart_lines import check_stock, check_stock_changed, required_quantities, resolve_lines
from storefront.checkout.pricing import PriceSummary, calculate_price_breakdown
from storefront.checkout.unit_of_work import unit_of_work_for
from storefront.config import CheckoutSettings
from storefront.errors import AddressNotFound, CartChanged, EmptyCart, InsufficientFunds
from storefront.ordering.cart import Cart
from storefront.ordering.order import WALLET_SETTLED, Order, order_reference, parse_payment_method
from storefront.promotions.registry import PromotionRegistry
from storefront.utils.clock import utcnow
from storefront.utils.logging import log_context
from storefront.utils.money import quantize
from storefront.wallet.ledger import WalletLedger

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OrderSummary:
    order_id: str
    reference: str
    status: str
    total: float
    payment_method: str
    is_paid: bool
    summary: PriceSummary
    coupon_code: str | None = None
    degraded: bool = False


@dataclass(frozen=True)
class _CheckoutPlan:
    """Everything validation established, carried into the unit of work."""

    order_id: str
    user_id: str
    cart_snapshot: tuple
    breakdown: object
    coupon: object
    offer: object
    payment_method: object
    shipping_address: dict
    contact: dict | None
    now: object

    @property
    def reference(self):
        return order_reference(self.order_id)


class CheckoutService:
    def __init__(
        self,
        capability,
        address_book,
        customers=None,
        settings=None,
        registry=None,
        ledger=None,
        clock=None,
    ):
        self.capability = capability
        self.address_book = address_book
        self.customers = customers
        self.settings = settings or CheckoutSettings()
        self.registry = registry or PromotionRegistry()
        self.ledger = ledger or WalletLedger()
        self._clock = clock

    # -------------------------------------------------------------------
    # Public operation
    # -------------------------------------------------------------------
    def place_order(self, user_id, address_id, payment_method="cod", coupon_code=None, contact_phone=None):
        """Place an order for everything in the user's cart.

        Raises the specific ``CheckoutError``, ``PromotionError`` or
        ``WalletError`` that stopped the checkout; in degraded mode a failure
        after a write surfaces as ``PartialCommitError``.
        """
        with log_context(user_id=user_id, operation="place_order"):
            return self._place_order(user_id, address_id, payment_method, coupon_code, contact_phone)

    def _place_order(self, user_id, address_id, payment_method, coupon_code, contact_phone):
        log = logger.bind(mode=self.capability.value)
        plan = self._prepare(user_id, address_id, payment_method, coupon_code, contact_phone)
        log = log.bind(order_id=plan.order_id, reference=plan.reference)

        uow_kwargs = {"timeout": self.settings.checkout_timeout_seconds}
        if self._clock is not None:
            uow_kwargs["clock"] = self._clock

        with unit_of_work_for(self.capability, "place_order", **uow_kwargs) as uow:
            breakdown, products = uow.step("verify", lambda: self._verify(plan), writes=False)
            uow.step(
                "decrement_stock",
                lambda: self._decrement_stock(breakdown, products),
                compensation=self._restock_note(breakdown),
            )
            if plan.payment_method in WALLET_SETTLED and breakdown.summary.total > 0:
                uow.step(
                    "debit_wallet",
                    lambda: self._debit_wallet(plan, breakdown),
                    compensation=f"refund {breakdown.summary.total:.2f} to the wallet of user {plan.user_id}",
                )
            order = uow.step(
                "create_order",
                lambda: self._create_order(plan, breakdown),
                compensation=f"cancel order {plan.reference}",
            )
            if breakdown.coupon_code:
                uow.step(
                    "increment_coupon_usage",
                    lambda: self.registry.increment_usage(plan.coupon.id, plan.order_id, plan.now),
                    compensation=f"decrement used_count of coupon {breakdown.coupon_code}",
                )
            uow.step("clear_cart", lambda: self._clear_cart(plan), compensation="restore the user's cart lines")

        log.info(
            "Order placed",
            total=order.total,
            payment_method=order.payment_method,
            coupon_code=order.coupon_code,
            items=len(breakdown.lines),
        )
        return OrderSummary(
            order_id=plan.order_id,
            reference=plan.reference,
            status=order.status,
            total=order.total,
            payment_method=order.payment_method,
            is_paid=order.is_paid,
            summary=breakdown.summary,
            coupon_code=order.coupon_code,
            degraded=uow.degraded,
        )

    # -------------------------------------------------------------------
    # Validation (read-only)
    # -------------------------------------------------------------------
    def _load_cart(self, user_id):
        cart = current_domain.repository_for(Cart).find_by_user(user_id)
        if cart is None or cart.is_empty:
            raise EmptyCart(str(user_id))
        return cart

    def _resolve_coupon(self, code, lines, offer, now):
        if not code:
            return None
        before_coupon = calculate_price_breakdown(lines, offer=offer, now=now)
        return self.registry.validate_coupon(code, now, before_coupon.summary.discounted_subtotal)

    def _price(self, lines, coupon, offer, now):
        return calculate_price_breakdown(
            lines,
            coupon=coupon,
            offer=offer,
            shipping_fee=self.settings.shipping_fee,
            now=now,
            tax_rate=self.settings.tax_rate,
        )

    def _contact_for(self, user_id, contact_phone):
        record = self.customers.get_contact(user_id) if self.customers else None
        contact = record.as_contact() if record else {"email": None, "phone": None}
        if contact_phone:
            contact["phone"] = contact_phone
        return contact if any(contact.values()) else None

    def _prepare(self, user_id, address_id, payment_method, coupon_code, contact_phone):
        now = utcnow()
        method = parse_payment_method(payment_method or "cod")

        cart = self._load_cart(user_id)
        lines, products = resolve_lines(cart)
        check_stock(lines, products)

        address = self.address_book.get_owned(user_id, address_id)
        if address is None:
            raise AddressNotFound(str(address_id))

        offer = self.registry.find_applicable_offer(now)
        coupon = self._resolve_coupon(coupon_code or cart.coupon_code, lines, offer, now)
        breakdown = self._price(lines, coupon, offer, now)

        if method in WALLET_SETTLED:
            balance = self.ledger.balance(user_id)
            if quantize(balance) < quantize(breakdown.summary.total):
                raise InsufficientFunds(str(user_id), balance, breakdown.summary.total)

        return _CheckoutPlan(
            order_id=str(uuid4()),
            user_id=str(user_id),
            cart_snapshot=cart.snapshot(),
            breakdown=breakdown,
            coupon=coupon,
            offer=offer,
            payment_method=method,
            shipping_address=address.as_shipping_address(),
            contact=self._contact_for(user_id, contact_phone),
            now=now,
        )

    # -------------------------------------------------------------------
    # Unit-of-work steps
    # -------------------------------------------------------------------
    def _verify(self, plan):
        """Re-read cart and products; reprice with the validated coupon and offer."""
        cart = current_domain.repository_for(Cart).find_by_user(plan.user_id)
        if cart is None or cart.snapshot() != plan.cart_snapshot:
            raise CartChanged("cart contents changed")

        lines, products = resolve_lines(cart)
        check_stock_changed(lines, products)

        breakdown = self._price(lines, plan.coupon, plan.offer, plan.now)
        if breakdown.summary != plan.breakdown.summary:
            raise CartChanged("prices changed")
        return breakdown, products

    def _decrement_stock(self, breakdown, products):
        repo = current_domain.repository_for(Product)
        for product_id, quantity in required_quantities(breakdown.lines).items():
            product = products[product_id]
            product.decrement_stock(quantity)
            repo.add(product)

    def _restock_note(self, breakdown):
        restock = ", ".join(f"{line.product_id} +{line.quantity}" for line in breakdown.lines)
        return f"restore stock ({restock})"

    def _debit_wallet(self, plan, breakdown):
        return self.ledger.debit(
            plan.user_id,
            breakdown.summary.total,
            f"Payment for order #{plan.reference}",
            related_order_id=plan.order_id,
        )

    def _create_order(self, plan, breakdown):
        order = Order.place(
            order_id=plan.order_id,
            user_id=plan.user_id,
            breakdown=breakdown,
            shipping_address=plan.shipping_address,
            payment_method=plan.payment_method,
            contact=plan.contact,
            now=plan.now,
        )
        current_domain.repository_for(Order).add(order)
        return order

    def _clear_cart(self, plan):
        repo = current_domain.repository_for(Cart)
        cart = repo.find_by_user(plan.user_id)
        cart.clear()
        repo.add(cart)
