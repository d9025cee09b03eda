"""Cart management — commands and handler."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.checkout.cart_lines import resolve_lines
from storefront.checkout.pricing import DEFAULT_VARIANT, calculate_price_breakdown
from storefront.config import load_settings
from storefront.domain import storefront
from storefront.errors import EmptyCart, InsufficientStock, ProductUnavailable
from storefront.ordering.cart import Cart
from storefront.promotions.registry import PromotionRegistry
from storefront.utils.clock import utcnow

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Cart")
class AddToCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    variant = String(max_length=100, default=DEFAULT_VARIANT)


@storefront.command(part_of="Cart")
class UpdateCartQuantity:
    user_id = Identifier(required=True)
    line_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="Cart")
class RemoveFromCart:
    user_id = Identifier(required=True)
    line_id = Identifier(required=True)


@storefront.command(part_of="Cart")
class ApplyCouponToCart:
    user_id = Identifier(required=True)
    code = String(required=True, max_length=50)


@storefront.command(part_of="Cart")
class RemoveCouponFromCart:
    user_id = Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class ManageCartHandler:
    def _cart_for(self, user_id):
        cart = current_domain.repository_for(Cart).find_by_user(user_id)
        if cart is None:
            raise ValidationError({"cart": ["Cart not found"]})
        return cart

    @handle(AddToCart)
    def add_to_cart(self, command):
        settings = load_settings()
        try:
            product = current_domain.repository_for(Product).get(command.product_id)
        except ObjectNotFoundError:
            raise ProductUnavailable(str(command.product_id)) from None

        repo = current_domain.repository_for(Cart)
        cart = repo.find_by_user(command.user_id) or Cart.create(user_id=command.user_id)

        in_cart = sum(line.quantity for line in cart.lines if str(line.product_id) == str(product.id))
        if not product.has_stock_for(in_cart + command.quantity):
            raise InsufficientStock(str(product.id), product.name, in_cart + command.quantity, product.stock)

        line = cart.add_item(
            product_id=command.product_id,
            quantity=command.quantity,
            unit_price=product.price,
            variant=command.variant or DEFAULT_VARIANT,
            max_quantity_per_item=settings.max_quantity_per_item,
            max_distinct_items=settings.max_distinct_items,
        )
        repo.add(cart)
        return str(line.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        settings = load_settings()
        cart = self._cart_for(command.user_id)
        line = cart.find_line(command.line_id)
        if line is not None:
            product = current_domain.repository_for(Product).get(line.product_id)
            if not product.has_stock_for(command.quantity):
                raise InsufficientStock(str(product.id), product.name, command.quantity, product.stock)

        cart.update_item_quantity(
            line_id=command.line_id,
            quantity=command.quantity,
            max_quantity_per_item=settings.max_quantity_per_item,
        )
        current_domain.repository_for(Cart).add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = self._cart_for(command.user_id)
        cart.remove_item(line_id=command.line_id)
        current_domain.repository_for(Cart).add(cart)

    @handle(ApplyCouponToCart)
    def apply_coupon(self, command):
        """Validate the coupon against the offer-adjusted subtotal and cache its discount."""
        settings = load_settings()
        cart = current_domain.repository_for(Cart).find_by_user(command.user_id)
        if cart is None or cart.is_empty:
            raise EmptyCart(str(command.user_id))

        now = utcnow()
        registry = PromotionRegistry()
        lines, _ = resolve_lines(cart)
        offer = registry.find_applicable_offer(now)
        before_coupon = calculate_price_breakdown(lines, offer=offer, now=now)

        coupon = registry.validate_coupon(command.code, now, before_coupon.summary.discounted_subtotal)
        breakdown = calculate_price_breakdown(
            lines,
            coupon=coupon,
            offer=offer,
            shipping_fee=settings.shipping_fee,
            now=now,
            tax_rate=settings.tax_rate,
        )

        cart.apply_coupon(coupon.code, str(coupon.id), breakdown.summary.coupon_discount)
        current_domain.repository_for(Cart).add(cart)
        logger.info(
            "Coupon applied to cart",
            user_id=str(command.user_id),
            coupon_code=coupon.code,
            discount=breakdown.summary.coupon_discount,
        )
        return breakdown.summary.coupon_discount

    @handle(RemoveCouponFromCart)
    def remove_coupon(self, command):
        cart = self._cart_for(command.user_id)
        cart.remove_coupon()
        current_domain.repository_for(Cart).add(cart)
