"""Join cart lines with the current catalogue."""

from collections import defaultdict

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.checkout.pricing import DEFAULT_VARIANT, LineInput
from storefront.errors import InsufficientStock, ProductUnavailable, StockChanged


def resolve_lines(cart):
    """Return ``(lines, products)`` for ``cart``, priced from the current products.

    Raises ``ProductUnavailable`` when a line references a product that is gone.
    """
    repo = current_domain.repository_for(Product)
    products = {}
    lines = []
    for line in cart.ordered_lines():
        product_id = str(line.product_id)
        if product_id not in products:
            try:
                products[product_id] = repo.get(product_id)
            except ObjectNotFoundError:
                raise ProductUnavailable(product_id) from None
        product = products[product_id]
        lines.append(
            LineInput(
                product_id=product_id,
                name=product.name,
                base_price=product.price,
                quantity=line.quantity,
                category=product.category,
                variant=line.variant or DEFAULT_VARIANT,
                image=product.image or "",
            )
        )
    return lines, products


def required_quantities(lines):
    """Units needed per product; variants of one product share its stock."""
    needed = defaultdict(int)
    for line in lines:
        needed[line.product_id] += line.quantity
    return dict(needed)


def check_stock(lines, products, error=InsufficientStock):
    """Raise ``error`` for the first product that cannot cover the requested units."""
    for product_id, quantity in required_quantities(lines).items():
        product = products[product_id]
        if not product.has_stock_for(quantity):
            raise error(product_id, product.name, quantity, product.stock)


def check_stock_changed(lines, products):
    check_stock(lines, products, error=StockChanged)
