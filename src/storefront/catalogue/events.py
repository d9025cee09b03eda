"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Product")
class StockDecremented:
    """Units were taken out of stock by a committed checkout."""

    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    quantity = Integer(required=True)
    remaining_stock = Integer(required=True)
    decremented_at = DateTime(required=True)
