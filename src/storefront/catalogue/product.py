"""Product aggregate — the slice of the catalogue the checkout engine touches.

Only ``stock`` is mutated here, and only by a checkout unit of work. Everything
else (names, images, categories) is catalogue administration.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Integer, String

from storefront.catalogue.events import StockDecremented
from storefront.domain import storefront
from storefront.errors import InsufficientStock


@storefront.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    category = String(max_length=100)
    image = String(max_length=500, default="")
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name, price, stock=0, category=None, image="", id=None):
        now = datetime.now(UTC)
        kwargs = {}
        if id is not None:
            kwargs["id"] = id
        return cls(
            name=name,
            price=price,
            stock=stock,
            category=category,
            image=image or "",
            created_at=now,
            updated_at=now,
            **kwargs,
        )

    def has_stock_for(self, quantity):
        return self.stock >= quantity

    def decrement_stock(self, quantity):
        """Take ``quantity`` units out of stock; stock never goes below zero."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if self.stock < quantity:
            raise InsufficientStock(str(self.id), self.name, quantity, self.stock)

        self.stock -= quantity
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            StockDecremented(
                product_id=str(self.id),
                name=self.name,
                quantity=quantity,
                remaining_stock=self.stock,
                decremented_at=now,
            )
        )
