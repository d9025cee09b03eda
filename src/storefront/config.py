"""Checkout settings, built once at start-up and passed to services explicitly."""

import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache


class TransactionMode(Enum):
    AUTO = "auto"
    TRANSACTIONAL = "transactional"
    SEQUENTIAL = "sequential"


@dataclass(frozen=True)
class CheckoutSettings:
    transaction_mode: TransactionMode = TransactionMode.AUTO
    tax_rate: float = 0.0
    shipping_fee: float = 0.0
    checkout_timeout_seconds: float = 30.0
    max_quantity_per_item: int = 5
    max_distinct_items: int = 20

    @classmethod
    def from_env(cls, environ=None):
        """Read settings from ``STOREFRONT_*`` environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            transaction_mode=TransactionMode(env.get("STOREFRONT_TRANSACTION_MODE", "auto").lower()),
            tax_rate=float(env.get("STOREFRONT_TAX_RATE", "0")),
            shipping_fee=float(env.get("STOREFRONT_SHIPPING_FEE", "0")),
            checkout_timeout_seconds=float(env.get("STOREFRONT_CHECKOUT_TIMEOUT", "30")),
            max_quantity_per_item=int(env.get("STOREFRONT_MAX_QTY_PER_ITEM", "5")),
            max_distinct_items=int(env.get("STOREFRONT_MAX_DISTINCT_ITEMS", "20")),
        )


@lru_cache(maxsize=1)
def load_settings():
    """Process-wide settings for entry points that cannot receive them explicitly (command handlers)."""
    return CheckoutSettings.from_env()
