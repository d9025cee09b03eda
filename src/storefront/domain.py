"""Storefront bounded context — catalogue stock, promotions, wallet, cart and orders.

The checkout engine turns a cart into a committed order while adjusting product
stock, coupon usage, the customer's wallet and the order lifecycle as one unit
of work.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging

configure_logging()

storefront = Domain(name="storefront")
