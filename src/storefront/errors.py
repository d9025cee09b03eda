"""Error taxonomy for the storefront checkout and fulfillment core.

Every error carries the structured detail a caller needs to render a corrective
message; none of them is retried by the core.
"""

import warnings


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutError(StorefrontError):
    """Base exception for failures while placing an order."""

    pass


class EmptyCart(CheckoutError):
    """Raised when the user has no cart or the cart has no lines."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Your cart is empty")


class ProductUnavailable(CheckoutError):
    """Raised when a cart line references a product that no longer exists."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} in your cart is no longer available")


class InsufficientStock(CheckoutError):
    """Raised when a line asks for more units than the product has in stock."""

    def __init__(self, product_id: str, name: str, requested: int, available: int):
        self.product_id = product_id
        self.name = name
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {name}. Requested: {requested}, available: {available}")


class StockChanged(CheckoutError):
    """Raised when stock dropped between validation and commit."""

    def __init__(self, product_id: str, name: str, requested: int, available: int):
        self.product_id = product_id
        self.name = name
        self.requested = requested
        self.available = available
        super().__init__(f"Stock changed for {name}. Please refresh your cart.")


class WriteConflict(StockChanged):
    """Raised when the store rejects a write because a record changed underneath it.

    ``step`` names the unit-of-work step that lost the race (``decrement_stock``,
    ``debit_wallet``, ``increment_coupon_usage``...), or None when the conflict
    only showed up at commit.
    """

    def __init__(self, detail: str, step: str | None = None):
        self.detail = detail
        self.step = step
        where = f" during {step}" if step else ""
        CheckoutError.__init__(self, f"Concurrent update detected{where} ({detail}). Please review and resubmit.")
        self.product_id = None
        self.name = None
        self.requested = None
        self.available = None


class CartChanged(CheckoutError):
    """Raised when the cart or catalogue prices changed while the order was being placed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Your cart changed during checkout ({reason}). Please review and resubmit.")


class AddressNotFound(CheckoutError):
    """Raised when the address does not exist or belongs to someone else."""

    def __init__(self, address_id: str):
        self.address_id = address_id
        super().__init__("Invalid address selected")


class InvalidPaymentMethod(CheckoutError):
    """Raised for payment methods the store does not accept."""

    def __init__(self, payment_method: str):
        self.payment_method = payment_method
        super().__init__(f"Invalid payment method: {payment_method}")


class CheckoutTimeout(CheckoutError):
    """Raised when a unit of work runs past its deadline."""

    def __init__(self, step: str, timeout: float):
        self.step = step
        self.timeout = timeout
        super().__init__(f"Checkout timed out after {timeout}s before step '{step}'")


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------
class PromotionError(StorefrontError):
    """Base exception for coupon validation failures."""

    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__(message)


class CouponNotFound(PromotionError):
    def __init__(self, code: str):
        super().__init__(code, f"Invalid or inactive coupon code: {code}")


class CouponExpired(PromotionError):
    def __init__(self, code: str):
        super().__init__(code, f"Coupon {code} has expired")


class CouponExhausted(PromotionError):
    def __init__(self, code: str, usage_limit: int):
        self.usage_limit = usage_limit
        super().__init__(code, f"Coupon {code} usage limit reached")


class CouponMinOrderNotMet(PromotionError):
    def __init__(self, code: str, min_order: float, subtotal: float):
        self.min_order = min_order
        self.subtotal = subtotal
        super().__init__(code, f"Minimum order of {min_order:.2f} is required for coupon {code}")


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------
class WalletError(StorefrontError):
    """Base exception for wallet ledger failures."""

    pass


class InsufficientFunds(WalletError):
    """Raised when a debit exceeds the wallet balance."""

    def __init__(self, user_id: str, balance: float, amount: float):
        self.user_id = user_id
        self.balance = balance
        self.amount = amount
        super().__init__(f"Insufficient wallet balance. Available: {balance:.2f}, required: {amount:.2f}")


class InvalidAmount(WalletError):
    """Raised when a ledger entry amount is not strictly positive."""

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Amount must be greater than zero, got {amount}")


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderError(StorefrontError):
    """Base exception for order lifecycle failures."""

    pass


class OrderNotFound(OrderError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class InvalidTransition(OrderError):
    """Raised when a status change is not in the allowed-next set."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition from {current} to {target}")


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------
class PartialCommitError(StorefrontError):
    """Raised in sequential mode when a step fails after earlier steps were persisted.

    Nothing is undone automatically. ``compensations`` lists what an operator
    has to apply to reconcile the store.
    """

    def __init__(self, completed_steps: list[str], failed_step: str, compensations: list[str], cause: Exception):
        self.completed_steps = list(completed_steps)
        self.failed_step = failed_step
        self.compensations = list(compensations)
        self.cause = cause
        super().__init__(
            f"Step '{failed_step}' failed after {len(self.completed_steps)} persisted step(s): {cause}. "
            f"Manual reconciliation required: {', '.join(self.compensations) or 'none'}"
        )


class DegradedModeWarning(UserWarning):
    """Emitted when checkout runs without multi-document transactions."""

    pass


_degraded_warning_emitted = False


def warn_degraded_mode(reason: str) -> None:
    """Emit ``DegradedModeWarning`` once per process."""
    global _degraded_warning_emitted
    if _degraded_warning_emitted:
        return
    _degraded_warning_emitted = True
    warnings.warn(
        f"Running without multi-document transactions ({reason}); failed checkouts are not rolled back",
        DegradedModeWarning,
        stacklevel=3,
    )
