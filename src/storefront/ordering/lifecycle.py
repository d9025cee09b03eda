"""Order lifecycle — status updates for admins and return requests for customers.

A status change that moves money back to the customer (``returned``, or
``cancelled`` on an order that was already paid) refunds the order total to
the wallet in the same unit of work as the status change. There is no
standalone refund path.
"""

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.checkout.unit_of_work import unit_of_work_for
from storefront.config import CheckoutSettings
from storefront.errors import InvalidTransition, OrderNotFound
from storefront.ordering.order import Order, OrderStatus, allowed_transitions, parse_status
from storefront.utils.logging import log_context
from storefront.wallet.ledger import WalletLedger

logger = structlog.get_logger(__name__)

__all__ = ["OrderLifecycle", "allowed_transitions", "refund_due"]


def refund_due(order, target):
    """Whether moving ``order`` to ``target`` owes the customer its total."""
    target = parse_status(target)
    if target == OrderStatus.RETURNED:
        return True
    return target == OrderStatus.CANCELLED and bool(order.is_paid)


class OrderLifecycle:
    def __init__(self, capability, settings=None, ledger=None, clock=None):
        self.capability = capability
        self.settings = settings or CheckoutSettings()
        self.ledger = ledger or WalletLedger()
        self._clock = clock

    def _load(self, order_id):
        try:
            return current_domain.repository_for(Order).get(str(order_id))
        except ObjectNotFoundError:
            raise OrderNotFound(str(order_id)) from None

    def _unit_of_work(self, name):
        kwargs = {"timeout": self.settings.checkout_timeout_seconds}
        if self._clock is not None:
            kwargs["clock"] = self._clock
        return unit_of_work_for(self.capability, name, **kwargs)

    def get(self, order_id):
        return self._load(order_id)

    def update_status(self, order_id, status, actor="admin", comment=None):
        """Move an order to ``status``; raises ``InvalidTransition`` for moves outside the table."""
        with log_context(order_id=order_id, operation="update_status"):
            return self._update_status(order_id, status, actor, comment)

    def _update_status(self, order_id, status, actor, comment):
        target = parse_status(status)
        order = self._load(order_id)
        if not order.can_transition_to(target):
            raise InvalidTransition(order.status, target.value)

        log = logger.bind(from_status=order.status, to_status=target.value)
        refund = refund_due(order, target) and order.total > 0

        with self._unit_of_work("update_status") as uow:
            order = uow.step(
                "transition",
                lambda: self._transition(order_id, target, actor, comment),
                compensation=f"restore status '{order.status}' on order {order.reference}",
            )
            if refund:
                uow.step(
                    "refund_wallet",
                    lambda: self._refund(order, target),
                    compensation=f"credit {order.total:.2f} to the wallet of user {order.user_id}",
                )

        log.info("Order status updated", actor=str(actor), refunded=refund)
        return order

    def request_return(self, order_id, user_id, reason):
        """Customer path: ask for a return of a delivered order they own."""
        if not (reason or "").strip():
            raise ValidationError({"reason": ["Please provide a reason for return"]})
        order = self._load(order_id)
        if str(order.user_id) != str(user_id):
            raise OrderNotFound(str(order_id))
        return self.update_status(order_id, OrderStatus.RETURN_REQUESTED, actor=str(user_id), comment=reason)

    def mark_paid(self, order_id, actor="admin"):
        """Record payment for an order without changing its status."""
        repo = current_domain.repository_for(Order)
        order = self._load(order_id)
        if order.mark_paid(actor):
            repo.add(order)
            logger.info("Order marked paid", order_id=str(order.id), actor=str(actor))
        return order

    def _transition(self, order_id, target, actor, comment):
        order = self._load(order_id)
        order.transition(target, actor, comment)
        current_domain.repository_for(Order).add(order)
        return order

    def _refund(self, order, target):
        kind = "returned" if target == OrderStatus.RETURNED else "cancelled"
        return self.ledger.refund(
            order.user_id,
            order.total,
            f"Refund for {kind} order #{order.reference}",
            related_order_id=str(order.id),
        )
