"""BDD tests for moving orders through fulfillment and returns."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when
from storefront.checkout.unit_of_work import TransactionCapability
from storefront.errors import StorefrontError
from storefront.ordering.lifecycle import OrderLifecycle
from storefront.ordering.order import Order
from storefront.wallet.ledger import WalletLedger

scenarios("features/order_lifecycle.feature")

USER = "bdd-customer"


@pytest.fixture
def lifecycle():
    return OrderLifecycle(TransactionCapability.TRANSACTIONAL)


def _order(summary):
    return current_domain.repository_for(Order).get(summary.order_id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('the customer placed an order worth {total:f} paying with "{method}"'),
    target_fixture="summary",
)
def _(place_order, total, method):
    return place_order(USER, price=total, payment_method=method)


@given("the order has been delivered")
def _(lifecycle, summary):
    for status in ("confirmed", "shipped", "out_for_delivery", "delivered"):
        lifecycle.update_status(summary.order_id, status)


@given("the admin marked the order paid")
def _(lifecycle, summary):
    lifecycle.mark_paid(summary.order_id)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the admin moves the order to "{status}"'))
def _(lifecycle, summary, status):
    lifecycle.update_status(summary.order_id, status)


@when(parsers.cfparse('the admin tries to move the order to "{status}"'), target_fixture="failure")
def _(lifecycle, summary, status):
    try:
        lifecycle.update_status(summary.order_id, status)
    except StorefrontError as exc:
        return exc
    return None


@when(parsers.cfparse('the customer requests a return because "{reason}"'))
def _(lifecycle, summary, reason):
    lifecycle.request_return(summary.order_id, USER, reason)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(summary, status):
    assert _order(summary).status == status


@then(parsers.cfparse('the order history reads "{statuses}"'))
def _(summary, statuses):
    assert [entry.status for entry in _order(summary).history()] == [s.strip() for s in statuses.split(",")]


@then(parsers.cfparse('the update fails with "{error}"'))
def _(failure, error):
    assert type(failure).__name__ == error


@then(parsers.cfparse("the wallet balance is {amount:f}"))
def _(amount):
    assert WalletLedger().balance(USER) == amount


@then(parsers.cfparse('the latest wallet entry is a "{kind}" for "{description}"'))
def _(summary, kind, description):
    [entry] = WalletLedger().recent_transactions(USER, 1)
    assert entry.type == kind
    assert entry.description == f"{description} #{summary.reference}"
