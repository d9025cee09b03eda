"""BDD tests for placing an order."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when
from storefront.catalogue.product import Product
from storefront.errors import StorefrontError
from storefront.ordering.cart import Cart
from storefront.promotions.coupon import Coupon
from storefront.wallet.ledger import WalletLedger

scenarios("features/place_order.feature")

USER = "bdd-customer"


@pytest.fixture
def products():
    return {}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:f} with {stock:d} in stock'))
def _(products, make_product, name, price, stock):
    products[name] = make_product(name=name, price=price, stock=stock)


@given("the customer has a saved address", target_fixture="address")
def _(add_address):
    return add_address(USER)


@given(parsers.cfparse('the customer has {quantity:d} "{name}" in the cart'))
def _(products, add_to_cart, quantity, name):
    add_to_cart(USER, products[name], quantity)


@given(parsers.cfparse('a percentage coupon "{code}" worth {value:d}'))
def _(make_coupon, code, value):
    make_coupon(code=code, disc_type="percentage", disc_value=value)


@given(parsers.cfparse("the customer's wallet holds {amount:f}"))
def _(fund_wallet, amount):
    fund_wallet(USER, amount)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(
    parsers.cfparse('the customer places the order with coupon "{code}" paying with "{method}"'),
    target_fixture="summary",
)
def _(checkout_service, address, method, code):
    return checkout_service().place_order(USER, address.id, method, coupon_code=code)


@when(parsers.cfparse('the customer places the order paying with "{method}"'), target_fixture="summary")
def _(checkout_service, address, method):
    return checkout_service().place_order(USER, address.id, method)


@when(parsers.cfparse('the customer tries to place the order paying with "{method}"'), target_fixture="failure")
def _(checkout_service, address, method):
    try:
        checkout_service().place_order(USER, address.id, method)
    except StorefrontError as exc:
        return exc
    return None


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the order total is {total:f}"))
def _(summary, total):
    assert summary.total == total


@then(parsers.cfparse('the order status is "{status}"'))
def _(summary, status):
    assert summary.status == status


@then("the order is paid")
def _(summary):
    assert summary.is_paid is True


@then(parsers.cfparse('the stock of "{name}" is {stock:d}'))
def _(products, name, stock):
    assert current_domain.repository_for(Product).get(products[name].id).stock == stock


@then("the cart is empty")
def _():
    assert current_domain.repository_for(Cart).find_by_user(USER).is_empty


@then(parsers.cfparse("the cart still holds {count:d} line"))
def _(count):
    assert len(current_domain.repository_for(Cart).find_by_user(USER).lines) == count


@then(parsers.cfparse('coupon "{code}" has been used {count:d} time'))
def _(code, count):
    assert current_domain.repository_for(Coupon).find_by_code(code).used_count == count


@then(parsers.cfparse('checkout fails with "{error}"'))
def _(failure, error):
    assert type(failure).__name__ == error


@then(parsers.cfparse("the wallet balance is {amount:f}"))
def _(amount):
    assert WalletLedger().balance(USER) == amount
