"""Application tests for the transactional unit of work and capability probing."""

import pytest
from protean import current_domain
from protean.exceptions import ExpectedVersionError
from storefront.catalogue.product import Product
from storefront.checkout.unit_of_work import (
    TransactionalUnitOfWork,
    TransactionCapability,
    detect_transaction_support,
)
from storefront.config import CheckoutSettings, TransactionMode
from storefront.domain import storefront
from storefront.errors import CheckoutTimeout, InsufficientStock, WriteConflict


def _decrement(product_id, quantity):
    repo = current_domain.repository_for(Product)
    product = repo.get(product_id)
    product.decrement_stock(quantity)
    repo.add(product)


class TestTransactionalUnitOfWork:
    def test_commits_all_steps(self, make_product):
        first = make_product(stock=3)
        second = make_product(name="Alloy Wheel", stock=8)

        with TransactionalUnitOfWork("restock_check") as uow:
            uow.step("first", lambda: _decrement(first.id, 1))
            uow.step("second", lambda: _decrement(second.id, 2))

        repo = current_domain.repository_for(Product)
        assert repo.get(first.id).stock == 2
        assert repo.get(second.id).stock == 6

    def test_rolls_back_every_step_on_failure(self, make_product):
        first = make_product(stock=3)
        second = make_product(name="Alloy Wheel", stock=1)

        with pytest.raises(InsufficientStock):
            with TransactionalUnitOfWork("place_order") as uow:
                uow.step("first", lambda: _decrement(first.id, 1))
                uow.step("second", lambda: _decrement(second.id, 2))

        repo = current_domain.repository_for(Product)
        assert repo.get(first.id).stock == 3
        assert repo.get(second.id).stock == 1

    def test_timeout_rolls_back(self, make_product):
        product = make_product(stock=3)
        ticks = iter([0.0, 0.0, 31.0])

        with pytest.raises(CheckoutTimeout):
            with TransactionalUnitOfWork("place_order", timeout=30, clock=lambda: next(ticks)) as uow:
                uow.step("decrement_stock", lambda: _decrement(product.id, 1))
                uow.step("create_order", lambda: None)

        assert current_domain.repository_for(Product).get(product.id).stock == 3

    def test_version_conflict_in_a_step_rolls_back_as_write_conflict(self, make_product):
        product = make_product(stock=3)

        def _lose_race():
            raise ExpectedVersionError("Wrong expected version: 2")

        with pytest.raises(WriteConflict) as exc_info:
            with TransactionalUnitOfWork("place_order") as uow:
                uow.step("decrement_stock", lambda: _decrement(product.id, 1))
                uow.step("debit_wallet", _lose_race)

        assert exc_info.value.step == "debit_wallet"
        assert current_domain.repository_for(Product).get(product.id).stock == 3


class TestDetectTransactionSupport:
    def test_memory_provider_supports_transactions(self):
        assert detect_transaction_support(storefront, CheckoutSettings()) == TransactionCapability.TRANSACTIONAL

    def test_explicit_sequential_mode_wins(self):
        settings = CheckoutSettings(transaction_mode=TransactionMode.SEQUENTIAL)
        assert detect_transaction_support(storefront, settings) == TransactionCapability.SEQUENTIAL

    def test_explicit_transactional_mode_wins(self):
        settings = CheckoutSettings(transaction_mode=TransactionMode.TRANSACTIONAL)
        assert detect_transaction_support(storefront, settings) == TransactionCapability.TRANSACTIONAL
