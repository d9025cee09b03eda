import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the Protean config environment before the domain is imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path or "/bdd/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Shared builders
# ---------------------------------------------------------------------------
@pytest.fixture
def make_product():
    from protean import current_domain
    from storefront.catalogue.product import Product

    def _make(name="Carbon Fibre Spoiler", price=850.0, stock=12, category="Exterior", image="spoiler.png"):
        product = Product.create(name=name, price=price, stock=stock, category=category, image=image)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture
def make_coupon():
    from protean import current_domain
    from storefront.promotions.coupon import Coupon

    def _make(code="WELCOME10", disc_type="percentage", disc_value=10, **kwargs):
        coupon = Coupon.create(code=code, disc_type=disc_type, disc_value=disc_value, **kwargs)
        current_domain.repository_for(Coupon).add(coupon)
        return coupon

    return _make


@pytest.fixture
def make_offer():
    from protean import current_domain
    from storefront.promotions.offer import Offer

    def _make(title="Festive Sale", discount_type="percentage", value=20, **kwargs):
        offer = Offer.create(title=title, discount_type=discount_type, value=value, **kwargs)
        current_domain.repository_for(Offer).add(offer)
        return offer

    return _make


@pytest.fixture
def add_to_cart():
    from protean import current_domain
    from storefront.ordering.cart_items import AddToCart

    def _add(user_id, product, quantity=1, variant="Standard"):
        return current_domain.process(
            AddToCart(user_id=user_id, product_id=str(product.id), quantity=quantity, variant=variant),
            asynchronous=False,
        )

    return _add


@pytest.fixture
def fund_wallet():
    from storefront.wallet.ledger import WalletLedger

    def _fund(user_id, amount):
        return WalletLedger().credit(user_id, amount)

    return _fund


@pytest.fixture
def address_book():
    from storefront.checkout.fake_adapters import InMemoryAddressBook

    return InMemoryAddressBook()


@pytest.fixture
def customers():
    from storefront.checkout.fake_adapters import InMemoryCustomerDirectory

    return InMemoryCustomerDirectory()


@pytest.fixture
def add_address(address_book):
    def _add(user_id, **overrides):
        fields = {
            "full_name": "Arjun Menon",
            "phone": "9876543210",
            "house": "12B",
            "street": "MG Road",
            "landmark": "Near Metro",
            "city": "Kochi",
            "state": "Kerala",
            "pincode": "682016",
        }
        fields.update(overrides)
        return address_book.add(user_id, **fields)

    return _add


@pytest.fixture
def checkout_service(address_book, customers):
    from storefront.checkout.orchestrator import CheckoutService
    from storefront.checkout.unit_of_work import TransactionCapability
    from storefront.config import CheckoutSettings

    def _build(capability=TransactionCapability.TRANSACTIONAL, settings=None, **kwargs):
        return CheckoutService(
            capability,
            address_book,
            customers=customers,
            settings=settings or CheckoutSettings(),
            **kwargs,
        )

    return _build


@pytest.fixture
def place_order(checkout_service, add_address, add_to_cart, make_product):
    """Put ``quantity`` units of a fresh product in the user's cart and check out."""

    def _place(user_id="user-1", price=850.0, quantity=1, payment_method="cod", **kwargs):
        product = make_product(price=price)
        add_to_cart(user_id, product, quantity)
        address = add_address(user_id)
        return checkout_service().place_order(user_id, address.id, payment_method, **kwargs)

    return _place
