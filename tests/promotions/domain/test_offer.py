"""Tests for the Offer aggregate."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError
from storefront.promotions.offer import Offer

NOW = datetime(2026, 3, 1, tzinfo=UTC)


def test_applicable_scope_is_stored_lowercase():
    offer = Offer.create(title="Wheel Week", discount_type="percentage", value=15, applicable="Wheels")
    assert offer.applicable == "wheels"
    assert offer.applies_to("WHEELS")
    assert not offer.applies_to("Lighting")
    assert not offer.applies_to(None)


def test_offer_for_all_applies_everywhere():
    offer = Offer.create(title="Sitewide", discount_type="flat", value=100)
    assert offer.applies_to("Anything")


def test_percentage_above_seventy_is_rejected():
    with pytest.raises(ValidationError):
        Offer.create(title="Too good", discount_type="percentage", value=80)


@pytest.mark.parametrize(
    "starts, ends, live",
    [
        (None, None, True),
        (NOW - timedelta(days=1), NOW + timedelta(days=1), True),
        (NOW + timedelta(hours=1), None, False),
        (None, NOW - timedelta(hours=1), False),
    ],
)
def test_is_live_within_window(starts, ends, live):
    offer = Offer.create(title="Window", discount_type="percentage", value=10, starts_at=starts, ends_at=ends)
    assert offer.is_live(NOW) is live


def test_inactive_offer_is_never_live():
    offer = Offer.create(title="Paused", discount_type="percentage", value=10, is_active=False)
    assert not offer.is_live(NOW)
