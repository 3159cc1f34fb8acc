"""Tests for overage pricing."""

import pytest

from gallery_delivery.domain.galleries import PricingPackage
from gallery_delivery.services.pricing import compute_overage, quote_for_package


@pytest.mark.parametrize(
    ("selected", "included", "price", "purchase_more", "expected"),
    [
        (7, 5, 200, False, (2, 400)),
        (3, 5, 200, False, (0, 0)),
        (5, 5, 200, False, (0, 0)),
        (3, 5, 200, True, (3, 600)),
        (0, 0, 100, True, (0, 0)),
        (4, -3, 100, False, (4, 400)),
        (4, 2, -50, False, (2, 0)),
        (4, None, None, False, (4, 0)),
    ],
)
def test_compute_overage(selected, included, price, purchase_more, expected) -> None:
    quote = compute_overage(selected, included, price, purchase_more)

    assert (quote.overage_count, quote.overage_cents) == expected
    assert quote.total_cents == quote.overage_cents


def test_compute_overage_matches_formula_over_grid() -> None:
    for selected in range(0, 12):
        for included in range(-2, 8):
            for price in (0, 1, 250):
                for purchase_more in (False, True):
                    quote = compute_overage(selected, included, price, purchase_more)
                    allowance = 0 if purchase_more else max(0, included)
                    overage = max(0, selected - allowance)
                    assert quote.overage_count == overage
                    assert quote.overage_cents == overage * price


def test_purchase_more_includes_nothing() -> None:
    quote = compute_overage(3, 5, 200, is_purchase_more=True)

    assert quote.included_count == 0
    assert quote.overage_count == 3


def test_quote_without_package_bills_nothing() -> None:
    quote = quote_for_package(4, None, is_purchase_more=False)

    assert quote.overage_count == 4
    assert quote.overage_cents == 0


def test_quote_for_package_uses_terms() -> None:
    package = PricingPackage(included_count=10, extra_price_cents=150)

    quote = quote_for_package(12, package, is_purchase_more=False)

    assert quote.included_count == 10
    assert quote.overage_cents == 300
