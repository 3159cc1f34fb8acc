"""Overage pricing for photo selections."""

from dataclasses import dataclass

from gallery_delivery.domain.galleries import PricingPackage


@dataclass(frozen=True)
class OverageQuote:
    """Overage computed for a selection."""

    included_count: int
    overage_count: int
    overage_cents: int

    @property
    def total_cents(self) -> int:
        return self.overage_cents


def compute_overage(
    selected_count: int,
    included_count: int | None,
    extra_price_cents: int | None,
    is_purchase_more: bool,
) -> OverageQuote:
    """Compute overage count and cost.

    Purchase-more cycles include no photos. Every input is clamped to zero so a
    malformed package can never produce negative pricing.
    """
    included = 0 if is_purchase_more else max(0, included_count or 0)
    extra_price = max(0, extra_price_cents or 0)
    overage_count = max(0, max(0, selected_count) - included)
    return OverageQuote(
        included_count=included,
        overage_count=overage_count,
        overage_cents=overage_count * extra_price,
    )


def quote_for_package(
    selected_count: int, package: PricingPackage | None, is_purchase_more: bool
) -> OverageQuote:
    """Compute overage against a gallery's (possibly absent) package."""
    if package is None:
        return compute_overage(selected_count, 0, 0, is_purchase_more)
    return compute_overage(
        selected_count,
        package.included_count,
        package.extra_price_cents,
        is_purchase_more,
    )
