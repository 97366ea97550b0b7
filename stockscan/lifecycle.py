"""Expiry-driven status transitions and near-expiry detection."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date

from .models import (
    STATUS_EXPIRED,
    STATUS_IN_USE,
    STATUS_USED,
    Product,
    StatusUpdate,
    parse_date,
)

EXPIRING_SOON_DAYS = 2


@dataclass
class LifecycleResult:
    products: list[Product] = field(default_factory=list)
    updates: list[StatusUpdate] = field(default_factory=list)  # to persist
    expiring_soon: list[Product] = field(default_factory=list)


def days_until_expiry(product: Product, today: date | None = None) -> int | None:
    """Whole days from today to the expiry date, or None if unparsable."""
    expiry = parse_date(product.expiry_date)
    if expiry is None:
        return None
    today = today or date.today()
    return (expiry - today).days


def is_past_expiry(product: Product, today: date | None = None) -> bool:
    days = days_until_expiry(product, today)
    return days is not None and days < 0


def expiring_soon(
    products: Iterable[Product],
    today: date | None = None,
    days: int = EXPIRING_SOON_DAYS,
) -> list[Product]:
    """Products still in use that expire within ``[today, today + days]``."""
    today = today or date.today()
    result: list[Product] = []
    for p in products:
        if p.status in (STATUS_USED, STATUS_EXPIRED):
            continue
        remaining = days_until_expiry(p, today)
        if remaining is not None and 0 <= remaining <= days:
            result.append(p)
    return result


def evaluate(
    products: Iterable[Product],
    today: date | None = None,
    *,
    soon_days: int = EXPIRING_SOON_DAYS,
) -> LifecycleResult:
    """Apply automatic expiry transitions to a product set.

    Only ``in use`` products past their expiry date move to ``expired``;
    nothing is ever moved back. Input products are not mutated. Updates
    are reported only for products that already have a storage id.
    """
    today = today or date.today()
    result = LifecycleResult()

    for p in products:
        if p.status == STATUS_IN_USE and is_past_expiry(p, today):
            p = replace(p, status=STATUS_EXPIRED)
            if p.id is not None:
                result.updates.append(
                    StatusUpdate(product_id=p.id, fields={"status": STATUS_EXPIRED})
                )
        result.products.append(p)

    result.expiring_soon = expiring_soon(result.products, today, soon_days)
    return result
