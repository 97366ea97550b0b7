"""Filtered, ordered product views for presentation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime

from .lifecycle import days_until_expiry
from .models import STATUS_FILTER_ALL, STATUS_USED, Product, parse_date, parse_datetime

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class ExpiryBadge:
    label: str
    level: str  # "expired" | "critical" | "warning" | "ok"


def project(
    products: Iterable[Product],
    search: str = "",
    status: str = STATUS_FILTER_ALL,
) -> list[Product]:
    """Filter by name and status, then order by expiry date ascending.

    Products with a missing or unparsable expiry date sort as if dated at
    the epoch. The sort is stable, so ties keep their input order.
    """
    term = (search or "").strip().lower()
    status = status or STATUS_FILTER_ALL

    matched = [
        p
        for p in products
        if (not term or term in (p.product_name or "").lower())
        and (status == STATUS_FILTER_ALL or p.status == status)
    ]
    return sorted(matched, key=expiry_sort_key)


def expiry_sort_key(product: Product) -> datetime:
    """Local wall-clock expiry; unparsable dates sort at the epoch."""
    parsed = parse_datetime(product.expiry_date)
    if parsed is None:
        return _EPOCH
    # naive values are local time, as in parse_date
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def expiry_badge(product: Product, today: date | None = None) -> ExpiryBadge | None:
    """Badge shown next to a product in listings."""
    if product.status == STATUS_USED:
        return None
    days = days_until_expiry(product, today)
    if days is None:
        return None
    if days < 0:
        return ExpiryBadge("Expired", "expired")
    if days <= 7:
        level = "critical"
    elif days <= 30:
        level = "warning"
    else:
        level = "ok"
    return ExpiryBadge(f"Expires in {days}d", level)


def format_date(value: str | None) -> str:
    if not value:
        return "N/A"
    parsed = parse_date(value)
    if parsed is None:
        return value
    return parsed.strftime("%b %d, %Y")
