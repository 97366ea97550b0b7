"""Coerce loosely-typed stored records into canonical products.

Stored documents come from several generations of the app. Older records
use ``productname`` and ``expairy_date`` instead of ``productName`` and
``expiryDate``, and any field may be missing or hold the wrong type.
Normalization never fails on a mapping: every field that cannot be
recovered falls back to its own default.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import date, datetime

from .models import STATUS_IN_USE, UNNAMED_PRODUCT, Product, now_iso

# canonical key -> legacy alias
LEGACY_ALIASES: dict[str, str] = {
    "productName": "productname",
    "expiryDate": "expairy_date",
}

_KNOWN_KEYS = frozenset(
    {
        "id",
        "qrId",
        "productName",
        "productname",
        "expiryDate",
        "expairy_date",
        "manufactureDate",
        "manufacture_date",
        "ingredient",
        "note",
        "quantity",
        "status",
        "userId",
    }
)


def normalize_record(record: Mapping, *, now: datetime | None = None) -> Product:
    """Build a canonical Product from a raw stored record.

    Args:
        record: Raw document, optionally including the storage ``id``.
        now: Instant used when the expiry date is missing. Defaults to
            the current time.
    """
    name = _first_text(
        record.get("productName"), record.get(LEGACY_ALIASES["productName"])
    )
    expiry = _first_date_text(
        record.get("expiryDate"), record.get(LEGACY_ALIASES["expiryDate"])
    )
    if expiry is None:
        expiry = now.isoformat() if now is not None else now_iso()

    raw_id = record.get("id")

    return Product(
        id=str(raw_id) if raw_id is not None else None,
        qr_id=_first_text(record.get("qrId")),
        product_name=name or UNNAMED_PRODUCT,
        expiry_date=expiry,
        manufacture_date=_first_date_text(
            record.get("manufactureDate"), record.get("manufacture_date")
        ),
        ingredient=_first_text(record.get("ingredient")),
        note=_first_text(record.get("note")),
        quantity=_quantity(record.get("quantity")),
        status=_first_text(record.get("status")) or STATUS_IN_USE,
        user_id=_first_text(record.get("userId")),
        extra={k: v for k, v in record.items() if k not in _KNOWN_KEYS},
    )


def normalize_records(
    records: Iterable[Mapping], *, now: datetime | None = None
) -> list[Product]:
    """Normalize every record of a store snapshot."""
    return [normalize_record(r, now=now) for r in records]


def _first_text(*values) -> str | None:
    for value in values:
        if value is None or isinstance(value, (dict, list)):
            continue
        text = value if isinstance(value, str) else str(value)
        if text.strip():
            return text
    return None


def _first_date_text(*values) -> str | None:
    for value in values:
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        text = _first_text(value)
        if text is not None:
            return text
    return None


def _quantity(value) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return max(int(value), 0)
