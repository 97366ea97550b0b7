"""Turn scan events and manual entries into store writes."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from .models import (
    STATUS_IN_USE,
    UNNAMED_PRODUCT,
    Product,
    ScannedData,
    now_iso,
    parse_datetime,
)

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"


@dataclass
class MergeInstruction:
    """The write a scan resolves to.

    For ``insert`` the new product is in ``product``. For ``update`` the
    matched product is in ``product`` and the partial update in ``fields``;
    once the update is written, ``product`` holds the merged values.
    """

    kind: str  # "insert" | "update"
    product: Product
    fields: dict = field(default_factory=dict)

    @property
    def product_id(self) -> str | None:
        return self.product.id


def resolve_merge(
    scan: ScannedData,
    quantity: int,
    existing: Sequence[Product],
    *,
    user_id: str,
    now: datetime | None = None,
) -> MergeInstruction:
    """Decide whether a scan creates a product or adds to an existing one.

    Args:
        scan: Parsed QR payload.
        quantity: Number of units scanned, at least 1.
        existing: The owner's products whose ``qr_id`` equals ``scan.qr_id``.
        user_id: Owner of the new product.
        now: Instant substituted for missing or malformed dates.

    Raises:
        ValueError: If quantity is not a positive integer.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValueError(f"quantity must be a positive integer, got {quantity!r}")

    matches = [p for p in existing if scan.qr_id and p.qr_id == scan.qr_id]
    if matches:
        target = _pick_match(scan.qr_id, matches)
        return MergeInstruction(
            kind=UPDATE,
            product=target,
            fields={"quantity": target.quantity + quantity, "status": STATUS_IN_USE},
        )

    fallback = now.isoformat() if now is not None else now_iso()
    product = Product(
        qr_id=scan.qr_id,
        product_name=(scan.product_name or "").strip() or UNNAMED_PRODUCT,
        expiry_date=_safe_date(scan.expiry_date, fallback),
        manufacture_date=_safe_date(
            scan.manufacturing_date or scan.manufacture_date, fallback
        ),
        ingredient=scan.ingredients,
        note=scan.notes,
        quantity=quantity,
        status=STATUS_IN_USE,
        user_id=user_id,
    )
    return MergeInstruction(kind=INSERT, product=product)


def build_manual_product(
    product_name: str,
    quantity: int,
    expiry_date: str | date | None,
    *,
    user_id: str,
    manufacture_date: str | date | None = None,
    ingredient: str | None = None,
    note: str | None = None,
) -> Product:
    """Validate a manually entered product.

    Raises:
        ValueError: If the name is shorter than 2 characters, the quantity
            is below 1 or the expiry date is missing or unparsable.
    """
    name = (product_name or "").strip()
    if len(name) < 2:
        raise ValueError("Product name must be at least 2 characters.")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValueError("Quantity must be at least 1.")
    if expiry_date is None or parse_datetime(expiry_date) is None:
        raise ValueError("An expiry date is required.")
    if manufacture_date is not None and parse_datetime(manufacture_date) is None:
        raise ValueError(f"Invalid manufacture date: {manufacture_date!r}")
    if not user_id:
        raise ValueError("user_id is required")

    return Product(
        qr_id=None,
        product_name=name,
        expiry_date=_iso(expiry_date),
        manufacture_date=_iso(manufacture_date) if manufacture_date else None,
        ingredient=ingredient or None,
        note=note or None,
        quantity=quantity,
        status=STATUS_IN_USE,
        user_id=user_id,
    )


def _pick_match(qr_id: str | None, matches: list[Product]) -> Product:
    if len(matches) > 1:
        logger.warning(
            "Duplicate qrId %r: %d products share it, updating the first by id",
            qr_id,
            len(matches),
        )
    return min(matches, key=lambda p: (p.id is None, p.id or ""))


def _safe_date(value: str | None, fallback: str) -> str:
    if value is None or parse_datetime(value) is None:
        return fallback
    return value.strip()


def _iso(value: str | date) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value.strip()
