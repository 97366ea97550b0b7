"""Data models for inventory products and scanned QR payloads."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from .errors import InvalidScanError

STATUS_IN_USE = "in use"
STATUS_USED = "used"
STATUS_EXPIRED = "expired"
KNOWN_STATUSES: tuple[str, ...] = (STATUS_IN_USE, STATUS_USED, STATUS_EXPIRED)

STATUS_FILTER_ALL = "all"

UNNAMED_PRODUCT = "Unnamed Product"


@dataclass
class Product:
    """A canonical inventory record."""

    product_name: str
    expiry_date: str  # ISO8601, may be unparsable for legacy records
    quantity: int = 0
    status: str = STATUS_IN_USE
    id: str | None = None  # assigned by the store
    qr_id: str | None = None  # None for manual entries
    manufacture_date: str | None = None
    ingredient: str | None = None
    note: str | None = None
    user_id: str | None = None
    extra: dict = field(default_factory=dict)

    def to_record(self) -> dict:
        """Return the stored document shape (without the id)."""
        record = dict(self.extra)
        record.update(
            {
                "qrId": self.qr_id,
                "productName": self.product_name,
                "expiryDate": self.expiry_date,
                "manufactureDate": self.manufacture_date,
                "ingredient": self.ingredient,
                "note": self.note,
                "quantity": self.quantity,
                "status": self.status,
                "userId": self.user_id,
            }
        )
        return record


@dataclass
class ScannedData:
    """Descriptive fields carried by a product QR code."""

    qr_id: str | None = None
    product_name: str | None = None
    expiry_date: str | None = None
    ingredients: str | None = None
    notes: str | None = None
    manufacturing_date: str | None = None
    manufacture_date: str | None = None

    @classmethod
    def from_json(cls, text: str) -> ScannedData:
        """Parse the JSON text decoded from a QR code.

        Raises:
            InvalidScanError: If the text is not a JSON object.
        """
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            raise InvalidScanError(f"QR code data is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidScanError("QR code data must be a JSON object")

        return cls(
            qr_id=_text(data.get("qrId")),
            product_name=_text(data.get("productName")),
            expiry_date=_text(data.get("expiryDate")),
            ingredients=_text(data.get("ingredients")),
            notes=_text(data.get("notes")),
            manufacturing_date=_text(data.get("manufacturingDate")),
            manufacture_date=_text(data.get("manufactureDate")),
        )


@dataclass
class StatusUpdate:
    """A partial-field update for one stored product."""

    product_id: str
    fields: dict


def _text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    return str(value)


def parse_datetime(value) -> datetime | None:
    """Parse an ISO8601 value into a datetime, or None if unparsable."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    # fromisoformat only accepts "Z" from Python 3.11
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_date(value) -> date | None:
    """Return the local calendar date of an ISO8601 value."""
    parsed = parse_datetime(value)
    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.date()


def now_iso() -> str:
    """Current instant as an ISO8601 UTC string."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
