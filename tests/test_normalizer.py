"""Tests for stored-record normalization."""

from datetime import date, datetime

import pytest

from stockscan.models import UNNAMED_PRODUCT
from stockscan.normalizer import normalize_record, normalize_records

NOW = datetime(2024, 5, 1, 12, 0, 0)


@pytest.mark.parametrize(
    "record",
    [
        {},
        {"productName": ""},
        {"productName": "   "},
        {"productName": None},
        {"productname": ""},
    ],
)
def test_missing_name_defaults(record):
    """Records without a usable name get the placeholder name."""
    product = normalize_record(record, now=NOW)
    assert product.product_name == UNNAMED_PRODUCT


def test_legacy_fields_match_canonical():
    """Legacy-only records normalize exactly like canonical ones."""
    legacy = normalize_record(
        {"productname": "Milk", "expairy_date": "2024-01-01", "quantity": 2}
    )
    canonical = normalize_record(
        {"productName": "Milk", "expiryDate": "2024-01-01", "quantity": 2}
    )
    assert legacy == canonical
    assert legacy.to_record() == canonical.to_record()


def test_legacy_scenario():
    product = normalize_record(
        {"productname": "Milk", "expairy_date": "2024-01-01", "quantity": 2}
    )
    assert product.product_name == "Milk"
    assert product.expiry_date == "2024-01-01"
    assert product.quantity == 2
    assert product.status == "in use"


def test_canonical_takes_precedence():
    product = normalize_record(
        {
            "productName": "New name",
            "productname": "Old name",
            "expiryDate": "2025-03-01",
            "expairy_date": "2020-01-01",
        }
    )
    assert product.product_name == "New name"
    assert product.expiry_date == "2025-03-01"


def test_empty_canonical_falls_back_to_legacy():
    product = normalize_record({"productName": "", "productname": "Old name"})
    assert product.product_name == "Old name"


def test_missing_expiry_uses_now():
    product = normalize_record({"productName": "Rice"}, now=NOW)
    assert product.expiry_date == "2024-05-01T12:00:00"


def test_missing_expiry_default_is_parseable():
    from stockscan.models import parse_datetime

    product = normalize_record({"productName": "Rice"})
    assert parse_datetime(product.expiry_date) is not None


def test_date_objects_become_iso_text():
    product = normalize_record(
        {"productName": "Rice", "expiryDate": date(2025, 1, 2)}
    )
    assert product.expiry_date == "2025-01-02"


def test_unparsable_expiry_is_kept():
    """Bad dates are tolerated for display."""
    product = normalize_record({"productName": "Jam", "expiryDate": "soon"})
    assert product.expiry_date == "soon"


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, 0),
        (-3, 0),
        (5, 5),
        (2.7, 2),
        ("4", 4),
        ("abc", 0),
        (True, 0),
        (float("nan"), 0),
        ({"n": 1}, 0),
    ],
)
def test_quantity_coercion(raw, expected):
    product = normalize_record({"productName": "Tea", "quantity": raw})
    assert product.quantity == expected


def test_status_defaults_to_in_use():
    assert normalize_record({"productName": "Tea"}).status == "in use"
    assert normalize_record({"productName": "Tea", "status": ""}).status == "in use"


def test_unknown_status_is_kept():
    product = normalize_record({"productName": "Tea", "status": "opened"})
    assert product.status == "opened"


def test_unrecognized_fields_preserved():
    product = normalize_record(
        {"productName": "Tea", "expiryDate": "2025-01-01", "brand": "Acme"}
    )
    assert product.extra == {"brand": "Acme"}
    assert product.to_record()["brand"] == "Acme"


def test_optional_fields():
    product = normalize_record(
        {
            "id": 42,
            "qrId": "abc",
            "productName": "Soup",
            "expiryDate": "2025-01-01",
            "manufacture_date": "2024-01-01",
            "ingredient": "tomato",
            "note": "shelf 2",
            "userId": "u1",
        }
    )
    assert product.id == "42"
    assert product.qr_id == "abc"
    assert product.manufacture_date == "2024-01-01"
    assert product.ingredient == "tomato"
    assert product.note == "shelf 2"
    assert product.user_id == "u1"


def test_manual_entry_has_no_qr_id():
    product = normalize_record({"productName": "Soup", "qrId": ""})
    assert product.qr_id is None


def test_garbage_fields_never_raise():
    """Every field falls back on its own default."""
    product = normalize_record(
        {
            "productName": 42,
            "expiryDate": ["2024-01-01"],
            "quantity": {"a": 1},
            "status": None,
            "qrId": 7,
        },
        now=NOW,
    )
    assert product.product_name == "42"
    assert product.expiry_date == NOW.isoformat()
    assert product.quantity == 0
    assert product.status == "in use"
    assert product.qr_id == "7"


def test_normalize_records():
    products = normalize_records(
        [{"productName": "A"}, {"productname": "B"}], now=NOW
    )
    assert [p.product_name for p in products] == ["A", "B"]
