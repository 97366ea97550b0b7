"""Tests for the command line interface."""

import json

import pytest

from stockscan.cli import main
from stockscan.db import ProductStore

JUICE = '{"qrId": "abc", "productName": "Juice", "expiryDate": "2030-01-01"}'


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ANTHROPIC_API_KEY", "GEMINI_API_KEY", "STOCKSCAN_USER_ID"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "inventory.db"


@pytest.fixture
def config_path(tmp_path, db_path):
    path = tmp_path / "stockscan.toml"
    path.write_text(f'[database]\npath = "{db_path}"\n\n[user]\nid = "u1"\n')
    return str(path)


def _list(config_path, capsys, *extra):
    capsys.readouterr()
    main(["-c", config_path, "list", "--json", *extra])
    return json.loads(capsys.readouterr().out)


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1
    assert "usage" in capsys.readouterr().out


def test_add_and_list(config_path, capsys):
    main(["-c", config_path, "add", "Oat milk", "--expiry", "2030-03-01", "-n", "2"])
    assert "Added Oat milk" in capsys.readouterr().out

    products = _list(config_path, capsys)
    assert len(products) == 1
    assert products[0]["productName"] == "Oat milk"
    assert products[0]["quantity"] == 2
    assert products[0]["qrId"] is None


def test_scan_text_merges(config_path, capsys):
    main(["-c", config_path, "scan", "--text", JUICE, "-n", "3"])
    capsys.readouterr()
    main(["-c", config_path, "scan", "--text", JUICE, "--json"])
    result = json.loads(capsys.readouterr().out)

    assert result["action"] == "update"
    assert result["fields"] == {"quantity": 4, "status": "in use"}
    assert result["product"]["quantity"] == 4
    assert result["product"]["status"] == "in use"


def test_list_filters(config_path, capsys):
    main(["-c", config_path, "add", "Oat milk", "--expiry", "2030-03-01"])
    main(["-c", config_path, "add", "Bread", "--expiry", "2030-01-01"])

    assert [p["productName"] for p in _list(config_path, capsys)] == ["Bread", "Oat milk"]
    assert [p["productName"] for p in _list(config_path, capsys, "-s", "MILK")] == [
        "Oat milk"
    ]
    assert _list(config_path, capsys, "--status", "used") == []


def test_status_change(config_path, capsys):
    main(["-c", config_path, "add", "Bread", "--expiry", "2030-01-01"])
    product_id = _list(config_path, capsys)[0]["id"]

    main(["-c", config_path, "status", product_id, "used"])
    assert "Bread: used" in capsys.readouterr().out
    assert _list(config_path, capsys)[0]["status"] == "used"


def test_status_unknown_product(config_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["-c", config_path, "status", "missing", "used"])
    assert exc.value.code == 1
    assert "Product not found" in capsys.readouterr().err


def test_sweep_marks_expired(config_path, db_path, capsys):
    store = ProductStore(db_path)
    store.insert("u1", {"productname": "Milk", "expairy_date": "2020-01-01", "quantity": 1})
    store.close()

    main(["-c", config_path, "sweep"])
    assert "1 product(s) were marked as expired" in capsys.readouterr().out
    assert _list(config_path, capsys)[0]["status"] == "expired"

    main(["-c", config_path, "sweep"])
    assert "No products needed updating" in capsys.readouterr().out


def test_invalid_scan_payload(config_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["-c", config_path, "scan", "--text", "not json"])
    assert exc.value.code == 1
    assert "Error:" in capsys.readouterr().err


def test_missing_user_id(tmp_path, db_path, capsys):
    path = tmp_path / "nouser.toml"
    path.write_text(f'[database]\npath = "{db_path}"\n')

    with pytest.raises(SystemExit) as exc:
        main(["-c", str(path), "list"])
    assert exc.value.code == 1
    assert "user id is required" in capsys.readouterr().err


def test_insights_empty_inventory(config_path, capsys):
    main(["-c", config_path, "insights", "--json"])
    data = json.loads(capsys.readouterr().out)
    assert [i["title"] for i in data] == ["No Products"]
