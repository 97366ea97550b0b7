"""Owner-scoped product documents stored as JSON in SQLite."""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

from ..errors import StoreError
from ..models import STATUS_IN_USE, StatusUpdate
from .schema import ensure_schema

logger = logging.getLogger(__name__)

Snapshot = list[dict]
Listener = Callable[[Snapshot], None]

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ProductStore:
    """Manages the products table.

    Each row holds one product document (any JSON object) for one owner.
    Subscribers get the owner's full record list on subscribe and after
    every committed write for that owner.
    """

    def __init__(self, db_path: str | Path = "~/.config/stockscan/inventory.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._listeners: dict[str, list[Listener]] = {}

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StoreError(f"product store write failed: {e}") from e

    # -- subscriptions --------------------------------------------------

    def subscribe(self, user_id: str, listener: Listener) -> Callable[[], None]:
        """Deliver the owner's records now and after every change.

        Returns:
            A function that removes the listener.
        """
        _require_user(user_id)
        self._listeners.setdefault(user_id, []).append(listener)
        listener(self.all_records(user_id))

        def unsubscribe() -> None:
            listeners = self._listeners.get(user_id, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def _notify(self, user_id: str) -> None:
        listeners = list(self._listeners.get(user_id, []))
        if not listeners:
            return
        records = self.all_records(user_id)
        for listener in listeners:
            try:
                listener([dict(r) for r in records])
            except Exception:
                logger.exception("Product listener failed for user %s", user_id)

    # -- reads ----------------------------------------------------------

    def all_records(self, user_id: str) -> Snapshot:
        """Return every raw record of the owner, each with its ``id``."""
        try:
            rows = self._get_conn().execute(
                "SELECT id, data FROM products WHERE user_id = ? ORDER BY rowid",
                (user_id,),
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"product store read failed: {e}") from e
        return [_row_to_record(r) for r in rows]

    def get(self, user_id: str, product_id: str) -> dict | None:
        try:
            row = self._get_conn().execute(
                "SELECT id, data FROM products WHERE user_id = ? AND id = ?",
                (user_id, product_id),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"product store read failed: {e}") from e
        return _row_to_record(row) if row else None

    def find(self, user_id: str, field: str, value) -> Snapshot:
        """Exact-match query on a top-level document field."""
        if not _FIELD_RE.match(field):
            raise ValueError(f"invalid field name: {field!r}")
        if field == "qrId":
            sql = (
                "SELECT id, data FROM products WHERE user_id = ? AND qr_id = ? "
                "ORDER BY id"
            )
        else:
            sql = (
                "SELECT id, data FROM products WHERE user_id = ? "
                f"AND json_extract(data, '$.{field}') = ? ORDER BY id"
            )
        try:
            rows = self._get_conn().execute(sql, (user_id, value)).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"product store query failed: {e}") from e
        return [_row_to_record(r) for r in rows]

    # -- writes ---------------------------------------------------------

    def insert(self, user_id: str, record: Mapping) -> str:
        """Store a new document and return its assigned id."""
        _require_user(user_id)
        product_id, data = _prepare(user_id, record)
        with self._write() as conn:
            conn.execute(
                "INSERT INTO products (id, user_id, qr_id, data) VALUES (?, ?, ?, ?)",
                (product_id, user_id, data.get("qrId"), _dumps(data)),
            )
        self._notify(user_id)
        return product_id

    def insert_if_absent(self, user_id: str, record: Mapping) -> tuple[str, bool]:
        """Insert unless the owner already has a product with this ``qrId``.

        The check and the insert are a single statement, so two concurrent
        scans of a new code cannot both create a product.

        Returns:
            ``(id, created)``; when not created, the id is the existing one.
        """
        _require_user(user_id)
        product_id, data = _prepare(user_id, record)
        qr_id = data.get("qrId")
        if qr_id is None:
            return self.insert(user_id, data), True

        with self._write() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO products (id, user_id, qr_id, data) "
                "VALUES (?, ?, ?, ?)",
                (product_id, user_id, qr_id, _dumps(data)),
            )
            created = cur.rowcount == 1
            if not created:
                row = conn.execute(
                    "SELECT id FROM products WHERE user_id = ? AND qr_id = ? "
                    "ORDER BY id LIMIT 1",
                    (user_id, qr_id),
                ).fetchone()
                product_id = row["id"]
        if created:
            self._notify(user_id)
        return product_id, created

    def batch_update(
        self,
        user_id: str,
        updates: Iterable[StatusUpdate | tuple[str, Mapping]],
        *,
        only_status: str | None = None,
    ) -> int:
        """Apply partial-field updates to several products atomically.

        Either every update is written or none is.

        Args:
            user_id: Owner of the products.
            updates: ``StatusUpdate`` objects or ``(id, fields)`` pairs.
            only_status: If given, products whose stored status (missing
                counts as ``in use``) differs at write time are skipped,
                and so are products that no longer exist.

        Raises:
            StoreError: If a product does not exist or the write fails.

        Returns:
            Number of products updated.
        """
        _require_user(user_id)
        pairs = [
            (u.product_id, u.fields) if isinstance(u, StatusUpdate) else u
            for u in updates
        ]
        if not pairs:
            return 0

        updated = 0
        with self._write() as conn:
            for product_id, fields in pairs:
                row = conn.execute(
                    "SELECT data FROM products WHERE user_id = ? AND id = ?",
                    (user_id, product_id),
                ).fetchone()
                if row is None:
                    if only_status is not None:
                        continue
                    raise StoreError(f"product not found: {product_id}")
                data = json.loads(row["data"])
                if only_status is not None and (
                    data.get("status") or STATUS_IN_USE
                ) != only_status:
                    continue
                data.update(fields)
                data.pop("id", None)
                conn.execute(
                    """UPDATE products
                       SET data = ?, qr_id = ?,
                           updated_at = datetime('now', 'localtime')
                       WHERE id = ?""",
                    (_dumps(data), _qr_column(data), product_id),
                )
                updated += 1
        if updated:
            self._notify(user_id)
        return updated

    def delete(self, user_id: str, product_id: str) -> bool:
        """Delete a product. Returns False if it did not exist."""
        with self._write() as conn:
            cur = conn.execute(
                "DELETE FROM products WHERE user_id = ? AND id = ?",
                (user_id, product_id),
            )
        deleted = cur.rowcount > 0
        if deleted:
            self._notify(user_id)
        return deleted


def _require_user(user_id: str) -> None:
    if not user_id:
        raise ValueError("userId is required for product store access")


def _prepare(user_id: str, record: Mapping) -> tuple[str, dict]:
    data = dict(record)
    data.pop("id", None)
    data["userId"] = user_id
    data["qrId"] = _qr_column(data)
    return uuid.uuid4().hex, data


def _qr_column(data: Mapping) -> str | None:
    qr_id = data.get("qrId")
    if qr_id is None or qr_id == "":
        return None
    return str(qr_id)


def _dumps(data: Mapping) -> str:
    return json.dumps(data, ensure_ascii=False, default=str)


def _row_to_record(row: sqlite3.Row) -> dict:
    record = json.loads(row["data"])
    record["id"] = row["id"]
    return record
