"""Owned product state and observable background writes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable, Mapping
from dataclasses import replace
from datetime import date
from typing import Any

from .lifecycle import EXPIRING_SOON_DAYS, LifecycleResult, evaluate
from .models import STATUS_FILTER_ALL, Product, StatusUpdate
from .normalizer import normalize_records
from .views import project

logger = logging.getLogger(__name__)


class WriteTask:
    """A store write running in the background.

    Callers can await it, inspect it later, register a callback or simply
    drop it. A failure is logged once and never raised into the loop.
    """

    def __init__(self, coro: Coroutine[Any, Any, Any], *, description: str) -> None:
        self.description = description
        self._task = asyncio.get_running_loop().create_task(coro)
        self._task.add_done_callback(self._log_outcome)

    def _log_outcome(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("%s was cancelled", self.description)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s failed: %s", self.description, exc, exc_info=exc)
        else:
            logger.debug("%s completed", self.description)

    def done(self) -> bool:
        return self._task.done()

    def failed(self) -> bool:
        return (
            self._task.done()
            and not self._task.cancelled()
            and self._task.exception() is not None
        )

    def exception(self) -> BaseException | None:
        return self._task.exception()

    def result(self) -> Any:
        return self._task.result()

    async def wait(self) -> None:
        """Wait for completion without raising the write's error."""
        await asyncio.wait([self._task])

    def add_done_callback(self, fn: Callable[[WriteTask], None]) -> None:
        self._task.add_done_callback(lambda _task: fn(self))

    def __await__(self):
        return self._task.__await__()


class InventoryState:
    """The authoritative in-memory product list for one owner.

    Only the reconciliation operations change it; presentation code reads
    tuples returned by :meth:`snapshot` and :meth:`view`.
    """

    def __init__(self, *, soon_days: int = EXPIRING_SOON_DAYS) -> None:
        self._soon_days = soon_days
        self._products: list[Product] = []
        self._pending: dict[str, dict] = {}
        self._alerted: set[str] = set()

    def apply_snapshot(
        self, records: Iterable[Mapping], today: date | None = None
    ) -> LifecycleResult:
        """Replace the product list with a fresh store snapshot.

        Returns the lifecycle evaluation; its ``updates`` are the expiry
        transitions to persist. Products with a staged manual edit keep
        the edit and are left out of the automatic updates.
        """
        return self._evaluate(normalize_records(records), today)

    def reevaluate(self, today: date | None = None) -> LifecycleResult:
        """Run the expiry sweep over the current products."""
        return self._evaluate(self._products, today)

    def _evaluate(self, products: list[Product], today: date | None) -> LifecycleResult:
        result = evaluate(products, today, soon_days=self._soon_days)
        result.updates = [u for u in result.updates if u.product_id not in self._pending]
        self._products = [self._overlay(p) for p in result.products]
        return result

    def _overlay(self, product: Product) -> Product:
        staged = self._pending.get(product.id) if product.id else None
        if not staged:
            return product
        return replace(product, **staged)

    def snapshot(self) -> tuple[Product, ...]:
        return tuple(self._products)

    def get(self, product_id: str) -> Product | None:
        for p in self._products:
            if p.id == product_id:
                return p
        return None

    def view(self, search: str = "", status: str = STATUS_FILTER_ALL) -> tuple[Product, ...]:
        return tuple(project(self._products, search, status))

    def set_status(self, product_id: str, status: str) -> Product:
        """Apply a manual status edit and stage it for saving.

        Raises:
            KeyError: If no product has this id.
            ValueError: If the status is empty.
        """
        if not isinstance(status, str) or not status.strip():
            raise ValueError("status must be a non-empty string")
        for i, p in enumerate(self._products):
            if p.id == product_id:
                updated = replace(p, status=status)
                self._products[i] = updated
                self._pending.setdefault(product_id, {})["status"] = status
                return updated
        raise KeyError(product_id)

    def pending_updates(self) -> list[StatusUpdate]:
        return [
            StatusUpdate(product_id=pid, fields=dict(fields))
            for pid, fields in self._pending.items()
        ]

    def has_pending(self) -> bool:
        return bool(self._pending)

    def is_pending(self, product_id: str) -> bool:
        return product_id in self._pending

    def discard_pending(self, product_id: str) -> dict | None:
        """Drop the staged edit of one product and return its fields."""
        return self._pending.pop(product_id, None)

    def restore_pending(self, product_id: str, fields: Mapping) -> None:
        self._pending.setdefault(product_id, {}).update(fields)

    def clear_pending(self, product_ids: Iterable[str] | None = None) -> None:
        if product_ids is None:
            self._pending.clear()
            return
        for pid in product_ids:
            self._pending.pop(pid, None)

    def take_new_expiring(self, products: Iterable[Product]) -> list[Product]:
        """Return the expiring-soon products that have not been alerted yet."""
        fresh: list[Product] = []
        for p in products:
            key = p.id or p.product_name
            if key not in self._alerted:
                self._alerted.add(key)
                fresh.append(p)
        return fresh
