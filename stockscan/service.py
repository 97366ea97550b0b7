"""Inventory reconciliation over the product store and scan/insight services."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import date

from .camera import ScanCamera
from .db import ProductStore
from .errors import InsightsError, ScanFailedError
from .insights import Insight, InsightBackend, parse_insights
from .lifecycle import EXPIRING_SOON_DAYS, expiring_soon
from .merge import UPDATE, MergeInstruction, build_manual_product, resolve_merge
from .models import (
    STATUS_FILTER_ALL,
    STATUS_IN_USE,
    Product,
    ScannedData,
    StatusUpdate,
)
from .normalizer import normalize_records
from .scanner import ScanWorker
from .state import InventoryState, WriteTask

logger = logging.getLogger(__name__)


class InventoryService:
    """Keeps one owner's inventory in sync with the product store.

    Must be used from a running event loop: store snapshots can schedule
    background writes for automatic expiry transitions.
    """

    def __init__(
        self,
        store: ProductStore,
        user_id: str,
        *,
        insight_backend: InsightBackend | None = None,
        scan_worker: ScanWorker | None = None,
        camera: ScanCamera | None = None,
        soon_days: int = EXPIRING_SOON_DAYS,
        on_expiring_soon: Callable[[list[Product]], None] | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        if not user_id:
            raise ValueError(
                "A user id is required. Set [user] id in the config file "
                "or the STOCKSCAN_USER_ID environment variable."
            )
        self._store = store
        self._user_id = user_id
        self._insight_backend = insight_backend
        self._scan_worker = scan_worker or ScanWorker()
        self._camera = camera
        self._soon_days = soon_days
        self._on_expiring_soon = on_expiring_soon
        self._today = today
        self._state = InventoryState(soon_days=soon_days)
        self._unsubscribe: Callable[[], None] | None = None
        self._last_expiry_write: WriteTask | None = None

    async def __aenter__(self) -> InventoryService:
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def last_expiry_write(self) -> WriteTask | None:
        """The most recent background write of expiry transitions."""
        return self._last_expiry_write

    async def start(self) -> None:
        """Subscribe to the owner's products; the first snapshot arrives now."""
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._user_id, self._on_snapshot)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_snapshot(self, records: list[dict]) -> None:
        result = self._state.apply_snapshot(records, self._today())
        self._after_evaluation(result.updates, result.expiring_soon)

    def _after_evaluation(
        self, updates: list[StatusUpdate], soon: list[Product]
    ) -> WriteTask | None:
        task = self._persist_expired(updates)
        fresh = self._state.take_new_expiring(soon)
        if fresh:
            logger.info(
                "%d product(s) expire within %d days: %s",
                len(fresh),
                self._soon_days,
                ", ".join(p.product_name for p in fresh),
            )
            if self._on_expiring_soon is not None:
                self._on_expiring_soon(fresh)
        return task

    def _persist_expired(self, updates: list[StatusUpdate]) -> WriteTask | None:
        if not updates:
            return None
        task = WriteTask(
            self._commit_expired(updates),
            description=f"Expiry update of {len(updates)} product(s)",
        )
        self._last_expiry_write = task
        return task

    async def _commit_expired(self, updates: list[StatusUpdate]) -> int:
        # Edits staged or saved since the snapshot take precedence
        updates = [u for u in updates if not self._state.is_pending(u.product_id)]
        if not updates:
            return 0
        count = self._store.batch_update(
            self._user_id, updates, only_status=STATUS_IN_USE
        )
        logger.info("%d product(s) were automatically marked as expired", count)
        return count

    # -- reads ----------------------------------------------------------

    def products(self) -> tuple[Product, ...]:
        return self._state.snapshot()

    def view(self, search: str = "", status: str = STATUS_FILTER_ALL) -> tuple[Product, ...]:
        return self._state.view(search, status)

    def expiring_soon(self) -> list[Product]:
        return expiring_soon(self._state.snapshot(), self._today(), self._soon_days)

    # -- writes ---------------------------------------------------------

    async def scan_text(self, text: str, quantity: int = 1) -> MergeInstruction:
        """Merge a decoded QR payload into the inventory.

        Raises:
            InvalidScanError: If the payload is not a JSON object.
            ValueError: If quantity is not a positive integer.
            StoreError: If the store read or write fails.
        """
        scan = ScannedData.from_json(text)
        instruction = resolve_merge(
            scan, quantity, self._matches(scan), user_id=self._user_id
        )
        if instruction.kind == UPDATE:
            return self._apply_update(instruction)

        product_id, created = self._store.insert_if_absent(
            self._user_id, instruction.product.to_record()
        )
        if created:
            logger.info(
                "Added %s (qrId=%s, quantity=%d)",
                instruction.product.product_name,
                scan.qr_id,
                quantity,
            )
            instruction.product = replace(instruction.product, id=product_id)
            return instruction

        # Another writer created this qrId between our lookup and insert
        logger.info("qrId %s was inserted concurrently, merging instead", scan.qr_id)
        instruction = resolve_merge(
            scan, quantity, self._matches(scan), user_id=self._user_id
        )
        return self._apply_update(instruction)

    def _matches(self, scan: ScannedData) -> list[Product]:
        if not scan.qr_id:
            return []
        return normalize_records(self._store.find(self._user_id, "qrId", scan.qr_id))

    def _apply_update(self, instruction: MergeInstruction) -> MergeInstruction:
        # A rescan supersedes any staged manual edit of the product
        staged = self._state.discard_pending(instruction.product_id)
        try:
            self._store.batch_update(
                self._user_id, [(instruction.product_id, instruction.fields)]
            )
        except Exception:
            if staged:
                self._state.restore_pending(instruction.product_id, staged)
            raise
        instruction.product = replace(instruction.product, **instruction.fields)
        logger.info(
            "Updated %s to quantity %d",
            instruction.product.product_name,
            instruction.fields["quantity"],
        )
        return instruction

    async def scan_image(self, path: str, quantity: int = 1) -> MergeInstruction:
        text = await self._scan_worker.decode_file(path)
        if text is None:
            raise ScanFailedError(f"Could not detect a QR code in {path}.")
        return await self.scan_text(text, quantity)

    async def scan_pixels(
        self, width: int, height: int, data: bytes, quantity: int = 1
    ) -> MergeInstruction:
        text = await self._scan_worker.decode(width, height, data)
        if text is None:
            raise ScanFailedError("Could not detect a QR code in the frame.")
        return await self.scan_text(text, quantity)

    async def scan_camera(
        self, quantity: int = 1, *, save: bool = False
    ) -> MergeInstruction:
        """Capture one frame and merge the QR code found in it.

        With ``save`` the frame is also written to the camera's save
        directory as a JPEG.
        """
        if self._camera is None:
            raise RuntimeError("No camera configured")
        frame = await asyncio.to_thread(self._camera.capture_frame)
        if save:
            capture = await asyncio.to_thread(self._camera.save_frame, frame)
            logger.info("Saved scan frame to %s", capture.image_path)
        text = await self._scan_worker.decode_frame(frame)
        if text is None:
            raise ScanFailedError("Could not detect a QR code in the frame.")
        return await self.scan_text(text, quantity)

    async def add_manual(
        self,
        product_name: str,
        quantity: int,
        expiry_date,
        *,
        manufacture_date=None,
        ingredient: str | None = None,
        note: str | None = None,
    ) -> Product:
        """Add a product entered by hand (no QR code)."""
        product = build_manual_product(
            product_name,
            quantity,
            expiry_date,
            user_id=self._user_id,
            manufacture_date=manufacture_date,
            ingredient=ingredient,
            note=note,
        )
        product_id = self._store.insert(self._user_id, product.to_record())
        logger.info("Added %s manually", product.product_name)
        return replace(product, id=product_id)

    def set_status(self, product_id: str, status: str) -> Product:
        """Stage a manual status change; :meth:`save_changes` persists it."""
        return self._state.set_status(product_id, status)

    def has_unsaved_changes(self) -> bool:
        return self._state.has_pending()

    async def save_changes(self) -> int:
        """Write all staged manual edits as one batch.

        Staged edits are kept if the write fails.
        """
        updates = self._state.pending_updates()
        if not updates:
            return 0
        count = self._store.batch_update(self._user_id, updates)
        self._state.clear_pending(u.product_id for u in updates)
        logger.info("Saved status changes for %d product(s)", count)
        return count

    async def sweep(self, *, reload: bool = True) -> WriteTask | None:
        """Re-run expiry transitions.

        Args:
            reload: Read the owner's records from the store first, so
                writes made by other processes are seen. Without it the
                current in-memory products are evaluated.

        Returns:
            The background write of the transitions, or None if nothing
            expired.
        """
        if reload:
            records = self._store.all_records(self._user_id)
            result = self._state.apply_snapshot(records, self._today())
        else:
            result = self._state.reevaluate(self._today())
        return self._after_evaluation(result.updates, result.expiring_soon)

    async def insights(self) -> list[Insight]:
        """Ask the insight service about the current products.

        Raises:
            InsightsError: If no backend is configured or the call fails.
        """
        if self._insight_backend is None:
            raise InsightsError("No insights backend configured")
        try:
            markdown = await self._insight_backend.generate_insights(
                self._state.snapshot()
            )
        except (InsightsError, ValueError, ImportError):
            raise
        except Exception as e:
            raise InsightsError(f"Could not generate inventory insights: {e}") from e
        return parse_insights(markdown)
