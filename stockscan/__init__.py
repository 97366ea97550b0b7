"""QR-code product inventory with expiry tracking and AI insights."""

from .config import (
    DatabaseConfig,
    InsightsConfig,
    LifecycleConfig,
    ScannerConfig,
    StockscanConfig,
    load_config,
)
from .db import ProductStore
from .errors import (
    InsightsError,
    InvalidScanError,
    ScanFailedError,
    StockscanError,
    StoreError,
)
from .insights import Insight, InsightBackend, create_backend, parse_insights
from .lifecycle import LifecycleResult, evaluate
from .merge import MergeInstruction, build_manual_product, resolve_merge
from .models import (
    STATUS_EXPIRED,
    STATUS_IN_USE,
    STATUS_USED,
    Product,
    ScannedData,
    StatusUpdate,
)
from .normalizer import normalize_record, normalize_records
from .service import InventoryService
from .state import InventoryState, WriteTask
from .views import ExpiryBadge, expiry_badge, project

__all__ = [
    "Product",
    "ScannedData",
    "StatusUpdate",
    "STATUS_IN_USE",
    "STATUS_USED",
    "STATUS_EXPIRED",
    "normalize_record",
    "normalize_records",
    "evaluate",
    "LifecycleResult",
    "resolve_merge",
    "build_manual_product",
    "MergeInstruction",
    "project",
    "expiry_badge",
    "ExpiryBadge",
    "InventoryState",
    "WriteTask",
    "InventoryService",
    "ProductStore",
    "InsightBackend",
    "Insight",
    "create_backend",
    "parse_insights",
    "StockscanConfig",
    "DatabaseConfig",
    "ScannerConfig",
    "LifecycleConfig",
    "InsightsConfig",
    "load_config",
    "StockscanError",
    "InvalidScanError",
    "ScanFailedError",
    "StoreError",
    "InsightsError",
]
