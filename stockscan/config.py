"""TOML configuration loader."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]


@dataclass
class DatabaseConfig:
    path: str = "~/.config/stockscan/inventory.db"


@dataclass
class UserConfig:
    id: str = ""


@dataclass
class ScannerConfig:
    camera_index: int = 0
    save_dir: str = "/tmp/stockscan"


@dataclass
class LifecycleConfig:
    expiring_soon_days: int = 2
    sweep_schedule: str = "0 0 * * *"


@dataclass
class ClaudeInsightsConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class GeminiInsightsConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class InsightsConfig:
    backend: str = "claude"
    claude: ClaudeInsightsConfig = field(default_factory=ClaudeInsightsConfig)
    gemini: GeminiInsightsConfig = field(default_factory=GeminiInsightsConfig)


@dataclass
class StockscanConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    user: UserConfig = field(default_factory=UserConfig)
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    insights: InsightsConfig = field(default_factory=InsightsConfig)


def load_config(path: str | Path | None = None) -> StockscanConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys and the user id can be supplied via environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    db = raw.get("database", {})
    usr = raw.get("user", {})
    scn = raw.get("scanner", {})
    lfc = raw.get("lifecycle", {})
    ins = raw.get("insights", {})

    claude_cfg = ins.get("claude", {})
    gemini_cfg = ins.get("gemini", {})

    # Resolve secrets: config file → environment variable
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )
    user_id = usr.get("id", "") or os.environ.get("STOCKSCAN_USER_ID", "")

    return StockscanConfig(
        database=DatabaseConfig(
            path=db.get("path", "~/.config/stockscan/inventory.db"),
        ),
        user=UserConfig(id=user_id),
        scanner=ScannerConfig(
            camera_index=scn.get("camera_index", 0),
            save_dir=scn.get("save_dir", "/tmp/stockscan"),
        ),
        lifecycle=LifecycleConfig(
            expiring_soon_days=lfc.get("expiring_soon_days", 2),
            sweep_schedule=lfc.get("sweep_schedule", "0 0 * * *"),
        ),
        insights=InsightsConfig(
            backend=ins.get("backend", "claude"),
            claude=ClaudeInsightsConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
            gemini=GeminiInsightsConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
        ),
    )
