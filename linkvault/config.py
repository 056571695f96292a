"""Application configuration: JSON-based, with file locking and batch update support."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

_instance: "Config | None" = None

# Default data directory
_DEFAULT_DATA_DIR = Path.home() / "Documents" / "LinkVault"


def get_config() -> Config:
    """Module-level factory: single global Config instance."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _instance
    _instance = None


class Config:
    """JSON-based application configuration with file locking."""

    _DEFAULTS: dict[str, Any] = {
        "log_level": "INFO",
        "backup": {
            "validate_before_backup": False,
            "preserve_timestamps": True,
            "max_workers": 1,
        },
        "archive": {
            "compression_level": 6,
            "max_entry_size_mb": 500,
        },
        "freshness": {
            "tolerance_seconds": 2.0,
            "step_delay_ms": 50,
        },
    }

    def __init__(self, data_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = data_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))  # deep copy defaults
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                self._deep_merge(self._data, user_data)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        """Persist config to disk with file locking."""
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                if tmp_path.exists():
                    tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def log_level(self) -> str:
        return str(self._data.get("log_level", "INFO"))

    @property
    def validate_before_backup(self) -> bool:
        return bool(self.get("backup.validate_before_backup", False))

    @validate_before_backup.setter
    def validate_before_backup(self, value: bool) -> None:
        self.set("backup.validate_before_backup", value)

    @property
    def preserve_timestamps(self) -> bool:
        return bool(self.get("backup.preserve_timestamps", True))

    @property
    def max_workers(self) -> int:
        return max(1, int(self.get("backup.max_workers", 1)))

    @property
    def compression_level(self) -> int:
        return max(0, min(9, int(self.get("archive.compression_level", 6))))

    @compression_level.setter
    def compression_level(self, value: int) -> None:
        self.set("archive.compression_level", value)

    @property
    def max_entry_size(self) -> int:
        """Extraction ceiling in bytes."""
        return int(self.get("archive.max_entry_size_mb", 500)) * 1024 * 1024

    @property
    def freshness_tolerance(self) -> float:
        return float(self.get("freshness.tolerance_seconds", 2.0))

    @property
    def freshness_step_delay(self) -> float:
        """Pause between items of a bulk update, in seconds."""
        return int(self.get("freshness.step_delay_ms", 50)) / 1000
