"""Freshness detector: find backup copies that fell behind their source, and refresh them."""

from __future__ import annotations

import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, NamedTuple

from loguru import logger

from linkvault.core.backup import copy_file
from linkvault.models.backup_record import parse_destinations
from linkvault.models.freshness import (
    BackupItemType,
    FreshnessState,
    OutdatedBackup,
    TrackedItem,
)
from linkvault.utils import sanitize_filename

DEFAULT_TOLERANCE_SECONDS = 2.0
DEFAULT_STEP_DELAY = 0.05

UpdateProgress = Callable[[int, int, str], None]  # index (1-based), total, item name


class UpdateCounts(NamedTuple):
    succeeded: int
    failed: int


def category_source(data_dir: str | Path, category_name: str) -> Path | None:
    """Persisted file of a category: the encrypted ``.zip.json`` form wins over plain ``.json``."""
    base = Path(data_dir) / sanitize_filename(category_name)
    encrypted = base.with_name(base.name + ".zip.json")
    plain = base.with_name(base.name + ".json")
    if encrypted.is_file():
        return encrypted
    if plain.is_file():
        return plain
    return None


class FreshnessDetector:
    """Compares source and backup modification times and re-copies stale backups."""

    def __init__(
        self,
        tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS,
        step_delay: float = DEFAULT_STEP_DELAY,
    ) -> None:
        self._tolerance = tolerance_seconds
        self._step_delay = step_delay

    def check_pair(self, source: str | Path, backup: str | Path) -> FreshnessState:
        """Classify one (source, backup) pair. Raises OSError if the source cannot be read."""
        backup = Path(backup)
        if not backup.is_file():
            return FreshnessState.MISSING
        source_mtime = Path(source).stat().st_mtime
        if source_mtime > backup.stat().st_mtime + self._tolerance:
            return FreshnessState.OUTDATED
        return FreshnessState.FRESH

    def scan(self, tracked_items: Iterable[TrackedItem]) -> list[OutdatedBackup]:
        """Every backup copy that is missing or older than its source."""
        outdated: list[OutdatedBackup] = []
        for item in tracked_items:
            outdated.extend(self.check_item(item))
        if outdated:
            logger.info(f"Found {len(outdated)} outdated backup(s)")
        return outdated

    def check_item(self, item: TrackedItem) -> list[OutdatedBackup]:
        source = Path(item.source_path)
        try:
            source_modified = datetime.fromtimestamp(source.stat().st_mtime)
        except OSError as e:
            logger.debug(f"Skipping freshness check for {item.item_name}: {e}")
            return []

        outdated: list[OutdatedBackup] = []
        for dest in parse_destinations(item.backup_directories):
            backup = Path(dest.path) / source.name
            try:
                state = self.check_pair(source, backup)
                if state is FreshnessState.FRESH:
                    continue
                backup_modified = (
                    None
                    if state is FreshnessState.MISSING
                    else datetime.fromtimestamp(backup.stat().st_mtime)
                )
            except OSError as e:
                logger.warning(f"Could not check backup {backup}: {e}")
                continue
            outdated.append(
                OutdatedBackup(
                    item_name=item.item_name,
                    item_type=item.item_type,
                    source_path=str(source),
                    backup_path=str(backup),
                    source_modified=source_modified,
                    backup_modified=backup_modified,
                )
            )
        return outdated

    def update_selected(
        self,
        items: Iterable[OutdatedBackup],
        progress: UpdateProgress | None = None,
        cancel_event: threading.Event | None = None,
    ) -> UpdateCounts:
        """Re-copy every item marked ``should_update``; failures are counted, not raised."""
        selected = [b for b in items if b.should_update]
        total = len(selected)
        succeeded = 0
        failed = 0

        for index, backup in enumerate(selected, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Backup update cancelled after {index - 1}/{total}")
                break
            backup.updating = True
            if progress is not None:
                progress(index, total, backup.item_name)

            target = Path(backup.backup_path)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                copy_file(Path(backup.source_path), target)
                succeeded += 1
            except OSError as e:
                failed += 1
                logger.error(f"Failed to update backup {target}: {e}")
            finally:
                backup.updating = False

            if self._step_delay > 0 and index < total:
                time.sleep(self._step_delay)

        logger.info(f"Updated {succeeded} backup(s), {failed} failed")
        return UpdateCounts(succeeded, failed)

    def tracked_category(
        self,
        data_dir: str | Path,
        category_name: str,
        backup_directories: list[str],
    ) -> TrackedItem | None:
        """Build the tracked item for a category's persisted file, if it exists."""
        source = category_source(data_dir, category_name)
        if source is None:
            return None
        return TrackedItem(category_name, BackupItemType.CATEGORY, str(source), list(backup_directories))

    def tracked_archive(self, title: str, zip_path: str, backup_directories: list[str]) -> TrackedItem:
        return TrackedItem(title, BackupItemType.ARCHIVE, zip_path, list(backup_directories))
