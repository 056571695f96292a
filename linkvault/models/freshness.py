"""Backup freshness models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

MISSING_BACKUP_TEXT = "Backup does not exist"


class BackupItemType(StrEnum):
    CATEGORY = "category"
    ARCHIVE = "archive"


class FreshnessState(StrEnum):
    """Lifecycle of one (source, backup) pair."""

    FRESH = "fresh"
    OUTDATED = "outdated"
    MISSING = "missing"
    UPDATING = "updating"


@dataclass
class TrackedItem:
    """A live file and the directories its backup copies live in."""

    item_name: str
    item_type: BackupItemType
    source_path: str
    backup_directories: list[str] = field(default_factory=list)  # persisted form


def format_lag(delta: timedelta) -> str:
    """Render how far a backup is behind, using the largest whole unit."""
    seconds = delta.total_seconds()
    if seconds >= 86400:
        return f"{seconds / 86400:.0f} day(s) behind"
    if seconds >= 3600:
        return f"{seconds / 3600:.0f} hour(s) behind"
    return f"{seconds / 60:.0f} minute(s) behind"


@dataclass
class OutdatedBackup:
    """A backup copy that is older than its source, or does not exist."""

    item_name: str
    item_type: BackupItemType
    source_path: str
    backup_path: str
    source_modified: datetime
    backup_modified: datetime | None = None  # None: backup file is missing
    should_update: bool = True
    updating: bool = False  # copy in progress

    @property
    def is_missing(self) -> bool:
        return self.backup_modified is None

    @property
    def state(self) -> FreshnessState:
        if self.updating:
            return FreshnessState.UPDATING
        return FreshnessState.MISSING if self.is_missing else FreshnessState.OUTDATED

    @property
    def time_difference(self) -> timedelta | None:
        if self.backup_modified is None:
            return None
        return self.source_modified - self.backup_modified

    def describe_lag(self) -> str:
        diff = self.time_difference
        if diff is None:
            return MISSING_BACKUP_TEXT
        return format_lag(diff)
