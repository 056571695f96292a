"""Backup destination and result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Iterable

from linkvault.models.errors import ErrorKind

MANUAL_PREFIX = "[MANUAL]"


class DestinationMode(StrEnum):
    """When a destination receives copies."""

    AUTOMATIC = "automatic"  # on every save
    MANUAL = "manual"  # only on explicit request


@dataclass(frozen=True)
class BackupDestination:
    """One configured backup directory of a category or archive."""

    path: str
    mode: DestinationMode = DestinationMode.AUTOMATIC

    @classmethod
    def from_persisted(cls, raw: str) -> BackupDestination:
        text = raw.strip()
        if text.startswith(MANUAL_PREFIX):
            return cls(text[len(MANUAL_PREFIX) :].strip(), DestinationMode.MANUAL)
        return cls(text, DestinationMode.AUTOMATIC)

    def to_persisted(self) -> str:
        if self.mode is DestinationMode.MANUAL:
            return f"{MANUAL_PREFIX}{self.path}"
        return self.path

    @property
    def is_manual(self) -> bool:
        return self.mode is DestinationMode.MANUAL


def parse_destinations(persisted: Iterable[str]) -> list[BackupDestination]:
    """Parse a stored destination list, dropping blanks and case-insensitive duplicates."""
    seen: set[str] = set()
    destinations: list[BackupDestination] = []
    for raw in persisted:
        if not raw or not raw.strip():
            continue
        dest = BackupDestination.from_persisted(raw)
        if not dest.path:
            continue
        key = dest.path.casefold()
        if key in seen:
            continue
        seen.add(key)
        destinations.append(dest)
    return destinations


def automatic_directories(persisted: Iterable[str]) -> list[str]:
    return [d.path for d in parse_destinations(persisted) if not d.is_manual]


def manual_directories(persisted: Iterable[str]) -> list[str]:
    return [d.path for d in parse_destinations(persisted) if d.is_manual]


@dataclass(frozen=True)
class BackupResult:
    """Outcome of copying the source into one destination directory."""

    destination: str
    success: bool
    error_message: str | None = None
    bytes_copied: int | None = None
    destination_path: str = ""  # full path of the written copy
    error_kind: ErrorKind | None = None
    backed_up_at: datetime = field(default_factory=datetime.now)


class SummaryStatus(StrEnum):
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL = "partial"
    ALL_FAILED = "all_failed"
    EMPTY = "empty"


@dataclass(frozen=True)
class BackupSummary:
    """Per-operation result of a multi-destination backup, in input order."""

    source_path: str
    results: tuple[BackupResult, ...] = ()
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def all_successful(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def has_failures(self) -> bool:
        return any(not r.success for r in self.results)

    @property
    def total_bytes(self) -> int:
        return sum(r.bytes_copied or 0 for r in self.results if r.success)

    @property
    def status(self) -> SummaryStatus:
        if not self.results:
            return SummaryStatus.EMPTY
        if self.all_successful:
            return SummaryStatus.ALL_SUCCEEDED
        if self.success_count == 0:
            return SummaryStatus.ALL_FAILED
        return SummaryStatus.PARTIAL

    def failures(self) -> list[BackupResult]:
        return [r for r in self.results if not r.success]
