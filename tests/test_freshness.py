"""Tests for the FreshnessDetector."""

from __future__ import annotations

import errno
import os
import shutil
import threading
from datetime import timedelta
from pathlib import Path

import pytest

from linkvault.core.freshness import FreshnessDetector, category_source
from linkvault.models.freshness import (
    MISSING_BACKUP_TEXT,
    BackupItemType,
    FreshnessState,
    OutdatedBackup,
    TrackedItem,
    format_lag,
)

BASE_TIME = 1_700_000_000


def _touch(path: Path, mtime: float, content: str = "data") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def detector() -> FreshnessDetector:
    return FreshnessDetector(step_delay=0)


@pytest.fixture
def source(tmp_path: Path) -> Path:
    return _touch(tmp_path / "data" / "Reading.json", BASE_TIME, "current")


class TestCheckPair:
    def test_missing(self, detector: FreshnessDetector, source: Path, tmp_path: Path) -> None:
        assert detector.check_pair(source, tmp_path / "nope.json") is FreshnessState.MISSING

    def test_outdated(self, detector: FreshnessDetector, source: Path, tmp_path: Path) -> None:
        backup = _touch(tmp_path / "b" / source.name, BASE_TIME - 10)
        assert detector.check_pair(source, backup) is FreshnessState.OUTDATED

    def test_within_tolerance(self, detector: FreshnessDetector, source: Path, tmp_path: Path) -> None:
        backup = _touch(tmp_path / "b" / source.name, BASE_TIME - 1)
        assert detector.check_pair(source, backup) is FreshnessState.FRESH

    def test_exactly_at_tolerance(self, detector: FreshnessDetector, source: Path, tmp_path: Path) -> None:
        backup = _touch(tmp_path / "b" / source.name, BASE_TIME - 2)
        assert detector.check_pair(source, backup) is FreshnessState.FRESH

    def test_backup_newer(self, detector: FreshnessDetector, source: Path, tmp_path: Path) -> None:
        backup = _touch(tmp_path / "b" / source.name, BASE_TIME + 100)
        assert detector.check_pair(source, backup) is FreshnessState.FRESH

    def test_custom_tolerance(self, source: Path, tmp_path: Path) -> None:
        backup = _touch(tmp_path / "b" / source.name, BASE_TIME - 10)
        assert FreshnessDetector(tolerance_seconds=60).check_pair(source, backup) is FreshnessState.FRESH


class TestScan:
    def test_reports_outdated_and_missing(
        self, detector: FreshnessDetector, source: Path, tmp_path: Path
    ) -> None:
        fresh_dir = tmp_path / "fresh"
        stale_dir = tmp_path / "stale"
        empty_dir = tmp_path / "empty"
        _touch(fresh_dir / source.name, BASE_TIME)
        _touch(stale_dir / source.name, BASE_TIME - 3600)
        empty_dir.mkdir()

        item = TrackedItem(
            "Reading",
            BackupItemType.CATEGORY,
            str(source),
            [str(fresh_dir), str(stale_dir), str(empty_dir)],
        )
        outdated = detector.scan([item])
        assert [o.backup_path for o in outdated] == [
            str(stale_dir / source.name),
            str(empty_dir / source.name),
        ]
        stale, missing = outdated
        assert stale.state is FreshnessState.OUTDATED
        assert stale.time_difference == timedelta(hours=1)
        assert stale.describe_lag() == "1 hour(s) behind"
        assert missing.is_missing
        assert missing.describe_lag() == MISSING_BACKUP_TEXT
        assert all(o.should_update for o in outdated)

    def test_manual_destinations_checked(
        self, detector: FreshnessDetector, source: Path, tmp_path: Path
    ) -> None:
        manual = tmp_path / "usb"
        item = TrackedItem("Reading", BackupItemType.CATEGORY, str(source), [f"[MANUAL]{manual}"])
        outdated = detector.scan([item])
        assert [o.backup_path for o in outdated] == [str(manual / source.name)]

    def test_blank_and_duplicate_destinations_ignored(
        self, detector: FreshnessDetector, source: Path, tmp_path: Path
    ) -> None:
        d = str(tmp_path / "d")
        item = TrackedItem("Reading", BackupItemType.CATEGORY, str(source), [d, "", d])
        assert len(detector.scan([item])) == 1

    def test_missing_source_skipped(self, detector: FreshnessDetector, tmp_path: Path) -> None:
        item = TrackedItem("Gone", BackupItemType.ARCHIVE, str(tmp_path / "gone.zip"), [str(tmp_path)])
        assert detector.scan([item]) == []

    def test_everything_fresh(self, detector: FreshnessDetector, source: Path, tmp_path: Path) -> None:
        _touch(tmp_path / "d" / source.name, BASE_TIME)
        item = TrackedItem("Reading", BackupItemType.CATEGORY, str(source), [str(tmp_path / "d")])
        assert detector.scan([item]) == []


class TestUpdateSelected:
    def _outdated(self, detector: FreshnessDetector, source: Path, dirs: list[Path]) -> list[OutdatedBackup]:
        item = TrackedItem("Reading", BackupItemType.CATEGORY, str(source), [str(d) for d in dirs])
        return detector.scan([item])

    def test_refreshes_and_becomes_fresh(
        self, detector: FreshnessDetector, source: Path, tmp_path: Path
    ) -> None:
        stale = _touch(tmp_path / "d1" / source.name, BASE_TIME - 3600, "old")
        backups = self._outdated(detector, source, [tmp_path / "d1", tmp_path / "d2"])

        counts = detector.update_selected(backups)
        assert counts == (2, 0)
        assert counts.succeeded == 2
        assert stale.read_text(encoding="utf-8") == "current"
        assert (tmp_path / "d2" / source.name).is_file()
        assert detector.scan(
            [TrackedItem("Reading", BackupItemType.CATEGORY, str(source), [str(tmp_path / "d1")])]
        ) == []

    def test_deselected_items_untouched(
        self, detector: FreshnessDetector, source: Path, tmp_path: Path
    ) -> None:
        backups = self._outdated(detector, source, [tmp_path / "d1", tmp_path / "d2"])
        backups[0].should_update = False
        assert detector.update_selected(backups) == (1, 0)
        assert not (tmp_path / "d1" / source.name).exists()

    def test_progress_before_each_item(
        self, detector: FreshnessDetector, source: Path, tmp_path: Path
    ) -> None:
        backups = self._outdated(detector, source, [tmp_path / "d1", tmp_path / "d2"])
        calls: list[tuple[int, int, str]] = []
        detector.update_selected(backups, progress=lambda i, n, name: calls.append((i, n, name)))
        assert calls == [(1, 2, "Reading"), (2, 2, "Reading")]

    def test_updating_state_during_copy(
        self, detector: FreshnessDetector, source: Path, tmp_path: Path
    ) -> None:
        backups = self._outdated(detector, source, [tmp_path / "d1"])
        seen: list[FreshnessState] = []
        detector.update_selected(backups, progress=lambda i, n, name: seen.append(backups[0].state))
        assert seen == [FreshnessState.UPDATING]
        assert backups[0].state is FreshnessState.MISSING

    def test_failure_counted(self, detector: FreshnessDetector, source: Path, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        backups = self._outdated(detector, source, [tmp_path / "d1"])
        backups.append(
            OutdatedBackup(
                item_name="Reading",
                item_type=BackupItemType.CATEGORY,
                source_path=str(source),
                backup_path=str(blocker / "sub" / source.name),
                source_modified=backups[0].source_modified,
            )
        )
        assert detector.update_selected(backups) == (1, 1)

    def test_failed_copy_keeps_stale_backup(
        self,
        detector: FreshnessDetector,
        source: Path,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        stale = _touch(tmp_path / "d1" / source.name, BASE_TIME - 3600, "old")
        backups = self._outdated(detector, source, [tmp_path / "d1"])

        def torn_copy(src, dst, *args, **kwargs):
            Path(dst).write_bytes(b"cur")
            raise OSError(errno.ENOSPC, "No space left on device")

        monkeypatch.setattr(shutil, "copy2", torn_copy)
        assert detector.update_selected(backups) == (0, 1)
        assert stale.read_text(encoding="utf-8") == "old"
        assert [p.name for p in stale.parent.iterdir()] == [source.name]

    def test_cancel_stops_remaining(
        self, detector: FreshnessDetector, source: Path, tmp_path: Path
    ) -> None:
        backups = self._outdated(detector, source, [tmp_path / "d1", tmp_path / "d2"])
        cancel = threading.Event()
        counts = detector.update_selected(
            backups, progress=lambda i, n, name: cancel.set(), cancel_event=cancel
        )
        assert counts == (1, 0)
        assert not (tmp_path / "d2" / source.name).exists()


class TestCategorySource:
    def test_encrypted_form_preferred(self, tmp_path: Path) -> None:
        (tmp_path / "Work.json").write_text("{}")
        (tmp_path / "Work.zip.json").write_text("{}")
        assert category_source(tmp_path, "Work") == tmp_path / "Work.zip.json"

    def test_plain_form(self, tmp_path: Path) -> None:
        (tmp_path / "Work.json").write_text("{}")
        assert category_source(tmp_path, "Work") == tmp_path / "Work.json"

    def test_name_sanitized(self, tmp_path: Path) -> None:
        (tmp_path / "a_b.json").write_text("{}")
        assert category_source(tmp_path, "a/b") == tmp_path / "a_b.json"

    def test_missing(self, detector: FreshnessDetector, tmp_path: Path) -> None:
        assert category_source(tmp_path, "Nothing") is None
        assert detector.tracked_category(tmp_path, "Nothing", [str(tmp_path)]) is None

    def test_tracked_archive(self, detector: FreshnessDetector, tmp_path: Path) -> None:
        item = detector.tracked_archive("Papers", str(tmp_path / "papers.zip"), ["/backups"])
        assert item.item_type is BackupItemType.ARCHIVE
        assert item.backup_directories == ["/backups"]


@pytest.mark.parametrize(
    "delta, text",
    [
        (timedelta(days=2, hours=3), "2 day(s) behind"),
        (timedelta(hours=5), "5 hour(s) behind"),
        (timedelta(minutes=42), "42 minute(s) behind"),
    ],
)
def test_format_lag(delta: timedelta, text: str) -> None:
    assert format_lag(delta) == text
