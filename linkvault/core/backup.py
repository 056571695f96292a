"""Backup orchestrator: copy one file into many backup directories."""

from __future__ import annotations

import os
import shutil
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable

from loguru import logger

from linkvault.models.backup_record import BackupResult, BackupSummary, automatic_directories
from linkvault.models.errors import ErrorKind, classify_os_error, describe_os_error

if TYPE_CHECKING:
    from linkvault.core.directory_validator import DirectoryValidator

ProgressCallback = Callable[[int, int], None]


def temp_path_for(destination: Path) -> Path:
    """Sibling file a copy is staged in before it replaces ``destination``."""
    return destination.with_name(f".{destination.name}.tmp")


def copy_file(source: Path, destination: Path, preserve_timestamps: bool = True) -> int:
    """Copy ``source`` over ``destination`` and return the number of bytes written.

    The data goes to a sibling temp file first and is moved into place
    only once complete, so a failed copy leaves the previous backup intact.
    """
    tmp_path = temp_path_for(destination)
    try:
        if preserve_timestamps:
            shutil.copy2(source, tmp_path)
        else:
            shutil.copyfile(source, tmp_path)
        os.replace(tmp_path, destination)
    except OSError:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
    return destination.stat().st_size


class BackupOrchestrator:
    """Copies a source file to a list of destination directories.

    Each destination is handled independently and reported in its own
    row of the returned summary. The orchestrator keeps no per-call state
    and can be shared.
    """

    def __init__(
        self,
        validator: DirectoryValidator | None = None,
        preserve_timestamps: bool = True,
        validate_before_backup: bool = False,
        max_workers: int = 1,
    ) -> None:
        self._validator = validator
        self._preserve_timestamps = preserve_timestamps
        self._validate_before_backup = validate_before_backup and validator is not None
        self._max_workers = max(1, max_workers)

    @staticmethod
    def backup_path_for(source_path: str | Path, directory: str | Path) -> Path:
        return Path(directory) / Path(source_path).name

    def backup_exists(self, source_path: str | Path, directory: str | Path) -> bool:
        return self.backup_path_for(source_path, directory).is_file()

    def existing_backups(self, source_path: str | Path, directories: Iterable[str]) -> list[Path]:
        """Backup copies of ``source_path`` that currently exist."""
        found: list[Path] = []
        for directory in directories:
            if not directory or not directory.strip():
                continue
            candidate = self.backup_path_for(source_path, directory)
            if candidate.is_file():
                found.append(candidate)
        return found

    def backup_file(
        self,
        source_path: str | Path,
        destinations: Iterable[str],
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> BackupSummary:
        """Copy ``source_path`` into every destination; never raises for I/O failures."""
        source = Path(source_path)
        targets = list(destinations)
        total = len(targets)

        if not source.is_file():
            logger.error(f"Backup source not found: {source}")
            results = tuple(
                BackupResult(
                    destination=d,
                    success=False,
                    error_message="Source file not found",
                    error_kind=ErrorKind.NOT_FOUND,
                )
                for d in targets
            )
            return BackupSummary(str(source), results)

        done = 0
        done_lock = threading.Lock()

        def run(directory: str) -> BackupResult:
            nonlocal done
            if cancel_event is not None and cancel_event.is_set():
                return BackupResult(
                    destination=directory,
                    success=False,
                    error_message="Cancelled",
                    error_kind=ErrorKind.CANCELLED,
                )
            result = self._backup_to_directory(source, directory)
            if progress is not None:
                with done_lock:
                    done += 1
                    progress(done, total)
            return result

        if self._max_workers > 1 and total > 1:
            with ThreadPoolExecutor(
                max_workers=min(self._max_workers, total),
                thread_name_prefix="linkvault-backup",
            ) as executor:
                futures = [executor.submit(run, d) for d in targets]
                results = tuple(f.result() for f in futures)
        else:
            results = tuple(run(d) for d in targets)

        summary = BackupSummary(
            str(source),
            results,
            cancelled=any(r.error_kind is ErrorKind.CANCELLED for r in results),
        )
        if summary.success_count:
            logger.info(f"Backed up {source.name} to {summary.success_count}/{total} location(s)")
        for failure in summary.failures():
            logger.error(f"Backup failed to {failure.destination}: {failure.error_message}")
        return summary

    def backup_automatic(
        self,
        source_path: str | Path,
        persisted_destinations: Iterable[str],
        cancel_event: threading.Event | None = None,
    ) -> BackupSummary:
        """Save-time hook: back up only to destinations without the manual marker."""
        return self.backup_file(source_path, automatic_directories(persisted_destinations), cancel_event)

    def _backup_to_directory(self, source: Path, directory: str) -> BackupResult:
        if not directory or not directory.strip():
            return BackupResult(
                destination=directory,
                success=False,
                error_message="Destination path is empty",
                error_kind=ErrorKind.NOT_FOUND,
            )

        if self._validate_before_backup:
            check = self._validator.validate(directory)  # type: ignore[union-attr]
            if not check.is_valid:
                return BackupResult(
                    destination=directory,
                    success=False,
                    error_message=check.reason,
                    error_kind=check.error_kind,
                )

        target_dir = Path(directory)
        destination = target_dir / source.name
        try:
            if not target_dir.is_dir():
                target_dir.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created backup directory: {target_dir}")
            copied = copy_file(source, destination, self._preserve_timestamps)
        except (OSError, ValueError) as e:
            return BackupResult(
                destination=directory,
                success=False,
                error_message=describe_os_error(e),
                destination_path=os.fspath(destination),
                error_kind=classify_os_error(e),
            )

        logger.debug(f"Backed up {source.name} to {target_dir} ({copied} bytes)")
        return BackupResult(
            destination=directory,
            success=True,
            bytes_copied=copied,
            destination_path=os.fspath(destination),
            backed_up_at=datetime.now(),
        )
