"""Background workers: run long archival operations off the UI thread."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from PySide6.QtCore import QThread, Signal

if TYPE_CHECKING:
    from linkvault.context import AppContext
    from linkvault.models.freshness import OutdatedBackup


class _CancellableWorker(QThread):
    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Ask the running operation to stop at its next checkpoint."""
        self._cancel.set()


class BackupWorker(_CancellableWorker):
    """Copies one file to a set of destination directories."""

    progress = Signal(int, int)  # done, total
    finished = Signal(object)  # BackupSummary

    def __init__(self, ctx: AppContext, source_path: str, destinations: list[str], parent=None) -> None:
        super().__init__(parent)
        self._ctx = ctx
        self._source_path = source_path
        self._destinations = destinations

    def run(self) -> None:
        summary = self._ctx.backup_orchestrator.backup_file(
            self._source_path,
            self._destinations,
            cancel_event=self._cancel,
            progress=self.progress.emit,
        )
        self.finished.emit(summary)


class FreshnessUpdateWorker(_CancellableWorker):
    """Re-copies the backups the user confirmed in the freshness dialog."""

    progress = Signal(int, int, str)  # index, total, item name
    finished = Signal(int, int)  # succeeded, failed

    def __init__(self, ctx: AppContext, backups: list[OutdatedBackup], parent=None) -> None:
        super().__init__(parent)
        self._ctx = ctx
        self._backups = backups

    def run(self) -> None:
        succeeded, failed = self._ctx.freshness_detector.update_selected(
            self._backups,
            progress=self.progress.emit,
            cancel_event=self._cancel,
        )
        self.finished.emit(succeeded, failed)


class ArchiveWorker(_CancellableWorker):
    """Creates a (possibly encrypted) zip from a file or directory."""

    finished = Signal(object)  # CreateResult

    def __init__(
        self,
        ctx: AppContext,
        source: str,
        output_path: str,
        password: str | None = None,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self._ctx = ctx
        self._source = source
        self._output_path = output_path
        self._password = password

    def run(self) -> None:
        result = self._ctx.archive_codec.create_encrypted(
            self._source,
            self._output_path,
            password=self._password,
            compression_level=self._ctx.config.compression_level,
            cancel_event=self._cancel,
        )
        self.finished.emit(result)
