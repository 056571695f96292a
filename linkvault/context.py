"""Application context: service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from linkvault.config import Config
    from linkvault.core.archive_codec import ArchiveCodec
    from linkvault.core.backup import BackupOrchestrator
    from linkvault.core.directory_validator import DirectoryValidator
    from linkvault.core.freshness import FreshnessDetector


@dataclass
class AppContext:
    """
    Central service container.

    Dialogs and workers receive this at construction time instead of
    reaching for a process-wide backup service.
    """

    config: Config
    archive_codec: ArchiveCodec
    backup_orchestrator: BackupOrchestrator
    directory_validator: DirectoryValidator
    freshness_detector: FreshnessDetector
