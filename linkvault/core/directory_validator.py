"""Directory validator: prove a backup destination can be written and read back."""

from __future__ import annotations

import shutil
from datetime import datetime
from pathlib import Path
from typing import Iterable
from uuid import uuid4

from loguru import logger

from linkvault.models.errors import ErrorKind, classify_os_error
from linkvault.models.validation import DirectoryValidation

PROBE_PREFIX = ".backup_test_"
PROBE_SUFFIX = ".tmp"

_REASONS = {
    ErrorKind.ACCESS_DENIED: "Access denied - no write permission",
    ErrorKind.NOT_FOUND: "Directory not found",
    ErrorKind.PATH_TOO_LONG: "Path is too long",
}


def _reason(kind: ErrorKind, exc: BaseException) -> str:
    if kind in _REASONS:
        return _REASONS[kind]
    if kind is ErrorKind.IO_ERROR:
        detail = exc.strerror if isinstance(exc, OSError) and exc.strerror else str(exc)
        return f"IO error: {detail}"
    return str(exc) or type(exc).__name__


class DirectoryValidator:
    """Write/read/delete probe for backup destinations."""

    def check_path(self, path: str, allow_empty: bool = False) -> DirectoryValidation:
        """Syntactic check only: non-empty and absolute."""
        if not path or not path.strip():
            if allow_empty:
                return DirectoryValidation.valid(path)
            return DirectoryValidation.invalid(path, ErrorKind.OTHER, "Path cannot be empty")
        try:
            if not Path(path).is_absolute():
                return DirectoryValidation.invalid(path, ErrorKind.OTHER, "Path must be an absolute path")
        except ValueError as e:
            return DirectoryValidation.invalid(path, ErrorKind.OTHER, f"Invalid path: {e}")
        return DirectoryValidation.valid(path)

    def validate(self, directory: str | Path) -> DirectoryValidation:
        """Create the directory if needed, then round-trip a probe file through it."""
        name = str(directory)
        if not name.strip():
            return DirectoryValidation.invalid(name, ErrorKind.OTHER, "Path cannot be empty")

        path = Path(directory)
        try:
            if not path.is_dir():
                path.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created backup directory: {path}")
        except (OSError, ValueError) as e:
            kind = classify_os_error(e)
            detail = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
            return DirectoryValidation.invalid(name, kind, f"Cannot create: {detail}")

        probe = path / f"{PROBE_PREFIX}{uuid4().hex}{PROBE_SUFFIX}"
        payload = f"Backup validation test - {datetime.now():%Y-%m-%d %H:%M:%S}".encode("utf-8")
        try:
            probe.write_bytes(payload)
            if probe.read_bytes() != payload:
                return DirectoryValidation.invalid(
                    name, ErrorKind.VALIDATION_MISMATCH, "File content verification failed"
                )
        except (OSError, ValueError) as e:
            kind = classify_os_error(e)
            logger.warning(f"Backup directory failed validation: {path}: {e}")
            return DirectoryValidation.invalid(name, kind, _reason(kind, e))
        finally:
            self._remove_probe(probe)

        return DirectoryValidation.valid(name)

    @staticmethod
    def _remove_probe(probe: Path) -> None:
        try:
            probe.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove probe file {probe}: {e}")

    def validate_many(self, directories: Iterable[str]) -> dict[str, DirectoryValidation]:
        """Validate each directory on its own; one failure never skips the rest."""
        return {d: self.validate(d) for d in directories}

    @staticmethod
    def free_space(directory: str | Path) -> int | None:
        """Free bytes on the volume holding ``directory``, None if it cannot be determined."""
        try:
            return shutil.disk_usage(directory).free
        except OSError as e:
            logger.debug(f"Cannot determine free space for {directory}: {e}")
            return None
