"""Directory validation result model."""

from __future__ import annotations

from dataclasses import dataclass

from linkvault.models.errors import ErrorKind


@dataclass(frozen=True)
class DirectoryValidation:
    directory: str
    is_valid: bool
    error_kind: ErrorKind | None = None
    reason: str | None = None

    @classmethod
    def valid(cls, directory: str) -> DirectoryValidation:
        return cls(directory, True)

    @classmethod
    def invalid(cls, directory: str, kind: ErrorKind, reason: str) -> DirectoryValidation:
        return cls(directory, False, kind, reason)
