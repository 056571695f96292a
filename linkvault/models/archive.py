"""Archive codec result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import BinaryIO


class CodecBackend(StrEnum):
    """Reader/writer implementation able to handle a container."""

    PLAIN = "plain"  # stdlib zipfile, unencrypted deflate/stored
    AES = "aes"  # pyzipper, password-aware (WinZip AES and ZipCrypto)


# Backends are tried in this order when reading a container.
BACKEND_ORDER: tuple[CodecBackend, ...] = (CodecBackend.PLAIN, CodecBackend.AES)


class ExtractStatus(StrEnum):
    OK = "ok"
    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"
    NEEDS_PASSWORD = "needs_password"
    BAD_PASSWORD = "bad_password"
    TOO_LARGE = "too_large"
    IS_DIRECTORY = "is_directory"


@dataclass
class ExtractResult:
    """Outcome of reading one entry out of a container."""

    status: ExtractStatus
    stream: BinaryIO | None = None
    entry_name: str = ""  # name as stored in the container
    backend: CodecBackend | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is ExtractStatus.OK


@dataclass
class CreateResult:
    """Outcome of writing a new container."""

    success: bool
    output_path: str
    entries_written: int = 0
    skipped: list[str] = field(default_factory=list)
    cancelled: bool = False
    error: str = ""


@dataclass
class EntryInfo:
    """Metadata of a single entry, read without decrypting it."""

    name: str
    size: int
    compressed_size: int
    modified: datetime
    is_encrypted: bool = False
    is_dir: bool = False
