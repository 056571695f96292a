"""Archive codec: read entries from, and create, plain or AES-encrypted zip containers.

Callers never need to know up front whether a container is encrypted.
Reading goes through the backends in ``BACKEND_ORDER``: the stdlib
``zipfile`` reader handles plain entries, ``pyzipper`` handles entries
that carry an encryption flag or the WinZip AES method id.
"""

from __future__ import annotations

import io
import threading
import zipfile
import zlib
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Iterable, Protocol

import pyzipper
from loguru import logger

from linkvault.core import virtual_address
from linkvault.models.archive import (
    BACKEND_ORDER,
    CodecBackend,
    CreateResult,
    EntryInfo,
    ExtractResult,
    ExtractStatus,
)
from linkvault.models.errors import describe_os_error

MAX_ENTRY_SIZE = 500 * 1024 * 1024
DEFAULT_COMPRESSION_LEVEL = 6

_FLAG_ENCRYPTED = 0x1
_METHOD_WZ_AES = 99
_DIR_SUFFIXES = ("/", "\\")
_BAD_ZIP = (zipfile.BadZipFile, pyzipper.BadZipFile)


class _ZipEntry(Protocol):
    filename: str
    flag_bits: int
    compress_type: int
    file_size: int


def select_backend(info: _ZipEntry) -> CodecBackend:
    """Name the backend able to decode an entry."""
    if info.flag_bits & _FLAG_ENCRYPTED or info.compress_type == _METHOD_WZ_AES:
        return CodecBackend.AES
    return CodecBackend.PLAIN


def _can_read(backend: CodecBackend, required: CodecBackend) -> bool:
    return backend is CodecBackend.AES or required is CodecBackend.PLAIN


def find_entry(infos: Iterable[_ZipEntry], entry_path: str) -> _ZipEntry | None:
    """Resolve a lookup name against the stored entry names.

    Tries the forward-slash form, the raw form and the backslash form
    exactly, then falls back to a case-insensitive scan that also
    accepts a match on the entry's base name.
    """
    entries = list(infos)
    by_name = {info.filename: info for info in entries}

    forward = entry_path.replace("\\", "/")
    backward = entry_path.replace("/", "\\")
    for candidate in (forward, entry_path, backward):
        if candidate in by_name:
            return by_name[candidate]

    forward_cf = forward.casefold()
    raw_cf = entry_path.casefold()
    for info in entries:
        name_cf = info.filename.casefold()
        if name_cf in (forward_cf, raw_cf):
            return info
        base = PurePosixPath(info.filename.replace("\\", "/")).name
        if base and base.casefold() == raw_cf:
            return info
    return None


def _entry_info(info: _ZipEntry) -> EntryInfo:
    return EntryInfo(
        name=info.filename,
        size=info.file_size,
        compressed_size=getattr(info, "compress_size", 0),
        modified=datetime(*info.date_time),  # type: ignore[attr-defined]
        is_encrypted=select_backend(info) is CodecBackend.AES,
        is_dir=info.filename.endswith(_DIR_SUFFIXES),
    )


class ArchiveCodec:
    """Zip container reader/writer with transparent encryption support."""

    def __init__(
        self,
        max_entry_size: int = MAX_ENTRY_SIZE,
        compression_level: int = DEFAULT_COMPRESSION_LEVEL,
    ) -> None:
        self._max_entry_size = max_entry_size
        self._compression_level = compression_level

    # ── Reading ──

    @staticmethod
    def _open_reader(backend: CodecBackend, path: Path, password: str | None) -> zipfile.ZipFile:
        if backend is CodecBackend.PLAIN:
            return zipfile.ZipFile(path)
        zf = pyzipper.AESZipFile(path)
        if password:
            zf.setpassword(password.encode("utf-8"))
        return zf

    def extract_entry(
        self,
        container_path: str | Path,
        entry_path: str,
        password: str | None = None,
    ) -> ExtractResult:
        """Read one entry into memory, choosing the plain or password-aware reader."""
        path = Path(container_path)
        if not entry_path:
            return ExtractResult(ExtractStatus.NOT_FOUND, message="Empty entry path")
        if not path.is_file():
            logger.warning(f"Zip file not found: {path}")
            return ExtractResult(ExtractStatus.NOT_FOUND, message=f"Container not found: {path}")

        errors: list[str] = []
        for backend in BACKEND_ORDER:
            try:
                with self._open_reader(backend, path, password) as zf:
                    info = find_entry(zf.infolist(), entry_path)
                    if info is None:
                        logger.debug(f"Entry '{entry_path}' not found in {path.name}")
                        return ExtractResult(
                            ExtractStatus.NOT_FOUND,
                            backend=backend,
                            message=f"Entry not found: {entry_path}",
                        )
                    required = select_backend(info)
                    if not _can_read(backend, required):
                        if not password:
                            return ExtractResult(
                                ExtractStatus.NEEDS_PASSWORD,
                                entry_name=info.filename,
                                backend=required,
                                message="Archive is password protected",
                            )
                        continue
                    return self._read_entry(zf, info, backend)
            except _BAD_ZIP as e:
                logger.debug(f"{backend} reader rejected {path.name}: {e}")
                errors.append(f"{backend}: {e}")
            except RuntimeError as e:
                logger.warning(f"Bad password for {path.name}: {e}")
                return ExtractResult(
                    ExtractStatus.BAD_PASSWORD,
                    backend=backend,
                    message="Incorrect password",
                )
            except (OSError, EOFError, zlib.error) as e:
                logger.error(f"Failed to read {entry_path} from {path}: {e}")
                return ExtractResult(ExtractStatus.CORRUPT, backend=backend, message=str(e))

        return ExtractResult(ExtractStatus.CORRUPT, message="; ".join(errors) or "Unreadable archive")

    def _read_entry(self, zf: zipfile.ZipFile, info: _ZipEntry, backend: CodecBackend) -> ExtractResult:
        name = info.filename
        if name.endswith(_DIR_SUFFIXES):
            return ExtractResult(
                ExtractStatus.IS_DIRECTORY,
                entry_name=name,
                backend=backend,
                message=f"Entry is a directory: {name}",
            )
        if info.file_size == 0:
            return ExtractResult(ExtractStatus.OK, io.BytesIO(), name, backend)
        if info.file_size > self._max_entry_size:
            return ExtractResult(
                ExtractStatus.TOO_LARGE,
                entry_name=name,
                backend=backend,
                message=f"Entry exceeds {self._max_entry_size} bytes",
            )

        data = zf.read(info)  # type: ignore[arg-type]
        logger.debug(f"Extracted {len(data)} bytes from '{name}' ({backend})")
        return ExtractResult(ExtractStatus.OK, io.BytesIO(data), name, backend)

    def extract_address(self, address: str, password: str | None = None) -> ExtractResult:
        """Parse a stored ``container::entry`` address and extract it."""
        parsed = virtual_address.parse(address)
        if parsed is None:
            return ExtractResult(ExtractStatus.NOT_FOUND, message=f"Invalid address: {address}")
        return self.extract_entry(parsed.container_path, parsed.entry_path, password)

    def _read_infos(self, path: Path) -> list[_ZipEntry] | None:
        """Entry metadata via the first backend able to parse the container."""
        for backend in BACKEND_ORDER:
            try:
                with self._open_reader(backend, path, None) as zf:
                    return list(zf.infolist())
            except _BAD_ZIP as e:
                logger.debug(f"{backend} reader rejected {path.name}: {e}")
            except OSError as e:
                logger.error(f"Cannot open {path}: {e}")
                return None
        return None

    def list_entries(self, container_path: str | Path) -> list[EntryInfo]:
        path = Path(container_path)
        if not path.is_file():
            return []
        infos = self._read_infos(path)
        return [_entry_info(i) for i in infos] if infos else []

    def get_entry_info(self, container_path: str | Path, entry_path: str) -> EntryInfo | None:
        """Metadata of one entry without extracting (or decrypting) it."""
        path = Path(container_path)
        if not entry_path or not path.is_file():
            return None
        infos = self._read_infos(path)
        if not infos:
            return None
        info = find_entry(infos, entry_path)
        return _entry_info(info) if info is not None else None

    def validate(self, container_path: str | Path) -> bool:
        """Check that a container is readable, encrypted or not."""
        path = Path(container_path)
        if not path.is_file():
            return False

        try:
            with zipfile.ZipFile(path) as zf:
                infos = zf.infolist()
            if not any(select_backend(i) is CodecBackend.AES for i in infos):
                return True
        except zipfile.BadZipFile as e:
            logger.debug(f"Plain reader rejected {path.name}: {e}")
        except OSError as e:
            logger.error(f"Error validating zip {path}: {e}")
            return False

        try:
            with pyzipper.AESZipFile(path) as zf:
                return len(zf.infolist()) > 0
        except (*_BAD_ZIP, OSError) as e:
            logger.error(f"Invalid zip file: {path}: {e}")
            return False

    # ── Writing ──

    @staticmethod
    def _collect_files(source: Path, output: Path) -> list[tuple[Path, str]]:
        if source.is_file():
            return [(source, source.name)]
        target = output.resolve()
        files = sorted(p for p in source.rglob("*") if p.is_file() and p.resolve() != target)
        return [(p, p.relative_to(source).as_posix()) for p in files]

    @staticmethod
    def _open_writer(output: Path, password: str | None, level: int) -> zipfile.ZipFile:
        if password:
            zf = pyzipper.AESZipFile(
                output,
                "w",
                compression=pyzipper.ZIP_DEFLATED,
                compresslevel=level,
                encryption=pyzipper.WZ_AES,
            )
            zf.setpassword(password.encode("utf-8"))
            zf.setencryption(pyzipper.WZ_AES, nbits=256)
            return zf
        return zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED, compresslevel=level)

    @staticmethod
    def _entry_info_for(zf: zipfile.ZipFile, file_path: Path, arcname: str) -> zipfile.ZipInfo:
        info_cls = zf.zipinfo_cls if isinstance(zf, pyzipper.AESZipFile) else zipfile.ZipInfo
        return info_cls.from_file(file_path, arcname, strict_timestamps=False)

    @staticmethod
    def _discard(output: Path) -> None:
        try:
            output.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove partial archive {output}: {e}")

    def create_encrypted(
        self,
        source: str | Path,
        output_path: str | Path,
        password: str | None = None,
        compression_level: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> CreateResult:
        """Zip a file or a directory tree, AES-256 encrypting every entry when a password is given.

        A source file that cannot be read is logged and skipped. Any
        failure writing the archive itself, or cancellation, removes the
        partial output.
        """
        source = Path(source)
        output = Path(output_path)
        if not source.exists():
            logger.error(f"Archive source not found: {source}")
            return CreateResult(False, str(output), error=f"Source not found: {source}")

        level = self._compression_level if compression_level is None else compression_level
        level = max(0, min(9, level))

        written = 0
        skipped: list[str] = []
        cancelled = False
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            files = self._collect_files(source, output)
            with self._open_writer(output, password, level) as zf:
                for file_path, arcname in files:
                    if cancel_event is not None and cancel_event.is_set():
                        cancelled = True
                        break
                    # Read fully before the entry header is written.
                    try:
                        info = self._entry_info_for(zf, file_path, arcname)
                        data = file_path.read_bytes()
                    except OSError as e:
                        logger.error(f"Error adding file {file_path}: {e}")
                        skipped.append(arcname)
                        continue
                    zf.writestr(info, data, compress_type=zipfile.ZIP_DEFLATED, compresslevel=level)
                    written += 1
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            logger.error(f"Error creating zip {output}: {e}")
            self._discard(output)
            return CreateResult(False, str(output), written, skipped, error=describe_os_error(e))

        if cancelled:
            logger.warning(f"Archive creation cancelled, removing {output}")
            self._discard(output)
            return CreateResult(False, str(output), written, skipped, cancelled=True, error="Cancelled")

        logger.info(
            f"Created zip {output.name}: {written} entries"
            + (f", {len(skipped)} skipped" if skipped else "")
            + (" (AES-256)" if password else "")
        )
        return CreateResult(True, str(output), written, skipped)
