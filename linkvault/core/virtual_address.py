"""Virtual address parser: links that point at an entry inside a zip container.

Stored form is ``<container>::<entry>``. Older versions wrote
``<container><sep><entry>`` and, through a couple of bugs, also produced
addresses whose container part carries a duplicated archive name or a
stray ``::``. Parsing repairs those in memory only; the stored string is
never rewritten here.
"""

from __future__ import annotations

import os
from pathlib import PurePath
from typing import Callable

from loguru import logger

from linkvault.models.virtual_address import VirtualAddress

DELIMITER = "::"
CONTAINER_EXT = ".zip"
_SEPARATORS = ("/", "\\")

FileCheck = Callable[[str], bool]


def _last_ext_index(text: str) -> int:
    return text.lower().rfind(CONTAINER_EXT)


def _ends_with_ext(text: str) -> bool:
    return text.lower().endswith(CONTAINER_EXT)


def split(raw: str) -> tuple[str, str] | None:
    """Split an address by grammar alone, without touching the filesystem."""
    if not raw:
        return None

    if DELIMITER in raw:
        container, entry = raw.split(DELIMITER, 1)
        container, entry = container.strip(), entry.strip()
    else:
        idx = _last_ext_index(raw)
        if idx <= 0:
            return None
        after = idx + len(CONTAINER_EXT)
        if after >= len(raw) or raw[after] not in _SEPARATORS:
            return None
        container, entry = raw[:after], raw[after + 1 :]

    if not container or not entry:
        return None
    return container, entry


def repair_container_path(candidate: str, is_file: FileCheck = os.path.isfile) -> str:
    """Apply the known corruption fixes to a container path.

    Returns the candidate unchanged when it already names a file, or when
    no rule finds an existing file.
    """
    if is_file(candidate):
        return candidate

    path = candidate

    # .../name.zip/name.zip
    if _ends_with_ext(path):
        cut = max(path.rfind(sep) for sep in _SEPARATORS)
        if cut > 0:
            prefix = path[:cut]
            if _ends_with_ext(prefix) and is_file(prefix):
                return prefix

    # delimiter embedded mid-path
    if DELIMITER in path:
        idx = _last_ext_index(path)
        if idx > 0:
            path = path[: idx + len(CONTAINER_EXT)]

    if not is_file(path):
        idx = _last_ext_index(path)
        if idx > 0:
            attempt = path[: idx + len(CONTAINER_EXT)]
            if is_file(attempt):
                path = attempt

    return path


def parse(raw: str, is_file: FileCheck = os.path.isfile) -> VirtualAddress | None:
    """Parse a stored address; None when it cannot be resolved to an existing container."""
    parts = split(raw)
    if parts is None:
        return None

    container, entry = parts
    fixed = repair_container_path(container, is_file)
    if not fixed or not is_file(fixed):
        logger.debug(f"Unresolvable archive address: {raw!r}")
        return None

    if fixed != container:
        logger.debug(f"Repaired archive address container: {container!r} -> {fixed!r}")
    return VirtualAddress(container_path=fixed, entry_path=entry, repaired=fixed != container)


def is_virtual(raw: str) -> bool:
    """Cheap pre-check: does the string look like an address inside a container?"""
    return split(raw) is not None


def format_address(container_path: str | os.PathLike[str], entry_path: str) -> str:
    """Inverse of :func:`parse`; always emits the ``::`` grammar."""
    container = os.fspath(container_path)
    if not container or not entry_path:
        raise ValueError("Container path and entry path must both be non-empty")
    return f"{container}{DELIMITER}{entry_path}"


def entry_extension(entry_path: str) -> str:
    """Lower-cased file extension of an entry, '' if none."""
    if not entry_path:
        return ""
    return PurePath(entry_path.replace("\\", "/")).suffix.lower()
