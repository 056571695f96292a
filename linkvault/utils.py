"""Shared utility functions."""

from __future__ import annotations

ILLEGAL_FILENAME_CHARS = '<>:"/\\|?*'


def format_size(size_bytes: int) -> str:
    """Format byte count to human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"


def sanitize_filename(name: str) -> str:
    """Replace characters that are illegal in file names (category name -> file stem)."""
    for ch in ILLEGAL_FILENAME_CHARS:
        name = name.replace(ch, "_")
    return name.replace("\n", " ").replace("\r", "").strip()
