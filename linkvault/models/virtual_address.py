"""Virtual address model: a (container, entry) pair pointing inside a zip."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class VirtualAddress:
    """Parsed form of a stored ``container::entry`` link."""

    container_path: str
    entry_path: str
    repaired: bool = False  # container path was rewritten by a repair rule

    def as_tuple(self) -> tuple[str, str]:
        return self.container_path, self.entry_path
