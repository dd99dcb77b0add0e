"""Domain datatypes for filesystem-backed selection trees."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FileEntry:
    """Selectable file leaf with metadata observed while building the tree."""

    path: Path
    relative_path: str
    name: str
    level: int
    token_count: int = 0
    size_bytes: int = 0
    extension: str = ""
    mtime_ns: int = 0
    selected: bool = False

    @property
    def partially_selected(self) -> bool:
        return False

    @property
    def address(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class DirectoryEntry:
    """Directory node owning ordered subdirectories and files.

    ``selected`` and ``partially_selected`` are derived from the children by
    ``selection.recompute_selection``; builders never set them directly.
    """

    path: Path
    relative_path: str
    name: str
    level: int
    token_count: int = 0
    expanded: bool = False
    selected: bool = False
    partially_selected: bool = False
    directories: tuple["DirectoryEntry", ...] = ()
    files: tuple[FileEntry, ...] = ()

    @property
    def address(self) -> str:
        return str(self.path)

    @property
    def fully_selected(self) -> bool:
        return self.selected and not self.partially_selected

    @property
    def children(self) -> tuple["FileTreeEntry", ...]:
        """Subdirectories first, then files, in display order."""
        return (*self.directories, *self.files)


FileTreeEntry = DirectoryEntry | FileEntry


def file_extension(name: str) -> str:
    """Return the text after the last dot of ``name`` (``""`` when absent)."""
    _stem, dot, extension = name.rpartition(".")
    return extension if dot else ""


__all__ = [
    "FileEntry",
    "DirectoryEntry",
    "FileTreeEntry",
    "file_extension",
]
