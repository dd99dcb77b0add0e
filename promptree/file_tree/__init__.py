"""Domain model for selectable filesystem trees.

This package contains non-UI tree primitives:
- file/directory entry datatypes with nested children
- filesystem scanning with ignore rules, size and binary exclusion
- tri-state selection, expansion and state carry-over across rebuilds
"""

from __future__ import annotations

from .build import DEFAULT_MAX_FILE_BYTES, build_file_tree
from .selection import (
    collect_selected,
    expand_to_path,
    find_entry,
    index_file_tree,
    recompute_selection,
    restore_file_tree_state,
    toggle_expanded,
    toggle_selected,
)
from .types import DirectoryEntry, FileEntry, FileTreeEntry, file_extension

__all__ = [
    "DirectoryEntry",
    "FileEntry",
    "FileTreeEntry",
    "file_extension",
    "DEFAULT_MAX_FILE_BYTES",
    "build_file_tree",
    "recompute_selection",
    "toggle_selected",
    "find_entry",
    "expand_to_path",
    "toggle_expanded",
    "collect_selected",
    "restore_file_tree_state",
    "index_file_tree",
]
