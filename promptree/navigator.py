"""Flattened, addressable views of file trees and history forests.

The UI and the selection commands work against the flat row sequence; rows
are identified by canonical address, never by position, so a rebuilt tree
keeps the cursor on the same node.
"""

from __future__ import annotations

from collections.abc import Sequence

from .file_tree import DirectoryEntry, FileEntry, FileTreeEntry
from .git_tree import CommitEntry, FileChangeEntry, GitTreeEntry, HunkEntry

TREE_SIZE_LABEL_MIN_TOKENS = 1000


def flatten_file_tree(root: DirectoryEntry) -> list[FileTreeEntry]:
    """Return visible rows in pre-order with the root elided.

    The root's children are always visible; any other directory's
    subdirectories then files follow it only when it is expanded.
    """
    rows: list[FileTreeEntry] = []

    def walk(directory: DirectoryEntry) -> None:
        for child in directory.directories:
            rows.append(child)
            if child.expanded:
                walk(child)
        rows.extend(directory.files)

    walk(root)
    return rows


def flatten_forest(commits: Sequence[CommitEntry]) -> list[GitTreeEntry]:
    """Return visible rows: commits, then files of expanded commits, then hunks of expanded files."""
    rows: list[GitTreeEntry] = []
    for commit in commits:
        rows.append(commit)
        if not commit.expanded:
            continue
        for file_change in commit.files:
            rows.append(file_change)
            if file_change.expanded:
                rows.extend(file_change.hunks)
    return rows


def find_index(entries: Sequence[FileTreeEntry | GitTreeEntry], address: str | None) -> int:
    """Return the row index of ``address``, or -1 when it is not visible."""
    if address is None:
        return -1
    for index, entry in enumerate(entries):
        if entry.address == address:
            return index
    return -1


def scroll_window(cursor_index: int, viewport_height: int, total_length: int) -> tuple[int, int]:
    """Return the ``[start, end)`` row window that keeps the cursor centered.

    The offset ``cursor_index - viewport_height / 2`` uses true division; it
    is clamped to ``[0, max(0, total_length - viewport_height)]`` and then
    truncated, so an odd height puts the extra row above the cursor.
    ``end`` is always ``start + viewport_height`` and may run past the last row.
    """
    max_start = max(0, total_length - viewport_height)
    start = int(max(0, min(cursor_index - viewport_height / 2, max_start)))
    return start, start + viewport_height


def move_cursor(
    entries: Sequence[FileTreeEntry | GitTreeEntry],
    address: str | None,
    delta: int,
) -> str | None:
    """Return the address ``delta`` rows away, clamped to the ends.

    An address that is not visible moves to the first row.
    """
    if not entries:
        return None
    index = find_index(entries, address)
    if index < 0:
        return entries[0].address
    target = max(0, min(index + delta, len(entries) - 1))
    return entries[target].address


def should_load_more(cursor_index: int, total_length: int, page_size: int) -> bool:
    """Return whether the cursor is close enough to the end to fetch the next page."""
    return cursor_index >= total_length - page_size // 2


def selection_marker(entry: FileTreeEntry | GitTreeEntry) -> str:
    """Return the tri-state checkbox for ``entry``."""
    if entry.partially_selected:
        return "[-]"
    if entry.selected:
        return "[x]"
    return "[ ]"


def _token_label(token_count: int) -> str:
    if token_count >= TREE_SIZE_LABEL_MIN_TOKENS:
        return f" ({token_count / 1000:.1f}k tokens)"
    return f" ({token_count} tokens)"


def format_file_row(entry: FileTreeEntry) -> str:
    """Render one file-tree row as plain text."""
    indent = "  " * max(0, entry.level - 1)
    checkbox = selection_marker(entry)
    if isinstance(entry, DirectoryEntry):
        marker = "▾ " if entry.expanded else "▸ "
        return f"{indent}{marker}{checkbox} {entry.name}/{_token_label(entry.token_count)}"
    return f"{indent}  {checkbox} {entry.name}{_token_label(entry.token_count)}"


def format_git_row(entry: GitTreeEntry) -> str:
    """Render one history row as plain text."""
    checkbox = selection_marker(entry)
    if isinstance(entry, CommitEntry):
        marker = "▾ " if entry.expanded else "▸ "
        label = entry.subject if entry.is_uncommitted else f"{entry.sha[:7]} {entry.subject}"
        return f"{marker}{checkbox} {label}{_token_label(entry.token_count)}"
    if isinstance(entry, FileChangeEntry):
        marker = "▾ " if entry.expanded else "▸ "
        return f"  {marker}{checkbox} {entry.path}{_token_label(entry.token_count)}"
    if isinstance(entry, HunkEntry):
        return f"      {checkbox} {entry.name} {entry.header}{_token_label(entry.token_count)}"
    raise TypeError(f"not a history entry: {type(entry).__name__}")


__all__ = [
    "flatten_file_tree",
    "flatten_forest",
    "find_index",
    "scroll_window",
    "move_cursor",
    "should_load_more",
    "selection_marker",
    "format_file_row",
    "format_git_row",
]
