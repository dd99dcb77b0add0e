"""Tri-state selection and expansion operations over file trees.

Every operation returns a new root; subtrees off the path to the changed
node are reused by reference, and an unknown address returns the input root
unchanged. Directory flags are always derived from children:

* ``selected`` when the directory has children and all are fully selected
* ``partially_selected`` when not fully selected but some child is selected
  or partially selected
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path

from .types import DirectoryEntry, FileEntry, FileTreeEntry


def _fully_selected(entry: FileTreeEntry) -> bool:
    return entry.selected and not entry.partially_selected


def _aggregate(directory: DirectoryEntry) -> DirectoryEntry:
    """Re-derive ``directory`` flags from its immediate children."""
    children = directory.children
    if children:
        all_full = all(_fully_selected(child) for child in children)
        any_marked = any(child.selected or child.partially_selected for child in children)
        selected = all_full
        partially_selected = not all_full and any_marked
    else:
        selected = False
        partially_selected = False
    if selected == directory.selected and partially_selected == directory.partially_selected:
        return directory
    return replace(directory, selected=selected, partially_selected=partially_selected)


def recompute_selection(directory: DirectoryEntry) -> DirectoryEntry:
    """Re-derive directory flags bottom-up across the whole subtree."""
    directories = tuple(recompute_selection(child) for child in directory.directories)
    if any(new is not old for new, old in zip(directories, directory.directories)):
        directory = replace(directory, directories=directories)
    return _aggregate(directory)


def _set_all(directory: DirectoryEntry, value: bool) -> DirectoryEntry:
    files = tuple(item if item.selected == value else replace(item, selected=value) for item in directory.files)
    directories = tuple(_set_all(child, value) for child in directory.directories)
    return _aggregate(replace(directory, directories=directories, files=files))


def _replace_at(items: tuple, index: int, item) -> tuple:
    return (*items[:index], item, *items[index + 1 :])


def _toggle_in(directory: DirectoryEntry, address: str, target: Path) -> DirectoryEntry:
    if directory.address == address:
        return _set_all(directory, not directory.fully_selected)

    for index, file_entry in enumerate(directory.files):
        if file_entry.address == address:
            toggled = replace(file_entry, selected=not file_entry.selected)
            return _aggregate(replace(directory, files=_replace_at(directory.files, index, toggled)))

    for index, child in enumerate(directory.directories):
        if not target.is_relative_to(child.path):
            continue
        updated = _toggle_in(child, address, target)
        if updated is child:
            return directory
        return _aggregate(replace(directory, directories=_replace_at(directory.directories, index, updated)))
    return directory


def toggle_selected(root: DirectoryEntry, address: str) -> DirectoryEntry:
    """Toggle the node at ``address`` and re-derive its ancestors.

    Files flip. Directories become fully selected unless they already were,
    in which case the whole subtree is cleared. The root is not selectable.
    """
    if address == root.address:
        return root
    return _toggle_in(root, address, Path(address))


def find_entry(root: DirectoryEntry, address: str) -> FileTreeEntry | None:
    """Locate the node at ``address`` by descending along its path."""
    target = Path(address)
    directory = root
    if directory.address == address:
        return directory
    while target.is_relative_to(directory.path):
        for file_entry in directory.files:
            if file_entry.address == address:
                return file_entry
        next_directory = None
        for child in directory.directories:
            if child.address == address:
                return child
            if target.is_relative_to(child.path):
                next_directory = child
                break
        if next_directory is None:
            return None
        directory = next_directory
    return None


def _expand_ancestors(directory: DirectoryEntry, target: Path) -> DirectoryEntry:
    directories = directory.directories
    for index, child in enumerate(directories):
        if child.path != target and target.is_relative_to(child.path):
            directories = _replace_at(directories, index, _expand_ancestors(child, target))
            break
    if directory.expanded and directories is directory.directories:
        return directory
    return replace(directory, expanded=True, directories=directories)


def expand_to_path(root: DirectoryEntry, address: str) -> DirectoryEntry:
    """Expand every directory between the root and the node at ``address``.

    The target itself and all unrelated directories keep their expansion.
    """
    if address == root.address or find_entry(root, address) is None:
        return root
    return _expand_ancestors(root, Path(address))


def _toggle_expanded_in(directory: DirectoryEntry, address: str, target: Path) -> DirectoryEntry:
    for index, child in enumerate(directory.directories):
        if child.address == address:
            toggled = replace(child, expanded=not child.expanded)
            return replace(directory, directories=_replace_at(directory.directories, index, toggled))
        if target.is_relative_to(child.path):
            updated = _toggle_expanded_in(child, address, target)
            if updated is child:
                return directory
            return replace(directory, directories=_replace_at(directory.directories, index, updated))
    return directory


def toggle_expanded(root: DirectoryEntry, address: str) -> DirectoryEntry:
    """Flip ``expanded`` on the directory at ``address``; files and root are ignored."""
    if address == root.address:
        return root
    return _toggle_expanded_in(root, address, Path(address))


def collect_selected(root: DirectoryEntry) -> list[FileEntry]:
    """Return selected files depth-first, subdirectories before files."""
    selected: list[FileEntry] = []

    def walk(directory: DirectoryEntry) -> None:
        for child in directory.directories:
            walk(child)
        selected.extend(item for item in directory.files if item.selected)

    walk(root)
    return selected


def index_file_tree(root: DirectoryEntry) -> dict[str, FileTreeEntry]:
    """Map every directory and file address (root included) to its node."""
    index: dict[str, FileTreeEntry] = {}

    def walk(directory: DirectoryEntry) -> None:
        index[directory.address] = directory
        for child in directory.directories:
            walk(child)
        for file_entry in directory.files:
            index[file_entry.address] = file_entry

    walk(root)
    return index


def restore_file_tree_state(
    root: DirectoryEntry,
    previous_index: Mapping[str, FileTreeEntry],
) -> DirectoryEntry:
    """Carry file selection and directory expansion over from a previous tree.

    ``previous_index`` maps canonical addresses to nodes of the tree being
    replaced. Directory selection is re-derived, so a directory that gained
    new files shows as partially selected.
    """

    def carry(directory: DirectoryEntry) -> DirectoryEntry:
        files = []
        for file_entry in directory.files:
            previous = previous_index.get(file_entry.address)
            selected = previous.selected if isinstance(previous, FileEntry) else False
            files.append(file_entry if file_entry.selected == selected else replace(file_entry, selected=selected))
        previous_directory = previous_index.get(directory.address)
        expanded = directory.expanded
        if isinstance(previous_directory, DirectoryEntry):
            expanded = previous_directory.expanded
        return replace(
            directory,
            expanded=expanded,
            directories=tuple(carry(child) for child in directory.directories),
            files=tuple(files),
        )

    return recompute_selection(carry(root))


__all__ = [
    "recompute_selection",
    "toggle_selected",
    "find_entry",
    "expand_to_path",
    "toggle_expanded",
    "collect_selected",
    "restore_file_tree_state",
    "index_file_tree",
]
