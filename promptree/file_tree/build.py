"""Filesystem scanning and selection-tree construction."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from ..config import DEFAULT_MAX_FILE_KIB
from ..path_filter import PathFilter, get_path_filter
from ..text import looks_binary
from ..tokens import TokenCounter, count_file_tokens
from .selection import recompute_selection
from .types import DirectoryEntry, FileEntry, file_extension

DEFAULT_MAX_FILE_BYTES = DEFAULT_MAX_FILE_KIB * 1024

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _BuildContext:
    root: Path
    path_filter: PathFilter
    counter: TokenCounter | None
    max_file_bytes: int
    is_selected: Callable[[str], bool] | None
    is_expanded: Callable[[str], bool] | None


def _child_relative_path(parent_relative: str, name: str) -> str:
    return f"{parent_relative}/{name}" if parent_relative else name


def _build_file(child: os.DirEntry, relative_path: str, level: int, ctx: _BuildContext) -> FileEntry | None:
    """Return a file leaf, or ``None`` when the file is too large, binary or empty."""
    try:
        stat = child.stat(follow_symlinks=False)
    except OSError:
        return None
    size = int(stat.st_size)
    if size > ctx.max_file_bytes:
        return None

    path = Path(child.path)
    if looks_binary(path):
        return None
    mtime_ns = int(stat.st_mtime_ns)
    try:
        token_count = count_file_tokens(path, mtime_ns, ctx.counter)
    except OSError as exc:
        logger.debug("Skipping unreadable file %s: %s", path, exc)
        return None
    if token_count <= 0:
        return None

    address = str(path)
    return FileEntry(
        path=path,
        relative_path=relative_path,
        name=child.name,
        level=level,
        token_count=token_count,
        size_bytes=size,
        extension=file_extension(child.name),
        mtime_ns=mtime_ns,
        selected=bool(ctx.is_selected(address)) if ctx.is_selected is not None else False,
    )


def _build_directory(directory: Path, relative_path: str, level: int, ctx: _BuildContext) -> DirectoryEntry | None:
    """Depth-first scan of ``directory``; ``None`` when it cannot be listed."""
    directories: list[DirectoryEntry] = []
    files: list[FileEntry] = []
    try:
        with os.scandir(directory) as entries:
            for child in entries:
                try:
                    if child.is_symlink():
                        continue
                    is_dir = child.is_dir(follow_symlinks=False)
                except OSError:
                    continue

                child_relative = _child_relative_path(relative_path, child.name)
                if ctx.path_filter.is_ignored(child_relative, is_dir):
                    continue

                if is_dir:
                    subdirectory = _build_directory(Path(child.path), child_relative, level + 1, ctx)
                    if subdirectory is not None and subdirectory.token_count > 0:
                        directories.append(subdirectory)
                    continue

                file_entry = _build_file(child, child_relative, level + 1, ctx)
                if file_entry is not None:
                    files.append(file_entry)
    except OSError as exc:
        logger.debug("Cannot scan directory %s: %s", directory, exc)
        return None

    directories.sort(key=lambda item: item.name.lower())
    files.sort(key=lambda item: item.name.lower())
    address = str(directory)
    return DirectoryEntry(
        path=directory,
        relative_path=relative_path,
        name=directory.name,
        level=level,
        token_count=sum(item.token_count for item in directories) + sum(item.token_count for item in files),
        expanded=bool(ctx.is_expanded(address)) if ctx.is_expanded is not None else False,
        directories=tuple(directories),
        files=tuple(files),
    )


def build_file_tree(
    root: Path,
    *,
    path_filter: PathFilter | None = None,
    extra_ignores: tuple[str, ...] = (),
    count_tokens: TokenCounter | None = None,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    is_selected: Callable[[str], bool] | None = None,
    is_expanded: Callable[[str], bool] | None = None,
) -> DirectoryEntry:
    """Build the full selection tree rooted at ``root``.

    Directories without eligible descendant files are pruned. ``is_selected``
    and ``is_expanded`` receive canonical addresses and seed leaf selection
    and directory expansion; directory selection is derived afterwards. An
    unreadable root yields an empty tree.
    """
    root = root.resolve()
    if path_filter is None:
        path_filter = get_path_filter(root, extra_ignores)
    ctx = _BuildContext(
        root=root,
        path_filter=path_filter,
        counter=count_tokens,
        max_file_bytes=max_file_bytes,
        is_selected=is_selected,
        is_expanded=is_expanded,
    )
    built = _build_directory(root, "", 0, ctx)
    if built is None:
        built = DirectoryEntry(path=root, relative_path="", name=root.name, level=0)
    return recompute_selection(built)


__all__ = ["DEFAULT_MAX_FILE_BYTES", "build_file_tree"]
