"""Canonical node addresses.

Grammar:

* directory or file: ``str(path)``
* commit: ``sha``
* file change: ``sha:path``
* hunk: ``sha:path#index``

Addresses are unique within one tree snapshot and stay stable across
rebuilds, so they are the join key between an old tree and its replacement.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from .file_tree import DirectoryEntry, FileEntry, FileTreeEntry, index_file_tree
from .git_tree import CommitEntry, FileChangeEntry, GitTreeEntry, HunkEntry, index_forest

_HUNK_SUFFIX_RE = re.compile(r"#(\d+)$")

AddressedEntry = FileTreeEntry | GitTreeEntry


@dataclass(frozen=True)
class GitAddress:
    """Parsed history address; unset parts are ``None``."""

    sha: str
    file_path: str | None = None
    hunk_index: int | None = None

    @property
    def parent(self) -> str | None:
        if self.hunk_index is not None:
            return file_change_address(self.sha, self.file_path or "")
        if self.file_path is not None:
            return self.sha
        return None


def commit_address(sha: str) -> str:
    return sha


def file_change_address(sha: str, path: str) -> str:
    return f"{sha}:{path}"


def hunk_address(sha: str, path: str, hunk_index: int) -> str:
    return f"{sha}:{path}#{hunk_index}"


def parse_git_address(address: str) -> GitAddress | None:
    """Split a history address on its first ``:`` and a trailing ``#<digits>``.

    Returns ``None`` for an empty address or an empty sha/path part.
    """
    if not address:
        return None
    sha, separator, rest = address.partition(":")
    if not sha:
        return None
    if not separator:
        return GitAddress(sha=sha)
    match = _HUNK_SUFFIX_RE.search(rest)
    if match is not None:
        path = rest[: match.start()]
        if not path:
            return None
        return GitAddress(sha=sha, file_path=path, hunk_index=int(match.group(1)))
    if not rest:
        return None
    return GitAddress(sha=sha, file_path=rest)


def entry_address(entry: AddressedEntry) -> str:
    """Return the canonical address of any tree or forest node."""
    if isinstance(entry, (DirectoryEntry, FileEntry)):
        return str(entry.path)
    if isinstance(entry, CommitEntry):
        return commit_address(entry.sha)
    if isinstance(entry, FileChangeEntry):
        return file_change_address(entry.commit_sha, entry.path)
    if isinstance(entry, HunkEntry):
        return hunk_address(entry.commit_sha, entry.file_path, entry.hunk_index)
    raise TypeError(f"not an addressable entry: {type(entry).__name__}")


def parent_address(entry: GitTreeEntry) -> str | None:
    """Return the address of the node one level above ``entry`` in the forest.

    Read from the entry's own fields; a file named like ``notes#2`` would
    otherwise parse as a hunk address.
    """
    if isinstance(entry, HunkEntry):
        return file_change_address(entry.commit_sha, entry.file_path)
    if isinstance(entry, FileChangeEntry):
        return commit_address(entry.commit_sha)
    return None


def resolve(index: Mapping[str, AddressedEntry], address: str) -> AddressedEntry | None:
    """Look ``address`` up in a flat index built by ``index_file_tree`` or ``index_forest``."""
    return index.get(address)


__all__ = [
    "AddressedEntry",
    "GitAddress",
    "commit_address",
    "file_change_address",
    "hunk_address",
    "parse_git_address",
    "entry_address",
    "parent_address",
    "index_file_tree",
    "index_forest",
    "resolve",
]
