"""Commit, file-change and hunk datatypes for the history selection forest."""

from __future__ import annotations

from dataclasses import dataclass

UNCOMMITTED_SHA = "uncommitted"
UNCOMMITTED_SUBJECT = "Uncommitted Changes"


@dataclass(frozen=True)
class LogEntry:
    """One ``git log`` record."""

    sha: str
    subject: str


@dataclass(frozen=True)
class HunkEntry:
    """One contiguous diff region within a file; the only directly toggled node."""

    commit_sha: str
    commit_subject: str
    file_path: str
    header: str
    content: str
    hunk_index: int
    token_count: int = 0
    selected: bool = False

    @property
    def partially_selected(self) -> bool:
        return False

    @property
    def name(self) -> str:
        return f"{self.file_path.rsplit('/', 1)[-1]}#{self.hunk_index + 1}"

    @property
    def address(self) -> str:
        return f"{self.commit_sha}:{self.file_path}#{self.hunk_index}"


@dataclass(frozen=True)
class FileChangeEntry:
    """One changed file inside a commit; flags mirror its hunks."""

    commit_sha: str
    path: str
    hunks: tuple[HunkEntry, ...] = ()
    expanded: bool = False
    selected: bool = False
    partially_selected: bool = False

    @property
    def token_count(self) -> int:
        return sum(hunk.token_count for hunk in self.hunks)

    @property
    def address(self) -> str:
        return f"{self.commit_sha}:{self.path}"


@dataclass(frozen=True)
class CommitEntry:
    """A real commit or the uncommitted-changes pseudo-commit."""

    sha: str
    subject: str
    files: tuple[FileChangeEntry, ...] = ()
    expanded: bool = False
    selected: bool = False
    partially_selected: bool = False

    @property
    def token_count(self) -> int:
        return sum(file_change.token_count for file_change in self.files)

    @property
    def is_uncommitted(self) -> bool:
        return self.sha == UNCOMMITTED_SHA

    @property
    def address(self) -> str:
        return self.sha


GitTreeEntry = CommitEntry | FileChangeEntry | HunkEntry


__all__ = [
    "UNCOMMITTED_SHA",
    "UNCOMMITTED_SUBJECT",
    "LogEntry",
    "HunkEntry",
    "FileChangeEntry",
    "CommitEntry",
    "GitTreeEntry",
]
