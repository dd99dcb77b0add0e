"""Commit -> file -> hunk selection forest.

Hunks carry the only independent selection flag. File and commit flags are
re-derived from their children after every change with the same rule the
file tree uses: ``selected`` when there are children and all are fully
selected, ``partially_selected`` when some but not all are.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace

from ..errors import VcsError
from ..path_filter import PathFilter
from ..tokens import TokenCounter
from .diff_parser import parse_diff
from .types import (
    UNCOMMITTED_SHA,
    UNCOMMITTED_SUBJECT,
    CommitEntry,
    FileChangeEntry,
    GitTreeEntry,
    HunkEntry,
    LogEntry,
)
from .vcs import VcsClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitPage:
    """One page of history.

    ``consumed`` counts log entries read (dropped commits included), so the
    next page starts at ``offset + consumed``.
    """

    commits: tuple[CommitEntry, ...]
    consumed: int

    @property
    def exhausted(self) -> bool:
        return self.consumed == 0


def index_forest(commits: Sequence[CommitEntry]) -> dict[str, GitTreeEntry]:
    """Map every commit, file change and hunk address to its node.

    The first node wins if two ever share an address.
    """
    index: dict[str, GitTreeEntry] = {}
    for commit in commits:
        index.setdefault(commit.address, commit)
        for file_change in commit.files:
            index.setdefault(file_change.address, file_change)
            for hunk in file_change.hunks:
                index.setdefault(hunk.address, hunk)
    return index


def _fully_selected(entry: FileChangeEntry | HunkEntry) -> bool:
    return entry.selected and not entry.partially_selected


def _derive_flags(children: Sequence[FileChangeEntry | HunkEntry]) -> tuple[bool, bool]:
    if not children:
        return False, False
    all_full = all(_fully_selected(child) for child in children)
    any_marked = any(child.selected or child.partially_selected for child in children)
    return all_full, (not all_full and any_marked)


def _aggregate_file(file_change: FileChangeEntry) -> FileChangeEntry:
    selected, partially_selected = _derive_flags(file_change.hunks)
    if selected == file_change.selected and partially_selected == file_change.partially_selected:
        return file_change
    return replace(file_change, selected=selected, partially_selected=partially_selected)


def _aggregate_commit(commit: CommitEntry) -> CommitEntry:
    files = tuple(_aggregate_file(file_change) for file_change in commit.files)
    if any(new is not old for new, old in zip(files, commit.files)):
        commit = replace(commit, files=files)
    selected, partially_selected = _derive_flags(commit.files)
    if selected == commit.selected and partially_selected == commit.partially_selected:
        return commit
    return replace(commit, selected=selected, partially_selected=partially_selected)


def recompute_forest(commits: Sequence[CommitEntry]) -> tuple[CommitEntry, ...]:
    """Re-derive file and commit flags from hunk selection."""
    return tuple(_aggregate_commit(commit) for commit in commits)


def _set_file(file_change: FileChangeEntry, value: bool) -> FileChangeEntry:
    hunks = tuple(hunk if hunk.selected == value else replace(hunk, selected=value) for hunk in file_change.hunks)
    return replace(file_change, hunks=hunks)


def _replace_at(items: tuple, index: int, item) -> tuple:
    return (*items[:index], item, *items[index + 1 :])


def _identity_index(items: Sequence, target: object) -> int:
    for index, item in enumerate(items):
        if item is target:
            return index
    return -1


def _commit_index(commits: Sequence[CommitEntry], sha: str) -> int:
    for index, commit in enumerate(commits):
        if commit.sha == sha:
            return index
    return -1


def _resolve(
    commits: Sequence[CommitEntry],
    address: str,
) -> tuple[int, GitTreeEntry] | None:
    node = index_forest(commits).get(address)
    if node is None:
        return None
    sha = node.sha if isinstance(node, CommitEntry) else node.commit_sha
    commit_index = _commit_index(commits, sha)
    if commit_index < 0:
        return None
    return commit_index, node


def toggle_selected(commits: Sequence[CommitEntry], address: str) -> tuple[CommitEntry, ...]:
    """Toggle the node at ``address``.

    A hunk flips alone. A file change or commit sets every hunk beneath it
    to the opposite of its current ``selected`` flag, so a partially
    selected node becomes fully selected. Unknown addresses are a no-op.
    """
    commits = tuple(commits)
    resolved = _resolve(commits, address)
    if resolved is None:
        return commits
    commit_index, node = resolved
    commit = commits[commit_index]

    if isinstance(node, CommitEntry):
        value = not commit.selected
        updated = replace(commit, files=tuple(_set_file(file_change, value) for file_change in commit.files))
    elif isinstance(node, FileChangeEntry):
        file_index = _identity_index(commit.files, node)
        if file_index < 0:
            return commits
        updated = replace(commit, files=_replace_at(commit.files, file_index, _set_file(node, not node.selected)))
    elif isinstance(node, HunkEntry):
        file_index = next(
            (index for index, file_change in enumerate(commit.files) if _identity_index(file_change.hunks, node) >= 0),
            -1,
        )
        if file_index < 0:
            return commits
        file_change = commit.files[file_index]
        hunk_index = _identity_index(file_change.hunks, node)
        hunks = _replace_at(file_change.hunks, hunk_index, replace(node, selected=not node.selected))
        updated = replace(commit, files=_replace_at(commit.files, file_index, replace(file_change, hunks=hunks)))
    else:
        return commits

    return _replace_at(commits, commit_index, _aggregate_commit(updated))


def toggle_expanded(commits: Sequence[CommitEntry], address: str) -> tuple[CommitEntry, ...]:
    """Flip ``expanded`` on the commit or file change at ``address``."""
    commits = tuple(commits)
    resolved = _resolve(commits, address)
    if resolved is None:
        return commits
    commit_index, node = resolved
    commit = commits[commit_index]

    if isinstance(node, CommitEntry):
        updated = replace(commit, expanded=not commit.expanded)
    elif isinstance(node, FileChangeEntry):
        file_index = _identity_index(commit.files, node)
        if file_index < 0:
            return commits
        toggled = replace(node, expanded=not node.expanded)
        updated = replace(commit, files=_replace_at(commit.files, file_index, toggled))
    else:
        return commits
    return _replace_at(commits, commit_index, updated)


def collect_selected_hunks(commits: Sequence[CommitEntry]) -> list[HunkEntry]:
    """Return selected hunks in display order."""
    return [
        hunk
        for commit in commits
        for file_change in commit.files
        for hunk in file_change.hunks
        if hunk.selected
    ]


def build_commit(
    sha: str,
    subject: str,
    diff_text: str,
    *,
    path_filter: PathFilter | None = None,
    count_tokens: TokenCounter | None = None,
) -> CommitEntry:
    """Build one unselected, collapsed commit from its diff text."""
    files = parse_diff(diff_text, sha, subject, path_filter=path_filter, count_tokens=count_tokens)
    return CommitEntry(sha=sha, subject=subject, files=tuple(files))


def _apply_state(
    commit: CommitEntry,
    is_selected: Callable[[str], bool] | None,
    is_expanded: Callable[[str], bool] | None,
) -> CommitEntry:
    files = []
    for file_change in commit.files:
        hunks = file_change.hunks
        if is_selected is not None:
            hunks = tuple(replace(hunk, selected=bool(is_selected(hunk.address))) for hunk in hunks)
        expanded = bool(is_expanded(file_change.address)) if is_expanded is not None else file_change.expanded
        files.append(replace(file_change, hunks=hunks, expanded=expanded))
    expanded = bool(is_expanded(commit.address)) if is_expanded is not None else commit.expanded
    return _aggregate_commit(replace(commit, files=tuple(files), expanded=expanded))


def build_from_diff(
    log_entries: Sequence[LogEntry],
    diff_text_per_commit: Mapping[str, str],
    *,
    uncommitted_diff: tuple[str, str] | None = None,
    path_filter: PathFilter | None = None,
    count_tokens: TokenCounter | None = None,
    is_selected: Callable[[str], bool] | None = None,
    is_expanded: Callable[[str], bool] | None = None,
) -> list[CommitEntry]:
    """Build commits for ``log_entries`` from their raw diff text.

    ``uncommitted_diff`` is the ``(staged, unstaged)`` pair for the
    pseudo-commit, which is placed first when given. Commits whose diff text
    is missing or empty are dropped. ``is_selected`` seeds hunk selection and
    ``is_expanded`` seeds commit and file expansion by canonical address.
    """
    commits: list[CommitEntry] = []
    if uncommitted_diff is not None:
        staged, unstaged = uncommitted_diff
        combined = f"{staged}\n{unstaged}".strip()
        commits.append(
            build_commit(
                UNCOMMITTED_SHA,
                UNCOMMITTED_SUBJECT,
                combined,
                path_filter=path_filter,
                count_tokens=count_tokens,
            )
        )

    for entry in log_entries:
        diff_text = diff_text_per_commit.get(entry.sha)
        if not diff_text:
            continue
        commits.append(
            build_commit(entry.sha, entry.subject, diff_text, path_filter=path_filter, count_tokens=count_tokens)
        )

    return [_apply_state(commit, is_selected, is_expanded) for commit in commits]


def _read_diff(fetch: Callable[[], str], label: str) -> str:
    try:
        return fetch()
    except VcsError as exc:
        logger.warning("Could not read %s changes: %s", label, exc)
        return ""


def load_page(
    client: VcsClient,
    offset: int,
    limit: int,
    *,
    path_filter: PathFilter | None = None,
    count_tokens: TokenCounter | None = None,
) -> CommitPage:
    """Fetch ``limit`` commits after the first ``offset`` and build them.

    The uncommitted pseudo-commit is included only on the first page. A log
    failure reads as the end of history; a failing ``show`` drops that one
    commit.
    """
    uncommitted_diff = None
    if offset == 0:
        uncommitted_diff = (
            _read_diff(client.diff_staged, "staged"),
            _read_diff(client.diff_unstaged, "unstaged"),
        )

    try:
        log_entries = [entry for entry in client.log(limit, offset) if entry.sha != UNCOMMITTED_SHA]
    except VcsError as exc:
        logger.warning("Could not read commit log: %s", exc)
        log_entries = []

    diffs: dict[str, str] = {}
    for entry in log_entries:
        try:
            diffs[entry.sha] = client.show(entry.sha)
        except VcsError as exc:
            logger.debug("Dropping commit %s: %s", entry.sha, exc)

    commits = build_from_diff(
        log_entries,
        diffs,
        uncommitted_diff=uncommitted_diff,
        path_filter=path_filter,
        count_tokens=count_tokens,
    )
    return CommitPage(commits=tuple(commits), consumed=len(log_entries))


def restore_forest_state(
    commits: Sequence[CommitEntry],
    previous_index: Mapping[str, GitTreeEntry],
) -> tuple[CommitEntry, ...]:
    """Carry hunk selection and expansion over from a previous forest."""

    def was_selected(address: str) -> bool:
        previous = previous_index.get(address)
        return isinstance(previous, HunkEntry) and previous.selected

    def was_expanded(address: str) -> bool:
        previous = previous_index.get(address)
        return isinstance(previous, (CommitEntry, FileChangeEntry)) and previous.expanded

    return tuple(_apply_state(commit, was_selected, was_expanded) for commit in commits)


__all__ = [
    "CommitPage",
    "index_forest",
    "recompute_forest",
    "toggle_selected",
    "toggle_expanded",
    "collect_selected_hunks",
    "build_commit",
    "build_from_diff",
    "load_page",
    "restore_forest_state",
]
