"""Domain model for selectable git history.

This package contains non-UI history primitives:
- commit, file-change and hunk datatypes
- unified diff parsing into addressable hunks
- the ``git`` subprocess client
- hunk-level tri-state selection, paging and state carry-over
"""

from __future__ import annotations

from .diff_parser import parse_diff
from .forest import (
    CommitPage,
    build_commit,
    build_from_diff,
    collect_selected_hunks,
    index_forest,
    load_page,
    recompute_forest,
    restore_forest_state,
    toggle_expanded,
    toggle_selected,
)
from .types import (
    UNCOMMITTED_SHA,
    UNCOMMITTED_SUBJECT,
    CommitEntry,
    FileChangeEntry,
    GitTreeEntry,
    HunkEntry,
    LogEntry,
)
from .vcs import GitCliClient, VcsClient

__all__ = [
    "UNCOMMITTED_SHA",
    "UNCOMMITTED_SUBJECT",
    "LogEntry",
    "HunkEntry",
    "FileChangeEntry",
    "CommitEntry",
    "GitTreeEntry",
    "parse_diff",
    "VcsClient",
    "GitCliClient",
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
