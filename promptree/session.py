"""Stateful holders for one browsing session over a file tree or git history.

A session owns the current tree value, the cursor address, the id of the
last applied rebuild and a list of human-readable notifications. Every
command replaces the tree value; rebuild results are applied on the
caller's thread through ``poll_rebuilds``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .addressing import parent_address
from .config import DEFAULT_PAGE_SIZE, DEFAULT_PROMPT_FORMAT
from .file_tree import (
    DEFAULT_MAX_FILE_BYTES,
    DirectoryEntry,
    FileEntry,
    build_file_tree,
    collect_selected,
    expand_to_path,
    find_entry,
    index_file_tree,
    restore_file_tree_state,
)
from .file_tree import toggle_expanded as toggle_directory_expanded
from .file_tree import toggle_selected as toggle_file_selected
from .git_tree import (
    CommitEntry,
    CommitPage,
    FileChangeEntry,
    HunkEntry,
    VcsClient,
    collect_selected_hunks,
    index_forest,
    load_page,
    restore_forest_state,
)
from .git_tree import toggle_expanded as toggle_forest_expanded
from .git_tree import toggle_selected as toggle_forest_selected
from .navigator import find_index, flatten_file_tree, flatten_forest, move_cursor, scroll_window, should_load_more
from .path_filter import PathFilter
from .prompt import build_file_prompt, build_git_prompt
from .rebuild import TreeRebuildScheduler
from .tokens import TokenCounter
from .watch import WatchEvent

logger = logging.getLogger(__name__)

REBUILD_WAIT_SECONDS = 30.0


@dataclass(frozen=True)
class SelectionStats:
    """Totals shown next to the tree."""

    file_count: int
    hunk_count: int
    token_count: int


class _CursorSession:
    """Cursor bookkeeping shared by both session kinds."""

    def __init__(self) -> None:
        self.cursor: str | None = None
        self.applied_request_id = 0
        self.notifications: list[str] = []

    def rows(self) -> list:
        raise NotImplementedError

    def cursor_index(self) -> int:
        return find_index(self.rows(), self.cursor)

    def cursor_entry(self):
        rows = self.rows()
        index = find_index(rows, self.cursor)
        return rows[index] if index >= 0 else None

    def notify(self, message: str) -> None:
        logger.info("%s", message)
        self.notifications.append(message)

    def drain_notifications(self) -> list[str]:
        out = self.notifications
        self.notifications = []
        return out

    def window(self, viewport_height: int) -> tuple[int, int, list]:
        """Return ``(start, end, visible_rows)`` for a viewport of ``viewport_height`` rows."""
        rows = self.rows()
        start, end = scroll_window(max(0, self.cursor_index()), viewport_height, len(rows))
        return start, end, rows[start:end]

    def move(self, delta: int) -> None:
        self.cursor = move_cursor(self.rows(), self.cursor, delta)

    def _settle_cursor(self, previous_index: int) -> None:
        """Keep the cursor on its address, or clamp it to its old row when the address vanished."""
        rows = self.rows()
        if not rows:
            self.cursor = None
            return
        if find_index(rows, self.cursor) >= 0:
            return
        target = max(0, min(previous_index, len(rows) - 1))
        self.cursor = rows[target].address


class FileTreeSession(_CursorSession):
    """Browse and select files under one root directory."""

    def __init__(
        self,
        root: Path,
        *,
        extra_ignores: Sequence[str] = (),
        count_tokens: TokenCounter | None = None,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
        path_filter_factory: Callable[[], PathFilter] | None = None,
    ) -> None:
        super().__init__()
        self.root_path = root.resolve()
        self.extra_ignores = tuple(extra_ignores)
        self.count_tokens = count_tokens
        self.max_file_bytes = max_file_bytes
        self.path_filter_factory = path_filter_factory
        self.tree = DirectoryEntry(path=self.root_path, relative_path="", name=self.root_path.name, level=0)
        self._scheduler: TreeRebuildScheduler[None, DirectoryEntry] = TreeRebuildScheduler(
            self._build_tree,
            name="promptree-file-tree-rebuild",
        )

    def _build_tree(self, _params: None) -> DirectoryEntry:
        path_filter = self.path_filter_factory() if self.path_filter_factory is not None else None
        return build_file_tree(
            self.root_path,
            path_filter=path_filter,
            extra_ignores=self.extra_ignores,
            count_tokens=self.count_tokens,
            max_file_bytes=self.max_file_bytes,
        )

    def rows(self) -> list:
        return flatten_file_tree(self.tree)

    def request_rebuild(self) -> int:
        """Schedule a background rebuild and return its request id."""
        return self._scheduler.schedule(None)

    def apply_rebuild(self, request_id: int, new_tree: DirectoryEntry) -> bool:
        """Install a freshly built tree unless a newer rebuild was already applied.

        Selection and expansion are read from the tree current at apply time.
        """
        if request_id <= self.applied_request_id:
            logger.debug("Dropping stale file tree rebuild %d", request_id)
            return False
        previous_index = self.cursor_index()
        self.tree = restore_file_tree_state(new_tree, index_file_tree(self.tree))
        self.applied_request_id = request_id
        self._settle_cursor(previous_index)
        if not self.tree.children:
            self.notify(f"No eligible files under {self.root_path}")
        return True

    def poll_rebuilds(self) -> bool:
        """Apply finished rebuilds; return whether the tree changed."""
        applied = False
        for result in self._scheduler.drain_results():
            applied = self.apply_rebuild(result.request_id, result.payload) or applied
        return applied

    def refresh(self, wait: bool = True) -> bool:
        """Rebuild the tree, optionally blocking until the result is applied."""
        self.request_rebuild()
        if wait:
            self._scheduler.wait_idle(REBUILD_WAIT_SECONDS)
        return self.poll_rebuilds()

    def handle_watch_event(self, event: WatchEvent | None) -> int | None:
        if event is None or not (event.tree_changed or event.ignore_files_changed):
            return None
        return self.request_rebuild()

    def toggle_selection(self) -> None:
        if self.cursor is None:
            return
        self.tree = toggle_file_selected(self.tree, self.cursor)

    def toggle_expansion(self) -> None:
        if isinstance(self.cursor_entry(), DirectoryEntry):
            self.tree = toggle_directory_expanded(self.tree, self.cursor)

    def collapse_or_parent(self) -> None:
        """Collapse the directory under the cursor, or move to the parent directory."""
        entry = self.cursor_entry()
        if entry is None:
            return
        if isinstance(entry, DirectoryEntry) and entry.expanded:
            self.tree = toggle_directory_expanded(self.tree, entry.address)
            return
        parent = entry.path.parent
        if parent != self.tree.path:
            self.cursor = str(parent)

    def reveal(self, address: str) -> bool:
        """Expand every ancestor of ``address`` and move the cursor onto it."""
        if find_entry(self.tree, address) is None:
            return False
        self.tree = expand_to_path(self.tree, address)
        self.cursor = address
        return True

    def select(self, address: str) -> bool:
        """Make the node at ``address`` fully selected; ``False`` when unknown."""
        entry = find_entry(self.tree, address)
        if entry is None or entry is self.tree:
            return False
        if not (entry.selected and not entry.partially_selected):
            self.tree = toggle_file_selected(self.tree, address)
        return True

    def select_all(self) -> None:
        for child in self.tree.children:
            self.select(child.address)

    def selected_files(self) -> list[FileEntry]:
        return collect_selected(self.tree)

    def stats(self) -> SelectionStats:
        files = self.selected_files()
        return SelectionStats(
            file_count=len(files),
            hunk_count=0,
            token_count=sum(item.token_count for item in files),
        )

    def build_prompt(self, prompt_format: str = DEFAULT_PROMPT_FORMAT) -> str:
        files = self.selected_files()
        if not files:
            self.notify("Nothing selected")
        return build_file_prompt(files, prompt_format)


class GitHistorySession(_CursorSession):
    """Browse commits page by page and select individual hunks."""

    def __init__(
        self,
        client: VcsClient,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        path_filter: PathFilter | None = None,
        count_tokens: TokenCounter | None = None,
    ) -> None:
        super().__init__()
        self.client = client
        self.page_size = max(1, page_size)
        self.path_filter = path_filter
        self.count_tokens = count_tokens
        self.commits: tuple[CommitEntry, ...] = ()
        self.log_offset = 0
        self.exhausted = False
        self._scheduler: TreeRebuildScheduler[int, CommitPage] = TreeRebuildScheduler(
            self._build_first_pages,
            name="promptree-git-rebuild",
        )

    def _load_page(self, offset: int, limit: int) -> CommitPage:
        return load_page(
            self.client,
            offset,
            limit,
            path_filter=self.path_filter,
            count_tokens=self.count_tokens,
        )

    def _build_first_pages(self, limit: int) -> CommitPage:
        return self._load_page(0, limit)

    def rows(self) -> list:
        return flatten_forest(self.commits)

    def request_rebuild(self) -> int:
        """Reload every page loaded so far in the background."""
        return self._scheduler.schedule(max(self.page_size, self.log_offset))

    def apply_rebuild(self, request_id: int, page: CommitPage, limit: int | None = None) -> bool:
        """Replace the forest with ``page`` unless a newer rebuild was already applied."""
        if request_id <= self.applied_request_id:
            logger.debug("Dropping stale history rebuild %d", request_id)
            return False
        limit = self.page_size if limit is None else limit
        previous_index = self.cursor_index()
        self.commits = restore_forest_state(page.commits, index_forest(self.commits))
        self.log_offset = page.consumed
        self.exhausted = page.exhausted or page.consumed < limit
        self.applied_request_id = request_id
        self._settle_cursor(previous_index)
        if not self.commits:
            self.notify("No commits found")
        return True

    def poll_rebuilds(self) -> bool:
        applied = False
        for result in self._scheduler.drain_results():
            applied = self.apply_rebuild(result.request_id, result.payload, result.request.params) or applied
        return applied

    def refresh(self, wait: bool = True) -> bool:
        self.request_rebuild()
        if wait:
            self._scheduler.wait_idle(REBUILD_WAIT_SECONDS)
        return self.poll_rebuilds()

    def handle_watch_event(self, event: WatchEvent | None) -> int | None:
        if event is None or not (event.git_changed or event.tree_changed):
            return None
        return self.request_rebuild()

    def load_more(self) -> bool:
        """Append the next page of history; return whether any commit was added.

        Appending counts as an applied rebuild: results of rebuilds requested
        earlier are discarded, and one still outstanding is requested again
        so it covers the grown history.
        """
        if self.exhausted:
            return False
        outstanding = self._scheduler.latest_request_id > self.applied_request_id
        self.applied_request_id = self._scheduler.reserve_request_id()
        page = self._load_page(self.log_offset, self.page_size)
        self.log_offset += page.consumed
        if page.exhausted or page.consumed < self.page_size:
            self.exhausted = True
        known = {commit.sha for commit in self.commits}
        fresh = tuple(commit for commit in page.commits if commit.sha not in known)
        self.commits = self.commits + fresh
        if self.cursor is None and self.commits:
            self.cursor = self.commits[0].address
        if outstanding:
            self.request_rebuild()
        return bool(fresh)

    def move(self, delta: int) -> None:
        super().move(delta)
        rows = self.rows()
        if not self.exhausted and should_load_more(find_index(rows, self.cursor), len(rows), self.page_size):
            self.load_more()

    def toggle_selection(self) -> None:
        if self.cursor is None:
            return
        self.commits = toggle_forest_selected(self.commits, self.cursor)

    def toggle_expansion(self) -> None:
        if isinstance(self.cursor_entry(), (CommitEntry, FileChangeEntry)):
            self.commits = toggle_forest_expanded(self.commits, self.cursor)

    def collapse_or_parent(self) -> None:
        """Collapse the commit or file under the cursor, or move to its parent row."""
        entry = self.cursor_entry()
        if entry is None:
            return
        if isinstance(entry, (CommitEntry, FileChangeEntry)) and entry.expanded:
            self.commits = toggle_forest_expanded(self.commits, entry.address)
            return
        parent = parent_address(entry)
        if parent is not None:
            self.cursor = parent

    def reveal(self, address: str) -> bool:
        """Expand the commit and file holding ``address`` and move the cursor onto it."""
        index = index_forest(self.commits)
        entry = index.get(address)
        if entry is None:
            return False
        parent = parent_address(entry)
        while parent is not None:
            node = index[parent]
            if not node.expanded:
                self.commits = toggle_forest_expanded(self.commits, parent)
            parent = parent_address(node)
        self.cursor = address
        return True

    def select(self, address: str) -> bool:
        """Make the node at ``address`` fully selected; ``False`` when unknown."""
        entry = index_forest(self.commits).get(address)
        if entry is None:
            return False
        if not (entry.selected and not entry.partially_selected):
            self.commits = toggle_forest_selected(self.commits, address)
        return True

    def select_all(self) -> None:
        for commit in self.commits:
            self.select(commit.address)

    def selected_hunks(self) -> list[HunkEntry]:
        return collect_selected_hunks(self.commits)

    def stats(self) -> SelectionStats:
        hunks = self.selected_hunks()
        return SelectionStats(
            file_count=len({(hunk.commit_sha, hunk.file_path) for hunk in hunks}),
            hunk_count=len(hunks),
            token_count=sum(hunk.token_count for hunk in hunks),
        )

    def build_prompt(self, prompt_format: str = DEFAULT_PROMPT_FORMAT) -> str:
        hunks = self.selected_hunks()
        if not hunks:
            self.notify("Nothing selected")
        return build_git_prompt(hunks, prompt_format)


__all__ = [
    "SelectionStats",
    "FileTreeSession",
    "GitHistorySession",
]
