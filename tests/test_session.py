"""Session-level behavior: cursor stability, rebuild ordering and paging."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from promptree.errors import VcsError
from promptree.file_tree import build_file_tree
from promptree.git_tree import UNCOMMITTED_SHA, LogEntry
from promptree.path_filter import invalidate_path_filter
from promptree.session import FileTreeSession, GitHistorySession, SelectionStats
from promptree.tokens import clear_token_count_cache
from promptree.watch import WatchEvent


def _count_words(text: str) -> int:
    return len(text.split())


def _file_diff(path: str, hunk_count: int = 1) -> str:
    parts = [f"diff --git a/{path} b/{path}\n--- a/{path}\n+++ b/{path}\n"]
    for index in range(hunk_count):
        line = index * 10 + 1
        parts.append(f"@@ -{line} +{line} @@\n-old {index}\n+new {index}\n")
    return "".join(parts)


class FakeVcsClient:
    def __init__(self, commit_count: int, unstaged: str = "") -> None:
        self.log_entries = [LogEntry(f"c{index}", f"Commit {index}") for index in range(commit_count)]
        self.unstaged = unstaged

    def diff_staged(self) -> str:
        return ""

    def diff_unstaged(self) -> str:
        return self.unstaged

    def log(self, max_count: int, skip: int) -> list[LogEntry]:
        return self.log_entries[skip : skip + max_count]

    def show(self, sha: str) -> str:
        if sha == "broken":
            raise VcsError("bad object")
        return _file_diff(f"{sha}.txt", 2)


class FileTreeSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        clear_token_count_cache()
        invalidate_path_filter()
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        (self.root / "docs").mkdir()
        (self.root / "docs" / "guide.md").write_text("read me please\n", encoding="utf-8")
        for name in ("a.txt", "b.txt", "c.txt"):
            (self.root / name).write_text(f"{name} body\n", encoding="utf-8")
        self.session = FileTreeSession(self.root, count_tokens=_count_words)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_refresh_builds_tree_and_places_cursor_on_first_row(self) -> None:
        self.assertTrue(self.session.refresh())

        self.assertEqual(self.session.cursor, str(self.root / "docs"))
        self.assertEqual(self.session.applied_request_id, 1)
        self.assertEqual(
            [row.name for row in self.session.rows()],
            ["docs", "a.txt", "b.txt", "c.txt"],
        )

    def test_toggle_at_cursor_and_stats(self) -> None:
        self.session.refresh()
        self.session.toggle_selection()
        self.session.move(1)
        self.session.toggle_selection()

        self.assertEqual(
            [item.relative_path for item in self.session.selected_files()],
            ["docs/guide.md", "a.txt"],
        )
        self.assertEqual(self.session.stats(), SelectionStats(file_count=2, hunk_count=0, token_count=3 + 2))

    def test_rebuild_keeps_selection_and_new_files_make_directory_partial(self) -> None:
        self.session.refresh()
        self.session.select(str(self.root / "docs"))
        (self.root / "docs" / "new.md").write_text("fresh words\n", encoding="utf-8")

        self.session.refresh()

        docs = self.session.tree.directories[0]
        self.assertTrue(docs.partially_selected)
        self.assertEqual([item.name for item in self.session.selected_files()], ["guide.md"])

    def test_cursor_clamps_to_previous_row_when_its_node_disappears(self) -> None:
        self.session.refresh()
        self.session.move(2)
        self.assertEqual(self.session.cursor, str(self.root / "b.txt"))

        (self.root / "b.txt").unlink()
        self.session.refresh()

        self.assertEqual(self.session.cursor, str(self.root / "c.txt"))

    def test_cursor_follows_its_node_when_rows_shift(self) -> None:
        self.session.refresh()
        self.session.move(3)
        (self.root / "0first.txt").write_text("zero\n", encoding="utf-8")

        self.session.refresh()

        self.assertEqual(self.session.cursor, str(self.root / "c.txt"))
        self.assertEqual(self.session.cursor_index(), 4)

    def test_stale_rebuild_results_are_dropped(self) -> None:
        self.session.refresh()
        stale = build_file_tree(self.root / "docs", count_tokens=_count_words)

        self.assertFalse(self.session.apply_rebuild(1, stale))
        self.assertFalse(self.session.apply_rebuild(0, stale))
        self.assertEqual(self.session.tree.path, self.root)

    def test_edits_made_before_apply_are_preserved(self) -> None:
        self.session.refresh()
        fresh = build_file_tree(self.root, count_tokens=_count_words)
        self.session.select(str(self.root / "a.txt"))

        self.assertTrue(self.session.apply_rebuild(7, fresh))

        self.assertEqual([item.name for item in self.session.selected_files()], ["a.txt"])
        self.assertEqual(self.session.applied_request_id, 7)

    def test_reveal_and_collapse_or_parent(self) -> None:
        self.session.refresh()
        guide = str(self.root / "docs" / "guide.md")

        self.assertTrue(self.session.reveal(guide))
        self.assertEqual(self.session.cursor, guide)
        self.assertTrue(self.session.tree.directories[0].expanded)

        self.session.collapse_or_parent()
        self.assertEqual(self.session.cursor, str(self.root / "docs"))
        self.session.collapse_or_parent()
        self.assertFalse(self.session.tree.directories[0].expanded)
        self.assertFalse(self.session.reveal(str(self.root / "missing.txt")))

    def test_window_slices_visible_rows(self) -> None:
        self.session.refresh()
        self.session.move(3)

        start, end, rows = self.session.window(2)

        self.assertEqual((start, end), (2, 4))
        self.assertEqual([row.name for row in rows], ["b.txt", "c.txt"])

    def test_empty_tree_and_empty_prompt_notify(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            session = FileTreeSession(Path(tmp), count_tokens=_count_words)
            session.refresh()
            session.build_prompt()

        self.assertIsNone(session.cursor)
        messages = session.drain_notifications()
        self.assertEqual(len(messages), 2)
        self.assertIn("No eligible files", messages[0])
        self.assertEqual(messages[1], "Nothing selected")
        self.assertEqual(session.notifications, [])

    def test_watch_events_schedule_rebuilds(self) -> None:
        self.assertIsNone(self.session.handle_watch_event(None))
        self.assertIsNone(self.session.handle_watch_event(WatchEvent(git_changed=True)))

        request_id = self.session.handle_watch_event(WatchEvent(tree_changed=True))

        self.assertEqual(request_id, 1)
        self.session._scheduler.wait_idle(5.0)
        self.assertTrue(self.session.poll_rebuilds())


class GitHistorySessionTests(unittest.TestCase):
    def _session(self, commit_count: int = 10, **kwargs) -> GitHistorySession:
        session = GitHistorySession(FakeVcsClient(commit_count, **kwargs), page_size=3, count_tokens=_count_words)
        session.refresh()
        return session

    def test_refresh_loads_first_page_with_pseudo_commit(self) -> None:
        session = self._session(unstaged=_file_diff("wip.py"))

        self.assertEqual([commit.sha for commit in session.commits], [UNCOMMITTED_SHA, "c0", "c1", "c2"])
        self.assertEqual(session.cursor, UNCOMMITTED_SHA)
        self.assertEqual(session.log_offset, 3)
        self.assertFalse(session.exhausted)

    def test_moving_near_the_end_prefetches_next_page(self) -> None:
        session = self._session()
        session.move(2)
        self.assertEqual(len(session.commits), 4)

        session.move(1)

        self.assertEqual([commit.sha for commit in session.commits][-3:], ["c3", "c4", "c5"])
        self.assertEqual(session.log_offset, 6)

    def test_history_runs_out(self) -> None:
        session = self._session(commit_count=4)
        self.assertTrue(session.load_more())
        self.assertTrue(session.exhausted)
        self.assertFalse(session.load_more())
        self.assertEqual(len(session.commits), 5)

    def test_rebuild_requested_before_load_more_cannot_drop_the_new_page(self) -> None:
        session = self._session()
        session.request_rebuild()
        session._scheduler.wait_idle(5.0)

        self.assertTrue(session.load_more())
        session.select("c4")
        session.poll_rebuilds()

        expected = [UNCOMMITTED_SHA, "c0", "c1", "c2", "c3", "c4", "c5"]
        self.assertEqual([commit.sha for commit in session.commits], expected)
        self.assertTrue(session.commits[5].selected)

        session._scheduler.wait_idle(5.0)
        session.poll_rebuilds()

        self.assertEqual([commit.sha for commit in session.commits], expected)
        self.assertTrue(session.commits[5].selected)
        self.assertEqual(session.log_offset, 6)

    def test_load_more_without_pending_rebuild_schedules_nothing(self) -> None:
        session = self._session()

        session.load_more()

        self.assertEqual(session.applied_request_id, 2)
        self.assertEqual(session._scheduler.latest_request_id, 2)
        self.assertEqual(session._scheduler.drain_results(), [])

    def test_collapse_or_parent_on_hash_suffixed_file_name(self) -> None:
        client = FakeVcsClient(1)
        client.show = lambda sha: _file_diff("notes#2")
        session = GitHistorySession(client, page_size=3, count_tokens=_count_words)
        session.refresh()

        self.assertTrue(session.reveal("c0:notes#2"))
        session.collapse_or_parent()

        self.assertEqual(session.cursor, "c0")

    def test_toggle_expand_and_collapse_or_parent(self) -> None:
        session = self._session()
        session.move(1)
        session.toggle_expansion()
        session.move(1)
        self.assertEqual(session.cursor, "c0:c0.txt")
        session.toggle_expansion()
        session.move(2)
        self.assertEqual(session.cursor, "c0:c0.txt#1")

        session.toggle_selection()
        self.assertEqual(session.stats(), SelectionStats(file_count=1, hunk_count=1, token_count=4))

        session.collapse_or_parent()
        self.assertEqual(session.cursor, "c0:c0.txt")
        session.collapse_or_parent()
        self.assertEqual(session.cursor, "c0:c0.txt")
        session.collapse_or_parent()
        self.assertEqual(session.cursor, "c0")

    def test_reveal_expands_ancestors_of_a_hunk(self) -> None:
        session = self._session()

        self.assertTrue(session.reveal("c1:c1.txt#0"))

        self.assertEqual(session.cursor, "c1:c1.txt#0")
        self.assertIn("c1:c1.txt#0", [row.address for row in session.rows()])
        self.assertFalse(session.reveal("c9:nope.txt"))

    def test_refresh_carries_selection_and_expansion(self) -> None:
        session = self._session()
        session.select("c2")
        session.reveal("c1:c1.txt")

        session.refresh()

        self.assertTrue(session.commits[3].selected)
        self.assertTrue(session.commits[2].expanded)
        self.assertEqual(session.cursor, "c1:c1.txt")
        self.assertEqual(session.stats().hunk_count, 2)

    def test_select_all_and_prompt(self) -> None:
        session = self._session(commit_count=2)
        session.select_all()

        prompt = session.build_prompt()

        self.assertIn('<commit sha="c0" message="Commit 0">', prompt)
        self.assertIn('<commit sha="c1" message="Commit 1">', prompt)
        self.assertEqual(session.stats(), SelectionStats(file_count=2, hunk_count=4, token_count=16))


if __name__ == "__main__":
    unittest.main()
