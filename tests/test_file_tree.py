"""File tree build and tri-state selection tests."""

from __future__ import annotations

import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

from promptree.file_tree import (
    DirectoryEntry,
    FileEntry,
    build_file_tree,
    collect_selected,
    expand_to_path,
    find_entry,
    index_file_tree,
    recompute_selection,
    restore_file_tree_state,
    toggle_expanded,
    toggle_selected,
)
from promptree.path_filter import invalidate_path_filter
from promptree.tokens import clear_token_count_cache


def _count_words(text: str) -> int:
    return len(text.split())


def _file(root: Path, relative: str, selected: bool = False) -> FileEntry:
    path = root / relative
    return FileEntry(
        path=path,
        relative_path=relative,
        name=path.name,
        level=relative.count("/") + 1,
        token_count=1,
        selected=selected,
    )


def _sample_tree() -> DirectoryEntry:
    """root/{a/{b/{x.py, y.py}, z.py}, top.md}"""
    root = Path("/project")
    b = DirectoryEntry(
        path=root / "a" / "b",
        relative_path="a/b",
        name="b",
        level=2,
        files=(_file(root, "a/b/x.py"), _file(root, "a/b/y.py")),
    )
    a = DirectoryEntry(
        path=root / "a",
        relative_path="a",
        name="a",
        level=1,
        directories=(b,),
        files=(_file(root, "a/z.py"),),
    )
    return recompute_selection(
        DirectoryEntry(
            path=root,
            relative_path="",
            name="project",
            level=0,
            expanded=True,
            directories=(a,),
            files=(_file(root, "top.md"),),
        )
    )


class ToggleSelectedTests(unittest.TestCase):
    def test_toggling_a_file_marks_ancestors_partial(self) -> None:
        tree = toggle_selected(_sample_tree(), "/project/a/b/x.py")

        b = find_entry(tree, "/project/a/b")
        a = find_entry(tree, "/project/a")
        self.assertTrue(find_entry(tree, "/project/a/b/x.py").selected)
        self.assertFalse(b.selected)
        self.assertTrue(b.partially_selected)
        self.assertFalse(a.selected)
        self.assertTrue(a.partially_selected)
        self.assertTrue(tree.partially_selected)

    def test_selecting_every_child_makes_directory_fully_selected(self) -> None:
        tree = toggle_selected(_sample_tree(), "/project/a/b/x.py")
        tree = toggle_selected(tree, "/project/a/b/y.py")

        b = find_entry(tree, "/project/a/b")
        self.assertTrue(b.selected)
        self.assertFalse(b.partially_selected)
        self.assertTrue(find_entry(tree, "/project/a").partially_selected)

    def test_partial_directory_toggle_selects_whole_subtree(self) -> None:
        tree = toggle_selected(_sample_tree(), "/project/a/b/x.py")
        tree = toggle_selected(tree, "/project/a")

        a = find_entry(tree, "/project/a")
        self.assertTrue(a.fully_selected)
        self.assertEqual(
            [item.relative_path for item in collect_selected(tree)],
            ["a/b/x.py", "a/b/y.py", "a/z.py"],
        )

    def test_fully_selected_directory_toggle_clears_subtree(self) -> None:
        tree = toggle_selected(_sample_tree(), "/project/a")
        tree = toggle_selected(tree, "/project/a")

        self.assertEqual(collect_selected(tree), [])
        a = find_entry(tree, "/project/a")
        self.assertFalse(a.selected)
        self.assertFalse(a.partially_selected)

    def test_double_toggle_restores_original_selection(self) -> None:
        original = toggle_selected(_sample_tree(), "/project/top.md")
        for address in ("/project/a/b/x.py", "/project/a/b", "/project/a/z.py"):
            round_trip = toggle_selected(toggle_selected(original, address), address)
            self.assertEqual(round_trip, original)

    def test_root_and_unknown_addresses_are_noops(self) -> None:
        tree = _sample_tree()
        self.assertIs(toggle_selected(tree, "/project"), tree)
        self.assertIs(toggle_selected(tree, "/project/missing.txt"), tree)
        self.assertIs(toggle_selected(tree, "/elsewhere/file.txt"), tree)

    def test_unchanged_subtrees_are_shared(self) -> None:
        tree = _sample_tree()
        updated = toggle_selected(tree, "/project/top.md")

        self.assertIs(updated.directories[0], tree.directories[0])

    def test_empty_directory_is_never_selected(self) -> None:
        empty = DirectoryEntry(path=Path("/p/e"), relative_path="e", name="e", level=1, selected=True)
        self.assertFalse(recompute_selection(empty).selected)

    def test_selected_and_partial_never_both_true(self) -> None:
        tree = _sample_tree()
        for address in ("/project/a/b/x.py", "/project/a", "/project/top.md", "/project/a/b"):
            tree = toggle_selected(tree, address)
            for entry in index_file_tree(tree).values():
                self.assertFalse(entry.selected and entry.partially_selected)


class ExpansionTests(unittest.TestCase):
    def test_expand_to_path_expands_every_ancestor_only(self) -> None:
        tree = expand_to_path(_sample_tree(), "/project/a/b/x.py")

        self.assertTrue(find_entry(tree, "/project/a").expanded)
        self.assertTrue(find_entry(tree, "/project/a/b").expanded)

    def test_expand_to_directory_leaves_target_collapsed(self) -> None:
        tree = expand_to_path(_sample_tree(), "/project/a/b")

        self.assertTrue(find_entry(tree, "/project/a").expanded)
        self.assertFalse(find_entry(tree, "/project/a/b").expanded)

    def test_expand_to_unknown_path_is_noop(self) -> None:
        tree = _sample_tree()
        self.assertIs(expand_to_path(tree, "/project/a/nope.py"), tree)

    def test_toggle_expanded_flips_directories_only(self) -> None:
        tree = toggle_expanded(_sample_tree(), "/project/a")
        self.assertTrue(find_entry(tree, "/project/a").expanded)
        tree = toggle_expanded(tree, "/project/a")
        self.assertFalse(find_entry(tree, "/project/a").expanded)

        unchanged = _sample_tree()
        self.assertIs(toggle_expanded(unchanged, "/project/top.md"), unchanged)


class RestoreStateTests(unittest.TestCase):
    def test_selection_and_expansion_carry_over_and_new_files_make_parent_partial(self) -> None:
        previous = toggle_selected(_sample_tree(), "/project/a/b")
        previous = toggle_expanded(previous, "/project/a")

        fresh = _sample_tree()
        b = fresh.directories[0].directories[0]
        grown_b = replace(b, files=(*b.files, _file(Path("/project"), "a/b/new.py")))
        grown_a = replace(fresh.directories[0], directories=(grown_b,))
        fresh = recompute_selection(replace(fresh, directories=(grown_a,)))

        restored = restore_file_tree_state(fresh, index_file_tree(previous))

        self.assertTrue(find_entry(restored, "/project/a").expanded)
        self.assertTrue(find_entry(restored, "/project/a/b/x.py").selected)
        self.assertFalse(find_entry(restored, "/project/a/b/new.py").selected)
        self.assertTrue(find_entry(restored, "/project/a/b").partially_selected)


class BuildFileTreeTests(unittest.TestCase):
    def setUp(self) -> None:
        clear_token_count_cache()
        invalidate_path_filter()

    def test_build_prunes_ignored_binary_large_and_empty_entries(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "src" / "pkg").mkdir(parents=True)
            (root / "src" / "pkg" / "mod.py").write_text("def f():\n    return 1\n", encoding="utf-8")
            (root / "src" / "Alpha.txt").write_text("alpha beta\n", encoding="utf-8")
            (root / "node_modules" / "lib").mkdir(parents=True)
            (root / "node_modules" / "lib" / "index.js").write_text("x = 1\n", encoding="utf-8")
            (root / "build").mkdir()
            (root / "build" / "out.txt").write_text("generated\n", encoding="utf-8")
            (root / ".gitignore").write_text("build/\n", encoding="utf-8")
            (root / "empty_dir").mkdir()
            (root / "blank.txt").write_text("   \n", encoding="utf-8")
            (root / "blob.bin").write_bytes(b"abc\x00def")
            (root / "big.txt").write_text("word " * 100, encoding="utf-8")
            (root / "yarn.lock").write_text("lock file\n", encoding="utf-8")

            tree = build_file_tree(root, count_tokens=_count_words, max_file_bytes=200)

        self.assertEqual([item.name for item in tree.directories], ["src"])
        self.assertEqual([item.name for item in tree.files], [".gitignore"])
        src = tree.directories[0]
        self.assertEqual([item.name for item in src.directories], ["pkg"])
        self.assertEqual([item.name for item in src.files], ["Alpha.txt"])
        self.assertEqual(src.files[0].extension, "txt")
        self.assertEqual(src.files[0].relative_path, "src/Alpha.txt")
        self.assertEqual(src.token_count, 2 + 4)
        self.assertEqual(tree.token_count, src.token_count + 1)
        self.assertEqual(tree.level, 0)
        self.assertEqual(src.directories[0].files[0].level, 3)

    def test_build_seeds_state_from_callbacks(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "docs").mkdir()
            (root / "docs" / "a.md").write_text("one two\n", encoding="utf-8")
            (root / "docs" / "b.md").write_text("three\n", encoding="utf-8")
            selected = {str(root / "docs" / "a.md")}
            expanded = {str(root / "docs")}

            tree = build_file_tree(
                root,
                count_tokens=_count_words,
                is_selected=lambda address: address in selected,
                is_expanded=lambda address: address in expanded,
            )

        docs = tree.directories[0]
        self.assertTrue(docs.expanded)
        self.assertTrue(docs.partially_selected)
        self.assertEqual([item.name for item in collect_selected(tree)], ["a.md"])

    def test_unreadable_root_yields_empty_tree(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp) / "missing"
            tree = build_file_tree(missing, count_tokens=_count_words)

        self.assertEqual(tree.children, ())
        self.assertEqual(tree.token_count, 0)


if __name__ == "__main__":
    unittest.main()
