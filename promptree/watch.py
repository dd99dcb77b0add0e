"""Filesystem, ignore-file and git-change watch signatures.

Computes cheap hashes over relevant tree/git metadata for poll-based refreshes.
``TreeChangePoller`` compares successive signatures and reports what changed.
"""

from __future__ import annotations

import hashlib
import logging
import os
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .path_filter import PathFilter, get_path_filter, invalidate_path_filter, iter_gitignore_files

logger = logging.getLogger(__name__)


def _update_digest(digest, token: str) -> None:
    """Append a token plus separator byte to a hash digest."""
    digest.update(token.encode("utf-8", errors="surrogateescape"))
    digest.update(b"\0")


def _path_stat_signature(path: Path) -> tuple[str, int, int, int]:
    """Return a stable stat tuple describing ``path`` existence and metadata."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return ("missing", 0, 0, 0)
    except OSError:
        return ("error", 0, 0, 0)
    return ("ok", st.st_mtime_ns, st.st_size, st.st_mode)


def resolve_git_paths(tree_root: Path, timeout_seconds: float = 0.5) -> tuple[Path | None, Path | None]:
    """Resolve repository root and git-dir for ``tree_root``.

    Uses ``git rev-parse --show-toplevel --git-dir`` and returns ``(None, None)``
    if git is unavailable, the directory is not in a repo, or probing fails.
    """
    try:
        proc = subprocess.run(
            ["git", "-C", str(tree_root), "rev-parse", "--show-toplevel", "--git-dir"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout_seconds,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("git rev-parse failed for %s: %s", tree_root, exc)
        return None, None

    if proc.returncode != 0:
        return None, None

    lines = [line.strip() for line in proc.stdout.splitlines() if line.strip()]
    if len(lines) < 2:
        return None, None

    repo_root = Path(lines[0]).resolve()
    git_dir_raw = Path(lines[1])
    git_dir = git_dir_raw if git_dir_raw.is_absolute() else (repo_root / git_dir_raw)
    return repo_root, git_dir.resolve()


def build_tree_watch_signature(root: Path, path_filter: PathFilter | None = None) -> str:
    """Build a digest over every eligible entry under ``root``.

    Ignored paths are skipped, so edits inside ``node_modules`` or a
    gitignored build directory never trigger a rebuild.
    """
    root = root.resolve()
    if path_filter is None:
        path_filter = get_path_filter(root)

    digest = hashlib.blake2b(digest_size=20)
    _update_digest(digest, f"root:{root}")

    for current, dirnames, filenames in os.walk(root, followlinks=False):
        current_path = Path(current)
        relative_dir = current_path.relative_to(root).as_posix()
        relative_dir = "" if relative_dir == "." else relative_dir
        _update_digest(digest, f"dir:{relative_dir}")

        dirnames[:] = sorted(
            name
            for name in dirnames
            if not path_filter.is_ignored(f"{relative_dir}/{name}".lstrip("/"), True)
        )
        for name in sorted(filenames):
            relative_path = f"{relative_dir}/{name}".lstrip("/")
            if path_filter.is_ignored(relative_path, False):
                continue
            state, mtime_ns, size, mode = _path_stat_signature(current_path / name)
            _update_digest(digest, f"file:{relative_path}:{state}:{mtime_ns}:{size}:{mode}")

    return digest.hexdigest()


def build_ignore_files_signature(root: Path, path_filter: PathFilter | None = None) -> str:
    """Build a digest over the stat state of every ``.gitignore`` under ``root``."""
    root = root.resolve()
    if path_filter is None:
        path_filter = get_path_filter(root)

    digest = hashlib.blake2b(digest_size=20)
    _update_digest(digest, f"root:{root}")
    for ignore_file in iter_gitignore_files(root, path_filter.builtin_spec):
        state, mtime_ns, size, mode = _path_stat_signature(ignore_file)
        _update_digest(digest, f"ignore:{ignore_file.relative_to(root).as_posix()}:{state}:{mtime_ns}:{size}:{mode}")
    return digest.hexdigest()


def build_git_watch_signature(git_dir: Path | None) -> str:
    """Build a digest over git metadata that signals history or index changes."""
    digest = hashlib.blake2b(digest_size=20)
    if git_dir is None:
        _update_digest(digest, "git:none")
        return digest.hexdigest()

    git_dir = git_dir.resolve()
    _update_digest(digest, f"git_dir:{git_dir}")

    def add_path_token(label: str, path: Path) -> None:
        state, mtime_ns, size, mode = _path_stat_signature(path)
        _update_digest(digest, f"{label}:{state}:{mtime_ns}:{size}:{mode}")

    add_path_token("index", git_dir / "index")
    head_path = git_dir / "HEAD"
    add_path_token("head", head_path)

    ref_name = ""
    try:
        head_text = head_path.read_text(encoding="utf-8", errors="replace").strip()
        if head_text.startswith("ref: "):
            ref_name = head_text[5:].strip()
    except OSError:
        ref_name = ""
    _update_digest(digest, f"head_ref:{ref_name}")

    if ref_name:
        add_path_token("head_ref_file", git_dir / ref_name)

    return digest.hexdigest()


@dataclass(frozen=True)
class WatchEvent:
    """What changed since the previous poll."""

    tree_changed: bool = False
    ignore_files_changed: bool = False
    git_changed: bool = False


class TreeChangePoller:
    """Poll signatures for one root and report changes.

    The first ``poll`` records a baseline and reports nothing. An ignore-file
    change drops the cached ``PathFilter`` for the root before the tree
    signature is recomputed, so the new rules apply immediately.
    """

    def __init__(self, root: Path, *, extra_ignores: Iterable[str] = (), git_dir: Path | None = None) -> None:
        self.root = root.resolve()
        self.extra_ignores = tuple(extra_ignores)
        self.git_dir = git_dir
        self._tree_signature: str | None = None
        self._ignore_signature: str | None = None
        self._git_signature: str | None = None

    def _path_filter(self) -> PathFilter:
        return get_path_filter(self.root, self.extra_ignores)

    def poll(self) -> WatchEvent | None:
        ignore_signature = build_ignore_files_signature(self.root, self._path_filter())
        ignore_changed = self._ignore_signature is not None and ignore_signature != self._ignore_signature
        if ignore_changed:
            logger.debug("Ignore files changed under %s", self.root)
            invalidate_path_filter(self.root)

        tree_signature = build_tree_watch_signature(self.root, self._path_filter())
        git_signature = build_git_watch_signature(self.git_dir) if self.git_dir is not None else None

        baseline = self._tree_signature is None
        tree_changed = not baseline and tree_signature != self._tree_signature
        git_changed = not baseline and git_signature != self._git_signature

        self._ignore_signature = ignore_signature
        self._tree_signature = tree_signature
        self._git_signature = git_signature

        if not (tree_changed or ignore_changed or git_changed):
            return None
        return WatchEvent(
            tree_changed=tree_changed,
            ignore_files_changed=ignore_changed,
            git_changed=git_changed,
        )


__all__ = [
    "resolve_git_paths",
    "build_tree_watch_signature",
    "build_ignore_files_signature",
    "build_git_watch_signature",
    "WatchEvent",
    "TreeChangePoller",
]
