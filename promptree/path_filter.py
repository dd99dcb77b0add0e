"""Ignore-rule path filtering for tree and diff builders.

Rules come from two sources checked in order: a fixed built-in denylist
(plus user ``extra_ignores``) and the project's ``.gitignore`` files. Nested
``.gitignore`` patterns are rebased onto their directory so a single
``pathspec.GitIgnoreSpec`` carries the whole project with git's precedence:
later (deeper) rules override earlier ones.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import pathspec

BUILTIN_IGNORES: tuple[str, ...] = (
    ".git",
    "node_modules",
    "dist",
    "package-lock.json",
    "pnpm-lock.yaml",
    "*.lock",
)
GITIGNORE_FILENAME = ".gitignore"
PATH_FILTER_CACHE_MAX = 64

logger = logging.getLogger(__name__)


def normalize_relative_path(relative_path: str) -> str:
    """Return ``relative_path`` with POSIX separators and no edge slashes."""
    return relative_path.replace("\\", "/").strip("/")


@dataclass(frozen=True, eq=False)
class PathFilter:
    """Compiled ignore rules for one project root.

    ``gitignore_spec`` is ``None`` when the project has no readable
    ``.gitignore`` file.
    """

    root: Path
    builtin_spec: pathspec.GitIgnoreSpec
    gitignore_spec: pathspec.GitIgnoreSpec | None = None

    def _matches(self, relative_path: str, is_directory: bool) -> bool:
        candidate = f"{relative_path}/" if is_directory else relative_path
        if self.builtin_spec.match_file(candidate):
            return True
        if self.gitignore_spec is not None and self.gitignore_spec.match_file(candidate):
            return True
        return False

    def is_ignored(self, relative_path: str, is_directory: bool = False) -> bool:
        """Return whether ``relative_path`` (relative to ``root``) is excluded.

        A path inside an ignored directory is ignored as well, matching git's
        rule that children of an excluded directory cannot be re-included.
        """
        normalized = normalize_relative_path(relative_path)
        if not normalized:
            return False
        parts = normalized.split("/")
        for depth in range(1, len(parts)):
            if self._matches("/".join(parts[:depth]), True):
                return True
        return self._matches(normalized, is_directory)


def _rebase_pattern(line: str, base: str) -> str | None:
    """Rewrite one ``.gitignore`` line from directory ``base`` onto the root.

    Returns ``None`` for blank lines and comments.
    """
    pattern = line.rstrip("\r\n").rstrip()
    if not pattern or pattern.startswith("#"):
        return None
    if not base:
        return pattern

    negated = pattern.startswith("!")
    body = pattern[1:] if negated else pattern
    dir_only = body.endswith("/")
    core = body.rstrip("/")
    if not core:
        return None
    anchored = "/" in core
    core = core.lstrip("/")
    rebased = f"/{base}/{core}" if anchored else f"/{base}/**/{core}"
    if dir_only:
        rebased += "/"
    return f"!{rebased}" if negated else rebased


def iter_gitignore_files(root: Path, builtin_spec: pathspec.GitIgnoreSpec) -> Iterable[Path]:
    """Yield ``.gitignore`` files under ``root``, shallow directories first."""
    for current, dirnames, filenames in os.walk(root, followlinks=False):
        current_path = Path(current)
        relative_dir = current_path.relative_to(root).as_posix()
        relative_dir = "" if relative_dir == "." else relative_dir
        dirnames[:] = sorted(
            name
            for name in dirnames
            if not builtin_spec.match_file(f"{relative_dir}/{name}/".lstrip("/"))
        )
        if GITIGNORE_FILENAME in filenames:
            yield current_path / GITIGNORE_FILENAME


def load_gitignore_patterns(root: Path, builtin_spec: pathspec.GitIgnoreSpec) -> list[str]:
    """Collect rebased gitignore patterns from every ``.gitignore`` under ``root``."""
    patterns: list[str] = []
    for ignore_file in iter_gitignore_files(root, builtin_spec):
        base = ignore_file.parent.relative_to(root).as_posix()
        base = "" if base == "." else base
        try:
            lines = ignore_file.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as exc:
            logger.warning("Skipping unreadable %s: %s", ignore_file, exc)
            continue
        for line in lines:
            rebased = _rebase_pattern(line, base)
            if rebased is not None:
                patterns.append(rebased)
    return patterns


def build_path_filter(root: Path, extra_ignores: Iterable[str] = ()) -> PathFilter:
    """Compile a fresh ``PathFilter`` for ``root`` without consulting the cache."""
    root = root.resolve()
    builtin_spec = pathspec.GitIgnoreSpec.from_lines([*BUILTIN_IGNORES, *extra_ignores])
    patterns = load_gitignore_patterns(root, builtin_spec)
    gitignore_spec = pathspec.GitIgnoreSpec.from_lines(patterns) if patterns else None
    return PathFilter(root=root, builtin_spec=builtin_spec, gitignore_spec=gitignore_spec)


_PATH_FILTER_CACHE: OrderedDict[tuple[str, tuple[str, ...]], PathFilter] = OrderedDict()
_PATH_FILTER_CACHE_LOCK = threading.RLock()
_path_filter_generation = 0


def get_path_filter(root: Path, extra_ignores: Iterable[str] = ()) -> PathFilter:
    """Return the cached filter for ``root``, compiling it on first use.

    Cached derivations live until ``invalidate_path_filter`` drops them (the
    watch layer does so when a ``.gitignore`` changes). A filter compiled
    while an invalidation ran is returned but not cached.
    """
    resolved_root = root.resolve()
    extras = tuple(extra_ignores)
    key = (str(resolved_root), extras)
    with _PATH_FILTER_CACHE_LOCK:
        cached = _PATH_FILTER_CACHE.get(key)
        if cached is not None:
            _PATH_FILTER_CACHE.move_to_end(key)
            return cached
        generation = _path_filter_generation

    path_filter = build_path_filter(resolved_root, extras)

    with _PATH_FILTER_CACHE_LOCK:
        if generation == _path_filter_generation:
            _PATH_FILTER_CACHE[key] = path_filter
            _PATH_FILTER_CACHE.move_to_end(key)
            while len(_PATH_FILTER_CACHE) > PATH_FILTER_CACHE_MAX:
                _PATH_FILTER_CACHE.popitem(last=False)
    return path_filter


def invalidate_path_filter(root: Path | None = None) -> None:
    """Drop cached filters for ``root``, or all of them when ``root`` is ``None``."""
    global _path_filter_generation
    resolved = str(root.resolve()) if root is not None else None
    with _PATH_FILTER_CACHE_LOCK:
        _path_filter_generation += 1
        if resolved is None:
            _PATH_FILTER_CACHE.clear()
            return
        for key in [key for key in _PATH_FILTER_CACHE if key[0] == resolved]:
            del _PATH_FILTER_CACHE[key]


__all__ = [
    "BUILTIN_IGNORES",
    "PathFilter",
    "build_path_filter",
    "iter_gitignore_files",
    "get_path_filter",
    "invalidate_path_filter",
    "load_gitignore_patterns",
    "normalize_relative_path",
]
