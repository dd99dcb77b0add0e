"""Version-control collaborator used to fetch raw diff and log text."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Protocol

from ..errors import VcsError
from .types import LogEntry

DIFF_ARGS = ("--no-ext-diff", "--patch", "--unified=3", "--color=never")
GIT_TIMEOUT_SECONDS = 10.0


class VcsClient(Protocol):
    """Source of raw diff and history text.

    Implementations raise ``VcsError`` on failure; the forest builder turns
    failures into empty results.
    """

    def diff_staged(self) -> str: ...

    def diff_unstaged(self) -> str: ...

    def log(self, max_count: int, skip: int) -> list[LogEntry]: ...

    def show(self, sha: str) -> str: ...


def _run_git(repo_root: Path, args: list[str], timeout_seconds: float) -> str:
    """Execute a git subcommand and return stdout, raising ``VcsError`` on failure."""
    try:
        proc = subprocess.run(
            ["git", "-C", str(repo_root), *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout_seconds,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise VcsError(f"git {args[0]} failed: {exc}") from exc
    if proc.returncode != 0:
        message = proc.stderr.strip() or proc.stdout.strip() or f"exit status {proc.returncode}"
        raise VcsError(f"git {args[0]} failed: {message}")
    return proc.stdout


def parse_log_output(output: str) -> list[LogEntry]:
    """Parse ``--format=%H%x00%s`` log lines into entries."""
    entries: list[LogEntry] = []
    for line in output.splitlines():
        sha, separator, subject = line.partition("\x00")
        sha = sha.strip()
        if not separator or not sha:
            continue
        entries.append(LogEntry(sha=sha, subject=subject.strip()))
    return entries


class GitCliClient:
    """``VcsClient`` backed by the ``git`` executable."""

    def __init__(self, repo_root: Path, timeout_seconds: float = GIT_TIMEOUT_SECONDS) -> None:
        self.repo_root = repo_root
        self.timeout_seconds = timeout_seconds

    def _git(self, args: list[str]) -> str:
        return _run_git(self.repo_root, args, self.timeout_seconds)

    def diff_staged(self) -> str:
        return self._git(["diff", *DIFF_ARGS, "--cached"])

    def diff_unstaged(self) -> str:
        return self._git(["diff", *DIFF_ARGS])

    def log(self, max_count: int, skip: int) -> list[LogEntry]:
        output = self._git(
            ["log", f"--max-count={max(0, max_count)}", f"--skip={max(0, skip)}", "--format=%H%x00%s"]
        )
        return parse_log_output(output)

    def show(self, sha: str) -> str:
        return self._git(["show", sha, *DIFF_ARGS, "--first-parent", "-m", "--format="])


__all__ = [
    "DIFF_ARGS",
    "VcsClient",
    "GitCliClient",
    "parse_log_output",
]
