"""Decompose unified diff text into file-change and hunk records.

Input is the text produced by ``git diff``/``git show`` with ``--patch``.
Lines are treated as opaque: the parser only finds file and hunk boundaries,
resolves the file path and numbers hunks densely per file.
"""

from __future__ import annotations

import re

from ..path_filter import PathFilter
from ..tokens import TokenCounter, count_tokens as count_text_tokens
from .types import FileChangeEntry, HunkEntry

DEV_NULL = "/dev/null"

_FILE_BOUNDARY_RE = re.compile(r"^diff --git ", re.MULTILINE)
_HUNK_BOUNDARY_RE = re.compile(r"^(?=@@)", re.MULTILINE)
_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_REPEATED_SLASH_RE = re.compile(r"/+")
_C_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "t": 0x09,
    "n": 0x0A,
    "v": 0x0B,
    "f": 0x0C,
    "r": 0x0D,
    '"': 0x22,
    "\\": 0x5C,
}


def _unquote_git_path(raw: str) -> str:
    """Undo git's C-style quoting of unusual path names (``"a/caf\\303\\251"``)."""
    if len(raw) < 2 or not (raw.startswith('"') and raw.endswith('"')):
        return raw
    body = raw[1:-1]
    out = bytearray()
    index = 0
    while index < len(body):
        ch = body[index]
        if ch != "\\" or index + 1 >= len(body):
            out.extend(ch.encode("utf-8"))
            index += 1
            continue
        escape = body[index + 1]
        octal = body[index + 1 : index + 4]
        if len(octal) == 3 and all(digit in "01234567" for digit in octal):
            out.append(int(octal, 8) & 0xFF)
            index += 4
            continue
        if escape in _C_ESCAPES:
            out.append(_C_ESCAPES[escape])
        else:
            out.extend(f"\\{escape}".encode("utf-8"))
        index += 2
    return out.decode("utf-8", errors="replace")


def _marker_path(header: str, marker: str, prefix: str) -> str | None:
    """Return the path named by the first ``marker`` line of a file header.

    The ``a/``/``b/`` side prefix and any tab-separated timestamp are removed.
    ``/dev/null`` is returned unchanged so callers can fall back.
    """
    for line in header.splitlines():
        if not line.startswith(marker):
            continue
        raw = line[len(marker) :].rstrip("\r")
        if not raw.startswith('"'):
            raw = raw.split("\t", 1)[0]
        raw = _unquote_git_path(raw)
        if raw == DEV_NULL:
            return DEV_NULL
        if raw.startswith(prefix):
            raw = raw[len(prefix) :]
        return raw or None
    return None


def resolve_block_path(header: str) -> str | None:
    """Choose the path of one file block, or ``None`` for a degenerate header.

    The old side is preferred; a missing or ``/dev/null`` side falls back to
    the other one (added and deleted files).
    """
    old_path = _marker_path(header, "--- ", "a/")
    new_path = _marker_path(header, "+++ ", "b/")
    for candidate in (old_path, new_path):
        if candidate is not None and candidate != DEV_NULL:
            return candidate
    return None


def normalize_diff_path(path: str) -> str:
    """Strip leading slashes and collapse repeated ones."""
    return _REPEATED_SLASH_RE.sub("/", path.lstrip("/"))


def split_file_blocks(diff_text: str) -> list[str]:
    """Split diff text into per-file blocks, dropping any preamble."""
    return _FILE_BOUNDARY_RE.split(diff_text)[1:]


def parse_diff(
    diff_text: str,
    commit_sha: str,
    commit_subject: str,
    *,
    path_filter: PathFilter | None = None,
    count_tokens: TokenCounter | None = None,
) -> list[FileChangeEntry]:
    """Parse ``diff_text`` into file changes for one commit.

    Blocks naming the same path (staged and unstaged halves of the
    uncommitted diff) merge into one file whose hunk numbering continues. A
    hunk header repeated within a block stops that block. Hunks with an
    unrecognized header are dropped without consuming an index, and files
    left without hunks are omitted.
    """
    counter = count_tokens or count_text_tokens
    hunks_by_path: dict[str, list[HunkEntry]] = {}

    for block in split_file_blocks(diff_text):
        parts = _HUNK_BOUNDARY_RE.split(block)
        header, hunk_texts = parts[0], parts[1:]

        raw_path = resolve_block_path(header)
        if raw_path is None:
            continue
        path = normalize_diff_path(raw_path)
        if not path:
            continue
        if path_filter is not None and path_filter.is_ignored(path, False):
            continue

        file_hunks = hunks_by_path.setdefault(path, [])
        seen_headers: set[str] = set()
        for hunk_text in hunk_texts:
            header_line, _newline, body = hunk_text.partition("\n")
            header_line = header_line.rstrip("\r")
            if header_line in seen_headers:
                break
            seen_headers.add(header_line)
            if _HUNK_RE.match(header_line) is None:
                continue

            content = body.rstrip()
            file_hunks.append(
                HunkEntry(
                    commit_sha=commit_sha,
                    commit_subject=commit_subject,
                    file_path=path,
                    header=header_line,
                    content=content,
                    hunk_index=len(file_hunks),
                    token_count=counter(content),
                )
            )

    return [
        FileChangeEntry(commit_sha=commit_sha, path=path, hunks=tuple(hunks))
        for path, hunks in hunks_by_path.items()
        if hunks
    ]


__all__ = [
    "DEV_NULL",
    "parse_diff",
    "resolve_block_path",
    "normalize_diff_path",
    "split_file_blocks",
]
