"""Serialize selected files and hunks into prompt text.

Two layouts are produced: an XML-ish ``<context>`` document and markdown
fenced blocks. Attribute values are escaped; file and patch bodies are
emitted verbatim with a fixed indent.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Sequence

from .config import DEFAULT_PROMPT_FORMAT
from .file_tree import FileEntry
from .git_tree import UNCOMMITTED_SHA, HunkEntry
from .text import fence_language, read_text

logger = logging.getLogger(__name__)

NO_FILES_SELECTED = "No files selected"

_TreeNode = dict[str, "_TreeNode"]


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def _indent(text: str, prefix: str) -> str:
    return "\n".join(f"{prefix}{line}" for line in text.split("\n"))


def render_path_tree(relative_paths: Sequence[str]) -> str:
    """Render relative paths as an ASCII tree with sorted siblings."""
    tree: _TreeNode = {}
    for relative_path in relative_paths:
        current = tree
        for part in relative_path.replace("\\", "/").split("/"):
            if part:
                current = current.setdefault(part, {})

    lines: list[str] = []

    def render(node: _TreeNode, prefix: str) -> None:
        names = sorted(node)
        for index, name in enumerate(names):
            is_last = index == len(names) - 1
            lines.append(f"{prefix}{'└─ ' if is_last else '├─ '}{name}")
            if node[name]:
                render(node[name], prefix + ("   " if is_last else "│  "))

    render(tree, "")
    return "\n".join(lines) if lines else NO_FILES_SELECTED


def _read_file_content(file_entry: FileEntry) -> str | None:
    try:
        return read_text(file_entry.path).rstrip()
    except OSError as exc:
        logger.warning("Skipping unreadable %s: %s", file_entry.path, exc)
        return None


def _build_file_prompt_xml(files: Sequence[FileEntry]) -> str:
    out = ["<context>"]
    if files:
        out.append("  <tree>")
        out.append(_indent(render_path_tree([item.relative_path for item in files]), "    "))
        out.append("  </tree>")
    for file_entry in files:
        content = _read_file_content(file_entry)
        if content is None:
            continue
        out.append(f'  <file path="{_attr(file_entry.relative_path)}">')
        out.append(_indent(content, "    "))
        out.append("  </file>")
    out.append("</context>")
    return "\n".join(out)


def _build_file_prompt_markdown(files: Sequence[FileEntry]) -> str:
    sections = []
    for file_entry in files:
        content = _read_file_content(file_entry)
        if content is None:
            continue
        language = fence_language(file_entry.name)
        sections.append(f"{file_entry.relative_path}:\n```{language}\n{content}\n```")
    return "\n\n".join(sections)


def build_file_prompt(files: Sequence[FileEntry], prompt_format: str = DEFAULT_PROMPT_FORMAT) -> str:
    """Assemble a prompt from selected files in ``"xml"`` or ``"markdown"`` layout."""
    if prompt_format == "markdown":
        return _build_file_prompt_markdown(files)
    return _build_file_prompt_xml(files)


def _group_hunks(hunks: Sequence[HunkEntry]) -> dict[str, tuple[str, dict[str, list[HunkEntry]]]]:
    """Group hunks by commit then file, preserving first-seen order."""
    groups: dict[str, tuple[str, dict[str, list[HunkEntry]]]] = {}
    for hunk in hunks:
        _subject, files = groups.setdefault(hunk.commit_sha, (hunk.commit_subject, {}))
        files.setdefault(hunk.file_path, []).append(hunk)
    return groups


def _patch_lines(path: str, hunks: Sequence[HunkEntry], indent: str) -> list[str]:
    out = [f'{indent}<patch path="{_attr(path)}">']
    for hunk in hunks:
        out.append(_indent(hunk.header, indent + "  "))
        if hunk.content:
            out.append(_indent(hunk.content, indent + "  "))
    out.append(f"{indent}</patch>")
    return out


def _build_git_prompt_xml(hunks: Sequence[HunkEntry]) -> str:
    out = ["<context>"]
    for sha, (subject, files) in _group_hunks(hunks).items():
        if sha == UNCOMMITTED_SHA:
            for path, file_hunks in files.items():
                out.append(f'  <uncommitted path="{_attr(path)}">')
                out.extend(_patch_lines(path, file_hunks, "    "))
                out.append("  </uncommitted>")
            continue
        out.append(f'  <commit sha="{_attr(sha)}" message="{_attr(subject)}">')
        for path, file_hunks in files.items():
            out.extend(_patch_lines(path, file_hunks, "    "))
        out.append("  </commit>")
    out.append("</context>")
    return "\n".join(out)


def _build_git_prompt_markdown(hunks: Sequence[HunkEntry]) -> str:
    sections = []
    for sha, (subject, files) in _group_hunks(hunks).items():
        title = subject if sha == UNCOMMITTED_SHA else f"{sha[:7]} {subject}"
        for path, file_hunks in files.items():
            body = "\n".join(
                f"{hunk.header}\n{hunk.content}" if hunk.content else hunk.header for hunk in file_hunks
            )
            sections.append(f"{path} ({title}):\n```diff\n{body}\n```")
    return "\n\n".join(sections)


def build_git_prompt(hunks: Sequence[HunkEntry], prompt_format: str = DEFAULT_PROMPT_FORMAT) -> str:
    """Assemble a prompt from selected hunks, grouped by commit then file."""
    if prompt_format == "markdown":
        return _build_git_prompt_markdown(hunks)
    return _build_git_prompt_xml(hunks)


__all__ = [
    "NO_FILES_SELECTED",
    "render_path_tree",
    "build_file_prompt",
    "build_git_prompt",
]
