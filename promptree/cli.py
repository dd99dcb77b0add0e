"""Command-line front door for promptree.

Parses CLI options, builds a file-tree or git-history session for the
target path, applies the requested selection and prints either the
tri-state listing or the assembled prompt.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import (
    PROMPT_FORMATS,
    load_extra_ignores,
    load_max_file_bytes,
    load_page_size,
    load_prompt_format,
    load_token_encoding,
)
from .git_tree import GitCliClient
from .navigator import format_file_row, format_git_row
from .path_filter import get_path_filter
from .session import FileTreeSession, GitHistorySession
from .tokens import make_token_counter
from .watch import resolve_git_paths

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="promptree",
        description="Select files or git hunks and print them as an LLM prompt.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Project directory. Defaults to current directory.")
    parser.add_argument("--git", action="store_true", help="Select from commit history instead of the file tree.")
    parser.add_argument(
        "--select",
        metavar="ADDR",
        action="append",
        default=[],
        help="Select a node: a path (relative to PATH), SHA, SHA:FILE or SHA:FILE#N. Repeatable.",
    )
    parser.add_argument("--all", action="store_true", help="Select every node.")
    parser.add_argument("--commits", type=_positive_int, default=None, help="Commits per history page.")
    parser.add_argument("--format", choices=PROMPT_FORMATS, default=None, help="Prompt layout.")
    parser.add_argument("--list", action="store_true", help="Print the tri-state tree instead of the prompt.")
    parser.add_argument("--verbose", action="store_true", help="Log debug output to stderr.")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _file_address(root: Path, raw: str) -> str:
    candidate = Path(raw)
    if not candidate.is_absolute():
        candidate = root / candidate
    return str(candidate.resolve())


def _print_notifications(messages: list[str]) -> None:
    for message in messages:
        sys.stderr.write(f"{message}\n")


def _run_file_mode(root: Path, args: argparse.Namespace, prompt_format: str) -> int:
    extra_ignores = load_extra_ignores()
    session = FileTreeSession(
        root,
        extra_ignores=extra_ignores,
        count_tokens=make_token_counter(load_token_encoding()),
        max_file_bytes=load_max_file_bytes(),
    )
    session.refresh()

    status = 0
    if args.all:
        session.select_all()
    for raw in args.select:
        address = _file_address(session.root_path, raw)
        if not session.select(address):
            session.notify(f"Not in tree: {raw}")
            status = 1
            continue
        session.reveal(address)

    if args.list:
        for row in session.rows():
            sys.stdout.write(f"{format_file_row(row)}\n")
        stats = session.stats()
        sys.stdout.write(f"Selected: {stats.file_count} files, {stats.token_count} tokens\n")
    else:
        sys.stdout.write(session.build_prompt(prompt_format))
        sys.stdout.write("\n")
    _print_notifications(session.drain_notifications())
    return status


def _run_git_mode(root: Path, args: argparse.Namespace, prompt_format: str) -> int:
    repo_root, _git_dir = resolve_git_paths(root)
    if repo_root is None:
        raise SystemExit(f"Not a git repository: {root}")

    session = GitHistorySession(
        GitCliClient(repo_root),
        page_size=args.commits or load_page_size(),
        path_filter=get_path_filter(repo_root, load_extra_ignores()),
        count_tokens=make_token_counter(load_token_encoding()),
    )
    session.refresh()

    status = 0
    if args.all:
        session.select_all()
    for address in args.select:
        if not session.select(address):
            session.notify(f"Not in history: {address}")
            status = 1
            continue
        session.reveal(address)

    if args.list:
        for row in session.rows():
            sys.stdout.write(f"{format_git_row(row)}\n")
        stats = session.stats()
        sys.stdout.write(
            f"Selected: {stats.file_count} files, {stats.hunk_count} hunks, {stats.token_count} tokens\n"
        )
    else:
        sys.stdout.write(session.build_prompt(prompt_format))
        sys.stdout.write("\n")
    _print_notifications(session.drain_notifications())
    return status


def main(argv: list[str] | None = None, default_path: Path | None = None) -> int:
    """Parse CLI arguments and print the listing or prompt for a project.

    ``default_path`` is primarily for tests; when omitted the current working
    directory is used.
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if default_path is None:
        default_path = Path.cwd()
    path = Path(args.path or default_path)
    if not path.is_dir():
        raise SystemExit(f"Not a directory: {path}")
    root = path.resolve()
    prompt_format = args.format or load_prompt_format()

    if args.git:
        return _run_git_mode(root, args, prompt_format)
    return _run_file_mode(root, args, prompt_format)


if __name__ == "__main__":
    raise SystemExit(main())
