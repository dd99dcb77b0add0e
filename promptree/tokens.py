"""Token counting with a per-file modification-time cache.

Counting is delegated to a ``tiktoken`` encoding loaded on first use. File
counts are cached by path and counter, stamped with ``st_mtime_ns``; a
mismatched timestamp replaces the entry. Entries are never evicted:
sessions are short-lived.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import tiktoken

from .config import DEFAULT_TOKEN_ENCODING
from .text import read_text

TokenCounter = Callable[[str], int]


@dataclass(frozen=True)
class _TokenCacheEntry:
    mtime_ns: int
    count: int


_TOKEN_COUNT_CACHE: dict[tuple[Path, TokenCounter], _TokenCacheEntry] = {}
_ENCODINGS: dict[str, tiktoken.Encoding] = {}


def _encoding(name: str) -> tiktoken.Encoding:
    encoding = _ENCODINGS.get(name)
    if encoding is None:
        encoding = tiktoken.get_encoding(name)
        _ENCODINGS[name] = encoding
    return encoding


def count_tokens(text: str, encoding_name: str = DEFAULT_TOKEN_ENCODING) -> int:
    """Return the number of tokens in ``text``; special tokens count as text."""
    if not text:
        return 0
    return len(_encoding(encoding_name).encode(text, allowed_special="all"))


@lru_cache(maxsize=None)
def make_token_counter(encoding_name: str = DEFAULT_TOKEN_ENCODING) -> TokenCounter:
    """Bind ``count_tokens`` to one encoding.

    The same encoding name always yields the same counter object, so file
    counts cached through it are shared between sessions.
    """

    def counter(text: str) -> int:
        return count_tokens(text, encoding_name)

    return counter


def count_file_tokens(path: Path, mtime_ns: int, counter: TokenCounter | None = None) -> int:
    """Return the token count of ``path`` under ``counter``, reusing a fresh cached value.

    Raises ``OSError`` when the file cannot be read; nothing is cached then.
    """
    count_fn = counter or count_tokens
    key = (path, count_fn)
    cached = _TOKEN_COUNT_CACHE.get(key)
    if cached is not None and cached.mtime_ns == mtime_ns:
        return cached.count
    count = count_fn(read_text(path))
    _TOKEN_COUNT_CACHE[key] = _TokenCacheEntry(mtime_ns=mtime_ns, count=count)
    return count


def clear_token_count_cache() -> None:
    """Clear cached file token counts."""
    _TOKEN_COUNT_CACHE.clear()


__all__ = [
    "TokenCounter",
    "count_tokens",
    "make_token_counter",
    "count_file_tokens",
    "clear_token_count_cache",
]
