"""Source loading, binary probing, and language naming for prompt output.

Reading is tolerant of odd encodings; binary detection uses a NUL-byte probe
over the head of the file. Fence languages come from Pygments lexer lookup.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pygments.lexers import get_lexer_for_filename
from pygments.util import ClassNotFound

BINARY_PROBE_BYTES = 8000


def read_text(path: Path) -> str:
    """Read text as UTF-8, falling back to latin-1.

    latin-1 maps every byte, so the fallback cannot fail to decode.
    """
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return path.read_text(encoding="latin-1")


def looks_binary(path: Path) -> bool:
    """Return whether the first bytes of ``path`` contain a NUL byte.

    Unreadable files are reported as binary so callers skip them.
    """
    try:
        with path.open("rb") as handle:
            sample = handle.read(BINARY_PROBE_BYTES)
    except OSError:
        return True
    return b"\x00" in sample


@lru_cache(maxsize=512)
def fence_language(file_name: str) -> str:
    """Return a short language tag for a fenced code block.

    Uses the first Pygments alias of the lexer matching ``file_name``; falls
    back to the file extension, or ``""`` when there is none.
    """
    try:
        lexer = get_lexer_for_filename(file_name)
    except ClassNotFound:
        lexer = None
    if lexer is not None and lexer.aliases:
        return lexer.aliases[0]
    _stem, dot, extension = file_name.rpartition(".")
    return extension if dot and _stem else ""


__all__ = ["BINARY_PROBE_BYTES", "read_text", "looks_binary", "fence_language"]
