"""Persistent JSON config helpers.

Stores tree limits, extra ignore patterns, paging and prompt preferences.
All access is defensive: malformed or missing config falls back safely.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from platformdirs import user_config_dir

APP_NAME = "promptree"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME

DEFAULT_PAGE_SIZE = 20
DEFAULT_MAX_FILE_KIB = 512
DEFAULT_PROMPT_FORMAT = "xml"
DEFAULT_TOKEN_ENCODING = "cl100k_base"
PROMPT_FORMATS = ("xml", "markdown")

logger = logging.getLogger(__name__)


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", CONFIG_PATH, exc)
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Write failures are logged and otherwise ignored so a read-only config
    directory never interrupts a session.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not write config %s: %s", CONFIG_PATH, exc)


def _load_positive_int(key: str, default: int) -> int:
    """Read a strictly positive integer; booleans and other types fall back."""
    value = load_config().get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return default
    return value


def load_page_size() -> int:
    """Number of commits fetched per history page."""
    return _load_positive_int("page_size", DEFAULT_PAGE_SIZE)


def load_max_file_bytes() -> int:
    """Size ceiling for files admitted into the file tree."""
    return _load_positive_int("max_file_kib", DEFAULT_MAX_FILE_KIB) * 1024


def load_extra_ignores() -> tuple[str, ...]:
    """User gitignore-style patterns added to the built-in denylist.

    Non-string and blank items are dropped.
    """
    value = load_config().get("extra_ignores")
    if not isinstance(value, list):
        return ()
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


def load_prompt_format() -> str:
    value = load_config().get("prompt_format")
    if isinstance(value, str) and value.strip().lower() in PROMPT_FORMATS:
        return value.strip().lower()
    return DEFAULT_PROMPT_FORMAT


def save_prompt_format(prompt_format: str) -> None:
    """Persist preferred prompt format; unknown formats are ignored."""
    normalized = str(prompt_format).strip().lower()
    if normalized not in PROMPT_FORMATS:
        return
    config = load_config()
    config["prompt_format"] = normalized
    save_config(config)


def load_token_encoding() -> str:
    value = load_config().get("token_encoding")
    if not isinstance(value, str):
        return DEFAULT_TOKEN_ENCODING
    stripped = value.strip()
    return stripped if stripped else DEFAULT_TOKEN_ENCODING


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "DEFAULT_PAGE_SIZE",
    "PROMPT_FORMATS",
    "load_config",
    "save_config",
    "load_page_size",
    "load_max_file_bytes",
    "load_extra_ignores",
    "load_prompt_format",
    "save_prompt_format",
    "load_token_encoding",
]
