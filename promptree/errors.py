"""Exception types raised by promptree collaborators.

The selection core never lets these escape: callers at the core boundary
convert them into empty results plus a human-readable notification.
"""

from __future__ import annotations


class PromptreeError(RuntimeError):
    """Base class for promptree failures."""


class VcsError(PromptreeError):
    """A version-control command failed or could not be started."""


__all__ = ["PromptreeError", "VcsError"]
