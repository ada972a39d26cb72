"""Exception hierarchy for the diff-tree engine.

Background refresh paths log and swallow these; explicit user actions report
them through the tree sink while keeping the last good tree on screen.
"""

from __future__ import annotations


class DiffTreeError(Exception):
    """Base class for all engine errors."""


class BackendError(DiffTreeError):
    """A repository backend invocation failed."""

    def __init__(self, message: str, *, command: list[str] | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.command = list(command) if command else []
        self.stderr = stderr


class NoMergeBase(BackendError):
    """Merge-base could not be computed (shallow history, unrelated refs)."""


class ResolutionError(DiffTreeError):
    """No usable comparison base ref exists."""


class FetchError(DiffTreeError):
    """Comparison against the base failed; no diff is available this cycle."""


class ContextSwitchError(DiffTreeError):
    """Activating a repository context failed."""


__all__ = [
    "DiffTreeError",
    "BackendError",
    "NoMergeBase",
    "ResolutionError",
    "FetchError",
    "ContextSwitchError",
]
