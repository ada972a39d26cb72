"""Repository backend contract, git subprocess backend and watch helpers."""

from __future__ import annotations

from .backend import (
    SUBMODULE_MODE,
    ComparisonResult,
    CompareOptions,
    HeadInfo,
    RawChange,
    RefInfo,
    RefKind,
    RepositoryBackend,
    RepositoryLocation,
)
from .subprocess_backend import GitBackend, parse_packed_refs, parse_raw_diff
from .watch import build_git_watch_signature, build_worktree_signature, is_relevant_change

__all__ = [
    "SUBMODULE_MODE",
    "ComparisonResult",
    "CompareOptions",
    "HeadInfo",
    "RawChange",
    "RefInfo",
    "RefKind",
    "RepositoryBackend",
    "RepositoryLocation",
    "GitBackend",
    "parse_packed_refs",
    "parse_raw_diff",
    "build_git_watch_signature",
    "build_worktree_signature",
    "is_relevant_change",
]
