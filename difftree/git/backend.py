"""Repository backend contract consumed by the diff-tree engine.

The engine never runs git itself; it talks to an object satisfying
``RepositoryBackend``. ``GitBackend`` in ``subprocess_backend`` is the
production implementation, tests use in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from ..diff_model.types import RepositoryContext

SUBMODULE_MODE = "160000"


class RefKind(str, Enum):
    BRANCH = "branch"
    TAG = "tag"
    REMOTE_BRANCH = "remoteBranch"


@dataclass(frozen=True)
class HeadInfo:
    """Current HEAD: ``branch_name`` is ``None`` when detached."""

    branch_name: str | None
    commit_id: str | None

    @property
    def is_detached(self) -> bool:
        return self.branch_name is None


@dataclass(frozen=True)
class RefInfo:
    name: str
    commit_id: str
    kind: RefKind


@dataclass(frozen=True)
class RawChange:
    """One structural change record, paths relative to the repository root."""

    status: str
    source_path: str
    destination_path: str
    old_mode: str = "100644"
    new_mode: str = "100644"


@dataclass(frozen=True)
class ComparisonResult:
    changes: tuple[RawChange, ...]
    untracked: tuple[str, ...]


@dataclass(frozen=True)
class CompareOptions:
    detect_renames: bool = True
    rename_threshold: int = 50
    refresh_index_first: bool = True


@dataclass(frozen=True)
class RepositoryLocation:
    """Result of probing a path for an enclosing repository."""

    repo_root: Path
    git_dir: Path
    common_dir: Path


class RepositoryBackend(Protocol):
    def discover(self, path: Path) -> RepositoryLocation: ...

    def resolve_head(self, context: RepositoryContext) -> HeadInfo: ...

    def list_refs(self, context: RepositoryContext) -> list[RefInfo]: ...

    def get_branch_upstream(self, context: RepositoryContext, branch_name: str) -> str | None: ...

    def read_symbolic_ref(self, context: RepositoryContext, remote_name: str) -> str | None: ...

    def verify_commit(self, context: RepositoryContext, revision: str) -> str | None: ...

    def compute_merge_base(self, context: RepositoryContext, ref_a: str, ref_b: str) -> str: ...

    def compare_working_tree_to(
        self,
        context: RepositoryContext,
        commit_id: str,
        options: CompareOptions,
    ) -> ComparisonResult: ...

    def head_pointer_modified_at(self, context: RepositoryContext) -> float: ...

    def resolve_branch_commit(self, context: RepositoryContext, branch_name: str) -> str: ...


__all__ = [
    "SUBMODULE_MODE",
    "RefKind",
    "HeadInfo",
    "RefInfo",
    "RawChange",
    "ComparisonResult",
    "CompareOptions",
    "RepositoryLocation",
    "RepositoryBackend",
]
