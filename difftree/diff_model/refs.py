"""Comparison-base resolution.

Picks the ref the working tree is compared against and the commit the diff is
actually computed from (the merge-base with HEAD unless in full-diff mode).
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from ..errors import BackendError, NoMergeBase, ResolutionError
from ..git.backend import HeadInfo, RefInfo, RefKind, RepositoryBackend
from .types import ComparisonState, DiffMode, RepositoryContext

# Tie-break for detached HEAD when no default branch is derivable. A naming
# convention, not a guarantee: remotes not called "origin" fall through to the
# first listed ref.
DETACHED_FALLBACK_REFS = ("origin/main", "main", "origin/master", "master")


@dataclass(frozen=True)
class BaseCandidate:
    """One entry of the change-base picker."""

    label: str
    description: str
    kind: RefKind


class RefResolver:
    def __init__(
        self,
        backend: RepositoryBackend,
        base_ref_store,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.base_ref_store = base_ref_store
        self.clock = clock

    def _ref_exists(self, context: RepositoryContext, ref_name: str, refs: list[RefInfo]) -> bool:
        if any(ref.name == ref_name for ref in refs):
            return True
        return self.backend.verify_commit(context, ref_name) is not None

    def _default_branch(self, context: RepositoryContext, head: HeadInfo, refs: list[RefInfo]) -> str | None:
        if head.branch_name is not None:
            try:
                remote = self.backend.get_branch_upstream(context, head.branch_name)
            except BackendError:
                # fresh repository without commits
                return None
            if remote is None:
                return None
        else:
            remote = "origin"

        if not any(ref.name == f"{remote}/HEAD" for ref in refs):
            return None
        return self.backend.read_symbolic_ref(context, remote)

    def choose_base_ref(
        self,
        context: RepositoryContext,
        head: HeadInfo,
        requested_base_ref: str | None = None,
    ) -> str:
        """Return the base ref name; first matching rule wins."""
        refs = self.backend.list_refs(context)

        if requested_base_ref:
            if self._ref_exists(context, requested_base_ref, refs):
                return requested_base_ref
            logger.info("base ref {} no longer exists, ignoring it", requested_base_ref)

        stored = self.base_ref_store.get(context.repo_root)
        if stored and stored != requested_base_ref:
            if self._ref_exists(context, stored, refs):
                return stored
            logger.info("stored base ref {} no longer exists, ignoring it", stored)

        default_branch = self._default_branch(context, head, refs)
        if default_branch:
            return default_branch

        if head.branch_name is not None:
            return head.branch_name

        names = [ref.name for ref in refs]
        for candidate in DETACHED_FALLBACK_REFS:
            if candidate in names:
                return candidate
        if names:
            return names[0]
        raise ResolutionError(f"no refs found in {context.repo_root}")

    def resolve(
        self,
        context: RepositoryContext,
        head: HeadInfo,
        previous_base_ref: str | None = None,
        *,
        diff_mode: DiffMode = DiffMode.MERGE,
        previous_state: ComparisonState | None = None,
    ) -> ComparisonState:
        checked_at = self.clock()
        base_ref = self.choose_base_ref(context, head, previous_base_ref)

        effective = base_ref
        if diff_mode is DiffMode.MERGE and base_ref != head.branch_name:
            head_rev = head.branch_name or head.commit_id
            if head_rev is not None:
                try:
                    effective = self.backend.compute_merge_base(context, head_rev, base_ref)
                except NoMergeBase as exc:
                    # shallow clones and unrelated histories
                    logger.debug("using {} directly: {}", base_ref, exc)
                    effective = base_ref

        state = ComparisonState(
            head_ref_name=head.branch_name,
            head_commit_id=head.commit_id,
            base_ref=base_ref,
            effective_compare_commit=effective,
            diff_mode=diff_mode,
            last_head_checked_at=checked_at,
        )
        for name in state.changed_fields(previous_state):
            logger.debug(
                "comparison {}: {} -> {}",
                name,
                getattr(previous_state, name) if previous_state is not None else None,
                getattr(state, name),
            )
        self.base_ref_store.set(context.repo_root, base_ref)
        return state

    def list_base_candidates(self, context: RepositoryContext) -> list[BaseCandidate]:
        return [
            BaseCandidate(label=ref.name, description=ref.commit_id[:8], kind=ref.kind)
            for ref in self.backend.list_refs(context)
            if ref.name
        ]


__all__ = ["DETACHED_FALLBACK_REFS", "BaseCandidate", "RefResolver"]
