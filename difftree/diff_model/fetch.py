"""Backend comparison normalized into ``ChangeEntry`` lists."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from ..errors import BackendError, FetchError
from ..git.backend import SUBMODULE_MODE, CompareOptions, RawChange, RepositoryBackend
from .types import ChangeEntry, ChangeStatus, RepositoryContext

_STATUS_BY_CODE = {
    "A": ChangeStatus.ADDED,
    "D": ChangeStatus.DELETED,
    "M": ChangeStatus.MODIFIED,
    "T": ChangeStatus.TYPE_CHANGED,
    "R": ChangeStatus.RENAMED,
    "U": ChangeStatus.CONFLICTED,
    # a copy introduces a new path
    "C": ChangeStatus.ADDED,
}


def sanitize_status(code: str) -> ChangeStatus:
    status = _STATUS_BY_CODE.get(code)
    if status is None:
        raise FetchError(f"unsupported git status: {code!r}")
    return status


def _to_entry(repo_root: Path, raw: RawChange) -> ChangeEntry:
    return ChangeEntry(
        status=sanitize_status(raw.status),
        source_path=repo_root / raw.source_path,
        destination_path=repo_root / raw.destination_path,
        is_submodule=SUBMODULE_MODE in (raw.old_mode, raw.new_mode),
    )


def merge_changes(repo_root: Path, changes, untracked) -> list[ChangeEntry]:
    """Merge structural and untracked records, one entry per destination.

    Untracked wins: a path deleted and recreated without staging shows up in
    both sets, and the untracked record reflects the working tree.
    """
    by_destination: dict[Path, ChangeEntry] = {}
    for raw in changes:
        entry = _to_entry(repo_root, raw)
        by_destination[entry.destination_path] = entry
    for rel_path in untracked:
        path = repo_root / rel_path
        by_destination[path] = ChangeEntry(status=ChangeStatus.UNTRACKED, source_path=path, destination_path=path)
    return sorted(by_destination.values(), key=lambda entry: str(entry.destination_path))


class DiffFetcher:
    def __init__(self, backend: RepositoryBackend) -> None:
        self.backend = backend

    def fetch(
        self,
        context: RepositoryContext,
        compare_commit: str,
        options: CompareOptions | None = None,
    ) -> list[ChangeEntry]:
        try:
            result = self.backend.compare_working_tree_to(context, compare_commit, options or CompareOptions())
        except BackendError as exc:
            # no commits yet, or git busy; next trigger retries
            raise FetchError(f"comparing against {compare_commit} failed: {exc}") from exc
        entries = merge_changes(context.repo_root, result.changes, result.untracked)
        logger.debug("{} changed paths against {}", len(entries), compare_commit)
        return entries


__all__ = ["DiffFetcher", "merge_changes", "sanitize_status"]
