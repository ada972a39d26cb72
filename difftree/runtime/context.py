"""Active-repository state machine.

``Unselected -> Active(context)`` when a repository becomes available,
``Active -> Active`` on a switch and ``Active -> Unselected`` when nothing is
left. Every activation bumps ``generation``; refreshes started under an older
generation discard their result.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from loguru import logger

from ..config import ROOT_MODE_REPOSITORY, ROOT_MODE_WORKSPACE
from ..diff_model.types import RepositoryContext
from ..errors import BackendError, ContextSwitchError
from ..git.backend import RepositoryBackend


@dataclass(frozen=True)
class RepositoryCandidate:
    """A repository the host knows about; ``selected`` mirrors the host's own selection."""

    root: Path
    selected: bool = False


class ContextListener(Protocol):
    def activate(self, context: RepositoryContext, generation: int) -> None: ...

    def deactivate(self, generation: int) -> None: ...

    def report_error(self, message: str) -> None: ...


def anchor_workspace_folder(repo_root: Path, workspace_folders: Iterable[Path]) -> Path | None:
    """Deepest workspace folder that contains ``repo_root`` or lies inside it."""
    matches = [
        folder
        for folder in workspace_folders
        if repo_root.is_relative_to(folder) or folder.is_relative_to(repo_root)
    ]
    if not matches:
        return None
    return max(matches, key=lambda folder: len(folder.parts))


def tree_root_for(repo_root: Path, workspace_folder: Path | None, root_mode: str) -> Path:
    if root_mode == ROOT_MODE_REPOSITORY or workspace_folder is None:
        return repo_root
    return workspace_folder


class RepositoryContextManager:
    def __init__(
        self,
        backend: RepositoryBackend,
        listener: ContextListener,
        *,
        root_mode: str = ROOT_MODE_WORKSPACE,
    ) -> None:
        self.backend = backend
        self.listener = listener
        self.root_mode = root_mode
        self._lock = threading.RLock()
        self._started = False
        self._candidates: list[RepositoryCandidate] = []
        self._workspace_folders: list[Path] = []
        self._folders_known = False
        self._explicit_root: Path | None = None
        self._context: RepositoryContext | None = None
        self._generation = 0

    @property
    def context(self) -> RepositoryContext | None:
        with self._lock:
            return self._context

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def start(self) -> None:
        with self._lock:
            self._started = True
            self._reselect()

    def stop(self) -> None:
        with self._lock:
            self._started = False
            if self._context is not None:
                self._deactivate()

    def update_workspace_folders(self, folders: Iterable[Path]) -> None:
        with self._lock:
            self._workspace_folders = [folder.resolve() for folder in folders]
            self._folders_known = True
            self._reselect()

    def update_repositories(self, candidates: Iterable[RepositoryCandidate]) -> None:
        with self._lock:
            self._candidates = [
                RepositoryCandidate(root=candidate.root.resolve(), selected=candidate.selected)
                for candidate in candidates
            ]
            self._reselect()

    def select_repository(self, root: Path) -> None:
        """Explicit user choice; it sticks while the repository stays available."""
        with self._lock:
            root = root.resolve()
            if not any(candidate.root == root for candidate in self._candidates):
                self._candidates.append(RepositoryCandidate(root=root))
            self._explicit_root = root
            self._reselect(force=True)

    def set_root_mode(self, root_mode: str) -> None:
        with self._lock:
            if root_mode == self.root_mode:
                return
            self.root_mode = root_mode
            self._reselect(force=True)

    def _pick_candidate(self) -> RepositoryCandidate | None:
        roots = [candidate.root for candidate in self._candidates]
        if self._explicit_root is not None and self._explicit_root in roots:
            return self._candidates[roots.index(self._explicit_root)]
        self._explicit_root = None
        # once folders are supplied, even an empty list, a candidate needs an anchor
        usable = [
            candidate
            for candidate in self._candidates
            if not self._folders_known
            or anchor_workspace_folder(candidate.root, self._workspace_folders) is not None
        ]
        for candidate in usable:
            if candidate.selected:
                return candidate
        return usable[0] if usable else None

    def _reselect(self, force: bool = False) -> None:
        if not self._started:
            return
        candidate = self._pick_candidate()
        if candidate is None:
            if self._context is not None:
                self._deactivate()
            return

        anchor = anchor_workspace_folder(candidate.root, self._workspace_folders)
        tree_root = tree_root_for(candidate.root, anchor, self.root_mode)
        current = self._context
        if (
            not force
            and current is not None
            and current.repo_root == candidate.root
            and current.workspace_folder == anchor
            and current.tree_root == tree_root
        ):
            return
        try:
            self._activate(candidate.root, anchor, tree_root)
        except ContextSwitchError as exc:
            logger.error("{}", exc)
            self.listener.report_error(str(exc))
            if self._context is not None:
                self._deactivate()

    def _activate(self, repo_root: Path, anchor: Path | None, tree_root: Path) -> None:
        try:
            location = self.backend.discover(repo_root)
        except BackendError as exc:
            raise ContextSwitchError(f"cannot open repository {repo_root}: {exc}") from exc

        context = RepositoryContext(
            repo_root=location.repo_root,
            git_dir=location.git_dir,
            common_dir=location.common_dir,
            tree_root=tree_root,
            workspace_folder=anchor,
        )
        self._generation += 1
        self._context = context
        logger.info("active repository {} (tree root {})", context.repo_root, context.tree_root)
        self.listener.activate(context, self._generation)

    def _deactivate(self) -> None:
        logger.info("no repository selected")
        self._generation += 1
        self._context = None
        self.listener.deactivate(self._generation)


__all__ = [
    "RepositoryCandidate",
    "ContextListener",
    "RepositoryContextManager",
    "anchor_workspace_folder",
    "tree_root_for",
]
