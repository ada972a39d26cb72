"""Tree data source over the folded diff.

Owns the comparison state, the current folded tree and the loaded-node set
for the active repository. All mutation happens in the refresh pipeline run by
the ``ChangeGate``; pull accessors read the immutable snapshot under the lock.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

from loguru import logger

from ..config import DEBOUNCE_SECONDS, DIFF_FIELDS, DISPLAY_FIELDS, DiffTreeSettings, MemoryBaseRefStore, changed_settings
from ..diff_model.fetch import DiffFetcher
from ..diff_model.fold import (
    files_under,
    fold,
    list_children,
    list_outside_root_children,
    list_root_children,
)
from ..diff_model.reconcile import reconcile
from ..diff_model.refs import BaseCandidate, RefResolver
from ..diff_model.types import (
    ChangeEntry,
    ChangeSignal,
    ChangeStatus,
    ComparisonState,
    DiffMode,
    FileElement,
    FolderElement,
    FoldedTree,
    FullInvalidate,
    LoadedNodeSet,
    RefElement,
    RepoRootElement,
    RepositoryContext,
    TreeElement,
)
from ..errors import BackendError, FetchError, ResolutionError
from ..git.backend import CompareOptions, RepositoryBackend
from ..git.watch import is_relevant_change
from .gate import ChangeGate, HeadProbe


class TreeDataSink(Protocol):
    def invalidate_all(self) -> None: ...

    def invalidate_node(self, path: Path) -> None: ...

    def show_error(self, message: str) -> None: ...


@dataclass(frozen=True)
class RefreshTrigger:
    """Why a refresh was requested; the last trigger of a burst is kept."""

    reason: str
    path: Path | None = None
    at: float = 0.0


@dataclass(frozen=True)
class _PendingIntent:
    base_ref: str | None = None
    force_resolve: bool = False
    explicit: bool = False


@dataclass(frozen=True)
class CompareTarget:
    """What to open for a file: the base side, the working side, or both."""

    base_revision: str | None
    base_path: Path | None
    working_path: Path | None


class DiffTreeProvider:
    def __init__(
        self,
        backend: RepositoryBackend,
        sink: TreeDataSink,
        *,
        settings: DiffTreeSettings | None = None,
        base_ref_store=None,
        gate_factory: Callable[..., ChangeGate] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.sink = sink
        self.settings = settings or DiffTreeSettings()
        self.clock = clock
        self.resolver = RefResolver(backend, base_ref_store or MemoryBaseRefStore(), clock=clock)
        self.fetcher = DiffFetcher(backend)
        self.head_probe = HeadProbe(backend)
        self.loaded = LoadedNodeSet()
        factory = gate_factory or ChangeGate
        self.gate: ChangeGate[RefreshTrigger] = factory(self._refresh, debounce_seconds=DEBOUNCE_SECONDS)

        self._lock = threading.RLock()
        self._context: RepositoryContext | None = None
        self._generation = 0
        self._state: ComparisonState | None = None
        self._entries: list[ChangeEntry] | None = None
        self._tree: FoldedTree | None = None
        self._pending = _PendingIntent()

    # context lifecycle

    def activate(self, context: RepositoryContext, generation: int) -> None:
        with self._lock:
            self._context = context
            self._generation = generation
            self._reset_locked()
        self.gate.cancel()
        self.sink.invalidate_all()
        self.gate.trigger(RefreshTrigger("activate", context.repo_root, self.clock()))

    def deactivate(self, generation: int) -> None:
        with self._lock:
            self._context = None
            self._generation = generation
            self._reset_locked()
        self.gate.cancel()
        self.sink.invalidate_all()

    def report_error(self, message: str) -> None:
        self.sink.show_error(message)

    def _reset_locked(self) -> None:
        self._state = None
        self._entries = None
        self._tree = None
        self._pending = _PendingIntent()
        self.loaded.clear()

    # pull accessors

    @property
    def context(self) -> RepositoryContext | None:
        with self._lock:
            return self._context

    @property
    def comparison_state(self) -> ComparisonState | None:
        with self._lock:
            return self._state

    @property
    def folded_tree(self) -> FoldedTree | None:
        with self._lock:
            return self._tree

    @property
    def base_ref_label(self) -> str | None:
        with self._lock:
            return self._state.base_ref if self._state is not None else None

    def get_root_nodes(self) -> list[TreeElement]:
        with self._lock:
            if self._context is None or self._tree is None or self._state is None:
                return []
            has_children = self._tree.has_inside() or self._tree.has_outside()
            return [RefElement(self._state.base_ref, has_children)]

    def get_children(self, element: TreeElement) -> list[TreeElement]:
        with self._lock:
            tree = self._tree
            if tree is None:
                return []
            if isinstance(element, RefElement):
                self.loaded.add(tree.tree_root)
                return list_root_children(tree)
            if isinstance(element, RepoRootElement):
                self.loaded.add(tree.repo_root)
                return list(list_outside_root_children(tree))
            if isinstance(element, FolderElement):
                self.loaded.add(element.path)
                return list(list_children(tree, element.path, outside=element.outside_tree_root))
            if isinstance(element, FileElement):
                return []
        raise TypeError(f"unsupported element type: {type(element).__name__}")

    def changed_files(self, element: FolderElement | RepoRootElement | RefElement) -> list[ChangeEntry]:
        """Every changed entry below a node, for opening them all at once."""
        with self._lock:
            tree = self._tree
        if tree is None:
            return []
        if isinstance(element, RefElement):
            return files_under(tree, tree.tree_root) + files_under(tree, tree.repo_root, outside=True)
        if isinstance(element, RepoRootElement):
            return files_under(tree, tree.repo_root, outside=True)
        if isinstance(element, FolderElement):
            return files_under(tree, element.path, outside=element.outside_tree_root)
        raise TypeError(f"unsupported element type: {type(element).__name__}")

    def compare_target(self, element: FileElement) -> CompareTarget:
        with self._lock:
            state = self._state
        entry = element.entry
        base_revision = state.effective_compare_commit if state is not None else None
        if entry.status in (ChangeStatus.UNTRACKED, ChangeStatus.ADDED):
            return CompareTarget(None, None, entry.destination_path)
        if entry.status is ChangeStatus.DELETED:
            return CompareTarget(base_revision, entry.source_path, None)
        return CompareTarget(base_revision, entry.source_path, entry.destination_path)

    def list_base_candidates(self) -> list[BaseCandidate]:
        context = self.context
        if context is None:
            return []
        return self.resolver.list_base_candidates(context)

    # triggers

    def handle_path_change(self, path: Path) -> None:
        """Feed one file-system event; bursts are debounced by the gate."""
        with self._lock:
            context = self._context
            auto_refresh = self.settings.auto_refresh
        if context is None or not auto_refresh:
            return
        if not is_relevant_change(path, context.git_dir):
            return
        self.gate.signal(RefreshTrigger("change", path, self.clock()))

    def set_visible(self, visible: bool) -> None:
        self.gate.set_visible(visible)

    def set_focused(self, focused: bool) -> None:
        self.gate.set_focused(focused)

    def _request(
        self,
        reason: str,
        *,
        base_ref: str | None = None,
        force_resolve: bool = False,
        explicit: bool = False,
    ) -> None:
        # intents accumulate until the next refresh consumes them
        with self._lock:
            if self._context is None:
                return
            pending = self._pending
            self._pending = _PendingIntent(
                base_ref=base_ref if base_ref is not None else pending.base_ref,
                force_resolve=force_resolve or pending.force_resolve,
                explicit=explicit or pending.explicit,
            )
        self.gate.trigger(RefreshTrigger(reason, None, self.clock()))

    def manual_refresh(self) -> None:
        self._request("manual", explicit=True)

    def change_base(self, base_ref: str) -> None:
        with self._lock:
            if self._state is not None and self._state.base_ref == base_ref:
                return
        self._request("change-base", base_ref=base_ref, explicit=True)

    def switch_diff_mode(self, diff_mode: DiffMode) -> None:
        self.apply_settings(replace(self.settings, diff_mode=diff_mode), explicit=True)

    def set_view_as_list(self, view_as_list: bool) -> None:
        self.apply_settings(replace(self.settings, view_as_list=view_as_list))

    def apply_settings(self, settings: DiffTreeSettings, *, explicit: bool = False) -> None:
        """Take a configuration change; refold for display options, refresh for diff options.

        Root-mode changes move the tree root and are handled by the context
        manager, which reactivates the repository.
        """
        with self._lock:
            changed = changed_settings(self.settings, settings)
            self.settings = settings
            refold = bool(changed & set(DISPLAY_FIELDS)) and self._entries is not None and self._context is not None
            if refold:
                self._tree = self._fold_locked(self._context, self._entries)
                self.loaded.clear()
        if not changed:
            return
        logger.debug("settings changed: {}", ", ".join(sorted(changed)))
        if refold:
            self.sink.invalidate_all()
        if changed & set(DIFF_FIELDS):
            self._request("settings", force_resolve="diff_mode" in changed, explicit=explicit)
        elif "auto_refresh" in changed and settings.auto_refresh:
            self._request("settings")

    # refresh pipeline

    def _fold_locked(self, context: RepositoryContext, entries: list[ChangeEntry]) -> FoldedTree:
        return fold(
            entries,
            context.tree_root,
            context.repo_root,
            include_outside=self.settings.include_outside_root,
            compact_folders=self.settings.compact_folders,
            view_as_list=self.settings.view_as_list,
        )

    def _report(self, explicit: bool, message: str) -> None:
        if explicit:
            logger.error(message)
            self.sink.show_error(message)
        else:
            logger.warning(message)

    def _refresh(self, trigger: RefreshTrigger) -> None:
        with self._lock:
            context = self._context
            generation = self._generation
            pending = self._pending
            self._pending = _PendingIntent()
            state = self._state
            settings = self.settings
        if context is None:
            return
        logger.debug("refresh ({})", trigger.reason)

        new_state = state
        needs_resolve = (
            pending.base_ref is not None
            or pending.force_resolve
            or state is None
            or state.diff_mode is not settings.diff_mode
            or self.head_probe.has_moved(context, state)
        )
        if needs_resolve:
            try:
                head = self.backend.resolve_head(context)
                new_state = self.resolver.resolve(
                    context,
                    head,
                    pending.base_ref or (state.base_ref if state is not None else None),
                    diff_mode=settings.diff_mode,
                    previous_state=state,
                )
            except (ResolutionError, BackendError) as exc:
                self._report(pending.explicit, f"Updating the git tree base failed: {exc}")
                return
        assert new_state is not None

        options = CompareOptions(
            detect_renames=settings.detect_renames,
            rename_threshold=settings.rename_threshold,
            refresh_index_first=settings.refresh_index,
        )
        try:
            entries = self.fetcher.fetch(context, new_state.effective_compare_commit, options)
        except FetchError as exc:
            base_changed = state is not None and new_state.base_ref != state.base_ref
            with self._lock:
                if generation != self._generation:
                    return
                if state is not None:
                    self._state = new_state
                if base_changed:
                    # the old tree was computed against another base
                    self._entries = []
                    self._tree = self._fold_locked(context, [])
                    self.loaded.clear()
            self._report(pending.explicit, f"Updating the git tree failed: {exc}")
            if base_changed:
                self.sink.invalidate_all()
            return

        with self._lock:
            if generation != self._generation:
                logger.debug("discarding refresh for a previous repository")
                return
            old_tree = self._tree
            label_changed = state is None or new_state.base_ref != state.base_ref
            self._state = new_state
            self._entries = entries
            self._tree = self._fold_locked(context, entries)
            signal = FullInvalidate() if label_changed else reconcile(old_tree, self._tree, self.loaded)
        self._emit(signal)

    def _emit(self, signal: ChangeSignal) -> None:
        if isinstance(signal, FullInvalidate):
            self.sink.invalidate_all()
            return
        for path in signal.paths:
            self.sink.invalidate_node(path)


__all__ = ["TreeDataSink", "RefreshTrigger", "CompareTarget", "DiffTreeProvider"]
