"""Diff two folded trees into the smallest set of node invalidations.

Consumers only need events for nodes they have rendered, and an event for a
folder already covers its descendants, so nested dirty folders collapse into
their topmost dirty ancestor.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from .fold import listing_signature
from .types import ChangeSignal, FoldedTree, FullInvalidate, LoadedNodeSet, PartialInvalidate


def minimal_dirty_set(paths: Iterable[Path]) -> list[Path]:
    """Keep only paths that have no ancestor in ``paths``.

    Sorting by path components places every descendant directly after its
    ancestor, so comparing against the last kept path suffices.
    """
    kept: list[Path] = []
    for path in sorted(set(paths), key=lambda item: item.parts):
        if kept and path.is_relative_to(kept[-1]):
            continue
        kept.append(path)
    return kept


def reconcile(old: FoldedTree | None, new: FoldedTree, loaded: LoadedNodeSet) -> ChangeSignal:
    """Decide between a full redraw and targeted folder invalidations.

    Mutates ``loaded``: vanished folders are dropped and the known descendants
    of every dirty folder are purged, since they are rebuilt on the next
    expansion.
    """
    if old is None:
        return FullInvalidate()

    if old.has_inside() != new.has_inside() or old.has_outside() != new.has_outside():
        return FullInvalidate()

    if (
        old.tree_root != new.tree_root
        or old.repo_root != new.repo_root
        or old.compact_folders != new.compact_folders
        or old.view_as_list != new.view_as_list
    ):
        return FullInvalidate()

    if listing_signature(old, old.tree_root) != listing_signature(new, new.tree_root):
        return FullInvalidate()

    dirty: list[Path] = []
    for folder in loaded.snapshot():
        if folder == new.tree_root:
            continue
        new_partition = new.partition_for(folder)
        if new_partition is None:
            # implied by the parent's dirty signal
            loaded.discard(folder)
            continue
        old_partition = old.partition_for(folder)
        old_listing = (
            listing_signature(old, folder, outside=old_partition) if old_partition is not None else ()
        )
        if old_partition != new_partition or old_listing != listing_signature(new, folder, outside=new_partition):
            dirty.append(folder)

    kept = minimal_dirty_set(dirty)
    for folder in kept:
        loaded.purge_descendants(folder)
    if kept:
        logger.debug("{} dirty folders, {} invalidated", len(dirty), len(kept))
    return PartialInvalidate(tuple(kept))


__all__ = ["minimal_dirty_set", "reconcile"]
