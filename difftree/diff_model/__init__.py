"""Domain model for the folded diff tree.

This package contains the non-UI engine pieces:
- change entries, comparison state and tree element datatypes
- folding of flat change lists into folder mappings
- reconciliation of consecutive folds into node invalidations

Base-ref resolution (``refs``) and diff fetching (``fetch``) depend on the
repository backend and are imported from their modules directly.
"""

from __future__ import annotations

from .types import (
    ChangeEntry,
    ChangeSignal,
    ChangeStatus,
    ComparisonState,
    DiffMode,
    FileElement,
    FileSystemElement,
    FolderElement,
    FoldedTree,
    FullInvalidate,
    LoadedNodeSet,
    PartialInvalidate,
    RefElement,
    RepoRootElement,
    RepositoryContext,
    TreeElement,
)
from .fold import (
    files_under,
    fold,
    list_children,
    list_outside_root_children,
    list_root_children,
    listing_signature,
)
from .reconcile import minimal_dirty_set, reconcile

__all__ = [
    "ChangeEntry",
    "ChangeSignal",
    "ChangeStatus",
    "ComparisonState",
    "DiffMode",
    "FileElement",
    "FileSystemElement",
    "FolderElement",
    "FoldedTree",
    "FullInvalidate",
    "LoadedNodeSet",
    "PartialInvalidate",
    "RefElement",
    "RepoRootElement",
    "RepositoryContext",
    "TreeElement",
    "files_under",
    "fold",
    "list_children",
    "list_outside_root_children",
    "list_root_children",
    "listing_signature",
    "minimal_dirty_set",
    "reconcile",
]
