"""Domain datatypes for the folded diff tree."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path


class ChangeStatus(str, Enum):
    ADDED = "A"
    DELETED = "D"
    MODIFIED = "M"
    TYPE_CHANGED = "T"
    RENAMED = "R"
    CONFLICTED = "C"
    UNTRACKED = "U"


class DiffMode(str, Enum):
    MERGE = "merge"
    FULL = "full"


@dataclass(frozen=True)
class ChangeEntry:
    """One changed path between the comparison base and the working tree."""

    status: ChangeStatus
    source_path: Path
    destination_path: Path
    is_submodule: bool = False

    @property
    def path(self) -> Path:
        return self.destination_path


@dataclass(frozen=True)
class RepositoryContext:
    """The active repository and the folder the tree is rooted at."""

    repo_root: Path
    git_dir: Path
    common_dir: Path
    tree_root: Path
    workspace_folder: Path | None = None


@dataclass(frozen=True)
class ComparisonState:
    head_ref_name: str | None
    head_commit_id: str | None
    base_ref: str
    effective_compare_commit: str
    diff_mode: DiffMode
    last_head_checked_at: float

    def changed_fields(self, previous: "ComparisonState | None") -> list[str]:
        """Return names of fields that differ from ``previous`` (all when ``None``)."""
        names = [field.name for field in fields(self) if field.name != "last_head_checked_at"]
        if previous is None:
            return names
        return [name for name in names if getattr(self, name) != getattr(previous, name)]


@dataclass(frozen=True)
class FoldedTree:
    """Immutable snapshot of folder -> direct entries for both partitions."""

    tree_root: Path
    repo_root: Path
    inside: Mapping[Path, tuple[ChangeEntry, ...]]
    outside: Mapping[Path, tuple[ChangeEntry, ...]]
    inside_subfolders: Mapping[Path, tuple[Path, ...]]
    outside_subfolders: Mapping[Path, tuple[Path, ...]]
    compact_folders: bool = False
    view_as_list: bool = False

    def has_inside(self) -> bool:
        return bool(self.inside)

    def has_outside(self) -> bool:
        return bool(self.outside)

    def partition_for(self, folder: Path) -> bool | None:
        """Return ``True`` for outside, ``False`` for inside, ``None`` when unknown."""
        if folder in self.inside:
            return False
        if folder in self.outside:
            return True
        return None


@dataclass(frozen=True)
class RefElement:
    """Top node labeled with the comparison base."""

    ref_name: str
    has_children: bool


@dataclass(frozen=True)
class RepoRootElement:
    """Grouping node for changes outside the tree root."""

    label: str = "/"


@dataclass(frozen=True)
class FolderElement:
    path: Path
    label: str
    outside_tree_root: bool = False


@dataclass(frozen=True)
class FileElement:
    entry: ChangeEntry
    label: str
    outside_tree_root: bool = False

    @property
    def path(self) -> Path:
        return self.entry.destination_path


TreeElement = RefElement | RepoRootElement | FolderElement | FileElement
FileSystemElement = FolderElement | FileElement


@dataclass(frozen=True)
class FullInvalidate:
    pass


@dataclass(frozen=True)
class PartialInvalidate:
    paths: tuple[Path, ...] = ()


ChangeSignal = FullInvalidate | PartialInvalidate


class LoadedNodeSet:
    """Folder paths the consumer has materialized.

    Rendering threads add paths while the refresh thread reconciles, so all
    access goes through one lock.
    """

    def __init__(self, paths: Iterable[Path] = ()) -> None:
        self._lock = threading.Lock()
        self._paths: set[Path] = set(paths)

    def add(self, path: Path) -> None:
        with self._lock:
            self._paths.add(path)

    def discard(self, path: Path) -> None:
        with self._lock:
            self._paths.discard(path)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def purge_descendants(self, ancestor: Path) -> None:
        """Forget every tracked path strictly below ``ancestor``."""
        with self._lock:
            self._paths = {
                path for path in self._paths if path == ancestor or not path.is_relative_to(ancestor)
            }

    def clear(self) -> None:
        with self._lock:
            self._paths.clear()

    def snapshot(self) -> frozenset[Path]:
        with self._lock:
            return frozenset(self._paths)


__all__ = [
    "ChangeStatus",
    "DiffMode",
    "ChangeEntry",
    "RepositoryContext",
    "ComparisonState",
    "FoldedTree",
    "RefElement",
    "RepoRootElement",
    "FolderElement",
    "FileElement",
    "TreeElement",
    "FileSystemElement",
    "FullInvalidate",
    "PartialInvalidate",
    "ChangeSignal",
    "LoadedNodeSet",
]
