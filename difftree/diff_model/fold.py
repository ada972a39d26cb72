"""Fold flat change lists into folder mappings and list tree children.

Both partitions map a folder to the entries directly inside it. Every
ancestor of a populated folder, up to and including the partition root, has a
key, so any node can be expanded lazily and find its children.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType

from .types import (
    ChangeEntry,
    FileElement,
    FileSystemElement,
    FolderElement,
    FoldedTree,
    RepoRootElement,
    TreeElement,
)


def _ensure_ancestors(files: dict[Path, list[ChangeEntry]], folder: Path, partition_root: Path) -> None:
    current = folder
    while True:
        files.setdefault(current, [])
        if current == partition_root:
            return
        parent = current.parent
        if parent == current:
            return
        current = parent


def _freeze(files: dict[Path, list[ChangeEntry]], partition_root: Path) -> tuple[
    Mapping[Path, tuple[ChangeEntry, ...]],
    Mapping[Path, tuple[Path, ...]],
]:
    subfolders: dict[Path, list[Path]] = {}
    for folder in files:
        if folder == partition_root:
            continue
        parent = folder.parent
        if parent in files:
            subfolders.setdefault(parent, []).append(folder)

    frozen_files = {
        folder: tuple(sorted(entries, key=lambda entry: entry.destination_path.name))
        for folder, entries in files.items()
    }
    frozen_subfolders = {
        folder: tuple(sorted(children, key=lambda child: child.name)) for folder, children in subfolders.items()
    }
    return MappingProxyType(frozen_files), MappingProxyType(frozen_subfolders)


def is_inside(folder: Path, tree_root: Path) -> bool:
    return folder == tree_root or folder.is_relative_to(tree_root)


def fold(
    entries: Iterable[ChangeEntry],
    tree_root: Path,
    repo_root: Path,
    *,
    include_outside: bool = True,
    compact_folders: bool = False,
    view_as_list: bool = False,
) -> FoldedTree:
    """Partition ``entries`` into inside/outside folder mappings."""
    inside: dict[Path, list[ChangeEntry]] = {}
    outside: dict[Path, list[ChangeEntry]] = {}

    for entry in entries:
        folder = entry.destination_path.parent
        if is_inside(folder, tree_root):
            files, partition_root = inside, tree_root
        elif include_outside:
            files, partition_root = outside, repo_root
        else:
            continue
        _ensure_ancestors(files, folder, partition_root)
        files[folder].append(entry)

    inside_files, inside_subfolders = _freeze(inside, tree_root)
    outside_files, outside_subfolders = _freeze(outside, repo_root)
    return FoldedTree(
        tree_root=tree_root,
        repo_root=repo_root,
        inside=inside_files,
        outside=outside_files,
        inside_subfolders=inside_subfolders,
        outside_subfolders=outside_subfolders,
        compact_folders=compact_folders,
        view_as_list=view_as_list,
    )


def _partition(tree: FoldedTree, outside: bool) -> tuple[
    Mapping[Path, tuple[ChangeEntry, ...]],
    Mapping[Path, tuple[Path, ...]],
]:
    if outside:
        return tree.outside, tree.outside_subfolders
    return tree.inside, tree.inside_subfolders


def _flat_files(tree: FoldedTree, outside: bool) -> list[FileElement]:
    files, _subfolders = _partition(tree, outside)
    label_root = tree.repo_root if outside else tree.tree_root
    entries = sorted(
        (entry for folder_entries in files.values() for entry in folder_entries),
        key=lambda entry: str(entry.destination_path),
    )
    return [
        FileElement(entry, entry.destination_path.relative_to(label_root).as_posix(), outside)
        for entry in entries
    ]


def list_children(tree: FoldedTree, folder: Path, *, outside: bool = False) -> list[FileSystemElement]:
    """Direct children of ``folder``: subfolders by name, then files.

    With folder compaction, a subfolder holding no files and exactly one
    folder is merged with that folder; the element points at the deepest
    folder of the chain and its label joins the segments.
    """
    if tree.view_as_list and outside and folder == tree.repo_root:
        return list(_flat_files(tree, outside=True))

    files, subfolders = _partition(tree, outside)
    children: list[FileSystemElement] = []
    for subfolder in subfolders.get(folder, ()):
        target = subfolder
        segments = [subfolder.name]
        if tree.compact_folders:
            while not files.get(target) and len(subfolders.get(target, ())) == 1:
                target = subfolders[target][0]
                segments.append(target.name)
        children.append(FolderElement(target, "/".join(segments), outside))
    for entry in files.get(folder, ()):
        children.append(FileElement(entry, entry.destination_path.name, outside))
    return children


def list_root_children(tree: FoldedTree) -> list[TreeElement]:
    """Children of the base-ref node: the outside grouping, then the tree root's listing."""
    children: list[TreeElement] = []
    if tree.outside:
        children.append(RepoRootElement())
    if tree.view_as_list:
        children.extend(_flat_files(tree, outside=False))
    else:
        children.extend(list_children(tree, tree.tree_root))
    return children


def list_outside_root_children(tree: FoldedTree) -> list[FileSystemElement]:
    return list_children(tree, tree.repo_root, outside=True)


def listing_signature(tree: FoldedTree, folder: Path, *, outside: bool = False) -> tuple[TreeElement, ...]:
    """Ordered children of a displayed node; equal signatures render identically."""
    if folder == tree.tree_root and not outside:
        return tuple(list_root_children(tree))
    return tuple(list_children(tree, folder, outside=outside))


def files_under(tree: FoldedTree, folder: Path, *, outside: bool = False) -> list[ChangeEntry]:
    """Every entry at or below ``folder``, sorted by path."""
    files, _subfolders = _partition(tree, outside)
    collected = [
        entry
        for key, entries in files.items()
        if key == folder or key.is_relative_to(folder)
        for entry in entries
    ]
    return sorted(collected, key=lambda entry: str(entry.destination_path))


__all__ = [
    "fold",
    "is_inside",
    "list_children",
    "list_root_children",
    "list_outside_root_children",
    "listing_signature",
    "files_under",
]
