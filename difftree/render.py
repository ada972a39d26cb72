"""Plain-text rendering of the diff tree for the terminal."""

from __future__ import annotations

from .diff_model.types import (
    ChangeStatus,
    FileElement,
    FolderElement,
    RefElement,
    RepoRootElement,
    TreeElement,
)
from .runtime.provider import DiffTreeProvider

_STATUS_COLORS = {
    ChangeStatus.ADDED: "38;5;42",
    ChangeStatus.UNTRACKED: "38;5;42",
    ChangeStatus.DELETED: "38;5;203",
    ChangeStatus.MODIFIED: "38;5;214",
    ChangeStatus.TYPE_CHANGED: "38;5;214",
    ChangeStatus.RENAMED: "38;5;81",
    ChangeStatus.CONFLICTED: "38;5;197",
}


def format_status_badge(status: ChangeStatus, colorize: bool) -> str:
    badge = f"[{status.value}]"
    if not colorize:
        return badge
    return f"\033[{_STATUS_COLORS[status]}m{badge}\033[0m"


def element_label(element: TreeElement, colorize: bool = False) -> str:
    if isinstance(element, RefElement):
        return element.ref_name
    if isinstance(element, RepoRootElement):
        return element.label
    if isinstance(element, FolderElement):
        return element.label + "/"
    if isinstance(element, FileElement):
        label = element.label
        entry = element.entry
        if entry.status is ChangeStatus.RENAMED and entry.source_path != entry.destination_path:
            label = f"{label} <- {entry.source_path.name}"
        if entry.is_submodule:
            label += " (submodule)"
        return f"{format_status_badge(entry.status, colorize)} {label}"
    raise TypeError(f"unsupported element type: {type(element).__name__}")


def render_tree_lines(provider: DiffTreeProvider, colorize: bool = False, indent: str = "  ") -> list[str]:
    """Expand every node depth-first; expanding registers the folders as loaded."""
    lines: list[str] = []

    def walk(element: TreeElement, depth: int) -> None:
        lines.append(f"{indent * depth}{element_label(element, colorize)}")
        if isinstance(element, FileElement):
            return
        for child in provider.get_children(element):
            walk(child, depth + 1)

    for root in provider.get_root_nodes():
        walk(root, 0)
    return lines


__all__ = ["format_status_badge", "element_label", "render_tree_lines"]
