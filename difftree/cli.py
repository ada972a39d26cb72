"""Command-line front door for difftree.

Prints the folded diff of the working tree against its comparison base, or
keeps redrawing it in ``--watch`` mode.
"""

from __future__ import annotations

import argparse
import sys
import threading
import time
from pathlib import Path

from loguru import logger

from .config import ROOT_MODE_REPOSITORY, BaseRefStore, load_settings
from .diff_model.types import DiffMode
from .errors import BackendError
from .git.subprocess_backend import GitBackend
from .git.watch import build_worktree_signature
from .render import render_tree_lines
from .runtime.context import RepositoryCandidate
from .runtime.session import DiffTreeSession, inline_gate_factory


def _positive_float(value: str) -> float:
    """argparse type for positive float values."""
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be > 0")
    return parsed


class ConsoleSink:
    """Tree sink that flags redraws and prints errors to stderr."""

    def __init__(self) -> None:
        self.dirty = threading.Event()
        self.errors: list[str] = []

    def invalidate_all(self) -> None:
        self.dirty.set()

    def invalidate_node(self, path: Path) -> None:
        self.dirty.set()

    def show_error(self, message: str) -> None:
        self.errors.append(message)
        print(f"difftree: {message}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="difftree",
        description="Show files that differ between the working tree and a base ref, as a folder tree.",
    )
    parser.add_argument("path", nargs="?", default=".", help="workspace folder inside a git repository")
    parser.add_argument("--base", help="ref to compare against (remembered per repository)")
    parser.add_argument("--full-diff", action="store_true", help="compare against the base itself, not the merge-base")
    parser.add_argument("--list", action="store_true", help="flat list instead of a folder tree")
    parser.add_argument("--compact", action="store_true", help="collapse single-child folder chains")
    parser.add_argument("--no-outside", action="store_true", help="hide changes outside the workspace folder")
    parser.add_argument("--repository-root", action="store_true", help="root the tree at the repository root")
    parser.add_argument("--watch", action="store_true", help="keep running and redraw on changes")
    parser.add_argument("--poll", type=_positive_float, default=1.0, help="watch poll interval in seconds")
    parser.add_argument("--no-color", action="store_true", help="disable ANSI colors")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def _print_tree(session: DiffTreeSession, colorize: bool, clear_screen: bool) -> None:
    lines = render_tree_lines(session.provider, colorize=colorize)
    if clear_screen:
        sys.stdout.write("\033[H\033[2J")
    if not lines:
        lines = ["(no changes)"]
    sys.stdout.write("\n".join(lines) + "\n")
    sys.stdout.flush()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    workspace_folder = Path(args.path).resolve()
    backend = GitBackend()
    try:
        location = backend.discover(workspace_folder)
    except BackendError as exc:
        print(f"difftree: not a git repository: {workspace_folder} ({exc})", file=sys.stderr)
        return 2

    settings = load_settings()
    overrides: dict[str, object] = {}
    if args.full_diff:
        overrides["diff_mode"] = DiffMode.FULL
    if args.list:
        overrides["view_as_list"] = True
    if args.compact:
        overrides["compact_folders"] = True
    if args.no_outside:
        overrides["include_outside_root"] = False
    if args.repository_root:
        overrides["root_mode"] = ROOT_MODE_REPOSITORY
    settings = settings.with_changes(**overrides)

    colorize = not args.no_color and sys.stdout.isatty()
    sink = ConsoleSink()
    session = DiffTreeSession(
        backend,
        sink,
        settings=settings,
        base_ref_store=BaseRefStore(),
        gate_factory=None if args.watch else inline_gate_factory,
    )
    session.start(
        workspace_folders=[workspace_folder],
        repositories=[RepositoryCandidate(location.repo_root, selected=True)],
    )
    if args.base:
        session.provider.change_base(args.base)

    if not args.watch:
        if session.provider.folded_tree is None:
            print("difftree: no diff available (see --verbose)", file=sys.stderr)
            session.stop()
            return 1
        _print_tree(session, colorize, clear_screen=False)
        session.stop()
        return 1 if sink.errors else 0

    signature = None
    try:
        while True:
            current = build_worktree_signature(location.repo_root, location.git_dir, location.common_dir)
            if signature is not None and current != signature:
                session.provider.handle_path_change(location.repo_root)
            signature = current
            if sink.dirty.is_set():
                sink.dirty.clear()
                _print_tree(session, colorize, clear_screen=True)
            time.sleep(args.poll)
    except KeyboardInterrupt:
        pass
    finally:
        session.stop()
    return 0


__all__ = ["ConsoleSink", "build_parser", "main"]
