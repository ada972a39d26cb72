"""Change-event filtering and poll signatures for repository watching.

Hosts that own a real file watcher feed paths through ``is_relevant_change``.
The CLI has no watcher and instead polls ``build_worktree_signature``, a cheap
digest over git control files plus ``git status`` output.
"""

from __future__ import annotations

import hashlib
import subprocess
from pathlib import Path

# Lock files churn during every git command and never change the diff.
_IGNORED_GIT_SUFFIXES = (".lock",)
_RELEVANT_GIT_FILES = frozenset(
    {"HEAD", "index", "packed-refs", "MERGE_HEAD", "CHERRY_PICK_HEAD", "REBASE_HEAD", "ORIG_HEAD"}
)


def _update_digest(digest, token: str) -> None:
    digest.update(token.encode("utf-8", errors="surrogateescape"))
    digest.update(b"\0")


def _path_stat_signature(path: Path) -> tuple[str, int, int, int]:
    """``(state, mtime_ns, size, mode)``; zeros when missing or unreadable."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return ("missing", 0, 0, 0)
    except OSError:
        return ("error", 0, 0, 0)
    return ("ok", st.st_mtime_ns, st.st_size, st.st_mode)


def _symbolic_head_target(git_dir: Path) -> str:
    """Ref HEAD points at, e.g. ``refs/heads/main``; empty when detached."""
    try:
        content = (git_dir / "HEAD").read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    content = content.strip()
    return content[len("ref: "):].strip() if content.startswith("ref: ") else ""


def is_relevant_change(path: Path, git_dir: Path | None = None) -> bool:
    """Return whether a watcher event for ``path`` can affect the diff tree.

    Working-tree paths always count. Inside the git directory only HEAD,
    the index, refs and in-progress operation markers matter; lock files and
    object-store churn are ignored.
    """
    parts = path.parts
    if git_dir is not None and path.is_relative_to(git_dir):
        relative = path.relative_to(git_dir).parts
    elif ".git" in parts:
        relative = parts[parts.index(".git") + 1:]
    else:
        return True

    if not relative:
        return False
    if relative[-1].endswith(_IGNORED_GIT_SUFFIXES):
        return False
    if relative[0] == "refs":
        return True
    return len(relative) == 1 and relative[0] in _RELEVANT_GIT_FILES


def build_git_watch_signature(git_dir: Path | None, common_dir: Path | None = None) -> str:
    """Digest of the git control files that can move HEAD, the index or a ref."""
    digest = hashlib.blake2b(digest_size=20)
    if git_dir is None:
        _update_digest(digest, "no-git-dir")
        return digest.hexdigest()

    git_dir = git_dir.resolve()
    common_dir = common_dir.resolve() if common_dir is not None else git_dir
    head_target = _symbolic_head_target(git_dir)

    watched: list[tuple[str, Path]] = [(name, git_dir / name) for name in sorted(_RELEVANT_GIT_FILES - {"packed-refs"})]
    watched.append(("packed-refs", common_dir / "packed-refs"))
    if head_target:
        watched.append((head_target, common_dir / head_target))

    _update_digest(digest, f"{git_dir}|{head_target}")
    for label, path in watched:
        state, mtime_ns, size, mode = _path_stat_signature(path)
        _update_digest(digest, f"{label}={state}/{mtime_ns}/{size}/{mode}")
    return digest.hexdigest()


def build_worktree_signature(
    repo_root: Path,
    git_dir: Path | None,
    common_dir: Path | None = None,
    timeout_seconds: float = 2.0,
) -> str:
    """Digest git metadata plus ``git status`` so working-tree edits register.

    A failing ``git status`` contributes a fixed token, which keeps the
    signature stable instead of flapping while git is busy.
    """
    digest = hashlib.blake2b(digest_size=20)
    _update_digest(digest, build_git_watch_signature(git_dir, common_dir))
    try:
        proc = subprocess.run(
            ["git", "-C", str(repo_root), "status", "--porcelain=v1", "-z", "--untracked-files=normal"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
            timeout=timeout_seconds,
        )
    except (OSError, subprocess.SubprocessError):
        _update_digest(digest, "status:error")
        return digest.hexdigest()
    if proc.returncode != 0:
        _update_digest(digest, "status:error")
        return digest.hexdigest()

    digest.update(proc.stdout)
    # Content edits to already-modified files do not change status output.
    tokens = proc.stdout.split(b"\0")
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if len(token) < 4 or token[2:3] != b" ":
            continue
        if b"R" in token[:2] or b"C" in token[:2]:
            # porcelain -z appends the rename source as its own token
            index += 1
        target = repo_root / token[3:].decode("utf-8", errors="surrogateescape")
        state, mtime_ns, size, _mode = _path_stat_signature(target)
        _update_digest(digest, f"file:{target}:{state}:{mtime_ns}:{size}")
    return digest.hexdigest()


__all__ = [
    "is_relevant_change",
    "build_git_watch_signature",
    "build_worktree_signature",
]
