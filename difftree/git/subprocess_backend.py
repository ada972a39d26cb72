"""``git`` subprocess implementation of ``RepositoryBackend``.

Structural changes come from ``git diff-index --raw -z`` against the compare
commit, untracked files from ``git ls-files --others --exclude-standard -z``.
HEAD-movement probes read ``HEAD``, loose refs and ``packed-refs`` directly so
they stay cheap enough to run on every file-system event.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from loguru import logger

from ..diff_model.types import RepositoryContext
from ..errors import BackendError, NoMergeBase
from .backend import (
    ComparisonResult,
    CompareOptions,
    HeadInfo,
    RawChange,
    RefInfo,
    RefKind,
    RepositoryLocation,
)

_REF_PREFIXES: tuple[tuple[str, RefKind], ...] = (
    ("refs/heads/", RefKind.BRANCH),
    ("refs/remotes/", RefKind.REMOTE_BRANCH),
    ("refs/tags/", RefKind.TAG),
)


def _resolve_against(root: Path, raw: str) -> Path:
    candidate = Path(raw)
    if not candidate.is_absolute():
        candidate = root / candidate
    return candidate.resolve()


def parse_raw_diff(output: str) -> list[RawChange]:
    """Parse ``git diff-index --raw -z`` output into change records.

    Each record is ``:<old mode> <new mode> <old sha> <new sha> <status>``
    followed by one path token, or two (source, destination) for renames and
    copies.
    """
    records: list[RawChange] = []
    tokens = output.split("\0")
    index = 0
    while index < len(tokens):
        header = tokens[index]
        index += 1
        if not header:
            continue
        if not header.startswith(":"):
            continue
        parts = header[1:].split(" ")
        if len(parts) < 5 or index >= len(tokens):
            continue
        old_mode, new_mode, status_field = parts[0], parts[1], parts[4]
        status = status_field[:1]
        source = tokens[index]
        index += 1
        destination = source
        if status in ("R", "C"):
            if index >= len(tokens):
                break
            destination = tokens[index]
            index += 1
        records.append(
            RawChange(
                status=status,
                source_path=source,
                destination_path=destination,
                old_mode=old_mode,
                new_mode=new_mode,
            )
        )
    return records


def parse_packed_refs(content: str) -> dict[str, str]:
    """Map full ref names to commit ids from a ``packed-refs`` file."""
    refs: dict[str, str] = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("^"):
            continue
        commit_id, _sep, name = line.partition(" ")
        if name:
            refs[name] = commit_id
    return refs


class GitBackend:
    """Run ``git`` commands for one process; stateless between calls."""

    def __init__(self, git_executable: str = "git", timeout_seconds: float | None = None) -> None:
        self.git_executable = git_executable
        self.timeout_seconds = timeout_seconds

    def _run(self, cwd: Path, args: list[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        command = [self.git_executable, "-C", str(cwd), *args]
        logger.debug("git {}", " ".join(args))
        try:
            proc = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="surrogateescape",
                check=False,
                timeout=self.timeout_seconds,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise BackendError(f"failed to run git {args[0]}: {exc}", command=command) from exc
        if check and proc.returncode != 0:
            stderr = proc.stderr.strip()
            raise BackendError(
                f"git {args[0]} exited with {proc.returncode}: {stderr}",
                command=command,
                stderr=stderr,
            )
        return proc

    def discover(self, path: Path) -> RepositoryLocation:
        proc = self._run(path, ["rev-parse", "--show-toplevel", "--git-dir", "--git-common-dir"])
        lines = [line.strip() for line in proc.stdout.splitlines() if line.strip()]
        if len(lines) < 3:
            raise BackendError(f"unexpected rev-parse output for {path}")
        repo_root = Path(lines[0]).resolve()
        # --git-dir is relative to the cwd, not the toplevel.
        git_dir = _resolve_against(path.resolve(), lines[1])
        common_dir = _resolve_against(path.resolve(), lines[2])
        return RepositoryLocation(repo_root=repo_root, git_dir=git_dir, common_dir=common_dir)

    def resolve_head(self, context: RepositoryContext) -> HeadInfo:
        branch_proc = self._run(context.repo_root, ["symbolic-ref", "-q", "--short", "HEAD"], check=False)
        branch_name = branch_proc.stdout.strip() if branch_proc.returncode == 0 else None
        commit_proc = self._run(context.repo_root, ["rev-parse", "-q", "--verify", "HEAD"], check=False)
        commit_id = commit_proc.stdout.strip() if commit_proc.returncode == 0 else None
        if branch_name is None and commit_id is None:
            raise BackendError(f"cannot resolve HEAD in {context.repo_root}")
        return HeadInfo(branch_name=branch_name or None, commit_id=commit_id or None)

    def list_refs(self, context: RepositoryContext) -> list[RefInfo]:
        proc = self._run(
            context.repo_root,
            ["for-each-ref", "--format=%(refname)%00%(objectname)"],
        )
        refs: list[RefInfo] = []
        for line in proc.stdout.splitlines():
            full_name, _sep, commit_id = line.partition("\0")
            for prefix, kind in _REF_PREFIXES:
                if full_name.startswith(prefix):
                    refs.append(RefInfo(name=full_name[len(prefix):], commit_id=commit_id, kind=kind))
                    break
        return refs

    def get_branch_upstream(self, context: RepositoryContext, branch_name: str) -> str | None:
        proc = self._run(
            context.repo_root,
            ["config", "--get", f"branch.{branch_name}.remote"],
            check=False,
        )
        remote = proc.stdout.strip()
        if proc.returncode != 0 or not remote or remote == ".":
            return None
        return remote

    def read_symbolic_ref(self, context: RepositoryContext, remote_name: str) -> str | None:
        # The remote default branch pointer is a plain file unless refs were packed.
        sym_ref_path = context.common_dir / "refs" / "remotes" / remote_name / "HEAD"
        try:
            text = sym_ref_path.read_text(encoding="utf-8").strip()
        except OSError:
            proc = self._run(
                context.repo_root,
                ["symbolic-ref", "-q", f"refs/remotes/{remote_name}/HEAD"],
                check=False,
            )
            if proc.returncode != 0:
                return None
            text = "ref: " + proc.stdout.strip()
        if not text.startswith("ref: refs/remotes/"):
            return None
        return text[len("ref: refs/remotes/"):]

    def verify_commit(self, context: RepositoryContext, revision: str) -> str | None:
        proc = self._run(
            context.repo_root,
            ["rev-parse", "-q", "--verify", f"{revision}^{{commit}}"],
            check=False,
        )
        if proc.returncode != 0:
            return None
        return proc.stdout.strip() or None

    def compute_merge_base(self, context: RepositoryContext, ref_a: str, ref_b: str) -> str:
        proc = self._run(context.repo_root, ["merge-base", ref_b, ref_a], check=False)
        merge_base = proc.stdout.strip()
        if proc.returncode != 0 or not merge_base:
            raise NoMergeBase(
                f"no merge base between {ref_a} and {ref_b}",
                stderr=proc.stderr.strip(),
            )
        return merge_base

    def compare_working_tree_to(
        self,
        context: RepositoryContext,
        commit_id: str,
        options: CompareOptions,
    ) -> ComparisonResult:
        if options.refresh_index_first:
            # Stat-only index refresh so touched-but-unchanged files drop out.
            self._run(context.repo_root, ["update-index", "-q", "--refresh"], check=False)

        rename_args = (
            [f"-M{options.rename_threshold}%"] if options.detect_renames else ["--no-renames"]
        )
        diff_proc = self._run(
            context.repo_root,
            ["diff-index", "--raw", "-z", *rename_args, commit_id, "--"],
        )
        untracked_proc = self._run(
            context.repo_root,
            ["ls-files", "-z", "--others", "--exclude-standard"],
        )
        untracked = tuple(token for token in untracked_proc.stdout.split("\0") if token)
        return ComparisonResult(changes=tuple(parse_raw_diff(diff_proc.stdout)), untracked=untracked)

    def head_pointer_modified_at(self, context: RepositoryContext) -> float:
        try:
            return (context.git_dir / "HEAD").stat().st_mtime
        except OSError as exc:
            raise BackendError(f"cannot stat HEAD in {context.git_dir}") from exc

    def resolve_branch_commit(self, context: RepositoryContext, branch_name: str) -> str:
        loose_ref = context.common_dir / "refs" / "heads" / branch_name
        try:
            return loose_ref.read_text(encoding="utf-8").strip()
        except OSError:
            pass
        try:
            packed = parse_packed_refs((context.common_dir / "packed-refs").read_text(encoding="utf-8"))
        except OSError as exc:
            raise BackendError(f'could not determine commit for "{branch_name}"') from exc
        commit_id = packed.get(f"refs/heads/{branch_name}")
        if commit_id is None:
            raise BackendError(f'could not determine commit for "{branch_name}"')
        return commit_id


__all__ = ["GitBackend", "parse_raw_diff", "parse_packed_refs"]
