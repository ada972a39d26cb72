"""Process-wide wiring of backend, tree data source and repository context."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

from ..config import DiffTreeSettings
from ..git.backend import RepositoryBackend
from .context import RepositoryCandidate, RepositoryContextManager
from .gate import ChangeGate
from .provider import DiffTreeProvider, TreeDataSink


def run_inline(target: Callable[..., None], *args: object) -> None:
    """``ChangeGate`` spawn hook that refreshes on the calling thread."""
    target(*args)


def inline_gate_factory(run: Callable[..., None], **kwargs) -> ChangeGate:
    return ChangeGate(run, spawn=run_inline, **kwargs)


class DiffTreeSession:
    """Constructed once per process; ``start``/``stop`` bound its lifetime."""

    def __init__(
        self,
        backend: RepositoryBackend,
        sink: TreeDataSink,
        *,
        settings: DiffTreeSettings | None = None,
        base_ref_store=None,
        gate_factory: Callable[..., ChangeGate] | None = None,
    ) -> None:
        settings = settings or DiffTreeSettings()
        self.provider = DiffTreeProvider(
            backend,
            sink,
            settings=settings,
            base_ref_store=base_ref_store,
            gate_factory=gate_factory,
        )
        self.contexts = RepositoryContextManager(backend, self.provider, root_mode=settings.root_mode)

    def start(
        self,
        workspace_folders: Iterable[Path] | None = None,
        repositories: Iterable[RepositoryCandidate] = (),
    ) -> None:
        if workspace_folders is not None:
            self.contexts.update_workspace_folders(workspace_folders)
        self.contexts.update_repositories(repositories)
        self.contexts.start()

    def stop(self) -> None:
        self.contexts.stop()

    def apply_settings(self, settings: DiffTreeSettings) -> None:
        self.provider.apply_settings(settings)
        self.contexts.set_root_mode(settings.root_mode)


__all__ = ["DiffTreeSession", "inline_gate_factory", "run_inline"]
