"""Runtime orchestration: refresh gate, repository context and tree data source."""

from __future__ import annotations

from .context import RepositoryCandidate, RepositoryContextManager
from .gate import ChangeGate, HeadProbe
from .provider import CompareTarget, DiffTreeProvider, RefreshTrigger, TreeDataSink

__all__ = [
    "ChangeGate",
    "HeadProbe",
    "RepositoryCandidate",
    "RepositoryContextManager",
    "CompareTarget",
    "DiffTreeProvider",
    "RefreshTrigger",
    "TreeDataSink",
]
