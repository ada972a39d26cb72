"""Persistent JSON settings and per-repository state.

Settings live in ``config.json`` under the platform config dir; chosen base
refs live in ``state.json`` under the platform state dir, keyed by repository
root. Malformed or missing files read as empty.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path

from loguru import logger
from platformdirs import user_config_dir, user_state_dir

from .diff_model.types import DiffMode

APP_NAME = "difftree"
CONFIG_FILENAME = "config.json"
STATE_FILENAME = "state.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
STATE_PATH = Path(user_state_dir(APP_NAME, appauthor=False)) / STATE_FILENAME

DEBOUNCE_SECONDS = 2.0

ROOT_MODE_WORKSPACE = "workspace"
ROOT_MODE_REPOSITORY = "repository"
_ROOT_MODES = (ROOT_MODE_WORKSPACE, ROOT_MODE_REPOSITORY)


@dataclass(frozen=True)
class DiffTreeSettings:
    root_mode: str = ROOT_MODE_WORKSPACE
    include_outside_root: bool = True
    diff_mode: DiffMode = DiffMode.MERGE
    auto_refresh: bool = True
    refresh_index: bool = True
    detect_renames: bool = True
    rename_threshold: int = 50
    compact_folders: bool = False
    view_as_list: bool = False

    def with_changes(self, **changes: object) -> "DiffTreeSettings":
        return replace(self, **changes)


# Options whose change alters what the tree shows without a new diff.
DISPLAY_FIELDS = ("include_outside_root", "compact_folders", "view_as_list")
# Options whose change requires a new comparison.
DIFF_FIELDS = ("diff_mode", "refresh_index", "detect_renames", "rename_threshold")


def _read_json(path: Path) -> dict[str, object]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def _write_json(path: Path, data: dict[str, object]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        logger.warning("could not write {}: {}", path, exc)


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    return _read_json(CONFIG_PATH)


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON; write errors are logged only."""
    _write_json(CONFIG_PATH, data)


def _coerce_bool(value: object, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _coerce_threshold(value: object, default: int) -> int:
    """Similarity percentage for rename detection, clamped to ``[1, 100]``."""
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return max(1, min(100, value))


def load_settings() -> DiffTreeSettings:
    """Load settings; unknown keys are ignored and invalid values fall back."""
    data = load_config()
    defaults = DiffTreeSettings()

    root_mode = data.get("root")
    if root_mode not in _ROOT_MODES:
        root_mode = defaults.root_mode

    try:
        diff_mode = DiffMode(data.get("diff_mode", defaults.diff_mode.value))
    except ValueError:
        diff_mode = defaults.diff_mode

    return DiffTreeSettings(
        root_mode=str(root_mode),
        include_outside_root=_coerce_bool(data.get("include_files_outside_root"), defaults.include_outside_root),
        diff_mode=diff_mode,
        auto_refresh=_coerce_bool(data.get("auto_refresh"), defaults.auto_refresh),
        refresh_index=_coerce_bool(data.get("refresh_index"), defaults.refresh_index),
        detect_renames=_coerce_bool(data.get("find_renames"), defaults.detect_renames),
        rename_threshold=_coerce_threshold(data.get("rename_threshold"), defaults.rename_threshold),
        compact_folders=_coerce_bool(data.get("compact_folders"), defaults.compact_folders),
        view_as_list=_coerce_bool(data.get("view_as_list"), defaults.view_as_list),
    )


def save_settings(settings: DiffTreeSettings) -> None:
    config = load_config()
    config.update(
        {
            "root": settings.root_mode,
            "include_files_outside_root": settings.include_outside_root,
            "diff_mode": settings.diff_mode.value,
            "auto_refresh": settings.auto_refresh,
            "refresh_index": settings.refresh_index,
            "find_renames": settings.detect_renames,
            "rename_threshold": settings.rename_threshold,
            "compact_folders": settings.compact_folders,
            "view_as_list": settings.view_as_list,
        }
    )
    save_config(config)


def changed_settings(old: DiffTreeSettings, new: DiffTreeSettings) -> set[str]:
    return {name for name in DISPLAY_FIELDS + DIFF_FIELDS + ("auto_refresh",) if getattr(old, name) != getattr(new, name)}


class BaseRefStore:
    """Chosen comparison base per repository root, surviving restarts."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path if self._path is not None else STATE_PATH

    def _load(self) -> dict[str, str]:
        value = _read_json(self.path).get("base_refs")
        if not isinstance(value, dict):
            return {}
        return {key: ref for key, ref in value.items() if isinstance(key, str) and isinstance(ref, str) and ref}

    def get(self, repo_root: Path) -> str | None:
        return self._load().get(str(repo_root))

    def set(self, repo_root: Path, base_ref: str) -> None:
        refs = self._load()
        if refs.get(str(repo_root)) == base_ref:
            return
        refs[str(repo_root)] = base_ref
        state = _read_json(self.path)
        state["base_refs"] = refs
        _write_json(self.path, state)


class MemoryBaseRefStore(BaseRefStore):
    """Non-persistent store for one-shot runs and tests."""

    def __init__(self, initial: dict[Path, str] | None = None) -> None:
        super().__init__()
        self._refs: dict[str, str] = {str(key): value for key, value in (initial or {}).items()}

    def get(self, repo_root: Path) -> str | None:
        return self._refs.get(str(repo_root))

    def set(self, repo_root: Path, base_ref: str) -> None:
        self._refs[str(repo_root)] = base_ref


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "STATE_PATH",
    "DEBOUNCE_SECONDS",
    "ROOT_MODE_WORKSPACE",
    "ROOT_MODE_REPOSITORY",
    "DiffTreeSettings",
    "DISPLAY_FIELDS",
    "DIFF_FIELDS",
    "load_config",
    "save_config",
    "load_settings",
    "save_settings",
    "changed_settings",
    "BaseRefStore",
    "MemoryBaseRefStore",
]
