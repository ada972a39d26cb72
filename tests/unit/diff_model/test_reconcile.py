"""Tests for turning consecutive folds into node invalidations."""

from __future__ import annotations

import unittest
from pathlib import Path

from difftree_fakes import entry

from difftree.diff_model import (
    ChangeStatus,
    FullInvalidate,
    LoadedNodeSet,
    PartialInvalidate,
    fold,
    minimal_dirty_set,
    reconcile,
)

REPO = Path("/repo")


def folded(*entries, tree_root: Path = REPO, **kwargs):
    return fold(entries, tree_root, REPO, **kwargs)


class ReconcileTests(unittest.TestCase):
    def test_first_fold_is_a_full_invalidate(self) -> None:
        new = folded(entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"))

        self.assertEqual(reconcile(None, new, LoadedNodeSet()), FullInvalidate())

    def test_new_file_in_loaded_folder_invalidates_only_that_folder(self) -> None:
        old = folded(entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"))
        new = folded(
            entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"),
            entry(ChangeStatus.ADDED, "/repo/src/c.ts"),
        )
        loaded = LoadedNodeSet([REPO, Path("/repo/src")])

        self.assertEqual(reconcile(old, new, loaded), PartialInvalidate((Path("/repo/src"),)))

    def test_status_change_of_leaf_touches_only_its_folder(self) -> None:
        old = folded(
            entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"),
            entry(ChangeStatus.ADDED, "/repo/src/pkg/b.ts"),
        )
        new = folded(
            entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"),
            entry(ChangeStatus.MODIFIED, "/repo/src/pkg/b.ts"),
        )
        loaded = LoadedNodeSet([REPO, Path("/repo/src"), Path("/repo/src/pkg")])

        self.assertEqual(reconcile(old, new, loaded), PartialInvalidate((Path("/repo/src/pkg"),)))

    def test_nested_dirty_folders_collapse_into_ancestor(self) -> None:
        old = folded(
            entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"),
            entry(ChangeStatus.ADDED, "/repo/src/pkg/b.ts"),
        )
        new = folded(
            entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"),
            entry(ChangeStatus.MODIFIED, "/repo/src/pkg/b.ts"),
            entry(ChangeStatus.UNTRACKED, "/repo/src/new/x.py"),
        )
        loaded = LoadedNodeSet([REPO, Path("/repo/src"), Path("/repo/src/pkg")])

        signal = reconcile(old, new, loaded)

        self.assertEqual(signal, PartialInvalidate((Path("/repo/src"),)))
        self.assertEqual(loaded.snapshot(), frozenset({REPO, Path("/repo/src")}))

    def test_vanished_loaded_folder_is_forgotten(self) -> None:
        old = folded(
            entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"),
            entry(ChangeStatus.MODIFIED, "/repo/src/gone/x.py"),
        )
        new = folded(entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"))
        loaded = LoadedNodeSet([REPO, Path("/repo/src"), Path("/repo/src/gone")])

        signal = reconcile(old, new, loaded)

        self.assertEqual(signal, PartialInvalidate((Path("/repo/src"),)))
        self.assertNotIn(Path("/repo/src/gone"), loaded)

    def test_changes_in_unloaded_folders_emit_nothing(self) -> None:
        old = folded(entry(ChangeStatus.ADDED, "/repo/src/pkg/b.ts"))
        new = folded(entry(ChangeStatus.MODIFIED, "/repo/src/pkg/b.ts"))

        self.assertEqual(reconcile(old, new, LoadedNodeSet([REPO])), PartialInvalidate(()))

    def test_root_listing_change_is_a_full_invalidate(self) -> None:
        old = folded(entry(ChangeStatus.MODIFIED, "/repo/a.py"))
        new = folded(
            entry(ChangeStatus.MODIFIED, "/repo/a.py"),
            entry(ChangeStatus.ADDED, "/repo/b.py"),
        )

        self.assertEqual(reconcile(old, new, LoadedNodeSet([REPO])), FullInvalidate())

    def test_outside_partition_appearing_is_a_full_invalidate(self) -> None:
        app = Path("/repo/app")
        old = folded(entry(ChangeStatus.MODIFIED, "/repo/app/m.py"), tree_root=app)
        new = folded(
            entry(ChangeStatus.MODIFIED, "/repo/app/m.py"),
            entry(ChangeStatus.MODIFIED, "/repo/lib/u.py"),
            tree_root=app,
        )

        self.assertEqual(reconcile(old, new, LoadedNodeSet([app])), FullInvalidate())

    def test_inside_partition_emptying_is_a_full_invalidate(self) -> None:
        app = Path("/repo/app")
        old = folded(
            entry(ChangeStatus.MODIFIED, "/repo/app/m.py"),
            entry(ChangeStatus.MODIFIED, "/repo/lib/u.py"),
            tree_root=app,
        )
        new = folded(entry(ChangeStatus.MODIFIED, "/repo/lib/u.py"), tree_root=app)

        self.assertEqual(reconcile(old, new, LoadedNodeSet([app])), FullInvalidate())

    def test_outside_folder_change_is_partial(self) -> None:
        app = Path("/repo/app")
        old = folded(
            entry(ChangeStatus.MODIFIED, "/repo/app/m.py"),
            entry(ChangeStatus.MODIFIED, "/repo/lib/u.py"),
            tree_root=app,
        )
        new = folded(
            entry(ChangeStatus.MODIFIED, "/repo/app/m.py"),
            entry(ChangeStatus.MODIFIED, "/repo/lib/u.py"),
            entry(ChangeStatus.ADDED, "/repo/lib/v.py"),
            tree_root=app,
        )
        loaded = LoadedNodeSet([app, REPO, Path("/repo/lib")])

        self.assertEqual(reconcile(old, new, loaded), PartialInvalidate((Path("/repo/lib"),)))

    def test_display_flag_change_is_a_full_invalidate(self) -> None:
        change = entry(ChangeStatus.MODIFIED, "/repo/src/a.ts")
        old = folded(change)
        new = folded(change, compact_folders=True)

        self.assertEqual(reconcile(old, new, LoadedNodeSet([REPO])), FullInvalidate())


class MinimalDirtySetTests(unittest.TestCase):
    def test_descendants_are_dropped(self) -> None:
        paths = [Path("/repo/a/b/c"), Path("/repo/a"), Path("/repo/a/b"), Path("/repo/z")]

        self.assertEqual(minimal_dirty_set(paths), [Path("/repo/a"), Path("/repo/z")])

    def test_sibling_with_shared_name_prefix_is_kept(self) -> None:
        paths = [Path("/a/b-c"), Path("/a/b/x"), Path("/a/b")]

        self.assertEqual(minimal_dirty_set(paths), [Path("/a/b"), Path("/a/b-c")])

    def test_empty_input(self) -> None:
        self.assertEqual(minimal_dirty_set([]), [])


class LoadedNodeSetTests(unittest.TestCase):
    def test_purge_keeps_ancestor_and_unrelated_paths(self) -> None:
        loaded = LoadedNodeSet([Path("/r/a"), Path("/r/a/b"), Path("/r/a/b/c"), Path("/r/ab")])

        loaded.purge_descendants(Path("/r/a"))

        self.assertEqual(loaded.snapshot(), frozenset({Path("/r/a"), Path("/r/ab")}))

    def test_add_discard_and_clear(self) -> None:
        loaded = LoadedNodeSet()
        loaded.add(Path("/r"))
        loaded.add(Path("/r/x"))
        loaded.discard(Path("/r/x"))

        self.assertIn(Path("/r"), loaded)
        self.assertEqual(len(loaded), 1)

        loaded.clear()
        self.assertEqual(len(loaded), 0)


if __name__ == "__main__":
    unittest.main()
