"""Tests for folding change lists into folder mappings and listing children."""

from __future__ import annotations

import unittest
from pathlib import Path

from difftree_fakes import entry

from difftree.diff_model import (
    ChangeStatus,
    FileElement,
    FolderElement,
    RepoRootElement,
    files_under,
    fold,
    list_children,
    list_outside_root_children,
    list_root_children,
)

REPO = Path("/repo")


class FoldTests(unittest.TestCase):
    def test_nested_entries_fold_into_their_folders(self) -> None:
        entries = [
            entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"),
            entry(ChangeStatus.ADDED, "/repo/src/pkg/b.ts"),
        ]

        tree = fold(entries, REPO, REPO)

        self.assertEqual([e.path.name for e in tree.inside[Path("/repo/src")]], ["a.ts"])
        self.assertEqual([e.path.name for e in tree.inside[Path("/repo/src/pkg")]], ["b.ts"])
        self.assertEqual(tree.inside[REPO], ())
        self.assertEqual(tree.inside_subfolders[REPO], (Path("/repo/src"),))
        self.assertEqual(dict(tree.outside), {})

        root_children = list_root_children(tree)
        self.assertEqual(root_children, [FolderElement(Path("/repo/src"), "src")])

    def test_every_ancestor_up_to_partition_root_has_a_key(self) -> None:
        entries = [
            entry(ChangeStatus.ADDED, "/repo/a/b/c/d/deep.py"),
            entry(ChangeStatus.ADDED, "/repo/x/y.py"),
        ]

        tree = fold(entries, REPO, REPO)

        for folder_entries in tree.inside.values():
            for change in folder_entries:
                folder = change.path.parent
                while True:
                    self.assertIn(folder, tree.inside)
                    if folder == REPO:
                        break
                    folder = folder.parent
        self.assertNotIn(Path("/"), tree.inside)

    def test_fold_is_idempotent(self) -> None:
        entries = [
            entry(ChangeStatus.MODIFIED, "/repo/src/a.ts"),
            entry(ChangeStatus.DELETED, "/repo/docs/readme.md"),
            entry(ChangeStatus.UNTRACKED, "/repo/top.txt"),
        ]

        first = fold(entries, REPO, REPO)
        second = fold(entries, REPO, REPO)

        self.assertEqual(dict(first.inside), dict(second.inside))
        self.assertEqual(dict(first.inside_subfolders), dict(second.inside_subfolders))
        self.assertEqual(list_root_children(first), list_root_children(second))

    def test_entries_outside_tree_root_go_to_outside_partition(self) -> None:
        tree_root = Path("/repo/app")
        entries = [
            entry(ChangeStatus.MODIFIED, "/repo/app/main.py"),
            entry(ChangeStatus.MODIFIED, "/repo/lib/util.py"),
            entry(ChangeStatus.ADDED, "/repo/setup.cfg"),
        ]

        tree = fold(entries, tree_root, REPO)

        self.assertEqual(set(tree.inside), {tree_root})
        self.assertEqual(set(tree.outside), {REPO, Path("/repo/lib")})
        self.assertEqual([e.path.name for e in tree.outside[REPO]], ["setup.cfg"])

        root_children = list_root_children(tree)
        self.assertIsInstance(root_children[0], RepoRootElement)
        self.assertEqual([child.label for child in root_children[1:]], ["main.py"])

        outside_children = list_outside_root_children(tree)
        self.assertEqual(
            [(type(child).__name__, child.label, child.outside_tree_root) for child in outside_children],
            [("FolderElement", "lib", True), ("FileElement", "setup.cfg", True)],
        )

    def test_sibling_prefix_folder_is_not_inside_tree_root(self) -> None:
        tree = fold([entry(ChangeStatus.ADDED, "/repo/app-old/x.py")], Path("/repo/app"), REPO)

        self.assertEqual(dict(tree.inside), {})
        self.assertIn(Path("/repo/app-old"), tree.outside)

    def test_outside_entries_dropped_when_not_included(self) -> None:
        entries = [
            entry(ChangeStatus.MODIFIED, "/repo/app/main.py"),
            entry(ChangeStatus.MODIFIED, "/repo/lib/util.py"),
        ]

        tree = fold(entries, Path("/repo/app"), REPO, include_outside=False)

        self.assertFalse(tree.has_outside())
        self.assertNotIsInstance(list_root_children(tree)[0], RepoRootElement)

    def test_folders_sort_before_files_case_sensitively(self) -> None:
        entries = [
            entry(ChangeStatus.MODIFIED, "/repo/b.txt"),
            entry(ChangeStatus.MODIFIED, "/repo/B.txt"),
            entry(ChangeStatus.MODIFIED, "/repo/zeta/z.txt"),
            entry(ChangeStatus.MODIFIED, "/repo/Alpha/a.txt"),
            entry(ChangeStatus.MODIFIED, "/repo/alpha/a.txt"),
        ]

        children = list_children(fold(entries, REPO, REPO), REPO)

        self.assertEqual(
            [child.label for child in children],
            ["Alpha", "alpha", "zeta", "B.txt", "b.txt"],
        )

    def test_compaction_merges_single_child_chains(self) -> None:
        entries = [
            entry(ChangeStatus.ADDED, "/repo/src/main/java/org/App.java"),
            entry(ChangeStatus.ADDED, "/repo/src/main/java/org/util/Io.java"),
            entry(ChangeStatus.ADDED, "/repo/docs/a.md"),
        ]

        tree = fold(entries, REPO, REPO, compact_folders=True)
        root_children = list_children(tree, REPO)

        self.assertEqual(
            root_children,
            [
                FolderElement(Path("/repo/docs"), "docs"),
                FolderElement(Path("/repo/src/main/java/org"), "src/main/java/org"),
            ],
        )
        org_children = list_children(tree, Path("/repo/src/main/java/org"))
        self.assertEqual([child.label for child in org_children], ["util", "App.java"])

    def test_compaction_stops_at_folder_with_two_subfolders(self) -> None:
        entries = [
            entry(ChangeStatus.ADDED, "/repo/pkg/a/x.py"),
            entry(ChangeStatus.ADDED, "/repo/pkg/b/y.py"),
        ]

        tree = fold(entries, REPO, REPO, compact_folders=True)

        self.assertEqual(list_children(tree, REPO), [FolderElement(Path("/repo/pkg"), "pkg")])
        self.assertEqual([child.label for child in list_children(tree, Path("/repo/pkg"))], ["a", "b"])

    def test_list_view_flattens_files_with_relative_labels(self) -> None:
        entries = [
            entry(ChangeStatus.MODIFIED, "/repo/app/z.py"),
            entry(ChangeStatus.MODIFIED, "/repo/app/sub/a.py"),
            entry(ChangeStatus.MODIFIED, "/repo/lib/util.py"),
        ]

        tree = fold(entries, Path("/repo/app"), REPO, view_as_list=True)
        root_children = list_root_children(tree)

        self.assertIsInstance(root_children[0], RepoRootElement)
        self.assertEqual([child.label for child in root_children[1:]], ["sub/a.py", "z.py"])
        self.assertTrue(all(isinstance(child, FileElement) for child in root_children[1:]))
        self.assertEqual([child.label for child in list_outside_root_children(tree)], ["lib/util.py"])

    def test_files_under_collects_recursively(self) -> None:
        entries = [
            entry(ChangeStatus.MODIFIED, "/repo/src/a.py"),
            entry(ChangeStatus.MODIFIED, "/repo/src/pkg/b.py"),
            entry(ChangeStatus.MODIFIED, "/repo/src-gen/c.py"),
        ]

        tree = fold(entries, REPO, REPO)

        self.assertEqual(
            [change.path for change in files_under(tree, Path("/repo/src"))],
            [Path("/repo/src/a.py"), Path("/repo/src/pkg/b.py")],
        )


if __name__ == "__main__":
    unittest.main()
