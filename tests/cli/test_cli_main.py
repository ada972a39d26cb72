"""Tests for the one-shot command-line entry point."""

from __future__ import annotations

import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from git_helpers import GIT, make_feature_repo

from difftree import cli, config


class CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name).resolve()
        self.state_path = self.tmp / "state" / "state.json"
        for name, value in (("CONFIG_PATH", self.tmp / "config" / "config.json"), ("STATE_PATH", self.state_path)):
            patcher = mock.patch.object(config, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

    def run_cli(self, *argv: str) -> tuple[int, str, str]:
        stdout, stderr = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            code = cli.main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()


class ParserTests(CliTestCase):
    def test_poll_must_be_positive(self) -> None:
        stderr = io.StringIO()
        with contextlib.redirect_stderr(stderr), self.assertRaises(SystemExit) as caught:
            cli.build_parser().parse_args(["--poll", "0"])

        self.assertEqual(caught.exception.code, 2)
        self.assertIn("value must be > 0", stderr.getvalue())

    def test_defaults(self) -> None:
        args = cli.build_parser().parse_args([])

        self.assertEqual(args.path, ".")
        self.assertIsNone(args.base)
        self.assertFalse(args.watch)

    def test_not_a_repository(self) -> None:
        plain = self.tmp / "plain"
        plain.mkdir()

        code, stdout, stderr = self.run_cli(str(plain), "--no-color")

        self.assertEqual(code, 2)
        self.assertEqual(stdout, "")
        self.assertIn("not a git repository", stderr)


@unittest.skipIf(GIT is None, "git executable not available")
class OneShotTests(CliTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.repo = make_feature_repo(self.tmp / "repo")

    def test_tree_against_requested_base(self) -> None:
        code, stdout, _stderr = self.run_cli(str(self.repo), "--base", "main", "--no-color")

        self.assertEqual(code, 0)
        self.assertEqual(stdout.splitlines(), ["main", "  src/", "    [M] b.txt", "    [U] new.txt", "  [D] a.txt"])

    def test_base_is_remembered_between_runs(self) -> None:
        self.run_cli(str(self.repo), "--base", "main", "--no-color")

        code, stdout, _stderr = self.run_cli(str(self.repo), "--no-color")

        self.assertEqual(code, 0)
        self.assertEqual(stdout.splitlines()[0], "main")
        state = json.loads(self.state_path.read_text(encoding="utf-8"))
        self.assertEqual(state["base_refs"][str(self.repo)], "main")

    def test_list_view(self) -> None:
        code, stdout, _stderr = self.run_cli(str(self.repo), "--base", "main", "--list", "--no-color")

        self.assertEqual(code, 0)
        self.assertEqual(stdout.splitlines(), ["main", "  [D] a.txt", "  [M] src/b.txt", "  [U] src/new.txt"])

    def test_subfolder_without_outside_changes(self) -> None:
        code, stdout, _stderr = self.run_cli(
            str(self.repo / "src"), "--base", "main", "--no-outside", "--no-color"
        )

        self.assertEqual(code, 0)
        self.assertEqual(stdout.splitlines(), ["main", "  [M] b.txt", "  [U] new.txt"])


if __name__ == "__main__":
    unittest.main()
