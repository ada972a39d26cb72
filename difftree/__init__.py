"""Live folder tree of working-tree changes against a git comparison base.

The engine lives in ``difftree.diff_model`` (pure folding and reconciliation)
and ``difftree.runtime`` (scheduling, repository context, tree data source).
"""

from __future__ import annotations

__version__ = "0.1.0"


def main(argv: list[str] | None = None) -> int:
    """Run the CLI; imported lazily so engine users skip argparse and git setup."""
    from .cli import main as _main

    return _main(argv)


__all__ = ["__version__", "main"]
