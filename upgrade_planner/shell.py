"""Terminal output helpers.

The planning core never prints; it returns Diagnostic objects. This module
is the thin layer that turns them (and progress messages) into terminal
output.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable

from .models import Diagnostic


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the planning run in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def info(msg: str) -> None:
    print(f"  {msg}")


def debug(msg: str) -> None:
    print(f"  [debug] {msg}")


def warn(msg: str) -> None:
    print(f"WARNING: {msg}", file=sys.stderr)


def error(msg: str) -> None:
    print(f"ERROR: {msg}", file=sys.stderr)


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the run.
    """
    error(msg)
    sys.exit(1)


def report(diagnostics: Iterable[Diagnostic], verbose: bool = False) -> None:
    """Forward core diagnostics to the terminal.

    Debug messages are only shown when verbose is set.
    """
    for diagnostic in diagnostics:
        if diagnostic.level == "debug":
            if verbose:
                debug(diagnostic.message)
        elif diagnostic.level == "info":
            info(diagnostic.message)
        elif diagnostic.level == "warning":
            warn(diagnostic.message)
        else:
            error(diagnostic.message)
