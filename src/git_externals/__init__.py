from __future__ import annotations

from pathlib import Path

from .core.types import (
    CheckoutOperationError,
    ExitCode,
    ExternalEntry,
    OneCheckoutError,
    SvnCoordinate,
)
from .result import Failure, Result, Success


def discover(root: str | Path | None = None) -> Result[list[ExternalEntry], str]:
    """Find the externals of the svn revision a git-svn working tree tracks."""
    from .git.worktree import find_svn_coordinate, find_working_root
    from .svn.session import RepositoryPool
    from .walker import find_externals

    if root is None:
        located = find_working_root()
        if isinstance(located, Failure):
            return Failure(f"Could not find working dir root:\n{located.error}")
        root = located.value

    coordinate = find_svn_coordinate(Path(root))
    if isinstance(coordinate, Failure):
        return Failure(f"Could not evaluate git svn info:\n{coordinate.error}")

    with RepositoryPool() as pool:
        found = find_externals(coordinate.value, pool)
    if isinstance(found, Failure):
        return Failure(f"Could not perform external search at source:\n{found.error}")
    return found


__all__ = [
    "CheckoutOperationError",
    "ExitCode",
    "ExternalEntry",
    "Failure",
    "OneCheckoutError",
    "Result",
    "Success",
    "SvnCoordinate",
    "discover",
]
