from __future__ import annotations

import sys
from collections import deque
from typing import Callable

from .core.types import ExternalEntry, SvnCoordinate
from .result import Failure, Result, Success
from .svn.externals import needs_repository_root, parse_externals
from .svn.session import EXTERNALS_PROPERTY, RepositoryPool, SvnError

ExternalsParser = Callable[..., Result[list[ExternalEntry], str]]


def _log(message: str) -> None:
    from .runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[walker] {message}", file=sys.stderr, flush=True)


def find_externals(
    root: SvnCoordinate,
    pool: RepositoryPool,
    *,
    parser: ExternalsParser = parse_externals,
) -> Result[list[ExternalEntry], str]:
    """
    Collect every external declared anywhere below ``root``.

    Directories are visited breadth first, siblings in listing order. The
    first transport or parse failure ends the walk.
    """
    session = pool.repo_for(root.repository_url)
    repo_root: str | None = None
    externals: list[ExternalEntry] = []
    work_queue: deque[str] = deque(["/"])

    while work_queue:
        current_path = work_queue.popleft()
        try:
            properties, entries = session.get_dir(current_path, root.revision)
        except SvnError as err:
            return Failure(f"SVN failure getting externals at [{current_path}]: {err}")

        for entry in entries:
            if entry.is_dir:
                work_queue.append(f"{current_path}{entry.name}/")

        declaration = properties.get(EXTERNALS_PROPERTY, "")
        if repo_root is None and needs_repository_root(declaration):
            try:
                repo_root = session.repository_root(root.revision)
            except SvnError as err:
                return Failure(
                    f"SVN failure reading repository root for [{current_path}]: {err}"
                )

        parsed = parser(
            current_path,
            declaration,
            dir_url=session.url_for(current_path),
            repo_root=repo_root,
        )
        if isinstance(parsed, Failure):
            return parsed
        if parsed.value:
            _log(f"{len(parsed.value)} externals declared at {current_path}")
        externals.extend(parsed.value)

    _log(f"found {len(externals)} externals below {root}")
    return Success(externals)
