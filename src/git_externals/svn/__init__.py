from .externals import needs_repository_root, parse_externals
from .session import DirEntry, RepositoryPool, SvnError, SvnSession

__all__ = [
    "DirEntry",
    "RepositoryPool",
    "SvnError",
    "SvnSession",
    "needs_repository_root",
    "parse_externals",
]
