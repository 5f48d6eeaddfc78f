"""
Parser for ``svn:externals`` property values.

Both layouts accepted by the svn client are understood::

    [-r REV] URL[@PEG] TARGET      # 1.5 and later, URL may be relative
    TARGET [-r REV] URL            # pre-1.5, URL must be absolute

Relative URLs (``../``, ``^/``, ``//``, ``/``) are resolved against the URL of
the directory carrying the property and the repository root.
"""

from __future__ import annotations

import posixpath
import re
import shlex
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit, urlunsplit

from ..core.types import ExternalEntry, SvnCoordinate
from ..result import Failure, Result, Success

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_RELATIVE_PREFIXES = ("../", "^/", "//", "/")


class _LineError(ValueError):
    pass


def _is_absolute_url(token: str) -> bool:
    return bool(_SCHEME_RE.match(token))


def _looks_like_url(token: str) -> bool:
    return _is_absolute_url(token) or token.startswith(_RELATIVE_PREFIXES)


def _parse_revision(raw: str) -> int:
    if raw.upper() == "HEAD":
        return SvnCoordinate.HEAD_REVISION
    if not re.fullmatch(r"[0-9]+", raw):
        raise _LineError(f"unsupported revision {raw!r}")
    return int(raw)


def _extract_revision(tokens: list[str]) -> tuple[list[str], int | None]:
    remaining: list[str] = []
    revision: int | None = None
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.startswith("-r"):
            if revision is not None:
                raise _LineError("more than one revision given")
            raw = token[2:]
            if not raw:
                if i + 1 >= len(tokens):
                    raise _LineError("-r without a revision")
                i += 1
                raw = tokens[i]
            revision = _parse_revision(raw)
        else:
            remaining.append(token)
        i += 1
    return remaining, revision


def _split_peg(url: str) -> tuple[str, int | None]:
    at_pos = url.rfind("@")
    if at_pos == -1:
        return url, None
    potential_peg = url[at_pos + 1 :]
    if not potential_peg or "/" in potential_peg:
        return url, None
    return url[:at_pos], _parse_revision(potential_peg)


def _normalize_url(url: str) -> str:
    parts = urlsplit(url)
    path = posixpath.normpath(parts.path) if parts.path else ""
    if path == ".":
        path = ""
    if path.startswith("//"):
        path = "/" + path.lstrip("/")
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def _resolve_url(url: str, dir_url: str | None, repo_root: str | None) -> str:
    if _is_absolute_url(url):
        return url.rstrip("/")

    if url.startswith("^/"):
        if not repo_root:
            raise _LineError(f"cannot resolve {url!r} without the repository root")
        return _normalize_url(f"{repo_root.rstrip('/')}/{url[2:]}").rstrip("/")

    if url.startswith("../"):
        if not dir_url:
            raise _LineError(f"cannot resolve {url!r} without the directory URL")
        return _normalize_url(f"{dir_url.rstrip('/')}/{url}").rstrip("/")

    base = dir_url or repo_root
    if not base:
        raise _LineError(f"cannot resolve {url!r} without a base URL")
    parts = urlsplit(base)
    if url.startswith("//"):
        return f"{parts.scheme}:{url}".rstrip("/")
    return _normalize_url(urlunsplit((parts.scheme, parts.netloc, url, "", ""))).rstrip("/")


def _target_path(target_base: str, target: str) -> Path:
    relative = PurePosixPath(target)
    if not relative.parts or relative.is_absolute():
        raise _LineError(f"target {target!r} must be a relative path")
    if ".." in relative.parts:
        raise _LineError(f"target {target!r} must not leave its directory")
    base = PurePosixPath(target_base.strip("/") or ".")
    return Path(*(base / relative).parts)


def needs_repository_root(declaration: str) -> bool:
    """Whether any line of ``declaration`` uses a repository-root relative ``^/`` URL."""
    for raw_line in declaration.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            tokens = shlex.split(line)
        except ValueError:
            continue
        if any(token.startswith("^/") for token in tokens):
            return True
    return False


def _parse_line(
    line: str, target_base: str, dir_url: str | None, repo_root: str | None
) -> ExternalEntry:
    try:
        tokens = shlex.split(line)
    except ValueError as err:
        raise _LineError(str(err)) from err

    tokens, revision = _extract_revision(tokens)
    if len(tokens) != 2:
        raise _LineError(f"expected a URL and a target, got {len(tokens)} fields")

    first, second = tokens
    peg: int | None = None
    if _looks_like_url(first):
        url, peg = _split_peg(first)
        target = second
        if revision is None:
            revision, peg = peg, None
    elif _is_absolute_url(second):
        target, url = first, second
    else:
        raise _LineError("no URL found")

    resolved = _resolve_url(url, dir_url, repo_root)
    # an operative revision is looked up along the history of the peg
    if peg:
        resolved = f"{resolved}@{peg}"

    source = SvnCoordinate(
        resolved,
        revision if revision is not None else SvnCoordinate.HEAD_REVISION,
    )
    return ExternalEntry(_target_path(target_base, target), source)


def parse_externals(
    target_base: str,
    declaration: str,
    *,
    dir_url: str | None = None,
    repo_root: str | None = None,
) -> Result[list[ExternalEntry], str]:
    """
    Parse one directory's ``svn:externals`` value.

    Args:
        target_base: Repository path of the directory holding the property,
            e.g. ``"/"`` or ``"/lib/"``. Targets are joined onto it.
        declaration: The raw property value.
        dir_url: Full URL of that directory, for ``../`` and ``/`` URLs.
        repo_root: Repository root URL, for ``^/`` URLs.

    A single malformed line fails the whole declaration.
    """
    entries: list[ExternalEntry] = []
    for lineno, raw_line in enumerate(declaration.splitlines(), 1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            entries.append(_parse_line(line, target_base, dir_url, repo_root))
        except _LineError as err:
            return Failure(
                f"Malformed svn:externals at [{target_base}] line {lineno} "
                f"({line!r}): {err}"
            )
    return Success(entries)
