from __future__ import annotations

import subprocess
import sys
import threading
from dataclasses import dataclass
from typing import Callable
from urllib.parse import quote

from lxml import etree

from ..runtime import get_svn_credentials, get_svn_executable, get_svn_timeout

EXTERNALS_PROPERTY = "svn:externals"
_URL_SAFE = "/~!$&'()*+,;=:@"


class SvnError(Exception):
    """A remote svn query failed."""


def _log(message: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[svn] {message}", file=sys.stderr, flush=True)


@dataclass(frozen=True)
class DirEntry:
    name: str
    kind: str

    @property
    def is_dir(self) -> bool:
        return self.kind == "dir"


def _peg(revision: int) -> str:
    return "HEAD" if revision == 0 else str(revision)


class SvnSession:
    """Read-only access to one repository URL through the svn client."""

    def __init__(
        self,
        url: str,
        *,
        executable: str | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.executable = executable or get_svn_executable()
        if username is None and password is None:
            username, password = get_svn_credentials()
        self.username = username
        self.password = password
        self.timeout = timeout if timeout is not None else get_svn_timeout()
        self._repository_root: str | None = None

    def url_for(self, path: str) -> str:
        relative = path.strip("/")
        if not relative:
            return self.url
        return f"{self.url}/{quote(relative, safe=_URL_SAFE)}"

    def _auth_args(self) -> list[str]:
        args = ["--non-interactive"]
        if self.username:
            args.extend(["--username", self.username])
        if self.password:
            args.extend(["--password", self.password])
        return args

    def _run(self, args: list[str]) -> bytes:
        cmd = [self.executable, *args, *self._auth_args()]
        _log(" ".join(cmd[: 1 + len(args)]))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as err:
            detail = (err.stderr or b"").decode("utf-8", "replace").strip()
            raise SvnError(
                detail or f"svn {args[0]} exited with status {err.returncode}"
            ) from err
        except subprocess.TimeoutExpired as err:
            raise SvnError(f"svn {args[0]} timed out after {err.timeout}s") from err
        except OSError as err:
            raise SvnError(f"could not run {self.executable}: {err}") from err
        return result.stdout

    def _run_xml(self, args: list[str]) -> etree._Element:
        output = self._run(args)
        try:
            return etree.fromstring(output)
        except etree.XMLSyntaxError as err:
            raise SvnError(f"unreadable output from svn {args[0]}: {err}") from err

    def get_dir(self, path: str, revision: int) -> tuple[dict[str, str], list[DirEntry]]:
        """Return the properties and immediate children of ``path`` at ``revision``."""
        target = f"{self.url_for(path)}@{_peg(revision)}"

        listing = self._run_xml(["list", "--xml", target])
        entries = [
            DirEntry(name=entry.findtext("name") or "", kind=entry.get("kind", ""))
            for entry in listing.iter("entry")
        ]

        proplist = self._run_xml(["proplist", "--xml", "--verbose", target])
        properties = {
            prop.get("name"): prop.text or "" for prop in proplist.iter("property")
        }
        return properties, [entry for entry in entries if entry.name]

    def repository_root(self, revision: int = 0) -> str:
        """Repository root URL, looked up through this URL as it was at ``revision``."""
        if self._repository_root is None:
            info = self._run_xml(["info", "--xml", f"{self.url}@{_peg(revision)}"])
            root = info.findtext("entry/repository/root")
            if not root:
                raise SvnError(f"svn info did not report a repository root for {self.url}")
            self._repository_root = root.strip().rstrip("/")
        return self._repository_root


class RepositoryPool:
    """One lazily created session per repository URL for the length of a run."""

    def __init__(self, factory: Callable[[str], SvnSession] = SvnSession) -> None:
        self._factory = factory
        self._sessions: dict[str, SvnSession] = {}
        self._lock = threading.Lock()

    def repo_for(self, url: str) -> SvnSession:
        with self._lock:
            session = self._sessions.get(url)
            if session is None:
                _log(f"opening session for {url}")
                session = self._factory(url)
                self._sessions[url] = session
            return session

    def __len__(self) -> int:
        return len(self._sessions)

    def close(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __enter__(self) -> RepositoryPool:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
