import re
import subprocess
import sys
from pathlib import Path

from ..core.types import SvnCoordinate
from ..result import Failure, Result, Success
from ..runtime import get_git_executable

_URL_RE = re.compile(r"^URL: ([^\n]+)$", re.MULTILINE)
_REVISION_RE = re.compile(r"^Revision: ([^\n]*)$", re.MULTILINE)


def _log(message: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[git] {message}", file=sys.stderr, flush=True)


def _run_git(args: list[str], cwd: str | Path | None = None) -> str:
    cmd = [get_git_executable(), *args]
    _log(" ".join(cmd))
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def _describe(err: Exception) -> str:
    if isinstance(err, subprocess.CalledProcessError):
        detail = (err.stderr or "").strip()
        return detail or f"exit status {err.returncode}"
    return str(err) or err.__class__.__name__


def find_working_root(cwd: str | Path | None = None) -> Result[Path, str]:
    """Locate the working tree root of the git repository enclosing ``cwd``."""
    try:
        bare = _run_git(["rev-parse", "--is-bare-repository"], cwd=cwd).strip()
        if bare == "true":
            return Failure("Cannot work with a bare repository!")
        top = _run_git(["rev-parse", "--show-toplevel"], cwd=cwd).strip()
    except (subprocess.CalledProcessError, OSError) as err:
        return Failure(f"git repository root discovery failed: {_describe(err)}")
    if not top:
        return Failure("git repository has no working tree")
    return Success(Path(top))


def git_path(root: Path, name: str) -> Result[Path, str]:
    """Resolve ``name`` inside the repository's git directory."""
    try:
        out = _run_git(["rev-parse", "--git-path", name], cwd=root).strip()
    except (subprocess.CalledProcessError, OSError) as err:
        return Failure(f"could not resolve git path {name}: {_describe(err)}")
    path = Path(out)
    return Success(path if path.is_absolute() else root / path)


def git_svn_info(root: Path) -> Result[str, str]:
    try:
        return Success(_run_git(["svn", "info"], cwd=root))
    except subprocess.CalledProcessError as err:
        return Failure(f"git svn info return status was {err.returncode}")
    except OSError as err:
        return Failure(f"running git svn info failed: {_describe(err)}")


def parse_svn_info(output: str) -> Result[SvnCoordinate, str]:
    """Read the ``URL:`` and ``Revision:`` lines of ``git svn info`` output."""
    url_match = _URL_RE.search(output)
    rev_match = _REVISION_RE.search(output)
    if url_match is None or rev_match is None:
        return Failure("Could not read required git svn info from provided output!")

    raw_rev = rev_match.group(1).strip()
    if not re.fullmatch(r"[0-9]+", raw_rev):
        return Failure(f"Could not parse revision {raw_rev!r} from git svn info output")

    url = url_match.group(1).strip()
    if not url:
        return Failure("git svn info output has an empty URL")
    return Success(SvnCoordinate(url, int(raw_rev)))


def find_svn_coordinate(root: Path) -> Result[SvnCoordinate, str]:
    info = git_svn_info(root)
    if isinstance(info, Failure):
        return info
    return parse_svn_info(info.value)
