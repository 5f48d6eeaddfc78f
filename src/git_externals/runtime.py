from __future__ import annotations

from contextvars import ContextVar, Token
import os

_TRUTHY = {"1", "true", "yes", "on"}

_DEFAULT_SVN_EXECUTABLE = "svn"
_DEFAULT_GIT_EXECUTABLE = "git"
_REGISTRY_FILENAME = "svn-externals.yaml"


def _read_flag_env(name: str) -> bool:
    return (os.environ.get(name) or "").strip().lower() in _TRUTHY


def _read_positive_float_env(name: str) -> float | None:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if value <= 0:
        return None
    return value


_VERBOSE_LOGGING: ContextVar[bool] = ContextVar(
    "git_externals_verbose_logging",
    default=_read_flag_env("GIT_EXTERNALS_VERBOSE"),
)


def get_verbose_logging() -> bool:
    return _VERBOSE_LOGGING.get()


def set_verbose_logging(enabled: bool) -> Token[bool]:
    return _VERBOSE_LOGGING.set(bool(enabled))


def reset_verbose_logging(token: Token[bool]) -> None:
    _VERBOSE_LOGGING.reset(token)


def get_svn_executable() -> str:
    return (os.environ.get("GIT_EXTERNALS_SVN") or "").strip() or _DEFAULT_SVN_EXECUTABLE


def get_git_executable() -> str:
    return (os.environ.get("GIT_EXTERNALS_GIT") or "").strip() or _DEFAULT_GIT_EXECUTABLE


def get_svn_timeout() -> float | None:
    """Seconds allowed per remote svn query; ``None`` waits indefinitely."""
    return _read_positive_float_env("GIT_EXTERNALS_SVN_TIMEOUT")


def get_svn_credentials() -> tuple[str | None, str | None]:
    username = os.environ.get("GIT_EXTERNALS_SVN_USERNAME") or None
    password = os.environ.get("GIT_EXTERNALS_SVN_PASSWORD") or None
    return username, password


def get_registry_override() -> str | None:
    return (os.environ.get("GIT_EXTERNALS_REGISTRY") or "").strip() or None


def get_registry_filename() -> str:
    return _REGISTRY_FILENAME
