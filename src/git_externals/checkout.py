from __future__ import annotations

import os
import shutil
import subprocess
import sys
from collections.abc import Iterable
from pathlib import Path

from .core.types import (
    CheckoutOperationError,
    ExternalEntry,
    OneCheckoutError,
    SvnCoordinate,
)
from .result import Failure, Result, Success
from .runtime import get_svn_executable


def _log(message: str) -> None:
    from .runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[checkout] {message}", file=sys.stderr, flush=True)


def _resolve(git_root: Path, target: Path) -> Path:
    return target if target.is_absolute() else Path(git_root) / target


def build_checkout_command(source: SvnCoordinate, checkout_path: Path) -> list[str]:
    cmd = [get_svn_executable(), "checkout"]
    if not source.is_head:
        cmd.append(f"-r{source.revision}")
    cmd.extend([source.repository_url, str(checkout_path)])
    return cmd


def _checkout(
    git_root: Path, source: SvnCoordinate, checkout_path: Path
) -> Result[Path, OneCheckoutError]:
    # exists-then-checkout is not atomic; svn itself refuses obstructed paths
    if os.path.lexists(checkout_path):
        return Failure(
            OneCheckoutError(
                checkout_path, False, f"Cannot check out: [{checkout_path}] already exists!"
            )
        )

    cmd = build_checkout_command(source, checkout_path)
    _log(" ".join(cmd))
    try:
        completed = subprocess.run(cmd, cwd=git_root)
    except Exception as e:
        return Failure(
            OneCheckoutError(
                checkout_path,
                True,
                f"Failed to check out [{source}] to [{checkout_path}] because of [{e}]",
            )
        )
    if completed.returncode != 0:
        return Failure(
            OneCheckoutError(
                checkout_path,
                True,
                f"Failed to check out [{source}] to [{checkout_path}]: "
                f"process returned [{completed.returncode}]",
            )
        )
    return Success(checkout_path)


def _link(source: Path, dest: Path) -> Result[Path, OneCheckoutError]:
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(
            os.path.relpath(source, dest.parent), dest, target_is_directory=True
        )
    except FileExistsError as e:
        return Failure(
            OneCheckoutError(
                dest, False, f"Failed to link [{source}] to [{dest}] because of [{e}]"
            )
        )
    except OSError as e:
        return Failure(
            OneCheckoutError(
                dest, True, f"Failed to link [{source}] to [{dest}] because of [{e}]"
            )
        )
    _log(f"linked {dest} -> {source}")
    return Success(dest)


def _missing_ancestors(path: Path) -> list[Path]:
    missing: list[Path] = []
    for parent in path.parents:
        if os.path.lexists(parent):
            break
        missing.append(parent)
    return missing


def _group_targets(
    git_root: Path, externals: Iterable[ExternalEntry]
) -> dict[SvnCoordinate, list[Path]]:
    groups: dict[SvnCoordinate, list[Path]] = {}
    for entry in externals:
        groups.setdefault(entry.source, []).append(
            _resolve(git_root, entry.target_path)
        )
    return groups


def checkout_externals(
    git_root: Path, externals: list[ExternalEntry]
) -> Result[dict[SvnCoordinate, list[Path]], CheckoutOperationError]:
    """
    Check out each distinct source once and link its other targets to it.

    Every primary target is checked out first, in first-seen order, then the
    remaining targets of each source are linked to their primary. The first
    failure stops the run; the error lists everything created so far plus
    the failed path when it is safe to delete, and any parent directories
    the run had to create.
    """
    groups = _group_targets(git_root, externals)
    successes: dict[SvnCoordinate, list[Path]] = {}
    created_dirs: set[Path] = set()

    def abort(error: OneCheckoutError) -> Failure[CheckoutOperationError]:
        created = {path for paths in successes.values() for path in paths}
        if error.cleanup:
            created.add(error.path)
        created.update(created_dirs)
        return Failure(CheckoutOperationError(frozenset(created), error.message))

    for source, targets in groups.items():
        created_dirs.update(_missing_ancestors(targets[0]))
        result = _checkout(git_root, source, targets[0])
        if isinstance(result, Failure):
            return abort(result.error)
        successes[source] = [result.value]

    for source, targets in groups.items():
        primary = targets[0]
        for target in targets[1:]:
            created_dirs.update(_missing_ancestors(target))
            linked = _link(primary, target)
            if isinstance(linked, Failure):
                return abort(linked.error)
            successes[source].append(linked.value)

    return Success({source: list(paths) for source, paths in successes.items()})


def _remove(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
    elif path.is_dir():
        shutil.rmtree(path)


def clean_up_externals(paths: Iterable[Path]) -> Result[None, frozenset[Path]]:
    """Recursively delete every path; fail with the ones that could not be removed."""
    failures: set[Path] = set()
    for path in paths:
        try:
            _remove(Path(path))
        except OSError as e:
            _log(f"could not remove {path}: {e}")
            failures.add(Path(path))
    if failures:
        return Failure(frozenset(failures))
    return Success(None)
