from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from .core.types import ExternalEntry, SvnCoordinate
from .result import Failure, Result, Success
from .runtime import get_registry_filename, get_registry_override


class ExternalsRegistry:
    """The externals a previous ``checkout`` created, kept as YAML."""

    def __init__(self, path: str | Path, root: str | Path | None = None) -> None:
        self.path = Path(path)
        self.root = Path(root) if root is not None else None

    def _relative(self, target: Path) -> str:
        if self.root is not None and target.is_absolute():
            try:
                target = target.relative_to(self.root)
            except ValueError:
                pass
        return target.as_posix()

    def _entry_to_dict(self, entry: ExternalEntry) -> dict[str, Any]:
        return {
            "path": self._relative(entry.target_path),
            "url": entry.source.repository_url,
            "revision": entry.source.revision,
        }

    @staticmethod
    def _entry_from_dict(data: Any) -> ExternalEntry:
        if not isinstance(data, dict):
            raise ValueError(f"registry entry must be a mapping, got {data!r}")
        path = data.get("path")
        url = data.get("url")
        revision = data.get("revision", SvnCoordinate.HEAD_REVISION)
        if not isinstance(path, str) or not path:
            raise ValueError(f"registry entry without a path: {data!r}")
        if not isinstance(url, str) or not url:
            raise ValueError(f"registry entry without a url: {data!r}")
        if not isinstance(revision, int) or isinstance(revision, bool):
            raise ValueError(f"registry entry with a bad revision: {data!r}")
        return ExternalEntry(
            Path(*PurePosixPath(path).parts), SvnCoordinate(url, revision)
        )

    def load(self) -> Result[set[ExternalEntry], str]:
        if not self.path.exists():
            return Success(set())
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            return Failure(f"Could not read registered externals from {self.path}: {e}")

        if data is None:
            return Success(set())
        if not isinstance(data, dict) or not isinstance(
            data.get("externals", []), list
        ):
            return Failure(f"{self.path} must be a YAML mapping with an 'externals' list")
        try:
            return Success(
                {self._entry_from_dict(item) for item in data.get("externals") or []}
            )
        except ValueError as e:
            return Failure(f"Invalid registered externals in {self.path}: {e}")

    def save(self, entries: Iterable[ExternalEntry]) -> Result[None, str]:
        records = sorted(
            (self._entry_to_dict(entry) for entry in entries),
            key=lambda item: (item["path"], item["url"], item["revision"]),
        )
        try:
            if not records:
                self.path.unlink(missing_ok=True)
                return Success(None)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    yaml.safe_dump({"externals": records}, f, sort_keys=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, yaml.YAMLError) as e:
            return Failure(f"Could not write registered externals to {self.path}: {e}")
        return Success(None)


def registry_for(root: Path) -> Result[ExternalsRegistry, str]:
    """The registry of the repository whose working tree is ``root``."""
    override = get_registry_override()
    if override:
        return Success(ExternalsRegistry(override, root=root))

    from .git.worktree import git_path

    located = git_path(root, get_registry_filename())
    if isinstance(located, Failure):
        return located
    return Success(ExternalsRegistry(located.value, root=root))
