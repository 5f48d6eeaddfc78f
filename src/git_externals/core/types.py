from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import ClassVar


class ExitCode(IntEnum):
    SUCCESS = 0
    NOT_IMPLEMENTED_YET = 1
    ERROR_BEFORE_WRITE = 2
    FAIL_CLEANUP_OK = 3
    FAIL_CLEANUP_FAIL = 4


@dataclass(frozen=True)
class SvnCoordinate:
    """A repository URL at a revision; revision 0 stands for HEAD."""

    repository_url: str
    revision: int = 0

    HEAD_REVISION: ClassVar[int] = 0

    def __post_init__(self) -> None:
        if self.revision < 0:
            raise ValueError(f"revision must be non-negative, got {self.revision}")

    @property
    def is_head(self) -> bool:
        return self.revision == self.HEAD_REVISION

    @property
    def peg(self) -> str:
        return "HEAD" if self.is_head else str(self.revision)

    def __str__(self) -> str:
        return f"{self.repository_url}@{self.peg}"


@dataclass(frozen=True)
class ExternalEntry:
    target_path: Path
    source: SvnCoordinate


@dataclass(frozen=True)
class OneCheckoutError:
    """
    Failure to check out or link one target path.

    ``cleanup`` is False when the path must be left alone, e.g. because it
    existed before this run.
    """

    path: Path
    cleanup: bool
    message: str


@dataclass(frozen=True)
class CheckoutOperationError:
    """Failure of a whole checkout run with every path that needs removing."""

    paths: frozenset[Path] = field(default_factory=frozenset)
    message: str = ""
