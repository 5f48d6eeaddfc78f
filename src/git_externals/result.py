"""Explicit success/failure values for operations that can fail at runtime."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

S = TypeVar("S")
F = TypeVar("F")


@dataclass(frozen=True)
class Success(Generic[S]):
    value: S


@dataclass(frozen=True)
class Failure(Generic[F]):
    error: F


Result = Union[Success[S], Failure[F]]


__all__ = ["Failure", "Result", "Success"]
