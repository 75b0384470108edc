"""
Success/failure values returned by fallible ops.

A fallible op declares its return type as ``Result[T, E]`` and returns either
``Ok(value)`` or ``Err(error)``. ``Result`` is a plain ``typing.Union`` alias, so
project-specific aliases such as ``IoResult = Result[T, OSError]`` are
recognized by the signature parser as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T = None  # type: ignore[assignment]

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True


Result = Union[Ok[T], Err[E]]


__all__ = ["Ok", "Err", "Result"]
