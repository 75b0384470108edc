"""
Per-extension shared state and its borrow-checked cell.

``OpState`` is the single logical resource shared by all ops of one extension
instance. It is always reached through a ``StateCell``:

- ``borrow()`` gives shared (read) access; any number may overlap.
- ``borrow_mut()`` gives exclusive access; it may not overlap with any other
  borrow. Conflicts raise ``BorrowError`` instead of blocking.

Ops declare a parameter annotated ``OpState`` to get an exclusive view for the
duration of a synchronous call, or ``StateCell[OpState]`` to receive the cell
itself, which may be kept past the call (e.g. across an ``await``).
"""

from __future__ import annotations

import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterator, Optional, Type, TypeVar

S = TypeVar("S")
T = TypeVar("T")


class BorrowError(RuntimeError):
    """Raised when a borrow would overlap with an incompatible borrow."""


def default_error_class(error: Any) -> str:
    return "Error"


# --------------------------
# Diagnostics
# --------------------------

@dataclass
class OpMetrics:
    ops_dispatched_sync: int = 0
    ops_dispatched_async: int = 0


class OpsTracker:
    """Call counters keyed by op id."""

    def __init__(self) -> None:
        self._metrics: Dict[int, OpMetrics] = defaultdict(OpMetrics)

    def track_sync(self, op_id: int) -> None:
        self._metrics[op_id].ops_dispatched_sync += 1

    def track_async(self, op_id: int) -> None:
        self._metrics[op_id].ops_dispatched_async += 1

    def metrics(self, op_id: int) -> OpMetrics:
        return self._metrics.get(op_id) or OpMetrics()


# --------------------------
# State
# --------------------------

class OpState:
    """
    Shared extension state: call tracker, error classifier and a
    type-keyed store for extension data.
    """

    def __init__(self, get_error_class_fn: Optional[Callable[[Any], str]] = None) -> None:
        self.tracker = OpsTracker()
        self.get_error_class_fn: Callable[[Any], str] = get_error_class_fn or default_error_class
        self._store: Dict[type, Any] = {}

    def put(self, value: Any) -> None:
        self._store[type(value)] = value

    def has(self, cls: Type[T]) -> bool:
        return cls in self._store

    def borrow(self, cls: Type[T]) -> T:
        try:
            return self._store[cls]
        except KeyError:
            raise KeyError(f"{cls.__qualname__} is not present in OpState") from None

    def try_borrow(self, cls: Type[T]) -> Optional[T]:
        return self._store.get(cls)

    def take(self, cls: Type[T]) -> T:
        value = self.borrow(cls)
        del self._store[cls]
        return value


class StateCell(Generic[S]):
    """Borrow-checked holder of one state object."""

    def __init__(self, value: S) -> None:
        self._value = value
        self._lock = threading.Lock()
        self._readers = 0
        self._writer = False

    @contextmanager
    def borrow(self) -> Iterator[S]:
        with self._lock:
            if self._writer:
                raise BorrowError("state already mutably borrowed")
            self._readers += 1
        try:
            yield self._value
        finally:
            with self._lock:
                self._readers -= 1

    @contextmanager
    def borrow_mut(self) -> Iterator[S]:
        with self._lock:
            if self._writer or self._readers:
                raise BorrowError("state already borrowed")
            self._writer = True
        try:
            yield self._value
        finally:
            with self._lock:
                self._writer = False

    def __repr__(self) -> str:
        return f"StateCell({type(self._value).__name__})"


__all__ = [
    "BorrowError",
    "OpMetrics",
    "OpsTracker",
    "OpState",
    "StateCell",
    "default_error_class",
]
