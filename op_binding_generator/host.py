"""
Contracts with the host script engine and the serialization collaborator.

Generated trampolines only ever talk to the host through the small surface
declared here:

- ``HandleScope``: the execution scope of the current call. It reports type
  errors back to the script, accepts asynchronous computations for scheduling
  and receives completions (or type-error failures) for async ops.
- ``FunctionCallbackArguments``: the generic call arguments. ``data()`` is the
  op context attached to the callback; ``get(i)`` reads a positional dynamic
  value (``None`` when absent).
- ``ReturnValue``: the host's return slot.
- ``Serializer``: converts dynamic values to native values and back. Failures
  are reported as ``SerializationError``.

The scope and serializer are implemented by the embedding engine; the argument
and return-slot carriers below are plain data holders any engine can reuse.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Optional, Sequence


class SerializationError(Exception):
    """Raised by a Serializer when a value cannot be converted."""


class HandleScope(ABC):
    """
    Execution scope handed to every trampoline call.

    Ops built with the ``v8`` option may declare a parameter annotated with
    this class (or a subclass) to receive the scope itself.
    """

    @abstractmethod
    def throw_type_error(self, message: str) -> None:
        """Raise a TypeError in the script with the given message."""

    @abstractmethod
    def queue_async_op(self, computation: Awaitable[Any]) -> None:
        """
        Schedule an async op computation. When it settles to
        ``(promise_id, op_id, op_result)`` the scheduler must hand the triple to
        ``complete_async_op``. A computation that settles to ``None`` has
        already reported its outcome through ``fail_async_op``.
        """

    @abstractmethod
    def complete_async_op(self, promise_id: int, op_id: int, result: Any) -> None:
        """Deliver the outcome of an async op to the script."""

    @abstractmethod
    def fail_async_op(self, promise_id: int, op_id: int, message: str) -> None:
        """Reject the promise of an async op with a TypeError (e.g. its result could not be encoded)."""


class FunctionCallbackArguments:
    """
    Positional dynamic arguments of one host call, plus the callback data.
    """

    def __init__(self, data: Any, values: Sequence[Any] = ()) -> None:
        self._data = data
        self._values = list(values)

    def data(self) -> Any:
        return self._data

    def get(self, index: int) -> Any:
        if 0 <= index < len(self._values):
            return self._values[index]
        return None

    def length(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"FunctionCallbackArguments({self._values!r})"


class ReturnValue:
    """The host's return slot for one call. Unset until ``set`` is called."""

    def __init__(self) -> None:
        self._value: Optional[Any] = None
        self._is_set = False

    def set(self, value: Any) -> None:
        self._value = value
        self._is_set = True

    def get(self) -> Any:
        return self._value

    @property
    def is_set(self) -> bool:
        return self._is_set


class Serializer(ABC):
    """Conversion between dynamic host values and native Python values."""

    @abstractmethod
    def from_value(self, value: Any, native_type: Any) -> Any:
        """Decode a dynamic value into ``native_type``; raise SerializationError on failure."""

    @abstractmethod
    def to_value(self, native: Any) -> Any:
        """Encode a native value; raise SerializationError on failure."""


__all__ = [
    "SerializationError",
    "HandleScope",
    "FunctionCallbackArguments",
    "ReturnValue",
    "Serializer",
]
