#!/usr/bin/env python3
"""
Result encoding for op trampolines.

Native outcomes are turned into what the host expects:

- Void returns write nothing.
- Plain values are encoded with the serializer; an encoding failure is a
  type error thrown into the host, not a structured error.
- ``Ok(None)`` of a unit result writes nothing and performs no encoding.
- ``Err(e)`` is wrapped in a structured error ``{"class", "message"[, "code"]}``
  whose class comes from the op state's error classifier, then encoded.

Synchronous trampolines get generated statements (``codegen_sync_ret``);
asynchronous ones call ``to_op_result`` when their computation settles.
"""

from __future__ import annotations

import errno
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .host import SerializationError, Serializer
from .models import ReturnKind
from .results import Err, Ok

INDENT = "    "


class OpTypeError(TypeError):
    """An async op's result could not be encoded."""


@dataclass(frozen=True)
class OpError:
    class_name: str
    message: str
    code: Optional[str] = None

    @classmethod
    def new(cls, get_class: Callable[[Any], str], error: Any) -> "OpError":
        return cls(class_name=get_class(error), message=str(error), code=get_error_code(error))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"class": self.class_name, "message": self.message}
        if self.code is not None:
            out["code"] = self.code
        return out


def get_error_code(error: Any) -> Optional[str]:
    """POSIX code name (e.g. 'ENOENT') for OS errors, else None."""
    if isinstance(error, OSError) and error.errno is not None:
        return errno.errorcode.get(error.errno)
    return None


@dataclass(frozen=True)
class OpResult:
    """Encoded outcome of an async op, delivered with (promise_id, op_id)."""
    is_ok: bool
    value: Any = None


# --------------------------
# Async settlement
# --------------------------

def to_op_result(
    serializer: Serializer,
    get_class: Callable[[Any], str],
    result: Any,
    encode_ok: bool = True,
) -> OpResult:
    """
    Encode a settled Ok/Err. With `encode_ok` False the Ok payload is dropped
    without touching the serializer (void and unit-result ops).
    """
    if isinstance(result, Err):
        err = OpError.new(get_class, result.error)
        return OpResult(is_ok=False, value=serializer.to_value(err.to_dict()))
    if not isinstance(result, Ok):
        raise OpTypeError(f"Expected Ok or Err from a fallible op, got {type(result).__name__}")
    if not encode_ok:
        return OpResult(is_ok=True)
    try:
        return OpResult(is_ok=True, value=serializer.to_value(result.value))
    except SerializationError as ex:
        raise OpTypeError(f"Error serializing return: {ex}") from ex


# --------------------------
# Sync code generation
# --------------------------

def _codegen_encode_ok(expr: str) -> List[str]:
    return [
        "try:",
        f"{INDENT}rv.set(_serde.to_value({expr}))",
        "except _ops.SerializationError as err:",
        f"{INDENT}_ops.throw_type_error(scope, \"Error serializing return: {{}}\".format(err))",
    ]

def _codegen_encode_err() -> List[str]:
    return [
        "err = _ops.OpError.new(get_class, result.error)",
        "rv.set(_serde.to_value(err.to_dict()))",
    ]

def codegen_sync_ret(kind: ReturnKind) -> List[str]:
    """
    Statements writing `result` into the return slot `rv`.
    """
    if kind is ReturnKind.VOID:
        return []
    if kind is ReturnKind.PLAIN_VALUE:
        return _codegen_encode_ok("result")

    lines = ["if isinstance(result, _ops.Err):"]
    lines.extend(INDENT + line for line in _codegen_encode_err())
    if kind is ReturnKind.UNIT_RESULT:
        # Ok(None) skips the serializer entirely
        return lines
    lines.append("else:")
    lines.extend(INDENT + line for line in _codegen_encode_ok("result.value"))
    return lines

def wraps_ok(kind: ReturnKind) -> bool:
    """Whether an async op's settled value must be wrapped in Ok before encoding."""
    return not kind.is_result

def encodes_ok(kind: ReturnKind) -> bool:
    """Whether an async op's Ok payload goes through the serializer."""
    return kind in (ReturnKind.PLAIN_VALUE, ReturnKind.VALUE_RESULT)


__all__ = [
    "OpTypeError",
    "OpError",
    "OpResult",
    "get_error_code",
    "to_op_result",
    "codegen_sync_ret",
    "wraps_ok",
    "encodes_ok",
]
