"""
JSON-compatible serializer used by default for generated ops.

Dynamic values are the JSON data model: None, bool, int, float, str, lists and
string-keyed dicts. Conversion is delegated to ``msgspec``:

- decoding is ``msgspec.convert`` in strict mode against the parameter's
  annotation (builtins, generics, Optional/Union, Literal, dataclasses,
  Enums; ``Any`` and unbound TypeVars pass the value through)
- encoding is ``msgspec.to_builtins`` (dataclasses become dicts, tuples and
  sets become lists, Enums their value, mapping keys become strings)

Validation failures and unsupported types raise SerializationError.
"""

from __future__ import annotations

from typing import Any

import msgspec

from .host import SerializationError, Serializer


class JsonSerializer(Serializer):

    def __init__(self, strict: bool = True) -> None:
        self.strict = strict

    def from_value(self, value: Any, native_type: Any) -> Any:
        try:
            return msgspec.convert(value, native_type, strict=self.strict)
        except (msgspec.ValidationError, TypeError) as ex:
            raise SerializationError(str(ex)) from ex

    def to_value(self, native: Any) -> Any:
        try:
            return msgspec.to_builtins(native, str_keys=True)
        except TypeError as ex:
            raise SerializationError(str(ex)) from ex


__all__ = ["JsonSerializer"]
