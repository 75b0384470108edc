#!/usr/bin/env python3
"""
Data models for the op binding generator.

This module provides immutable, serializable data structures to describe:
- How each native parameter is satisfied (ambient context or dynamic argument)
- The shape of a function's return value and its calling convention
- The options attached to the ``@op`` annotation
- The op declaration handed to an extension's registration table
- Generation context (paths, flags) for offline runs

The models are designed to be consumed by:
- The parsing layer (to populate FunctionDescriptor instances)
- The marshalling/encoding layers and templates (Jinja2) to render trampolines
- The manifest writer, for introspection of a generation run
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .utils import type_spelling


class OpGenerationError(Exception):
    """A function or annotation cannot be turned into an op. Fatal for the generation run."""


# --------------------------
# Parameter/return models
# --------------------------

class ParamKind(Enum):
    EXECUTION_SCOPE = auto()
    SHARED_STATE_EXCLUSIVE = auto()
    SHARED_STATE_SHARED = auto()
    IGNORED = auto()
    SERIALIZED = auto()

    @property
    def is_special(self) -> bool:
        """Special parameters are bound from ambient context, not from call arguments."""
        return self in (ParamKind.EXECUTION_SCOPE, ParamKind.SHARED_STATE_EXCLUSIVE, ParamKind.SHARED_STATE_SHARED)


class ReturnKind(Enum):
    VOID = auto()
    UNIT_RESULT = auto()
    VALUE_RESULT = auto()
    PLAIN_VALUE = auto()

    @property
    def is_result(self) -> bool:
        return self in (ReturnKind.UNIT_RESULT, ReturnKind.VALUE_RESULT)


# Marker for parameters without a default value
NO_DEFAULT: Any = inspect.Parameter.empty


@dataclass(frozen=True)
class MacroArgs:
    is_unstable: bool = False
    is_v8: bool = False


@dataclass(frozen=True)
class ParameterInfo:
    name: str
    annotation: Any
    kind: ParamKind
    native_index: int
    # Position in the host's call arguments; None for special parameters
    dynamic_index: Optional[int] = None
    # Index into FunctionDescriptor.arg_types/arg_defaults; None for special parameters
    slot: Optional[int] = None
    default: Any = NO_DEFAULT

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "type": type_spelling(self.annotation),
            "kind": self.kind.name,
            "native_index": self.native_index,
            "dynamic_index": self.dynamic_index,
            "has_default": self.has_default,
        }


@dataclass(frozen=True)
class FunctionDescriptor:
    """
    The analyzed shape of one op function. Built once per function, immutable thereafter.

    For async ops `output_*` describes the value the op settles with, while
    `return_*` describes what calling the function returns:
    - `async def f() -> Result[int, E]`: return and output are both Result[int, E]
    - `def f() -> Awaitable[int]`: return is the awaitable, output is int
    - `def f() -> Result[Awaitable[X], E]`: fallible launch; output is X
    """
    name: str
    module: str
    qualname: str
    parameters: Tuple[ParameterInfo, ...]
    return_annotation: Any
    return_kind: ReturnKind
    output_annotation: Any
    output_kind: ReturnKind
    is_async: bool = False
    asyncness: bool = False
    fallible_launch: bool = False
    # TypeVars, ParamSpecs and TypeVarTuples in declaration order
    generic_params: Tuple[Any, ...] = ()

    @property
    def type_params(self) -> Tuple[TypeVar, ...]:
        """
        Generic parameters that participate in argument decoding.
        ParamSpec/TypeVarTuple never do, so they are excluded.
        """
        return tuple(p for p in self.generic_params if isinstance(p, TypeVar))

    @property
    def special_parameters(self) -> Tuple[ParameterInfo, ...]:
        return tuple(p for p in self.parameters if p.kind.is_special)

    @property
    def marshalled_parameters(self) -> Tuple[ParameterInfo, ...]:
        return tuple(p for p in self.parameters if not p.kind.is_special)

    @property
    def dynamic_arg_count(self) -> int:
        """Number of dynamic call arguments the trampoline reads (promise id included)."""
        return len(self.marshalled_parameters) + (1 if self.is_async else 0)

    @property
    def arg_types(self) -> Tuple[Any, ...]:
        return tuple(p.annotation for p in self.marshalled_parameters)

    @property
    def arg_defaults(self) -> Tuple[Any, ...]:
        return tuple(p.default for p in self.marshalled_parameters)

    def arg_types_for(self, type_args: Sequence[Any]) -> Tuple[Any, ...]:
        """
        Marshalled argument types with the op's type parameters substituted.
        An empty `type_args` leaves TypeVars in place (decoded by their bound).
        """
        type_args = tuple(type_args)
        if not type_args:
            return self.arg_types
        params = self.type_params
        if len(type_args) != len(params):
            raise OpGenerationError(
                f"{self.name} expects {len(params)} type argument(s), got {len(type_args)}"
            )
        mapping = dict(zip(params, type_args))
        return tuple(substitute_type_params(t, mapping) for t in self.arg_types)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "module": self.module,
            "qualname": self.qualname,
            "parameters": [p.to_dict() for p in self.parameters],
            "return_type": type_spelling(self.return_annotation),
            "return_kind": self.return_kind.name,
            "output_type": type_spelling(self.output_annotation),
            "output_kind": self.output_kind.name,
            "is_async": self.is_async,
            "asyncness": self.asyncness,
            "fallible_launch": self.fallible_launch,
            "type_params": [p.__name__ for p in self.type_params],
            "dynamic_arg_count": self.dynamic_arg_count,
        }


def substitute_type_params(annotation: Any, mapping: Dict[Any, Any]) -> Any:
    """
    Replace TypeVars in an annotation, e.g. List[T] with {T: int} -> List[int].
    """
    if isinstance(annotation, TypeVar):
        return mapping.get(annotation, annotation)
    params = getattr(annotation, "__parameters__", ())
    if not any(p in mapping for p in params):
        return annotation
    args = tuple(mapping.get(p, p) for p in params)
    return annotation[args if len(args) > 1 else args[0]]


# --------------------------
# Op declaration
# --------------------------

@dataclass(frozen=True)
class OpDecl:
    """
    Inert description of one op, aggregated into an operation table by the embedder.
    """
    name: str
    v8_fn_ptr: Callable[..., None]
    enabled: bool = True
    is_async: bool = False
    is_unstable: bool = False
    is_v8: bool = False

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "v8_fn_ptr": getattr(self.v8_fn_ptr, "__qualname__", repr(self.v8_fn_ptr)),
            "enabled": self.enabled,
            "is_async": self.is_async,
            "is_unstable": self.is_unstable,
            "is_v8": self.is_v8,
        }


# --------------------------
# Generation context
# --------------------------

@dataclass
class GenerationContext:
    """
    Parameters for a single offline generation run.

    Paths are absolute. Emitters should rely on these rather than guessing.
    """
    output_dir: Path
    templates_dir: Optional[Path]
    modules: List[str] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> Dict:
        return {
            "output_dir": str(self.output_dir),
            "templates_dir": str(self.templates_dir) if self.templates_dir else None,
            "modules": list(self.modules),
            "dry_run": self.dry_run,
        }


__all__ = [
    "OpGenerationError",
    "ParamKind",
    "ReturnKind",
    "NO_DEFAULT",
    "MacroArgs",
    "ParameterInfo",
    "FunctionDescriptor",
    "substitute_type_params",
    "OpDecl",
    "GenerationContext",
]
