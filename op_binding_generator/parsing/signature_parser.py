#!/usr/bin/env python3
"""
Signature analysis for op functions.

This module inspects a Python function's declared shape (``inspect.signature``
plus resolved ``typing`` hints) and produces an immutable FunctionDescriptor:

- Each parameter is classified as execution scope, shared state (exclusive or
  shared handle), ignored, or serialized from a dynamic call argument.
- The return annotation is classified as void, unit result, value result or
  plain value, looking through Result aliases.
- The calling convention is inferred: ``async def`` and future-shaped returns
  are async; ``Result[Awaitable[...], E]`` is async with a fallible launch step.

All functions here are pure: classifying the same function twice yields equal
descriptors. Problems with the declared shape raise OpGenerationError.
"""

from __future__ import annotations

import asyncio
import collections.abc
import inspect
import types
import typing
from typing import Any, Callable, Iterable, List, Optional, Tuple, TypeVar, Union
import logging

from ..host import HandleScope
from ..models import (
    FunctionDescriptor,
    MacroArgs,
    OpGenerationError,
    ParameterInfo,
    ParamKind,
    ReturnKind,
    substitute_type_params,
)
from ..results import Err, Ok
from ..state import OpState, StateCell

logger = logging.getLogger(__name__)

RECOGNIZED_OPTIONS: Tuple[str, ...] = ("unstable", "v8")

_POSITIONAL_KINDS = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
_UNION_ORIGINS = (Union, types.UnionType)
_NONE_TYPE = type(None)

# Only present on Python 3.12+ (`type X = ...` statements)
_TypeAliasType = getattr(typing, "TypeAliasType", None)


# --------------------------
# Annotation options
# --------------------------

def parse_macro_args(options: Iterable[Any]) -> MacroArgs:
    """
    Parse the options given to ``@op(...)``. Only "unstable" and "v8" are recognized.
    """
    tokens: List[str] = []
    for opt in options:
        if not isinstance(opt, str) or opt not in RECOGNIZED_OPTIONS:
            raise OpGenerationError(
                "Ops expect no-argument form or one/both of the recognized options: "
                "@op, @op(\"unstable\"), @op(\"v8\") or @op(\"unstable\", \"v8\") "
                f"(got {opt!r})"
            )
        tokens.append(opt)
    return MacroArgs(is_unstable="unstable" in tokens, is_v8="v8" in tokens)


# --------------------------
# Type shape helpers
# --------------------------

def _is_type_alias(tp: Any) -> bool:
    return _TypeAliasType is not None and isinstance(tp, _TypeAliasType)

def resolve_alias(tp: Any) -> Any:
    """
    Look through `type X = ...` aliases, including subscripted generic ones.
    Plain assignments (`IoResult = Result[T, OSError]`) need no resolution.
    """
    while True:
        if _is_type_alias(tp):
            tp = tp.__value__
            continue
        origin = typing.get_origin(tp)
        if origin is not None and _is_type_alias(origin):
            mapping = dict(zip(origin.__type_params__, typing.get_args(tp)))
            tp = substitute_type_params(origin.__value__, mapping)
            continue
        return tp

def _is_subclass(tp: Any, base: type) -> bool:
    return isinstance(tp, type) and issubclass(tp, base)

def is_void(tp: Any) -> bool:
    return tp is None or tp is _NONE_TYPE

def result_parts(tp: Any) -> Optional[Tuple[Any, Any]]:
    """
    Return (ok_payload, err_payload) if `tp` is a Result, else None.
    """
    tp = resolve_alias(tp)
    if typing.get_origin(tp) not in _UNION_ORIGINS:
        return None
    members = typing.get_args(tp)
    if len(members) != 2:
        return None
    ok = [m for m in members if m is Ok or typing.get_origin(m) is Ok]
    err = [m for m in members if m is Err or typing.get_origin(m) is Err]
    if len(ok) != 1 or len(err) != 1:
        return None
    ok_args = typing.get_args(ok[0])
    err_args = typing.get_args(err[0])
    return (ok_args[0] if ok_args else Any, err_args[0] if err_args else Any)

def is_result(tp: Any) -> bool:
    return result_parts(tp) is not None

def is_unit_result(tp: Any) -> bool:
    parts = result_parts(tp)
    return parts is not None and is_void(parts[0])

def future_output(tp: Any) -> Tuple[bool, Any]:
    """
    Return (True, output type) if `tp` is an awaitable shape, else (False, None).
    """
    tp = resolve_alias(tp)
    origin = typing.get_origin(tp) or tp
    args = typing.get_args(tp)
    if origin is collections.abc.Coroutine:
        return True, (args[2] if len(args) == 3 else Any)
    if origin in (collections.abc.Awaitable, asyncio.Future):
        return True, (args[0] if args else Any)
    return False, None

def is_future(tp: Any) -> bool:
    return future_output(tp)[0]

def classify_return(tp: Any) -> ReturnKind:
    if is_void(tp):
        return ReturnKind.VOID
    parts = result_parts(tp)
    if parts is None:
        return ReturnKind.PLAIN_VALUE
    if is_void(parts[0]):
        return ReturnKind.UNIT_RESULT
    return ReturnKind.VALUE_RESULT


# --------------------------
# Parameter shape predicates
# --------------------------

def is_mut_ref_opstate(tp: Any) -> bool:
    return _is_subclass(tp, OpState)

def is_rc_refcell_opstate(tp: Any) -> bool:
    if tp is StateCell:
        return True
    if typing.get_origin(tp) is not StateCell:
        return False
    args = typing.get_args(tp)
    return len(args) == 1 and _is_subclass(args[0], OpState)

def is_handle_scope(tp: Any) -> bool:
    return _is_subclass(tp, HandleScope)

def special_kind(tp: Any, margs: MacroArgs) -> Optional[ParamKind]:
    """
    Kind of a parameter satisfied from ambient context, or None for call arguments.
    Execution scopes are only recognized with the `v8` option.
    """
    if margs.is_v8 and is_handle_scope(tp):
        return ParamKind.EXECUTION_SCOPE
    if is_rc_refcell_opstate(tp):
        return ParamKind.SHARED_STATE_SHARED
    if is_mut_ref_opstate(tp):
        return ParamKind.SHARED_STATE_EXCLUSIVE
    return None

def is_ignored_name(name: str) -> bool:
    return name.startswith("_")


# --------------------------
# Generic parameters
# --------------------------

def _collect_generic_params(fn: Callable, hints: dict) -> Tuple[Any, ...]:
    found: List[Any] = []

    def add(p: Any) -> None:
        if p not in found:
            found.append(p)

    for p in getattr(fn, "__type_params__", ()):
        add(p)
    for tp in hints.values():
        if isinstance(tp, (TypeVar, typing.ParamSpec, typing.TypeVarTuple)):
            add(tp)
        for p in getattr(tp, "__parameters__", ()):
            add(p)
    return tuple(found)


# --------------------------
# Function analysis
# --------------------------

def _resolve_hints(fn: Callable) -> dict:
    try:
        return typing.get_type_hints(fn)
    except (NameError, TypeError, AttributeError) as ex:
        raise OpGenerationError(f"Cannot resolve annotations of {fn.__qualname__}: {ex}") from ex

def describe_function(fn: Callable, margs: Optional[MacroArgs] = None) -> FunctionDescriptor:
    """
    Analyze an op function and return its FunctionDescriptor.
    """
    margs = margs or MacroArgs()
    if not inspect.isfunction(fn):
        raise OpGenerationError(f"Ops expect a function, got {type(fn).__name__}")
    name = fn.__name__
    if inspect.isasyncgenfunction(fn) or inspect.isgeneratorfunction(fn):
        raise OpGenerationError(f"{name}: generator functions cannot be ops")

    sig = inspect.signature(fn)
    hints = _resolve_hints(fn)

    # Calling convention first: it decides the dynamic argument offset
    asyncness = inspect.iscoroutinefunction(fn)
    # No return annotation declares no return value
    return_annotation = hints.get("return", None)
    return_kind = classify_return(return_annotation)
    fallible_launch = False
    returns_future, future_out = future_output(return_annotation)

    if asyncness:
        is_async = True
        output_annotation, output_kind = return_annotation, return_kind
    elif returns_future:
        is_async = True
        output_annotation, output_kind = future_out, classify_return(future_out)
    else:
        parts = result_parts(return_annotation)
        if parts is not None and is_future(parts[0]):
            # Result[Awaitable[...], E]: launch may fail before anything is scheduled
            is_async = True
            fallible_launch = True
            output_annotation = future_output(parts[0])[1]
            output_kind = classify_return(output_annotation)
        else:
            is_async = False
            output_annotation, output_kind = return_annotation, return_kind

    v8_i0 = 1 if is_async else 0
    parameters: List[ParameterInfo] = []
    in_prefix = True
    seen_scope = False
    seen_state = False
    slot = 0

    for i, p in enumerate(sig.parameters.values()):
        if p.kind not in _POSITIONAL_KINDS:
            raise OpGenerationError(
                f"{name}: parameter '{p.name}' must be positional (no *args, **kwargs or keyword-only parameters)"
            )
        tp = hints.get(p.name, Any)
        kind = special_kind(tp, margs)

        if kind is not None:
            if not in_prefix:
                raise OpGenerationError(
                    f"{name}: special parameter '{p.name}' ({kind.name}) must precede all call arguments"
                )
            if kind is ParamKind.EXECUTION_SCOPE:
                if seen_scope:
                    raise OpGenerationError(f"{name}: more than one execution scope parameter ('{p.name}')")
                seen_scope = True
            else:
                if seen_state:
                    raise OpGenerationError(f"{name}: more than one shared state parameter ('{p.name}')")
                seen_state = True
            if asyncness and kind in (ParamKind.EXECUTION_SCOPE, ParamKind.SHARED_STATE_EXCLUSIVE):
                raise OpGenerationError(
                    f"{name}: async ops cannot take '{p.name}' ({kind.name}); use StateCell[OpState] instead"
                )
            parameters.append(ParameterInfo(name=p.name, annotation=tp, kind=kind, native_index=i))
            continue

        in_prefix = False
        kind = ParamKind.IGNORED if is_ignored_name(p.name) else ParamKind.SERIALIZED
        parameters.append(
            ParameterInfo(
                name=p.name,
                annotation=tp,
                kind=kind,
                native_index=i,
                dynamic_index=v8_i0 + slot,
                slot=slot,
                default=p.default,
            )
        )
        slot += 1

    desc = FunctionDescriptor(
        name=name,
        module=fn.__module__,
        qualname=fn.__qualname__,
        parameters=tuple(parameters),
        return_annotation=return_annotation,
        return_kind=return_kind,
        output_annotation=output_annotation,
        output_kind=output_kind,
        is_async=is_async,
        asyncness=asyncness,
        fallible_launch=fallible_launch,
        generic_params=_collect_generic_params(fn, hints),
    )
    logger.debug(
        "Classified %s: async=%s fallible_launch=%s return=%s output=%s params=%s",
        desc.qualname,
        desc.is_async,
        desc.fallible_launch,
        desc.return_kind.name,
        desc.output_kind.name,
        [f"{p.name}:{p.kind.name}" for p in desc.parameters],
    )
    return desc


__all__ = [
    "RECOGNIZED_OPTIONS",
    "parse_macro_args",
    "resolve_alias",
    "result_parts",
    "is_result",
    "is_unit_result",
    "is_void",
    "future_output",
    "is_future",
    "classify_return",
    "is_mut_ref_opstate",
    "is_rc_refcell_opstate",
    "is_handle_scope",
    "special_kind",
    "describe_function",
]
