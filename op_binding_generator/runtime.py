"""
Runtime support for generated op classes.

Generated trampolines import this module as ``_ops`` and call nothing else of
the package. It holds the op context attached to every host callback, the
thin forwarding helpers towards the host scope, and ``GeneratedOp``, the base
class of every generated op.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, ClassVar, Dict, Optional, Tuple
import logging

from .emitters.declaration_emitter import build_op_decl
from .encoding import OpError, OpResult, OpTypeError, to_op_result
from .host import FunctionCallbackArguments, HandleScope, ReturnValue, SerializationError
from .models import FunctionDescriptor, OpDecl
from .results import Err, Ok
from .state import OpState, StateCell

logger = logging.getLogger(__name__)


@dataclass
class OpCtx:
    """
    Per-op context attached by the runtime to the host callback (``args.data()``).
    The error classifier lives in the shared state (``state.get_error_class_fn``).
    """
    id: int
    state: StateCell[OpState]

    @property
    def get_error_class_fn(self) -> Callable[[Any], str]:
        with self.state.borrow() as op_state:
            return op_state.get_error_class_fn


def op_ctx(args: FunctionCallbackArguments) -> OpCtx:
    ctx = args.data()
    if not isinstance(ctx, OpCtx):
        raise TypeError(f"op callback data must be an OpCtx, got {type(ctx).__name__}")
    return ctx


def parse_promise_id(value: Any) -> Optional[int]:
    """Integer promise id from a dynamic value, or None if it is not an integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def throw_type_error(scope: HandleScope, message: str) -> None:
    logger.debug("Throwing TypeError: %s", message)
    scope.throw_type_error(message)


def queue_async_op(scope: HandleScope, computation: Awaitable[Optional[Tuple[int, int, OpResult]]]) -> None:
    scope.queue_async_op(computation)


def complete_async_op(scope: HandleScope, promise_id: int, op_id: int, result: OpResult) -> None:
    scope.complete_async_op(promise_id, op_id, result)


def fail_async_op(scope: HandleScope, promise_id: int, op_id: int, message: str) -> None:
    logger.debug("Async op %d (promise %d) failed: %s", op_id, promise_id, message)
    scope.fail_async_op(promise_id, op_id, message)


def unwrap_op(obj: Any) -> Callable:
    """The original function behind a generated op class, or `obj` itself."""
    if isinstance(obj, type) and issubclass(obj, GeneratedOp):
        return obj.call
    return obj


# --------------------------
# Generated op base class
# --------------------------

class GeneratedOp:
    """
    Base class of generated ops. Subclasses are rendered from templates and provide
    `call`, `descriptor`, the flag attributes, `name()` and `_make_v8_func()`.
    """

    call: ClassVar[Callable]
    descriptor: ClassVar[FunctionDescriptor]
    is_async: ClassVar[bool] = False
    is_unstable: ClassVar[bool] = False
    is_v8: ClassVar[bool] = False
    source: ClassVar[str] = ""

    _v8_funcs: ClassVar[Dict[Tuple[Any, ...], Callable]]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._v8_funcs = {}

    @staticmethod
    def name() -> str:
        raise NotImplementedError

    @staticmethod
    def _make_v8_func(arg_types: Tuple[Any, ...]) -> Callable[[HandleScope, FunctionCallbackArguments, ReturnValue], None]:
        raise NotImplementedError

    @classmethod
    def v8_fn_ptr(cls, *type_args: Any) -> Callable[[HandleScope, FunctionCallbackArguments, ReturnValue], None]:
        """Host callback for this op, with the op's type parameters bound to `type_args`."""
        key = tuple(type_args)
        fn = cls._v8_funcs.get(key)
        if fn is None:
            fn = cls._make_v8_func(cls.descriptor.arg_types_for(key))
            cls._v8_funcs[key] = fn
        return fn

    @classmethod
    def v8_func(cls, scope: HandleScope, args: FunctionCallbackArguments, rv: ReturnValue) -> None:
        cls.v8_fn_ptr()(scope, args, rv)

    @classmethod
    def decl(cls, *type_args: Any) -> OpDecl:
        return build_op_decl(cls, type_args)


__all__ = [
    "OpCtx",
    "GeneratedOp",
    "op_ctx",
    "parse_promise_id",
    "throw_type_error",
    "queue_async_op",
    "complete_async_op",
    "fail_async_op",
    "unwrap_op",
    "Ok",
    "Err",
    "OpError",
    "OpResult",
    "OpTypeError",
    "SerializationError",
    "to_op_result",
]
