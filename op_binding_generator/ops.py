#!/usr/bin/env python3
"""
The ``@op`` annotation and the generator behind it.

Decorating a function runs the whole pipeline once, ahead of any call:

    signature analysis -> call plan -> trampoline rendering -> compilation

and replaces the function with its generated op class:

    @op
    def op_add(a: int, b: int) -> int:
        return a + b

    op_add.name()        # "op_add"
    op_add.call(1, 2)    # the original function
    op_add.decl()        # OpDecl for an extension's op table
    op_add.v8_fn_ptr()   # host callback (scope, args, rv)

Options are given as strings: ``@op("unstable")``, ``@op("v8")`` or both.
"""

from __future__ import annotations

import inspect
from types import ModuleType
from typing import Any, Callable, List, Optional, Type
import logging

from .emitters.trampoline_emitter import TrampolineEmitter, TrampolineEmitterConfig
from .host import Serializer
from .models import MacroArgs
from .parsing.signature_parser import describe_function, parse_macro_args
from .runtime import GeneratedOp
from .serde import JsonSerializer
from .utils import TemplateRenderer

logger = logging.getLogger(__name__)


class OpGenerator:
    """
    Turns functions into generated op classes.

    A generator owns the serializer its ops decode/encode with and the renderer
    used for their templates:

        gen = OpGenerator(serializer=MySerializer())

        @gen.op("unstable")
        def op_foo(x: int) -> int: ...
    """

    def __init__(
        self,
        serializer: Optional[Serializer] = None,
        renderer: Optional[TemplateRenderer] = None,
        config: Optional[TrampolineEmitterConfig] = None,
    ) -> None:
        self.serializer = serializer or JsonSerializer()
        self.renderer = renderer or TemplateRenderer()
        self.emitter = TrampolineEmitter(self.renderer, config)

    def generate(self, fn: Callable, margs: Optional[MacroArgs] = None) -> Type[GeneratedOp]:
        margs = margs or MacroArgs()
        desc = describe_function(fn, margs)
        return self.emitter.compile_op(desc, margs, fn, self.serializer)

    def op(self, *options: Any) -> Any:
        """
        Decorator. Use as ``@gen.op``, ``@gen.op()`` or ``@gen.op("unstable", "v8")``.
        """
        if len(options) == 1 and inspect.isfunction(options[0]):
            return self.generate(options[0])
        margs = parse_macro_args(options)

        def decorator(fn: Callable) -> Type[GeneratedOp]:
            return self.generate(fn, margs)

        return decorator


_default_generator: Optional[OpGenerator] = None

def default_generator() -> OpGenerator:
    global _default_generator
    if _default_generator is None:
        _default_generator = OpGenerator()
    return _default_generator

def op(*options: Any) -> Any:
    """``@op`` with the default generator (JsonSerializer, package templates)."""
    return default_generator().op(*options)


def is_op(obj: Any) -> bool:
    return isinstance(obj, type) and issubclass(obj, GeneratedOp) and obj is not GeneratedOp

def collect_ops(module: ModuleType) -> List[Type[GeneratedOp]]:
    """
    Op classes defined by `module`, in definition order, bound under their own name.
    """
    found: List[Type[GeneratedOp]] = []
    for attr, value in vars(module).items():
        if not is_op(value) or value.__module__ != module.__name__:
            continue
        if attr != value.name():
            logger.warning("Skipping op %s bound as '%s' in %s", value.name(), attr, module.__name__)
            continue
        found.append(value)
    return found


__all__ = [
    "OpGenerator",
    "default_generator",
    "op",
    "is_op",
    "collect_ops",
]
