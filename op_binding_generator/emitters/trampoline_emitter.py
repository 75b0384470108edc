#!/usr/bin/env python3
"""
Trampoline emitter: renders and compiles the op class for one function.

This module takes a FunctionDescriptor, picks the dispatch strategy and uses
the Jinja2-based renderer to emit Python source for:

- a factory ``_define_<op>(_call, _descriptor, _serde)`` returning the op class
- the class surface: ``name()``, flags, ``call`` and ``_make_v8_func()``
- the trampoline body (synchronous or asynchronous), built from the
  marshalling and encoding snippets

The same source is compiled in-process for ``@op`` and written to disk by the
offline module emitter.
"""

from __future__ import annotations

import linecache
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional, Type
import logging

from .. import runtime
from ..encoding import codegen_sync_ret, encodes_ok, wraps_ok
from ..host import Serializer
from ..marshalling import CallPlan, plan_call
from ..models import FunctionDescriptor, MacroArgs, OpGenerationError
from ..utils import TemplateRenderer

logger = logging.getLogger(__name__)


# --------------------------
# Dispatch strategy
# --------------------------

class Dispatch(Enum):
    SYNC = auto()
    ASYNC = auto()


def select_dispatch(desc: FunctionDescriptor) -> Dispatch:
    return Dispatch.ASYNC if desc.is_async else Dispatch.SYNC


# --------------------------
# Configuration
# --------------------------

@dataclass(frozen=True)
class TrampolineEmitterConfig:
    """
    Template names used to render an op. Override them to use custom templates
    from a user templates directory (see utils.TemplateRenderer for layering).
    """
    op_template: str = "op_class.py.j2"
    sync_body_template: str = "sync_body.py.j2"
    async_body_template: str = "async_body.py.j2"


# --------------------------
# Emitter
# --------------------------

class TrampolineEmitter:
    """
    Render and compile generated op classes.

    Usage:
        emitter = TrampolineEmitter(renderer)
        source = emitter.render_op(desc, margs)
        op_cls = emitter.compile_op(desc, margs, fn, serializer)
    """

    def __init__(self, renderer: TemplateRenderer, config: Optional[TrampolineEmitterConfig] = None) -> None:
        self.renderer = renderer
        self.config = config or TrampolineEmitterConfig()

    # ---- Public API ----

    def render_op(self, desc: FunctionDescriptor, margs: MacroArgs) -> str:
        """
        Python source of the `_define_<op>` factory for one op.
        """
        plan = plan_call(desc)
        context: Dict[str, Any] = {
            "name": desc.name,
            "is_async": desc.is_async,
            "is_unstable": margs.is_unstable,
            "is_v8": margs.is_v8,
            "body": self._render_body(desc, plan).rstrip("\n"),
        }
        return self.renderer.render(self.config.op_template, context)

    def compile_op(
        self,
        desc: FunctionDescriptor,
        margs: MacroArgs,
        fn: Callable,
        serializer: Serializer,
    ) -> Type[runtime.GeneratedOp]:
        """
        Render, compile and instantiate the op class for `fn`.
        """
        source = self.render_op(desc, margs)
        filename = f"<op_binding_generator:{desc.module}.{desc.qualname}>"
        # Make generated lines visible in tracebacks
        linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)
        try:
            code = compile(source, filename, "exec")
        except SyntaxError as ex:
            logger.error("Generated trampoline for %s does not compile:\n%s", desc.qualname, source)
            raise OpGenerationError(f"Generated trampoline for {desc.qualname} does not compile: {ex}") from ex

        namespace: Dict[str, Any] = {"_ops": runtime, "__name__": desc.module}
        exec(code, namespace)
        op_cls = namespace[f"_define_{desc.name}"](fn, desc, serializer)
        op_cls.source = source
        logger.debug(
            "Generated op %s (%s dispatch, %d dynamic argument(s))",
            desc.qualname,
            select_dispatch(desc).name.lower(),
            desc.dynamic_arg_count,
        )
        return op_cls

    # ---- Internals ----

    def _render_body(self, desc: FunctionDescriptor, plan: CallPlan) -> str:
        if select_dispatch(desc) is Dispatch.ASYNC:
            context: Dict[str, Any] = {
                "pre_call_lines": plan.pre_call_lines,
                "call_lines": plan.call_lines("result_fut"),
                "fallible_launch": desc.fallible_launch,
                "wrap_ok": wraps_ok(desc.output_kind),
                "encode_ok": encodes_ok(desc.output_kind),
            }
            return self.renderer.render(self.config.async_body_template, context)
        context = {
            "pre_call_lines": plan.pre_call_lines,
            "call_lines": plan.call_lines("result"),
            "ret_lines": codegen_sync_ret(desc.return_kind),
        }
        return self.renderer.render(self.config.sync_body_template, context)


__all__ = [
    "Dispatch",
    "select_dispatch",
    "TrampolineEmitterConfig",
    "TrampolineEmitter",
]
