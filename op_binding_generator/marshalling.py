#!/usr/bin/env python3
"""
Argument marshalling and special parameter binding for trampolines.

Given a FunctionDescriptor, this module computes how every native parameter is
satisfied and renders the Python statements that do it. The statements are
plain source lines meant to be dropped into the trampoline templates:

- Special parameters (execution scope, shared state) are bound from the
  ambient call context and spliced ahead of the marshalled arguments.
- Ignored parameters occupy a dynamic argument slot but bind ``None``.
- Serialized parameters read ``args.get(i)`` and decode through the
  serializer; a decode failure throws a type error into the host and returns
  before the op is invoked or anything is scheduled.

Names available to the rendered lines: ``scope``, ``args``, ``ctx``,
``arg_types``, ``arg_defaults``, ``_serde``, ``_ops`` and ``_call``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .models import FunctionDescriptor, ParameterInfo, ParamKind

INDENT = "    "

# Local bound to the exclusive OpState view while the op runs
EXCLUSIVE_STATE_LOCAL = "exclusive_state"


@dataclass(frozen=True)
class ArgBinding:
    """
    How one native parameter gets its value.
    """
    param: ParameterInfo
    # Python expression passed to the op in this parameter's position
    expr: str
    # Statements that must run before the call (decode, defaults)
    pre_call_lines: Tuple[str, ...] = ()

    @property
    def kind(self) -> ParamKind:
        return self.param.kind


@dataclass
class CallPlan:
    """
    Full binding plan for one op call, ready for the templates.
    """
    special_bindings: List[ArgBinding] = field(default_factory=list)
    arg_bindings: List[ArgBinding] = field(default_factory=list)

    @property
    def bindings(self) -> List[ArgBinding]:
        return self.special_bindings + self.arg_bindings

    @property
    def needs_exclusive_state(self) -> bool:
        return any(b.kind is ParamKind.SHARED_STATE_EXCLUSIVE for b in self.special_bindings)

    @property
    def call_args(self) -> str:
        return ", ".join(b.expr for b in self.bindings)

    @property
    def pre_call_lines(self) -> List[str]:
        lines: List[str] = []
        for b in self.arg_bindings:
            lines.extend(b.pre_call_lines)
        return lines

    def call_lines(self, target: str) -> List[str]:
        """
        Statements invoking the op and assigning its return value to `target`.
        The exclusive state borrow only spans the call itself.
        """
        call = f"{target} = _call({self.call_args})"
        if self.needs_exclusive_state:
            return [
                f"with ctx.state.borrow_mut() as {EXCLUSIVE_STATE_LOCAL}:",
                f"{INDENT}{call}",
            ]
        return [call]


# --------------------------
# Special parameter binder
# --------------------------

def bind_special(param: ParameterInfo) -> ArgBinding:
    if param.kind is ParamKind.EXECUTION_SCOPE:
        return ArgBinding(param=param, expr="scope")
    if param.kind is ParamKind.SHARED_STATE_SHARED:
        return ArgBinding(param=param, expr="ctx.state")
    if param.kind is ParamKind.SHARED_STATE_EXCLUSIVE:
        return ArgBinding(param=param, expr=EXCLUSIVE_STATE_LOCAL)
    raise ValueError(f"{param.name} is not a special parameter ({param.kind.name})")


# --------------------------
# Argument marshaller
# --------------------------

def codegen_arg(param: ParameterInfo, local: str) -> List[str]:
    """
    Statements binding `local` from the dynamic argument at `param.dynamic_index`.
    """
    idx = param.dynamic_index
    if param.kind is ParamKind.IGNORED:
        # Fast path: the slot is consumed but never decoded
        return [f"{local} = None"]

    decode = [
        f"{local} = args.get({idx})",
        "try:",
        f"{INDENT}{local} = _serde.from_value({local}, arg_types[{param.slot}])",
        "except _ops.SerializationError as err:",
        f"{INDENT}msg = \"Error parsing args at position {{}}: {{}}\".format({idx}, err)",
        f"{INDENT}return _ops.throw_type_error(scope, msg)",
    ]
    if not param.has_default:
        return decode
    lines = [f"if args.length() > {idx}:"]
    lines.extend(INDENT + line for line in decode)
    lines.append("else:")
    lines.append(f"{INDENT}{local} = arg_defaults[{param.slot}]")
    return lines


def bind_argument(param: ParameterInfo) -> ArgBinding:
    local = f"arg_{param.slot}"
    return ArgBinding(param=param, expr=local, pre_call_lines=tuple(codegen_arg(param, local)))


def plan_call(desc: FunctionDescriptor) -> CallPlan:
    """
    Compute the CallPlan for an op: special prefix first, then marshalled arguments.
    """
    plan = CallPlan()
    for p in desc.parameters:
        if p.kind.is_special:
            plan.special_bindings.append(bind_special(p))
        else:
            plan.arg_bindings.append(bind_argument(p))
    return plan


__all__ = [
    "ArgBinding",
    "CallPlan",
    "bind_special",
    "codegen_arg",
    "bind_argument",
    "plan_call",
]
