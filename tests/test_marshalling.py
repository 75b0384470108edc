from typing import Any

import pytest

from op_binding_generator.host import HandleScope
from op_binding_generator.marshalling import bind_special, codegen_arg, plan_call
from op_binding_generator.models import MacroArgs, ParameterInfo, ParamKind
from op_binding_generator.parsing.signature_parser import describe_function
from op_binding_generator.state import OpState, StateCell


def test_ignored_argument_is_never_decoded():
    param = ParameterInfo(name="_x", annotation=int, kind=ParamKind.IGNORED, native_index=0, dynamic_index=0, slot=0)
    assert codegen_arg(param, "arg_0") == ["arg_0 = None"]


def test_serialized_argument_reads_its_dynamic_position():
    param = ParameterInfo(name="x", annotation=int, kind=ParamKind.SERIALIZED, native_index=2, dynamic_index=1, slot=0)
    lines = codegen_arg(param, "arg_0")
    assert lines[0] == "arg_0 = args.get(1)"
    assert "_serde.from_value(arg_0, arg_types[0])" in lines[2]
    assert any("Error parsing args at position {}: {}\".format(1, err)" in line for line in lines)
    assert lines[-1].strip() == "return _ops.throw_type_error(scope, msg)"


def test_default_is_used_when_the_argument_is_absent():
    param = ParameterInfo(
        name="x", annotation=int, kind=ParamKind.SERIALIZED, native_index=0, dynamic_index=0, slot=0, default=5
    )
    lines = codegen_arg(param, "arg_0")
    assert lines[0] == "if args.length() > 0:"
    assert lines[-2:] == ["else:", "    arg_0 = arg_defaults[0]"]


def test_bind_special_rejects_call_arguments():
    param = ParameterInfo(name="x", annotation=Any, kind=ParamKind.SERIALIZED, native_index=0, dynamic_index=0, slot=0)
    with pytest.raises(ValueError):
        bind_special(param)


def test_special_arguments_are_spliced_first():
    def op_scoped(scope: HandleScope, state: StateCell[OpState], a: int, _b: str) -> None:
        pass

    plan = plan_call(describe_function(op_scoped, MacroArgs(is_v8=True)))
    assert plan.call_args == "scope, ctx.state, arg_0, arg_1"
    assert not plan.needs_exclusive_state
    assert plan.call_lines("result") == ["result = _call(scope, ctx.state, arg_0, arg_1)"]


def test_exclusive_state_borrow_spans_the_call():
    def op_mut(state: OpState, a: int) -> int:
        return a

    plan = plan_call(describe_function(op_mut))
    assert plan.needs_exclusive_state
    assert plan.call_lines("result") == [
        "with ctx.state.borrow_mut() as exclusive_state:",
        "    result = _call(exclusive_state, arg_0)",
    ]
    # Decoding happens before the borrow is taken
    assert plan.pre_call_lines[0] == "arg_0 = args.get(0)"


def test_async_plan_is_offset_by_the_promise_id():
    async def op_wait(ms: int) -> None:
        pass

    plan = plan_call(describe_function(op_wait))
    assert plan.pre_call_lines[0] == "arg_0 = args.get(1)"
