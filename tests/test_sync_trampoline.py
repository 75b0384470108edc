import errno
from dataclasses import dataclass
from typing import Dict, List, TypeVar

import pytest

from op_binding_generator.host import HandleScope
from op_binding_generator.models import OpGenerationError
from op_binding_generator.results import Err, Ok, Result
from op_binding_generator.runtime import GeneratedOp
from op_binding_generator.state import OpState, StateCell

from conftest import OP_ID

T = TypeVar("T")


@dataclass
class Counter:
    value: int = 0


def _sync_calls(op_state):
    return op_state.tracker.metrics(OP_ID).ops_dispatched_sync


def test_sync_op_equals_direct_call(gen, invoke, op_state, scope):
    @gen.op
    def op_add(a: int, b: int) -> int:
        return a + b

    assert issubclass(op_add, GeneratedOp)
    assert op_add.name() == "op_add"
    rv = invoke(op_add, 1, 2)
    assert rv.get() == op_add.call(1, 2) == 3
    assert scope.type_errors == []
    assert _sync_calls(op_state) == 1


def test_void_op_leaves_the_return_slot_untouched(gen, invoke, serde):
    calls = []

    @gen.op()
    def op_log(message: str) -> None:
        calls.append(message)

    rv = invoke(op_log, "hello")
    assert calls == ["hello"]
    assert not rv.is_set
    assert serde.encoded == 0


def test_unit_result_success_performs_no_encoding(gen, invoke, serde):
    @gen.op
    def op_check(flag: bool) -> Result[None, ValueError]:
        return Ok() if flag else Err(ValueError("flag is off"))

    rv = invoke(op_check, True)
    assert not rv.is_set
    assert serde.encoded == 0

    rv = invoke(op_check, False)
    assert rv.get() == {"class": "Error", "message": "flag is off"}
    assert serde.encoded == 1


def test_value_result(gen, invoke):
    @gen.op
    def op_lookup(table: Dict[str, List[int]], key: str) -> Result[List[int], OSError]:
        if key not in table:
            return Err(FileNotFoundError(errno.ENOENT, "no such key"))
        return Ok(table[key])

    assert invoke(op_lookup, {"a": [1, 2]}, "a").get() == [1, 2]
    assert invoke(op_lookup, {}, "a").get() == {
        "class": "NotFound",
        "message": "[Errno 2] no such key",
        "code": "ENOENT",
    }


def test_decode_failure_names_the_position_and_skips_the_call(gen, invoke, scope, op_state):
    calls = []

    @gen.op
    def op_add(a: int, b: int) -> int:
        calls.append((a, b))
        return a + b

    rv = invoke(op_add, 1, "two")
    assert len(scope.type_errors) == 1
    assert scope.type_errors[0].startswith("Error parsing args at position 1: ")
    assert calls == []
    assert not rv.is_set
    assert _sync_calls(op_state) == 0


def test_missing_argument_fails_to_decode(gen, invoke, scope):
    @gen.op
    def op_neg(a: int) -> int:
        return -a

    invoke(op_neg)
    assert scope.type_errors[0].startswith("Error parsing args at position 0: ")


def test_encode_failure_is_a_type_error(gen, invoke, scope):
    @gen.op
    def op_opaque() -> object:
        return object()

    rv = invoke(op_opaque)
    assert not rv.is_set
    assert scope.type_errors[0].startswith("Error serializing return: ")


def test_exclusive_state_is_borrowed_for_the_call(gen, invoke, op_state, ctx):
    op_state.put(Counter())

    @gen.op
    def op_bump(state: OpState, by: int) -> int:
        counter = state.borrow(Counter)
        counter.value += by
        return counter.value

    assert invoke(op_bump, 5).get() == 5
    assert invoke(op_bump, 2).get() == 7
    # Released after the call
    with ctx.state.borrow_mut() as state:
        assert state.borrow(Counter).value == 7


def test_shared_state_receives_the_cell(gen, invoke, ctx):
    seen = []

    @gen.op
    def op_keep(state: StateCell[OpState]) -> None:
        seen.append(state)

    invoke(op_keep)
    assert seen == [ctx.state]


def test_v8_op_receives_the_scope(gen, invoke, scope):
    @gen.op("v8")
    def op_throw(s: HandleScope, message: str) -> None:
        s.throw_type_error(message)

    invoke(op_throw, "boom")
    assert op_throw.is_v8
    assert scope.type_errors == ["boom"]


def test_defaults_fill_absent_arguments(gen, invoke):
    @gen.op
    def op_greet(name: str, punctuation: str = "!") -> str:
        return name + punctuation

    assert invoke(op_greet, "hi").get() == "hi!"
    assert invoke(op_greet, "hi", "?").get() == "hi?"


def test_ignored_arguments_consume_a_slot(gen, invoke, serde):
    received = []

    @gen.op
    def op_double(_reserved: int, x: int) -> int:
        received.append(_reserved)
        return x * 2

    assert invoke(op_double, "not decoded", 4).get() == 8
    assert received == [None]
    assert serde.decoded == 1


def test_generic_op_is_instantiated_per_type_argument(gen, invoke, scope):
    @gen.op
    def op_echo(value: T) -> T:
        return value

    assert invoke(op_echo, "3").get() == "3"
    assert invoke(op_echo, 3, type_args=(int,)).get() == 3
    assert not invoke(op_echo, "3", type_args=(int,)).is_set
    assert scope.type_errors[0].startswith("Error parsing args at position 0: ")
    assert op_echo.v8_fn_ptr(int) is op_echo.v8_fn_ptr(int)
    assert op_echo.v8_fn_ptr(int) is not op_echo.v8_fn_ptr(str)
    with pytest.raises(OpGenerationError):
        op_echo.v8_fn_ptr(int, str)


def test_generated_source_is_kept(gen):
    @gen.op
    def op_id(x: int) -> int:
        return x

    assert "def _define_op_id(_call, _descriptor, _serde):" in op_id.source
    assert "class op_id(_ops.GeneratedOp):" in op_id.source
    assert op_id.__qualname__.endswith("op_id")


def test_unannotated_op_writes_nothing(gen, invoke, serde):
    logged = []

    @gen.op
    def op_log(message: str):
        logged.append(message)

    rv = invoke(op_log, "hello")
    assert logged == ["hello"]
    assert not rv.is_set
    assert serde.encoded == 0
