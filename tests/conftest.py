from __future__ import annotations

import asyncio
from typing import Any, List, Tuple

import pytest

from op_binding_generator.host import FunctionCallbackArguments, HandleScope, ReturnValue
from op_binding_generator.ops import OpGenerator
from op_binding_generator.runtime import OpCtx
from op_binding_generator.serde import JsonSerializer
from op_binding_generator.state import OpState, StateCell

OP_ID = 7


class FakeScope(HandleScope):
    """Records everything a trampoline hands to the host."""

    def __init__(self) -> None:
        self.type_errors: List[str] = []
        self.queued: List[Any] = []
        self.completed: List[Tuple[int, int, Any]] = []
        self.failed: List[Tuple[int, int, str]] = []

    def throw_type_error(self, message: str) -> None:
        self.type_errors.append(message)

    def queue_async_op(self, computation: Any) -> None:
        self.queued.append(computation)

    def complete_async_op(self, promise_id: int, op_id: int, result: Any) -> None:
        self.completed.append((promise_id, op_id, result))

    def fail_async_op(self, promise_id: int, op_id: int, message: str) -> None:
        self.failed.append((promise_id, op_id, message))

    def run_queued(self) -> List[Tuple[int, int, Any]]:
        """Settle every queued computation and deliver the outcomes, like an event loop would."""
        queued, self.queued = self.queued, []

        async def drain():
            return [await c for c in queued]

        settled = [s for s in asyncio.run(drain()) if s is not None]
        for promise_id, op_id, result in settled:
            self.complete_async_op(promise_id, op_id, result)
        return settled


class SpySerializer(JsonSerializer):
    """JsonSerializer that counts conversions."""

    def __init__(self) -> None:
        super().__init__()
        self.decoded = 0
        self.encoded = 0

    def from_value(self, value: Any, native_type: Any) -> Any:
        self.decoded += 1
        return super().from_value(value, native_type)

    def to_value(self, native: Any) -> Any:
        self.encoded += 1
        return super().to_value(native)


def classify_error(error: Any) -> str:
    if isinstance(error, FileNotFoundError):
        return "NotFound"
    if isinstance(error, TypeError):
        return "TypeError"
    return "Error"


@pytest.fixture
def op_state() -> OpState:
    return OpState(get_error_class_fn=classify_error)


@pytest.fixture
def ctx(op_state: OpState) -> OpCtx:
    return OpCtx(id=OP_ID, state=StateCell(op_state))


@pytest.fixture
def scope() -> FakeScope:
    return FakeScope()


@pytest.fixture
def serde() -> SpySerializer:
    return SpySerializer()


@pytest.fixture
def gen(serde: SpySerializer) -> OpGenerator:
    return OpGenerator(serializer=serde)


@pytest.fixture
def invoke(scope: FakeScope, ctx: OpCtx):
    """Call an op's host callback the way the engine would; returns the return slot."""

    def _invoke(op_cls, *values, type_args=()):
        rv = ReturnValue()
        op_cls.v8_fn_ptr(*type_args)(scope, FunctionCallbackArguments(ctx, values), rv)
        return rv

    return _invoke
