import pytest

from op_binding_generator.runtime import OpCtx
from op_binding_generator.state import BorrowError, OpState, OpsTracker, StateCell


class Config:
    pass


def test_shared_borrows_overlap():
    cell = StateCell(OpState())
    with cell.borrow() as a, cell.borrow() as b:
        assert a is b


def test_exclusive_borrow_conflicts():
    cell = StateCell(OpState())
    with cell.borrow():
        with pytest.raises(BorrowError):
            with cell.borrow_mut():
                pass
    with cell.borrow_mut():
        with pytest.raises(BorrowError):
            with cell.borrow():
                pass
    # Both released
    with cell.borrow_mut():
        pass


def test_borrow_is_released_on_error():
    cell = StateCell(OpState())
    with pytest.raises(ValueError):
        with cell.borrow_mut():
            raise ValueError("boom")
    with cell.borrow():
        pass


def test_type_keyed_store():
    state = OpState()
    config = Config()
    assert not state.has(Config)
    assert state.try_borrow(Config) is None
    state.put(config)
    assert state.borrow(Config) is config
    assert state.take(Config) is config
    with pytest.raises(KeyError, match="Config is not present"):
        state.borrow(Config)


def test_tracker():
    tracker = OpsTracker()
    tracker.track_sync(1)
    tracker.track_sync(1)
    tracker.track_async(2)
    assert tracker.metrics(1).ops_dispatched_sync == 2
    assert tracker.metrics(2).ops_dispatched_async == 1
    assert tracker.metrics(3).ops_dispatched_sync == 0


def test_default_error_class():
    assert OpState().get_error_class_fn(ValueError()) == "Error"


def test_op_ctx_reads_the_classifier_from_state():
    classify = lambda error: "Custom"  # noqa: E731
    ctx = OpCtx(id=1, state=StateCell(OpState(get_error_class_fn=classify)))
    assert ctx.get_error_class_fn is classify
