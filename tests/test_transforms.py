"""Tests for transformation binding and the chunk worker unit."""

import functools
import pickle
import threading

import pytest

from chunkmap.transforms import (
    BoundTransform,
    ChunkFailed,
    ChunkSpec,
    apply_chunk,
    bind_transform,
    describe_transform,
    make_chunks,
)


def _scale(x: float, factor: float = 1.0, offset: float = 0.0) -> float:
    return x * factor + offset


class _LockedError(Exception):
    def __init__(self) -> None:
        super().__init__("locked")
        self.lock = threading.Lock()


class _TwoArgError(Exception):
    def __init__(self, code: int, detail: str) -> None:
        super().__init__(f"{code}: {detail}")
        self.code = code
        self.detail = detail


class TestBindTransform:
    """Test explicit parameter binding."""

    def test_binds_keyword_parameters(self) -> None:
        transform = bind_transform(_scale, factor=2.0, offset=1.0)

        assert transform(3.0) == 7.0
        assert transform.kwargs == {"factor": 2.0, "offset": 1.0}

    def test_no_parameters(self) -> None:
        assert bind_transform(_scale)(4.0) == 4.0

    def test_rebinding_merges_parameters(self) -> None:
        """Test that binding a bound transform overrides and extends params."""
        base = bind_transform(_scale, factor=2.0)
        rebound = bind_transform(base, factor=3.0, offset=0.5)

        assert rebound.func is _scale
        assert rebound(2.0) == 6.5

    def test_is_picklable(self) -> None:
        transform = bind_transform(_scale, factor=5.0)

        restored = pickle.loads(pickle.dumps(transform))

        assert restored == transform
        assert restored(2.0) == 10.0

    def test_rejects_non_callable(self) -> None:
        with pytest.raises(TypeError):
            bind_transform(42, factor=1)

    def test_is_frozen(self) -> None:
        transform = bind_transform(_scale, factor=1.0)
        with pytest.raises(AttributeError):
            transform.func = abs  # type: ignore[misc]


class TestMakeChunks:
    """Test contiguous chunk partitioning."""

    def test_exact_multiple(self) -> None:
        assert make_chunks(6, 3) == [ChunkSpec(0, 0, 3), ChunkSpec(1, 3, 6)]

    def test_remainder(self) -> None:
        chunks = make_chunks(7, 3)

        assert [(c.start, c.stop) for c in chunks] == [(0, 3), (3, 6), (6, 7)]
        assert chunks[-1].size == 1

    def test_empty(self) -> None:
        assert make_chunks(0, 10) == []

    def test_single_chunk_when_larger_than_input(self) -> None:
        assert make_chunks(5, 250) == [ChunkSpec(0, 0, 5)]


class TestApplyChunk:
    """Test the per-chunk worker unit."""

    def test_returns_results_in_order(self) -> None:
        chunk = ChunkSpec(index=2, start=20, stop=23)

        index, outcome = apply_chunk(abs, chunk, [-1, 2, -3])

        assert index == 2
        assert outcome == [1, 2, 3]

    def test_failure_carries_absolute_position(self) -> None:
        chunk = ChunkSpec(index=1, start=10, stop=14)

        with pytest.raises(ChunkFailed) as excinfo:
            apply_chunk(lambda x: 1 / x, chunk, [1, 2, 0, 4])

        failure = excinfo.value
        assert failure.chunk_index == 1
        assert failure.position == 12
        assert isinstance(failure.error, ZeroDivisionError)
        assert "ZeroDivisionError" in failure.traceback_text

    def test_failure_survives_pickle_round_trip(self) -> None:
        with pytest.raises(ChunkFailed) as excinfo:
            apply_chunk(int, ChunkSpec(3, 30, 32), ["1", "x"], portable_errors=True)

        rebuilt = pickle.loads(pickle.dumps(excinfo.value))

        assert rebuilt.chunk_index == 3
        assert rebuilt.position == 31
        assert isinstance(rebuilt.error, ValueError)
        assert rebuilt.traceback_text == excinfo.value.traceback_text

    def test_stops_at_first_failure(self) -> None:
        seen = []

        def record(x: int) -> int:
            seen.append(x)
            if x == 1:
                raise ValueError(x)
            return x

        with pytest.raises(ChunkFailed):
            apply_chunk(record, ChunkSpec(0, 0, 3), [0, 1, 2])

        assert seen == [0, 1]

    def test_unpicklable_error_is_replaced(self) -> None:
        """Test that an error holding a lock still crosses process boundaries."""

        def raise_locked(x: int) -> int:
            raise _LockedError()

        with pytest.raises(ChunkFailed) as excinfo:
            apply_chunk(raise_locked, ChunkSpec(0, 5, 6), [1], portable_errors=True)

        error = excinfo.value.error
        assert isinstance(error, RuntimeError)
        assert "_LockedError" in str(error)
        pickle.loads(pickle.dumps(error))

    def test_error_that_cannot_be_rebuilt_is_replaced(self) -> None:
        """Test an error that pickles but fails to unpickle."""

        def raise_two_arg(x: int) -> int:
            raise _TwoArgError(404, "missing")

        pickle.dumps(_TwoArgError(404, "missing"))
        with pytest.raises(ChunkFailed) as excinfo:
            apply_chunk(raise_two_arg, ChunkSpec(0, 0, 1), [1], portable_errors=True)

        error = excinfo.value.error
        assert isinstance(error, RuntimeError)
        assert "_TwoArgError" in str(error)
        pickle.loads(pickle.dumps(excinfo.value))

    def test_errors_kept_as_is_without_portable_errors(self) -> None:
        def raise_locked(x: int) -> int:
            raise _LockedError()

        with pytest.raises(ChunkFailed) as excinfo:
            apply_chunk(raise_locked, ChunkSpec(0, 0, 1), [1])

        assert isinstance(excinfo.value.error, _LockedError)


class TestDescribeTransform:
    def test_function(self) -> None:
        assert describe_transform(_scale) == "_scale"

    def test_bound(self) -> None:
        assert describe_transform(bind_transform(_scale, factor=2)) == "_scale[factor]"

    def test_partial(self) -> None:
        assert describe_transform(functools.partial(_scale, factor=2)) == "partial"

    def test_bound_transform_type(self) -> None:
        assert isinstance(bind_transform(_scale), BoundTransform)
