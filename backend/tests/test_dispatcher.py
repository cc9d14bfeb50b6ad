"""
Tests for the concurrent fan-out dispatcher.
"""
import threading

import pytest

from s3gateway.storage.dispatcher import OperationDispatcher


@pytest.fixture
def pool():
    dispatcher = OperationDispatcher(max_workers=3)
    yield dispatcher
    dispatcher.shutdown()


class TestOperationDispatcher:
    """Tests for OperationDispatcher.dispatch."""

    def test_empty_targets_return_empty_list(self, pool):
        """No targets means no task and no outcome."""
        calls = []

        outcomes = pool.dispatch({}, lambda name, handle: calls.append(name))

        assert outcomes == []
        assert calls == []

    def test_one_outcome_per_target(self, pool):
        """Every target gets exactly one outcome carrying the op's value."""
        targets = {"minio": 1, "r2": 2, "aws": 3}

        outcomes = pool.dispatch(targets, lambda name, handle: handle * 10)

        assert sorted(outcome.backend for outcome in outcomes) == ["aws", "minio", "r2"]
        assert all(outcome.success for outcome in outcomes)
        assert {outcome.backend: outcome.value for outcome in outcomes} == {"minio": 10, "r2": 20, "aws": 30}

    def test_failure_is_isolated(self, pool):
        """A raising backend yields a failed outcome; siblings still succeed."""
        def op(name, handle):
            if name == "r2":
                raise RuntimeError("connection reset")
            return f"{name}-ok"

        outcomes = {o.backend: o for o in pool.dispatch({"minio": None, "r2": None, "aws": None}, op)}

        assert outcomes["r2"].success is False
        assert outcomes["r2"].message == "connection reset"
        assert outcomes["r2"].value is None
        assert outcomes["minio"].value == "minio-ok"
        assert outcomes["aws"].value == "aws-ok"

    def test_failure_without_message_uses_exception_name(self, pool):
        """An exception with an empty message is reported by its class name."""
        def op(name, handle):
            raise TimeoutError()

        outcomes = pool.dispatch({"minio": None}, op)

        assert outcomes[0].success is False
        assert outcomes[0].message == "TimeoutError"

    def test_calls_run_concurrently(self, pool):
        """All targets are in flight at the same time."""
        barrier = threading.Barrier(3, timeout=5)

        def op(name, handle):
            barrier.wait()
            return threading.current_thread().name

        outcomes = pool.dispatch({"minio": None, "r2": None, "aws": None}, op)

        assert all(outcome.success for outcome in outcomes)
        assert len({outcome.value for outcome in outcomes}) == 3
        assert all(outcome.value.startswith("storage-fanout") for outcome in outcomes)

    def test_max_workers(self, pool):
        """Pool size is fixed at construction."""
        assert pool.max_workers == 3
