"""
Concurrent fan-out of one operation across several storage backends.

Each backend call runs as its own task on a fixed-size thread pool; the
caller blocks until every task has finished. A fault inside one task is
caught at that task's boundary and turned into a failed BackendOutcome,
so sibling calls are never affected and nothing propagates to the caller.

There is no retry or timeout here: retries belong inside the operation,
and a hung backend call holds its slot until the client library gives up.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, List, Mapping, TypeVar

from s3gateway.storage.results import BackendOutcome
from s3gateway.utils.logging import log_backend_failure
from s3gateway.utils.metrics import (
    storage_backend_operations_total,
    storage_backend_operation_duration_seconds,
)

logger = logging.getLogger(__name__)

H = TypeVar("H")
T = TypeVar("T")


class OperationDispatcher:
    """
    Runs a per-backend operation on every target concurrently.

    The pool is created once at startup and shut down once at shutdown
    (see s3gateway.main). Thread count does not grow with request volume.
    """

    def __init__(self, max_workers: int = 10):
        self._max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="storage-fanout"
        )
        logger.info(f"Storage dispatcher started with {max_workers} workers")

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def dispatch(
        self,
        targets: Mapping[str, H],
        op: Callable[[str, H], T],
        operation: str = "operation"
    ) -> List[BackendOutcome[T]]:
        """
        Run `op(name, handle)` for every target and wait for all of them.

        Args:
            targets: Backend name -> client handle
            op: Per-backend operation; its return value becomes the
                success payload, any exception becomes a failure outcome
            operation: Label used for logs and metrics

        Returns:
            One outcome per target, in completion order
        """
        if not targets:
            return []

        futures = [
            self._executor.submit(self._run_one, name, handle, op, operation)
            for name, handle in targets.items()
        ]
        done, _ = wait(futures)
        return [future.result() for future in done]

    def _run_one(
        self,
        name: str,
        handle: H,
        op: Callable[[str, H], T],
        operation: str
    ) -> BackendOutcome[T]:
        start_time = time.time()
        try:
            value = op(name, handle)
        except Exception as e:
            duration = time.time() - start_time
            log_backend_failure(
                logger,
                backend=name,
                operation=operation,
                error=str(e),
                duration_ms=duration * 1000
            )
            storage_backend_operations_total.labels(
                backend=name, operation=operation, outcome="failure"
            ).inc()
            storage_backend_operation_duration_seconds.labels(
                backend=name, operation=operation
            ).observe(duration)
            return BackendOutcome.failed(name, str(e) or e.__class__.__name__)

        storage_backend_operations_total.labels(
            backend=name, operation=operation, outcome="success"
        ).inc()
        storage_backend_operation_duration_seconds.labels(
            backend=name, operation=operation
        ).observe(time.time() - start_time)
        return BackendOutcome.ok(name, value)

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        """Stop accepting work; by default wait for in-flight tasks."""
        self._executor.shutdown(wait=wait_for_tasks)
        logger.info("Storage dispatcher stopped")
