from __future__ import annotations

import collections
import enum
import itertools
import logging
import threading
import typing

__all__ = ["HandlerPipeline", "PipelineState"]


log = logging.getLogger(__name__)

_worker_counter = itertools.count(1)

_TYPE_OPERATION = typing.Callable[[], None]


class PipelineState(enum.Enum):
    PAUSED = "paused"
    DRAINING = "draining"
    IDLE = "idle"


class HandlerPipeline:
    """
    Serial queue of deferred operations that starts out paused.

    Operations can be added at any time. Nothing runs until :meth:`start` is
    called, after which operations run one at a time, in the order they were
    added, on a single worker thread. Once started the pipeline never pauses
    again; operations added later run as soon as the worker gets to them.

    The worker thread exists only while there is something to run, so an
    idle pipeline holds no thread.
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name or f"netkit-handlers-{next(_worker_counter)}"
        self._operations: collections.deque[_TYPE_OPERATION] = collections.deque()
        self._condition = threading.Condition()
        self._state = PipelineState.PAUSED

    def __len__(self) -> int:
        with self._condition:
            return len(self._operations)

    @property
    def state(self) -> PipelineState:
        with self._condition:
            return self._state

    @property
    def suspended(self) -> bool:
        return self.state is PipelineState.PAUSED

    def add_operation(self, operation: _TYPE_OPERATION) -> None:
        with self._condition:
            self._operations.append(operation)
            if self._state is PipelineState.IDLE:
                self._spawn_worker()

    def start(self) -> bool:
        """
        Unpause the pipeline. Returns ``False`` if it was already started.

        Every write made by the calling thread before ``start()`` is visible
        to the operations, because the worker acquires the same lock before
        taking its first operation.
        """
        with self._condition:
            if self._state is not PipelineState.PAUSED:
                return False
            if self._operations:
                self._spawn_worker()
            else:
                self._state = PipelineState.IDLE
                self._condition.notify_all()
            return True

    def wait_until_all_operations_are_finished(
        self, timeout: float | None = None
    ) -> bool:
        """
        Block until the pipeline has been started and every operation added
        so far has run. Returns ``False`` if ``timeout`` expired first.
        """
        with self._condition:
            return self._condition.wait_for(
                lambda: self._state is PipelineState.IDLE and not self._operations,
                timeout,
            )

    def _spawn_worker(self) -> None:
        # Caller holds self._condition.
        self._state = PipelineState.DRAINING
        worker = threading.Thread(target=self._drain, name=self.name, daemon=True)
        worker.start()

    def _drain(self) -> None:
        while True:
            with self._condition:
                if not self._operations:
                    self._state = PipelineState.IDLE
                    self._condition.notify_all()
                    return
                operation = self._operations.popleft()

            try:
                operation()
            except Exception:
                log.exception("Unhandled error in %s; continuing", self.name)
