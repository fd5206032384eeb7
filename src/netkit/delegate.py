from __future__ import annotations

import logging
import typing
from threading import RLock

from .auth import (
    ChallengeCompletionHandler,
    ChallengeDisposition,
    ChallengeMethod,
)

if typing.TYPE_CHECKING:
    from .task import WebTask

__all__ = ["WebDelegate"]


log = logging.getLogger(__name__)


class WebDelegate:
    """
    Thread-safe table of in-flight operations for one session, keyed by the
    transport's task identifier.

    The transport calls back into the delegate when a server raises an
    authentication challenge, and the delegate routes it to the
    :class:`~netkit.task.WebTask` that owns the operation.
    """

    def __init__(self) -> None:
        self._tasks: dict[int, WebTask] = {}
        self.lock = RLock()

    def __len__(self) -> int:
        with self.lock:
            return len(self._tasks)

    def __contains__(self, task_identifier: object) -> bool:
        with self.lock:
            return task_identifier in self._tasks

    def __iter__(self) -> typing.NoReturn:
        raise NotImplementedError(
            "Iteration over this class is unlikely to be threadsafe."
        )

    def task_identifiers(self) -> list[int]:
        with self.lock:
            return list(self._tasks)

    def register(self, task_identifier: int, task: WebTask) -> None:
        with self.lock:
            self._tasks[task_identifier] = task
        log.debug("Registered task %d", task_identifier)

    def lookup(self, task_identifier: int) -> WebTask | None:
        with self.lock:
            return self._tasks.get(task_identifier)

    def remove(self, task_identifier: int) -> None:
        with self.lock:
            removed = self._tasks.pop(task_identifier, None)
        if removed is not None:
            log.debug("Removed task %d", task_identifier)

    def clear(self) -> None:
        with self.lock:
            self._tasks.clear()

    def on_authentication_challenge(
        self,
        task_identifier: int,
        method: ChallengeMethod,
        completion: ChallengeCompletionHandler,
    ) -> None:
        task = self.lookup(task_identifier)
        if task is None:
            log.debug(
                "Challenge %s for unknown task %d, using default handling",
                method.value,
                task_identifier,
            )
            completion(ChallengeDisposition.PERFORM_DEFAULT_HANDLING, None)
            return
        task._authenticate(method, completion)
