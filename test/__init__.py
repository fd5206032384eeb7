from __future__ import annotations

import itertools
import os
import threading
import time
import typing

from netkit.exceptions import CancelledError
from netkit.request import PreparedRequest
from netkit.response import URLResponse
from netkit.session import TaskState, TaskType

# We use timeouts in two different ways in our tests
#
# 1. To make sure that the operation times out, we can use a short timeout.
# 2. To make sure that the test does not hang even if the operation should succeed, we
#    want to use a long timeout, even more so on CI where tests can be really slow
SHORT_TIMEOUT = 0.05
LONG_TIMEOUT = 5.0
if os.environ.get("CI") or os.environ.get("GITHUB_ACTIONS") == "true":
    LONG_TIMEOUT = 15.0

_fake_identifiers = itertools.count(1000)

_TYPE_COMPLETION = typing.Callable[
    [typing.Any, typing.Optional[URLResponse], typing.Optional[Exception]], None
]


class FakeSessionTask:
    """In-memory stand-in for :class:`netkit.session.SessionTask`.

    Nothing goes over the network. Tests finish the operation by calling
    :meth:`complete` (or :meth:`complete_later` to do it from another thread).
    Like the real thing, the completion is only ever delivered once.
    """

    def __init__(
        self,
        session: FakeSession,
        task_type: TaskType,
        request: PreparedRequest,
        completion: _TYPE_COMPLETION,
        body: bytes | None = None,
    ) -> None:
        self.task_identifier = next(_fake_identifiers)
        self.task_type = task_type
        self.original_request = request
        self.body = body
        self.session = session
        self.state = TaskState.SUSPENDED
        self.resume_calls = 0
        self.cancel_calls = 0
        self.completions = 0
        self._completion = completion
        self._lock = threading.Lock()
        self._delivered = False

    def resume(self) -> None:
        self.resume_calls += 1
        if self.state is not TaskState.SUSPENDED:
            return
        self.state = TaskState.RUNNING
        if self.session.on_resume is not None:
            self.session.on_resume(self)

    def suspend(self) -> None:
        if self.state is TaskState.RUNNING:
            self.state = TaskState.SUSPENDED

    def cancel(self) -> None:
        self.cancel_calls += 1
        if self.state in (TaskState.RUNNING, TaskState.SUSPENDED):
            self.state = TaskState.CANCELING
            self.complete(error=CancelledError())

    def complete(
        self,
        payload: typing.Any = None,
        response: URLResponse | None = None,
        error: Exception | None = None,
    ) -> bool:
        with self._lock:
            if self._delivered:
                return False
            self._delivered = True
            self.state = TaskState.COMPLETED
        self.completions += 1
        self._completion(payload, response, error)
        return True

    def complete_later(
        self,
        delay: float = 0.0,
        payload: typing.Any = None,
        response: URLResponse | None = None,
        error: Exception | None = None,
    ) -> threading.Thread:
        def run() -> None:
            time.sleep(delay)
            self.complete(payload, response, error)

        thread = threading.Thread(target=run, daemon=True)
        thread.start()
        return thread


class FakeSession:
    """Task source handing out :class:`FakeSessionTask` objects.

    :param on_resume:
        Called with the task every time a suspended task is resumed. Use it
        to finish the operation right away or from a thread.
    """

    def __init__(
        self, on_resume: typing.Callable[[FakeSessionTask], None] | None = None
    ) -> None:
        self.delegate: typing.Any = None
        self.on_resume = on_resume
        self.tasks: list[FakeSessionTask] = []
        self.closed = False

    def _make_task(
        self,
        task_type: TaskType,
        request: PreparedRequest,
        completion: _TYPE_COMPLETION,
        body: bytes | None = None,
    ) -> FakeSessionTask:
        task = FakeSessionTask(self, task_type, request, completion, body)
        self.tasks.append(task)
        return task

    def data_task(
        self, request: PreparedRequest, completion: _TYPE_COMPLETION
    ) -> FakeSessionTask:
        return self._make_task(TaskType.DATA, request, completion)

    def download_task(
        self, request: PreparedRequest, completion: _TYPE_COMPLETION
    ) -> FakeSessionTask:
        return self._make_task(TaskType.DOWNLOAD, request, completion)

    def upload_task(
        self,
        request: PreparedRequest,
        body: bytes | None,
        completion: _TYPE_COMPLETION,
    ) -> FakeSessionTask:
        return self._make_task(TaskType.UPLOAD, request, completion, body)

    def close(self) -> None:
        self.closed = True


def ok_response(
    url: str = "http://example.com/", status: int = 200, **headers: str
) -> URLResponse:
    return URLResponse(url, status, headers)
