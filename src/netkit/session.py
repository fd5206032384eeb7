from __future__ import annotations

import enum
import itertools
import logging
import os
import tempfile
import threading
import typing
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType

from urllib3 import HTTPHeaderDict, PoolManager
from urllib3.response import BaseHTTPResponse
from urllib3.util import Retry, Timeout

from .auth import (
    ChallengeCompletionHandler,
    ChallengeDisposition,
    ChallengeMethod,
    Credential,
    parse_challenge,
)
from .exceptions import CancelledError, NetKitError, TransportError
from .request import PreparedRequest
from .response import URLResponse

__all__ = [
    "Session",
    "SessionDelegate",
    "SessionTask",
    "TaskState",
    "TaskType",
]


log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = Timeout(connect=10.0, read=60.0)
# Redirects are followed, but failed transfers are never retried.
DEFAULT_RETRIES = Retry(total=None, connect=0, read=0, redirect=5, status=0, other=0)
DEFAULT_MAX_WORKERS = 4
DEFAULT_CHUNK_SIZE = 16384
DEFAULT_MAX_CHALLENGES = 8

# How often a worker blocked on an unanswered challenge checks for cancel().
_CHALLENGE_POLL_INTERVAL = 0.05

_task_identifiers = itertools.count(1)

_TYPE_COMPLETION = typing.Callable[
    [typing.Any, typing.Optional[URLResponse], typing.Optional[Exception]], None
]


class TaskType(enum.Enum):
    DATA = "data"
    DOWNLOAD = "download"
    UPLOAD = "upload"


class TaskState(enum.IntEnum):
    RUNNING = 0
    SUSPENDED = 1
    CANCELING = 2
    COMPLETED = 3


class SessionDelegate(typing.Protocol):
    def on_authentication_challenge(
        self,
        task_identifier: int,
        method: ChallengeMethod,
        completion: ChallengeCompletionHandler,
    ) -> None:
        ...


class _ChallengeResponder:
    """One-shot answer to a challenge. Only the first call counts."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.disposition = ChallengeDisposition.PERFORM_DEFAULT_HANDLING
        self.credential: Credential | None = None

    def __call__(
        self, disposition: ChallengeDisposition, credential: Credential | None = None
    ) -> None:
        with self._lock:
            if self._event.is_set():
                log.debug("Ignoring repeated challenge answer %s", disposition)
                return
            self.disposition = disposition
            self.credential = credential
            self._event.set()

    @property
    def answered(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


class SessionTask:
    """
    Handle on one asynchronous operation of a :class:`Session`.

    A task is created suspended. :meth:`resume` starts it on one of the
    session's worker threads; the completion callback is then invoked exactly
    once, either by that worker or by the thread calling :meth:`cancel`.
    """

    def __init__(
        self,
        session: Session,
        task_type: TaskType,
        request: PreparedRequest,
        completion: _TYPE_COMPLETION,
        body: bytes | None = None,
    ) -> None:
        self.task_identifier = next(_task_identifiers)
        self.task_type = task_type
        self.original_request = request
        self.response: URLResponse | None = None
        self._session = session
        self._completion = completion
        self._body = body if body is not None else request.body

        self._lock = threading.Lock()
        self._state = TaskState.SUSPENDED
        self._started = False
        self._delivered = False
        self._transfer_allowed = threading.Event()
        self._cancelled = threading.Event()

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} {self.task_identifier} "
            f"{self.task_type.value} {self.state.name}>"
        )

    @property
    def state(self) -> TaskState:
        with self._lock:
            return self._state

    def resume(self) -> None:
        with self._lock:
            if self._state is not TaskState.SUSPENDED:
                return
            self._state = TaskState.RUNNING
            self._transfer_allowed.set()
            if self._started:
                return
            self._started = True

        log.debug(
            "Starting %s task %d: %s %s",
            self.task_type.value,
            self.task_identifier,
            self.original_request.method,
            self.original_request.url,
        )
        try:
            self._session._submit(self._run)
        except RuntimeError as e:
            # Executor was shut down by Session.close().
            self._deliver(None, None, TransportError("session is closed", e))

    def suspend(self) -> None:
        with self._lock:
            if self._state is TaskState.RUNNING:
                self._state = TaskState.SUSPENDED
                self._transfer_allowed.clear()

    def cancel(self) -> None:
        with self._lock:
            if self._state in (TaskState.CANCELING, TaskState.COMPLETED):
                return
            self._state = TaskState.CANCELING
        self._cancelled.set()
        # Wake a suspended transfer so the worker notices the cancel.
        self._transfer_allowed.set()
        log.debug("Cancelled task %d", self.task_identifier)
        self._deliver(None, self.response, CancelledError())

    def _check_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise CancelledError()

    def _wait_for_transfer(self) -> None:
        self._transfer_allowed.wait()
        self._check_cancelled()

    def _deliver(
        self,
        payload: typing.Any,
        response: URLResponse | None,
        error: Exception | None,
    ) -> bool:
        with self._lock:
            if self._delivered:
                return False
            self._delivered = True
            self._state = TaskState.COMPLETED
        self._session._forget(self)
        self._completion(payload, response, error)
        return True

    def _run(self) -> None:
        payload = None
        try:
            payload = self._session._perform(self)
        except NetKitError as e:
            self._deliver(None, self.response, e)
        except Exception as e:
            request = self.original_request
            error = TransportError(f"{request.method} {request.url} failed: {e}", e)
            error.__cause__ = e
            self._deliver(None, self.response, error)
        else:
            self._deliver(payload, self.response, None)
        finally:
            if self.task_type is TaskType.DOWNLOAD and payload is not None:
                _remove_quietly(payload)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class Session:
    """
    Runs HTTP operations on a pool of worker threads on top of a
    :class:`urllib3.PoolManager`.

    :param delegate:
        Receives authentication challenges raised by servers. Usually a
        :class:`~netkit.delegate.WebDelegate`.

    :param pool_manager:
        The pool manager used to talk to servers. One is created from
        ``pool_kw`` if not given.

    :param timeout:
        Connect/read timeouts passed to urllib3 for every request.

    :param retries:
        urllib3 retry configuration. By default only redirects are retried.

    :param max_workers:
        Number of operations that can run at the same time.

    :param chunk_size:
        Size of the chunks response bodies are read in. Suspending an
        operation takes effect between chunks.

    :param download_dir:
        Directory download tasks write their temporary files to. The file is
        removed once the completion callback returns, so a caller that wants
        to keep it has to move it from within the callback.

    :param max_challenges:
        Upper bound on authentication challenges answered per operation; past
        it the ``401`` response is delivered as is.
    """

    def __init__(
        self,
        delegate: SessionDelegate | None = None,
        pool_manager: PoolManager | None = None,
        timeout: Timeout | float | None = DEFAULT_TIMEOUT,
        retries: Retry | bool | int | None = DEFAULT_RETRIES,
        max_workers: int = DEFAULT_MAX_WORKERS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        download_dir: str | None = None,
        max_challenges: int = DEFAULT_MAX_CHALLENGES,
        **pool_kw: typing.Any,
    ) -> None:
        self.delegate = delegate
        self.pool_manager = pool_manager or PoolManager(**pool_kw)
        self.timeout = timeout
        self.retries = retries
        self.chunk_size = chunk_size
        self.download_dir = download_dir
        self.max_challenges = max_challenges
        self._executor = ThreadPoolExecutor(
            max_workers, thread_name_prefix="netkit-session"
        )
        self._tasks: set[SessionTask] = set()
        self._lock = threading.Lock()

    def __enter__(self) -> Session:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> typing.Literal[False]:
        self.close()
        # Return False to re-raise any potential exceptions
        return False

    def data_task(
        self, request: PreparedRequest, completion: _TYPE_COMPLETION
    ) -> SessionTask:
        return self._make_task(TaskType.DATA, request, completion)

    def download_task(
        self, request: PreparedRequest, completion: _TYPE_COMPLETION
    ) -> SessionTask:
        return self._make_task(TaskType.DOWNLOAD, request, completion)

    def upload_task(
        self,
        request: PreparedRequest,
        body: bytes | None,
        completion: _TYPE_COMPLETION,
    ) -> SessionTask:
        return self._make_task(TaskType.UPLOAD, request, completion, body)

    def close(self) -> None:
        """
        Cancel every operation that has not completed yet, stop the worker
        threads and close all pooled connections.
        """
        with self._lock:
            pending = list(self._tasks)
        for task in pending:
            task.cancel()
        self._executor.shutdown(wait=False)
        self.pool_manager.clear()

    def _make_task(
        self,
        task_type: TaskType,
        request: PreparedRequest,
        completion: _TYPE_COMPLETION,
        body: bytes | None = None,
    ) -> SessionTask:
        task = SessionTask(self, task_type, request, completion, body)
        with self._lock:
            self._tasks.add(task)
        return task

    def _forget(self, task: SessionTask) -> None:
        with self._lock:
            self._tasks.discard(task)

    def _submit(self, fn: typing.Callable[[], None]) -> None:
        self._executor.submit(fn)

    def _perform(self, task: SessionTask) -> typing.Any:
        request = task.original_request
        headers = HTTPHeaderDict(request.headers)
        challenges = 0

        while True:
            task._check_cancelled()
            response = self.pool_manager.urlopen(
                request.method,
                request.url,
                body=task._body,
                headers=headers,
                redirect=True,
                retries=self.retries,
                timeout=self.timeout,
                preload_content=False,
            )
            task.response = URLResponse.from_httplib_response(request.url, response)

            challenge = response.headers.get("WWW-Authenticate")
            if (
                response.status == 401
                and challenge
                and self.delegate is not None
                and challenges < self.max_challenges
            ):
                challenges += 1
                method, _ = parse_challenge(challenge)
                answer = self._challenge(task, method)
                if (
                    answer.disposition is ChallengeDisposition.USE_CREDENTIAL
                    and answer.credential is not None
                ):
                    _discard(response)
                    headers.update(answer.credential.authorization_header())
                    continue
                if (
                    answer.disposition
                    is ChallengeDisposition.CANCEL_AUTHENTICATION_CHALLENGE
                ):
                    _discard(response)
                    raise CancelledError("authentication challenge was cancelled")

            try:
                if task.task_type is TaskType.DOWNLOAD:
                    return self._write_to_file(task, response)
                return self._read_body(task, response)
            finally:
                response.release_conn()

    def _challenge(
        self, task: SessionTask, method: ChallengeMethod
    ) -> _ChallengeResponder:
        assert self.delegate is not None
        log.debug("Task %d received %s challenge", task.task_identifier, method.value)
        responder = _ChallengeResponder()
        self.delegate.on_authentication_challenge(
            task.task_identifier, method, responder
        )
        while not responder.wait(_CHALLENGE_POLL_INTERVAL):
            task._check_cancelled()
        return responder

    def _read_body(self, task: SessionTask, response: BaseHTTPResponse) -> bytes:
        chunks = []
        for chunk in response.stream(self.chunk_size):
            task._wait_for_transfer()
            chunks.append(chunk)
        return b"".join(chunks)

    def _write_to_file(self, task: SessionTask, response: BaseHTTPResponse) -> str:
        fd, path = tempfile.mkstemp(
            prefix="netkit-", suffix=".download", dir=self.download_dir
        )
        try:
            with os.fdopen(fd, "wb") as fp:
                for chunk in response.stream(self.chunk_size):
                    task._wait_for_transfer()
                    fp.write(chunk)
        except BaseException:
            _remove_quietly(path)
            raise
        log.debug("Task %d downloaded to %s", task.task_identifier, path)
        return path


def _discard(response: BaseHTTPResponse) -> None:
    response.drain_conn()
    response.release_conn()
