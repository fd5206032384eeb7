from __future__ import annotations

import json as _json
import logging
import threading
import typing
import warnings
import weakref

from .auth import (
    AuthenticationHandler,
    ChallengeCompletionHandler,
    ChallengeDisposition,
    ChallengeMethod,
)
from .exceptions import (
    AuthenticationError,
    BodyDecodeError,
    EmptyResponseBodyError,
    NetKitWarning,
    SessionUnavailableError,
    TaskAlreadyDispatchedError,
)
from .pipeline import HandlerPipeline
from .request import CachePolicy, ParameterEncoding, WebRequest
from .response import URLResponse
from .result import SUCCESS, Failure, Success, WebTaskResult
from .session import SessionTask, TaskState, TaskType
from .util.request import CONTENT_TYPE_JSON, CONTENT_TYPE_XML, encode_json
from .util.request import placed_in_soap_envelope
from .util.wait import WaitToken

if typing.TYPE_CHECKING:
    from .service import WebService

__all__ = ["WebTask"]


log = logging.getLogger(__name__)

_TYPE_SELF = typing.TypeVar("_TYPE_SELF", bound="WebTask")

ResponseHandler = typing.Callable[
    [typing.Optional[bytes], typing.Optional[URLResponse]],
    typing.Optional[WebTaskResult],
]
JSONHandler = typing.Callable[[typing.Any], typing.Optional[WebTaskResult]]
ErrorHandler = typing.Callable[[BaseException], None]
FileDownloadHandler = typing.Callable[
    [str, typing.Optional[URLResponse]], typing.Optional[WebTaskResult]
]


def _as_result(value: object) -> WebTaskResult:
    if value is None:
        return SUCCESS
    if isinstance(value, (Success, Failure)):
        return value
    return Failure(
        TypeError(
            f"handler returned {type(value).__name__}, expected Success or Failure"
        )
    )


def _call_handler(
    handler: typing.Callable[..., object], *args: typing.Any
) -> WebTaskResult:
    """Run a handler, turning anything it raises into a Failure."""
    try:
        return _as_result(handler(*args))
    except Exception as e:
        log.debug("Handler %r raised %r", handler, e)
        return Failure(e)


class WebTask:
    """
    One HTTP exchange plus the handlers that process its result.

    A task is configured with the ``set_*`` methods, gets its handlers
    attached with :meth:`response`, :meth:`response_json`,
    :meth:`response_file`, :meth:`response_error` and :meth:`authenticate`,
    and is then dispatched once with :meth:`resume` or
    :meth:`resume_and_wait`. All of these return the task, so calls chain::

        service.get("users").set_url_parameters({"page": 2}).response_json(
            show_users
        ).response_error(log_error).resume()

    Handlers are queued and run one after another, in the order they were
    registered, after the exchange completed. A failure of the exchange, or a
    response handler returning :class:`~netkit.result.Failure`, makes every
    later response handler a no-op while error handlers receive the error.
    A task without error handlers drops failures silently.

    The task refers to its :class:`~netkit.service.WebService` weakly. If
    the service is gone by the time the task is dispatched, the task fails
    right away with :class:`~netkit.exceptions.SessionUnavailableError`
    instead of creating an operation.
    """

    def __init__(
        self,
        web_request: WebRequest,
        web_service: WebService,
        task_type: TaskType = TaskType.DATA,
    ) -> None:
        self.web_request = web_request
        self.task_type = task_type
        self._web_service = weakref.ref(web_service)
        self._handler_queue = HandlerPipeline()
        self._url_task: SessionTask | None = None

        self.url_response: URLResponse | None = None
        self.response_data: bytes | None = None
        self.response_url: str | None = None
        self.task_result: WebTaskResult | None = None

        self._wait_token: WaitToken | None = None
        self._timeout: float | None = None
        self._dispatched = False
        self._finished = False
        self._lock = threading.Lock()

        self._auth_count = 0
        self._auth_lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} {self.task_type.value} "
            f"{self.web_request.method} {self.web_request.url}>"
        )

    @property
    def web_service(self) -> WebService | None:
        return self._web_service()

    @property
    def task_identifier(self) -> int | None:
        url_task = self._url_task
        return url_task.task_identifier if url_task is not None else None

    @property
    def state(self) -> TaskState | None:
        url_task = self._url_task
        return url_task.state if url_task is not None else None

    @property
    def is_finished(self) -> bool:
        return self._finished

    # Dispatch

    def resume(self: _TYPE_SELF) -> _TYPE_SELF:
        """
        Start the exchange, creating the underlying operation on first use.

        Calling ``resume()`` again reuses the same operation, which also
        restarts it after :meth:`suspend`. If a wait was requested through
        :meth:`resume_and_wait` this blocks accordingly.
        """
        with self._lock:
            self._dispatched = True
            web_service = self._web_service()
            if self._url_task is None and web_service is not None:
                self._url_task = self._make_url_task(web_service)
            url_task = self._url_task

        if url_task is None:
            self._fail_unbound()
        elif web_service is not None:
            with self._lock:
                if not self._finished:
                    web_service.web_delegate.register(url_task.task_identifier, self)
            url_task.resume()

        self._wait(url_task)
        return self

    def resume_and_wait(
        self: _TYPE_SELF, timeout: float | None = None
    ) -> _TYPE_SELF:
        """
        Start the exchange and block the calling thread.

        :param timeout:
            ``None`` blocks until the exchange completes. ``0`` blocks until
            every registered handler has run. A positive number blocks for at
            most that many seconds; if the exchange is still active by then it
            is cancelled, and its handlers see a
            :class:`~netkit.exceptions.CancelledError`.
        """
        if timeout is not None and timeout < 0:
            raise ValueError(f"timeout must be None or >= 0, got {timeout!r}")
        with self._lock:
            self._timeout = timeout
            self._wait_token = WaitToken(timeout) if timeout != 0 else None
            if self._wait_token is not None and self._finished:
                self._wait_token.release()
        return self.resume()

    def suspend(self) -> None:
        if self._url_task is not None:
            self._url_task.suspend()

    def cancel(self) -> None:
        if self._url_task is not None:
            self._url_task.cancel()

    def _make_url_task(self, web_service: WebService) -> SessionTask:
        request = self.web_request.prepare()
        task_source = web_service.task_source
        if self.task_type is TaskType.DOWNLOAD:
            return task_source.download_task(request, self._handle_download)
        if self.task_type is TaskType.UPLOAD:
            return task_source.upload_task(request, request.body, self._handle_data)
        return task_source.data_task(request, self._handle_data)

    def _wait(self, url_task: SessionTask | None) -> None:
        if self._wait_token is not None:
            released = self._wait_token.wait()
            if not released and url_task is not None:
                if url_task.state in (TaskState.RUNNING, TaskState.SUSPENDED):
                    log.debug(
                        "Wait for task %d expired after %ss, cancelling",
                        url_task.task_identifier,
                        self._timeout,
                    )
                    url_task.cancel()
        elif self._timeout == 0:
            self._handler_queue.wait_until_all_operations_are_finished()

    def _fail_unbound(self) -> None:
        log.warning("%r dispatched after its web service was released", self)
        self._handle_response(
            error=SessionUnavailableError(
                "web service is no longer available; task was not started"
            )
        )

    # Completion

    def _handle_data(
        self,
        data: bytes | None,
        response: URLResponse | None,
        error: Exception | None,
    ) -> None:
        self._handle_response(data=data, response=response, error=error)

    def _handle_download(
        self,
        location: str | None,
        response: URLResponse | None,
        error: Exception | None,
    ) -> None:
        self._handle_response(location=location, response=response, error=error)

    def _handle_response(
        self,
        data: bytes | None = None,
        location: str | None = None,
        response: URLResponse | None = None,
        error: BaseException | None = None,
    ) -> None:
        with self._lock:
            if self._finished:
                log.warning("Ignoring late completion of %r", self)
                return
            self._finished = True

        self.url_response = response
        self.response_data = data
        self.response_url = location
        if error is not None:
            self.task_result = Failure(error)
        elif location is not None:
            self._download_file(location, response)

        url_task = self._url_task
        web_service = self._web_service()
        if url_task is not None and web_service is not None:
            with self._lock:
                web_service.web_delegate.remove(url_task.task_identifier)

        log.debug("%r finished with %r", self, self.task_result)
        self._handler_queue.start()
        if self._wait_token is not None:
            self._wait_token.release()

    def _download_file(self, location: str, response: URLResponse | None) -> None:
        # Runs before the downloaded file is removed by the session.
        web_service = self._web_service()
        handler = web_service.file_download_handler if web_service else None
        if handler is None:
            return
        self.task_result = _call_handler(handler, location, response)

    # Authentication

    def _next_auth_attempt(self) -> int:
        with self._auth_lock:
            self._auth_count += 1
            return self._auth_count

    def _authenticate(
        self, method: ChallengeMethod, completion: ChallengeCompletionHandler
    ) -> None:
        web_service = self._web_service()
        handler = web_service.authentication_handler if web_service else None
        if web_service is None or handler is None:
            completion(ChallengeDisposition.PERFORM_DEFAULT_HANDLING, None)
            return

        if method.is_retry_limited:
            max_auth = web_service.max_auth_retry
            if max_auth != 0 and self._next_auth_attempt() > max_auth:
                log.debug("%r exhausted %d auth attempts", self, max_auth)
                completion(ChallengeDisposition.PERFORM_DEFAULT_HANDLING, None)
                return

        try:
            self.task_result = _as_result(handler(method, completion))
        except Exception as e:
            error = AuthenticationError(f"authentication handler raised {e!r}")
            error.__cause__ = e
            self.task_result = Failure(error)
            completion(ChallengeDisposition.CANCEL_AUTHENTICATION_CHALLENGE, None)

    # Configuration

    def _check_configurable(self) -> None:
        if self._dispatched:
            raise TaskAlreadyDispatchedError(
                f"{self!r} was already dispatched and can't be reconfigured"
            )

    def set_url_parameters(
        self: _TYPE_SELF, parameters: typing.Mapping[str, typing.Any]
    ) -> _TYPE_SELF:
        self._check_configurable()
        self.web_request.url_parameters = dict(parameters)
        return self

    def set_body_parameters(
        self: _TYPE_SELF,
        parameters: typing.Mapping[str, typing.Any],
        encoding: ParameterEncoding | None = None,
    ) -> _TYPE_SELF:
        self._check_configurable()
        self.web_request.body_parameters = parameters
        self.web_request.parameter_encoding = encoding or ParameterEncoding.PERCENT
        if encoding is ParameterEncoding.JSON:
            self.web_request.content_type = CONTENT_TYPE_JSON
        return self

    def set_parameter_encoding(
        self: _TYPE_SELF, encoding: ParameterEncoding
    ) -> _TYPE_SELF:
        self._check_configurable()
        self.web_request.parameter_encoding = encoding
        return self

    def set_body(self: _TYPE_SELF, data: bytes) -> _TYPE_SELF:
        self._check_configurable()
        self.web_request.body = data
        return self

    def set_path(self: _TYPE_SELF, path: str) -> _TYPE_SELF:
        self._check_configurable()
        self.web_request.rest_path = path
        return self

    def set_json(self: _TYPE_SELF, json: typing.Any) -> _TYPE_SELF:
        self._check_configurable()
        self.web_request.content_type = CONTENT_TYPE_JSON
        self.web_request.body = encode_json(json)
        return self

    def set_soap(self: _TYPE_SELF, soap: str) -> _TYPE_SELF:
        self._check_configurable()
        self.web_request.content_type = CONTENT_TYPE_XML
        self.web_request.body = placed_in_soap_envelope(soap).encode("utf-8")
        return self

    def set_headers(
        self: _TYPE_SELF, headers: typing.Mapping[str, str]
    ) -> _TYPE_SELF:
        self._check_configurable()
        self.web_request.headers = headers
        return self

    def set_header_value(self: _TYPE_SELF, name: str, value: str) -> _TYPE_SELF:
        self._check_configurable()
        self.web_request.headers[name] = value
        return self

    def set_cache_policy(self: _TYPE_SELF, cache_policy: CachePolicy) -> _TYPE_SELF:
        self._check_configurable()
        self.web_request.cache_policy = cache_policy
        return self

    # Handlers

    def authenticate(self: _TYPE_SELF, handler: AuthenticationHandler) -> _TYPE_SELF:
        """
        Set the authentication handler of the task's web service. It is
        shared by every task of that service.
        """
        web_service = self._web_service()
        if web_service is None:
            warnings.warn(
                "Can't set authentication handler, web service is gone",
                NetKitWarning,
                stacklevel=2,
            )
        else:
            web_service.authentication_handler = handler
        return self

    def response(self: _TYPE_SELF, handler: ResponseHandler) -> _TYPE_SELF:
        """
        Queue ``handler(data, url_response)``. Its return value becomes the
        task's result; returning ``None`` counts as success.
        """

        def operation() -> None:
            if isinstance(self.task_result, Failure):
                return
            self.task_result = _call_handler(
                handler, self.response_data, self.url_response
            )

        self._handler_queue.add_operation(operation)
        return self

    def response_json(self: _TYPE_SELF, handler: JSONHandler) -> _TYPE_SELF:
        """
        Queue ``handler(value)`` with the response body parsed as JSON. An
        empty or undecodable body fails the task with a
        :class:`~netkit.exceptions.BodyDecodeError` instead.
        """

        def decode(data: bytes | None, response: URLResponse | None) -> WebTaskResult:
            if not data:
                return Failure(EmptyResponseBodyError())
            try:
                value = _json.loads(data.decode("utf-8"))
            except (UnicodeDecodeError, ValueError) as e:
                error = BodyDecodeError(f"response body is not valid JSON: {e}", e)
                error.__cause__ = e
                return Failure(error)
            return _call_handler(handler, value)

        return self.response(decode)

    def response_file(self: _TYPE_SELF, handler: FileDownloadHandler) -> _TYPE_SELF:
        """
        Set the file download handler of the task's web service. It is called
        with the path of the downloaded file as soon as a download completes,
        before any queued handler runs, and is shared by every task of that
        service.
        """
        web_service = self._web_service()
        if web_service is None:
            warnings.warn(
                "Can't set file download handler, web service is gone",
                NetKitWarning,
                stacklevel=2,
            )
        else:
            web_service.file_download_handler = handler

        def guard() -> None:
            if isinstance(self.task_result, Failure):
                return
            log.debug("%r delivered %s", self, self.response_url)

        self._handler_queue.add_operation(guard)
        return self

    def response_error(self: _TYPE_SELF, handler: ErrorHandler) -> _TYPE_SELF:
        def operation() -> None:
            result = self.task_result
            if isinstance(result, Failure):
                handler(result.error)

        self._handler_queue.add_operation(operation)
        return self
