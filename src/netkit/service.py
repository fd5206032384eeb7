from __future__ import annotations

import logging
import typing
from types import TracebackType

from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from ._version import __version__
from .auth import AuthenticationHandler
from .delegate import WebDelegate
from .exceptions import LocationValueError
from .request import WebRequest
from .session import Session, TaskType
from .task import FileDownloadHandler, WebTask

__all__ = ["WebService"]


log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"netkit/{__version__}"


class WebService:
    """
    Factory for :class:`~netkit.task.WebTask` objects that talk to one base
    URL, and owner of the state those tasks share.

    :param base_url:
        URL every task path is appended to, e.g.
        ``"https://api.example.com/v1"``.

    :param session:
        The transport the tasks run on. If omitted, a
        :class:`~netkit.session.Session` is created from ``session_kw`` and
        closed together with the service.

    :param headers:
        Headers sent with every request. A ``User-Agent`` is added unless
        given.

    :param max_auth_retry:
        How many times the authentication handler is asked to answer a
        ``Default`` or ``Basic`` challenge for the same task before default
        handling takes over. ``0`` means no limit.

    Example:

    .. code-block:: python

        with WebService("https://httpbin.org") as service:
            service.get("get").response_json(print).resume_and_wait(0)
    """

    def __init__(
        self,
        base_url: str,
        session: Session | None = None,
        headers: typing.Mapping[str, str] | None = None,
        max_auth_retry: int = 0,
        **session_kw: typing.Any,
    ) -> None:
        try:
            url = parse_url(base_url)
        except LocationParseError as e:
            raise LocationValueError(f"Invalid base URL: {base_url!r}") from e
        if not url.scheme or not url.host:
            raise LocationValueError(f"No scheme or host supplied: {base_url!r}")
        if max_auth_retry < 0:
            raise ValueError("max_auth_retry must be >= 0")

        self.base_url = base_url
        self.headers: dict[str, str] = dict(headers or {})
        if not any(name.lower() == "user-agent" for name in self.headers):
            self.headers["User-Agent"] = DEFAULT_USER_AGENT
        self.max_auth_retry = max_auth_retry
        self.authentication_handler: AuthenticationHandler | None = None
        self.file_download_handler: FileDownloadHandler | None = None

        self.web_delegate = WebDelegate()
        self._owns_session = session is None
        if session is None:
            session = Session(delegate=self.web_delegate, **session_kw)
        elif session.delegate is None:
            session.delegate = self.web_delegate
        self.task_source = session

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.base_url}>"

    def __enter__(self) -> WebService:
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

    def close(self) -> None:
        """
        Close the session if this service created it, and forget every task
        still registered with the delegate.
        """
        if self._owns_session:
            self.task_source.close()
        self.web_delegate.clear()

    def request(
        self, method: str, path: str = "", task_type: TaskType = TaskType.DATA
    ) -> WebTask:
        web_request = WebRequest(method, self.base_url, path, headers=self.headers)
        log.debug("New %s task: %s %s", task_type.value, web_request.method, path)
        return WebTask(web_request, self, task_type)

    def get(self, path: str = "") -> WebTask:
        return self.request("GET", path)

    def head(self, path: str = "") -> WebTask:
        return self.request("HEAD", path)

    def options(self, path: str = "") -> WebTask:
        return self.request("OPTIONS", path)

    def post(self, path: str = "") -> WebTask:
        return self.request("POST", path)

    def put(self, path: str = "") -> WebTask:
        return self.request("PUT", path)

    def patch(self, path: str = "") -> WebTask:
        return self.request("PATCH", path)

    def delete(self, path: str = "") -> WebTask:
        return self.request("DELETE", path)

    def download(self, path: str = "", method: str = "GET") -> WebTask:
        return self.request(method, path, TaskType.DOWNLOAD)

    def upload(self, path: str = "", method: str = "POST") -> WebTask:
        return self.request(method, path, TaskType.UPLOAD)
