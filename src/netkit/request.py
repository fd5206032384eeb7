from __future__ import annotations

import enum
import typing
from urllib.parse import urlsplit, urlunsplit

from urllib3 import HTTPHeaderDict
from urllib3.util import make_headers

from .util.request import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_JSON,
    encode_json,
    encode_percent,
    encode_query,
)

__all__ = [
    "CachePolicy",
    "ParameterEncoding",
    "PreparedRequest",
    "WebRequest",
]


class ParameterEncoding(enum.Enum):
    PERCENT = "percent"
    JSON = "json"


class CachePolicy(enum.Enum):
    """
    How the request asks intermediaries to use cached data. Nothing is cached
    locally; each policy only translates into a ``Cache-Control`` header.
    """

    USE_PROTOCOL_CACHE_POLICY = None
    RELOAD_IGNORING_LOCAL_CACHE_DATA = "no-cache"
    RETURN_CACHE_DATA_ELSE_LOAD = "max-stale"
    RETURN_CACHE_DATA_DONT_LOAD = "only-if-cached"


class PreparedRequest(typing.NamedTuple):
    """Read-only snapshot of a :class:`WebRequest` taken at dispatch."""

    method: str
    url: str
    headers: HTTPHeaderDict
    body: bytes | None


class WebRequest:
    """
    Mutable description of a single HTTP request.

    A request is built up by a :class:`~netkit.task.WebTask` before dispatch
    and turned into a :class:`PreparedRequest` with :meth:`prepare` when the
    task is resumed. A raw ``body`` and ``body_parameters`` are mutually
    exclusive: assigning one clears the other.

    :param method:
        HTTP method, e.g. ``"GET"``.

    :param base_url:
        The web service URL every ``rest_path`` is appended to.

    :param rest_path:
        Path relative to ``base_url``.

    :param headers:
        Initial request headers. Names compare case-insensitively and a later
        value for the same name replaces the earlier one.
    """

    def __init__(
        self,
        method: str,
        base_url: str,
        rest_path: str = "",
        headers: typing.Mapping[str, str] | None = None,
    ) -> None:
        self.method = method.upper()
        self.base_url = base_url
        self.rest_path = rest_path
        self._headers = HTTPHeaderDict(headers or {})
        self.url_parameters: dict[str, typing.Any] = {}
        self._body_parameters: dict[str, typing.Any] = {}
        self.parameter_encoding = ParameterEncoding.PERCENT
        self._body: bytes | None = None
        self.cache_policy = CachePolicy.USE_PROTOCOL_CACHE_POLICY

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.method} {self.url}>"

    @property
    def headers(self) -> HTTPHeaderDict:
        return self._headers

    @headers.setter
    def headers(self, headers: typing.Mapping[str, str]) -> None:
        self._headers = HTTPHeaderDict(headers)

    @property
    def content_type(self) -> str | None:
        return self._headers.get("Content-Type")

    @content_type.setter
    def content_type(self, value: str | None) -> None:
        if value is None:
            self._headers.pop("Content-Type", None)
        else:
            self._headers["Content-Type"] = value

    @property
    def body(self) -> bytes | None:
        return self._body

    @body.setter
    def body(self, data: bytes | None) -> None:
        self._body = data
        if data is not None:
            self._body_parameters = {}

    @property
    def body_parameters(self) -> dict[str, typing.Any]:
        return self._body_parameters

    @body_parameters.setter
    def body_parameters(self, parameters: typing.Mapping[str, typing.Any]) -> None:
        self._body_parameters = dict(parameters)
        if self._body_parameters:
            self._body = None

    @property
    def url(self) -> str:
        """The full request URL including the encoded query parameters."""
        url = self.base_url
        if self.rest_path:
            url = url.rstrip("/") + "/" + self.rest_path.lstrip("/")
        if not self.url_parameters:
            return url

        scheme, netloc, path, query, fragment = urlsplit(url)
        extra = encode_query(self.url_parameters)
        query = f"{query}&{extra}" if query else extra
        return urlunsplit((scheme, netloc, path, query, fragment))

    def encoded_body(self) -> bytes | None:
        if self._body is not None:
            return self._body
        if not self._body_parameters:
            return None
        if self.parameter_encoding is ParameterEncoding.JSON:
            return encode_json(self._body_parameters)
        return encode_percent(self._body_parameters)

    def encoded_headers(self) -> HTTPHeaderDict:
        headers = HTTPHeaderDict(self._headers)
        has_parameters = self._body is None and bool(self._body_parameters)
        if has_parameters and "Content-Type" not in headers:
            if self.parameter_encoding is ParameterEncoding.JSON:
                headers["Content-Type"] = CONTENT_TYPE_JSON
            else:
                headers["Content-Type"] = CONTENT_TYPE_FORM

        directive = self.cache_policy.value
        if directive and "Cache-Control" not in headers:
            if self.cache_policy is CachePolicy.RELOAD_IGNORING_LOCAL_CACHE_DATA:
                headers.update(make_headers(disable_cache=True))
            else:
                headers["Cache-Control"] = directive
        return headers

    def prepare(self) -> PreparedRequest:
        return PreparedRequest(
            method=self.method,
            url=self.url,
            headers=self.encoded_headers(),
            body=self.encoded_body(),
        )
