from __future__ import annotations

import typing

from urllib3 import BaseHTTPResponse, HTTPHeaderDict

__all__ = ["URLResponse"]


class URLResponse:
    """
    Metadata of a completed HTTP exchange, handed to response handlers next
    to the payload. The body itself is never kept here.

    :param url:
        The URL the response was received from, after redirects.

    :param status:
        The HTTP status code.

    :param headers:
        The response headers. Lookups are case-insensitive.

    :param reason:
        The reason phrase sent by the server, if any.
    """

    def __init__(
        self,
        url: str,
        status: int,
        headers: typing.Mapping[str, str] | None = None,
        reason: str | None = None,
    ) -> None:
        self.url = url
        self.status = status
        self.headers = HTTPHeaderDict(headers or {})
        self.reason = reason

    @classmethod
    def from_httplib_response(
        cls, url: str, response: BaseHTTPResponse
    ) -> URLResponse:
        return cls(
            url=response.url or url,
            status=response.status,
            headers=response.headers,
            reason=response.reason,
        )

    @property
    def mimetype(self) -> str | None:
        content_type = self.headers.get("Content-Type")
        if not content_type:
            return None
        return content_type.split(";", 1)[0].strip().lower()

    @property
    def expected_content_length(self) -> int | None:
        length = self.headers.get("Content-Length")
        if length is None:
            return None
        try:
            return int(length)
        except ValueError:
            return None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} [{self.status}] {self.url}>"
