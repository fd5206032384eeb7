from __future__ import annotations

import asyncio
import inspect
import json
import logging
import typing
from base64 import b64decode
from urllib.parse import urlsplit

from tornado import httputil
from tornado.web import RequestHandler

log = logging.getLogger(__name__)

BASIC_AUTH_USER = "user"
BASIC_AUTH_PASSWORD = "passwd"


class Response:
    def __init__(
        self,
        body: str | bytes = "",
        status: str = "200 OK",
        headers: typing.Sequence[tuple[str, str]] | None = None,
        json: typing.Any | None = None,
    ) -> None:
        self.body = body
        self.status = status
        if json is not None:
            self.headers = list(headers or []) + [("Content-Type", "application/json")]
            self.body = _json_dumps(json)
        else:
            self.headers = list(headers or [("Content-Type", "text/plain")])

    def __call__(self, request_handler: RequestHandler) -> None:
        status, reason = self.status.split(" ", 1)
        request_handler.set_status(int(status), reason)
        request_handler.clear_header("Content-Type")
        for header, value in self.headers:
            request_handler.add_header(header, value)

        if isinstance(self.body, str):
            request_handler.write(self.body.encode())
        else:
            request_handler.write(self.body)


def _json_dumps(value: typing.Any) -> str:
    return json.dumps(value)


def request_params(request: httputil.HTTPServerRequest) -> dict[str, bytes]:
    params = {}
    for k, v in request.query_arguments.items():
        params[k] = next(iter(v))
    return params


class TestingApp(RequestHandler):
    """
    Simple app that answers the requests the netkit test suite makes.

    Given any path, it will attempt to load a corresponding local method if
    it exists, and fall back to :meth:`index` otherwise.
    """

    async def get(self) -> None:
        await self._call_method()

    async def post(self) -> None:
        await self._call_method()

    async def put(self) -> None:
        await self._call_method()

    async def patch(self) -> None:
        await self._call_method()

    async def delete(self) -> None:
        await self._call_method()

    async def head(self) -> None:
        await self._call_method()

    async def _call_method(self) -> None:
        """Call the correct method in this class based on the incoming URI"""
        req = self.request

        path = req.path[:]
        if not path.startswith("/"):
            path = urlsplit(path).path

        target = path[1:].split("/", 1)[0]
        method = getattr(self, target, self.index)

        resp = method(req)
        if inspect.isawaitable(resp):
            resp = await resp
        resp(self)

    def index(self, _request: httputil.HTTPServerRequest) -> Response:
        "Render simple message"
        return Response("Dummy server!")

    def echo(self, request: httputil.HTTPServerRequest) -> Response:
        "Echo back the body, or the query string of a GET"
        if request.method == "GET":
            return Response(request.query)
        content_type = request.headers.get("Content-Type", "text/plain")
        return Response(request.body, headers=[("Content-Type", content_type)])

    def echo_request(self, request: httputil.HTTPServerRequest) -> Response:
        "Describe the request as JSON"
        return Response(
            json={
                "method": request.method,
                "uri": request.uri,
                "headers": dict(request.headers.items()),
                "body": request.body.decode("utf-8", "replace"),
            }
        )

    def json(self, _request: httputil.HTTPServerRequest) -> Response:
        return Response(json={"a": 1})

    def not_json(self, _request: httputil.HTTPServerRequest) -> Response:
        return Response("this is not json", headers=[("Content-Type", "text/plain")])

    def empty(self, _request: httputil.HTTPServerRequest) -> Response:
        return Response(b"")

    def status(self, request: httputil.HTTPServerRequest) -> Response:
        params = request_params(request)
        status = params.get("status", b"200 OK").decode("latin-1")
        return Response(status=status)

    def redirect(self, request: httputil.HTTPServerRequest) -> Response:  # type: ignore[override]
        "Perform a redirect to ``target``"
        params = request_params(request)
        target = params.get("target", b"/").decode("latin-1")
        headers = [("Location", target)]
        return Response(status="303 See Other", headers=headers)

    def nbytes(self, request: httputil.HTTPServerRequest) -> Response:
        params = request_params(request)
        length = int(params["length"])
        data = b"1" * length
        return Response(data, headers=[("Content-Type", "application/octet-stream")])

    async def slow(self, request: httputil.HTTPServerRequest) -> Response:
        "Answer after ``seconds`` seconds"
        params = request_params(request)
        await asyncio.sleep(float(params.get("seconds", b"1")))
        return Response("Finally!")

    def basic_auth(self, request: httputil.HTTPServerRequest) -> Response:
        "Require HTTP Basic credentials user/passwd"
        authorization = request.headers.get("Authorization", "")
        scheme, _, encoded = authorization.partition(" ")
        if scheme.lower() == "basic":
            user, _, password = b64decode(encoded).decode("latin-1").partition(":")
            if user == BASIC_AUTH_USER and password == BASIC_AUTH_PASSWORD:
                return Response(json={"authenticated": True, "user": user})
        return Response(
            "Unauthorized",
            status="401 Unauthorized",
            headers=[("WWW-Authenticate", 'Basic realm="dummy"')],
        )

    def digest_auth(self, _request: httputil.HTTPServerRequest) -> Response:
        "Always challenge with a scheme netkit can't answer"
        return Response(
            "Unauthorized",
            status="401 Unauthorized",
            headers=[("WWW-Authenticate", 'Digest realm="dummy", nonce="abc"')],
        )
