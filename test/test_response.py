from __future__ import annotations

from unittest import mock

import pytest

from netkit.response import URLResponse
from netkit.result import SUCCESS, Failure, Success, is_failure


class TestURLResponse:
    def test_headers_are_case_insensitive(self) -> None:
        response = URLResponse("http://example.com/", 200, {"content-type": "a/b"})
        assert response.headers["Content-Type"] == "a/b"

    @pytest.mark.parametrize(
        "content_type, mimetype",
        [
            ("application/json", "application/json"),
            ("Text/HTML; charset=utf-8", "text/html"),
            ("", None),
            (None, None),
        ],
    )
    def test_mimetype(self, content_type: str | None, mimetype: str | None) -> None:
        headers = {"Content-Type": content_type} if content_type is not None else {}
        assert URLResponse("http://example.com/", 200, headers).mimetype == mimetype

    @pytest.mark.parametrize(
        "length, expected", [("12", 12), ("0", 0), ("nope", None), (None, None)]
    )
    def test_expected_content_length(
        self, length: str | None, expected: int | None
    ) -> None:
        headers = {"Content-Length": length} if length is not None else {}
        response = URLResponse("http://example.com/", 200, headers)
        assert response.expected_content_length == expected

    @pytest.mark.parametrize(
        "status, ok",
        [(200, True), (204, True), (304, True), (401, False), (500, False)],
    )
    def test_ok(self, status: int, ok: bool) -> None:
        assert URLResponse("http://example.com/", status).ok is ok

    def test_from_httplib_response(self) -> None:
        raw = mock.Mock(
            url="http://example.com/final",
            status=201,
            headers={"Location": "/x"},
            reason="Created",
        )
        response = URLResponse.from_httplib_response("http://example.com/start", raw)
        assert response.url == "http://example.com/final"
        assert response.status == 201
        assert response.reason == "Created"
        assert response.headers["location"] == "/x"

    def test_from_httplib_response_without_url(self) -> None:
        raw = mock.Mock(url=None, status=200, headers={}, reason="OK")
        response = URLResponse.from_httplib_response("http://example.com/start", raw)
        assert response.url == "http://example.com/start"

    def test_repr(self) -> None:
        response = URLResponse("http://example.com/", 404)
        assert repr(response) == "<URLResponse [404] http://example.com/>"


class TestResult:
    def test_success(self) -> None:
        assert SUCCESS == Success()
        assert not is_failure(SUCCESS)
        assert not is_failure(None)

    def test_failure_compares_error_identity(self) -> None:
        error = ValueError("x")
        assert Failure(error) == Failure(error)
        assert Failure(error) != Failure(ValueError("x"))
        assert Failure(error) != SUCCESS
        assert is_failure(Failure(error))
        assert len({Failure(error), Failure(error)}) == 1
