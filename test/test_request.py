from __future__ import annotations

import json

import pytest

from netkit.request import CachePolicy, ParameterEncoding, WebRequest
from netkit.util.request import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_JSON,
    encode_query,
    placed_in_soap_envelope,
)


class TestURL:
    @pytest.mark.parametrize(
        "base_url, rest_path, expected",
        [
            ("http://example.com", "", "http://example.com"),
            ("http://example.com/api", "users", "http://example.com/api/users"),
            ("http://example.com/api/", "/users", "http://example.com/api/users"),
            ("http://example.com/api", "users/1/", "http://example.com/api/users/1/"),
        ],
    )
    def test_rest_path(self, base_url: str, rest_path: str, expected: str) -> None:
        assert WebRequest("GET", base_url, rest_path).url == expected

    def test_url_parameters(self) -> None:
        request = WebRequest("GET", "http://example.com", "search")
        request.url_parameters = {"q": "a b", "page": 2, "exact": True}
        assert request.url == "http://example.com/search?q=a%20b&page=2&exact=true"

    def test_url_parameters_extend_existing_query(self) -> None:
        request = WebRequest("GET", "http://example.com/?key=1")
        request.url_parameters = {"tag": ["x", "y"]}
        assert request.url == "http://example.com/?key=1&tag=x&tag=y"

    def test_method_is_uppercased(self) -> None:
        assert WebRequest("post", "http://example.com").method == "POST"


class TestHeaders:
    def test_last_write_wins_case_insensitively(self) -> None:
        request = WebRequest("GET", "http://example.com", headers={"Accept": "a"})
        request.headers["accept"] = "b"
        assert request.headers["Accept"] == "b"
        assert len(request.headers) == 1

    def test_replacing_headers(self) -> None:
        request = WebRequest("GET", "http://example.com", headers={"Accept": "a"})
        request.headers = {"X-Token": "t"}
        assert "Accept" not in request.headers
        assert request.headers["x-token"] == "t"

    def test_content_type_lives_in_headers(self) -> None:
        request = WebRequest("GET", "http://example.com")
        request.content_type = "text/plain"
        assert request.headers["content-type"] == "text/plain"
        request.content_type = None
        assert "Content-Type" not in request.headers

    @pytest.mark.parametrize(
        "policy, expected",
        [
            (CachePolicy.USE_PROTOCOL_CACHE_POLICY, None),
            (CachePolicy.RELOAD_IGNORING_LOCAL_CACHE_DATA, "no-cache"),
            (CachePolicy.RETURN_CACHE_DATA_ELSE_LOAD, "max-stale"),
            (CachePolicy.RETURN_CACHE_DATA_DONT_LOAD, "only-if-cached"),
        ],
    )
    def test_cache_policy(self, policy: CachePolicy, expected: str | None) -> None:
        request = WebRequest("GET", "http://example.com")
        request.cache_policy = policy
        assert request.encoded_headers().get("Cache-Control") == expected

    def test_explicit_cache_control_wins(self) -> None:
        request = WebRequest("GET", "http://example.com")
        request.headers["Cache-Control"] = "max-age=0"
        request.cache_policy = CachePolicy.RETURN_CACHE_DATA_DONT_LOAD
        assert request.encoded_headers()["Cache-Control"] == "max-age=0"


class TestBody:
    def test_no_body(self) -> None:
        request = WebRequest("GET", "http://example.com")
        assert request.encoded_body() is None
        assert "Content-Type" not in request.encoded_headers()

    def test_percent_parameters(self) -> None:
        request = WebRequest("POST", "http://example.com")
        request.body_parameters = {"name": "J Doe", "tags": ["a", "b"]}
        assert request.encoded_body() == b"name=J+Doe&tags=a&tags=b"
        assert request.encoded_headers()["Content-Type"] == CONTENT_TYPE_FORM

    def test_json_parameters(self) -> None:
        request = WebRequest("POST", "http://example.com")
        request.body_parameters = {"name": "J Doe", "age": 3}
        request.parameter_encoding = ParameterEncoding.JSON
        body = request.encoded_body()
        assert body is not None
        assert json.loads(body) == {"name": "J Doe", "age": 3}
        assert request.encoded_headers()["Content-Type"] == CONTENT_TYPE_JSON

    def test_explicit_content_type_is_kept(self) -> None:
        request = WebRequest("POST", "http://example.com")
        request.content_type = "application/vnd.custom"
        request.body_parameters = {"a": 1}
        assert request.encoded_headers()["Content-Type"] == "application/vnd.custom"

    def test_raw_body_clears_parameters(self) -> None:
        request = WebRequest("POST", "http://example.com")
        request.body_parameters = {"a": 1}
        request.body = b"raw"
        assert request.body_parameters == {}
        assert request.encoded_body() == b"raw"

    def test_parameters_clear_raw_body(self) -> None:
        request = WebRequest("POST", "http://example.com")
        request.body = b"raw"
        request.body_parameters = {"a": 1}
        assert request.body is None
        assert request.encoded_body() == b"a=1"


class TestPrepare:
    def test_snapshot_is_independent(self) -> None:
        request = WebRequest("PUT", "http://example.com", "items")
        request.body = b"one"
        request.headers["X-A"] = "1"
        prepared = request.prepare()

        request.body = b"two"
        request.headers["X-A"] = "2"
        request.rest_path = "other"

        assert prepared.method == "PUT"
        assert prepared.url == "http://example.com/items"
        assert prepared.body == b"one"
        assert prepared.headers["X-A"] == "1"


class TestSoap:
    def test_envelope(self) -> None:
        assert placed_in_soap_envelope("<x/>") == (
            '<?xml version="1.0" encoding="utf-8"?>'
            '<soap:Envelope xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"'
            ' xmlns:xsd="http://www.w3.org/2001/XMLSchema"'
            ' xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
            "<soap:Body><x/></soap:Body></soap:Envelope>"
        )

    def test_empty_payload(self) -> None:
        assert "<soap:Body></soap:Body>" in placed_in_soap_envelope("")


def test_encode_query_none_is_empty() -> None:
    assert encode_query({"a": None}) == "a="
