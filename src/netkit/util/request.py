from __future__ import annotations

import json as _json
import typing
from urllib.parse import quote, urlencode

__all__ = [
    "CONTENT_TYPE_FORM",
    "CONTENT_TYPE_JSON",
    "CONTENT_TYPE_XML",
    "encode_json",
    "encode_percent",
    "encode_query",
    "placed_in_soap_envelope",
]

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded; charset=utf-8"
CONTENT_TYPE_XML = "text/xml; charset=utf-8"

SOAP_XML_HEADER = '<?xml version="1.0" encoding="utf-8"?>'
SOAP_ENVELOPE_START = (
    "<soap:Envelope"
    ' xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"'
    ' xmlns:xsd="http://www.w3.org/2001/XMLSchema"'
    ' xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
)
SOAP_BODY_START = "<soap:Body>"
SOAP_BODY_END = "</soap:Body>"
SOAP_ENVELOPE_END = "</soap:Envelope>"

_TYPE_PARAMETERS = typing.Mapping[str, typing.Any]


def placed_in_soap_envelope(text: str) -> str:
    """
    Wrap ``text`` in a SOAP 1.1 envelope. No whitespace is added between
    the elements, so the result is byte-for-byte predictable.
    """
    return (
        SOAP_XML_HEADER
        + SOAP_ENVELOPE_START
        + SOAP_BODY_START
        + text
        + SOAP_BODY_END
        + SOAP_ENVELOPE_END
    )


def _flatten(parameters: _TYPE_PARAMETERS) -> list[tuple[str, str]]:
    pairs = []
    for name, value in parameters.items():
        if isinstance(value, (list, tuple)):
            pairs.extend((name, _stringify(item)) for item in value)
        else:
            pairs.append((name, _stringify(value)))
    return pairs


def _stringify(value: typing.Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def encode_query(parameters: _TYPE_PARAMETERS) -> str:
    """Encode URL query parameters. Spaces become ``%20``."""
    return urlencode(_flatten(parameters), quote_via=quote)


def encode_percent(parameters: _TYPE_PARAMETERS) -> bytes:
    """Encode body parameters as ``application/x-www-form-urlencoded``."""
    return urlencode(_flatten(parameters)).encode("utf-8")


def encode_json(value: typing.Any) -> bytes:
    # Same compact form urllib3 uses for its ``json=`` request argument.
    return _json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )
