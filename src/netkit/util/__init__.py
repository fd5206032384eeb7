from __future__ import annotations

from .request import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_XML,
    encode_json,
    encode_percent,
    placed_in_soap_envelope,
)
from .wait import WaitToken

__all__ = (
    "CONTENT_TYPE_FORM",
    "CONTENT_TYPE_JSON",
    "CONTENT_TYPE_XML",
    "WaitToken",
    "encode_json",
    "encode_percent",
    "placed_in_soap_envelope",
)
