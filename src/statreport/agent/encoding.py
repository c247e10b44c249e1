"""
Record encoders.

Exactly one encoder is chosen at startup. Each returns the body together
with its media type so a delivery never mixes the two.
"""

import json

import msgpack

from .models import Record

JSON_CONTENT_TYPE = "application/json"
BINARY_CONTENT_TYPE = "application/octet-stream"


class JsonEncoder:
    """Human-readable text encoding."""

    content_type = JSON_CONTENT_TYPE

    def encode(self, record: Record) -> tuple[bytes, str]:
        body = json.dumps(record.to_dict(), separators=(",", ":")).encode("utf-8")
        return body, self.content_type


class MsgpackEncoder:
    """Compact binary encoding."""

    content_type = BINARY_CONTENT_TYPE

    def encode(self, record: Record) -> tuple[bytes, str]:
        return msgpack.packb(record.to_dict(), use_bin_type=True), self.content_type


def select_encoder(use_json: bool):
    """Binary unless the text encoding was requested."""
    return JsonEncoder() if use_json else MsgpackEncoder()
