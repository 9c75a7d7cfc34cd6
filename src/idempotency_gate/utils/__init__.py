"""Utility modules for the idempotency gate."""

from .headers import (
    EXCLUDED_STORE_HEADERS,
    REPLAY_HEADER,
    RETRY_AFTER_HEADER,
    add_replay_headers,
    filter_response_headers,
    get_header_value,
)
from .keys import build_store_key, encode_segment

__all__ = [
    "filter_response_headers",
    "add_replay_headers",
    "get_header_value",
    "build_store_key",
    "encode_segment",
    "EXCLUDED_STORE_HEADERS",
    "REPLAY_HEADER",
    "RETRY_AFTER_HEADER",
]
