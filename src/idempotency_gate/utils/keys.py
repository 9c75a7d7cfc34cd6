"""Store key construction.

The store key, not the raw client key, is the identity under which a record
lives in a backend. Every caller-controlled segment is percent-encoded before
concatenation so a crafted key or prefix containing ``:`` cannot forge the
composite key of another route or tenant.
"""

from urllib.parse import quote

STORE_KEY_DELIMITER = ":"


def encode_segment(value: str) -> str:
    """Percent-encode a caller-controlled key segment.

    Every reserved character is encoded, including ``:``, ``/`` and ``%``.

    Examples:
        >>> encode_segment("a:b")
        'a%3Ab'
        >>> encode_segment("50%")
        '50%25'
    """
    return quote(value, safe="")


def build_store_key(method: str, path: str, key: str, prefix: str | None = None) -> str:
    """Build the composite store key for a request.

    Args:
        method: HTTP method.
        path: URL path.
        key: Raw idempotency key from the client.
        prefix: Optional tenant or namespace prefix.

    Returns:
        ``[prefix ":"] method ":" path ":" key`` with prefix and key encoded.

    Examples:
        >>> build_store_key("POST", "/payments", "abc-123")
        'POST:/payments:abc-123'
        >>> build_store_key("POST", "/payments", "a:b", prefix="tenant:1")
        'tenant%3A1:POST:/payments:a%3Ab'
    """
    base = STORE_KEY_DELIMITER.join((method, path, encode_segment(key)))
    if prefix:
        return f"{encode_segment(prefix)}{STORE_KEY_DELIMITER}{base}"
    return base
