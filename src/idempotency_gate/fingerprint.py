"""Request fingerprinting for idempotency.

The default fingerprint is the lowercase hex SHA-256 digest of
``method ":" path ":" body``. It binds an idempotency key to the request that
first used it, so a replayed key carrying a different payload is detected.

Note:
    Fields are joined with a plain ``:`` and are not length-prefixed, so a
    path containing ``:`` can produce the same digest as a different
    path/body split (``"/api:v2"`` + ``"body"`` and ``"/api"`` +
    ``"v2:body"``). Callers that need unambiguous boundaries should configure
    their own ``fingerprint`` callable.
"""

import hashlib


def compute_fingerprint(method: str, path: str, body: bytes | str) -> str:
    """Compute the default fingerprint for a request.

    Args:
        method: HTTP method, as received (e.g. ``"POST"``).
        path: URL path without the query string.
        body: Request body. Text is encoded as UTF-8.

    Returns:
        Hexadecimal SHA-256 digest (64 lowercase characters).

    Examples:
        >>> len(compute_fingerprint("POST", "/payments", '{"amount":1000}'))
        64
        >>> compute_fingerprint("POST", "/a", b"x") == compute_fingerprint("POST", "/a", "x")
        True
    """
    if isinstance(body, str):
        body = body.encode("utf-8")

    digest = hashlib.sha256()
    digest.update(f"{method}:{path}:".encode())
    digest.update(body)
    return digest.hexdigest()
