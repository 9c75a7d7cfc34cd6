"""Header filtering and manipulation utilities for the idempotency gate.

This module provides functions for:
- Dropping headers that are unsafe to replay before a response is stored
- Adding the replay marker to replayed responses
- Case-insensitive header lookup
"""

REPLAY_HEADER = "Idempotency-Replayed"
RETRY_AFTER_HEADER = "Retry-After"

# Session cookies must never leak to another caller through a replay
CREDENTIAL_HEADERS = {
    "set-cookie",
}

# Hop-by-hop headers describe the original connection, not the response
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
}

EXCLUDED_STORE_HEADERS = CREDENTIAL_HEADERS | HOP_BY_HOP_HEADERS


def filter_response_headers(
    headers: dict[str, str],
    additional_excluded: list[str] | None = None,
) -> dict[str, str]:
    """Drop headers that must not be stored for replay.

    Args:
        headers: Original response headers
        additional_excluded: Additional header names to drop (case-insensitive)

    Returns:
        Filtered headers dictionary

    Example:
        >>> filter_response_headers({
        ...     "Content-Type": "application/json",
        ...     "Set-Cookie": "session=abc",
        ... })
        {'Content-Type': 'application/json'}
    """
    excluded = set(EXCLUDED_STORE_HEADERS)

    if additional_excluded:
        excluded.update(h.lower() for h in additional_excluded)

    return {key: value for key, value in headers.items() if key.lower() not in excluded}


def add_replay_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` carrying the replay marker.

    Any existing marker, in any letter case, is replaced.

    Example:
        >>> add_replay_headers({"Content-Type": "application/json"})
        {'Content-Type': 'application/json', 'Idempotency-Replayed': 'true'}
    """
    result = {
        key: value for key, value in headers.items() if key.lower() != REPLAY_HEADER.lower()
    }
    result[REPLAY_HEADER] = "true"
    return result


def get_header_value(
    headers: dict[str, str],
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Get header value with case-insensitive lookup.

    Args:
        headers: Headers dictionary
        header_name: Name of header to find (case-insensitive)
        default: Default value if header not found

    Returns:
        Header value or default

    Example:
        >>> headers = {"Content-Type": "application/json"}
        >>> get_header_value(headers, "content-type")
        'application/json'
        >>> get_header_value(headers, "missing", "default")
        'default'
    """
    header_name_lower = header_name.lower()

    for key, value in headers.items():
        if key.lower() == header_name_lower:
            return value

    return default
