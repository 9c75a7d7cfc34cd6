"""Response capture and replay for the idempotency gate.

This module converts between the response objects the controller hands to
and receives from handlers, and the :class:`StoredResponse` snapshot kept in
the store:

1. capture_response() drops headers that are unsafe to replay and decodes
   the body to text
2. replay_response() rebuilds a response from a snapshot and adds the
   ``Idempotency-Replayed: true`` marker

Examples:
    Round trip::

        from idempotency_gate.core.replay import (
            ReplayedResponse,
            capture_response,
            replay_response,
        )

        original = ReplayedResponse(
            status=201,
            headers={"content-type": "application/json", "set-cookie": "sid=1"},
            body=b'{"id": "pay_1"}',
        )
        stored = capture_response(original)
        replayed = replay_response(stored)
        # replayed.headers["Idempotency-Replayed"] == "true"
        # "set-cookie" not in replayed.headers
"""

from idempotency_gate.models import StoredResponse
from idempotency_gate.utils.headers import add_replay_headers, filter_response_headers

BODY_ENCODING = "utf-8"


class ReplayedResponse:
    """Framework-agnostic HTTP response.

    Used both for responses produced by handlers and for responses built by
    the gate (replays and errors).

    Attributes:
        status: HTTP status code (e.g., 200, 404, 500)
        headers: Response headers, one value per name
        body: Response body as bytes
        raw_headers: Optional original header list, kept so adapters can pass
            repeated headers through unchanged on the first response
    """

    def __init__(
        self,
        status: int,
        headers: dict[str, str],
        body: bytes,
        raw_headers: list[tuple[bytes, bytes]] | None = None,
    ) -> None:
        self.status = status
        self.headers = headers
        self.body = body
        self.raw_headers = raw_headers

    @property
    def ok(self) -> bool:
        """True for 2xx statuses."""
        return 200 <= self.status < 300


def capture_response(response: ReplayedResponse) -> StoredResponse:
    """Snapshot a successful response for later replay.

    ``set-cookie`` and hop-by-hop headers are dropped. The body is decoded as
    UTF-8; undecodable bytes are replaced, so binary bodies do not survive a
    replay byte for byte.

    Args:
        response: The handler's response.

    Returns:
        The snapshot to pass to ``StorageAdapter.complete``.
    """
    return StoredResponse(
        status=response.status,
        headers=filter_response_headers(response.headers),
        body=response.body.decode(BODY_ENCODING, errors="replace"),
    )


def replay_response(stored: StoredResponse) -> ReplayedResponse:
    """Rebuild a response from a stored snapshot.

    Args:
        stored: The snapshot held by a completed record.

    Returns:
        ReplayedResponse with the stored status, headers and body plus the
        replay marker.

    Examples:
        >>> stored = StoredResponse(
        ...     status=201,
        ...     headers={"content-type": "application/json"},
        ...     body='{"ok": true}',
        ... )
        >>> response = replay_response(stored)
        >>> response.status
        201
        >>> response.headers["Idempotency-Replayed"]
        'true'
        >>> response.body
        b'{"ok": true}'
    """
    body = stored.body.encode(BODY_ENCODING)
    headers = add_replay_headers(stored.headers)

    # The re-encoded body may differ in length from the original bytes
    for name in list(headers):
        if name.lower() == "content-length":
            headers[name] = str(len(body))

    return ReplayedResponse(status=stored.status, headers=headers, body=body)
