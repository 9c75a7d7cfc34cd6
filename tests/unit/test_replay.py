"""Unit tests for response capture and replay."""

from idempotency_gate.core.replay import ReplayedResponse, capture_response, replay_response
from idempotency_gate.models import StoredResponse


class TestCaptureResponse:
    def test_captures_status_headers_body(self) -> None:
        response = ReplayedResponse(
            status=201,
            headers={"content-type": "application/json", "location": "/payments/1"},
            body=b'{"id": 1}',
        )

        stored = capture_response(response)

        assert stored.status == 201
        assert stored.headers == {"content-type": "application/json", "location": "/payments/1"}
        assert stored.body == '{"id": 1}'

    def test_drops_set_cookie_and_hop_by_hop(self) -> None:
        response = ReplayedResponse(
            status=200,
            headers={"set-cookie": "sid=1", "connection": "close", "x-a": "1"},
            body=b"",
        )

        assert capture_response(response).headers == {"x-a": "1"}

    def test_undecodable_bytes_replaced(self) -> None:
        stored = capture_response(ReplayedResponse(status=200, headers={}, body=b"ok\xff"))

        assert stored.body == "ok�"


class TestReplayResponse:
    def test_rebuilds_response_with_marker(self) -> None:
        stored = StoredResponse(
            status=201,
            headers={"content-type": "application/json"},
            body='{"id": 1}',
        )

        response = replay_response(stored)

        assert response.status == 201
        assert response.body == b'{"id": 1}'
        assert response.headers == {
            "content-type": "application/json",
            "Idempotency-Replayed": "true",
        }
        assert response.raw_headers is None

    def test_content_length_matches_body(self) -> None:
        stored = StoredResponse(status=200, headers={"Content-Length": "3"}, body="ok�")

        response = replay_response(stored)

        assert response.headers["Content-Length"] == str(len(response.body))

    def test_capture_then_replay_preserves_text(self) -> None:
        original = ReplayedResponse(status=200, headers={"x-a": "1"}, body="héllo".encode())

        replayed = replay_response(capture_response(original))

        assert replayed.body == original.body
        assert replayed.headers["x-a"] == "1"


class TestReplayedResponse:
    def test_ok(self) -> None:
        assert ReplayedResponse(200, {}, b"").ok
        assert ReplayedResponse(299, {}, b"").ok
        assert not ReplayedResponse(300, {}, b"").ok
        assert not ReplayedResponse(199, {}, b"").ok
