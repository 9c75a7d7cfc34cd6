"""Unit tests for header filtering utilities."""

from idempotency_gate.utils.headers import (
    EXCLUDED_STORE_HEADERS,
    HOP_BY_HOP_HEADERS,
    REPLAY_HEADER,
    add_replay_headers,
    filter_response_headers,
    get_header_value,
)


class TestFilterResponseHeaders:
    """Tests for filter_response_headers function."""

    def test_removes_set_cookie(self):
        """Session cookies must never be stored."""
        headers = {
            "Content-Type": "application/json",
            "Set-Cookie": "session=abc123",
        }

        assert filter_response_headers(headers) == {"Content-Type": "application/json"}

    def test_removes_hop_by_hop_headers(self):
        headers = {
            "Content-Type": "application/json",
            "Connection": "keep-alive",
            "Transfer-Encoding": "chunked",
            "Keep-Alive": "timeout=5",
        }

        assert filter_response_headers(headers) == {"Content-Type": "application/json"}

    def test_preserves_other_headers(self):
        headers = {
            "Content-Type": "application/json",
            "Content-Length": "42",
            "Location": "/payments/pay_1",
            "X-Request-Id": "req-1",
            "Date": "Mon, 01 Jan 2024 00:00:00 GMT",
        }

        assert filter_response_headers(headers) == headers

    def test_case_insensitive_filtering(self):
        headers = {"SET-COOKIE": "a=1", "set-cookie": "b=2", "ConNecTion": "close", "X-A": "1"}

        assert filter_response_headers(headers) == {"X-A": "1"}

    def test_additional_excluded(self):
        headers = {"Content-Type": "text/plain", "X-Internal": "secret"}

        filtered = filter_response_headers(headers, additional_excluded=["x-INTERNAL"])

        assert filtered == {"Content-Type": "text/plain"}

    def test_does_not_mutate_original(self):
        headers = {"Set-Cookie": "a=1", "X-A": "1"}
        original = headers.copy()

        filter_response_headers(headers)

        assert headers == original

    def test_empty_headers(self):
        assert filter_response_headers({}) == {}


class TestAddReplayHeaders:
    """Tests for add_replay_headers function."""

    def test_adds_marker(self):
        result = add_replay_headers({"Content-Type": "application/json"})

        assert result == {"Content-Type": "application/json", REPLAY_HEADER: "true"}

    def test_replaces_existing_marker_any_case(self):
        result = add_replay_headers({"idempotency-replayed": "false"})

        assert result == {REPLAY_HEADER: "true"}

    def test_does_not_mutate_original(self):
        headers = {"X-A": "1"}

        add_replay_headers(headers)

        assert headers == {"X-A": "1"}


class TestGetHeaderValue:
    """Tests for get_header_value function."""

    def test_finds_header_different_case(self):
        assert get_header_value({"Idempotency-Key": "k"}, "idempotency-key") == "k"

    def test_returns_none_for_missing_header(self):
        assert get_header_value({"X-A": "1"}, "X-B") is None

    def test_returns_default_for_missing_header(self):
        assert get_header_value({}, "X-B", "fallback") == "fallback"


class TestHeaderSets:
    def test_excluded_is_credentials_plus_hop_by_hop(self):
        assert "set-cookie" in EXCLUDED_STORE_HEADERS
        assert HOP_BY_HOP_HEADERS <= EXCLUDED_STORE_HEADERS

    def test_all_lowercase(self):
        assert all(h == h.lower() for h in EXCLUDED_STORE_HEADERS)
