"""Unit tests for configuration module.

Tests the IdempotencyConfig class including validation, factory methods,
and immutability.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from idempotency_gate.config import VALID_HTTP_METHODS, IdempotencyConfig


class TestIdempotencyConfigDefaults:
    """Tests for default configuration values."""

    def test_default_values(self) -> None:
        config = IdempotencyConfig()

        assert config.header_name == "Idempotency-Key"
        assert config.required is False
        assert config.methods == ["POST", "PATCH"]
        assert config.max_key_length == 256
        assert config.max_body_size is None
        assert config.retry_after_seconds == 1
        assert config.cache_key_prefix is None
        assert config.fingerprint is None
        assert config.skip_request is None
        assert config.on_error is None
        assert config.on_cache_hit is None
        assert config.on_cache_miss is None


class TestMethodsValidation:
    def test_uppercase_conversion(self) -> None:
        config = IdempotencyConfig(methods=["post", "PuT"])
        assert config.methods == ["POST", "PUT"]

    def test_comma_separated_string(self) -> None:
        config = IdempotencyConfig(methods="post, put ,delete")
        assert config.methods == ["POST", "PUT", "DELETE"]

    def test_all_valid_methods(self) -> None:
        config = IdempotencyConfig(methods=list(VALID_HTTP_METHODS))
        assert set(config.methods) == VALID_HTTP_METHODS

    def test_invalid_method(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            IdempotencyConfig(methods=["POST", "FETCH"])

        assert "FETCH" in str(exc_info.value)

    def test_wrong_type(self) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig(methods=42)


class TestScalarValidation:
    def test_blank_header_name(self) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig(header_name="  ")

    def test_header_name_stripped(self) -> None:
        assert IdempotencyConfig(header_name=" X-Key ").header_name == "X-Key"

    @pytest.mark.parametrize("value", [0, -1])
    def test_max_key_length_must_be_positive(self, value: int) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig(max_key_length=value)

    def test_max_body_size_zero_allowed(self) -> None:
        assert IdempotencyConfig(max_body_size=0).max_body_size == 0

    def test_max_body_size_negative(self) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig(max_body_size=-1)

    def test_retry_after_negative(self) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig(retry_after_seconds=-1)


class TestCallables:
    def test_accepts_sync_and_async_callables(self) -> None:
        async def on_hit(key, request):
            return None

        config = IdempotencyConfig(
            fingerprint=lambda request: "fp",
            on_cache_hit=on_hit,
            cache_key_prefix=lambda request: "tenant",
        )

        assert config.on_cache_hit is on_hit
        assert callable(config.cache_key_prefix)

    def test_static_prefix(self) -> None:
        assert IdempotencyConfig(cache_key_prefix="tenant-1").cache_key_prefix == "tenant-1"


class TestImmutability:
    def test_frozen(self) -> None:
        config = IdempotencyConfig()

        with pytest.raises(ValidationError):
            config.required = True  # type: ignore[misc]


class TestFromEnv:
    def test_empty_env_gives_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            config = IdempotencyConfig.from_env()

        assert config == IdempotencyConfig()

    def test_reads_all_scalars(self) -> None:
        env = {
            "IDEMPOTENCY_HEADER_NAME": "X-Idempotency-Key",
            "IDEMPOTENCY_REQUIRED": "true",
            "IDEMPOTENCY_METHODS": "POST,PUT",
            "IDEMPOTENCY_MAX_KEY_LENGTH": "64",
            "IDEMPOTENCY_MAX_BODY_SIZE": "1024",
            "IDEMPOTENCY_CACHE_KEY_PREFIX": "svc",
            "IDEMPOTENCY_RETRY_AFTER_SECONDS": "5",
        }
        with patch.dict(os.environ, env, clear=True):
            config = IdempotencyConfig.from_env()

        assert config.header_name == "X-Idempotency-Key"
        assert config.required is True
        assert config.methods == ["POST", "PUT"]
        assert config.max_key_length == 64
        assert config.max_body_size == 1024
        assert config.cache_key_prefix == "svc"
        assert config.retry_after_seconds == 5

    @pytest.mark.parametrize(("raw", "expected"), [("1", True), ("YES", True), ("off", False)])
    def test_boolean_spellings(self, raw: str, expected: bool) -> None:
        with patch.dict(os.environ, {"IDEMPOTENCY_REQUIRED": raw}, clear=True):
            assert IdempotencyConfig.from_env().required is expected

    def test_invalid_boolean(self) -> None:
        with patch.dict(os.environ, {"IDEMPOTENCY_REQUIRED": "maybe"}, clear=True):
            with pytest.raises(ValueError):
                IdempotencyConfig.from_env()

    def test_custom_prefix(self) -> None:
        with patch.dict(os.environ, {"GATE_MAX_KEY_LENGTH": "32"}, clear=True):
            assert IdempotencyConfig.from_env(prefix="GATE_").max_key_length == 32

    def test_overrides_win(self) -> None:
        with patch.dict(os.environ, {"IDEMPOTENCY_REQUIRED": "false"}, clear=True):
            config = IdempotencyConfig.from_env(required=True)

        assert config.required is True


class TestFromDict:
    def test_builds_config(self) -> None:
        config = IdempotencyConfig.from_dict({"methods": ["put"], "max_key_length": 10})

        assert config.methods == ["PUT"]
        assert config.max_key_length == 10

    def test_invalid_values(self) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig.from_dict({"max_key_length": 0})
