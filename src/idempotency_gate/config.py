"""Configuration module for the idempotency gate.

This module provides the IdempotencyConfig class describing which requests
the gate covers, how keys are validated, and the hooks it calls. The storage
backend is passed to the middleware separately.

Example:
    Basic usage with defaults:

        >>> config = IdempotencyConfig()
        >>> config.methods
        ['POST', 'PATCH']

    Custom configuration:

        >>> config = IdempotencyConfig(
        ...     methods=["POST", "PUT"],
        ...     required=True,
        ...     max_body_size=1_048_576,
        ...     cache_key_prefix=lambda request: request.header("X-Tenant-Id") or "",
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['IDEMPOTENCY_METHODS'] = 'POST,PUT'
        >>> os.environ['IDEMPOTENCY_REQUIRED'] = 'true'
        >>> config = IdempotencyConfig.from_env()

Callables:
    ``fingerprint``, ``skip_request``, ``cache_key_prefix`` and the hooks
    receive the core :class:`~idempotency_gate.core.middleware.Request`.
    ``on_error`` receives the :class:`~idempotency_gate.exceptions.IdempotencyError`
    and the request and must return a
    :class:`~idempotency_gate.core.replay.ReplayedResponse` with an error
    status. Every callable may be sync or async.
"""

import os
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Valid HTTP methods for idempotency
VALID_HTTP_METHODS = {
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "CONNECT",
    "OPTIONS",
    "TRACE",
    "PATCH",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class IdempotencyConfig(BaseModel):
    """Configuration for the idempotency gate.

    Attributes:
        header_name: Request header carrying the idempotency key.
        required: Reject requests without a key (400) instead of passing
            them through untouched.
        methods: HTTP methods covered by the gate. Others bypass it.
        max_key_length: Longest accepted key, in characters.
        max_body_size: Largest accepted request body in bytes, or None for
            no limit.
        retry_after_seconds: Value of the ``Retry-After`` header on 409.
        cache_key_prefix: Static namespace string, or a callable returning
            one per request, for multi-tenant key isolation.
        fingerprint: Replaces the default method/path/body digest.
        skip_request: Per-request opt-out predicate. Should be cheap and
            must not read the body.
        on_error: Builds the error response instead of the problem document.
            Returning a 2xx response bypasses idempotency guarantees.
        on_cache_hit: Called with the raw key before a replay.
        on_cache_miss: Called with the raw key after a lock is acquired.

    Note:
        This class is immutable (frozen=True). Hook keys are raw client
        input; sanitize before logging them.
    """

    header_name: str = Field(
        default="Idempotency-Key",
        description="Request header carrying the idempotency key",
    )
    required: bool = Field(
        default=False,
        description="Reject requests without an idempotency key",
    )
    methods: list[str] | str = Field(
        default=["POST", "PATCH"],
        description="HTTP methods covered by the gate",
    )
    max_key_length: int = Field(
        default=256,
        description="Maximum idempotency key length in characters",
    )
    max_body_size: int | None = Field(
        default=None,
        description="Maximum request body size in bytes (None=unlimited)",
    )
    retry_after_seconds: int = Field(
        default=1,
        description="Retry-After value sent with 409 Conflict responses",
    )
    cache_key_prefix: str | Callable[..., Any] | None = Field(
        default=None,
        description="Static or per-request namespace for store keys",
    )
    fingerprint: Callable[..., Any] | None = Field(
        default=None,
        description="Custom request fingerprint function",
    )
    skip_request: Callable[..., Any] | None = Field(
        default=None,
        description="Per-request opt-out predicate",
    )
    on_error: Callable[..., Any] | None = Field(
        default=None,
        description="Custom error response builder",
    )
    on_cache_hit: Callable[..., Any] | None = Field(
        default=None,
        description="Hook called before a stored response is replayed",
    )
    on_cache_miss: Callable[..., Any] | None = Field(
        default=None,
        description="Hook called after a new lock is acquired",
    )

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @field_validator("methods", mode="before")
    @classmethod
    def validate_methods(cls, v: Any) -> list[str]:
        """Validate and normalize covered HTTP methods.

        Args:
            v: List of HTTP method strings or comma-separated string.

        Returns:
            List of uppercase, validated HTTP methods.

        Raises:
            ValueError: If any method is not a valid HTTP method.

        Example:
            >>> IdempotencyConfig(methods=["post", "put"]).methods
            ['POST', 'PUT']
        """
        if isinstance(v, str):
            v = [method.strip() for method in v.split(",") if method.strip()]

        if not isinstance(v, list):
            raise ValueError("methods must be a list or comma-separated string")

        methods = [method.upper() for method in v]

        invalid_methods = set(methods) - VALID_HTTP_METHODS
        if invalid_methods:
            raise ValueError(
                f"Invalid HTTP methods: {', '.join(sorted(invalid_methods))}. "
                f"Valid methods are: {', '.join(sorted(VALID_HTTP_METHODS))}"
            )

        return methods

    @field_validator("header_name")
    @classmethod
    def validate_header_name(cls, v: str) -> str:
        """Reject blank header names."""
        v = v.strip()
        if not v:
            raise ValueError("header_name must not be empty")
        return v

    @field_validator("max_key_length")
    @classmethod
    def validate_max_key_length(cls, v: int) -> int:
        """Validate the key length limit is at least 1.

        Example:
            >>> IdempotencyConfig(max_key_length=64).max_key_length
            64
        """
        if v < 1:
            raise ValueError(f"max_key_length must be >= 1, got {v}")
        return v

    @field_validator("max_body_size")
    @classmethod
    def validate_max_body_size(cls, v: int | None) -> int | None:
        """Validate the body size limit is non-negative."""
        if v is not None and v < 0:
            raise ValueError(f"max_body_size must be >= 0, got {v}")
        return v

    @field_validator("retry_after_seconds")
    @classmethod
    def validate_retry_after_seconds(cls, v: int) -> int:
        """Validate the Retry-After value is non-negative."""
        if v < 0:
            raise ValueError(f"retry_after_seconds must be >= 0, got {v}")
        return v

    @classmethod
    def from_env(cls, prefix: str = "IDEMPOTENCY_", **overrides: Any) -> "IdempotencyConfig":
        """Create configuration from environment variables.

        Only scalar options are read from the environment; callables can be
        supplied through ``overrides``.

        Args:
            prefix: Prefix for environment variable names. Default is "IDEMPOTENCY_".
            **overrides: Values taking precedence over the environment.

        Returns:
            IdempotencyConfig instance populated from environment variables.

        Raises:
            ValueError: If a boolean variable has an unrecognized value.

        Example:
            >>> import os
            >>> os.environ['IDEMPOTENCY_MAX_KEY_LENGTH'] = '64'
            >>> IdempotencyConfig.from_env().max_key_length
            64
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "header_name": str,
            "required": bool,
            "methods": list,
            "max_key_length": int,
            "max_body_size": int,
            "retry_after_seconds": int,
            "cache_key_prefix": str,
        }

        for field_name, field_type in field_types.items():
            env_value = os.environ.get(f"{prefix}{field_name.upper()}")
            if env_value is None:
                continue

            if field_type is int:
                config_dict[field_name] = int(env_value)
            elif field_type is bool:
                config_dict[field_name] = _parse_bool(field_name, env_value)
            else:
                # Lists stay comma-separated; the validator splits them
                config_dict[field_name] = env_value

        config_dict.update(overrides)
        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "IdempotencyConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)


def _parse_bool(field_name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {field_name}: {value!r}")
