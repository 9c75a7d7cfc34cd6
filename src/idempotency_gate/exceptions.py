"""Error taxonomy for the idempotency gate.

Every error the controller can surface to a client is a subclass of
:class:`IdempotencyError`. Each kind carries a stable machine-readable code,
a title, an HTTP status, a detail string, and a documentation type URI, and
can be turned into an RFC 9457 problem document with :meth:`to_problem`.

Examples:
    Rendering an error::

        from idempotency_gate.exceptions import ConflictError

        problem = ConflictError().to_problem()
        problem.status  # 409
        problem.code  # "CONFLICT"

    Handling every kind at once::

        try:
            ...
        except IdempotencyError as e:
            logger.warning("request.rejected", code=e.code)
"""

from pydantic import BaseModel, Field

ERROR_TYPE_BASE_URL = "https://idempotency-gate.dev/errors"


class ProblemDetail(BaseModel):
    """Problem document returned in error responses.

    Attributes:
        type: URI identifying the problem kind.
        title: Short human-readable summary.
        status: HTTP status code.
        detail: Explanation specific to this occurrence.
        code: Stable machine-readable error code.
    """

    type: str = Field(..., description="Documentation URI for the problem kind")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Occurrence-specific explanation")
    code: str = Field(..., description="Stable machine-readable error code")


class IdempotencyError(Exception):
    """Base exception for all errors surfaced by the idempotency gate.

    Subclasses set the class attributes; ``detail`` may be overridden per
    instance.

    Attributes:
        code: Stable machine-readable error code.
        title: Short human-readable summary.
        status: HTTP status code.
        slug: Final path segment of the documentation URI.
        detail: Explanation specific to this occurrence.
    """

    code = "IDEMPOTENCY_ERROR"
    title = "Idempotency error"
    status = 500
    slug = "idempotency-error"
    default_detail = "The request could not be processed"

    def __init__(self, detail: str | None = None) -> None:
        """Initialize the exception.

        Args:
            detail: Occurrence-specific explanation. Defaults to the kind's
                ``default_detail``.
        """
        self.detail = detail if detail is not None else self.default_detail
        super().__init__(self.detail)

    @property
    def type_uri(self) -> str:
        """Documentation URI for this error kind."""
        return f"{ERROR_TYPE_BASE_URL}/{self.slug}"

    def to_problem(self) -> ProblemDetail:
        """Build the problem document for this error."""
        return ProblemDetail(
            type=self.type_uri,
            title=self.title,
            status=self.status,
            detail=self.detail,
            code=self.code,
        )


class MissingKeyError(IdempotencyError):
    """The endpoint requires an idempotency key and none was sent."""

    code = "MISSING_KEY"
    title = "Idempotency-Key header is required"
    status = 400
    slug = "missing-key"
    default_detail = "This endpoint requires an Idempotency-Key header"

    def __init__(self, header_name: str = "Idempotency-Key") -> None:
        super().__init__(f"This endpoint requires an {header_name} header")
        self.header_name = header_name


class KeyTooLongError(IdempotencyError):
    """The idempotency key exceeds the configured maximum length."""

    code = "KEY_TOO_LONG"
    title = "Idempotency-Key is too long"
    status = 400
    slug = "key-too-long"

    def __init__(self, max_length: int) -> None:
        super().__init__(f"Idempotency-Key must be at most {max_length} characters")
        self.max_length = max_length


class BodyTooLargeError(IdempotencyError):
    """The request body exceeds the configured maximum size."""

    code = "BODY_TOO_LARGE"
    title = "Request body is too large"
    status = 413
    slug = "body-too-large"

    def __init__(self, max_size: int) -> None:
        super().__init__(f"Request body must be at most {max_size} bytes")
        self.max_size = max_size


class FingerprintMismatchError(IdempotencyError):
    """The key was already used with a different request.

    The stored record is left untouched; the client must pick a new key.
    """

    code = "FINGERPRINT_MISMATCH"
    title = "Idempotency-Key is already used with a different request"
    status = 422
    slug = "fingerprint-mismatch"
    default_detail = (
        "A request with the same idempotency key but different parameters "
        "was already processed"
    )


class ConflictError(IdempotencyError):
    """Another request currently holds the lock for this key.

    Clients may retry after the delay given in the ``Retry-After`` header.
    """

    code = "CONFLICT"
    title = "A request is outstanding for this idempotency key"
    status = 409
    slug = "conflict"
    default_detail = "A request with the same idempotency key is currently being processed"
