"""Problem-detail error responses.

Errors surfaced by the gate are rendered as RFC 9457 problem documents
(``application/problem+json``) unless the application supplies its own
``on_error`` builder.

The body renderer is pluggable: an installed distribution may register a
callable under the ``idempotency_gate.problem_renderers`` entry-point group.
It receives the :class:`ProblemDetail` and returns the body as bytes or text.
The first renderer that loads is used for the life of the process; without
one, the built-in JSON renderer applies.

Examples:
    Registering a renderer in another package's ``pyproject.toml``::

        [project.entry-points."idempotency_gate.problem_renderers"]
        default = "my_app.errors:render_problem"
"""

import functools
from collections.abc import Callable, Mapping
from importlib.metadata import entry_points
from typing import Any

from idempotency_gate.core.replay import ReplayedResponse
from idempotency_gate.exceptions import ProblemDetail
from idempotency_gate.observability.logging import get_logger

logger = get_logger(__name__)

PROBLEM_CONTENT_TYPE = "application/problem+json"
RENDERER_ENTRY_POINT_GROUP = "idempotency_gate.problem_renderers"

FALLBACK_STATUS = 500
FALLBACK_BODY = (
    b'{"type":"about:blank","title":"Internal Server Error","status":500,'
    b'"detail":"The error response could not be rendered","code":"INTERNAL_ERROR"}'
)

ProblemRenderer = Callable[[ProblemDetail], bytes | str]


def render_problem(problem: ProblemDetail) -> bytes:
    """Built-in renderer: the problem document as compact JSON."""
    return problem.model_dump_json().encode("utf-8")


@functools.lru_cache(maxsize=1)
def get_problem_renderer() -> ProblemRenderer:
    """Resolve the problem body renderer once per process.

    Returns:
        The first loadable renderer registered under
        ``idempotency_gate.problem_renderers``, or :func:`render_problem`.
    """
    for entry_point in entry_points(group=RENDERER_ENTRY_POINT_GROUP):
        try:
            renderer = entry_point.load()
        except Exception as e:
            logger.warning(
                "problem.renderer_load_failed",
                renderer=entry_point.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            continue
        logger.debug("problem.renderer_loaded", renderer=entry_point.name)
        return renderer

    return render_problem


def clamp_status(status: Any) -> int:
    """Return ``status`` if it is an integer in 200..599, else 500.

    Examples:
        >>> clamp_status(409)
        409
        >>> clamp_status(100)
        500
        >>> clamp_status("409")
        500
    """
    if isinstance(status, bool) or not isinstance(status, int):
        return FALLBACK_STATUS
    if not 200 <= status <= 599:
        return FALLBACK_STATUS
    return status


def problem_response(
    problem: ProblemDetail,
    extra_headers: Mapping[str, str] | None = None,
) -> ReplayedResponse:
    """Build an ``application/problem+json`` response.

    Never raises. If the body cannot be rendered, a fixed 500 payload is
    returned; ``extra_headers`` are kept either way.

    Args:
        problem: The problem document.
        extra_headers: Headers to add, e.g. ``Retry-After``.

    Returns:
        The error response.
    """
    headers = dict(extra_headers or {})
    headers["Content-Type"] = PROBLEM_CONTENT_TYPE

    try:
        body = get_problem_renderer()(problem)
        if isinstance(body, str):
            body = body.encode("utf-8")
        status = clamp_status(problem.status)
    except Exception as e:
        logger.error(
            "problem.render_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return ReplayedResponse(status=FALLBACK_STATUS, headers=headers, body=FALLBACK_BODY)

    return ReplayedResponse(status=status, headers=headers, body=body)
