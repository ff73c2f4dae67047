"""Structured logging and tracing for protocol operations.

Spans are named after the protocol step (``token.prepare_request``,
``pending_request.consume``). Log events never carry credentials: a redaction
processor masks token, code and secret values before rendering.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, ParamSpec, TypeVar

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from .errors import OIDCClientError

if TYPE_CHECKING:
    from collections.abc import Generator, MutableMapping

    from .config import TelemetryConfig

P = ParamSpec("P")
T = TypeVar("T")

INSTRUMENTATION_NAME = "oidc-client-sdk"
INSTRUMENTATION_VERSION = "0.1.0"

REDACTED = "[REDACTED]"

# Event keys whose values are credentials or one-time codes
SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "id_token",
        "code",
        "authorization_code",
        "code_verifier",
        "device_code",
        "client_secret",
        "registration_access_token",
        "authorization",
    }
)

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}

_tracer: trace.Tracer | None = None
_logger: structlog.BoundLogger | None = None


def get_tracer() -> trace.Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(INSTRUMENTATION_NAME, INSTRUMENTATION_VERSION)
    return _tracer


def get_logger() -> structlog.BoundLogger:
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(INSTRUMENTATION_NAME)
    return _logger


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking credential values."""
    for key in event_dict.keys() & SENSITIVE_KEYS:
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def configure_telemetry(config: TelemetryConfig) -> None:
    """Install the logging pipeline and tracer for the SDK.

    With telemetry disabled, spans go to a no-op tracer and structlog keeps
    whatever configuration the host application installed.
    """
    global _tracer, _logger

    if not config.enabled:
        _tracer = trace.NoOpTracer()
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_secrets,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _log_level_to_int(config.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _tracer = trace.get_tracer(config.service_name, INSTRUMENTATION_VERSION)
    _logger = structlog.get_logger(config.service_name)


def _log_level_to_int(level: str) -> int:
    return _LEVELS.get(level.upper(), _LEVELS["INFO"])


@contextmanager
def trace_operation(
    name: str,
    *,
    attributes: dict[str, Any] | None = None,
) -> Generator[trace.Span, None, None]:
    """Run a protocol step inside a span.

    SDK errors additionally tag the span with their error code.
    """
    with get_tracer().start_as_current_span(name, attributes=attributes) as span:
        try:
            yield span
        except Exception as e:
            if isinstance(e, OIDCClientError):
                span.set_attribute("oidc.error_code", e.code)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def traced(name: str) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Trace a function; the ``kind`` of a returned protocol model is recorded."""

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            with trace_operation(name) as span:
                result = func(*args, **kwargs)
                kind = getattr(result, "kind", None)
                if isinstance(kind, str):
                    span.set_attribute("oidc.message_type", kind)
                return result

        return wrapper

    return decorator
