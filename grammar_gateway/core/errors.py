"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, TypedDict

if TYPE_CHECKING:
    from grammar_gateway.adapters.rate_limit.base import LimitDecision


class ErrorKind(str, Enum):
    """Stable classification of every failure the gateway can answer with."""

    METHOD_NOT_ALLOWED = "method_not_allowed"
    MALFORMED_INPUT = "malformed_input"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    RATE_LIMITED = "rate_limited"
    UPSTREAM = "upstream_error"
    INTERNAL = "internal_error"


class ErrorDetails(TypedDict, total=False):
    """Structured error context for logs. Never sent to clients."""

    hint: str
    max_chars: int
    actual_chars: int
    field_type: str
    upstream_status: int
    route_id: str
    retry_after: int


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message (this is what clients see).
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.INTERNAL


@dataclass
class ValidationAppError(AppError):
    """Raised when the inbound payload is rejected."""

    error_kind: ErrorKind = ErrorKind.MALFORMED_INPUT

    @property
    def kind(self) -> ErrorKind:
        return self.error_kind


@dataclass
class RateLimitedAppError(AppError):
    """Raised when a client exhausted its quota on a route.

    ``plain_text`` selects the response media type; the greeting route
    answers throttled clients with plain text rather than JSON.
    """

    decision: LimitDecision | None = None
    plain_text: bool = False

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.RATE_LIMITED


@dataclass
class UpstreamAppError(AppError):
    """Raised when the analysis service fails or answers with a non-2xx status.

    ``status_code`` is None for transport failures (connection, timeout).
    ``body`` keeps the raw error payload for logs.
    """

    status_code: int | None = None
    body: Any = field(default=None, repr=False)

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.UPSTREAM


class ConfigurationAppError(AppError):
    """Raised when the service is misconfigured (missing credential, unknown backend)."""


class RateLimitStoreAppError(AppError):
    """Raised when the window store is unavailable and the policy is to fail loudly."""


class WindowStoreError(Exception):
    """Raised by window store adapters when the backing store cannot be used."""


class ClientDisconnectedAppError(AppError):
    """Raised when the inbound client went away while work was in flight."""
