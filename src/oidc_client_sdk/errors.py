"""Error classes for the OIDC client SDK.

Implements a structured error hierarchy separating caller misuse,
protocol/security conditions and transport failures.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the OIDC client SDK."""

    # Caller misuse (1xxx)
    INVALID_ARGUMENT = "CLIENT_1001"
    INVALID_STATE = "CLIENT_1002"

    # OAuth protocol errors (2xxx)
    OAUTH_AUTHORIZATION_ERROR = "OAUTH_2001"
    OAUTH_TOKEN_ERROR = "OAUTH_2002"
    OAUTH_REGISTRATION_ERROR = "OAUTH_2003"

    # Security errors (3xxx)
    STATE_MISMATCH = "SEC_3001"
    NOT_FOUND = "SEC_3002"

    # Token errors (4xxx)
    MALFORMED_TOKEN = "TOKEN_4001"
    ID_TOKEN_INVALID = "TOKEN_4002"

    # Parse errors (5xxx)
    PARSE_ERROR = "PARSE_5001"

    # Network errors (6xxx)
    NETWORK_ERROR = "NET_6001"


class AuthorizationErrorCode(StrEnum):
    """Authorization endpoint error codes (RFC 6749 section 4.1.2.1)."""

    INVALID_REQUEST = "invalid_request"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    ACCESS_DENIED = "access_denied"
    UNSUPPORTED_RESPONSE_TYPE = "unsupported_response_type"
    INVALID_SCOPE = "invalid_scope"
    SERVER_ERROR = "server_error"
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"
    UNKNOWN = "unknown"

    @classmethod
    def from_error(cls, error: str | None) -> AuthorizationErrorCode:
        """Map a raw ``error`` value to a known code, else ``UNKNOWN``."""
        try:
            return cls(error)
        except ValueError:
            return cls.UNKNOWN


class TokenErrorCode(StrEnum):
    """Token endpoint error codes (RFC 6749 section 5.2, RFC 8628 section 3.5)."""

    INVALID_REQUEST = "invalid_request"
    INVALID_CLIENT = "invalid_client"
    INVALID_GRANT = "invalid_grant"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    INVALID_SCOPE = "invalid_scope"

    # Device authorization grant
    AUTHORIZATION_PENDING = "authorization_pending"
    SLOW_DOWN = "slow_down"
    ACCESS_DENIED = "access_denied"
    EXPIRED_TOKEN = "expired_token"

    UNKNOWN = "unknown"

    @classmethod
    def from_error(cls, error: str | None) -> TokenErrorCode:
        """Map a raw ``error`` value to a known code, else ``UNKNOWN``."""
        try:
            return cls(error)
        except ValueError:
            return cls.UNKNOWN


class RegistrationErrorCode(StrEnum):
    """Client registration error codes (RFC 7591 section 3.2.2)."""

    INVALID_REQUEST = "invalid_request"
    INVALID_REDIRECT_URI = "invalid_redirect_uri"
    INVALID_CLIENT_METADATA = "invalid_client_metadata"
    UNKNOWN = "unknown"

    @classmethod
    def from_error(cls, error: str | None) -> RegistrationErrorCode:
        """Map a raw ``error`` value to a known code, else ``UNKNOWN``."""
        try:
            return cls(error)
        except ValueError:
            return cls.UNKNOWN


class OIDCClientError(Exception):
    """Base error for the OIDC client SDK with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class InvalidArgumentError(OIDCClientError):
    """Caller supplied a value that violates a protocol constraint."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_ARGUMENT,
            details={"field": field} if field else None,
        )
        self.field = field


class InvalidStateError(OIDCClientError):
    """Mandatory field missing or builder misuse."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_STATE,
            details={"field": field} if field else None,
        )
        self.field = field


class _OAuthError(OIDCClientError):
    """Shared shape of errors reported by an authorization server."""

    def __init__(
        self,
        error: str,
        code: ErrorCode,
        *,
        error_description: str | None = None,
        error_uri: str | None = None,
        status_code: int | None = None,
    ) -> None:
        message = f"{error}: {error_description}" if error_description else error
        super().__init__(
            message,
            code,
            details={
                key: value
                for key, value in (
                    ("error", error),
                    ("error_description", error_description),
                    ("error_uri", error_uri),
                    ("status_code", status_code),
                )
                if value is not None
            },
        )
        self.error = error
        self.error_description = error_description
        self.error_uri = error_uri
        self.status_code = status_code


class OAuthAuthorizationError(_OAuthError):
    """Authorization or end-session endpoint returned an OAuth error."""

    def __init__(
        self,
        error: str,
        *,
        error_description: str | None = None,
        error_uri: str | None = None,
    ) -> None:
        super().__init__(
            error,
            ErrorCode.OAUTH_AUTHORIZATION_ERROR,
            error_description=error_description,
            error_uri=error_uri,
        )
        self.category = AuthorizationErrorCode.from_error(error)


class OAuthTokenError(_OAuthError):
    """Token or device authorization endpoint returned an OAuth error."""

    def __init__(
        self,
        error: str,
        *,
        error_description: str | None = None,
        error_uri: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            error,
            ErrorCode.OAUTH_TOKEN_ERROR,
            error_description=error_description,
            error_uri=error_uri,
            status_code=status_code,
        )
        self.category = TokenErrorCode.from_error(error)

    @property
    def is_authorization_pending(self) -> bool:
        return self.category is TokenErrorCode.AUTHORIZATION_PENDING

    @property
    def is_slow_down(self) -> bool:
        return self.category is TokenErrorCode.SLOW_DOWN

    @property
    def is_terminal(self) -> bool:
        """Whether a device-flow poller must stop on this error."""
        return not (self.is_authorization_pending or self.is_slow_down)


class OAuthRegistrationError(_OAuthError):
    """Registration endpoint rejected the client metadata."""

    def __init__(
        self,
        error: str,
        *,
        error_description: str | None = None,
        error_uri: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            error,
            ErrorCode.OAUTH_REGISTRATION_ERROR,
            error_description=error_description,
            error_uri=error_uri,
            status_code=status_code,
        )
        self.category = RegistrationErrorCode.from_error(error)


class NetworkError(OIDCClientError):
    """Transport-level failure, opaque to the protocol layer."""

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(
            message,
            ErrorCode.NETWORK_ERROR,
            details=details,
        )
        self.status_code = status_code
        self.__cause__ = cause


class MalformedTokenError(OIDCClientError):
    """Identity token could not be decoded or lacks mandatory claims."""

    def __init__(self, message: str = "Unable to parse ID token") -> None:
        super().__init__(message, ErrorCode.MALFORMED_TOKEN)


class IdTokenValidationError(OIDCClientError):
    """Identity token claims are well-formed but fail validation."""

    def __init__(
        self,
        message: str,
        *,
        claim: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.ID_TOKEN_INVALID,
            details={"claim": claim} if claim else None,
        )
        self.claim = claim


class StateMismatchError(OIDCClientError):
    """Response state is missing or differs from the request state.

    Signals a possible redirect-injection attack and must always be surfaced.
    """

    def __init__(
        self,
        message: str = "Response state param did not match request state",
        *,
        expected: str | None = None,
        received: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.STATE_MISMATCH,
            details={"received_state_present": received is not None},
        )
        self.expected = expected
        self.received = received


class NotFoundError(OIDCClientError):
    """No pending request is registered under the given state token."""

    def __init__(self, state: str) -> None:
        super().__init__(
            "No pending request found for state",
            ErrorCode.NOT_FOUND,
        )
        self.state = state


class ParseError(OIDCClientError):
    """Malformed JSON, malformed document or missing mandatory member."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.PARSE_ERROR,
            details={"field": field} if field else None,
        )
        self.field = field
