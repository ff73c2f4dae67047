"""Centralized error factory for the OIDC client SDK.

Builds OAuth errors from redirect parameters and token endpoint bodies, and
maps transport exceptions to SDK errors.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from ..errors import (
    NetworkError,
    OAuthAuthorizationError,
    OAuthRegistrationError,
    OAuthTokenError,
    OIDCClientError,
)

PARAM_ERROR = "error"
PARAM_ERROR_DESCRIPTION = "error_description"
PARAM_ERROR_URI = "error_uri"


class ErrorFactory:
    """Centralized error creation with consistent structure."""

    @staticmethod
    def has_error(values: Mapping[str, Any]) -> bool:
        """Whether a redirect or response body reports an OAuth error."""
        return values.get(PARAM_ERROR) is not None

    @staticmethod
    def from_redirect_params(params: Mapping[str, str]) -> OAuthAuthorizationError:
        """Create an authorization error from redirect parameters.

        Args:
            params: Parsed redirect parameters containing ``error``.

        Returns:
            OAuthAuthorizationError with the server's description and URI.
        """
        return OAuthAuthorizationError(
            params[PARAM_ERROR],
            error_description=params.get(PARAM_ERROR_DESCRIPTION),
            error_uri=params.get(PARAM_ERROR_URI),
        )

    @staticmethod
    def from_token_error_body(
        body: Mapping[str, Any],
        *,
        status_code: int | None = None,
    ) -> OAuthTokenError:
        """Create a token error from a JSON error body.

        Args:
            body: Decoded JSON body containing ``error``.
            status_code: HTTP status of the reply, when known.

        Returns:
            OAuthTokenError carrying the raw error and its category.
        """
        return OAuthTokenError(
            str(body[PARAM_ERROR]),
            error_description=_optional_str(body.get(PARAM_ERROR_DESCRIPTION)),
            error_uri=_optional_str(body.get(PARAM_ERROR_URI)),
            status_code=status_code,
        )

    @staticmethod
    def from_registration_error_body(
        body: Mapping[str, Any],
        *,
        status_code: int | None = None,
    ) -> OAuthRegistrationError:
        """Create a registration error from a JSON error body."""
        return OAuthRegistrationError(
            str(body[PARAM_ERROR]),
            error_description=_optional_str(body.get(PARAM_ERROR_DESCRIPTION)),
            error_uri=_optional_str(body.get(PARAM_ERROR_URI)),
            status_code=status_code,
        )

    @staticmethod
    def from_http_status(response: httpx.Response) -> NetworkError:
        """Create a network error for an HTTP failure without an OAuth body."""
        return NetworkError(
            f"Request failed with status {response.status_code}",
            status_code=response.status_code,
        )

    @staticmethod
    def from_exception(exc: Exception) -> OIDCClientError:
        """Create SDK error from exception.

        Args:
            exc: Original exception.

        Returns:
            The exception itself when already an SDK error, otherwise a
            NetworkError chaining it.
        """
        if isinstance(exc, OIDCClientError):
            return exc

        if isinstance(exc, httpx.TimeoutException):
            return NetworkError(f"Request timed out: {exc}", cause=exc)

        if isinstance(exc, httpx.ConnectError):
            return NetworkError(f"Connection failed: {exc}", cause=exc)

        if isinstance(exc, httpx.HTTPStatusError):
            return NetworkError(
                f"HTTP error: {exc}",
                status_code=exc.response.status_code,
                cause=exc,
            )

        if isinstance(exc, httpx.HTTPError):
            return NetworkError(f"HTTP error: {exc}", cause=exc)

        return NetworkError(f"Unexpected error: {exc}", cause=exc)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
