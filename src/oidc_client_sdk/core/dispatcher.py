"""Response dispatch: turn redirects and endpoint bodies into responses or errors.

Redirect handling always checks the state first, then an ``error``
parameter, then parses the success response. A forged redirect therefore
surfaces as a state mismatch even when it also carries an OAuth error.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..authorization import AuthorizationRequest, AuthorizationResponse
from ..base import load_json_object
from ..clock import SYSTEM_CLOCK, Clock
from ..codec import parse_redirect_params
from ..device import DeviceAuthorizationRequest, DeviceAuthorizationResponse
from ..end_session import EndSessionRequest, EndSessionResponse
from ..registration import RegistrationRequest, RegistrationResponse
from ..errors import InvalidStateError, StateMismatchError
from ..telemetry import get_logger, trace_operation
from ..token import TokenRequest, TokenResponse
from .errors import ErrorFactory
from .state_store import PendingRequestStore


def _check_state(expected: str | None, params: Mapping[str, str]) -> None:
    # A request built without a state matches only a redirect without one.
    received = params.get("state")
    if received != expected:
        get_logger().warning(
            "redirect_state_mismatch", state_present=received is not None
        )
        raise StateMismatchError(expected=expected, received=received)


def parse_authorization_redirect(
    request: AuthorizationRequest,
    uri: str,
    clock: Clock = SYSTEM_CLOCK,
) -> AuthorizationResponse:
    """Parse the redirect delivered for an authorization request.

    Raises:
        StateMismatchError: If the state is missing or differs.
        OAuthAuthorizationError: If the redirect carries an ``error``.
    """
    with trace_operation("authorization.parse_redirect"):
        params = parse_redirect_params(uri, request.response_mode)
        _check_state(request.state, params)
        if ErrorFactory.has_error(params):
            raise ErrorFactory.from_redirect_params(params)
        return AuthorizationResponse.from_redirect_params(request, params, clock)


def parse_end_session_redirect(
    request: EndSessionRequest,
    uri: str,
) -> EndSessionResponse:
    """Parse the redirect delivered for an end-session request.

    Raises:
        StateMismatchError: If the state is missing or differs.
        OAuthAuthorizationError: If the redirect carries an ``error``.
    """
    with trace_operation("end_session.parse_redirect"):
        params = parse_redirect_params(uri)
        _check_state(request.state, params)
        if ErrorFactory.has_error(params):
            raise ErrorFactory.from_redirect_params(params)
        return EndSessionResponse.from_redirect_params(request, params)


def parse_token_response(
    request: TokenRequest,
    body: Mapping[str, Any] | str | bytes,
    clock: Clock = SYSTEM_CLOCK,
    *,
    status_code: int | None = None,
) -> TokenResponse:
    """Parse a token endpoint reply.

    Raises:
        ParseError: If the body is malformed.
        OAuthTokenError: If the body carries an ``error`` member.
    """
    with trace_operation("token.parse_response"):
        json = load_json_object(body)
        if ErrorFactory.has_error(json):
            raise ErrorFactory.from_token_error_body(json, status_code=status_code)
        return TokenResponse.from_json(request, json, clock)


def parse_device_authorization_response(
    request: DeviceAuthorizationRequest,
    body: Mapping[str, Any] | str | bytes,
    clock: Clock = SYSTEM_CLOCK,
    *,
    status_code: int | None = None,
) -> DeviceAuthorizationResponse:
    """Parse a device authorization endpoint reply.

    Raises:
        ParseError: If the body is malformed or lacks mandatory members.
        OAuthTokenError: If the body carries an ``error`` member.
    """
    with trace_operation("device_authorization.parse_response"):
        json = load_json_object(body)
        if ErrorFactory.has_error(json):
            raise ErrorFactory.from_token_error_body(json, status_code=status_code)
        return DeviceAuthorizationResponse.from_json(request, json, clock)


def parse_registration_response(
    request: RegistrationRequest,
    body: Mapping[str, Any] | str | bytes,
    *,
    status_code: int | None = None,
) -> RegistrationResponse:
    """Parse a client registration endpoint reply.

    Raises:
        ParseError: If the body is malformed or lacks mandatory members.
        OAuthRegistrationError: If the body carries an ``error`` member.
    """
    with trace_operation("registration.parse_response"):
        json = load_json_object(body)
        if ErrorFactory.has_error(json):
            raise ErrorFactory.from_registration_error_body(json, status_code=status_code)
        return RegistrationResponse.from_json(request, json)


@dataclass(frozen=True)
class DispatchResult:
    """A parsed redirect response and the continuation registered with it."""

    response: AuthorizationResponse | EndSessionResponse
    continuation: Any = None


class ResponseDispatcher:
    """Completes redirect-based flows registered in a pending request store."""

    def __init__(
        self,
        store: PendingRequestStore,
        *,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> PendingRequestStore:
        return self._store

    def dispatch_redirect(self, uri: str) -> DispatchResult:
        """Route a redirect URI to the pending request it answers.

        The pending entry is consumed before parsing, so a redirect is
        handled at most once.

        Raises:
            StateMismatchError: If the redirect carries no state.
            NotFoundError: If no request is pending under the state.
            OAuthAuthorizationError: If the redirect carries an ``error``.
        """
        with trace_operation("dispatcher.dispatch_redirect"):
            state = _find_state(uri)
            if state is None:
                get_logger().warning("redirect_without_state")
                raise StateMismatchError("Redirect carries no state parameter")

            pending = self._store.consume(state)
            request = pending.request
            if isinstance(request, AuthorizationRequest):
                response: AuthorizationResponse | EndSessionResponse = (
                    parse_authorization_redirect(request, uri, self._clock)
                )
            elif isinstance(request, EndSessionRequest):
                response = parse_end_session_redirect(request, uri)
            else:
                raise InvalidStateError(
                    f"{type(request).__name__} is not completed by a redirect"
                )

            get_logger().info("redirect_dispatched", request_type=request.kind)
            return DispatchResult(response=response, continuation=pending.continuation)


def _find_state(uri: str) -> str | None:
    # The request, and so its response mode, is unknown until the state is found.
    state = parse_redirect_params(uri).get("state")
    if state is None:
        state = parse_redirect_params(uri, "query").get("state")
    return state
