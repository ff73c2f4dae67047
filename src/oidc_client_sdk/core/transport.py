"""HTTP transport boundary.

Requests are rendered to a plain :class:`HttpRequest`; sending them is left
to an ``httpx.Client`` owned by the caller. Nothing here retries.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from ..client_auth import (
    NO_CLIENT_AUTHENTICATION,
    ClientAuthentication,
    apply_client_authentication,
)
from ..clock import SYSTEM_CLOCK, Clock
from ..codec import form_url_encode
from ..device import DeviceAuthorizationRequest, DeviceAuthorizationResponse
from ..errors import ParseError
from ..registration import RegistrationRequest, RegistrationResponse
from ..telemetry import get_logger, trace_operation
from ..token import TokenRequest, TokenResponse
from .dispatcher import (
    parse_device_authorization_response,
    parse_registration_response,
    parse_token_response,
)
from .errors import ErrorFactory

CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
ACCEPT_JSON = "application/json"
CONTENT_TYPE_JSON = "application/json"


@dataclass(frozen=True)
class HttpRequest:
    """A fully rendered HTTP request."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    def to_httpx(self) -> httpx.Request:
        return httpx.Request(
            self.method,
            self.url,
            headers=self.headers,
            content=self.body.encode("utf-8"),
        )


def _form_post(url: str, headers: dict[str, str], params: dict[str, str]) -> HttpRequest:
    return HttpRequest(
        method="POST",
        url=url,
        headers={
            "Content-Type": CONTENT_TYPE_FORM,
            "Accept": ACCEPT_JSON,
            **headers,
        },
        body=form_url_encode(params),
    )


def prepare_token_request(
    request: TokenRequest,
    client_auth: ClientAuthentication = NO_CLIENT_AUTHENTICATION,
) -> HttpRequest:
    """Render a token request as a form POST to the token endpoint.

    Raises:
        InvalidArgumentError: If client authentication conflicts with the
            request parameters.
    """
    with trace_operation(
        "token.prepare_request",
        attributes={"grant_type": request.grant_type, "client_auth": client_auth.name},
    ):
        headers, params = request.to_authenticated_parameters(client_auth)
        return _form_post(request.configuration.token_endpoint, headers, params)


def prepare_device_authorization_request(
    request: DeviceAuthorizationRequest,
    client_auth: ClientAuthentication = NO_CLIENT_AUTHENTICATION,
) -> HttpRequest:
    """Render a device authorization request as a form POST."""
    with trace_operation(
        "device_authorization.prepare_request",
        attributes={"client_auth": client_auth.name},
    ):
        headers, params = apply_client_authentication(
            client_auth, request.client_id, request.to_parameters()
        )
        # Endpoint presence is checked at construction
        url = request.configuration.device_authorization_endpoint or ""
        return _form_post(url, headers, params)


def prepare_registration_request(request: RegistrationRequest) -> HttpRequest:
    """Render a registration request as a JSON POST of the client metadata."""
    with trace_operation(
        "registration.prepare_request",
        attributes={"redirect_uri_count": len(request.redirect_uris)},
    ):
        # Endpoint presence is checked at construction
        url = request.configuration.registration_endpoint or ""
        return HttpRequest(
            method="POST",
            url=url,
            headers={"Content-Type": CONTENT_TYPE_JSON, "Accept": ACCEPT_JSON},
            body=request.to_json_string(),
        )


def send(client: httpx.Client, http_request: HttpRequest) -> httpx.Response:
    """Send a rendered request.

    Raises:
        NetworkError: On any transport failure.
    """
    with trace_operation("transport.send", attributes={"http.method": http_request.method}):
        try:
            return client.send(http_request.to_httpx())
        except httpx.HTTPError as e:
            get_logger().warning("transport_failed", error=type(e).__name__)
            raise ErrorFactory.from_exception(e) from e


def _decode_reply(response: httpx.Response) -> dict | None:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def token_response_from_httpx(
    request: TokenRequest,
    response: httpx.Response,
    clock: Clock = SYSTEM_CLOCK,
) -> TokenResponse:
    """Classify a token endpoint reply.

    Raises:
        OAuthTokenError: If the body is an OAuth error.
        NetworkError: On any other HTTP failure status.
        ParseError: If a success body is malformed.
    """
    body = _decode_reply(response)
    if body is not None and ErrorFactory.has_error(body):
        raise ErrorFactory.from_token_error_body(body, status_code=response.status_code)
    if response.status_code >= 400:
        raise ErrorFactory.from_http_status(response)
    if body is None:
        raise ParseError("Token endpoint reply is not a JSON object")
    return parse_token_response(request, body, clock, status_code=response.status_code)


def device_authorization_response_from_httpx(
    request: DeviceAuthorizationRequest,
    response: httpx.Response,
    clock: Clock = SYSTEM_CLOCK,
) -> DeviceAuthorizationResponse:
    """Classify a device authorization endpoint reply.

    Raises:
        OAuthTokenError: If the body is an OAuth error.
        NetworkError: On any other HTTP failure status.
        ParseError: If a success body is malformed.
    """
    body = _decode_reply(response)
    if body is not None and ErrorFactory.has_error(body):
        raise ErrorFactory.from_token_error_body(body, status_code=response.status_code)
    if response.status_code >= 400:
        raise ErrorFactory.from_http_status(response)
    if body is None:
        raise ParseError("Device authorization reply is not a JSON object")
    return parse_device_authorization_response(
        request, body, clock, status_code=response.status_code
    )


def registration_response_from_httpx(
    request: RegistrationRequest,
    response: httpx.Response,
) -> RegistrationResponse:
    """Classify a client registration endpoint reply.

    Raises:
        OAuthRegistrationError: If the body is an OAuth error.
        NetworkError: On any other HTTP failure status.
        ParseError: If a success body is malformed.
    """
    body = _decode_reply(response)
    if body is not None and ErrorFactory.has_error(body):
        raise ErrorFactory.from_registration_error_body(
            body, status_code=response.status_code
        )
    if response.status_code >= 400:
        raise ErrorFactory.from_http_status(response)
    if body is None:
        raise ParseError("Registration reply is not a JSON object")
    return parse_registration_response(
        request, body, status_code=response.status_code
    )
