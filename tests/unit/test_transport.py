"""Unit tests for the HTTP transport boundary."""

import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest

from oidc_client_sdk.client_auth import ClientSecretBasic, ClientSecretPost
from oidc_client_sdk.config import ServiceConfiguration
from oidc_client_sdk.core.transport import (
    device_authorization_response_from_httpx,
    prepare_device_authorization_request,
    prepare_registration_request,
    prepare_token_request,
    registration_response_from_httpx,
    send,
    token_response_from_httpx,
)
from oidc_client_sdk.device import DeviceAuthorizationRequest
from oidc_client_sdk.errors import (
    NetworkError,
    OAuthRegistrationError,
    OAuthTokenError,
    ParseError,
    RegistrationErrorCode,
)
from oidc_client_sdk.registration import RegistrationRequest
from oidc_client_sdk.token import TokenRequest

from conftest import ISSUE_TIME_MS, FixedClock


@pytest.fixture
def token_request(service_config: ServiceConfiguration) -> TokenRequest:
    return (
        TokenRequest.builder(service_config, "client")
        .set_authorization_code("code")
        .set_redirect_uri("com.example.app:/cb")
        .build()
    )


class TestPrepareRequests:
    """Tests for rendering requests as HTTP calls."""

    def test_token_request_with_basic_auth(self, token_request: TokenRequest) -> None:
        http_request = prepare_token_request(token_request, ClientSecretBasic("s3cret"))
        assert http_request.method == "POST"
        assert http_request.url == "https://auth.example.com/token"
        assert http_request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert http_request.headers["Accept"] == "application/json"
        assert http_request.headers["Authorization"] == (
            "Basic " + base64.b64encode(b"client:s3cret").decode()
        )
        assert parse_qs(http_request.body) == {
            "grant_type": ["authorization_code"],
            "client_id": ["client"],
            "redirect_uri": ["com.example.app:/cb"],
            "code": ["code"],
        }

    def test_token_request_with_post_auth(self, token_request: TokenRequest) -> None:
        http_request = prepare_token_request(token_request, ClientSecretPost("s3cret"))
        assert "Authorization" not in http_request.headers
        assert parse_qs(http_request.body)["client_secret"] == ["s3cret"]

    def test_device_request(self, service_config: ServiceConfiguration) -> None:
        request = (
            DeviceAuthorizationRequest.builder(service_config, "tv")
            .set_scope("openid")
            .build()
        )
        http_request = prepare_device_authorization_request(request)
        assert http_request.url == "https://auth.example.com/device"
        assert parse_qs(http_request.body) == {"client_id": ["tv"], "scope": ["openid"]}

    def test_registration_request(self, service_config: ServiceConfiguration) -> None:
        request = RegistrationRequest.builder(service_config, ["com.example.app:/cb"]).build()
        http_request = prepare_registration_request(request)
        assert http_request.method == "POST"
        assert http_request.url == "https://auth.example.com/register"
        assert http_request.headers["Content-Type"] == "application/json"
        assert json.loads(http_request.body) == {
            "redirect_uris": ["com.example.app:/cb"],
            "application_type": "native",
        }

    def test_to_httpx(self, token_request: TokenRequest) -> None:
        request = prepare_token_request(token_request).to_httpx()
        assert request.method == "POST"
        assert str(request.url) == "https://auth.example.com/token"
        assert request.content.startswith(b"grant_type=authorization_code")


class TestSend:
    """Tests for sending through an httpx client."""

    def test_returns_response(self, token_request: TokenRequest) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
            return httpx.Response(200, json={"token_type": "Bearer"})

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            response = send(client, prepare_token_request(token_request))
        assert response.status_code == 200

    def test_wraps_transport_failure(self, token_request: TokenRequest) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(NetworkError) as exc_info:
                send(client, prepare_token_request(token_request))
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestClassifyReplies:
    """Tests for turning HTTP replies into responses or errors."""

    def test_token_success(self, token_request: TokenRequest, clock: FixedClock) -> None:
        reply = httpx.Response(200, json={"token_type": "Bearer", "expires_in": 60})
        response = token_response_from_httpx(token_request, reply, clock)
        assert response.access_token_expiration_time == ISSUE_TIME_MS + 60_000

    def test_token_oauth_error(self, token_request: TokenRequest) -> None:
        reply = httpx.Response(400, json={"error": "invalid_client"})
        with pytest.raises(OAuthTokenError) as exc_info:
            token_response_from_httpx(token_request, reply)
        assert exc_info.value.status_code == 400
        assert exc_info.value.error == "invalid_client"

    def test_token_http_failure(self, token_request: TokenRequest) -> None:
        reply = httpx.Response(503, text="unavailable")
        with pytest.raises(NetworkError) as exc_info:
            token_response_from_httpx(token_request, reply)
        assert exc_info.value.status_code == 503

    def test_token_success_not_json(self, token_request: TokenRequest) -> None:
        reply = httpx.Response(200, text="<html>")
        with pytest.raises(ParseError):
            token_response_from_httpx(token_request, reply)

    def test_device_slow_down(self, service_config: ServiceConfiguration) -> None:
        request = DeviceAuthorizationRequest.builder(service_config, "tv").build()
        reply = httpx.Response(400, json={"error": "slow_down"})
        with pytest.raises(OAuthTokenError) as exc_info:
            device_authorization_response_from_httpx(request, reply)
        assert exc_info.value.is_slow_down

    def test_device_success(
        self, service_config: ServiceConfiguration, sample_device_response: dict
    ) -> None:
        request = DeviceAuthorizationRequest.builder(service_config, "tv").build()
        reply = httpx.Response(200, json=sample_device_response)
        response = device_authorization_response_from_httpx(request, reply)
        assert response.device_code == sample_device_response["device_code"]

    def test_registration_success(self, service_config: ServiceConfiguration) -> None:
        request = RegistrationRequest.builder(service_config, ["com.example.app:/cb"]).build()
        reply = httpx.Response(201, json={"client_id": "issued-client"})
        response = registration_response_from_httpx(request, reply)
        assert response.client_id == "issued-client"
        assert response.request == request

    def test_registration_rejected(self, service_config: ServiceConfiguration) -> None:
        request = RegistrationRequest.builder(service_config, ["com.example.app:/cb"]).build()
        reply = httpx.Response(
            400,
            json={
                "error": "invalid_redirect_uri",
                "error_description": "redirect URI not allowed",
            },
        )
        with pytest.raises(OAuthRegistrationError) as exc_info:
            registration_response_from_httpx(request, reply)
        assert exc_info.value.category is RegistrationErrorCode.INVALID_REDIRECT_URI
        assert exc_info.value.status_code == 400
