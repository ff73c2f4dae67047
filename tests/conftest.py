"""
Shared test fixtures for OIDC client SDK tests.

Provides service configurations, a controllable clock and identity token
helpers.
"""

import base64
import json

import pytest

from oidc_client_sdk.config import ClientConfig, ServiceConfiguration, TelemetryConfig
from oidc_client_sdk.core.state_store import PendingRequestStore

ISSUE_TIME_MS = 1_700_000_000_000

VALID_VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
VALID_CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


class FixedClock:
    """Clock returning a settable time in milliseconds."""

    def __init__(self, now_ms: int = ISSUE_TIME_MS) -> None:
        self.now_ms = now_ms

    def current_time_millis(self) -> int:
        return self.now_ms

    def advance(self, delta_ms: int) -> None:
        self.now_ms += delta_ms


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def make_id_token(claims: dict, header: dict | None = None) -> str:
    """Build an unsigned compact identity token."""
    header = header or {"alg": "none", "typ": "JWT"}
    return ".".join(
        [
            b64url(json.dumps(header).encode()),
            b64url(json.dumps(claims).encode()),
            "",
        ]
    )


@pytest.fixture
def service_config() -> ServiceConfiguration:
    """Provide a configuration with every endpoint defined."""
    return ServiceConfiguration(
        authorization_endpoint="https://auth.example.com/authorize",
        token_endpoint="https://auth.example.com/token",
        end_session_endpoint="https://auth.example.com/logout",
        device_authorization_endpoint="https://auth.example.com/device",
        registration_endpoint="https://auth.example.com/register",
    )


@pytest.fixture
def minimal_service_config() -> ServiceConfiguration:
    """Provide a configuration with only the mandatory endpoints."""
    return ServiceConfiguration(
        authorization_endpoint="https://auth.example.com/authorize",
        token_endpoint="https://auth.example.com/token",
    )


@pytest.fixture
def client_config() -> ClientConfig:
    """Provide a confidential client configuration."""
    return ClientConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="com.example.app:/oauth2redirect",
        scopes=["openid", "profile"],
        telemetry=TelemetryConfig(enabled=False, service_name="test-sdk"),
    )


@pytest.fixture
def clock() -> FixedClock:
    """Provide a clock fixed at the issue time."""
    return FixedClock()


@pytest.fixture
def store(clock: FixedClock) -> PendingRequestStore:
    """Provide an empty pending request store."""
    return PendingRequestStore(clock=clock)


@pytest.fixture
def discovery_document() -> dict:
    """Provide a sample OpenID Provider discovery document."""
    return {
        "issuer": "https://auth.example.com",
        "authorization_endpoint": "https://auth.example.com/authorize",
        "token_endpoint": "https://auth.example.com/token",
        "end_session_endpoint": "https://auth.example.com/logout",
        "jwks_uri": "https://auth.example.com/jwks",
        "response_types_supported": ["code"],
        "subject_types_supported": ["public"],
        "id_token_signing_alg_values_supported": ["RS256"],
    }


@pytest.fixture
def sample_token_response() -> dict:
    """Provide a sample OAuth token response."""
    return {
        "access_token": "access_token_value",
        "token_type": "Bearer",
        "expires_in": 3600,
        "refresh_token": "refresh_token_value",
        "scope": "openid profile email",
    }


@pytest.fixture
def sample_device_response() -> dict:
    """Provide a sample device authorization response."""
    return {
        "device_code": "GmRhmhcxhwAzkoEqiMEg_DnyEysNkuNhszIySk9eS",
        "user_code": "WDJB-MJHT",
        "verification_uri": "https://auth.example.com/device",
        "verification_uri_complete": "https://auth.example.com/device?user_code=WDJB-MJHT",
        "expires_in": 1800,
        "interval": 5,
    }
