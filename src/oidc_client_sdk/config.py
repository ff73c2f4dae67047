"""Configuration for the OIDC client SDK.

Uses Pydantic v2 for validation: the authorization server endpoints a request
targets, and the client registration the caller acts as.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Literal, Self
from urllib.parse import urlsplit

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from .base import ProtocolModel, ReadOnlyDocument
from .client_auth import ClientAuthentication, client_authentication_for
from .errors import InvalidArgumentError, ParseError

if TYPE_CHECKING:
    from .authorization import AuthorizationRequestBuilder

WELL_KNOWN_PATH = ".well-known"
OPENID_CONFIGURATION_RESOURCE = "openid-configuration"

# Discovery metadata an OpenID Provider must publish (OIDC Discovery 1.0 section 3)
MANDATORY_DISCOVERY_METADATA = (
    "issuer",
    "authorization_endpoint",
    "token_endpoint",
    "jwks_uri",
    "response_types_supported",
    "subject_types_supported",
    "id_token_signing_alg_values_supported",
)


def _check_endpoint(value: str | None, field: str) -> str | None:
    if value is None:
        return None
    parts = urlsplit(value)
    if not parts.scheme or not parts.netloc:
        raise InvalidArgumentError(f"{field} must be an absolute URI", field=field)
    return value


class ServiceConfiguration(ProtocolModel):
    """Endpoints of an authorization server. Immutable, owned by the caller."""

    authorization_endpoint: str
    token_endpoint: str
    end_session_endpoint: str | None = None
    device_authorization_endpoint: str | None = None
    registration_endpoint: str | None = None
    discovery_doc: ReadOnlyDocument | None = None

    @model_validator(mode="after")
    def _check_endpoints(self) -> Self:
        for name in (
            "authorization_endpoint",
            "token_endpoint",
            "end_session_endpoint",
            "device_authorization_endpoint",
            "registration_endpoint",
        ):
            _check_endpoint(getattr(self, name), name)
        return self

    @property
    def issuer(self) -> str | None:
        """Issuer identifier, when built from a discovery document."""
        if self.discovery_doc is None:
            return None
        return self.discovery_doc.get("issuer")

    @classmethod
    def from_discovery_document(cls, document: Mapping[str, Any]) -> Self:
        """Create a configuration from an already-fetched discovery document.

        Raises:
            ParseError: If mandatory metadata is missing or an endpoint is invalid.
        """
        for key in MANDATORY_DISCOVERY_METADATA:
            if document.get(key) is None:
                raise ParseError(
                    f"Missing mandatory configuration field: {key}", field=key
                )
        try:
            return cls(
                authorization_endpoint=document["authorization_endpoint"],
                token_endpoint=document["token_endpoint"],
                end_session_endpoint=document.get("end_session_endpoint"),
                device_authorization_endpoint=document.get(
                    "device_authorization_endpoint"
                ),
                registration_endpoint=document.get("registration_endpoint"),
                discovery_doc=dict(document),
            )
        except ValidationError as e:
            raise ParseError(
                f"Invalid discovery document: {e.errors()[0]['msg']}"
            ) from e
        except InvalidArgumentError as e:
            raise ParseError(e.message, field=e.field) from e


def discovery_uri(issuer: str) -> str:
    """Build the OpenID configuration URI for an issuer."""
    return f"{issuer.rstrip('/')}/{WELL_KNOWN_PATH}/{OPENID_CONFIGURATION_RESOURCE}"


class TelemetryConfig(BaseModel):
    """OpenTelemetry and logging configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "oidc-client-sdk"
    log_level: str = "INFO"


TokenEndpointAuthMethod = Literal["none", "client_secret_basic", "client_secret_post"]


class ClientConfig(BaseModel):
    """Client registration used to build requests."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr | None = None
    redirect_uri: str | None = None
    scopes: list[str] = Field(default_factory=list)
    token_endpoint_auth_method: TokenEndpointAuthMethod | None = None

    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @field_validator("scopes")
    @classmethod
    def validate_scopes(cls, v: list[str]) -> list[str]:
        """Reject empty scope entries."""
        if any(not scope for scope in v):
            msg = "individual scopes cannot be empty"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def set_default_auth_method(self) -> Self:
        """Default to Basic auth for confidential clients, none otherwise."""
        if self.token_endpoint_auth_method is None:
            method = "client_secret_basic" if self.client_secret else "none"
            # Use object.__setattr__ since model is frozen
            object.__setattr__(self, "token_endpoint_auth_method", method)
        return self

    def client_authentication(self) -> ClientAuthentication:
        """Create the client authentication strategy for this client."""
        return client_authentication_for(
            self.token_endpoint_auth_method or "none",
            self.client_secret,
        )

    def authorization_request_builder(
        self,
        configuration: ServiceConfiguration,
        *,
        response_type: str = "code",
    ) -> AuthorizationRequestBuilder:
        """Create an authorization request builder pre-filled for this client."""
        from .authorization import AuthorizationRequest

        builder = AuthorizationRequest.builder(
            configuration,
            self.client_id,
            response_type,
            self.redirect_uri,
        )
        if self.scopes:
            builder.set_scopes(self.scopes)
        return builder

    @classmethod
    def from_env(cls, prefix: str = "OIDC_CLIENT_") -> Self:
        """Create config from environment variables."""
        import os

        def get_env(key: str, default: Any = None) -> Any:
            return os.environ.get(f"{prefix}{key}", default)

        client_id = get_env("CLIENT_ID")
        if not client_id:
            msg = f"{prefix}CLIENT_ID environment variable is required"
            raise ValueError(msg)

        scopes_str = get_env("SCOPES", "")
        scopes = scopes_str.split() if scopes_str else []

        return cls(
            client_id=client_id,
            client_secret=get_env("CLIENT_SECRET"),
            redirect_uri=get_env("REDIRECT_URI"),
            scopes=scopes,
            token_endpoint_auth_method=get_env("TOKEN_ENDPOINT_AUTH_METHOD"),
            telemetry=TelemetryConfig(log_level=get_env("LOG_LEVEL", "INFO")),
        )
