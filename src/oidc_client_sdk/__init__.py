"""OIDC client protocol SDK."""

from .authorization import (
    AuthorizationRequest,
    AuthorizationRequestBuilder,
    AuthorizationResponse,
)
from .client_auth import (
    ClientAuthentication,
    ClientSecretBasic,
    ClientSecretPost,
    NoClientAuthentication,
)
from .clock import SYSTEM_CLOCK, Clock, SystemClock
from .config import ClientConfig, ServiceConfiguration, TelemetryConfig
from .core.dispatcher import DispatchResult, ResponseDispatcher
from .core.id_token import IdTokenClaims, parse_id_token
from .core.state_store import PendingRequest, PendingRequestStore
from .device import (
    DeviceAuthorizationRequest,
    DeviceAuthorizationRequestBuilder,
    DeviceAuthorizationResponse,
)
from .end_session import EndSessionRequest, EndSessionRequestBuilder, EndSessionResponse
from .errors import (
    IdTokenValidationError,
    InvalidArgumentError,
    InvalidStateError,
    MalformedTokenError,
    NetworkError,
    NotFoundError,
    OAuthAuthorizationError,
    OAuthRegistrationError,
    OAuthTokenError,
    OIDCClientError,
    ParseError,
    StateMismatchError,
)
from .registration import (
    RegistrationRequest,
    RegistrationRequestBuilder,
    RegistrationResponse,
)
from .serialization import deserialize_request, deserialize_response
from .token import TokenRequest, TokenRequestBuilder, TokenResponse

__all__ = [
    "AuthorizationRequest",
    "AuthorizationRequestBuilder",
    "AuthorizationResponse",
    "ClientAuthentication",
    "ClientSecretBasic",
    "ClientSecretPost",
    "NoClientAuthentication",
    "SYSTEM_CLOCK",
    "Clock",
    "SystemClock",
    "ClientConfig",
    "ServiceConfiguration",
    "TelemetryConfig",
    "DispatchResult",
    "ResponseDispatcher",
    "IdTokenClaims",
    "parse_id_token",
    "PendingRequest",
    "PendingRequestStore",
    "DeviceAuthorizationRequest",
    "DeviceAuthorizationRequestBuilder",
    "DeviceAuthorizationResponse",
    "EndSessionRequest",
    "EndSessionRequestBuilder",
    "EndSessionResponse",
    "IdTokenValidationError",
    "InvalidArgumentError",
    "InvalidStateError",
    "MalformedTokenError",
    "NetworkError",
    "NotFoundError",
    "OAuthAuthorizationError",
    "OAuthRegistrationError",
    "OAuthTokenError",
    "OIDCClientError",
    "ParseError",
    "StateMismatchError",
    "RegistrationRequest",
    "RegistrationRequestBuilder",
    "RegistrationResponse",
    "deserialize_request",
    "deserialize_response",
    "TokenRequest",
    "TokenRequestBuilder",
    "TokenResponse",
]

__version__ = "0.1.0"
