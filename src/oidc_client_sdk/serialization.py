"""Tagged-union persistence of requests and responses.

Documents carry a ``type`` tag naming their variant; restoring one dispatches
on the tag rather than trying each model in turn.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .authorization import AuthorizationRequest, AuthorizationResponse
from .base import ProtocolModel, load_json_object
from .device import DeviceAuthorizationRequest, DeviceAuthorizationResponse
from .end_session import EndSessionRequest, EndSessionResponse
from .errors import ParseError
from .registration import RegistrationRequest, RegistrationResponse
from .token import TokenRequest, TokenResponse

Request = (
    AuthorizationRequest
    | EndSessionRequest
    | DeviceAuthorizationRequest
    | TokenRequest
    | RegistrationRequest
)
Response = (
    AuthorizationResponse
    | EndSessionResponse
    | DeviceAuthorizationResponse
    | TokenResponse
    | RegistrationResponse
)

TYPE_KEY = "type"

_REQUEST_TYPES: dict[str, type[ProtocolModel]] = {
    "authorization": AuthorizationRequest,
    "end_session": EndSessionRequest,
    "device_authorization": DeviceAuthorizationRequest,
    "token": TokenRequest,
    "registration": RegistrationRequest,
}

_RESPONSE_TYPES: dict[str, type[ProtocolModel]] = {
    "authorization_response": AuthorizationResponse,
    "end_session_response": EndSessionResponse,
    "device_authorization_response": DeviceAuthorizationResponse,
    "token_response": TokenResponse,
    "registration_response": RegistrationResponse,
}


def _deserialize(
    document: Mapping[str, Any] | str,
    registry: dict[str, type[ProtocolModel]],
) -> Any:
    data = load_json_object(document)
    tag = data.get(TYPE_KEY)
    model = registry.get(tag) if isinstance(tag, str) else None
    if model is None:
        raise ParseError(f"Unknown document type: {tag!r}", field=TYPE_KEY)
    return model.deserialize(data)


def deserialize_request(document: Mapping[str, Any] | str) -> Request:
    """Restore any request from its serialized document.

    Raises:
        ParseError: If the tag is unknown or the document is malformed.
    """
    return _deserialize(document, _REQUEST_TYPES)


def deserialize_response(document: Mapping[str, Any] | str) -> Response:
    """Restore any response, including its nested request.

    Raises:
        ParseError: If the tag is unknown or the document is malformed.
    """
    return _deserialize(document, _RESPONSE_TYPES)
