"""Dynamic client registration request and response (RFC 7591).

The request body is a JSON document of client metadata rather than form
parameters. A successful response carries the issued client identifier and,
for confidential clients, the secret used by token endpoint authentication.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any, Literal, Self

from pydantic import Field, model_validator

from .base import (
    ProtocolModel,
    ReadOnlyDocument,
    ReadOnlyParams,
    construct,
    get_json_int,
    get_json_string,
    load_json_object,
    require,
    require_non_empty,
)
from .client_auth import (
    ClientAuthentication,
    ClientSecretBasic,
    NoClientAuthentication,
    client_authentication_for,
)
from .clock import SYSTEM_CLOCK, Clock
from .codec import check_additional_params, extract_additional_params
from .config import ServiceConfiguration
from .errors import InvalidArgumentError, InvalidStateError, ParseError
from .telemetry import traced

APPLICATION_TYPE_NATIVE = "native"

SUBJECT_TYPE_PAIRWISE = "pairwise"
SUBJECT_TYPE_PUBLIC = "public"

REGISTRATION_REQUEST_RESERVED_PARAMS = frozenset(
    {
        "redirect_uris",
        "response_types",
        "grant_types",
        "application_type",
        "subject_type",
        "jwks_uri",
        "jwks",
        "token_endpoint_auth_method",
    }
)

REGISTRATION_RESPONSE_RESERVED_PARAMS = frozenset(
    {
        "client_id",
        "client_secret",
        "client_secret_expires_at",
        "registration_access_token",
        "registration_client_uri",
        "client_id_issued_at",
        "token_endpoint_auth_method",
    }
)


class RegistrationRequest(ProtocolModel):
    """Immutable client registration request."""

    kind: Literal["registration"] = Field(default="registration", alias="type")
    configuration: ServiceConfiguration
    redirect_uris: tuple[str, ...]
    application_type: str = APPLICATION_TYPE_NATIVE
    response_types: tuple[str, ...] | None = None
    grant_types: tuple[str, ...] | None = None
    subject_type: str | None = None
    jwks_uri: str | None = None
    jwks: ReadOnlyDocument | None = None
    token_endpoint_auth_method: str | None = None
    additional_parameters: ReadOnlyParams = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        if self.configuration.registration_endpoint is None:
            raise InvalidStateError(
                "configuration must define a registration endpoint",
                field="registration_endpoint",
            )
        if not self.redirect_uris or not all(self.redirect_uris):
            raise InvalidArgumentError(
                "at least one non-empty redirect URI is required",
                field="redirect_uris",
            )
        for name in ("subject_type", "jwks_uri", "token_endpoint_auth_method"):
            require_non_empty(getattr(self, name), name)
        check_additional_params(
            self.additional_parameters, REGISTRATION_REQUEST_RESERVED_PARAMS
        )
        return self

    @classmethod
    def builder(
        cls, configuration: ServiceConfiguration, redirect_uris: Iterable[str]
    ) -> RegistrationRequestBuilder:
        return RegistrationRequestBuilder(configuration, redirect_uris)

    def to_json_body(self) -> dict[str, Any]:
        """Client metadata document posted to the registration endpoint."""
        body: dict[str, Any] = {
            "redirect_uris": list(self.redirect_uris),
            "application_type": self.application_type,
        }
        if self.response_types is not None:
            body["response_types"] = list(self.response_types)
        if self.grant_types is not None:
            body["grant_types"] = list(self.grant_types)
        for key, value in (
            ("subject_type", self.subject_type),
            ("jwks_uri", self.jwks_uri),
            ("token_endpoint_auth_method", self.token_endpoint_auth_method),
        ):
            if value is not None:
                body[key] = value
        if self.jwks is not None:
            body["jwks"] = dict(self.jwks)
        body.update(self.additional_parameters)
        return body

    def to_json_string(self) -> str:
        return json.dumps(self.to_json_body())


class RegistrationRequestBuilder:
    """Fluent builder for :class:`RegistrationRequest`."""

    def __init__(
        self, configuration: ServiceConfiguration, redirect_uris: Iterable[str]
    ) -> None:
        self._configuration = configuration
        self._redirect_uris = list(redirect_uris)
        self._response_types: list[str] | None = None
        self._grant_types: list[str] | None = None
        self._subject_type: str | None = None
        self._jwks_uri: str | None = None
        self._jwks: Mapping[str, Any] | None = None
        self._token_endpoint_auth_method: str | None = None
        self._additional_parameters: Mapping[str, str] | None = None

    def set_configuration(self, configuration: ServiceConfiguration) -> Self:
        self._configuration = configuration
        return self

    def set_redirect_uri_values(self, *redirect_uris: str) -> Self:
        self._redirect_uris = list(redirect_uris)
        return self

    def set_response_type_values(self, *response_types: str) -> Self:
        self._response_types = list(response_types)
        return self

    def set_grant_type_values(self, *grant_types: str) -> Self:
        self._grant_types = list(grant_types)
        return self

    def set_subject_type(self, subject_type: str | None) -> Self:
        self._subject_type = subject_type
        return self

    def set_jwks_uri(self, jwks_uri: str | None) -> Self:
        self._jwks_uri = jwks_uri
        return self

    def set_jwks(self, jwks: Mapping[str, Any] | None) -> Self:
        self._jwks = jwks
        return self

    def set_token_endpoint_auth_method(self, method: str | None) -> Self:
        self._token_endpoint_auth_method = method
        return self

    def set_additional_parameters(
        self, additional_parameters: Mapping[str, str] | None
    ) -> Self:
        self._additional_parameters = additional_parameters
        return self

    @traced("registration_request.build")
    def build(self) -> RegistrationRequest:
        require(self._configuration, "configuration")
        return construct(
            RegistrationRequest,
            configuration=self._configuration,
            redirect_uris=tuple(self._redirect_uris),
            response_types=_as_tuple(self._response_types),
            grant_types=_as_tuple(self._grant_types),
            subject_type=self._subject_type,
            jwks_uri=self._jwks_uri,
            jwks=dict(self._jwks) if self._jwks is not None else None,
            token_endpoint_auth_method=self._token_endpoint_auth_method,
            additional_parameters=dict(self._additional_parameters or {}),
        )


def _as_tuple(values: list[str] | None) -> tuple[str, ...] | None:
    return tuple(values) if values is not None else None


class RegistrationResponse(ProtocolModel):
    """Client information issued by the registration endpoint."""

    kind: Literal["registration_response"] = Field(
        default="registration_response", alias="type"
    )
    request: RegistrationRequest
    client_id: str
    client_id_issued_at: int | None = None
    client_secret: str | None = Field(default=None, repr=False)
    client_secret_expires_at: int | None = None
    registration_access_token: str | None = Field(default=None, repr=False)
    registration_client_uri: str | None = None
    token_endpoint_auth_method: str | None = None
    additional_parameters: ReadOnlyParams = Field(default_factory=dict)

    @classmethod
    def from_json(
        cls,
        request: RegistrationRequest,
        body: Mapping[str, Any] | str | bytes,
    ) -> Self:
        """Parse a registration endpoint JSON reply.

        A client secret must come with its expiration time, and the
        registration access token and client URI come as a pair.

        Raises:
            ParseError: If the body is malformed or a mandatory member is missing.
        """
        json_body = load_json_object(body)
        client_id = get_json_string(json_body, "client_id")
        if not client_id:
            raise ParseError("field client_id is mandatory", field="client_id")

        client_secret = get_json_string(json_body, "client_secret")
        client_secret_expires_at = get_json_int(json_body, "client_secret_expires_at")
        if client_secret is not None and client_secret_expires_at is None:
            raise ParseError(
                "field client_secret_expires_at is mandatory with client_secret",
                field="client_secret_expires_at",
            )

        access_token = get_json_string(json_body, "registration_access_token")
        client_uri = get_json_string(json_body, "registration_client_uri")
        if (access_token is None) != (client_uri is None):
            missing = (
                "registration_client_uri"
                if access_token is not None
                else "registration_access_token"
            )
            raise ParseError(f"field {missing} is mandatory", field=missing)

        return cls(
            request=request,
            client_id=client_id,
            client_id_issued_at=get_json_int(json_body, "client_id_issued_at"),
            client_secret=client_secret,
            client_secret_expires_at=client_secret_expires_at,
            registration_access_token=access_token,
            registration_client_uri=client_uri,
            token_endpoint_auth_method=get_json_string(
                json_body, "token_endpoint_auth_method"
            ),
            additional_parameters=extract_additional_params(
                json_body, REGISTRATION_RESPONSE_RESERVED_PARAMS
            ),
        )

    def has_client_secret_expired(self, clock: Clock = SYSTEM_CLOCK) -> bool:
        """Whether the issued secret is past its expiration.

        An expiration of 0 means the secret never expires.
        """
        if not self.client_secret_expires_at:
            return False
        return clock.current_time_millis() // 1000 > self.client_secret_expires_at

    def client_authentication(self) -> ClientAuthentication:
        """Token endpoint authentication for the registered client.

        Without an explicit method, a client with a secret uses
        ``client_secret_basic`` and one without uses ``none``.

        Raises:
            InvalidArgumentError: If the registered method is not supported.
        """
        method = self.token_endpoint_auth_method
        if method is None:
            method = (
                ClientSecretBasic.name
                if self.client_secret
                else NoClientAuthentication.name
            )
        return client_authentication_for(method, self.client_secret)
