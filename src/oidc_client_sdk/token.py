"""Token request and response (RFC 6749 sections 4.1.3, 5 and 6, RFC 8628 3.4)."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Literal, Self

from pydantic import Field, model_validator

from .base import (
    ProtocolModel,
    ReadOnlyParams,
    construct,
    get_json_int,
    get_json_string,
    load_json_object,
    require,
    require_non_empty,
)
from .client_auth import (
    NO_CLIENT_AUTHENTICATION,
    ClientAuthentication,
    apply_client_authentication,
)
from .clock import SYSTEM_CLOCK, Clock
from .codec import (
    check_additional_params,
    extract_additional_params,
    scopes_to_string,
    string_to_scopes,
)
from .config import ServiceConfiguration
from .core.id_token import IdTokenClaims, parse_id_token
from .errors import InvalidArgumentError, InvalidStateError, ParseError
from .pkce import check_code_verifier
from .telemetry import traced

GRANT_TYPE_AUTHORIZATION_CODE = "authorization_code"
GRANT_TYPE_REFRESH_TOKEN = "refresh_token"
GRANT_TYPE_PASSWORD = "password"
GRANT_TYPE_CLIENT_CREDENTIALS = "client_credentials"
GRANT_TYPE_DEVICE_CODE = "urn:ietf:params:oauth:grant-type:device_code"

TOKEN_TYPE_BEARER = "Bearer"

TOKEN_REQUEST_RESERVED_PARAMS = frozenset(
    {
        "client_id",
        "code",
        "code_verifier",
        "device_code",
        "grant_type",
        "redirect_uri",
        "refresh_token",
        "scope",
    }
)

TOKEN_RESPONSE_RESERVED_PARAMS = frozenset(
    {
        "token_type",
        "access_token",
        "expires_in",
        "expires_at",
        "refresh_token",
        "id_token",
        "scope",
    }
)


class TokenRequest(ProtocolModel):
    """Immutable token endpoint request."""

    kind: Literal["token"] = Field(default="token", alias="type")
    configuration: ServiceConfiguration
    client_id: str
    grant_type: str
    redirect_uri: str | None = None
    scope: str | None = None
    authorization_code: str | None = None
    refresh_token: str | None = None
    code_verifier: str | None = None
    device_code: str | None = None
    additional_parameters: ReadOnlyParams = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        for name in ("client_id", "grant_type"):
            if not getattr(self, name):
                raise InvalidArgumentError(f"{name} cannot be empty", field=name)
        for name in (
            "redirect_uri",
            "scope",
            "authorization_code",
            "refresh_token",
            "device_code",
        ):
            require_non_empty(getattr(self, name), name)
        if self.code_verifier is not None:
            check_code_verifier(self.code_verifier)

        if self.grant_type == GRANT_TYPE_AUTHORIZATION_CODE:
            require(
                self.authorization_code,
                "authorization_code",
                "authorization code must be specified for grant_type = "
                f"{GRANT_TYPE_AUTHORIZATION_CODE}",
            )
            require(
                self.redirect_uri,
                "redirect_uri",
                "no redirect URI specified on token request for code exchange",
            )
        elif self.grant_type == GRANT_TYPE_REFRESH_TOKEN:
            require(
                self.refresh_token,
                "refresh_token",
                "refresh token must be specified for grant_type = "
                f"{GRANT_TYPE_REFRESH_TOKEN}",
            )
        elif self.grant_type == GRANT_TYPE_DEVICE_CODE:
            require(
                self.device_code,
                "device_code",
                f"device code must be specified for grant_type = {GRANT_TYPE_DEVICE_CODE}",
            )

        check_additional_params(self.additional_parameters, TOKEN_REQUEST_RESERVED_PARAMS)
        return self

    @classmethod
    def builder(
        cls, configuration: ServiceConfiguration, client_id: str
    ) -> TokenRequestBuilder:
        return TokenRequestBuilder(configuration, client_id)

    @property
    def scope_set(self) -> set[str]:
        return string_to_scopes(self.scope)

    def to_parameters(self) -> dict[str, str]:
        """Form parameters for the token endpoint, excluding client credentials."""
        params: dict[str, str] = {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
        }
        for key, value in (
            ("redirect_uri", self.redirect_uri),
            ("code", self.authorization_code),
            ("refresh_token", self.refresh_token),
            ("code_verifier", self.code_verifier),
            ("scope", self.scope),
            ("device_code", self.device_code),
        ):
            if value is not None:
                params[key] = value

        params.update(self.additional_parameters)
        return params

    def to_authenticated_parameters(
        self, client_auth: ClientAuthentication = NO_CLIENT_AUTHENTICATION
    ) -> tuple[dict[str, str], dict[str, str]]:
        """Merge client authentication into the request.

        Returns:
            ``(headers, body_parameters)``.

        Raises:
            InvalidArgumentError: If the strategy's body parameters conflict
                with a request parameter of a different value.
        """
        return apply_client_authentication(
            client_auth, self.client_id, self.to_parameters()
        )


class TokenRequestBuilder:
    """Fluent builder for :class:`TokenRequest`.

    The grant type is inferred at :meth:`build` when not set explicitly.
    """

    def __init__(self, configuration: ServiceConfiguration, client_id: str) -> None:
        self._configuration = configuration
        self._client_id = client_id
        self._grant_type: str | None = None
        self._redirect_uri: str | None = None
        self._scope: str | None = None
        self._scopes: list[str | None] | None = None
        self._authorization_code: str | None = None
        self._refresh_token: str | None = None
        self._code_verifier: str | None = None
        self._device_code: str | None = None
        self._additional_parameters: Mapping[str, str] | None = None

    def set_configuration(self, configuration: ServiceConfiguration) -> Self:
        self._configuration = configuration
        return self

    def set_client_id(self, client_id: str) -> Self:
        self._client_id = client_id
        return self

    def set_grant_type(self, grant_type: str | None) -> Self:
        self._grant_type = grant_type
        return self

    def set_redirect_uri(self, redirect_uri: str | None) -> Self:
        self._redirect_uri = redirect_uri
        return self

    def set_scope(self, scope: str | None) -> Self:
        self._scope = scope
        self._scopes = None
        return self

    def set_scopes(self, scopes: Iterable[str | None] | None) -> Self:
        self._scopes = list(scopes) if scopes is not None else None
        self._scope = None
        return self

    def set_authorization_code(self, authorization_code: str | None) -> Self:
        self._authorization_code = authorization_code
        return self

    def set_refresh_token(self, refresh_token: str | None) -> Self:
        self._refresh_token = refresh_token
        return self

    def set_code_verifier(self, code_verifier: str | None) -> Self:
        self._code_verifier = code_verifier
        return self

    def set_device_code(self, device_code: str | None) -> Self:
        self._device_code = device_code
        return self

    def set_additional_parameters(
        self, additional_parameters: Mapping[str, str] | None
    ) -> Self:
        self._additional_parameters = additional_parameters
        return self

    def _infer_grant_type(self) -> str:
        if self._grant_type is not None:
            return self._grant_type
        if self._authorization_code is not None:
            return GRANT_TYPE_AUTHORIZATION_CODE
        if self._refresh_token is not None:
            return GRANT_TYPE_REFRESH_TOKEN
        raise InvalidStateError(
            "grant type not specified and cannot be inferred", field="grant_type"
        )

    @traced("token_request.build")
    def build(self) -> TokenRequest:
        require(self._configuration, "configuration")
        require(self._client_id, "client_id")
        grant_type = self._infer_grant_type()
        scope = (
            scopes_to_string(self._scopes) if self._scopes is not None else self._scope
        )

        return construct(
            TokenRequest,
            configuration=self._configuration,
            client_id=self._client_id,
            grant_type=grant_type,
            redirect_uri=self._redirect_uri,
            scope=scope,
            authorization_code=self._authorization_code,
            refresh_token=self._refresh_token,
            code_verifier=self._code_verifier,
            device_code=self._device_code,
            additional_parameters=dict(self._additional_parameters or {}),
        )


class TokenResponse(ProtocolModel):
    """Successful token endpoint reply."""

    kind: Literal["token_response"] = Field(default="token_response", alias="type")
    request: TokenRequest
    token_type: str | None = None
    access_token: str | None = None
    access_token_expiration_time: int | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    scope: str | None = None
    additional_parameters: ReadOnlyParams = Field(default_factory=dict)

    @classmethod
    def from_json(
        cls,
        request: TokenRequest,
        body: Mapping[str, Any] | str | bytes,
        clock: Clock = SYSTEM_CLOCK,
    ) -> Self:
        """Parse a token endpoint JSON reply.

        ``expires_in`` (seconds from now) takes precedence over
        ``expires_at`` (absolute milliseconds).

        Raises:
            ParseError: If the body is malformed or ``token_type`` is missing.
        """
        json = load_json_object(body)
        token_type = get_json_string(json, "token_type")
        if token_type is None:
            raise ParseError("field token_type is mandatory", field="token_type")

        expiration = get_json_int(json, "expires_at")
        expires_in = get_json_int(json, "expires_in")
        if expires_in is not None:
            expiration = clock.current_time_millis() + expires_in * 1000

        return cls(
            request=request,
            token_type=token_type,
            access_token=get_json_string(json, "access_token"),
            access_token_expiration_time=expiration,
            id_token=get_json_string(json, "id_token"),
            refresh_token=get_json_string(json, "refresh_token"),
            scope=get_json_string(json, "scope"),
            additional_parameters=extract_additional_params(
                json, TOKEN_RESPONSE_RESERVED_PARAMS
            ),
        )

    @property
    def scope_set(self) -> set[str]:
        return string_to_scopes(self.scope)

    def has_access_token_expired(self, clock: Clock = SYSTEM_CLOCK) -> bool:
        """Whether the access token is past its expiration time."""
        if self.access_token_expiration_time is None:
            return False
        return clock.current_time_millis() > self.access_token_expiration_time

    def id_token_claims(self) -> IdTokenClaims | None:
        """Decode the identity token claims, or None without an identity token."""
        if self.id_token is None:
            return None
        return parse_id_token(self.id_token)
