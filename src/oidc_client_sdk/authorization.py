"""Authorization request and response (RFC 6749 section 4.1, OIDC Core 3.1).

The request is a browser-navigable URI carrying the client identity, the
redirect target, a state token and, by default, a PKCE S256 challenge.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Literal, Self

from pydantic import Field, model_validator

from .base import (
    ProtocolModel,
    ReadOnlyParams,
    construct,
    require,
    require_non_empty,
)
from .clock import SYSTEM_CLOCK, Clock
from .codec import (
    append_query_params,
    check_additional_params,
    extract_additional_params,
    scopes_to_string,
    string_to_scopes,
)
from .config import ServiceConfiguration
from .errors import InvalidArgumentError, InvalidStateError, ParseError
from .pkce import (
    CODE_CHALLENGE_METHOD_S256,
    check_code_verifier,
    derive_code_challenge,
    generate_code_verifier,
    generate_nonce,
    generate_state,
)
from .telemetry import traced
from .token import GRANT_TYPE_AUTHORIZATION_CODE, TokenRequest

RESPONSE_TYPE_CODE = "code"
RESPONSE_TYPE_ID_TOKEN = "id_token"
RESPONSE_TYPE_TOKEN = "token"

SCOPE_OPENID = "openid"
SCOPE_PROFILE = "profile"
SCOPE_EMAIL = "email"
SCOPE_ADDRESS = "address"
SCOPE_PHONE = "phone"
SCOPE_OFFLINE_ACCESS = "offline_access"

DISPLAY_PAGE = "page"
DISPLAY_POPUP = "popup"
DISPLAY_TOUCH = "touch"
DISPLAY_WAP = "wap"

PROMPT_NONE = "none"
PROMPT_LOGIN = "login"
PROMPT_CONSENT = "consent"
PROMPT_SELECT_ACCOUNT = "select_account"

AUTHORIZATION_REQUEST_RESERVED_PARAMS = frozenset(
    {
        "client_id",
        "code_challenge",
        "code_challenge_method",
        "display",
        "login_hint",
        "nonce",
        "prompt",
        "redirect_uri",
        "response_mode",
        "response_type",
        "scope",
        "state",
    }
)

AUTHORIZATION_RESPONSE_RESERVED_PARAMS = frozenset(
    {
        "token_type",
        "state",
        "code",
        "access_token",
        "expires_in",
        "id_token",
        "scope",
    }
)


class AuthorizationRequest(ProtocolModel):
    """Immutable authorization request."""

    kind: Literal["authorization"] = Field(default="authorization", alias="type")
    configuration: ServiceConfiguration
    client_id: str
    response_type: str
    redirect_uri: str
    display: str | None = None
    login_hint: str | None = None
    prompt: str | None = None
    scope: str | None = None
    state: str | None = None
    nonce: str | None = None
    code_verifier: str | None = None
    code_verifier_challenge: str | None = None
    code_verifier_challenge_method: str | None = None
    response_mode: str | None = None
    additional_parameters: ReadOnlyParams = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        for name in ("client_id", "response_type", "redirect_uri"):
            if not getattr(self, name):
                raise InvalidArgumentError(f"{name} cannot be empty", field=name)
        for name in (
            "display",
            "login_hint",
            "prompt",
            "state",
            "nonce",
            "response_mode",
        ):
            require_non_empty(getattr(self, name), name)

        if self.code_verifier is not None:
            check_code_verifier(self.code_verifier)
            if not self.code_verifier_challenge or not self.code_verifier_challenge_method:
                raise InvalidArgumentError(
                    "code verifier challenge and method must be specified "
                    "if verifier is specified",
                    field="code_verifier_challenge",
                )
        elif (
            self.code_verifier_challenge is not None
            or self.code_verifier_challenge_method is not None
        ):
            raise InvalidArgumentError(
                "code verifier challenge and method must be null if no code "
                "verifier is specified",
                field="code_verifier_challenge",
            )

        check_additional_params(
            self.additional_parameters, AUTHORIZATION_REQUEST_RESERVED_PARAMS
        )
        return self

    @classmethod
    def builder(
        cls,
        configuration: ServiceConfiguration,
        client_id: str,
        response_type: str = RESPONSE_TYPE_CODE,
        redirect_uri: str | None = None,
    ) -> AuthorizationRequestBuilder:
        return AuthorizationRequestBuilder(
            configuration, client_id, response_type, redirect_uri
        )

    @property
    def scope_set(self) -> set[str]:
        """The requested scopes as a set."""
        return string_to_scopes(self.scope)

    def to_parameters(self) -> dict[str, str]:
        """Render the request as query parameters for the authorization endpoint."""
        params: dict[str, str] = {
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "response_type": self.response_type,
        }
        for key, value in (
            ("state", self.state),
            ("nonce", self.nonce),
            ("scope", self.scope),
            ("response_mode", self.response_mode),
            ("display", self.display),
            ("login_hint", self.login_hint),
            ("prompt", self.prompt),
        ):
            if value is not None:
                params[key] = value

        if self.code_verifier is not None:
            params["code_challenge"] = self.code_verifier_challenge
            params["code_challenge_method"] = self.code_verifier_challenge_method

        params.update(self.additional_parameters)
        return params

    def to_uri(self) -> str:
        """Browser-navigable authorization URI."""
        return append_query_params(
            self.configuration.authorization_endpoint, self.to_parameters()
        )


class AuthorizationRequestBuilder:
    """Fluent builder for :class:`AuthorizationRequest`.

    Fresh state, nonce and an S256 PKCE verifier are generated on creation.
    Nothing is validated until :meth:`build`.
    """

    def __init__(
        self,
        configuration: ServiceConfiguration,
        client_id: str,
        response_type: str = RESPONSE_TYPE_CODE,
        redirect_uri: str | None = None,
    ) -> None:
        self._configuration = configuration
        self._client_id = client_id
        self._response_type = response_type
        self._redirect_uri = redirect_uri
        self._display: str | None = None
        self._login_hint: str | None = None
        self._prompt: str | None = None
        self._scope: str | None = None
        self._scopes: list[str | None] | None = None
        self._state: str | None = generate_state()
        self._nonce: str | None = generate_nonce()
        self._code_verifier: str | None = generate_code_verifier()
        self._code_verifier_challenge: str | None = None
        self._code_verifier_challenge_method: str | None = CODE_CHALLENGE_METHOD_S256
        self._response_mode: str | None = None
        self._additional_parameters: Mapping[str, str] | None = None

    def set_configuration(self, configuration: ServiceConfiguration) -> Self:
        self._configuration = configuration
        return self

    def set_client_id(self, client_id: str) -> Self:
        self._client_id = client_id
        return self

    def set_response_type(self, response_type: str) -> Self:
        self._response_type = response_type
        return self

    def set_redirect_uri(self, redirect_uri: str | None) -> Self:
        self._redirect_uri = redirect_uri
        return self

    def set_display(self, display: str | None) -> Self:
        self._display = display
        return self

    def set_login_hint(self, login_hint: str | None) -> Self:
        self._login_hint = login_hint
        return self

    def set_prompt(self, prompt: str | None) -> Self:
        self._prompt = prompt
        return self

    def set_prompt_values(self, *prompt_values: str) -> Self:
        """Set the prompt from individual values (space-delimited on the wire)."""
        self._prompt = " ".join(prompt_values) if prompt_values else None
        return self

    def set_scope(self, scope: str | None) -> Self:
        """Set the scope from a space-delimited string."""
        self._scope = scope
        self._scopes = None
        return self

    def set_scopes(self, scopes: Iterable[str | None] | None) -> Self:
        self._scopes = list(scopes) if scopes is not None else None
        self._scope = None
        return self

    def set_state(self, state: str | None) -> Self:
        self._state = state
        return self

    def set_nonce(self, nonce: str | None) -> Self:
        self._nonce = nonce
        return self

    def set_code_verifier(
        self,
        code_verifier: str | None,
        code_verifier_challenge: str | None = None,
        code_verifier_challenge_method: str | None = None,
    ) -> Self:
        """Set the PKCE verifier; None disables PKCE.

        Without an explicit challenge, one is derived from the verifier with
        ``code_verifier_challenge_method`` (S256 by default).
        """
        self._code_verifier = code_verifier
        self._code_verifier_challenge = code_verifier_challenge
        self._code_verifier_challenge_method = code_verifier_challenge_method
        if code_verifier is not None and code_verifier_challenge_method is None:
            self._code_verifier_challenge_method = (
                None if code_verifier_challenge is not None else CODE_CHALLENGE_METHOD_S256
            )
        return self

    def set_response_mode(self, response_mode: str | None) -> Self:
        self._response_mode = response_mode
        return self

    def set_additional_parameters(
        self, additional_parameters: Mapping[str, str] | None
    ) -> Self:
        self._additional_parameters = additional_parameters
        return self

    @traced("authorization_request.build")
    def build(self) -> AuthorizationRequest:
        require(self._configuration, "configuration")
        require(self._client_id, "client_id")
        require(self._response_type, "response_type")
        require(self._redirect_uri, "redirect_uri")

        scope = (
            scopes_to_string(self._scopes) if self._scopes is not None else self._scope
        )

        challenge = self._code_verifier_challenge
        if self._code_verifier is not None and challenge is None:
            check_code_verifier(self._code_verifier)
            challenge = derive_code_challenge(
                self._code_verifier, self._code_verifier_challenge_method
            )

        return construct(
            AuthorizationRequest,
            configuration=self._configuration,
            client_id=self._client_id,
            response_type=self._response_type,
            redirect_uri=self._redirect_uri,
            display=self._display,
            login_hint=self._login_hint,
            prompt=self._prompt,
            scope=scope,
            state=self._state,
            nonce=self._nonce,
            code_verifier=self._code_verifier,
            code_verifier_challenge=challenge,
            code_verifier_challenge_method=self._code_verifier_challenge_method,
            response_mode=self._response_mode,
            additional_parameters=dict(self._additional_parameters or {}),
        )


class AuthorizationResponse(ProtocolModel):
    """Successful reply delivered to the redirect URI."""

    kind: Literal["authorization_response"] = Field(
        default="authorization_response", alias="type"
    )
    request: AuthorizationRequest
    state: str | None = None
    token_type: str | None = None
    authorization_code: str | None = None
    access_token: str | None = None
    access_token_expiration_time: int | None = None
    id_token: str | None = None
    scope: str | None = None
    additional_parameters: ReadOnlyParams = Field(default_factory=dict)

    @classmethod
    def from_redirect_params(
        cls,
        request: AuthorizationRequest,
        params: Mapping[str, str],
        clock: Clock = SYSTEM_CLOCK,
    ) -> Self:
        """Build the response from parsed redirect parameters.

        Raises:
            ParseError: If ``expires_in`` is not an integer.
        """
        expiration: int | None = None
        expires_in = params.get("expires_in")
        if expires_in is not None:
            try:
                expiration = clock.current_time_millis() + int(expires_in) * 1000
            except ValueError as e:
                raise ParseError(
                    "expires_in must be an integer", field="expires_in"
                ) from e

        return cls(
            request=request,
            state=params.get("state"),
            token_type=params.get("token_type"),
            authorization_code=params.get("code"),
            access_token=params.get("access_token"),
            access_token_expiration_time=expiration,
            id_token=params.get("id_token"),
            scope=params.get("scope"),
            additional_parameters=extract_additional_params(
                params, AUTHORIZATION_RESPONSE_RESERVED_PARAMS
            ),
        )

    @property
    def scope_set(self) -> set[str]:
        return string_to_scopes(self.scope)

    def has_access_token_expired(self, clock: Clock = SYSTEM_CLOCK) -> bool:
        if self.access_token_expiration_time is None:
            return False
        return clock.current_time_millis() > self.access_token_expiration_time

    def create_token_exchange_request(
        self, additional_parameters: Mapping[str, str] | None = None
    ) -> TokenRequest:
        """Create the code-for-token exchange request for this response.

        Raises:
            InvalidStateError: If the response carries no authorization code.
        """
        if self.authorization_code is None:
            raise InvalidStateError(
                "authorizationCode not available for exchange request",
                field="authorization_code",
            )

        return (
            TokenRequest.builder(self.request.configuration, self.request.client_id)
            .set_grant_type(GRANT_TYPE_AUTHORIZATION_CODE)
            .set_redirect_uri(self.request.redirect_uri)
            .set_code_verifier(self.request.code_verifier)
            .set_authorization_code(self.authorization_code)
            .set_additional_parameters(additional_parameters)
            .build()
        )

