"""RP-initiated logout request and response (OpenID Connect RP-Initiated Logout 1.0)."""

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
from .codec import (
    append_query_params,
    check_additional_params,
    extract_additional_params,
)
from .config import ServiceConfiguration
from .errors import InvalidArgumentError, InvalidStateError
from .pkce import generate_state
from .telemetry import traced

END_SESSION_REQUEST_RESERVED_PARAMS = frozenset(
    {
        "id_token_hint",
        "post_logout_redirect_uri",
        "state",
        "ui_locales",
    }
)

END_SESSION_RESPONSE_RESERVED_PARAMS = frozenset({"state"})


class EndSessionRequest(ProtocolModel):
    """Immutable end-session request."""

    kind: Literal["end_session"] = Field(default="end_session", alias="type")
    configuration: ServiceConfiguration
    post_logout_redirect_uri: str
    id_token_hint: str | None = None
    state: str | None = None
    ui_locales: str | None = None
    additional_parameters: ReadOnlyParams = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        if self.configuration.end_session_endpoint is None:
            raise InvalidStateError(
                "configuration must define an end session endpoint",
                field="end_session_endpoint",
            )
        if not self.post_logout_redirect_uri:
            raise InvalidArgumentError(
                "post_logout_redirect_uri cannot be empty",
                field="post_logout_redirect_uri",
            )
        for name in ("id_token_hint", "state", "ui_locales"):
            require_non_empty(getattr(self, name), name)
        check_additional_params(
            self.additional_parameters, END_SESSION_REQUEST_RESERVED_PARAMS
        )
        return self

    @classmethod
    def builder(cls, configuration: ServiceConfiguration) -> EndSessionRequestBuilder:
        return EndSessionRequestBuilder(configuration)

    def to_parameters(self) -> dict[str, str]:
        params = {"post_logout_redirect_uri": self.post_logout_redirect_uri}
        for key, value in (
            ("id_token_hint", self.id_token_hint),
            ("state", self.state),
            ("ui_locales", self.ui_locales),
        ):
            if value is not None:
                params[key] = value
        params.update(self.additional_parameters)
        return params

    def to_uri(self) -> str:
        """Browser-navigable end-session URI."""
        # Endpoint presence is checked at construction
        return append_query_params(
            self.configuration.end_session_endpoint or "", self.to_parameters()
        )


class EndSessionRequestBuilder:
    """Fluent builder for :class:`EndSessionRequest`; a fresh state is generated."""

    def __init__(self, configuration: ServiceConfiguration) -> None:
        self._configuration = configuration
        self._post_logout_redirect_uri: str | None = None
        self._id_token_hint: str | None = None
        self._state: str | None = generate_state()
        self._ui_locales: str | None = None
        self._additional_parameters: Mapping[str, str] | None = None

    def set_post_logout_redirect_uri(self, uri: str | None) -> Self:
        self._post_logout_redirect_uri = uri
        return self

    def set_id_token_hint(self, id_token_hint: str | None) -> Self:
        self._id_token_hint = id_token_hint
        return self

    def set_state(self, state: str | None) -> Self:
        self._state = state
        return self

    def set_ui_locales(self, ui_locales: str | None) -> Self:
        self._ui_locales = ui_locales
        return self

    def set_ui_locales_values(self, ui_locales: Iterable[str] | None) -> Self:
        self._ui_locales = " ".join(ui_locales) if ui_locales else None
        return self

    def set_additional_parameters(
        self, additional_parameters: Mapping[str, str] | None
    ) -> Self:
        self._additional_parameters = additional_parameters
        return self

    @traced("end_session_request.build")
    def build(self) -> EndSessionRequest:
        require(self._configuration, "configuration")
        require(self._post_logout_redirect_uri, "post_logout_redirect_uri")
        return construct(
            EndSessionRequest,
            configuration=self._configuration,
            post_logout_redirect_uri=self._post_logout_redirect_uri,
            id_token_hint=self._id_token_hint,
            state=self._state,
            ui_locales=self._ui_locales,
            additional_parameters=dict(self._additional_parameters or {}),
        )


class EndSessionResponse(ProtocolModel):
    """Reply delivered to the post-logout redirect URI."""

    kind: Literal["end_session_response"] = Field(
        default="end_session_response", alias="type"
    )
    request: EndSessionRequest
    state: str | None = None
    additional_parameters: ReadOnlyParams = Field(default_factory=dict)

    @classmethod
    def from_redirect_params(
        cls, request: EndSessionRequest, params: Mapping[str, str]
    ) -> Self:
        return cls(
            request=request,
            state=params.get("state"),
            additional_parameters=extract_additional_params(
                params, END_SESSION_RESPONSE_RESERVED_PARAMS
            ),
        )
