"""Device authorization request and response (RFC 8628)."""

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
)
from .clock import SYSTEM_CLOCK, Clock
from .codec import (
    check_additional_params,
    extract_additional_params,
    scopes_to_string,
    string_to_scopes,
)
from .config import ServiceConfiguration
from .errors import InvalidArgumentError, InvalidStateError, ParseError
from .telemetry import traced
from .token import GRANT_TYPE_DEVICE_CODE, TokenRequest

# RFC 8628 section 3.2: clients must use 5 seconds when no interval is given
DEFAULT_POLLING_INTERVAL_S = 5

DEVICE_AUTHORIZATION_REQUEST_RESERVED_PARAMS = frozenset({"client_id", "scope"})

DEVICE_AUTHORIZATION_RESPONSE_RESERVED_PARAMS = frozenset(
    {
        "device_code",
        "user_code",
        "verification_uri",
        "verification_uri_complete",
        "expires_in",
        "interval",
    }
)


class DeviceAuthorizationRequest(ProtocolModel):
    """Immutable device authorization request."""

    kind: Literal["device_authorization"] = Field(
        default="device_authorization", alias="type"
    )
    configuration: ServiceConfiguration
    client_id: str
    scope: str | None = None
    additional_parameters: ReadOnlyParams = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        if self.configuration.device_authorization_endpoint is None:
            raise InvalidStateError(
                "configuration must define a device authorization endpoint",
                field="device_authorization_endpoint",
            )
        if not self.client_id:
            raise InvalidArgumentError("client_id cannot be empty", field="client_id")
        check_additional_params(
            self.additional_parameters, DEVICE_AUTHORIZATION_REQUEST_RESERVED_PARAMS
        )
        return self

    @classmethod
    def builder(
        cls, configuration: ServiceConfiguration, client_id: str
    ) -> DeviceAuthorizationRequestBuilder:
        return DeviceAuthorizationRequestBuilder(configuration, client_id)

    @property
    def scope_set(self) -> set[str]:
        return string_to_scopes(self.scope)

    def to_parameters(self) -> dict[str, str]:
        params = {"client_id": self.client_id}
        if self.scope is not None:
            params["scope"] = self.scope
        params.update(self.additional_parameters)
        return params


class DeviceAuthorizationRequestBuilder:
    """Fluent builder for :class:`DeviceAuthorizationRequest`."""

    def __init__(self, configuration: ServiceConfiguration, client_id: str) -> None:
        self._configuration = configuration
        self._client_id = client_id
        self._scope: str | None = None
        self._scopes: list[str | None] | None = None
        self._additional_parameters: Mapping[str, str] | None = None

    def set_client_id(self, client_id: str) -> Self:
        self._client_id = client_id
        return self

    def set_scope(self, scope: str | None) -> Self:
        self._scope = scope
        self._scopes = None
        return self

    def set_scopes(self, scopes: Iterable[str | None] | None) -> Self:
        self._scopes = list(scopes) if scopes is not None else None
        self._scope = None
        return self

    def set_additional_parameters(
        self, additional_parameters: Mapping[str, str] | None
    ) -> Self:
        self._additional_parameters = additional_parameters
        return self

    @traced("device_authorization_request.build")
    def build(self) -> DeviceAuthorizationRequest:
        require(self._configuration, "configuration")
        require(self._client_id, "client_id")
        scope = (
            scopes_to_string(self._scopes) if self._scopes is not None else self._scope
        )
        return construct(
            DeviceAuthorizationRequest,
            configuration=self._configuration,
            client_id=self._client_id,
            scope=scope,
            additional_parameters=dict(self._additional_parameters or {}),
        )


class DeviceAuthorizationResponse(ProtocolModel):
    """Device authorization endpoint reply: the codes shown to the user."""

    kind: Literal["device_authorization_response"] = Field(
        default="device_authorization_response", alias="type"
    )
    request: DeviceAuthorizationRequest
    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: str | None = None
    code_expiration_time: int
    token_polling_interval: int | None = None
    additional_parameters: ReadOnlyParams = Field(default_factory=dict)

    @classmethod
    def from_json(
        cls,
        request: DeviceAuthorizationRequest,
        body: Mapping[str, Any] | str | bytes,
        clock: Clock = SYSTEM_CLOCK,
    ) -> Self:
        """Parse a device authorization JSON reply.

        Raises:
            ParseError: If the body is malformed or a mandatory member is missing.
        """
        json = load_json_object(body)
        for key in ("device_code", "user_code", "verification_uri"):
            if not isinstance(json.get(key), str):
                raise ParseError(f"field {key} is mandatory", field=key)

        expires_in = get_json_int(json, "expires_in")
        if expires_in is None:
            raise ParseError("field expires_in is mandatory", field="expires_in")
        interval = get_json_int(json, "interval")

        verification_uri_complete = get_json_string(json, "verification_uri_complete")

        return cls(
            request=request,
            device_code=json["device_code"],
            user_code=json["user_code"],
            verification_uri=json["verification_uri"],
            verification_uri_complete=verification_uri_complete,
            code_expiration_time=clock.current_time_millis() + expires_in * 1000,
            token_polling_interval=interval,
            additional_parameters=extract_additional_params(
                json, DEVICE_AUTHORIZATION_RESPONSE_RESERVED_PARAMS
            ),
        )

    @property
    def polling_interval(self) -> int:
        """Seconds to wait between token polls."""
        if self.token_polling_interval is None:
            return DEFAULT_POLLING_INTERVAL_S
        return self.token_polling_interval

    def has_code_expired(self, clock: Clock = SYSTEM_CLOCK) -> bool:
        """Whether the device code is strictly past its expiration time."""
        return clock.current_time_millis() > self.code_expiration_time

    def next_poll_time(self, last_poll_ms: int) -> int:
        """Earliest time in ms at which the token endpoint may be polled again."""
        return last_poll_ms + self.polling_interval * 1000

    def is_poll_allowed(self, last_poll_ms: int, clock: Clock = SYSTEM_CLOCK) -> bool:
        return clock.current_time_millis() >= self.next_poll_time(last_poll_ms)

    def create_token_exchange_request(
        self, additional_parameters: Mapping[str, str] | None = None
    ) -> TokenRequest:
        """Create the device-code grant request used to poll the token endpoint."""
        return (
            TokenRequest.builder(self.request.configuration, self.request.client_id)
            .set_grant_type(GRANT_TYPE_DEVICE_CODE)
            .set_device_code(self.device_code)
            .set_additional_parameters(additional_parameters)
            .build()
        )
