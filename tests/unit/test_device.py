"""Unit tests for device authorization requests and responses."""

import pytest

from oidc_client_sdk.config import ServiceConfiguration
from oidc_client_sdk.device import (
    DEFAULT_POLLING_INTERVAL_S,
    DeviceAuthorizationRequest,
    DeviceAuthorizationResponse,
)
from oidc_client_sdk.errors import InvalidArgumentError, InvalidStateError, ParseError
from oidc_client_sdk.token import GRANT_TYPE_DEVICE_CODE

from conftest import ISSUE_TIME_MS, FixedClock


@pytest.fixture
def device_request(service_config: ServiceConfiguration) -> DeviceAuthorizationRequest:
    return (
        DeviceAuthorizationRequest.builder(service_config, "tv-client")
        .set_scopes(["openid", "offline_access"])
        .build()
    )


class TestDeviceAuthorizationRequest:
    """Tests for building device authorization requests."""

    def test_to_parameters(self, device_request: DeviceAuthorizationRequest) -> None:
        assert device_request.kind == "device_authorization"
        assert device_request.to_parameters() == {
            "client_id": "tv-client",
            "scope": "openid offline_access",
        }

    def test_requires_device_endpoint(
        self, minimal_service_config: ServiceConfiguration
    ) -> None:
        with pytest.raises(InvalidStateError):
            DeviceAuthorizationRequest.builder(minimal_service_config, "tv-client").build()

    def test_reserved_parameter(self, service_config: ServiceConfiguration) -> None:
        builder = DeviceAuthorizationRequest.builder(service_config, "tv-client")
        builder.set_additional_parameters({"scope": "openid"})
        with pytest.raises(InvalidArgumentError):
            builder.build()

    def test_token_request_names_are_not_reserved(
        self, service_config: ServiceConfiguration
    ) -> None:
        request = (
            DeviceAuthorizationRequest.builder(service_config, "tv-client")
            .set_additional_parameters({"grant_type": "x"})
            .build()
        )
        assert request.to_parameters()["grant_type"] == "x"


class TestDeviceAuthorizationResponse:
    """Tests for parsing and using device authorization responses."""

    def test_from_json(
        self,
        device_request: DeviceAuthorizationRequest,
        sample_device_response: dict,
        clock: FixedClock,
    ) -> None:
        sample_device_response["extra"] = True
        response = DeviceAuthorizationResponse.from_json(
            device_request, sample_device_response, clock
        )
        assert response.user_code == "WDJB-MJHT"
        assert response.code_expiration_time == ISSUE_TIME_MS + 1_800_000
        assert response.polling_interval == 5
        assert response.additional_parameters == {"extra": "true"}

    def test_default_interval(
        self,
        device_request: DeviceAuthorizationRequest,
        sample_device_response: dict,
        clock: FixedClock,
    ) -> None:
        del sample_device_response["interval"]
        response = DeviceAuthorizationResponse.from_json(
            device_request, sample_device_response, clock
        )
        assert response.token_polling_interval is None
        assert response.polling_interval == DEFAULT_POLLING_INTERVAL_S

    def test_whole_float_timings_are_accepted(
        self,
        device_request: DeviceAuthorizationRequest,
        sample_device_response: dict,
        clock: FixedClock,
    ) -> None:
        sample_device_response["expires_in"] = 1800.0
        sample_device_response["interval"] = 10.0
        response = DeviceAuthorizationResponse.from_json(
            device_request, sample_device_response, clock
        )
        assert response.code_expiration_time == ISSUE_TIME_MS + 1_800_000
        assert response.polling_interval == 10

    @pytest.mark.parametrize("value", ["1800", True, float("inf")])
    def test_non_numeric_expiry_is_rejected(
        self,
        device_request: DeviceAuthorizationRequest,
        sample_device_response: dict,
        value: object,
    ) -> None:
        sample_device_response["expires_in"] = value
        with pytest.raises(ParseError) as exc_info:
            DeviceAuthorizationResponse.from_json(device_request, sample_device_response)
        assert exc_info.value.field == "expires_in"

    @pytest.mark.parametrize(
        "missing", ["device_code", "user_code", "verification_uri", "expires_in"]
    )
    def test_missing_mandatory_member(
        self,
        device_request: DeviceAuthorizationRequest,
        sample_device_response: dict,
        missing: str,
    ) -> None:
        del sample_device_response[missing]
        with pytest.raises(ParseError) as exc_info:
            DeviceAuthorizationResponse.from_json(device_request, sample_device_response)
        assert exc_info.value.field == missing

    def test_malformed_json(self, device_request: DeviceAuthorizationRequest) -> None:
        with pytest.raises(ParseError):
            DeviceAuthorizationResponse.from_json(device_request, "not json")

    def test_code_expiry_is_strict(
        self,
        device_request: DeviceAuthorizationRequest,
        sample_device_response: dict,
        clock: FixedClock,
    ) -> None:
        response = DeviceAuthorizationResponse.from_json(
            device_request, sample_device_response, clock
        )
        assert not response.has_code_expired(FixedClock(ISSUE_TIME_MS + 1_800_000))
        assert response.has_code_expired(FixedClock(ISSUE_TIME_MS + 1_800_001))

    def test_polling_schedule(
        self,
        device_request: DeviceAuthorizationRequest,
        sample_device_response: dict,
        clock: FixedClock,
    ) -> None:
        response = DeviceAuthorizationResponse.from_json(
            device_request, sample_device_response, clock
        )
        last_poll = clock.current_time_millis()
        assert response.next_poll_time(last_poll) == last_poll + 5_000
        clock.advance(4_999)
        assert not response.is_poll_allowed(last_poll, clock)
        clock.advance(1)
        assert response.is_poll_allowed(last_poll, clock)

    def test_token_exchange_request(
        self,
        device_request: DeviceAuthorizationRequest,
        sample_device_response: dict,
    ) -> None:
        response = DeviceAuthorizationResponse.from_json(device_request, sample_device_response)
        token_request = response.create_token_exchange_request()
        assert token_request.grant_type == GRANT_TYPE_DEVICE_CODE
        assert token_request.to_parameters() == {
            "grant_type": GRANT_TYPE_DEVICE_CODE,
            "client_id": "tv-client",
            "device_code": sample_device_response["device_code"],
        }

    def test_round_trip(
        self,
        device_request: DeviceAuthorizationRequest,
        sample_device_response: dict,
        clock: FixedClock,
    ) -> None:
        response = DeviceAuthorizationResponse.from_json(
            device_request, sample_device_response, clock
        )
        document = response.serialize()
        assert document["codeExpirationTime"] == ISSUE_TIME_MS + 1_800_000
        assert DeviceAuthorizationResponse.deserialize(document) == response
