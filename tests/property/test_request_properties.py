"""
Property-based tests for request models.

Covers deterministic parameter rendering, persistence round trips and
grant-specific token request requirements.
"""

import pytest
from hypothesis import given, settings, strategies as st

from oidc_client_sdk.authorization import (
    AUTHORIZATION_REQUEST_RESERVED_PARAMS,
    AuthorizationRequest,
)
from oidc_client_sdk.config import ServiceConfiguration
from oidc_client_sdk.errors import InvalidStateError
from oidc_client_sdk.serialization import deserialize_request
from oidc_client_sdk.token import TOKEN_REQUEST_RESERVED_PARAMS, TokenRequest

CONFIGURATION = ServiceConfiguration(
    authorization_endpoint="https://auth.example.com/authorize",
    token_endpoint="https://auth.example.com/token",
)

param_keys = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=12)
param_values = st.text(min_size=1, max_size=30)
tokens = st.text(
    alphabet="abcdefghijklmnopqrstuvwxyz0123456789-_", min_size=1, max_size=40
)


def extra_params(reserved: frozenset[str]):
    return st.dictionaries(
        param_keys.filter(lambda key: key not in reserved), param_values, max_size=5
    )


class TestAuthorizationRequestProperties:
    """Property tests for authorization requests."""

    @given(
        state=tokens,
        scopes=st.lists(tokens, max_size=5),
        additional=extra_params(AUTHORIZATION_REQUEST_RESERVED_PARAMS),
    )
    @settings(max_examples=100)
    def test_parameters_are_deterministic(
        self, state: str, scopes: list[str], additional: dict[str, str]
    ) -> None:
        request = (
            AuthorizationRequest.builder(
                CONFIGURATION, "client", redirect_uri="https://app.example.com/cb"
            )
            .set_state(state)
            .set_scopes(scopes)
            .set_additional_parameters(additional)
            .build()
        )
        assert request.to_parameters() == request.to_parameters()
        assert request.to_uri() == request.to_uri()
        for key, value in additional.items():
            assert request.to_parameters()[key] == value

    @given(
        state=tokens,
        nonce=tokens,
        additional=extra_params(AUTHORIZATION_REQUEST_RESERVED_PARAMS),
    )
    @settings(max_examples=100)
    def test_serialization_round_trip(
        self, state: str, nonce: str, additional: dict[str, str]
    ) -> None:
        request = (
            AuthorizationRequest.builder(
                CONFIGURATION, "client", redirect_uri="https://app.example.com/cb"
            )
            .set_state(state)
            .set_nonce(nonce)
            .set_additional_parameters(additional)
            .build()
        )
        restored = deserialize_request(request.serialize_json())
        assert restored == request
        assert restored.to_uri() == request.to_uri()


class TestTokenRequestProperties:
    """Property tests for token requests."""

    @given(
        code=tokens,
        additional=extra_params(TOKEN_REQUEST_RESERVED_PARAMS),
    )
    @settings(max_examples=100)
    def test_code_exchange_round_trip(
        self, code: str, additional: dict[str, str]
    ) -> None:
        request = (
            TokenRequest.builder(CONFIGURATION, "client")
            .set_authorization_code(code)
            .set_redirect_uri("https://app.example.com/cb")
            .set_additional_parameters(additional)
            .build()
        )
        restored = TokenRequest.deserialize(request.serialize())
        assert restored == request
        assert restored.to_parameters() == request.to_parameters()

    @given(code=tokens)
    @settings(max_examples=50)
    def test_code_without_redirect_uri_is_rejected(self, code: str) -> None:
        builder = TokenRequest.builder(CONFIGURATION, "client").set_authorization_code(
            code
        )
        with pytest.raises(InvalidStateError):
            builder.build()

    @given(refresh_token=tokens)
    @settings(max_examples=50)
    def test_refresh_grant_is_inferred(self, refresh_token: str) -> None:
        request = (
            TokenRequest.builder(CONFIGURATION, "client")
            .set_refresh_token(refresh_token)
            .build()
        )
        params = request.to_parameters()
        assert params["grant_type"] == "refresh_token"
        assert params["refresh_token"] == refresh_token
