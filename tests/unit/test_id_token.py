"""Unit tests for identity token parsing and validation."""

import time

import jwt
import pytest

from oidc_client_sdk.core.id_token import (
    IdTokenClaims,
    parse_id_token,
    verify_id_token_signature,
)
from oidc_client_sdk.errors import IdTokenValidationError, MalformedTokenError

from conftest import FixedClock, b64url, make_id_token

SIGNING_SECRET = "a-test-signing-secret-that-is-long-enough-for-hs256"

NOW_S = 1_700_000_000


def _claims(**overrides) -> dict:
    claims = {
        "iss": "https://issuer",
        "sub": "123",
        "aud": "client1",
        "exp": NOW_S + 600,
        "iat": NOW_S,
        "nonce": "n-1",
    }
    claims.update(overrides)
    return {key: value for key, value in claims.items() if value is not None}


class TestParseIdToken:
    """Tests for decoding identity tokens."""

    def test_two_sections_with_opaque_header(self) -> None:
        """Only the header's encoding is checked, not its content."""
        body = b64url(b'{"iss":"https://issuer","sub":"123","aud":"client1","exp":1000,"iat":900}')
        claims = parse_id_token(f"aaa.{body}")
        assert claims.audience == ["client1"]
        assert claims.expiration == 1000
        assert claims.nonce is None

    def test_audience_list(self) -> None:
        claims = parse_id_token(make_id_token(_claims(aud=["client1", "other"])))
        assert claims.audience == ["client1", "other"]

    def test_keeps_raw_claims(self) -> None:
        claims = parse_id_token(make_id_token(_claims(azp="client1", auth_time=5)))
        assert claims.claims["auth_time"] == 5
        assert claims.authorized_party == "client1"

    def test_single_section(self) -> None:
        with pytest.raises(MalformedTokenError, match="header and claims"):
            parse_id_token("onlyonesection")

    def test_claims_not_json(self) -> None:
        with pytest.raises(MalformedTokenError):
            parse_id_token(f"aaa.{b64url(b'not json')}")

    def test_claims_not_object(self) -> None:
        with pytest.raises(MalformedTokenError):
            parse_id_token(f"aaa.{b64url(b'[1, 2]')}")

    def test_header_not_base64(self) -> None:
        with pytest.raises(MalformedTokenError):
            parse_id_token(f"a.{b64url(b'{}')}")

    @pytest.mark.parametrize("missing", ["iss", "sub", "aud", "exp", "iat"])
    def test_missing_mandatory_claim(self, missing: str) -> None:
        claims = _claims()
        del claims[missing]
        with pytest.raises(MalformedTokenError):
            parse_id_token(make_id_token(claims))

    def test_non_numeric_expiry(self) -> None:
        with pytest.raises(MalformedTokenError):
            parse_id_token(make_id_token(_claims(exp="tomorrow")))


class TestIdTokenClaimsValidate:
    """Tests for claim validation against the originating request."""

    @pytest.fixture
    def clock(self) -> FixedClock:
        return FixedClock(NOW_S * 1000)

    def _parse(self, **overrides) -> IdTokenClaims:
        return parse_id_token(make_id_token(_claims(**overrides)))

    def test_valid(self, clock: FixedClock) -> None:
        self._parse().validate(
            issuer="https://issuer", client_id="client1", nonce="n-1", clock=clock
        )

    def test_issuer_mismatch(self, clock: FixedClock) -> None:
        with pytest.raises(IdTokenValidationError) as exc_info:
            self._parse().validate(issuer="https://other", client_id="client1", clock=clock)
        assert exc_info.value.claim == "iss"

    def test_audience_mismatch(self, clock: FixedClock) -> None:
        with pytest.raises(IdTokenValidationError) as exc_info:
            self._parse().validate(client_id="client2", clock=clock)
        assert exc_info.value.claim == "aud"

    def test_multiple_audiences_need_azp(self, clock: FixedClock) -> None:
        with pytest.raises(IdTokenValidationError) as exc_info:
            self._parse(aud=["client1", "other"]).validate(client_id="client1", clock=clock)
        assert exc_info.value.claim == "azp"
        self._parse(aud=["client1", "other"], azp="client1").validate(
            client_id="client1", clock=clock
        )

    def test_expired(self, clock: FixedClock) -> None:
        with pytest.raises(IdTokenValidationError) as exc_info:
            self._parse(exp=NOW_S - 1).validate(client_id="client1", clock=clock)
        assert exc_info.value.claim == "exp"

    def test_issued_too_long_ago(self, clock: FixedClock) -> None:
        with pytest.raises(IdTokenValidationError) as exc_info:
            self._parse(iat=NOW_S - 601).validate(client_id="client1", clock=clock)
        assert exc_info.value.claim == "iat"

    def test_nonce_mismatch(self, clock: FixedClock) -> None:
        with pytest.raises(IdTokenValidationError) as exc_info:
            self._parse().validate(client_id="client1", nonce="n-2", clock=clock)
        assert exc_info.value.claim == "nonce"


class TestVerifyIdTokenSignature:
    """Tests for PyJWT-backed signature verification."""

    def _token(self, **overrides) -> str:
        now = int(time.time())
        claims = _claims(exp=now + 600, iat=now, **overrides)
        return jwt.encode(claims, SIGNING_SECRET, algorithm="HS256")

    def test_valid_signature(self) -> None:
        claims = verify_id_token_signature(
            self._token(),
            SIGNING_SECRET,
            algorithms=["HS256"],
            audience="client1",
            issuer="https://issuer",
        )
        assert claims["sub"] == "123"

    def test_wrong_key(self) -> None:
        with pytest.raises(IdTokenValidationError):
            verify_id_token_signature(
                self._token(), SIGNING_SECRET + "x", algorithms=["HS256"]
            )

    def test_wrong_audience(self) -> None:
        with pytest.raises(IdTokenValidationError) as exc_info:
            verify_id_token_signature(
                self._token(), SIGNING_SECRET, algorithms=["HS256"], audience="other"
            )
        assert exc_info.value.claim == "aud"

    def test_expired(self) -> None:
        token = jwt.encode(
            _claims(exp=int(time.time()) - 120, iat=int(time.time()) - 600),
            SIGNING_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(IdTokenValidationError) as exc_info:
            verify_id_token_signature(token, SIGNING_SECRET, algorithms=["HS256"])
        assert exc_info.value.claim == "exp"
