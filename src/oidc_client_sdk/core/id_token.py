"""Identity token decoding and claim validation.

Decoding reads the compact token's claims without checking the signature.
Callers that need signature verification use
:func:`verify_id_token_signature`, backed by PyJWT.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
from typing import Any

import jwt
from pydantic import BaseModel, ConfigDict, Field

from ..clock import SYSTEM_CLOCK, Clock
from ..errors import IdTokenValidationError, MalformedTokenError

# OIDC Core 3.1.3.7: acceptable distance between iat and now
DEFAULT_MAX_ISSUED_AT_SKEW_S = 600

# Supported algorithms for signature verification
SUPPORTED_ALGORITHMS = ["ES256", "ES384", "ES512", "RS256", "RS384", "RS512"]


class IdTokenClaims(BaseModel):
    """Decoded, unverified identity token claims."""

    model_config = ConfigDict(frozen=True)

    issuer: str
    subject: str
    audience: list[str]
    expiration: int = Field(..., description="Expiration time (Unix timestamp)")
    issued_at: int = Field(..., description="Issued at time (Unix timestamp)")
    nonce: str | None = None
    claims: dict[str, Any] = Field(default_factory=dict)

    @property
    def authorized_party(self) -> str | None:
        azp = self.claims.get("azp")
        return azp if isinstance(azp, str) else None

    def validate(
        self,
        *,
        issuer: str | None = None,
        client_id: str,
        nonce: str | None = None,
        clock: Clock = SYSTEM_CLOCK,
        max_issued_at_skew_s: int = DEFAULT_MAX_ISSUED_AT_SKEW_S,
    ) -> None:
        """Check the claims against the request that produced the token.

        Args:
            issuer: Expected issuer; skipped when None.
            client_id: Client the token must be issued to.
            nonce: Nonce sent with the authorization request, if any.
            clock: Time source for the expiration and issued-at checks.
            max_issued_at_skew_s: Allowed distance between ``iat`` and now.

        Raises:
            IdTokenValidationError: On the first failing check.
        """
        if issuer is not None and self.issuer != issuer:
            raise IdTokenValidationError("Issuer mismatch", claim="iss")

        if client_id not in self.audience:
            raise IdTokenValidationError(
                "Audience does not contain the client id", claim="aud"
            )
        if len(self.audience) > 1 and self.authorized_party != client_id:
            raise IdTokenValidationError(
                "Authorized party must be the client id for multiple audiences",
                claim="azp",
            )

        now_s = clock.current_time_millis() // 1000
        if now_s > self.expiration:
            raise IdTokenValidationError("ID Token expired", claim="exp")
        if abs(now_s - self.issued_at) > max_issued_at_skew_s:
            raise IdTokenValidationError(
                "Issued at time is more than the allowed skew from now",
                claim="iat",
            )

        if nonce is not None and self.nonce != nonce:
            raise IdTokenValidationError("Nonce mismatch", claim="nonce")


def parse_id_token(token: str) -> IdTokenClaims:
    """Decode an identity token's claims without verifying its signature.

    Args:
        token: Compact serialization ``header.claims[.signature]``.

    Raises:
        MalformedTokenError: If sections are missing, undecodable or lack
            mandatory claims.
    """
    sections = token.split(".")
    if len(sections) < 2:
        raise MalformedTokenError("ID token must have both header and claims section")

    # Only the encoding of the header is checked.
    _b64url_decode(sections[0])
    try:
        claims = json.loads(_b64url_decode(sections[1]))
    except ValueError as e:
        raise MalformedTokenError("ID token claims section is not valid JSON") from e
    if not isinstance(claims, dict):
        raise MalformedTokenError("ID token claims section must be a JSON object")

    audience = claims.get("aud")
    if isinstance(audience, str):
        audience = [audience]
    elif not (
        isinstance(audience, list) and all(isinstance(aud, str) for aud in audience)
    ):
        raise MalformedTokenError("ID token aud must be a string or list of strings")

    return IdTokenClaims(
        issuer=_string_claim(claims, "iss"),
        subject=_string_claim(claims, "sub"),
        audience=audience,
        expiration=_number_claim(claims, "exp"),
        issued_at=_number_claim(claims, "iat"),
        nonce=_optional_string_claim(claims, "nonce"),
        claims=claims,
    )


def verify_id_token_signature(
    token: str,
    key: Any,
    *,
    algorithms: list[str] | None = None,
    audience: str | list[str] | None = None,
    issuer: str | None = None,
) -> dict[str, Any]:
    """Verify an identity token's signature and registered claims with PyJWT.

    Returns:
        The verified claims.

    Raises:
        IdTokenValidationError: If verification fails.
    """
    decode_kwargs: dict[str, Any] = {
        "algorithms": algorithms or SUPPORTED_ALGORITHMS,
        "options": {"verify_aud": audience is not None},
    }
    if audience is not None:
        decode_kwargs["audience"] = audience
    if issuer is not None:
        decode_kwargs["issuer"] = issuer

    try:
        return jwt.decode(token, key, **decode_kwargs)
    except jwt.exceptions.ExpiredSignatureError as e:
        raise IdTokenValidationError("ID Token expired", claim="exp") from e
    except jwt.exceptions.InvalidAudienceError as e:
        raise IdTokenValidationError(f"Invalid audience: {e}", claim="aud") from e
    except jwt.exceptions.InvalidIssuerError as e:
        raise IdTokenValidationError(f"Invalid issuer: {e}", claim="iss") from e
    except jwt.exceptions.InvalidTokenError as e:
        raise IdTokenValidationError(f"Invalid token: {e}") from e


def _b64url_decode(section: str) -> bytes:
    padded = section + "=" * (-len(section) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as e:
        raise MalformedTokenError("ID token section is not valid base64url") from e


def _string_claim(claims: dict[str, Any], key: str) -> str:
    value = claims.get(key)
    if not isinstance(value, str):
        raise MalformedTokenError(f"ID token is missing the {key} claim")
    return value


def _optional_string_claim(claims: dict[str, Any], key: str) -> str | None:
    value = claims.get(key)
    if value is not None and not isinstance(value, str):
        raise MalformedTokenError(f"ID token {key} claim must be a string")
    return value


def _number_claim(claims: dict[str, Any], key: str) -> int:
    value = claims.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedTokenError(f"ID token is missing the {key} claim")
    if not math.isfinite(value):
        raise MalformedTokenError(f"ID token {key} claim must be finite")
    return int(value)
