"""PKCE (Proof Key for Code Exchange) implementation.

Implements RFC 7636 with the S256 challenge method by default and the plain
method on explicit request, plus the random state and nonce generators used
by authorization and end-session requests.
"""

from __future__ import annotations

import base64
import hashlib
import re
import secrets

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidArgumentError

CODE_CHALLENGE_METHOD_S256 = "S256"
CODE_CHALLENGE_METHOD_PLAIN = "plain"

MIN_CODE_VERIFIER_LENGTH = 43
MAX_CODE_VERIFIER_LENGTH = 128

DEFAULT_CODE_VERIFIER_ENTROPY = 64
MIN_CODE_VERIFIER_ENTROPY = 32
MAX_CODE_VERIFIER_ENTROPY = 96

STATE_LENGTH = 16

_CODE_VERIFIER_PATTERN = re.compile(r"^[0-9a-zA-Z\-._~]+$")


class PKCEChallenge(BaseModel):
    """PKCE challenge data for authorization code flow."""

    model_config = ConfigDict(frozen=True)

    code_verifier: str = Field(..., min_length=43, max_length=128)
    code_challenge: str = Field(..., min_length=1)
    code_challenge_method: str = Field(default=CODE_CHALLENGE_METHOD_S256)


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_code_verifier(entropy_bytes: int = DEFAULT_CODE_VERIFIER_ENTROPY) -> str:
    """Generate a cryptographically random code verifier.

    Args:
        entropy_bytes: Number of random bytes (32-96), yielding a 43-128
            character verifier.

    Returns:
        URL-safe base64-encoded random string without padding.

    Raises:
        InvalidArgumentError: If entropy_bytes is outside the valid range.
    """
    if not MIN_CODE_VERIFIER_ENTROPY <= entropy_bytes <= MAX_CODE_VERIFIER_ENTROPY:
        raise InvalidArgumentError(
            f"entropy_bytes must be between {MIN_CODE_VERIFIER_ENTROPY} "
            f"and {MAX_CODE_VERIFIER_ENTROPY}",
            field="entropy_bytes",
        )
    return _b64url(secrets.token_bytes(entropy_bytes))


def check_code_verifier(code_verifier: str) -> None:
    """Validate a code verifier's length and character set.

    Raises:
        InvalidArgumentError: If the verifier violates RFC 7636 section 4.1.
    """
    if len(code_verifier) < MIN_CODE_VERIFIER_LENGTH:
        raise InvalidArgumentError(
            "codeVerifier length is shorter than allowed by the PKCE specification",
            field="code_verifier",
        )
    if len(code_verifier) > MAX_CODE_VERIFIER_LENGTH:
        raise InvalidArgumentError(
            "codeVerifier length is longer than allowed by the PKCE specification",
            field="code_verifier",
        )
    if not _CODE_VERIFIER_PATTERN.match(code_verifier):
        raise InvalidArgumentError(
            "codeVerifier string contains illegal characters",
            field="code_verifier",
        )


def derive_code_challenge(
    code_verifier: str,
    method: str = CODE_CHALLENGE_METHOD_S256,
) -> str:
    """Derive the code challenge for a verifier.

    Args:
        code_verifier: The code verifier string.
        method: ``S256`` (default) or ``plain``.

    Returns:
        The verifier itself for ``plain``; otherwise the base64url-encoded
        SHA-256 hash of the verifier.

    Raises:
        InvalidArgumentError: If the method is not supported.
    """
    if method == CODE_CHALLENGE_METHOD_PLAIN:
        return code_verifier
    if method == CODE_CHALLENGE_METHOD_S256:
        return _b64url(hashlib.sha256(code_verifier.encode("ascii")).digest())
    raise InvalidArgumentError(
        f"Unsupported code challenge method: {method}",
        field="code_challenge_method",
    )


def create_pkce_challenge(method: str = CODE_CHALLENGE_METHOD_S256) -> PKCEChallenge:
    """Create a complete PKCE challenge with a fresh verifier."""
    code_verifier = generate_code_verifier()
    return PKCEChallenge(
        code_verifier=code_verifier,
        code_challenge=derive_code_challenge(code_verifier, method),
        code_challenge_method=method,
    )


def verify_code_challenge(
    code_verifier: str,
    code_challenge: str,
    method: str = CODE_CHALLENGE_METHOD_S256,
) -> bool:
    """Verify that a code verifier matches a code challenge.

    Returns:
        True if the verifier produces the challenge, False otherwise.
    """
    expected_challenge = derive_code_challenge(code_verifier, method)
    return secrets.compare_digest(expected_challenge, code_challenge)


def generate_state() -> str:
    """Generate a random state token for CSRF protection and correlation."""
    return _b64url(secrets.token_bytes(STATE_LENGTH))


def generate_nonce() -> str:
    """Generate a random OpenID Connect nonce for replay protection."""
    return _b64url(secrets.token_bytes(STATE_LENGTH))
