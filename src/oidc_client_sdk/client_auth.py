"""Client authentication strategies for token endpoint requests.

Each strategy carries the client credentials over exactly one channel:
transport headers (``client_secret_basic``) or body parameters
(``client_secret_post``). Public clients use ``none``.
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from urllib.parse import quote_plus

from pydantic import SecretStr

from .errors import InvalidArgumentError


class ClientAuthentication(ABC):
    """Strategy producing headers or body parameters for a token request."""

    name: str

    @abstractmethod
    def request_headers(self, client_id: str) -> dict[str, str] | None:
        """Headers to add to the token request, if any."""

    @abstractmethod
    def request_parameters(self, client_id: str) -> dict[str, str] | None:
        """Body parameters to add to the token request, if any."""


class NoClientAuthentication(ClientAuthentication):
    """Public client: no credentials are sent."""

    name = "none"

    def request_headers(self, client_id: str) -> dict[str, str] | None:
        return None

    def request_parameters(self, client_id: str) -> dict[str, str] | None:
        return None


class ClientSecretBasic(ClientAuthentication):
    """HTTP Basic authentication with the client secret (RFC 6749 section 2.3.1)."""

    name = "client_secret_basic"

    def __init__(self, client_secret: str | SecretStr) -> None:
        self._client_secret = _as_secret(client_secret)

    def request_headers(self, client_id: str) -> dict[str, str] | None:
        # Both halves are form-urlencoded before joining.
        credentials = (
            f"{quote_plus(client_id)}:"
            f"{quote_plus(self._client_secret.get_secret_value())}"
        )
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {encoded}"}

    def request_parameters(self, client_id: str) -> dict[str, str] | None:
        return None


class ClientSecretPost(ClientAuthentication):
    """Client id and secret sent as request body parameters."""

    name = "client_secret_post"

    def __init__(self, client_secret: str | SecretStr) -> None:
        self._client_secret = _as_secret(client_secret)

    def request_headers(self, client_id: str) -> dict[str, str] | None:
        return None

    def request_parameters(self, client_id: str) -> dict[str, str] | None:
        return {
            "client_id": client_id,
            "client_secret": self._client_secret.get_secret_value(),
        }


NO_CLIENT_AUTHENTICATION = NoClientAuthentication()


def client_authentication_for(
    method: str,
    client_secret: str | SecretStr | None = None,
) -> ClientAuthentication:
    """Create the strategy for a registered token endpoint auth method.

    Raises:
        InvalidArgumentError: If the method is unknown or a secret is missing.
    """
    if method == NoClientAuthentication.name:
        return NO_CLIENT_AUTHENTICATION
    if method not in (ClientSecretBasic.name, ClientSecretPost.name):
        raise InvalidArgumentError(
            f"Unsupported token endpoint auth method: {method}",
            field="token_endpoint_auth_method",
        )
    if client_secret is None:
        raise InvalidArgumentError(
            f"client_secret is required for {method}", field="client_secret"
        )
    if method == ClientSecretBasic.name:
        return ClientSecretBasic(client_secret)
    return ClientSecretPost(client_secret)


def _as_secret(client_secret: str | SecretStr) -> SecretStr:
    secret = (
        client_secret
        if isinstance(client_secret, SecretStr)
        else SecretStr(client_secret)
    )
    if not secret.get_secret_value():
        raise InvalidArgumentError(
            "client_secret cannot be null or empty", field="client_secret"
        )
    return secret


def apply_client_authentication(
    client_auth: ClientAuthentication,
    client_id: str,
    params: dict[str, str],
) -> tuple[dict[str, str], dict[str, str]]:
    """Merge a strategy's credentials into request parameters.

    Returns:
        ``(headers, body_parameters)``; ``params`` is not modified.

    Raises:
        InvalidArgumentError: If a body parameter of the strategy conflicts
            with a request parameter of a different value.
    """
    merged = dict(params)
    for key, value in (client_auth.request_parameters(client_id) or {}).items():
        if key in merged and merged[key] != value:
            raise InvalidArgumentError(
                f"Client authentication parameter {key} conflicts with "
                "the request parameter of the same name",
                field=key,
            )
        merged[key] = value
    headers = dict(client_auth.request_headers(client_id) or {})
    return headers, merged
