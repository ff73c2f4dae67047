"""Parameter encoding helpers shared by requests and responses.

Covers scope strings, form-urlencoded bodies, redirect parameter parsing and
the reserved-name guard applied to additional parameters.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import parse_qsl, quote_plus, unquote_plus, urlsplit, urlunsplit

from .errors import InvalidArgumentError
from .telemetry import get_logger

RESPONSE_MODE_QUERY = "query"
RESPONSE_MODE_FRAGMENT = "fragment"


def scopes_to_string(scopes: Iterable[str | None] | None) -> str | None:
    """Join scopes into a space-delimited string.

    Duplicates are dropped, first occurrence order is kept.

    Returns:
        The scope string, or None when there are no scopes.

    Raises:
        InvalidArgumentError: If any scope is None or empty.
    """
    if scopes is None:
        return None

    unique: dict[str, None] = {}
    for scope in scopes:
        if not scope:
            raise InvalidArgumentError(
                "individual scopes cannot be null or empty", field="scope"
            )
        unique[scope] = None

    if not unique:
        return None
    return " ".join(unique)


def string_to_scopes(value: str | None) -> set[str]:
    """Split a space-delimited scope string into a set."""
    if not value:
        return set()
    return set(value.split())


def form_url_encode(params: Mapping[str, str] | None) -> str:
    """Encode parameters as an ``application/x-www-form-urlencoded`` body.

    Values are percent-encoded, keys are written verbatim.
    """
    if not params:
        return ""
    return "&".join(f"{key}={quote_plus(value)}" for key, value in params.items())


def check_additional_params(
    params: Mapping[str, str] | None,
    reserved: frozenset[str],
) -> dict[str, str]:
    """Validate caller-supplied additional parameters.

    Args:
        params: Parameters to check (None is treated as empty).
        reserved: Names owned by the request type.

    Returns:
        A copy of the parameters.

    Raises:
        InvalidArgumentError: If a key or value is None, or a key is reserved.
    """
    if params is None:
        return {}

    checked: dict[str, str] = {}
    for key, value in params.items():
        if key is None or value is None:
            raise InvalidArgumentError(
                "additional parameters must have non-null keys and non-null values",
                field="additional_parameters",
            )
        if key in reserved:
            raise InvalidArgumentError(
                f"Parameter {key} is directly supported via the request builder, "
                "use the builder method instead",
                field=key,
            )
        checked[key] = value
    return checked


def extract_additional_params(
    values: Mapping[str, Any],
    reserved: frozenset[str],
) -> dict[str, str]:
    """Collect every non-reserved entry of a response as a string."""
    extracted: dict[str, str] = {}
    for key, value in values.items():
        if key in reserved or value is None:
            continue
        extracted[key] = value if isinstance(value, str) else json.dumps(value)
    return extracted


def parse_redirect_params(
    uri: str,
    response_mode: str | None = None,
) -> dict[str, str]:
    """Extract response parameters from a redirect URI.

    Args:
        uri: The redirect URI delivered by the browser.
        response_mode: ``query``, ``fragment`` or None to use the fragment
            when present and the query otherwise.

    Returns:
        Parameter mapping; the first occurrence of a repeated key wins.
    """
    parts = urlsplit(uri)
    if response_mode == RESPONSE_MODE_QUERY:
        use_fragment = False
    elif response_mode == RESPONSE_MODE_FRAGMENT:
        use_fragment = True
    else:
        use_fragment = bool(parts.fragment)

    if use_fragment:
        return _parse_fragment(parts.fragment)

    params: dict[str, str] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        params.setdefault(key, value)
    return params


def _parse_fragment(fragment: str) -> dict[str, str]:
    # Malformed pairs are skipped so one bad argument does not lose the rest.
    params: dict[str, str] = {}
    if not fragment:
        return params

    for pair in fragment.split("&"):
        key, sep, value = pair.partition("=")
        if not key or not sep:
            get_logger().debug("redirect_fragment_pair_skipped")
            continue
        params.setdefault(unquote_plus(key), unquote_plus(value))
    return params


def append_query_params(uri: str, params: Mapping[str, str]) -> str:
    """Append form-encoded parameters to a URI, keeping any existing query."""
    parts = urlsplit(uri)
    encoded = form_url_encode(params)
    if parts.query and encoded:
        encoded = f"{parts.query}&{encoded}"
    return urlunsplit(parts._replace(query=encoded or parts.query))
