"""Shared pydantic base for serializable protocol models.

Models are frozen, serialize to camelCase JSON documents and are restored
from the same documents. Structural problems in a document surface as
ParseError; protocol invariants raise their own errors from the model
validators.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Annotated, Any, Self

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    PlainSerializer,
    ValidationError,
)
from pydantic.alias_generators import to_camel

from .errors import InvalidArgumentError, InvalidStateError, ParseError


def _freeze(value: dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(value))


def _thaw(value: Mapping[str, Any]) -> dict[str, Any]:
    return dict(value)


# Read-only after validation, dumped as a plain JSON object.
ReadOnlyParams = Annotated[
    dict[str, str],
    AfterValidator(_freeze),
    PlainSerializer(_thaw, return_type=dict[str, str]),
]
ReadOnlyDocument = Annotated[
    dict[str, Any],
    AfterValidator(_freeze),
    PlainSerializer(_thaw, return_type=dict[str, Any]),
]


class ProtocolModel(BaseModel):
    """Immutable, JSON-serializable protocol value."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        validate_default=True,
    )

    def serialize(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible document."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def serialize_json(self) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.serialize())

    @classmethod
    def deserialize(cls, document: Mapping[str, Any] | str) -> Self:
        """Restore a model from a document produced by :meth:`serialize`.

        Raises:
            ParseError: If the document is not valid JSON or is structurally
                invalid (missing members, wrong types).
        """
        data = load_json_object(document)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ParseError(
                f"Invalid {cls.__name__} document: {e.errors()[0]['msg']}",
                field=_error_location(e),
            ) from e


def load_json_object(document: Mapping[str, Any] | str | bytes) -> dict[str, Any]:
    """Decode a JSON object, raising ParseError on malformed input."""
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except ValueError as e:
            raise ParseError(f"Malformed JSON: {e}") from e
    if not isinstance(document, Mapping):
        raise ParseError("Expected a JSON object")
    return dict(document)


def construct(model: type[ProtocolModel], **fields: Any) -> Any:
    """Build a model from builder fields, mapping pydantic type errors.

    Invariant violations raise their own errors from model validators;
    anything pydantic rejects on type grounds is a bad caller argument.
    """
    try:
        return model(**fields)
    except ValidationError as e:
        raise InvalidArgumentError(
            f"Invalid {model.__name__}: {e.errors()[0]['msg']}",
            field=_error_location(e),
        ) from e


def require(value: Any, field: str, message: str | None = None) -> None:
    """Raise InvalidStateError when a mandatory value is missing."""
    if value is None:
        raise InvalidStateError(message or f"{field} must be specified", field=field)


def require_non_empty(value: str | None, field: str) -> None:
    """Raise InvalidArgumentError when an optional value is empty if defined."""
    if value is not None and not value:
        raise InvalidArgumentError(f"{field} cannot be empty if defined", field=field)


def _error_location(error: ValidationError) -> str | None:
    loc = error.errors()[0].get("loc") or ()
    return ".".join(str(part) for part in loc) or None


def get_json_int(json: Mapping[str, Any], key: str) -> int | None:
    """Read an optional integral member; finite floats are truncated.

    Raises:
        ParseError: If the member is present but not a finite number.
    """
    value = json.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError(f"field {key} must be a number", field=key)
    if not math.isfinite(value):
        raise ParseError(f"field {key} must be finite", field=key)
    return int(value)


def get_json_string(json: Mapping[str, Any], key: str) -> str | None:
    """Read an optional string member.

    Raises:
        ParseError: If the member is present but not a string.
    """
    value = json.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ParseError(f"field {key} must be a string", field=key)
    return value
