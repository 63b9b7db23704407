"""Visibility annotations (``ucp_request`` / ``ucp_response``).

An annotation is either a single token that applies to every operation::

    "ucp_request": "omit"

or a per-operation mapping::

    "ucp_request": {"create": "omit", "update": "required"}

``parse_annotation`` turns the raw JSON value into one of the two variants;
nothing downstream looks at the raw value again.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ucp_schema.errors import InvalidAnnotationShape, InvalidVisibilityToken


class Direction(Enum):
    REQUEST = "request"
    RESPONSE = "response"

    @property
    def annotation_key(self) -> str:
        return f"ucp_{self.value}"


class Visibility(Enum):
    OMIT = "omit"
    REQUIRED = "required"
    OPTIONAL = "optional"


OPERATIONS = ("create", "read", "update", "complete")

VISIBILITY_TOKENS = tuple(v.value for v in Visibility)


def normalize_operation(operation: str) -> str:
    return operation.strip().lower()


@dataclass(frozen=True)
class Shorthand:
    """One token for all operations."""

    visibility: Visibility

    def visibility_for(self, operation: str) -> Visibility | None:
        return self.visibility


@dataclass(frozen=True)
class PerOperation:
    """Operation name -> token. Unlisted operations carry no annotation."""

    mapping: tuple[tuple[str, Visibility], ...]

    def visibility_for(self, operation: str) -> Visibility | None:
        for name, visibility in self.mapping:
            if name == operation:
                return visibility
        return None

    @property
    def operations(self) -> list[str]:
        return [name for name, _ in self.mapping]


Annotation = Shorthand | PerOperation


def parse_visibility(value: str, path: str) -> Visibility:
    try:
        return Visibility(value)
    except ValueError:
        raise InvalidVisibilityToken(path, value) from None


def parse_annotation(value, path: str) -> Annotation:
    """Parse a raw annotation value.

    Raises:
        InvalidAnnotationShape: value is neither a string nor a mapping of strings.
        InvalidVisibilityToken: a token is not omit/required/optional.
    """
    if isinstance(value, str):
        return Shorthand(parse_visibility(value, path))

    if isinstance(value, dict):
        mapping = []
        for operation, token in value.items():
            op_path = f"{path}/{operation}"
            if not isinstance(token, str):
                raise InvalidAnnotationShape(
                    f"invalid annotation at {op_path}: expected a visibility string, "
                    f"got {json_type_name(token)}",
                    op_path,
                )
            mapping.append((normalize_operation(operation), parse_visibility(token, op_path)))
        return PerOperation(tuple(mapping))

    raise InvalidAnnotationShape(
        f"invalid annotation at {path}: expected a string or an object, got {json_type_name(value)}",
        path,
    )


def json_type_name(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"
