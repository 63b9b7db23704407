"""Validation stage: evaluate an instance against a resolved schema.

Keyword evaluation is delegated entirely to ``jsonschema`` (Draft 2020-12);
this module only shapes the errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from ucp_schema.errors import SchemaParseError
from ucp_schema.sources.pointer import child


@dataclass(frozen=True)
class ValidationErrorDetail:
    path: str  # JSON pointer into the instance, "" for the root
    message: str

    def to_dict(self) -> dict:
        return {"path": self.path, "message": self.message}

    def __str__(self) -> str:
        return f"{self.path or '/'}: {self.message}"


@dataclass
class ValidationOutcome:
    valid: bool
    errors: list[ValidationErrorDetail] = field(default_factory=list)

    def to_dict(self) -> dict:
        if self.valid:
            return {"valid": True}
        return {"valid": False, "errors": [e.to_dict() for e in self.errors]}


def evaluate(schema: dict, instance) -> ValidationOutcome:
    """Validate ``instance`` against ``schema``.

    Raises:
        SchemaParseError: ``schema`` is not a valid Draft 2020-12 schema.
    """
    try:
        Draft202012Validator.check_schema(schema)
    except SchemaError as e:
        raise SchemaParseError(f"resolved schema is not valid JSON Schema: {e.message}") from e

    validator = Draft202012Validator(schema)
    errors = [
        ValidationErrorDetail(path=_pointer(error.absolute_path), message=error.message)
        for error in validator.iter_errors(instance)
    ]
    errors.sort(key=lambda e: (e.path, e.message))
    return ValidationOutcome(valid=not errors, errors=errors)


def _pointer(parts) -> str:
    pointer = ""
    for part in parts:
        pointer = child(pointer, part)
    return pointer
