"""Annotation resolver: one direction + operation view of an annotated schema.

For every subschema with ``properties``, each property's annotation for the
requested direction decides what happens to it:

    omit      -> dropped from ``properties`` and ``required``
    required  -> kept, appended to ``required`` when missing
    optional  -> kept, removed from ``required``
    (none)    -> unchanged

``ucp_request`` and ``ucp_response`` never survive resolution, and the input
document is never modified.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

from ucp_schema import ANNOTATION_KEYS
from ucp_schema.errors import MonotonicityViolation
from ucp_schema.events import EventSink, NullEventSink
from ucp_schema.models.annotations import Direction, Visibility, normalize_operation, parse_annotation
from ucp_schema.models.diagnostics import Diagnostic, Severity
from ucp_schema.pipeline.conflicts import check_type_conflicts
from ucp_schema.sources.pointer import child

# Keywords whose values are instance data, not subschemas
DATA_KEYWORDS = frozenset({"enum", "const", "examples", "default", "required"})

# Keywords holding a mapping of name -> subschema
SCHEMA_MAPS = frozenset(
    {"properties", "patternProperties", "$defs", "definitions", "dependentSchemas"}
)


@dataclass
class Resolution:
    """A resolved schema plus warnings raised while producing it."""

    schema: dict
    warnings: list[Diagnostic] = field(default_factory=list)


def resolve(
    schema: dict,
    direction: Direction,
    operation: str,
    strict: bool = False,
    events: EventSink | None = None,
) -> Resolution:
    """Resolve ``schema`` for one direction and operation.

    Args:
        schema: Annotated schema document (composed or plain).
        direction: Message direction; picks ``ucp_request`` or ``ucp_response``.
        operation: create/read/update/complete, case-insensitive.
        strict: Close every object subschema with ``additionalProperties: false``.
        events: Stage event sink.

    Raises:
        InvalidAnnotationShape: an annotation is neither a token nor a mapping.
        InvalidVisibilityToken: a token is not omit/required/optional.
        MonotonicityViolation: an allOf branch annotation would weaken a field
            another branch requires.
        TypeConflict: allOf branches give one property incompatible types.
    """
    events = events or NullEventSink()
    operation = normalize_operation(operation)

    resolved = _Resolver(direction, operation).value(schema, "")

    warnings: list[Diagnostic] = []
    if strict:
        close_object_schemas(resolved)
        warnings = strict_composition_warnings(resolved)
        for warning in warnings:
            events.emit("resolve", f"warning: {warning.message}")
    return Resolution(schema=resolved, warnings=warnings)


class _Resolver:
    def __init__(self, direction: Direction, operation: str):
        self.direction = direction
        self.operation = operation
        self.key = direction.annotation_key

    def value(self, value, path: str):
        if isinstance(value, dict):
            return self.object(value, path)
        if isinstance(value, list):
            return [self.value(item, child(path, i)) for i, item in enumerate(value)]
        return value

    def object(self, node: dict, path: str) -> dict:
        raw_required = node.get("required")
        if isinstance(raw_required, list):
            required = [name for name in raw_required if isinstance(name, str)]
        else:
            required = []
        result = {}

        for key, value in node.items():
            if key in ANNOTATION_KEYS or key == "required":
                continue
            key_path = child(path, key)
            if key in DATA_KEYWORDS:
                result[key] = copy.deepcopy(value)
            elif key == "properties" and isinstance(value, dict):
                result[key] = self.properties(value, key_path, required)
            elif key == "allOf" and isinstance(value, list):
                result[key] = self.all_of(value, key_path)
            elif key in SCHEMA_MAPS and isinstance(value, dict):
                result[key] = {
                    name: self.value(subschema, child(key_path, name))
                    for name, subschema in value.items()
                }
            else:
                result[key] = self.value(value, key_path)

        if required:
            result["required"] = required
        elif raw_required is not None and not isinstance(raw_required, list):
            result["required"] = copy.deepcopy(raw_required)
        return result

    def properties(self, properties: dict, path: str, required: list[str]) -> dict:
        result = {}
        for name, prop in properties.items():
            prop_path = child(path, name)
            visibility = self.visibility(prop, prop_path)

            if visibility == Visibility.OMIT:
                if name in required:
                    required.remove(name)
                continue
            if visibility == Visibility.REQUIRED and name not in required:
                required.append(name)
            elif visibility == Visibility.OPTIONAL and name in required:
                required.remove(name)

            result[name] = self.value(prop, prop_path)
        return result

    def visibility(self, prop, path: str) -> Visibility | None:
        if not isinstance(prop, dict) or self.key not in prop:
            return None
        annotation = parse_annotation(prop[self.key], child(path, self.key))
        return annotation.visibility_for(self.operation)

    def all_of(self, branches: list, path: str) -> list:
        # Later branches (extensions) override earlier ones
        merged = {}
        for branch in branches:
            for name, prop in _branch_properties(branch).items():
                if isinstance(prop, dict) and self.key in prop:
                    merged[name] = prop[self.key]

        check_type_conflicts(branches, path)

        result = []
        for index, branch in enumerate(branches):
            branch_path = child(path, index)
            if merged and isinstance(branch, dict):
                branch = self.inject(branch, merged, branch_path)
            result.append(self.value(branch, branch_path))
        return result

    def inject(self, branch: dict, merged: dict, path: str) -> dict:
        """Copy ``merged`` annotations onto same-named, unannotated properties."""
        properties = _branch_properties(branch)
        if not properties:
            return branch

        own_required = branch.get("required")
        if not isinstance(own_required, list):
            own_required = []
        injected = dict(properties)
        for name, annotation in merged.items():
            prop = properties.get(name)
            if not isinstance(prop, dict) or self.key in prop:
                continue

            prop_path = child(child(path, "properties"), name)
            if name in own_required:
                visibility = parse_annotation(annotation, child(prop_path, self.key)).visibility_for(
                    self.operation
                )
                if visibility in (Visibility.OMIT, Visibility.OPTIONAL):
                    raise MonotonicityViolation(
                        f"monotonicity violation at {prop_path}: '{name}' is required by its "
                        f"base schema and cannot be made {visibility.value} "
                        f"for {self.direction.value}/{self.operation}",
                        prop_path,
                    )
            injected[name] = {**prop, self.key: annotation}

        return {**branch, "properties": injected}


def _branch_properties(branch) -> dict:
    if not isinstance(branch, dict):
        return {}
    properties = branch.get("properties")
    return properties if isinstance(properties, dict) else {}


def is_object_schema(node) -> bool:
    if not isinstance(node, dict):
        return False
    declared = node.get("type")
    types = declared if isinstance(declared, list) else [declared]
    return "object" in types or "properties" in node


def close_object_schemas(node) -> None:
    """Set ``additionalProperties: false`` on every object subschema, in place.

    Schemas that already constrain additional properties with ``false`` or a
    subschema keep their value.
    """
    if isinstance(node, list):
        for item in node:
            close_object_schemas(item)
        return
    if not isinstance(node, dict):
        return

    if is_object_schema(node) and node.get("additionalProperties", True) is True:
        node["additionalProperties"] = False

    for key, value in node.items():
        if key in DATA_KEYWORDS:
            continue
        if key in SCHEMA_MAPS and isinstance(value, dict):
            for subschema in value.values():
                close_object_schemas(subschema)
        else:
            close_object_schemas(value)


def strict_composition_warnings(node, path: str = "") -> list[Diagnostic]:
    """Warn about every allOf whose object branches strict mode closes independently."""
    warnings = []
    if isinstance(node, list):
        for index, item in enumerate(node):
            warnings.extend(strict_composition_warnings(item, child(path, index)))
        return warnings
    if not isinstance(node, dict):
        return warnings

    branches = node.get("allOf")
    if isinstance(branches, list):
        object_branches = sum(1 for b in branches if is_object_schema(b))
        if object_branches >= 2:
            all_of_path = child(path, "allOf")
            warnings.append(
                Diagnostic(
                    severity=Severity.WARNING,
                    code="W003",
                    path=all_of_path,
                    message=(
                        f"strict mode closes each of the {object_branches} object branches "
                        f"of {all_of_path} separately, so an instance carrying fields from "
                        "more than one branch is rejected"
                    ),
                )
            )

    for key, value in node.items():
        if key in DATA_KEYWORDS:
            continue
        if key in SCHEMA_MAPS and isinstance(value, dict):
            for name, subschema in value.items():
                warnings.extend(
                    strict_composition_warnings(subschema, child(child(path, key), name))
                )
        else:
            warnings.extend(strict_composition_warnings(value, child(path, key)))
    return warnings


def strip_annotations(value):
    """Return a copy of ``value`` without any ``ucp_*`` annotation keys."""
    if isinstance(value, dict):
        return {
            k: copy.deepcopy(v) if k in DATA_KEYWORDS else strip_annotations(v)
            for k, v in value.items()
            if k not in ANNOTATION_KEYS
        }
    if isinstance(value, list):
        return [strip_annotations(v) for v in value]
    return value
