"""Error taxonomy for the schema pipeline.

Every error carries a stable ``code`` so automation can branch on identity
instead of message text, a ``kind`` naming its family, and the ``exit_code``
the CLI surfaces for it:

    2: schema, graph, annotation, reference or detection error
    3: a schema source could not be fetched
"""

from __future__ import annotations


class UcpSchemaError(Exception):
    """Base class for all pipeline errors."""

    code = "E000"
    kind = "error"
    exit_code = 2

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.message = message
        self.path = path  # JSON pointer or locator, when one applies

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {"code": self.code, "kind": self.kind, "path": self.path, "message": self.message}


class ConfigError(UcpSchemaError):
    code = "E040"
    kind = "config"


class SchemaParseError(UcpSchemaError):
    """A document is not valid JSON/YAML, or its root is not an object."""

    code = "E001"
    kind = "parse"


# --- Capability graph ---


class GraphError(UcpSchemaError):
    kind = "graph"

    def __init__(self, message: str, names: list[str] | None = None):
        super().__init__(message)
        self.names = names or []


class MultipleRoots(GraphError):
    code = "E010"


class NoRoot(GraphError):
    code = "E011"


class DanglingExtends(GraphError):
    code = "E012"


class ExtensionCycle(GraphError):
    code = "E013"


class InvalidCapabilityDeclaration(GraphError):
    code = "E015"


# --- Composition ---


class CompositionError(UcpSchemaError):
    kind = "composition"


class MissingExtensionDef(CompositionError):
    code = "E014"

    def __init__(self, capability: str, root: str, path: str = ""):
        super().__init__(
            f"extension '{capability}' has no $defs entry for root capability '{root}'",
            path,
        )
        self.capability = capability
        self.root = root


class TypeConflict(CompositionError):
    code = "E006"

    def __init__(self, path: str, base_type, ext_type):
        super().__init__(
            f"type conflict at {path}: {_type_label(base_type)} vs {_type_label(ext_type)}",
            path,
        )
        self.base_type = base_type
        self.ext_type = ext_type


# --- Annotations ---


class AnnotationError(UcpSchemaError):
    kind = "annotation"


class InvalidAnnotationShape(AnnotationError):
    code = "E004"


class InvalidVisibilityToken(AnnotationError):
    code = "E005"

    def __init__(self, path: str, value: str):
        super().__init__(
            f"unknown visibility '{value}' at {path} (expected omit, required or optional)",
            path,
        )
        self.value = value


class MonotonicityViolation(AnnotationError):
    code = "E008"


# --- References ---


class SchemaReferenceError(UcpSchemaError):
    kind = "reference"

    def __init__(self, message: str, chain: list[str] | None = None, path: str = ""):
        super().__init__(message, path)
        self.chain = chain or []


class RefNotFound(SchemaReferenceError):
    code = "E002"


class AnchorNotFound(SchemaReferenceError):
    code = "E003"


class CircularReference(SchemaReferenceError):
    code = "E007"


# --- Source resolution ---


class SourceResolutionError(UcpSchemaError):
    kind = "source"
    exit_code = 3


class SchemaNotFound(SourceResolutionError):
    code = "E020"


class NetworkError(SourceResolutionError):
    code = "E021"


# --- Mode detection ---


class DetectionError(UcpSchemaError):
    kind = "detection"


class MissingDirection(DetectionError):
    code = "E030"


class UndeterminedSchemaSource(DetectionError):
    code = "E031"


class AmbiguousMode(DetectionError):
    code = "E032"


class MissingPayloadEnvelope(DetectionError):
    code = "E033"


def _type_label(value) -> str:
    if isinstance(value, list):
        return "[" + ", ".join(str(v) for v in value) + "]"
    return f"'{value}'"
