"""Pipeline runner: sequences the stages behind each CLI operation.

    resolve   load -> (compose | bundle?) -> resolve
    compose   load -> graph -> compose
    bundle    load -> bundle
    validate  load -> detect -> (compose | bundle) -> resolve -> validate

Every stage reports to the runner's event sink, so ``--verbose`` output and
tests see the same ``[stage] message`` stream.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from ucp_schema.config import Settings
from ucp_schema.errors import MissingDirection, UndeterminedSchemaSource
from ucp_schema.events import EventSink, NullEventSink
from ucp_schema.models.annotations import Direction, normalize_operation
from ucp_schema.models.capability import CapabilityGraph
from ucp_schema.pipeline.annotations import Resolution, resolve
from ucp_schema.pipeline.bundler import Bundler
from ucp_schema.pipeline.composer import compose_schema
from ucp_schema.pipeline.detector import (
    Detection,
    ValidationMode,
    detect,
    infer_direction,
    load_profile_capabilities,
)
from ucp_schema.pipeline.graph import build_graph, extract_capabilities, parse_declarations
from ucp_schema.pipeline.validation import ValidationOutcome, evaluate
from ucp_schema.sources.fetcher import Fetcher
from ucp_schema.sources.locator import SchemaSourceResolver


@dataclass
class ValidationRun:
    """Full result of one ``validate`` execution."""

    detection: Detection
    resolution: Resolution
    outcome: ValidationOutcome
    duration_ms: int = 0

    @property
    def valid(self) -> bool:
        return self.outcome.valid


class Pipeline:
    """Runs pipeline operations with one fetcher and one event sink."""

    def __init__(
        self,
        settings: Settings | None = None,
        events: EventSink | None = None,
        fetcher: Fetcher | None = None,
    ):
        self.settings = settings or Settings()
        self.events = events or NullEventSink()
        if fetcher is None:
            resolver = None
            if self.settings.schema_local_base is not None:
                resolver = SchemaSourceResolver(
                    self.settings.schema_local_base, self.settings.schema_remote_base
                )
            fetcher = Fetcher(resolver, timeout=self.settings.http_timeout)
        self.fetcher = fetcher

    def close(self) -> None:
        self.fetcher.close()

    def __enter__(self) -> Pipeline:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # --- Loading ---

    def load(self, source: str, label: str = "") -> dict:
        self.events.emit("load", f"reading {label}{source}")
        return self.fetcher.fetch(source)

    def load_capability_schema(self, schema_url: str) -> dict:
        """Fetch a capability schema and inline its references."""
        return self.bundle_document(self.fetcher.fetch(schema_url), schema_url)

    def load_profile(self, profile_url: str) -> dict:
        return self.fetcher.fetch(profile_url)

    # --- Operations ---

    def bundle_document(self, document: dict, base: str | None) -> dict:
        return Bundler(self.fetcher, self.events).bundle(document, base)

    def bundle_source(self, source: str) -> dict:
        document = self.load(source)
        self.events.emit("bundle", "inlining $ref pointers")
        return self.bundle_document(document, source)

    def compose_capabilities(self, capabilities) -> dict:
        graph = build_graph(capabilities)
        self._describe(graph)
        return compose_schema(graph, self.load_capability_schema, self.settings.max_workers, self.events)

    def compose_document(self, document: dict) -> dict:
        """Compose the schema a self-describing payload declares.

        Raises:
            UndeterminedSchemaSource: the document is not a self-describing payload.
        """
        direction = infer_direction(document)
        if direction is None:
            raise UndeterminedSchemaSource(
                "input is not a self-describing payload (missing ucp.capabilities "
                "or meta.profile). Use `resolve` for schema files."
            )

        if direction == Direction.RESPONSE:
            capabilities = extract_capabilities(document)
        else:
            profile_url = document["meta"]["profile"]
            self.events.emit("detect", f"JSONRPC request: fetching profile {profile_url}")
            capabilities = load_profile_capabilities(profile_url, self.load_profile)
        return self.compose_capabilities(capabilities)

    def resolve_document(
        self,
        document: dict,
        source: str | None,
        operation: str,
        direction: Direction | None = None,
        bundle: bool = False,
        strict: bool | None = None,
    ) -> Resolution:
        """Resolve a schema, composing it first when ``document`` is a payload.

        An explicit ``direction`` wins over the one a payload implies.
        """
        inferred = infer_direction(document)
        if inferred is not None:
            self.events.emit("compose", "composing schemas from payload capabilities")
            schema = self.compose_document(document)
        else:
            self.events.emit("detect", "input is a schema file (no ucp.capabilities)")
            schema = document
            if bundle:
                self.events.emit("bundle", "inlining $ref pointers")
                schema = self.bundle_document(document, source)

        direction = direction or inferred
        if direction is None:
            raise MissingDirection("--request or --response is required for schema input")
        return self._resolve(schema, direction, operation, strict)

    def validate_payload(
        self,
        payload,
        operation: str,
        schema: str | None = None,
        profile: str | None = None,
        request: bool = False,
        response: bool = False,
        strict: bool | None = None,
    ) -> ValidationRun:
        start = time.monotonic()
        detection = detect(
            payload,
            schema=schema,
            profile=profile,
            request=request,
            response=response,
            load_profile=self.load_profile,
            events=self.events,
        )

        if detection.mode == ValidationMode.EXPLICIT:
            composed = self.bundle_document(self.fetcher.fetch(schema), schema)
        else:
            if detection.mode == ValidationMode.RESPONSE:
                self.events.emit("compose", "composing schemas from payload capabilities")
            else:
                count = len(parse_declarations(detection.capabilities))
                self.events.emit("compose", f"composing {count} capability schemas from profile")
            composed = self.compose_capabilities(detection.capabilities)

        resolution = self._resolve(composed, detection.direction, operation, strict)

        self.events.emit("validate", "validating payload against resolved schema")
        outcome = evaluate(resolution.schema, detection.instance)
        return ValidationRun(
            detection=detection,
            resolution=resolution,
            outcome=outcome,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    # --- Helpers ---

    def _resolve(
        self, schema: dict, direction: Direction, operation: str, strict: bool | None
    ) -> Resolution:
        strict = self.settings.strict if strict is None else strict
        self.events.emit(
            "resolve",
            f"resolving for {direction.value}/{normalize_operation(operation)}"
            + (" (strict)" if strict else ""),
        )
        return resolve(schema, direction, operation, strict=strict, events=self.events)

    def _describe(self, graph: CapabilityGraph) -> None:
        extensions = graph.extensions()
        self.events.emit(
            "detect",
            f"payload with {len(graph)} capabilities (1 root, {len(extensions)} extensions)",
        )
        for decl in [graph.root_declaration] + extensions:
            kind = "ext" if decl.extends else "root"
            self.events.emit("detect", f"  {kind} {decl.name} -> {decl.schema_url}")
