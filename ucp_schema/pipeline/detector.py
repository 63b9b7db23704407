"""Validation-mode detector.

Decides, from the payload and the command-line flags, which of the four
validation patterns applies. The first match wins:

    explicit  --schema given; the caller names the direction
    rest      --profile given; the payload is a bare request body
    jsonrpc   payload has meta.profile; the body sits under a capability key
    response  payload has ucp.capabilities; it describes itself
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ucp_schema.errors import (
    AmbiguousMode,
    MissingDirection,
    MissingPayloadEnvelope,
    NoRoot,
    UndeterminedSchemaSource,
)
from ucp_schema.events import EventSink, NullEventSink
from ucp_schema.models.annotations import Direction
from ucp_schema.pipeline.graph import (
    extract_capabilities,
    extract_profile_capabilities,
    parse_declarations,
)

ProfileLoader = Callable[[str], dict]


class ValidationMode(Enum):
    EXPLICIT = "explicit"
    REST = "rest"
    JSONRPC = "jsonrpc"
    RESPONSE = "response"


@dataclass
class Detection:
    """Outcome of mode detection."""

    mode: ValidationMode
    direction: Direction
    instance: object  # The value handed to the validator
    schema_source: str | None = None  # --schema locator or profile URL
    capabilities: dict | list | None = None  # Raw ucp.capabilities metadata


def infer_direction(document: dict) -> Direction | None:
    """``response`` for ``ucp.capabilities``, ``request`` for ``meta.profile``."""
    if extract_capabilities(document) is not None:
        return Direction.RESPONSE
    if _meta_profile(document) is not None:
        return Direction.REQUEST
    return None


def direction_from_flags(request: bool, response: bool) -> Direction | None:
    if request:
        return Direction.REQUEST
    if response:
        return Direction.RESPONSE
    return None


def detect(
    payload,
    schema: str | None = None,
    profile: str | None = None,
    request: bool = False,
    response: bool = False,
    load_profile: ProfileLoader | None = None,
    events: EventSink | None = None,
) -> Detection:
    """Pick the validation mode for ``payload``.

    Raises:
        MissingDirection: explicit schema without --request/--response.
        AmbiguousMode: --profile given for a payload that declares capabilities.
        MissingPayloadEnvelope: JSONRPC envelope without a capability body.
        UndeterminedSchemaSource: nothing says which schema applies.
        NoRoot: the profile declares no capabilities.
    """
    events = events or NullEventSink()
    flagged = direction_from_flags(request, response)
    document = payload if isinstance(payload, dict) else {}

    if schema is not None:
        if flagged is None:
            raise MissingDirection(
                "--request or --response is required with --schema "
                "(the direction cannot be inferred for an explicit schema)"
            )
        events.emit("load", f"using explicit schema: {schema}")
        return Detection(ValidationMode.EXPLICIT, flagged, payload, schema_source=schema)

    if profile is not None:
        if extract_capabilities(document) is not None:
            raise AmbiguousMode(
                "--profile cannot be used with a payload that declares ucp.capabilities; "
                "remove --profile to validate it as a response"
            )
        events.emit("detect", f"REST pattern: using --profile {profile}")
        capabilities = load_profile_capabilities(profile, load_profile)
        direction = _forced(Direction.REQUEST, flagged, "REST request", events)
        return Detection(ValidationMode.REST, direction, payload, profile, capabilities)

    meta_profile = _meta_profile(document)
    if meta_profile is not None:
        events.emit("detect", f"JSONRPC request: fetching profile {meta_profile}")
        capabilities = load_profile_capabilities(meta_profile, load_profile)
        instance = unwrap_envelope(document, capabilities)
        direction = _forced(Direction.REQUEST, flagged, "JSONRPC request", events)
        return Detection(ValidationMode.JSONRPC, direction, instance, meta_profile, capabilities)

    capabilities = extract_capabilities(document)
    if capabilities is not None:
        direction = _forced(Direction.RESPONSE, flagged, "self-describing response", events)
        return Detection(ValidationMode.RESPONSE, direction, payload, None, capabilities)

    raise UndeterminedSchemaSource(
        "cannot infer direction: payload has no ucp.capabilities (response) or "
        "meta.profile (request). Use --schema, --profile, --request, or --response."
    )


def unwrap_envelope(document: dict, capabilities) -> object:
    """Return the capability body from a JSONRPC envelope.

    The root capability's short name is tried first, then the other declared
    capabilities in name order.
    """
    declarations = parse_declarations(capabilities)
    ordered = [d for d in declarations if d.is_root] + [d for d in declarations if not d.is_root]
    for decl in ordered:
        if decl.short_name in document:
            return document[decl.short_name]

    keys = ", ".join(d.short_name for d in ordered) or "(none)"
    raise MissingPayloadEnvelope(
        f"JSONRPC request has no capability payload (expected one of: {keys})"
    )


def _meta_profile(document: dict) -> str | None:
    meta = document.get("meta")
    if not isinstance(meta, dict):
        return None
    profile = meta.get("profile")
    return profile if isinstance(profile, str) and profile else None


def load_profile_capabilities(url: str, load_profile: ProfileLoader | None):
    if load_profile is None:
        raise UndeterminedSchemaSource(f"no profile loader available for {url}")
    capabilities = extract_profile_capabilities(load_profile(url))
    if capabilities is None:
        raise NoRoot(f"profile {url} declares no capabilities")
    return capabilities


def _forced(
    direction: Direction, flagged: Direction | None, label: str, events: EventSink
) -> Direction:
    if flagged is not None and flagged != direction:
        events.emit(
            "detect",
            f"ignoring --{flagged.value}: a {label} is always validated as {direction.value}",
        )
    return direction
