"""Schema composer: merge extension fragments into the root schema.

Each extension schema carries its contribution under ``$defs`` keyed by the
root capability's name::

    {"$defs": {"dev.ucp.shopping.checkout": {"properties": {"discounts": ...}}}}

The composed document is the root schema itself when nothing extends it, and
``{"allOf": [root, fragment, ...]}`` otherwise, with fragments ordered by
extension name. Annotations pass through untouched.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from ucp_schema.errors import MissingExtensionDef
from ucp_schema.events import EventSink, NullEventSink
from ucp_schema.models.capability import CapabilityGraph
from ucp_schema.pipeline.conflicts import check_type_conflicts

logger = logging.getLogger(__name__)

# schema URL -> parsed, bundled schema document
SchemaLoader = Callable[[str], dict]


def compose_schema(
    graph: CapabilityGraph,
    load: SchemaLoader,
    max_workers: int = 4,
    events: EventSink | None = None,
) -> dict:
    """Compose the schema for a validated capability graph.

    Raises:
        MissingExtensionDef: an extension schema has no ``$defs`` entry for the root.
        TypeConflict: two branches give one property incompatible types.
        SchemaNotFound, NetworkError, SchemaReferenceError: from ``load``.
    """
    events = events or NullEventSink()
    root = graph.root_declaration

    events.emit("compose", f"loading root {root.name} from {root.schema_url}")
    root_schema = load(root.schema_url)

    extensions = graph.extensions()
    if not extensions:
        return root_schema

    # Fetch concurrently; results are consumed in name order, so the output and
    # the first error reported do not depend on completion order
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [(decl, pool.submit(load, decl.schema_url)) for decl in extensions]
        documents = [(decl, future.result()) for decl, future in futures]

    branches = [root_schema]
    for decl, document in documents:
        defs = document.get("$defs")
        if not isinstance(defs, dict) or root.name not in defs:
            raise MissingExtensionDef(decl.name, root.name, decl.schema_url)
        events.emit("compose", f"extension {decl.name} extends {decl.extends}")
        branches.append(defs[root.name])

    check_type_conflicts(branches, "/allOf")
    logger.debug("composed %s with %d extensions", root.name, len(extensions))
    return {"allOf": branches}
