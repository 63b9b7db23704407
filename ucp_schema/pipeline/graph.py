"""Capability graph builder.

Turns ``ucp.capabilities`` metadata into a ``CapabilityGraph`` and checks its
invariants before anything is fetched:

- exactly one capability has no ``extends`` (the root)
- every ``extends`` target is declared
- every extension reaches the root without revisiting a capability
"""

from __future__ import annotations

from ucp_schema.errors import (
    DanglingExtends,
    ExtensionCycle,
    InvalidCapabilityDeclaration,
    MultipleRoots,
    NoRoot,
)
from ucp_schema.models.capability import CapabilityDeclaration, CapabilityGraph


def extract_capabilities(document: dict) -> dict | list | None:
    """Return ``document["ucp"]["capabilities"]`` or None when absent."""
    ucp = document.get("ucp")
    if not isinstance(ucp, dict):
        return None
    return ucp.get("capabilities")


def has_capabilities(document: dict) -> bool:
    return extract_capabilities(document) is not None


def extract_profile_capabilities(profile: dict) -> dict | list | None:
    """Capabilities an agent profile declares, read from the same ``ucp`` key."""
    return extract_capabilities(profile)


def parse_declarations(metadata) -> list[CapabilityDeclaration]:
    """Parse capability metadata into declarations, sorted by name.

    Accepts the mapping form (name -> list of version entries, or a single
    entry object) and the list form (entries carrying a ``name``). The first
    entry for a name is the one that participates in the graph.
    """
    entries: dict[str, dict] = {}

    if isinstance(metadata, dict):
        for name, value in metadata.items():
            if isinstance(value, list):
                if not value:
                    raise InvalidCapabilityDeclaration(
                        f"capability '{name}' has no version entries", [name]
                    )
                value = value[0]
            entries[name] = value
    elif isinstance(metadata, list):
        for item in metadata:
            name = item.get("name") if isinstance(item, dict) else None
            if not isinstance(name, str) or not name:
                raise InvalidCapabilityDeclaration("capability entry is missing a 'name'")
            entries.setdefault(name, item)
    else:
        raise InvalidCapabilityDeclaration("ucp.capabilities must be an object or an array")

    declarations = []
    for name in sorted(entries):
        entry = entries[name]
        if not isinstance(entry, dict):
            raise InvalidCapabilityDeclaration(f"capability '{name}' entry must be an object", [name])

        schema_url = entry.get("schema")
        if not isinstance(schema_url, str) or not schema_url:
            raise InvalidCapabilityDeclaration(f"capability '{name}' has no schema URL", [name])

        extends = entry.get("extends")
        if extends is not None and not isinstance(extends, str):
            raise InvalidCapabilityDeclaration(
                f"capability '{name}' has a non-string 'extends'", [name]
            )

        declarations.append(
            CapabilityDeclaration(
                name=name,
                version=str(entry.get("version", "")),
                schema_url=schema_url,
                extends=extends or None,
            )
        )
    return declarations


def build_graph(metadata) -> CapabilityGraph:
    """Build and validate the capability graph.

    Raises:
        InvalidCapabilityDeclaration: malformed metadata.
        NoRoot: no capabilities, or every capability extends another.
        MultipleRoots: more than one capability without ``extends``.
        DanglingExtends: an ``extends`` target is not declared.
        ExtensionCycle: following ``extends`` revisits a capability.
    """
    declarations = parse_declarations(metadata)
    if not declarations:
        raise NoRoot("payload declares no capabilities")

    nodes = {d.name: d for d in declarations}
    roots = [d.name for d in declarations if d.is_root]
    if not roots:
        raise NoRoot(
            "no root capability: every capability declares 'extends'", sorted(nodes)
        )
    if len(roots) > 1:
        raise MultipleRoots(f"multiple root capabilities: {', '.join(roots)}", roots)

    root = roots[0]
    parents = {d.name: d.extends for d in declarations if not d.is_root}

    for name in sorted(parents):
        if parents[name] not in nodes:
            raise DanglingExtends(
                f"capability '{name}' extends unknown parent '{parents[name]}'",
                [name, parents[name]],
            )

    for name in sorted(parents):
        _walk_to_root(name, parents, root)

    return CapabilityGraph(nodes=nodes, root=root, parents=parents)


def _walk_to_root(start: str, parents: dict[str, str], root: str) -> None:
    path = [start]
    seen = {start}
    current = start
    while current != root:
        current = parents[current]
        if current in seen:
            cycle = path[path.index(current):]
            # Start the report at the smallest name so it reads the same
            # whichever member the walk began from
            pivot = cycle.index(min(cycle))
            cycle = cycle[pivot:] + cycle[:pivot]
            raise ExtensionCycle(
                "extension cycle: " + " -> ".join(cycle + [cycle[0]]), cycle
            )
        seen.add(current)
        path.append(current)
