"""Capability declarations and the extension graph built from them."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CapabilityDeclaration:
    """One capability taken from ``ucp.capabilities``."""

    name: str
    version: str
    schema_url: str
    extends: str | None = None

    @property
    def is_root(self) -> bool:
        return self.extends is None

    @property
    def short_name(self) -> str:
        return short_name(self.name)


@dataclass
class CapabilityGraph:
    """Node table of declarations plus parent pointers (``extends`` edges).

    Only built through ``ucp_schema.pipeline.graph.build_graph``, which checks
    the single-root and reachability invariants.
    """

    nodes: dict[str, CapabilityDeclaration]
    root: str
    parents: dict[str, str] = field(default_factory=dict)

    @property
    def root_declaration(self) -> CapabilityDeclaration:
        return self.nodes[self.root]

    def extensions(self) -> list[CapabilityDeclaration]:
        """Extension declarations in name order."""
        return [self.nodes[name] for name in sorted(self.parents)]

    def ancestry(self, name: str) -> list[str]:
        """Names from ``name`` up to and including the root."""
        chain = [name]
        while chain[-1] in self.parents:
            chain.append(self.parents[chain[-1]])
        return chain

    def __len__(self) -> int:
        return len(self.nodes)


def short_name(capability_name: str) -> str:
    """``dev.ucp.shopping.checkout`` -> ``checkout``."""
    return capability_name.rsplit(".", 1)[-1]
