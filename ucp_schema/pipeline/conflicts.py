"""Cross-branch ``type`` conflict detection for allOf compositions.

Two branches that declare the same property with types that no instance can
satisfy at once make the composed schema unsatisfiable for that field. The
composer and the annotation resolver fail on the first conflict; the linter
reports all of them.
"""

from __future__ import annotations

from typing import Iterator

from ucp_schema.errors import TypeConflict
from ucp_schema.sources.pointer import child


def _type_set(value) -> set[str] | None:
    if isinstance(value, str):
        types = {value}
    elif isinstance(value, list) and all(isinstance(v, str) for v in value):
        types = set(value)
    else:
        return None
    if "number" in types:
        types.add("integer")
    return types


def types_compatible(first, second) -> bool:
    a, b = _type_set(first), _type_set(second)
    if a is None or b is None:
        return True
    return bool(a & b)


def iter_type_conflicts(branches: list, path: str) -> Iterator[TypeConflict]:
    """Yield a ``TypeConflict`` for every property whose type disagrees with an
    earlier branch's declaration of it.

    ``path`` is the pointer of the allOf array; conflicts are reported at
    ``<path>/<branch index>/properties/<name>``.
    """
    seen: dict[str, object] = {}
    for index, branch in enumerate(branches):
        if not isinstance(branch, dict):
            continue
        properties = branch.get("properties")
        if not isinstance(properties, dict):
            continue
        for name, prop in properties.items():
            if not isinstance(prop, dict) or "type" not in prop:
                continue
            declared = prop["type"]
            if name in seen:
                if not types_compatible(seen[name], declared):
                    prop_path = child(child(f"{path}/{index}", "properties"), name)
                    yield TypeConflict(prop_path, seen[name], declared)
            else:
                seen[name] = declared


def check_type_conflicts(branches: list, path: str) -> None:
    """Raise the first ``TypeConflict`` among ``branches``, if any."""
    for conflict in iter_type_conflicts(branches, path):
        raise conflict
