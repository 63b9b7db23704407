"""Tests for the schema composer."""

import itertools
import json

import pytest

from ucp_schema.errors import MissingExtensionDef, SchemaNotFound, TypeConflict
from ucp_schema.events import RecordingEventSink
from ucp_schema.pipeline.composer import compose_schema
from ucp_schema.pipeline.graph import build_graph

ROOT = "dev.ucp.shopping.checkout"

ROOT_SCHEMA = {
    "$id": "https://ucp.dev/schemas/shopping/checkout.json",
    "type": "object",
    "properties": {
        "id": {"type": "string", "ucp_request": "omit"},
        "total": {"type": "integer"},
    },
    "required": ["id"],
}


def _extension_schema(properties: dict) -> dict:
    return {"$defs": {ROOT: {"type": "object", "properties": properties}}}


def _make_loader(documents: dict):
    def load(url: str) -> dict:
        if url not in documents:
            raise SchemaNotFound(f"failed to fetch schema {url}: HTTP 404", url)
        return documents[url]

    return load


def _make_capabilities(*names_and_parents) -> dict:
    return {
        name: [{"version": "1", "schema": f"https://ucp.dev/{name}.json", **({"extends": parent} if parent else {})}]
        for name, parent in names_and_parents
    }


def _documents() -> dict:
    return {
        f"https://ucp.dev/{ROOT}.json": ROOT_SCHEMA,
        "https://ucp.dev/dev.ucp.shopping.discount.json": _extension_schema(
            {"discounts": {"type": "object", "ucp_request": {"create": "optional"}}}
        ),
        "https://ucp.dev/dev.ucp.shopping.fulfillment.json": _extension_schema(
            {"fulfillment": {"type": "object"}}
        ),
    }


def test_root_only_returns_root_verbatim():
    graph = build_graph(_make_capabilities((ROOT, None)))
    composed = compose_schema(graph, _make_loader(_documents()))
    assert composed == ROOT_SCHEMA


def test_extensions_merge_in_name_order():
    graph = build_graph(
        _make_capabilities(
            (ROOT, None),
            ("dev.ucp.shopping.fulfillment", ROOT),
            ("dev.ucp.shopping.discount", ROOT),
        )
    )
    composed = compose_schema(graph, _make_loader(_documents()))

    branches = composed["allOf"]
    assert branches[0] == ROOT_SCHEMA
    assert list(branches[1]["properties"]) == ["discounts"]
    assert list(branches[2]["properties"]) == ["fulfillment"]
    # Annotations are preserved
    assert branches[1]["properties"]["discounts"]["ucp_request"] == {"create": "optional"}


def test_composition_is_commutative():
    pairs = [
        (ROOT, None),
        ("dev.ucp.shopping.discount", ROOT),
        ("dev.ucp.shopping.fulfillment", ROOT),
    ]
    outputs = {
        json.dumps(compose_schema(build_graph(_make_capabilities(*p)), _make_loader(_documents())))
        for p in itertools.permutations(pairs)
    }
    assert len(outputs) == 1


def test_missing_extension_def():
    documents = _documents()
    documents["https://ucp.dev/dev.ucp.shopping.discount.json"] = {"$defs": {"other": {}}}
    graph = build_graph(_make_capabilities((ROOT, None), ("dev.ucp.shopping.discount", ROOT)))

    with pytest.raises(MissingExtensionDef) as exc:
        compose_schema(graph, _make_loader(documents))
    assert exc.value.capability == "dev.ucp.shopping.discount"
    assert exc.value.root == ROOT
    assert "$defs" in str(exc.value)


def test_type_conflict_between_branches():
    documents = _documents()
    documents["https://ucp.dev/dev.ucp.shopping.discount.json"] = _extension_schema(
        {"total": {"type": "string"}}
    )
    graph = build_graph(_make_capabilities((ROOT, None), ("dev.ucp.shopping.discount", ROOT)))

    with pytest.raises(TypeConflict) as exc:
        compose_schema(graph, _make_loader(documents))
    assert exc.value.path == "/allOf/1/properties/total"
    assert exc.value.base_type == "integer"
    assert exc.value.ext_type == "string"


def test_fetch_failure_propagates():
    documents = _documents()
    del documents["https://ucp.dev/dev.ucp.shopping.fulfillment.json"]
    graph = build_graph(_make_capabilities((ROOT, None), ("dev.ucp.shopping.fulfillment", ROOT)))

    with pytest.raises(SchemaNotFound):
        compose_schema(graph, _make_loader(documents))


def test_compose_emits_events():
    graph = build_graph(_make_capabilities((ROOT, None), ("dev.ucp.shopping.discount", ROOT)))
    events = RecordingEventSink()
    compose_schema(graph, _make_loader(_documents()), max_workers=1, events=events)
    messages = events.messages("compose")
    assert any(ROOT in m for m in messages)
    assert any("dev.ucp.shopping.discount extends" in m for m in messages)
