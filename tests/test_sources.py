"""Tests for schema source resolution, JSON pointers and the fetcher."""

import json
import tempfile
from pathlib import Path

import httpx
import pytest

from ucp_schema.errors import NetworkError, SchemaNotFound, SchemaParseError
from ucp_schema.sources.fetcher import Fetcher, parse_document
from ucp_schema.sources.locator import SchemaSourceResolver, is_url
from ucp_schema.sources.pointer import (
    child,
    join_locator,
    pointer_exists,
    resolve_pointer,
    split_ref,
)


def _mock_client(routes: dict) -> httpx.Client:
    """Client answering from ``routes`` (path -> (status, body))."""

    def handler(request: httpx.Request) -> httpx.Response:
        status, body = routes.get(request.url.path, (404, "not found"))
        if isinstance(body, dict):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)

    return httpx.Client(transport=httpx.MockTransport(handler))


# --- Locator ---


def test_is_url():
    assert is_url("https://ucp.dev/schemas/checkout.json")
    assert is_url("http://localhost:8000/x.json")
    assert not is_url("schemas/checkout.json")
    assert not is_url("/abs/checkout.json")


def test_url_path_maps_under_local_base():
    resolver = SchemaSourceResolver(Path("/srv/ucp"))
    assert resolver.to_local_path("https://ucp.dev/schemas/shopping/checkout.json") == Path(
        "/srv/ucp/schemas/shopping/checkout.json"
    )


def test_remote_base_prefix_is_stripped():
    resolver = SchemaSourceResolver(Path("/srv/ucp"), "https://ucp.dev/draft")
    assert resolver.to_local_path("https://ucp.dev/draft/schemas/shopping/checkout.json") == Path(
        "/srv/ucp/schemas/shopping/checkout.json"
    )


def test_remote_base_trailing_slash_is_insignificant():
    with_slash = SchemaSourceResolver(Path("/srv/ucp"), "https://ucp.dev/draft/")
    without = SchemaSourceResolver(Path("/srv/ucp"), "https://ucp.dev/draft")
    url = "https://ucp.dev/draft/schemas/checkout.json"
    assert with_slash.to_local_path(url) == without.to_local_path(url)


def test_url_outside_remote_base_keeps_full_path():
    resolver = SchemaSourceResolver(Path("/srv/ucp"), "https://ucp.dev/draft")
    assert resolver.to_local_path("https://other.dev/schemas/x.json") == Path("/srv/ucp/schemas/x.json")


# --- Pointers ---


def test_split_ref():
    assert split_ref("foo.json#/a/b") == ("foo.json", "/a/b")
    assert split_ref("foo.json") == ("foo.json", "")
    assert split_ref("#/a/b") == ("", "/a/b")
    assert split_ref("#") == ("", "")
    assert split_ref("#/a%20b") == ("", "/a b")


def test_resolve_pointer():
    document = {"$defs": {"a/b": {"x": [10, 20]}, "m~n": 1}}
    assert resolve_pointer(document, "") is document
    assert resolve_pointer(document, "/$defs/a~1b/x/1") == 20
    assert resolve_pointer(document, "/$defs/m~0n") == 1


def test_resolve_pointer_missing():
    with pytest.raises(LookupError):
        resolve_pointer({"a": {}}, "/a/b")
    assert not pointer_exists({"a": [1]}, "/a/5")
    assert pointer_exists({"a": [1]}, "/a/0")


def test_child_encodes_tokens():
    assert child("", "properties") == "/properties"
    assert child("/properties", "a/b") == "/properties/a~1b"
    assert child("/allOf", 2) == "/allOf/2"


def test_join_locator():
    assert join_locator("schemas/main.json", "types/a.json") == str(Path("schemas/types/a.json"))
    assert join_locator("schemas/types/a.json", "../b.json") == str(Path("schemas/b.json"))
    assert join_locator("https://ucp.dev/s/main.json", "types/a.json") == "https://ucp.dev/s/types/a.json"
    assert join_locator("schemas/main.json", "https://x.dev/a.json") == "https://x.dev/a.json"


# --- Parsing ---


def test_parse_json_and_yaml():
    assert parse_document('{"type": "object"}', "a.json") == {"type": "object"}
    assert parse_document("type: object\n", "a.yaml") == {"type": "object"}


def test_parse_invalid_json():
    with pytest.raises(SchemaParseError, match="invalid JSON") as exc:
        parse_document("{not json", "broken.json")
    assert exc.value.code == "E001"


def test_parse_non_object_root():
    with pytest.raises(SchemaParseError):
        parse_document("[1, 2]", "list.json")


# --- Fetcher ---


def test_fetch_local_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "schema.json"
        path.write_text(json.dumps({"type": "string"}))
        assert Fetcher().fetch(str(path)) == {"type": "string"}


def test_fetch_missing_local_file():
    with pytest.raises(SchemaNotFound, match="failed to fetch schema") as exc:
        Fetcher().fetch("/nonexistent/schemas/checkout.json")
    assert exc.value.exit_code == 3


def test_fetch_local_file_with_invalid_utf8():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "bad.json"
        path.write_bytes(b'{"title": "\xff\xfe"}')
        with pytest.raises(SchemaParseError, match="not valid UTF-8") as exc:
            Fetcher().fetch(str(path))
        assert exc.value.code == "E001"
        assert exc.value.exit_code == 2


def test_fetch_url_through_local_mirror():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "schemas").mkdir()
        (root / "schemas" / "checkout.json").write_text('{"title": "Checkout"}')

        fetcher = Fetcher(SchemaSourceResolver(root, "https://ucp.dev"))
        assert fetcher.fetch("https://ucp.dev/schemas/checkout.json") == {"title": "Checkout"}
        assert fetcher.identity("https://ucp.dev/schemas/checkout.json") == str(
            (root / "schemas" / "checkout.json").resolve()
        )


def test_fetch_remote():
    client = _mock_client({"/schemas/checkout.json": (200, {"title": "Checkout"})})
    with Fetcher(client=client) as fetcher:
        assert fetcher.fetch("https://ucp.dev/schemas/checkout.json") == {"title": "Checkout"}


def test_fetch_remote_404():
    client = _mock_client({})
    with pytest.raises(SchemaNotFound, match="HTTP 404"):
        Fetcher(client=client).fetch("https://ucp.dev/schemas/missing.json")


def test_fetch_remote_server_error():
    client = _mock_client({"/schemas/checkout.json": (500, "boom")})
    with pytest.raises(NetworkError, match="HTTP 500"):
        Fetcher(client=client).fetch("https://ucp.dev/schemas/checkout.json")


def test_fetch_remote_connection_error():
    def handler(request):
        raise httpx.ConnectError("name resolution failed", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError) as exc:
        Fetcher(client=client).fetch("https://invalid.example/schema.json")
    assert exc.value.code == "E021"


def test_fetch_remote_invalid_body():
    client = _mock_client({"/schemas/checkout.json": (200, "<html>")})
    with pytest.raises(SchemaParseError):
        Fetcher(client=client).fetch("https://ucp.dev/schemas/checkout.json")
