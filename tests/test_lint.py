"""Tests for the schema linter."""

import json
import tempfile
from pathlib import Path

import pytest

from ucp_schema.lint.linter import lint, lint_file
from ucp_schema.models.diagnostics import FileStatus

FIXTURES = Path(__file__).parent / "fixtures"


def _write_json(root: Path, name: str, data) -> Path:
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return path


def _codes(result) -> list[str]:
    return [d.code for d in result.diagnostics]


# --- Single-file checks ---


def test_clean_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_json(
            Path(tmpdir),
            "checkout.json",
            {"$id": "https://example.com/checkout.json", "properties": {"id": {"type": "string", "ucp_request": "omit"}}},
        )
        result = lint_file(path)
        assert result.diagnostics == []
        assert result.status == FileStatus.OK


def test_invalid_json():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_json(Path(tmpdir), "broken.json", "{not json")
        result = lint_file(path)
        assert _codes(result) == ["E001"]
        assert result.status == FileStatus.ERROR


def test_missing_id_is_a_warning():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_json(Path(tmpdir), "plain.json", {"type": "object"})
        result = lint_file(path)
        assert _codes(result) == ["W001"]
        assert result.status == FileStatus.WARNING
        assert result.passed()
        assert not result.passed(strict=True)


def test_missing_ref_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_json(
            Path(tmpdir),
            "main.json",
            {"$id": "x", "properties": {"buyer": {"$ref": "types/buyer.json"}}},
        )
        result = lint_file(path)
        assert _codes(result) == ["E002"]
        assert result.diagnostics[0].path == "/properties/buyer"


def test_missing_anchor_in_same_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_json(Path(tmpdir), "main.json", {"$id": "x", "items": {"$ref": "#/$defs/nope"}})
        assert _codes(lint_file(path)) == ["E003"]


def test_missing_anchor_in_other_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _write_json(root, "types/common.json", {"$id": "c", "$defs": {"a": {"type": "string"}}})
        path = _write_json(
            root,
            "main.json",
            {
                "$id": "x",
                "properties": {
                    "a": {"$ref": "types/common.json#/$defs/a"},
                    "b": {"$ref": "types/common.json#/$defs/b"},
                },
            },
        )
        result = lint_file(path)
        assert _codes(result) == ["E003"]
        assert result.diagnostics[0].path == "/properties/b"


def test_remote_refs_are_not_checked():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_json(
            Path(tmpdir), "main.json", {"$id": "x", "items": {"$ref": "https://ucp.dev/schemas/x.json"}}
        )
        assert lint_file(path).diagnostics == []


def test_invalid_annotation_shape():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_json(
            Path(tmpdir), "main.json", {"$id": "x", "properties": {"id": {"ucp_request": 42}}}
        )
        result = lint_file(path)
        assert _codes(result) == ["E004"]
        assert result.diagnostics[0].path == "/properties/id/ucp_request"


def test_invalid_visibility_token():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_json(
            Path(tmpdir),
            "main.json",
            {"$id": "x", "properties": {"id": {"ucp_response": {"read": "hidden"}}}},
        )
        assert _codes(lint_file(path)) == ["E005"]


def test_unknown_operation_is_a_warning():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_json(
            Path(tmpdir),
            "main.json",
            {"$id": "x", "properties": {"id": {"ucp_request": {"delete": "omit"}}}},
        )
        result = lint_file(path)
        assert _codes(result) == ["W002"]
        assert result.diagnostics[0].path == "/properties/id/ucp_request/delete"


def test_miscased_operation_is_a_warning():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_json(
            Path(tmpdir),
            "main.json",
            {"$id": "x", "properties": {"id": {"ucp_request": {"Create": "omit", "update": "required"}}}},
        )
        result = lint_file(path)
        assert _codes(result) == ["W002"]
        assert result.diagnostics[0].path == "/properties/id/ucp_request/Create"
        assert "'Create'" in result.diagnostics[0].message


def test_all_of_type_conflict():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _write_json(root, "base.json", {"$id": "b", "properties": {"total": {"type": "integer"}}})
        path = _write_json(
            root,
            "main.json",
            {
                "$id": "x",
                "allOf": [{"$ref": "base.json"}, {"properties": {"total": {"type": "string"}}}],
            },
        )
        result = lint_file(path)
        assert _codes(result) == ["E006"]
        assert result.diagnostics[0].path == "/allOf/1/properties/total"


# --- Directory runs ---


def test_lint_fixture_tree():
    report = lint(FIXTURES / "compose" / "schemas")
    files = {Path(r.file).name: r for r in report.results}

    assert set(files) == {"checkout.json", "discount.json", "fulfillment.json", "buyer.json", "line_item.json", "total.json"}
    assert files["checkout.json"].status == FileStatus.OK
    # Shared type files carry no $id
    assert _codes(files["buyer.json"]) == ["W001"]
    assert report.errors == 0
    assert report.warnings == 3
    assert report.ok
    assert not lint(FIXTURES / "compose" / "schemas", strict=True).ok


def test_lint_results_sorted_and_counted():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _write_json(root, "b.json", {"$id": "b"})
        _write_json(root, "a.json", "[")
        _write_json(root, "nested/c.json", {"type": "object"})
        _write_json(root, "node_modules/skip.json", "[")
        _write_json(root, "notes.txt", "not a schema")

        report = lint(root)
        assert [Path(r.file).name for r in report.results] == ["a.json", "b.json", "c.json"]
        assert report.files_checked == 3
        assert report.passed == 2
        assert report.failed == 1
        assert report.errors == 1
        assert report.warnings == 1
        assert not report.ok


def test_lint_missing_path():
    with pytest.raises(FileNotFoundError):
        lint("/nonexistent/schemas")
