"""Schema linter: static checks over schema source files.

Each file is checked on its own and every finding becomes a ``Diagnostic``
instead of an exception, so one broken file never hides problems in another.

Checks:
- E001  file is not valid JSON, or its root is not an object
- E002  relative ``$ref`` points at a file that does not exist
- E003  ``$ref`` fragment does not resolve in its target
- E004  annotation is neither a string nor an object
- E005  annotation token is not omit/required/optional
- E006  allOf branches declare one property with incompatible types
- W001  schema has no ``$id``
- W002  annotation names an unknown operation
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from ucp_schema import ANNOTATION_KEYS
from ucp_schema.errors import AnnotationError, SchemaParseError
from ucp_schema.models.annotations import OPERATIONS, parse_annotation
from ucp_schema.models.diagnostics import Diagnostic, FileResult, LintReport, Severity
from ucp_schema.pipeline.conflicts import iter_type_conflicts
from ucp_schema.sources.fetcher import parse_document
from ucp_schema.sources.locator import is_url
from ucp_schema.sources.pointer import child, join_locator, resolve_pointer, split_ref
from ucp_schema.utils.file_scanner import scan_schema_files

logger = logging.getLogger(__name__)

_MISSING = object()


def lint(path: str | Path, strict: bool = False, max_workers: int = 4) -> LintReport:
    """Lint a schema file or every schema file under a directory.

    Raises:
        FileNotFoundError: ``path`` does not exist.
    """
    root = Path(path)
    if not root.exists():
        raise FileNotFoundError(f"path not found: {root}")

    files = scan_schema_files(root)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        results = list(pool.map(lint_file, files))

    return LintReport(
        path=str(root), strict=strict, results=sorted(results, key=lambda r: r.file)
    )


def lint_file(path: str | Path) -> FileResult:
    """Run every check against one file."""
    linter = _FileLinter(Path(path))
    return linter.run()


class _FileLinter:
    def __init__(self, path: Path):
        self.path = path
        self.result = FileResult(file=str(path))
        self._documents: dict[str, object] = {}  # locator -> document, or an error message

    def run(self) -> FileResult:
        logger.debug("linting %s", self.path)
        try:
            document = parse_document(self.path.read_text(encoding="utf-8"), str(self.path))
        except (OSError, UnicodeDecodeError) as e:
            self.error("E001", "", f"cannot read file: {e}")
            return self.result
        except SchemaParseError as e:
            self.error("E001", "", e.message)
            return self.result

        self.document = document
        if "$id" not in document:
            self.warning("W001", "", "schema has no $id")
        self.walk(document, "")
        return self.result

    # --- Diagnostics ---

    def error(self, code: str, path: str, message: str) -> None:
        self.result.diagnostics.append(Diagnostic(Severity.ERROR, code, path, message))

    def warning(self, code: str, path: str, message: str) -> None:
        self.result.diagnostics.append(Diagnostic(Severity.WARNING, code, path, message))

    # --- Traversal ---

    def walk(self, node, path: str) -> None:
        if isinstance(node, list):
            for index, item in enumerate(node):
                self.walk(item, child(path, index))
            return
        if not isinstance(node, dict):
            return

        ref = node.get("$ref")
        if isinstance(ref, str):
            self.check_ref(ref, path)

        for key in ANNOTATION_KEYS:
            if key in node:
                self.check_annotation(node[key], child(path, key))

        all_of = node.get("allOf")
        if isinstance(all_of, list):
            self.check_all_of(all_of, child(path, "allOf"))

        for key, value in node.items():
            if key in ANNOTATION_KEYS:
                continue
            self.walk(value, child(path, key))

    def check_ref(self, ref: str, path: str) -> None:
        target = self.load_ref(ref)
        if isinstance(target, _RefProblem):
            self.error(target.code, path, target.message)

    def check_annotation(self, value, path: str) -> None:
        try:
            parse_annotation(value, path)
        except AnnotationError as e:
            self.error(e.code, e.path, e.message)
            return

        # Raw keys; only the lowercase names are documented
        if isinstance(value, dict):
            for operation in value:
                if operation not in OPERATIONS:
                    self.warning(
                        "W002",
                        child(path, operation),
                        f"unknown operation '{operation}' (expected one of: {', '.join(OPERATIONS)})",
                    )

    def check_all_of(self, branches: list, path: str) -> None:
        loaded = []
        for branch in branches:
            if isinstance(branch, dict) and isinstance(branch.get("$ref"), str):
                target = self.load_ref(branch["$ref"])
                # Unreadable refs are reported by check_ref
                branch = target if isinstance(target, dict) else {}
            loaded.append(branch)

        for conflict in iter_type_conflicts(loaded, path):
            self.error(conflict.code, conflict.path, conflict.message)

    # --- Reference loading ---

    def load_ref(self, ref: str):
        """Return the ``$ref`` target, ``None`` when it is not checked, or a problem."""
        if ref == "#":
            return self.document

        locator, fragment = split_ref(ref)
        if locator and is_url(locator):
            return None  # remote refs are never fetched while linting

        if locator:
            target_path = join_locator(str(self.path), locator)
            document = self.load_document(target_path)
            if isinstance(document, _RefProblem):
                return document
        else:
            document = self.document

        try:
            return resolve_pointer(document, fragment)
        except LookupError as e:
            where = locator or "this file"
            return _RefProblem("E003", f"anchor not found: '#{fragment}' in {where} ({e})")

    def load_document(self, locator: str):
        cached = self._documents.get(locator, _MISSING)
        if cached is not _MISSING:
            return cached

        target = Path(locator)
        if not target.is_file():
            document = _RefProblem("E002", f"$ref target not found: {locator}")
        else:
            try:
                document = parse_document(target.read_text(encoding="utf-8"), locator)
            except (OSError, UnicodeDecodeError, SchemaParseError) as e:
                document = _RefProblem("E002", f"$ref target cannot be read: {e}")
        self._documents[locator] = document
        return document


class _RefProblem:
    __slots__ = ("code", "message")

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
