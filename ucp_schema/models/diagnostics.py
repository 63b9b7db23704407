"""Lint diagnostics and their per-file and per-run aggregation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Severity(Enum):
    ERROR = "error"  # Fails the file
    WARNING = "warning"  # Fails only under strict-warnings mode


class FileStatus(Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """A single finding."""

    severity: Severity
    code: str  # Stable code, e.g. "E002"
    path: str  # JSON pointer inside the file
    message: str

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "path": self.path,
            "message": self.message,
        }


@dataclass
class FileResult:
    """All diagnostics for one schema file."""

    file: str
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    @property
    def status(self) -> FileStatus:
        if self.errors:
            return FileStatus.ERROR
        if self.warnings:
            return FileStatus.WARNING
        return FileStatus.OK

    def passed(self, strict: bool = False) -> bool:
        if strict:
            return self.status == FileStatus.OK
        return self.status != FileStatus.ERROR

    def to_dict(self) -> dict:
        return {
            "file": self.file,
            "status": self.status.value,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


@dataclass
class LintReport:
    """Run summary over every linted file."""

    path: str
    strict: bool = False
    results: list[FileResult] = field(default_factory=list)

    @property
    def files_checked(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed(self.strict))

    @property
    def failed(self) -> int:
        return self.files_checked - self.passed

    @property
    def errors(self) -> int:
        return sum(len(r.errors) for r in self.results)

    @property
    def warnings(self) -> int:
        return sum(len(r.warnings) for r in self.results)

    @property
    def ok(self) -> bool:
        if self.errors:
            return False
        return not (self.strict and self.warnings)

    def merge(self, other: LintReport) -> LintReport:
        """Combine two reports; the result does not depend on merge order."""
        combined = sorted(self.results + other.results, key=lambda r: r.file)
        return LintReport(path=self.path, strict=self.strict, results=combined)

    def summary(self) -> str:
        if self.ok:
            return f"{self.files_checked} files checked, all passed"
        return (
            f"{self.files_checked} files checked: {self.passed} passed, {self.failed} failed "
            f"({self.errors} errors, {self.warnings} warnings)"
        )

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "files_checked": self.files_checked,
            "passed": self.passed,
            "failed": self.failed,
            "errors": self.errors,
            "warnings": self.warnings,
            "results": [r.to_dict() for r in self.results],
        }
