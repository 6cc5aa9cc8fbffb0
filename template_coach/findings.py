"""
Finding kinds and the validation report.

Findings are data produced by a successful validation, not errors. Every kind
carries a stable `kind` string used by the reporter and by JSON consumers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Location:
    line: int
    column: int
    section: str

    def to_dict(self) -> dict[str, Any]:
        return {"line": self.line, "column": self.column, "section": self.section}


@dataclass(frozen=True)
class MissingSection:
    name: str
    severity: str = "fail"

    kind = "missing_section"

    @property
    def line(self) -> int | None:
        return None

    @property
    def detail(self) -> str:
        return f"required section {self.name!r} not found"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "severity": self.severity, "name": self.name, "line": None, "detail": self.detail}


@dataclass(frozen=True)
class UnresolvedPlaceholder:
    name: str
    location: Location
    severity: str = "fail"

    kind = "unresolved_placeholder"

    @property
    def line(self) -> int | None:
        return self.location.line

    @property
    def detail(self) -> str:
        return f"placeholder [{self.name}] left in section {self.location.section!r}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "severity": self.severity,
            "name": self.name,
            "line": self.location.line,
            "location": self.location.to_dict(),
            "detail": self.detail,
        }


@dataclass(frozen=True)
class OutOfOrderSection:
    name: str
    expected_index: int
    actual_index: int
    section_line: int | None = None
    severity: str = "fail"

    kind = "out_of_order_section"

    @property
    def line(self) -> int | None:
        return self.section_line

    @property
    def detail(self) -> str:
        return f"section {self.name!r} expected at position {self.expected_index}, found at {self.actual_index}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "severity": self.severity,
            "name": self.name,
            "line": self.section_line,
            "expected_index": self.expected_index,
            "actual_index": self.actual_index,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class SectionTooShort:
    name: str
    min_length: int
    actual_length: int
    section_line: int | None = None
    severity: str = "fail"

    kind = "section_too_short"

    @property
    def line(self) -> int | None:
        return self.section_line

    @property
    def detail(self) -> str:
        return f"section {self.name!r} body has {self.actual_length} chars, needs at least {self.min_length}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "severity": self.severity,
            "name": self.name,
            "line": self.section_line,
            "min_length": self.min_length,
            "actual_length": self.actual_length,
            "detail": self.detail,
        }


Finding = Union[MissingSection, UnresolvedPlaceholder, OutOfOrderSection, SectionTooShort]


@dataclass(frozen=True)
class ValidationReport:
    document_id: str
    schema_id: str
    findings: tuple[Finding, ...] = ()

    @property
    def status(self) -> str:
        if any(f.severity == "fail" for f in self.findings):
            return "fail"
        if self.findings:
            return "warn"
        return "pass"

    def by_kind(self, kind: str) -> list[Finding]:
        return [f for f in self.findings if f.kind == kind]
