"""Render a ValidationReport as text lines or as structured finding records."""

from __future__ import annotations

from typing import Any

from template_coach.findings import Finding, ValidationReport


FORMATS = ("text", "structured")


def finding_sort_key(finding: Finding) -> tuple[int, str, str]:
    line = finding.line if finding.line is not None else 0
    return line, finding.kind, finding.name


def sorted_findings(report: ValidationReport) -> list[Finding]:
    return sorted(report.findings, key=finding_sort_key)


def render_text(report: ValidationReport) -> str:
    findings = sorted_findings(report)
    if not findings:
        return f"{report.document_id}: pass"
    lines: list[str] = []
    for f in findings:
        where = report.document_id if f.line is None else f"{report.document_id}:{f.line}"
        lines.append(f"{where}: {f.severity} {f.kind}: {f.detail}")
    return "\n".join(lines)


def render_structured(report: ValidationReport) -> list[dict[str, Any]]:
    return [f.to_dict() for f in sorted_findings(report)]


def render(report: ValidationReport, format: str = "text") -> str | list[dict[str, Any]]:
    if format == "text":
        return render_text(report)
    if format == "structured":
        return render_structured(report)
    raise ValueError(f"unsupported report format: {format!r} (expected one of {list(FORMATS)})")


def report_to_dict(report: ValidationReport) -> dict[str, Any]:
    return {
        "document_id": report.document_id,
        "schema_id": report.schema_id,
        "status": report.status,
        "finding_count": len(report.findings),
        "findings": render_structured(report),
    }
