"""
Template completeness validator for Markdown guideline documents.

    from template_coach import validate, render

    report = validate(text, "security_checklist", document_id="SECURITY.md")
    print(render(report, "text"))
"""

from __future__ import annotations

from template_coach.findings import (
    Finding,
    Location,
    MissingSection,
    OutOfOrderSection,
    SectionTooShort,
    UnresolvedPlaceholder,
    ValidationReport,
)
from template_coach.registry import (
    DocumentSchema,
    SchemaRegistry,
    SectionRule,
    UnknownSchema,
    default_registry,
    load_registry,
)
from template_coach.reporter import render, report_to_dict
from template_coach.sections import ParsedSection, parse_sections
from template_coach.validator import validate_document, validate_sections


__version__ = "0.1.0"


def validate(
    document_text: str,
    schema_id: str,
    registry: SchemaRegistry | None = None,
    document_id: str = "<document>",
) -> ValidationReport:
    if registry is None:
        registry = default_registry()
    schema = registry.lookup(schema_id)
    return validate_document(document_text, schema, document_id=document_id)


__all__ = [
    "DocumentSchema",
    "Finding",
    "Location",
    "MissingSection",
    "OutOfOrderSection",
    "ParsedSection",
    "SchemaRegistry",
    "SectionRule",
    "SectionTooShort",
    "UnknownSchema",
    "UnresolvedPlaceholder",
    "ValidationReport",
    "default_registry",
    "load_registry",
    "parse_sections",
    "render",
    "report_to_dict",
    "validate",
    "validate_document",
    "validate_sections",
]
