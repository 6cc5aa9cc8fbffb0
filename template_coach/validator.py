"""
Cross-check parsed sections against a DocumentSchema.

Checks, in order: required sections present, listed placeholders resolved,
minimum body length, and section ordering. Ordering uses a longest common
subsequence alignment between schema order and document order so a single
moved section is reported once instead of shifting every section after it.
"""

from __future__ import annotations

import re
from typing import Sequence

from template_coach.findings import (
    Finding,
    Location,
    MissingSection,
    OutOfOrderSection,
    SectionTooShort,
    UnresolvedPlaceholder,
    ValidationReport,
)
from template_coach.registry import DocumentSchema, SectionRule, normalize_token
from template_coach.sections import ParsedSection, parse_sections


# [Token] that is not escaped and not a footnote.
PLACEHOLDER_RE = re.compile(r"(?<!\\)\[(?!\^)([^\[\]\n]+)\]")
LABEL_RE = re.compile(r"\[([^\[\]\n]*)\]")
REFERENCE_DEF_RE = re.compile(r"^ {0,3}\[([^\[\]\n]+)\]:")
CHECKBOX_RE = re.compile(r"^\s?[xX]?\s?$")


def _normalize_label(label: str) -> str:
    return " ".join(label.split()).casefold()


def collect_reference_labels(sections: Sequence[ParsedSection]) -> frozenset[str]:
    """Labels defined by `[label]: url` lines anywhere in the document."""
    labels: set[str] = set()
    for section in sections:
        for line in section.body.splitlines():
            m = REFERENCE_DEF_RE.match(line)
            if m:
                labels.add(_normalize_label(m.group(1)))
    return frozenset(labels)


def _scan_line(line: str, references: frozenset[str]) -> list[tuple[str, int]]:
    if REFERENCE_DEF_RE.match(line):
        return []
    out: list[tuple[str, int]] = []
    pos = 0
    while True:
        m = PLACEHOLDER_RE.search(line, pos)
        if m is None:
            return out
        pos = m.end()
        if line.startswith("(", pos):
            continue
        # [text][label] is a reference link only when the label is defined.
        ref = LABEL_RE.match(line, pos)
        if ref is not None and _normalize_label(ref.group(1) or m.group(1)) in references:
            pos = ref.end()
            continue
        raw = m.group(1)
        if CHECKBOX_RE.match(raw):
            continue
        out.append((normalize_token(raw), m.start() + 1))


def find_placeholders(
    section: ParsedSection,
    references: frozenset[str] = frozenset(),
) -> list[tuple[str, int, int]]:
    """
    Return (token, line, column) for each bracketed token in the section.

    The heading text is scanned as well as the body; heading columns assume a
    single space after the `#` run.
    """
    out: list[tuple[str, int, int]] = []
    if not section.untitled:
        for token, column in _scan_line(section.heading, references):
            out.append((token, section.start_line, section.level + 1 + column))
    for offset, line in enumerate(section.body.splitlines()):
        for token, column in _scan_line(line, references):
            out.append((token, section.body_start_line + offset, column))
    return out


def match_rules(schema: DocumentSchema, sections: Sequence[ParsedSection]) -> dict[int, int]:
    """Map rule index -> section index; each section is claimed by at most one rule."""
    claimed: set[int] = set()
    matched: dict[int, int] = {}
    for rule_idx, rule in enumerate(schema.sections):
        for sec_idx, section in enumerate(sections):
            if sec_idx in claimed or section.untitled:
                continue
            if rule.matches(section.heading, section.level):
                matched[rule_idx] = sec_idx
                claimed.add(sec_idx)
                break
    return matched


def lcs_length(a: Sequence[int], b: Sequence[int]) -> int:
    if not a or not b:
        return 0
    prev = [0] * (len(b) + 1)
    for x in a:
        cur = [0] * (len(b) + 1)
        for j, y in enumerate(b, start=1):
            cur[j] = prev[j - 1] + 1 if x == y else max(prev[j], cur[j - 1])
        prev = cur
    return prev[-1]


def displaced_items(expected: Sequence[int], actual: Sequence[int]) -> list[int]:
    """
    Items left out of at least one maximum alignment of `expected` and `actual`.

    An item belongs to every longest common subsequence exactly when dropping it
    shortens the alignment; everything else is displaced. A swap of two adjacent
    items therefore reports both, while moving one item reports only that item.

    Cost is one LCS per item, cubic in the number of matched sections. Guideline
    documents hold a handful of sections so this stays negligible.
    """
    best = lcs_length(expected, actual)
    if best == len(expected):
        return []
    out: list[int] = []
    for item in expected:
        rest_expected = [x for x in expected if x != item]
        rest_actual = [x for x in actual if x != item]
        if lcs_length(rest_expected, rest_actual) == best:
            out.append(item)
    return out


def _non_space_length(text: str) -> int:
    return len("".join(text.split()))


def subsection_end(sections: Sequence[ParsedSection], index: int) -> int:
    """Index just past the deeper-level sections nested under sections[index]."""
    level = sections[index].level
    end = index + 1
    while end < len(sections) and sections[end].level > level:
        end += 1
    return end


def _body_length(sections: Sequence[ParsedSection], index: int) -> int:
    total = _non_space_length(sections[index].body)
    for nested in sections[index + 1 : subsection_end(sections, index)]:
        total += _non_space_length(nested.heading) + _non_space_length(nested.body)
    return total


def owning_rules(
    schema: DocumentSchema,
    sections: Sequence[ParsedSection],
    matched: dict[int, int],
) -> dict[int, SectionRule]:
    """
    Map section index -> the rule that governs its text.

    A matched section is governed by its own rule; an unmatched section by the
    rule of its nearest matched ancestor, if any.
    """
    own = {sec_idx: schema.sections[rule_idx] for rule_idx, sec_idx in matched.items()}
    owners: dict[int, SectionRule] = {}
    ancestors: list[tuple[int, SectionRule | None]] = []
    for sec_idx, section in enumerate(sections):
        while ancestors and ancestors[-1][0] >= section.level:
            ancestors.pop()
        rule = own.get(sec_idx)
        if rule is None:
            rule = next((r for _, r in reversed(ancestors) if r is not None), None)
        if rule is not None:
            owners[sec_idx] = rule
        ancestors.append((section.level, own.get(sec_idx)))
    return owners


def _check_placeholders(
    schema: DocumentSchema,
    rule: SectionRule | None,
    section: ParsedSection,
    references: frozenset[str],
    findings: list[Finding],
) -> None:
    listed = set(schema.placeholders)
    if rule is not None:
        listed.update(rule.placeholders)
    if not listed:
        return
    severity = rule.severity if rule is not None else "fail"
    label = section.heading or "(untitled)"
    for token, line, column in find_placeholders(section, references):
        if token in listed:
            findings.append(
                UnresolvedPlaceholder(
                    name=token,
                    location=Location(line=line, column=column, section=label),
                    severity=severity,
                )
            )


def validate_sections(
    sections: Sequence[ParsedSection],
    schema: DocumentSchema,
    document_id: str = "<document>",
) -> ValidationReport:
    findings: list[Finding] = []
    matched = match_rules(schema, sections)
    rule_for_section = {sec_idx: schema.sections[rule_idx] for rule_idx, sec_idx in matched.items()}
    owners = owning_rules(schema, sections, matched)
    references = collect_reference_labels(sections)

    for rule_idx, rule in enumerate(schema.sections):
        if rule.required and rule_idx not in matched:
            findings.append(MissingSection(name=rule.heading, severity=rule.severity))

    for sec_idx, section in enumerate(sections):
        _check_placeholders(schema, owners.get(sec_idx), section, references, findings)
        rule = rule_for_section.get(sec_idx)
        if rule is not None and rule.min_body_length is not None:
            actual = _body_length(sections, sec_idx)
            if actual < rule.min_body_length:
                findings.append(
                    SectionTooShort(
                        name=rule.heading,
                        min_length=rule.min_body_length,
                        actual_length=actual,
                        section_line=section.start_line,
                        severity=rule.severity,
                    )
                )

    expected = sorted(matched)
    actual = sorted(matched, key=lambda r: matched[r])
    for rule_idx in displaced_items(expected, actual):
        rule = schema.sections[rule_idx]
        findings.append(
            OutOfOrderSection(
                name=rule.heading,
                expected_index=expected.index(rule_idx),
                actual_index=actual.index(rule_idx),
                section_line=sections[matched[rule_idx]].start_line,
                severity=rule.severity,
            )
        )

    return ValidationReport(document_id=document_id, schema_id=schema.id, findings=tuple(findings))


def validate_document(text: str, schema: DocumentSchema, document_id: str = "<document>") -> ValidationReport:
    return validate_sections(parse_sections(text), schema, document_id=document_id)
