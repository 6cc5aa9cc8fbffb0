"""
Split Markdown text into heading-delimited sections.

Each ATX heading (`#` .. `######`) opens a section that runs until the next
heading. Lines inside fenced code blocks never open a section. Parsing is total:
any text, including the empty string, yields at least one section.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


HEADING_RE = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
CLOSING_HASHES_RE = re.compile(r"(?:^|[ \t]+)#+$")
FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
UNTITLED_LEVEL = 0


@dataclass(frozen=True)
class ParsedSection:
    level: int
    heading: str
    body: str
    start_line: int
    end_line: int

    @property
    def untitled(self) -> bool:
        return self.level == UNTITLED_LEVEL

    @property
    def body_start_line(self) -> int:
        return self.start_line if self.untitled else self.start_line + 1


def normalize_heading(text: str) -> str:
    return " ".join(text.split()).casefold()


def match_heading(line: str) -> tuple[int, str] | None:
    m = HEADING_RE.match(line)
    if not m:
        return None
    title = (m.group(2) or "").strip()
    title = CLOSING_HASHES_RE.sub("", title).strip()
    return len(m.group(1)), title


def _trim_trailing_blank(lines: list[str]) -> list[str]:
    end = len(lines)
    while end > 0 and not lines[end - 1].strip():
        end -= 1
    return lines[:end]


def _make_section(level: int, heading: str, start_line: int, end_line: int, body_lines: list[str]) -> ParsedSection:
    return ParsedSection(
        level=level,
        heading=heading,
        body="\n".join(_trim_trailing_blank(body_lines)),
        start_line=start_line,
        end_line=end_line,
    )


def parse_sections(text: str) -> list[ParsedSection]:
    """
    Return sections in document order.

    Line numbers are 1-based and inclusive. Text before the first heading becomes
    an untitled level-0 section when it holds anything but blank lines; a document
    without headings is a single untitled section spanning all of it.
    """
    lines = text.splitlines()
    sections: list[ParsedSection] = []

    open_level = UNTITLED_LEVEL
    open_heading = ""
    open_start = 1
    body: list[str] = []
    fence: str | None = None
    seen_heading = False

    for line_no, line in enumerate(lines, start=1):
        fence_match = FENCE_RE.match(line)
        if fence is not None:
            if fence_match and fence_match.group(1)[0] == fence[0] and len(fence_match.group(1)) >= len(fence):
                fence = None
            body.append(line)
            continue
        if fence_match:
            fence = fence_match.group(1)
            body.append(line)
            continue

        heading = match_heading(line)
        if heading is None:
            body.append(line)
            continue

        if seen_heading or any(b.strip() for b in body):
            sections.append(_make_section(open_level, open_heading, open_start, line_no - 1, body))
        seen_heading = True
        open_level, open_heading = heading
        open_start = line_no
        body = []

    if seen_heading:
        sections.append(_make_section(open_level, open_heading, open_start, len(lines), body))
    else:
        sections.append(_make_section(UNTITLED_LEVEL, "", 1, max(len(lines), 1), body))
    return sections
