"""
Schema registry: document-type id -> DocumentSchema.

Schemas are loaded once from a JSON registry file (checked against the bundled
`schema_registry_v0.schema.json`) and are read-only afterwards.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator

import jsonschema

from template_coach.sections import normalize_heading


REGISTRY_VERSION = "v0"
ASSETS_DIR = Path(__file__).resolve().parent / "assets"
REGISTRY_FILE = "schema_registry_v0.json"
REGISTRY_SCHEMA_FILE = "schema_registry_v0.schema.json"
SEVERITIES = ("fail", "warn")


class UnknownSchema(LookupError):
    def __init__(self, schema_id: str, known: list[str] | None = None) -> None:
        self.schema_id = schema_id
        self.known = sorted(known or [])
        super().__init__(f"no schema registered for {schema_id!r} (known={self.known})")


def normalize_token(token: str) -> str:
    text = token.strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    return " ".join(text.split())


@dataclass(frozen=True)
class SectionRule:
    heading: str
    required: bool = True
    pattern: str | None = None
    aliases: tuple[str, ...] = ()
    level: int | None = None
    min_body_length: int | None = None
    placeholders: tuple[str, ...] = ()
    severity: str = "fail"

    def __post_init__(self) -> None:
        if self.severity not in SEVERITIES:
            raise ValueError(f"invalid severity {self.severity!r} for section {self.heading!r}")
        if self.pattern is not None:
            try:
                re.compile(self.pattern)
            except re.error as exc:
                raise ValueError(f"invalid pattern for section {self.heading!r}: {exc}") from exc

    @property
    def key(self) -> str:
        return normalize_heading(self.heading)

    def matches(self, heading: str, level: int) -> bool:
        if self.level is not None and level != self.level:
            return False
        norm = normalize_heading(heading)
        if norm == self.key or norm in {normalize_heading(a) for a in self.aliases}:
            return True
        if self.pattern is not None:
            return re.fullmatch(self.pattern, norm, flags=re.IGNORECASE) is not None
        return False


@dataclass(frozen=True)
class DocumentSchema:
    id: str
    sections: tuple[SectionRule, ...]
    name: str = ""
    placeholders: tuple[str, ...] = ()
    path_patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for rule in self.sections:
            if rule.key in seen:
                raise ValueError(f"schema {self.id!r} declares section {rule.heading!r} more than once")
            seen.add(rule.key)

    @property
    def required_sections(self) -> tuple[SectionRule, ...]:
        return tuple(r for r in self.sections if r.required)


@dataclass(frozen=True)
class SchemaRegistry:
    schemas: tuple[DocumentSchema, ...] = ()
    _by_id: dict[str, DocumentSchema] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_id: dict[str, DocumentSchema] = {}
        for schema in self.schemas:
            if schema.id in by_id:
                raise ValueError(f"duplicate schema id: {schema.id!r}")
            by_id[schema.id] = schema
        object.__setattr__(self, "_by_id", by_id)

    def lookup(self, schema_id: str) -> DocumentSchema:
        try:
            return self._by_id[schema_id]
        except KeyError:
            raise UnknownSchema(schema_id, list(self._by_id)) from None

    def ids(self) -> list[str]:
        return [s.id for s in self.schemas]

    def __contains__(self, schema_id: object) -> bool:
        return schema_id in self._by_id

    def __iter__(self) -> Iterator[DocumentSchema]:
        return iter(self.schemas)

    def __len__(self) -> int:
        return len(self.schemas)

    @classmethod
    def from_dict(cls, obj: Any) -> "SchemaRegistry":
        validator = jsonschema.Draft202012Validator(registry_json_schema())
        errors = sorted(validator.iter_errors(obj), key=lambda e: [str(p) for p in e.absolute_path])
        if errors:
            first = errors[0]
            path = "/" + "/".join(str(p) for p in first.absolute_path)
            raise ValueError(f"invalid schema registry at {path}: {first.message}")
        return cls(schemas=tuple(_build_schema(s) for s in obj["schemas"]))


def _build_rule(obj: dict[str, Any]) -> SectionRule:
    return SectionRule(
        heading=obj["heading"],
        required=bool(obj.get("required", True)),
        pattern=obj.get("pattern"),
        aliases=tuple(obj.get("aliases", [])),
        level=obj.get("level"),
        min_body_length=obj.get("min_body_length"),
        placeholders=tuple(normalize_token(t) for t in obj.get("placeholders", [])),
        severity=obj.get("severity", "fail"),
    )


def _build_schema(obj: dict[str, Any]) -> DocumentSchema:
    return DocumentSchema(
        id=obj["id"],
        name=obj.get("name", obj["id"]),
        sections=tuple(_build_rule(r) for r in obj["sections"]),
        placeholders=tuple(normalize_token(t) for t in obj.get("placeholders", [])),
        path_patterns=tuple(obj.get("path_patterns", [])),
    )


@lru_cache(maxsize=None)
def registry_json_schema() -> dict[str, Any]:
    return json.loads((ASSETS_DIR / REGISTRY_SCHEMA_FILE).read_text(encoding="utf-8"))


def load_registry(path: Path) -> tuple[SchemaRegistry | None, str | None]:
    if not path.exists():
        return None, f"missing registry file: {path}"
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        return None, f"invalid registry json: {exc}"
    except (OSError, UnicodeDecodeError) as exc:
        return None, f"unreadable registry file: {path}: {exc}"
    try:
        return SchemaRegistry.from_dict(obj), None
    except ValueError as exc:
        return None, str(exc)


@lru_cache(maxsize=None)
def default_registry() -> SchemaRegistry:
    registry, err = load_registry(ASSETS_DIR / REGISTRY_FILE)
    if err is not None:
        raise RuntimeError(f"bundled schema registry is broken: {err}")
    return registry
