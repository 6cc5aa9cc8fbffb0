#!/usr/bin/env python3
"""
Template Coach v0

CLI to check Markdown guideline documents against a required-section schema
registry: missing sections, leftover template placeholders, section order.
"""

from __future__ import annotations

import argparse
from fnmatch import fnmatch
import json
import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from template_coach import __version__
from template_coach.findings import ValidationReport
from template_coach.registry import (
    ASSETS_DIR,
    REGISTRY_FILE,
    SchemaRegistry,
    UnknownSchema,
    load_registry,
)
from template_coach.reporter import render_text, report_to_dict
from template_coach.validator import validate_document


REPORT_VERSION = "v0"
IGNORE_FILE = ".templateignore"
ASSETS_ENV_VAR = "TEMPLATE_COACH_ASSETS_DIR"
DEFAULT_SKIPPED_DIRS = {".git", ".hg", ".venv", "venv", "node_modules", "__pycache__", ".tox"}


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def normalize_rel_path(path: str) -> str:
    out = path.replace("\\", "/")
    while out.startswith("./"):
        out = out[2:]
    return out


def load_templateignore(project_dir: Path) -> list[tuple[str, bool]]:
    """
    Load .templateignore patterns.
    Returns a list of (pattern, is_negated) with order preserved.
    """
    path = project_dir / IGNORE_FILE
    if not path.exists():
        return []

    rules: list[tuple[str, bool]] = []
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        is_negated = line.startswith("!")
        pattern = line[1:] if is_negated else line
        pattern = normalize_rel_path(pattern)
        if not pattern:
            continue
        if pattern.endswith("/"):
            pattern = f"{pattern}**"
        rules.append((pattern, is_negated))
    return rules


def matches_templateignore(rel_path: str, rules: list[tuple[str, bool]]) -> bool:
    if not rules:
        return False
    path = normalize_rel_path(rel_path)
    ignored = False
    for pattern, is_negated in rules:
        if fnmatch(path, pattern.lstrip("/")):
            ignored = not is_negated
    return ignored


def atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.tmp.", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        try:
            if tmp_path.exists():
                tmp_path.unlink()
        except FileNotFoundError:
            pass


def resolve_assets_dir(raw_assets_dir: str | None) -> Path:
    if raw_assets_dir:
        return Path(raw_assets_dir).resolve()
    env_assets = os.environ.get(ASSETS_ENV_VAR)
    if env_assets:
        return Path(env_assets).resolve()
    return ASSETS_DIR


def resolve_registry_file(args: argparse.Namespace) -> Path:
    raw = getattr(args, "registry_file", None)
    if raw:
        return Path(raw).resolve()
    return resolve_assets_dir(getattr(args, "assets_dir", None)) / REGISTRY_FILE


def load_registry_or_report(args: argparse.Namespace) -> SchemaRegistry | None:
    registry_file = resolve_registry_file(args)
    registry, err = load_registry(registry_file)
    if err is not None:
        print(f"registry_error: {err}", file=sys.stderr)
        return None
    return registry


def resolve_out_path(raw: str, base: Path) -> Path:
    out = Path(raw)
    return out if out.is_absolute() else base / out


def aggregate_status(reports: list[ValidationReport]) -> str:
    statuses = {r.status for r in reports}
    if "fail" in statuses:
        return "fail"
    if "warn" in statuses:
        return "warn"
    return "pass"


def exit_code(status: str, fail_on_warn: bool) -> int:
    if status == "fail":
        return 1
    if status == "warn" and fail_on_warn:
        return 1
    return 0


def match_schema_id(rel_path: str, registry: SchemaRegistry) -> str | None:
    path = normalize_rel_path(rel_path)
    for schema in registry:
        if any(fnmatch(path, pat) for pat in schema.path_patterns):
            return schema.id
    return None


def collect_markdown_files(project_dir: Path, ignore_rules: list[tuple[str, bool]]) -> list[str]:
    out: list[str] = []
    for path in sorted(project_dir.rglob("*.md")):
        rel_parts = path.relative_to(project_dir).parts
        if any(part in DEFAULT_SKIPPED_DIRS for part in rel_parts[:-1]):
            continue
        if not path.is_file():
            continue
        rel = "/".join(rel_parts)
        if matches_templateignore(rel, ignore_rules):
            continue
        out.append(rel)
    return out


def compute_project_audit(project_dir: Path, registry: SchemaRegistry) -> dict[str, Any]:
    ignore_rules = load_templateignore(project_dir)
    reports: list[ValidationReport] = []
    unmatched: list[str] = []
    unreadable: list[str] = []
    for rel in collect_markdown_files(project_dir, ignore_rules):
        schema_id = match_schema_id(rel, registry)
        if schema_id is None:
            unmatched.append(rel)
            continue
        try:
            text = (project_dir / rel).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"read_error: {rel}: {exc}", file=sys.stderr)
            unreadable.append(rel)
            continue
        reports.append(validate_document(text, registry.lookup(schema_id), document_id=rel))

    status = "fail" if unreadable else aggregate_status(reports)
    return {
        "version": REPORT_VERSION,
        "run_at": utc_now(),
        "project_dir": str(project_dir),
        "status": status,
        "scanned_files": len(reports),
        "unmatched_files": unmatched,
        "unreadable_files": unreadable,
        "templateignore": {"enabled": bool(ignore_rules), "rule_count": len(ignore_rules)},
        "reports": [report_to_dict(r) for r in reports],
    }


def check_documents(args: argparse.Namespace) -> int:
    registry = load_registry_or_report(args)
    if registry is None:
        return 1
    try:
        schema = registry.lookup(args.schema)
    except UnknownSchema as exc:
        print(f"unknown_schema: {exc}", file=sys.stderr)
        return 1

    reports: list[ValidationReport] = []
    for raw in args.files:
        path = Path(raw)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"read_error: {path}: {exc}", file=sys.stderr)
            return 1
        reports.append(validate_document(text, schema, document_id=normalize_rel_path(raw)))

    status = aggregate_status(reports)
    payload = {
        "version": REPORT_VERSION,
        "run_at": utc_now(),
        "schema_id": schema.id,
        "status": status,
        "reports": [report_to_dict(r) for r in reports],
    }

    if args.format == "json":
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        for report in reports:
            print(render_text(report))
        print(f"status: {status}")

    if args.out_file:
        out = resolve_out_path(args.out_file, Path.cwd())
        atomic_write_text(out, json.dumps(payload, indent=2, sort_keys=True) + "\n")

    return exit_code(status, args.fail_on_warn)


def audit_project(args: argparse.Namespace) -> int:
    project_dir = Path(args.project_dir).resolve()
    if not project_dir.is_dir():
        print(f"project_error: not a directory: {project_dir}", file=sys.stderr)
        return 1
    registry = load_registry_or_report(args)
    if registry is None:
        return 1

    report = compute_project_audit(project_dir, registry)

    if args.format == "json":
        print(json.dumps(report, indent=2, sort_keys=True))
    else:
        for doc in report["reports"]:
            print(f"{doc['document_id']} [{doc['schema_id']}]: {doc['status']} ({doc['finding_count']} findings)")
            for f in doc["findings"]:
                where = doc["document_id"] if f["line"] is None else f"{doc['document_id']}:{f['line']}"
                print(f"  {where}: {f['severity']} {f['kind']}: {f['detail']}")
        print(f"status: {report['status']}")
        print(f"scanned_files: {report['scanned_files']}")
        print(f"unmatched_files: {len(report['unmatched_files'])}")
        print(f"unreadable_files: {len(report['unreadable_files'])}")

    if args.out_file:
        out = resolve_out_path(args.out_file, project_dir)
        atomic_write_text(out, json.dumps(report, indent=2, sort_keys=True) + "\n")

    return exit_code(report["status"], args.fail_on_warn)


def list_schemas(args: argparse.Namespace) -> int:
    registry = load_registry_or_report(args)
    if registry is None:
        return 1

    rows = [
        {
            "id": s.id,
            "name": s.name,
            "path_patterns": list(s.path_patterns),
            "required_sections": [r.heading for r in s.required_sections],
            "optional_sections": [r.heading for r in s.sections if not r.required],
        }
        for s in registry
    ]
    if args.format == "json":
        print(json.dumps({"version": REPORT_VERSION, "schemas": rows}, indent=2, sort_keys=True))
    else:
        for row in rows:
            print(f"{row['id']}: {row['name']} (required={len(row['required_sections'])} optional={len(row['optional_sections'])})")
    return 0


def registry_check(args: argparse.Namespace) -> int:
    registry_file = resolve_registry_file(args)
    registry, err = load_registry(registry_file)
    if err is not None:
        print("status: fail")
        print(f"registry_file: {registry_file}")
        print(f"registry_error: {err}", file=sys.stderr)
        return 1
    print("status: pass")
    print(f"registry_file: {registry_file}")
    print(f"schemas: {len(registry)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="template-coach", description="Template Coach v0")
    parser.add_argument("--version", action="version", version=f"template-coach {__version__}")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_registry_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--registry-file",
            help=f"Schema registry JSON (default: <assets-dir>/{REGISTRY_FILE}).",
        )
        p.add_argument(
            "--assets-dir",
            help=f"Optional assets root (defaults to {ASSETS_ENV_VAR} or bundled package assets).",
        )

    def add_output_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--format", choices=["text", "json"], default="text", help="Output format (default: text).")
        p.add_argument("--out-file", help="Optional JSON report file path.")
        p.add_argument(
            "--fail-on-warn",
            action="store_true",
            help="Exit non-zero when status=warn.",
        )

    p_check = sub.add_parser("check", help="Validate Markdown documents against one schema.")
    p_check.add_argument("files", nargs="+", metavar="FILE")
    p_check.add_argument("--schema", required=True, help="Schema id from the registry.")
    add_output_args(p_check)
    add_registry_args(p_check)
    p_check.set_defaults(func=check_documents)

    p_audit = sub.add_parser(
        "audit",
        help="Validate every Markdown file in a project that maps to a schema via path_patterns.",
    )
    p_audit.add_argument("--project-dir", required=True)
    add_output_args(p_audit)
    add_registry_args(p_audit)
    p_audit.set_defaults(func=audit_project)

    p_schemas = sub.add_parser("schemas", help="List registered document schemas.")
    p_schemas.add_argument("--format", choices=["text", "json"], default="text")
    add_registry_args(p_schemas)
    p_schemas.set_defaults(func=list_schemas)

    p_registry = sub.add_parser("registry-check", help="Validate a schema registry file.")
    add_registry_args(p_registry)
    p_registry.set_defaults(func=registry_check)

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
