from __future__ import annotations

import json
from pathlib import Path

from conftest import CONFORMING_GUIDE, load_json, run_coach


def make_project(root: Path) -> Path:
    project = root / "proj"
    (project / "docs").mkdir(parents=True)
    (project / "GUIDE.md").write_text(CONFORMING_GUIDE, encoding="utf-8")
    (project / "README.md").write_text("# Readme\n", encoding="utf-8")
    return project


def test_audit_passes_and_lists_unmatched_files(tmp_path: Path, registry_file: Path) -> None:
    project = make_project(tmp_path)

    proc = run_coach(
        "audit",
        "--project-dir",
        str(project),
        "--registry-file",
        str(registry_file),
        "--format",
        "json",
    )
    payload = json.loads(proc.stdout)
    assert payload["status"] == "pass"
    assert payload["scanned_files"] == 1
    assert payload["unmatched_files"] == ["README.md"]
    assert payload["unreadable_files"] == []
    assert payload["reports"][0]["document_id"] == "GUIDE.md"
    assert payload["reports"][0]["schema_id"] == "guide"


def test_audit_fails_on_nested_broken_document(tmp_path: Path, registry_file: Path) -> None:
    project = make_project(tmp_path)
    (project / "docs" / "GUIDE.md").write_text("# Overview\n[Description]\n", encoding="utf-8")

    run_coach(
        "audit",
        "--project-dir",
        str(project),
        "--registry-file",
        str(registry_file),
        "--out-file",
        "reports/template_audit_v0.json",
        expect_code=1,
    )
    payload = load_json(project / "reports" / "template_audit_v0.json")
    assert payload["status"] == "fail"
    by_doc = {r["document_id"]: r for r in payload["reports"]}
    assert by_doc["GUIDE.md"]["status"] == "pass"
    nested = by_doc["docs/GUIDE.md"]
    assert nested["status"] == "fail"
    assert any(f["kind"] == "unresolved_placeholder" and f["name"] == "Description" for f in nested["findings"])
    assert sum(f["kind"] == "missing_section" for f in nested["findings"]) == 3


def test_templateignore_excludes_paths_from_audit(tmp_path: Path, registry_file: Path) -> None:
    project = make_project(tmp_path)
    (project / "docs" / "GUIDE.md").write_text("# Overview\n[Description]\n", encoding="utf-8")
    (project / ".templateignore").write_text("docs/\n", encoding="utf-8")

    proc = run_coach(
        "audit",
        "--project-dir",
        str(project),
        "--registry-file",
        str(registry_file),
        "--format",
        "json",
    )
    payload = json.loads(proc.stdout)
    assert payload["status"] == "pass"
    assert [r["document_id"] for r in payload["reports"]] == ["GUIDE.md"]
    assert payload["templateignore"]["enabled"] is True


def test_templateignore_negation_reincludes_path(tmp_path: Path, registry_file: Path) -> None:
    project = make_project(tmp_path)
    (project / "docs" / "GUIDE.md").write_text(CONFORMING_GUIDE, encoding="utf-8")
    (project / ".templateignore").write_text("# docs are generated\n*GUIDE.md\n!docs/GUIDE.md\n", encoding="utf-8")

    proc = run_coach(
        "audit",
        "--project-dir",
        str(project),
        "--registry-file",
        str(registry_file),
        "--format",
        "json",
    )
    payload = json.loads(proc.stdout)
    assert [r["document_id"] for r in payload["reports"]] == ["docs/GUIDE.md"]


def test_audit_rejects_missing_project_dir(tmp_path: Path) -> None:
    proc = run_coach("audit", "--project-dir", str(tmp_path / "missing"), expect_code=1)
    assert proc.stderr.startswith("project_error:")


def test_audit_reports_unreadable_document_and_keeps_going(tmp_path: Path, registry_file: Path) -> None:
    project = make_project(tmp_path)
    (project / "docs" / "GUIDE.md").write_bytes(b"\xff\xfe# Overview\n")

    proc = run_coach(
        "audit",
        "--project-dir",
        str(project),
        "--registry-file",
        str(registry_file),
        "--format",
        "json",
        expect_code=1,
    )
    payload = json.loads(proc.stdout)
    assert payload["status"] == "fail"
    assert payload["unreadable_files"] == ["docs/GUIDE.md"]
    assert [r["document_id"] for r in payload["reports"]] == ["GUIDE.md"]
    assert proc.stderr.startswith("read_error: docs/GUIDE.md:")
    assert "Traceback" not in proc.stderr
