from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path
from typing import Any

import pytest

from template_coach.registry import SchemaRegistry


REPO_ROOT = Path(__file__).resolve().parents[1]

GUIDE_REGISTRY: dict[str, Any] = {
    "version": "v0",
    "schemas": [
        {
            "id": "guide",
            "name": "Guide",
            "path_patterns": ["GUIDE.md", "**/GUIDE.md"],
            "placeholders": ["Project Name"],
            "sections": [
                {"heading": "Overview", "placeholders": ["Description"]},
                {"heading": "Setup", "aliases": ["Installation"]},
                {"heading": "Security", "placeholders": ["API_KEY"]},
                {"heading": "Usage"},
                {"heading": "Notes", "required": False, "severity": "warn", "placeholders": ["TODO Note"]},
            ],
        },
        {
            "id": "s1",
            "name": "S1",
            "sections": [
                {"heading": "Overview"},
                {"heading": "Security", "placeholders": ["[API_KEY]"]},
            ],
        },
    ],
}

CONFORMING_GUIDE = (
    "# Demo Guide\n"
    "\n"
    "## Overview\n"
    "Demo does one thing well.\n"
    "\n"
    "## Setup\n"
    "Run the installer.\n"
    "\n"
    "## Security\n"
    "Keys live in the team vault.\n"
    "\n"
    "## Usage\n"
    "See the [docs](https://example.com/docs) and [Glossary].\n"
)


def run_cmd(
    args: list[str], cwd: Path, expect_code: int = 0, env: dict[str, str] | None = None
) -> subprocess.CompletedProcess[str]:
    proc = subprocess.run(args, cwd=str(cwd), text=True, capture_output=True, check=False, env=env)
    if proc.returncode != expect_code:
        raise AssertionError(
            f"command failed\ncwd={cwd}\nargs={args}\n"
            f"expected={expect_code} got={proc.returncode}\n"
            f"stdout:\n{proc.stdout}\n\nstderr:\n{proc.stderr}"
        )
    return proc


def run_coach(
    *coach_args: str, expect_code: int = 0, env: dict[str, str] | None = None
) -> subprocess.CompletedProcess[str]:
    args = [sys.executable, "-m", "template_coach.coach", *coach_args]
    return run_cmd(args, cwd=REPO_ROOT, expect_code=expect_code, env=env)


def load_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture()
def guide_registry() -> SchemaRegistry:
    return SchemaRegistry.from_dict(GUIDE_REGISTRY)


@pytest.fixture()
def registry_file(tmp_path: Path) -> Path:
    path = tmp_path / "schema_registry_v0.json"
    path.write_text(json.dumps(GUIDE_REGISTRY, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return path
