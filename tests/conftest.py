"""Shared builders for run histories, organizations and configuration."""

from datetime import datetime, timedelta, timezone

import pytest
import yaml

from actions_sentinel.config import SentinelConfig
from actions_sentinel.models import Run

NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)

HIGH_FREQUENCY_LINT = """
name: Lint
on:
  schedule:
    - cron: "* * * * *"
jobs:
  lint:
    runs-on: ubuntu-latest
    steps:
      - run: make lint
"""

DEPLOY = """
name: Deploy
on:
  push:
    branches: [main]
jobs:
  deploy:
    runs-on: ubuntu-latest
    steps:
      - run: npm ci
      - run: npm install
"""


def run_dicts(conclusions, now=NOW, start_id=1):
    """Build raw runs, most recent first, one hour apart."""
    runs = []
    for offset, conclusion in enumerate(conclusions):
        created = now - timedelta(hours=offset + 1)
        run_id = start_id + offset
        runs.append(
            {
                "id": run_id,
                "run_number": run_id,
                "name": "CI",
                "status": "completed",
                "conclusion": conclusion,
                "created_at": created.isoformat(),
                "updated_at": (created + timedelta(minutes=5)).isoformat(),
                "html_url": f"https://github.com/acme/actions/runs/{run_id}",
            }
        )
    return runs


def make_runs(conclusions, now=NOW):
    return [Run.model_validate(run) for run in run_dicts(conclusions, now)]


def organization_data(now=NOW):
    """Three repositories: one broken CI, one failing deploy, one empty."""
    return {
        "organization": "acme",
        "quota": {"remaining": 5000, "limit": 5000},
        "repositories": [
            {
                "name": "api",
                "workflows": [
                    {
                        "id": 1,
                        "name": "CI",
                        "path": ".github/workflows/ci.yml",
                        "content": "on: push\njobs: {}\n",
                        "runs": run_dicts(["failure"] * 5, now, start_id=100),
                    },
                    {
                        "id": 2,
                        "name": "Lint",
                        "path": ".github/workflows/lint.yml",
                        "content": HIGH_FREQUENCY_LINT,
                        "runs": run_dicts(["success"] * 5, now, start_id=200),
                    },
                ],
            },
            {
                "name": "web",
                "workflows": [
                    {
                        "id": 3,
                        "name": "Deploy",
                        "path": ".github/workflows/deploy.yml",
                        "content": DEPLOY,
                        "runs": run_dicts(
                            ["failure", "failure", "failure", "success", "success"],
                            now,
                            start_id=300,
                        ),
                    }
                ],
            },
            {"name": "docs", "workflows": []},
        ],
    }


@pytest.fixture
def org_data():
    return organization_data()


@pytest.fixture
def config(tmp_path):
    return SentinelConfig(
        organization="acme",
        github_token="test-token",
        backup_directory=str(tmp_path / "backups"),
        manifest_path=str(tmp_path / "manifest.json"),
        audit_log_path=str(tmp_path / "audit-log.jsonl"),
        report_path=str(tmp_path / "report.json"),
        markdown_report_path=str(tmp_path / "report.md"),
        issue_rules=[
            {"kind": "high_frequency_schedule"},
            {"kind": "duplicate_install"},
            {"kind": "push_deploy"},
        ],
    )


@pytest.fixture
def fixture_config_file(tmp_path):
    """Write a fixture-backed config whose runs fall inside the live window."""
    now = datetime.now(timezone.utc)
    fixture_path = tmp_path / "org.yaml"
    fixture_path.write_text(yaml.safe_dump(organization_data(now)))
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "organization": "acme",
                "source": {"backend": "fixture", "fixture_path": str(fixture_path)},
                "backup_directory": str(tmp_path / "backups"),
                "manifest_path": str(tmp_path / "manifest.json"),
                "audit_log_path": str(tmp_path / "audit-log.jsonl"),
                "report_path": str(tmp_path / "report.json"),
                "markdown_report_path": str(tmp_path / "report.md"),
            }
        )
    )
    return config_path
