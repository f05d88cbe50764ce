import json

import pytest
import yaml
from typer.testing import CliRunner

from actions_sentinel.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "GITHUB_TOKEN",
        "GITHUB_ORG",
        "FAILURE_THRESHOLD",
        "FAILURE_RATE_THRESHOLD",
        "TIME_WINDOW_DAYS",
        "SENTINEL_API_URL",
        "SENTINEL_CONFIG",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _invoke(*args):
    return runner.invoke(app, list(args))


def test_analyze_writes_reports_and_audit(fixture_config_file, tmp_path):
    result = _invoke("analyze", "--config", str(fixture_config_file))

    assert result.exit_code == 0, result.output
    assert "Failing Workflows: 2" in result.output
    assert "actions-sentinel disable --dry-run" in result.output
    report = json.loads((tmp_path / "report.json").read_text())
    assert report["failing_workflows"] == 2
    assert (tmp_path / "report.md").exists()
    audit = [json.loads(line) for line in (tmp_path / "audit-log.jsonl").read_text().splitlines()]
    assert [entry["action"] for entry in audit] == ["analyze"]


def test_analyze_json_only(fixture_config_file, tmp_path):
    result = _invoke("analyze", "-c", str(fixture_config_file), "--json-only")
    assert result.exit_code == 0, result.output
    assert (tmp_path / "report.json").exists()
    assert not (tmp_path / "report.md").exists()


def test_analyze_requires_organization(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("github_token: abc\n")
    result = _invoke("analyze", "--config", str(config_path))
    assert result.exit_code == 1
    assert "Organization name is required" in result.output


def test_analyze_requires_token_for_github(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("organization: acme\n")
    result = _invoke("analyze", "--config", str(config_path))
    assert result.exit_code == 1
    assert "GitHub token is required" in result.output


def test_disable_without_report_fails(fixture_config_file):
    result = _invoke("disable", "--config", str(fixture_config_file))
    assert result.exit_code == 1
    assert "No analysis report found" in result.output


def test_disable_defaults_to_dry_run(fixture_config_file, tmp_path):
    _invoke("analyze", "--config", str(fixture_config_file))

    result = _invoke("disable", "--config", str(fixture_config_file))

    assert result.exit_code == 0, result.output
    assert "DRY RUN" in result.output
    assert "[DRY RUN] Would disable api/CI" in result.output
    assert not (tmp_path / "manifest.json").exists()
    assert not (tmp_path / "backups").exists()


def test_disable_confirm_writes_manifest(fixture_config_file, tmp_path):
    _invoke("analyze", "--config", str(fixture_config_file))

    result = _invoke("disable", "--config", str(fixture_config_file), "--confirm")

    assert result.exit_code == 0, result.output
    assert "Disabled 2 workflow(s)" in result.output
    manifest = json.loads((tmp_path / "manifest.json").read_text())
    assert len(manifest["disabled_workflows"]) == 2
    assert len(list((tmp_path / "backups").iterdir())) == 2


def test_dry_run_and_confirm_conflict(fixture_config_file):
    result = _invoke("disable", "-c", str(fixture_config_file), "--dry-run", "--confirm")
    assert result.exit_code == 2


def test_restore_requires_selection(fixture_config_file):
    result = _invoke("restore", "--config", str(fixture_config_file))
    assert result.exit_code == 2


def test_restore_by_repository(fixture_config_file, tmp_path):
    _invoke("analyze", "--config", str(fixture_config_file))
    _invoke("disable", "--config", str(fixture_config_file), "--confirm")

    result = _invoke("restore", "-c", str(fixture_config_file), "--repo", "api", "--confirm")

    assert result.exit_code == 0, result.output
    assert "Restored api/CI" in result.output
    manifest = json.loads((tmp_path / "manifest.json").read_text())
    assert [r["repository"] for r in manifest["disabled_workflows"]] == ["web"]


def test_restore_nothing_matching(fixture_config_file):
    result = _invoke("restore", "-c", str(fixture_config_file), "--repo", "ghost")
    assert result.exit_code == 0
    assert "No workflows found matching criteria" in result.output


def test_report_command(fixture_config_file):
    missing = _invoke("report", "--config", str(fixture_config_file))
    assert missing.exit_code == 1

    _invoke("analyze", "--config", str(fixture_config_file))
    markdown = _invoke("report", "--config", str(fixture_config_file))
    as_json = _invoke("report", "--config", str(fixture_config_file), "--json")

    assert markdown.exit_code == 0
    assert "# GitHub Actions Workflow Analysis Report" in markdown.output
    assert json.loads(as_json.output)["organization"] == "acme"


def test_failed_report_save_is_audited_as_failure(fixture_config_file, tmp_path):
    blocked = tmp_path / "reports-dir"
    blocked.mkdir()
    settings = yaml.safe_load(fixture_config_file.read_text())
    settings["report_path"] = str(blocked)
    fixture_config_file.write_text(yaml.safe_dump(settings))

    result = _invoke("analyze", "--config", str(fixture_config_file))

    assert result.exit_code == 1
    audit = [json.loads(line) for line in (tmp_path / "audit-log.jsonl").read_text().splitlines()]
    assert [(entry["action"], entry["success"]) for entry in audit] == [("analyze", False)]
    assert audit[0]["error"]
