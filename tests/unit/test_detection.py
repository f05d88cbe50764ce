import logging

import pytest
from conftest import DEPLOY, HIGH_FREQUENCY_LINT

from actions_sentinel.config import IssueRuleConfig, SentinelConfig
from actions_sentinel.detection import (
    IssueDetector,
    build_rules,
    duplicate_install,
    get_detector,
    high_frequency_schedule,
    push_deploy,
    scoped,
)
from actions_sentinel.errors import ConfigurationError


def test_high_frequency_schedule_reads_bare_on_key():
    detector = IssueDetector([high_frequency_schedule])
    issues = detector.detect("api", ".github/workflows/lint.yml", HIGH_FREQUENCY_LINT)
    assert issues == [
        'High-frequency cron schedule: "* * * * *" may run too frequently'
    ]


@pytest.mark.parametrize(
    "cron, flagged",
    [("0,30 * * * *", True), ("*/5 * * * *", False), ("0 3 * * 1", False)],
)
def test_schedule_minute_field(cron, flagged):
    content = f'on:\n  schedule:\n    - cron: "{cron}"\n'
    issues = IssueDetector([high_frequency_schedule]).detect("api", "a.yml", content)
    assert bool(issues) is flagged


def test_rules_run_in_order():
    detector = IssueDetector([push_deploy(), duplicate_install()])
    issues = detector.detect("web", ".github/workflows/deploy.yml", DEPLOY)
    assert issues == [
        "Multiple deployment workflows detected - may cause conflicts",
        'Duplicate install commands: both "npm ci" and "npm install" found',
    ]


def test_push_deploy_ignores_other_branches_and_files():
    rule = push_deploy()
    detector = IssueDetector([rule])
    assert detector.detect("web", ".github/workflows/ci.yml", DEPLOY) == []
    release = DEPLOY.replace("[main]", "[release]")
    assert detector.detect("web", ".github/workflows/deploy.yml", release) == []


def test_unparseable_definition_degrades_to_no_issues(caplog):
    detector = IssueDetector([high_frequency_schedule])
    with caplog.at_level(logging.WARNING):
        issues = detector.detect("api", "broken.yml", "on: [push\njobs: {")
    assert issues == []
    assert "Could not parse workflow definition" in caplog.text


def test_non_mapping_and_missing_content_yield_nothing():
    detector = IssueDetector([high_frequency_schedule])
    assert detector.detect("api", "list.yml", "- just\n- a list\n") == []
    assert detector.detect("api", "missing.yml", None) == []
    assert detector.detect("api", "empty.yml", "") == []


def test_scoped_rule_matches_repository_and_path():
    rule = scoped(
        high_frequency_schedule,
        repositories=["api"],
        paths=[".github/workflows/lint*"],
    )
    detector = IssueDetector([rule])
    assert detector.detect("api", ".github/workflows/lint.yml", HIGH_FREQUENCY_LINT)
    assert not detector.detect("web", ".github/workflows/lint.yml", HIGH_FREQUENCY_LINT)
    assert not detector.detect("api", ".github/workflows/cron.yml", HIGH_FREQUENCY_LINT)


def test_build_rules_applies_options_and_scope():
    rules = build_rules(
        [
            IssueRuleConfig(
                kind="duplicate_install",
                repositories=["web"],
                options={"first": "yarn install", "second": "npm install"},
            )
        ]
    )
    detector = IssueDetector(rules)
    content = "steps:\n  - run: yarn install\n  - run: npm install\n"
    assert detector.detect("web", "build.yml", content) == [
        'Duplicate install commands: both "yarn install" and "npm install" found'
    ]
    assert detector.detect("api", "build.yml", content) == []


def test_build_rules_rejects_unknown_options():
    with pytest.raises(ConfigurationError):
        build_rules([IssueRuleConfig(kind="push_deploy", options={"bogus": 1})])


def test_default_detector_checks_schedules_only():
    detector = get_detector(SentinelConfig())
    assert detector.detect("api", "lint.yml", HIGH_FREQUENCY_LINT)
    assert detector.detect("web", ".github/workflows/deploy.yml", DEPLOY) == []


def test_push_deploy_ignores_unexpected_branch_values():
    content = "on:\n  push:\n    branches: 5\n"
    detector = IssueDetector([push_deploy()])
    assert detector.detect("web", ".github/workflows/deploy.yml", content) == []


def test_failing_rule_is_skipped_with_warning(caplog):
    def exploding_rule(context):
        raise TypeError("unexpected shape")

    detector = IssueDetector([exploding_rule, high_frequency_schedule])
    with caplog.at_level(logging.WARNING):
        issues = detector.detect("api", ".github/workflows/lint.yml", HIGH_FREQUENCY_LINT)

    assert issues == [
        'High-frequency cron schedule: "* * * * *" may run too frequently'
    ]
    assert "exploding_rule failed on api:.github/workflows/lint.yml" in caplog.text


def test_scoped_rule_keeps_rule_name():
    rule = scoped(push_deploy(), repositories=["web"])
    assert rule.__name__ == "push_deploy_rule"
