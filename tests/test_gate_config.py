from __future__ import annotations

import json
from pathlib import Path

import pytest

from pkg.dtrack import ConfigError, GateConfig, PollSettings, load_poll_settings
from pkg.dtrack.config import get_input, parse_threshold

ROOT = Path(__file__).parent.parent

BASE_ENV = {
    "INPUT_API_KEY": "key",
    "INPUT_API_URL": "https://dtrack.example.test/",
    "INPUT_PROJECT_NAME": "demo-app",
    "INPUT_PROJECT_VERSION": "1.0",
    "INPUT_SBOM_TOKEN": "tok",
}


def _env(**extra: str) -> dict[str, str]:
    env = dict(BASE_ENV)
    env.update(extra)
    return env


class TestFromEnv:
    def test_defaults(self):
        cfg = GateConfig.from_env(_env())
        assert cfg.api_url == "https://dtrack.example.test"
        assert cfg.print_github_summary is True
        assert cfg.comment_results_in_pr is True
        assert cfg.fail_on_policy_violation is False
        assert cfg.project_risk_score_threshold is None
        assert cfg.gh_token is None
        assert cfg.pr_number is None
        assert cfg.poll == PollSettings()
        assert cfg.should_comment is False

    def test_missing_required_inputs_are_listed(self):
        env = _env()
        del env["INPUT_SBOM_TOKEN"]
        env["INPUT_API_KEY"] = "   "
        with pytest.raises(ConfigError, match="api_key, sbom_token"):
            GateConfig.from_env(env)

    def test_booleans_are_case_insensitive(self):
        cfg = GateConfig.from_env(
            _env(
                INPUT_PRINT_GITHUB_SUMMARY="FALSE",
                INPUT_COMMENT_RESULTS_IN_PR="False",
                INPUT_FAIL_ON_POLICY_VIOLATION="True",
            )
        )
        assert cfg.print_github_summary is False
        assert cfg.comment_results_in_pr is False
        assert cfg.fail_on_policy_violation is True
        assert cfg.rules.fail_on_policy_violation is True

    def test_invalid_boolean_raises(self):
        with pytest.raises(ConfigError, match="fail_on_policy_violation"):
            GateConfig.from_env(_env(INPUT_FAIL_ON_POLICY_VIOLATION="maybe"))

    def test_github_token_env_wins_over_input(self):
        cfg = GateConfig.from_env(_env(GITHUB_TOKEN="env-token", INPUT_GH_TOKEN="input-token"))
        assert cfg.gh_token == "env-token"
        cfg = GateConfig.from_env(_env(INPUT_GH_TOKEN="input-token"))
        assert cfg.gh_token == "input-token"

    def test_repository_fallback_and_override(self):
        cfg = GateConfig.from_env(_env(GITHUB_REPOSITORY="acme/widgets"))
        assert (cfg.owner, cfg.repo, cfg.repo_slug) == ("acme", "widgets", "acme/widgets")
        cfg = GateConfig.from_env(_env(GITHUB_REPOSITORY="acme/widgets", INPUT_OWNER="fork", INPUT_REPO="gadgets"))
        assert cfg.repo_slug == "fork/gadgets"

    def test_pr_number_from_event_payload(self, tmp_path):
        event = tmp_path / "event.json"
        event.write_text(json.dumps({"pull_request": {"number": 42}}), encoding="utf-8")
        cfg = GateConfig.from_env(
            _env(GITHUB_EVENT_PATH=str(event), GITHUB_REPOSITORY="acme/widgets", GITHUB_TOKEN="t")
        )
        assert cfg.pr_number == 42
        assert cfg.should_comment is True

    def test_pr_number_input_wins_over_event(self, tmp_path):
        event = tmp_path / "event.json"
        event.write_text(json.dumps({"pull_request": {"number": 42}}), encoding="utf-8")
        cfg = GateConfig.from_env(_env(GITHUB_EVENT_PATH=str(event), INPUT_PR_NUMBER="7"))
        assert cfg.pr_number == 7

    def test_push_event_has_no_pr(self, tmp_path):
        event = tmp_path / "event.json"
        event.write_text(json.dumps({"ref": "refs/heads/main"}), encoding="utf-8")
        assert GateConfig.from_env(_env(GITHUB_EVENT_PATH=str(event))).pr_number is None

    def test_unreadable_event_payload_is_ignored(self, tmp_path):
        assert GateConfig.from_env(_env(GITHUB_EVENT_PATH=str(tmp_path / "missing.json"))).pr_number is None

    def test_invalid_pr_number_input_raises(self):
        with pytest.raises(ConfigError, match="pr_number"):
            GateConfig.from_env(_env(INPUT_PR_NUMBER="abc"))

    def test_poll_inputs_override_defaults(self):
        base = PollSettings(max_attempts=3, interval_seconds=1, settle_seconds=0, request_timeout_seconds=9)
        cfg = GateConfig.from_env(
            _env(INPUT_POLL_MAX_ATTEMPTS="12", INPUT_POLL_INTERVAL_SECONDS="2.5"),
            poll=base,
        )
        assert cfg.poll == PollSettings(
            max_attempts=12, interval_seconds=2.5, settle_seconds=0, request_timeout_seconds=9
        )

    @pytest.mark.parametrize(
        ("name", "value"),
        [("INPUT_POLL_MAX_ATTEMPTS", "0"), ("INPUT_POLL_MAX_ATTEMPTS", "x"), ("INPUT_SETTLE_SECONDS", "-1")],
    )
    def test_invalid_poll_inputs_raise(self, name, value):
        with pytest.raises(ConfigError):
            GateConfig.from_env(_env(**{name: value}))

    def test_comment_requires_token_pr_and_repo(self):
        cfg = GateConfig.from_env(_env(INPUT_PR_NUMBER="5", GITHUB_TOKEN="t"))
        assert cfg.should_comment is False
        cfg = GateConfig.from_env(
            _env(INPUT_PR_NUMBER="5", GITHUB_TOKEN="t", GITHUB_REPOSITORY="a/b", INPUT_COMMENT_RESULTS_IN_PR="false")
        )
        assert cfg.should_comment is False


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("", None), ("-1", None), ("-20", None), ("abc", None), ("0", 0), ("50", 50), (" 7 ", 7), (None, None)],
)
def test_parse_threshold(raw, expected):
    assert parse_threshold(raw) == expected


def test_get_input_uppercases_and_replaces_spaces():
    assert get_input({"INPUT_SOME_NAME": "  v  "}, "some name") == "v"
    assert get_input({}, "missing") == ""


class TestLoadPollSettings:
    def test_repo_defaults_file_matches_builtins(self):
        assert load_poll_settings(ROOT / "defaults" / "gate.yml") == PollSettings()

    def test_partial_section_keeps_other_defaults(self, tmp_path):
        path = tmp_path / "gate.yml"
        path.write_text("poll:\n  max_attempts: 3\n  settle_seconds: 0\n")
        assert load_poll_settings(path) == PollSettings(max_attempts=3, settle_seconds=0)

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "gate.yml"
        path.write_text("")
        assert load_poll_settings(path) == PollSettings()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="missing config file"):
            load_poll_settings(tmp_path / "nope.yml")

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "gate.yml"
        path.write_text("poll: [unclosed\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_poll_settings(path)

    @pytest.mark.parametrize(
        "body",
        [
            "poll: 3\n",
            "poll:\n  max_attempts: 0\n",
            "poll:\n  max_attempts: true\n",
            "poll:\n  interval_seconds: -1\n",
            "poll:\n  request_timeout_seconds: 1.5\n",
        ],
    )
    def test_invalid_values_raise(self, tmp_path, body):
        path = tmp_path / "gate.yml"
        path.write_text(body)
        with pytest.raises(ConfigError, match="config.poll"):
            load_poll_settings(path)
