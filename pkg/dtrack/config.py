"""Gate configuration: action inputs plus YAML poll defaults.

Built once at the process boundary and passed down; nothing below this
module reads the environment.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .decision import DecisionRules
from .poller import DEFAULT_INTERVAL_SECONDS, DEFAULT_MAX_ATTEMPTS, DEFAULT_SETTLE_SECONDS
from .client import DEFAULT_TIMEOUT_SECONDS

TRUE_VALUES = {"true", "yes", "1", "on"}
FALSE_VALUES = {"false", "no", "0", "off"}

REQUIRED_INPUTS = ("api_key", "api_url", "project_name", "project_version", "sbom_token")


class ConfigError(RuntimeError):
    """Data class for Config Error."""
    pass


@dataclass(frozen=True)
class PollSettings:
    """Data class for Poll Settings."""
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    settle_seconds: float = DEFAULT_SETTLE_SECONDS
    request_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True)
class GateConfig:
    """Data class for Gate Config."""
    api_key: str
    api_url: str
    project_name: str
    project_version: str
    sbom_token: str
    print_github_summary: bool = True
    comment_results_in_pr: bool = True
    fail_on_policy_violation: bool = False
    project_risk_score_threshold: int | None = None
    gh_token: str | None = None
    owner: str | None = None
    repo: str | None = None
    pr_number: int | None = None
    poll: PollSettings = field(default_factory=PollSettings)

    @property
    def rules(self) -> DecisionRules:
        """Rules."""
        return DecisionRules(
            fail_on_policy_violation=self.fail_on_policy_violation,
            risk_threshold=self.project_risk_score_threshold,
        )

    @property
    def repo_slug(self) -> str | None:
        """owner/repo, or None when either half is unknown."""
        if not self.owner or not self.repo:
            return None
        return f"{self.owner}/{self.repo}"

    @property
    def should_comment(self) -> bool:
        """Should comment."""
        return bool(self.comment_results_in_pr and self.gh_token and self.pr_number and self.repo_slug)

    @classmethod
    def from_env(cls, environ: Mapping[str, str], *, poll: PollSettings | None = None) -> "GateConfig":
        """Read action inputs (``INPUT_<NAME>``) and GitHub context from ``environ``."""
        missing = [name for name in REQUIRED_INPUTS if not get_input(environ, name)]
        if missing:
            raise ConfigError(f"missing required input(s): {', '.join(missing)}")

        default_owner, default_repo = _split_repository(environ.get("GITHUB_REPOSITORY"))
        pr_raw = get_input(environ, "pr_number")
        pr_number = _parse_pr_number(pr_raw, "pr_number") if pr_raw else _event_pr_number(environ)

        settings = poll or PollSettings()
        settings = replace(
            settings,
            max_attempts=_positive_int_input(environ, "poll_max_attempts", settings.max_attempts),
            interval_seconds=_non_negative_float_input(
                environ, "poll_interval_seconds", settings.interval_seconds
            ),
            settle_seconds=_non_negative_float_input(environ, "settle_seconds", settings.settle_seconds),
        )

        return cls(
            api_key=get_input(environ, "api_key"),
            api_url=get_input(environ, "api_url").rstrip("/"),
            project_name=get_input(environ, "project_name"),
            project_version=get_input(environ, "project_version"),
            sbom_token=get_input(environ, "sbom_token"),
            print_github_summary=_bool_input(environ, "print_github_summary", True),
            comment_results_in_pr=_bool_input(environ, "comment_results_in_pr", True),
            fail_on_policy_violation=_bool_input(environ, "fail_on_policy_violation", False),
            project_risk_score_threshold=parse_threshold(get_input(environ, "project_risk_score_threshold")),
            gh_token=(environ.get("GITHUB_TOKEN") or "").strip() or get_input(environ, "gh_token") or None,
            owner=get_input(environ, "owner") or default_owner,
            repo=get_input(environ, "repo") or default_repo,
            pr_number=pr_number,
            poll=settings,
        )


def get_input(environ: Mapping[str, str], name: str) -> str:
    """Read an action input the way the Actions runner exposes it."""
    key = "INPUT_" + name.replace(" ", "_").upper()
    return (environ.get(key) or "").strip()


def parse_threshold(raw: str | None) -> int | None:
    """Empty, non-numeric, or negative means no threshold. ``0`` is a real threshold."""
    text = (raw or "").strip()
    if not text:
        return None
    try:
        value = int(text)
    except ValueError:
        return None
    return value if value >= 0 else None


def _bool_input(environ: Mapping[str, str], name: str, default: bool) -> bool:
    text = get_input(environ, name).lower()
    if not text:
        return default
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigError(f"{name}: expected true or false, got {text!r}")


def _positive_int_input(environ: Mapping[str, str], name: str, default: int) -> int:
    text = get_input(environ, name)
    if not text:
        return default
    try:
        value = int(text)
    except ValueError:
        raise ConfigError(f"{name}: expected integer, got {text!r}") from None
    if value < 1:
        raise ConfigError(f"{name}: must be >= 1")
    return value


def _non_negative_float_input(environ: Mapping[str, str], name: str, default: float) -> float:
    text = get_input(environ, name)
    if not text:
        return default
    try:
        value = float(text)
    except ValueError:
        raise ConfigError(f"{name}: expected number, got {text!r}") from None
    if value < 0:
        raise ConfigError(f"{name}: must be >= 0")
    return value


def _parse_pr_number(raw: Any, ctx: str) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ConfigError(f"{ctx}: expected integer, got {raw!r}") from None
    return value if value > 0 else None


def _split_repository(value: str | None) -> tuple[str | None, str | None]:
    text = (value or "").strip()
    if "/" not in text:
        return None, None
    owner, _, repo = text.partition("/")
    return owner or None, repo or None


def _event_pr_number(environ: Mapping[str, str]) -> int | None:
    event_path = (environ.get("GITHUB_EVENT_PATH") or "").strip()
    if not event_path:
        return None
    try:
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    pull_request = payload.get("pull_request")
    if not isinstance(pull_request, dict):
        return None
    try:
        return _parse_pr_number(pull_request.get("number"), "pull_request.number")
    except ConfigError:
        return None


def _require_mapping(value: Any, ctx: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{ctx}: expected mapping")
    return value


def _require_positive_int(value: Any, ctx: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{ctx}: expected integer")
    if value < 1:
        raise ConfigError(f"{ctx}: must be >= 1")
    return value


def _require_non_negative_number(value: Any, ctx: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{ctx}: expected number")
    if value < 0:
        raise ConfigError(f"{ctx}: must be >= 0")
    return float(value)


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text())
    except FileNotFoundError:
        raise ConfigError(f"missing config file: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e


def load_poll_settings(path: Path) -> PollSettings:
    """Load the ``poll`` section of defaults/gate.yml."""
    raw = _load_yaml(path)
    if raw is None:
        return PollSettings()
    cfg = _require_mapping(raw, "config")
    poll_raw = cfg.get("poll")
    if poll_raw is None:
        return PollSettings()
    poll = _require_mapping(poll_raw, "config.poll")

    defaults = PollSettings()
    return PollSettings(
        max_attempts=_require_positive_int(
            poll.get("max_attempts", defaults.max_attempts), "config.poll.max_attempts"
        ),
        interval_seconds=_require_non_negative_number(
            poll.get("interval_seconds", defaults.interval_seconds), "config.poll.interval_seconds"
        ),
        settle_seconds=_require_non_negative_number(
            poll.get("settle_seconds", defaults.settle_seconds), "config.poll.settle_seconds"
        ),
        request_timeout_seconds=_require_positive_int(
            poll.get("request_timeout_seconds", defaults.request_timeout_seconds),
            "config.poll.request_timeout_seconds",
        ),
    )
