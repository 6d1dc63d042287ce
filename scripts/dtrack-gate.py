#!/usr/bin/env python3
"""Gate a CI run on Dependency-Track results for an uploaded SBOM.

Waits for SBOM processing, reads the project's risk score and policy
violations, reports them (log, step summary, PR comment), then exits 0 on
PASS and 1 on FAIL. Reporting always happens before a FAIL exit.
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
import time
from pathlib import Path
from typing import Callable, Mapping

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pkg.dtrack import (  # noqa: E402
    CompletionPoller,
    ConfigError,
    DependencyTrackClient,
    DependencyTrackError,
    GateConfig,
    evaluate,
    load_poll_settings,
)
from lib import actions  # noqa: E402
from lib.github import CommentPermissionError, TransientGitHubError, upsert_pr_comment  # noqa: E402
from lib.report import (  # noqa: E402
    ReportModel,
    build_outputs,
    comment_anchors,
    render_comment,
    render_log,
    render_summary,
)

DEFAULTS_PATH = ROOT / "defaults" / "gate.yml"

Upsert = Callable[..., "tuple[str, int | None]"]


def build_client(config: GateConfig) -> DependencyTrackClient:
    """Build client."""
    return DependencyTrackClient(
        api_url=config.api_url,
        api_key=config.api_key,
        timeout_seconds=config.poll.request_timeout_seconds,
    )


def wait_for_processing(config: GateConfig, client: DependencyTrackClient, sleep: Callable[[float], None]) -> None:
    """Block until the SBOM is processed, then apply the settling delay.

    Raises:
        PollTimeoutError: processing still running after the attempt budget.
    """
    poller = CompletionPoller(
        fetch_status=client.fetch_processing_status,
        max_attempts=config.poll.max_attempts,
        interval_seconds=config.poll.interval_seconds,
        settle_seconds=config.poll.settle_seconds,
        sleep=sleep,
        on_waiting=lambda _attempt, _total: actions.info("Waiting for SBOM processing to complete..."),
    )
    actions.info("Checking SBOM processing status")
    poller.await_completion(config.sbom_token)
    actions.info("OWASP Dependency Track processing completed")
    poller.settle()


def collect_report(config: GateConfig, client: DependencyTrackClient) -> ReportModel:
    """Resolve the project, fetch violations, and decide.

    Raises:
        ProjectNotFoundError: lookup failed or returned no uuid.
        TransportError: violations could not be fetched.
    """
    actions.info("Retrieving project information")
    project = client.lookup_project(config.project_name, config.project_version)
    violations = client.fetch_violations(project.uuid)
    verdict = evaluate(project, violations, config.rules)
    return ReportModel.build(project, verdict, violations, client.dashboard_url(project.uuid))


def publish_summary(config: GateConfig, model: ReportModel, summary_path: str | None) -> bool:
    """Append the step summary. Best-effort: failures become warnings."""
    if not config.print_github_summary:
        return False
    if not summary_path:
        actions.notice("GITHUB_STEP_SUMMARY is not set; skipping job summary.")
        return False
    actions.info("Printing Dependency-Track check results to GitHub Actions summary")
    try:
        actions.append_summary(summary_path, render_summary(model))
    except OSError as exc:
        actions.warning(f"Unable to write job summary: {exc}")
        return False
    return True


def publish_comment(config: GateConfig, model: ReportModel, upsert: Upsert = upsert_pr_comment) -> bool:
    """Create or update the PR comment. Best-effort: failures become warnings."""
    repo_slug = config.repo_slug
    if not config.should_comment or repo_slug is None or config.pr_number is None:
        return False
    actions.info(f"Posting Dependency-Track check results to PR #{config.pr_number}")
    actions.info(f"Repo Owner: {config.owner}")
    actions.info(f"Repo: {config.repo}")
    try:
        action, comment_id = upsert(
            repo=repo_slug,
            pr_number=config.pr_number,
            anchors=comment_anchors(model.project.name),
            body=render_comment(model),
            token=config.gh_token,
        )
    except (CommentPermissionError, TransientGitHubError) as exc:
        actions.warning(str(exc))
        return False
    except subprocess.CalledProcessError as exc:
        actions.warning(f"Unable to post PR comment: {exc.stderr or exc}")
        return False
    except OSError as exc:
        actions.warning(f"Unable to post PR comment: {exc}")
        return False

    if action == "updated":
        actions.info(f"Updated existing comment with ID: {comment_id}")
    else:
        actions.info("Created new comment on the PR")
    return True


def run(
    config: GateConfig,
    *,
    client: DependencyTrackClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
    environ: Mapping[str, str] = os.environ,
    upsert: Upsert = upsert_pr_comment,
) -> int:
    """Run the gate end to end. Returns the process exit status."""
    actions.mask(config.api_key)
    actions.mask(config.gh_token)
    if config.pr_number:
        actions.info(f"Pull Request number: {config.pr_number}")
    else:
        actions.info("Not a pull request or no PR number provided")

    client = client or build_client(config)
    try:
        wait_for_processing(config, client, sleep)
        model = collect_report(config, client)
    except DependencyTrackError as exc:
        actions.error(str(exc))
        return 1

    actions.write_outputs(environ.get("GITHUB_OUTPUT"), build_outputs(model))
    for level, line in render_log(model):
        actions.emit(level, line)
    publish_summary(config, model, environ.get("GITHUB_STEP_SUMMARY"))
    publish_comment(config, model, upsert)

    if not model.verdict.passed:
        for reason in model.verdict.failure_reasons:
            actions.error(reason)
        return 1

    actions.info("Continuing...")
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse args."""
    parser = argparse.ArgumentParser(
        description="Wait for Dependency-Track SBOM processing and gate on the results.",
    )
    parser.add_argument(
        "--defaults",
        default=str(DEFAULTS_PATH),
        help="Path to gate defaults YAML (poll tuning).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main."""
    args = parse_args(argv)
    try:
        poll = load_poll_settings(Path(args.defaults))
        config = GateConfig.from_env(os.environ, poll=poll)
    except ConfigError as exc:
        actions.error(f"dtrack-gate: {exc}")
        return 2

    try:
        return run(config)
    except Exception as exc:
        actions.error(str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
