"""Render a gate result as log lines, a step summary, and a PR comment.

All three renderers read one immutable ReportModel, so counts and categories
are computed once and can't drift between channels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from pkg.dtrack.decision import Verdict, format_score
from pkg.dtrack.models import ProjectRecord, Violation

from lib.markdown import html_heading, html_link, html_list, html_table, pipe_table, status_icon, truncate

COMMENT_TITLE = "Dependency-Track check results"
DASHBOARD_LINK_TEXT = "Visit Dependency-Track dashboard for details"
TABLE_HEADERS = ("Type", "State", "Component@Version", "License", "Policy")
LOG_RULE = "-" * 97
# GitHub rejects comment bodies over 65536 characters.
MAX_COMMENT_SIZE = 60000
# Step summaries are capped at 1 MiB per step, counted in bytes.
MAX_SUMMARY_SIZE = 250_000
MAX_CELL_LEN = 200


@dataclass(frozen=True)
class ReportModel:
    """Data class for Report Model."""
    project: ProjectRecord
    verdict: Verdict
    violations: tuple[Violation, ...]
    dashboard_url: str

    @classmethod
    def build(
        cls,
        project: ProjectRecord,
        verdict: Verdict,
        violations: Sequence[Violation],
        dashboard_url: str,
    ) -> "ReportModel":
        """Build."""
        return cls(project=project, verdict=verdict, violations=tuple(violations), dashboard_url=dashboard_url)

    @property
    def title(self) -> str:
        """Title."""
        return f"{COMMENT_TITLE} ({self.verdict.status})"

    @property
    def icon(self) -> str:
        """Icon."""
        return status_icon(self.verdict.fail_violations, self.verdict.warn_violations)

    @property
    def score_line(self) -> str:
        """Score line."""
        return f"{format_score(self.verdict.risk_score)} ({self.verdict.risk_category})"

    def rows(self) -> list[tuple[str, ...]]:
        """Display rows, each cell cut to MAX_CELL_LEN."""
        return [
            tuple(truncate(cell, max_len=MAX_CELL_LEN) for cell in violation.row())
            for violation in self.violations
        ]


def comment_anchors(project_name: str) -> tuple[str, str]:
    """Substrings that together identify this project's PR comment."""
    return (COMMENT_TITLE, f"({project_name})")


def build_outputs(model: ReportModel) -> dict[str, str]:
    """Action outputs, as strings."""
    verdict = model.verdict
    return {
        "project_uuid": model.project.uuid,
        "project_risk_score": format_score(verdict.risk_score),
        "security_score_category": verdict.risk_category,
        "total_policy_violations_count": str(verdict.total_violations),
        "fail_policy_violations_count": str(verdict.fail_violations),
        "warn_policy_violations_count": str(verdict.warn_violations),
    }


def render_log(model: ReportModel) -> list[tuple[str, str]]:
    """Plain-text block as (level, line) pairs. Counts go out as warnings."""
    verdict = model.verdict
    lines: list[tuple[str, str]] = [
        ("info", LOG_RULE),
        ("info", f"> {model.title}"),
        ("info", f"Project: {model.project.name}"),
        ("info", f"Version: {model.project.version}"),
        ("info", f"Uuid: {model.project.uuid}"),
        ("info", ""),
        ("warning", f"Dependency-Track Total policy violations: {verdict.total_violations}"),
        ("warning", f"Dependency-Track FAIL policy violations: {verdict.fail_violations}"),
        ("info", f"Dependency-Track WARN policy violations: {verdict.warn_violations}"),
        ("info", f"Project risk score: {model.score_line}"),
        ("info", "Type | State | Component | License | Policy"),
    ]
    for row in model.rows():
        lines.append(("info", "  - " + " | ".join(row)))
    lines.extend(
        [
            ("info", ""),
            ("info", f"{DASHBOARD_LINK_TEXT}: {model.dashboard_url}"),
            ("info", LOG_RULE),
        ]
    )
    return lines


def _overflow_row(hidden: int) -> tuple[str, str, str, str, str]:
    noun = "violation" if hidden == 1 else "violations"
    return ("…", "", f"{hidden} more {noun}, see dashboard", "", "")


def _cap_rows(rows: list[tuple[str, ...]], render: Callable[[list[tuple[str, ...]]], str], limit: int) -> str:
    """Render with the longest prefix of ``rows`` that keeps the text within ``limit``.

    A cut table ends with an overflow row pointing at the dashboard.
    """
    full = render(rows)
    if len(full) <= limit:
        return full
    empty = len(render([]))
    budget = limit - len(render([_overflow_row(len(rows))]))
    shown = 0
    used = 0
    for row in rows:
        used += len(render([row])) - empty
        if used > budget:
            break
        shown += 1
    return render(rows[:shown] + [_overflow_row(len(rows) - shown)])


def _summary_text(model: ReportModel, rows: list[tuple[str, ...]]) -> str:
    verdict = model.verdict
    parts = [
        html_heading(f"{model.icon}{model.title}", 3),
        html_list(
            [
                f"Project: {model.project.name}",
                f"Uuid: {model.project.uuid}",
                f"Version: {model.project.version}",
            ]
        ),
        html_list(
            [
                f"Total policy violations: {verdict.total_violations}",
                f"FAIL policy violations: {verdict.fail_violations}",
                f"WARN policy violations: {verdict.warn_violations}",
                f"Project risk score: {model.score_line}",
            ]
        ),
        html_table(TABLE_HEADERS, rows),
        html_link(f"{DASHBOARD_LINK_TEXT}!", model.dashboard_url),
    ]
    return "\n".join(parts) + "\n"


def render_summary(model: ReportModel) -> str:
    """HTML fragment for the job step summary."""
    return _cap_rows(model.rows(), lambda rows: _summary_text(model, rows), MAX_SUMMARY_SIZE)


def _comment_text(model: ReportModel, rows: list[tuple[str, ...]] | None) -> str:
    verdict = model.verdict
    lines = [
        f"## {model.icon}{model.title}",
        "",
        f"**Project**: ({model.project.name})",
        f"**Version**: {model.project.version}",
        f"**Uuid**: {model.project.uuid}",
        "",
        f"**Total policy violations**: {verdict.total_violations}",
        f"**FAIL policy violations**: {verdict.fail_violations}",
        f"**WARN policy violations**: {verdict.warn_violations}",
        f"**Project risk score**: {model.score_line}",
        "",
    ]
    if rows is None:
        lines.append("_No policy violations._")
    else:
        lines.extend(pipe_table(TABLE_HEADERS, rows))
    lines.extend(["", f"{DASHBOARD_LINK_TEXT}: {model.dashboard_url}"])
    return "\n".join(lines) + "\n"


def render_comment(model: ReportModel) -> str:
    """Markdown body for the PR comment. Contains both comment anchors.

    Stays under MAX_COMMENT_SIZE; GitHub rejects comments over 65536 characters.
    """
    if not model.violations:
        return _comment_text(model, None)
    return _cap_rows(model.rows(), lambda rows: _comment_text(model, rows), MAX_COMMENT_SIZE)
