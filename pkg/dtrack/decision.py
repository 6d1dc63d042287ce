"""Risk categorization, violation counting, and the pass/fail decision.

Everything here is pure: no I/O, no clock.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import ProjectRecord, Violation

PASS = "PASS"
FAIL = "FAIL"

STATE_FAIL = "FAIL"
STATE_WARN = "WARN"

LOW = "low"
MEDIUM = "medium"
HIGH = "high"
CRITICAL = "critical"
UNKNOWN = "unknown"

# Upper bound (inclusive) per band; anything above the last bound is critical.
_RISK_BANDS = (
    (10, LOW),
    (20, MEDIUM),
    (50, HIGH),
)


def categorize(score: float | None) -> str:
    """Map a risk score to low/medium/high/critical, or unknown when unusable."""
    if score is None or isinstance(score, bool):
        return UNKNOWN
    if math.isnan(score) or score < 0:
        return UNKNOWN
    for upper, category in _RISK_BANDS:
        if score <= upper:
            return category
    return CRITICAL


def count_by_state(violations: Iterable[Violation], state: str) -> int:
    """Count violations whose state is exactly ``state``."""
    return sum(1 for violation in violations if violation.state == state)


@dataclass(frozen=True)
class ViolationCounts:
    """Data class for Violation Counts."""
    total: int
    fail: int
    warn: int

    @property
    def other(self) -> int:
        """Violations that are neither FAIL nor WARN (INFO, unknown, missing)."""
        return self.total - self.fail - self.warn

    @classmethod
    def from_violations(cls, violations: Sequence[Violation]) -> "ViolationCounts":
        """From violations."""
        return cls(
            total=len(violations),
            fail=count_by_state(violations, STATE_FAIL),
            warn=count_by_state(violations, STATE_WARN),
        )


@dataclass(frozen=True)
class DecisionRules:
    """Gate rules. ``risk_threshold`` None means no threshold is configured."""

    fail_on_policy_violation: bool = False
    risk_threshold: int | None = None

    def __post_init__(self) -> None:
        if self.risk_threshold is not None and self.risk_threshold < 0:
            # Negative thresholds are the "unset" sentinel in action inputs.
            object.__setattr__(self, "risk_threshold", None)


def policy_gate_tripped(fail_count: int, rules: DecisionRules) -> bool:
    """Policy gate tripped."""
    return rules.fail_on_policy_violation and fail_count > 0


def threshold_exceeded(risk_score: float | None, rules: DecisionRules) -> bool:
    """Threshold exceeded."""
    if rules.risk_threshold is None or risk_score is None:
        return False
    return risk_score > rules.risk_threshold


def decide(fail_count: int, risk_score: float | None, rules: DecisionRules) -> str:
    """Return FAIL if either rule trips, else PASS."""
    if policy_gate_tripped(fail_count, rules) or threshold_exceeded(risk_score, rules):
        return FAIL
    return PASS


@dataclass(frozen=True)
class Verdict:
    """Data class for Verdict."""
    status: str
    total_violations: int
    fail_violations: int
    warn_violations: int
    risk_score: float | None
    risk_category: str
    failure_reasons: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        """Passed."""
        return self.status == PASS


def failure_reasons(counts: ViolationCounts, risk_score: float | None, rules: DecisionRules) -> tuple[str, ...]:
    """Human-readable reasons, policy rule first, in the order they are checked."""
    reasons: list[str] = []
    if policy_gate_tripped(counts.fail, rules):
        reasons.append(
            f"Failing due to ({counts.fail}) policy violation with FAIL state. Exiting..."
        )
    if threshold_exceeded(risk_score, rules):
        reasons.append(
            f"Failing due to project risk score ({format_score(risk_score)}) "
            f"exceeding threshold ({rules.risk_threshold}). Exiting..."
        )
    return tuple(reasons)


def evaluate(project: ProjectRecord, violations: Sequence[Violation], rules: DecisionRules) -> Verdict:
    """Build the single verdict for a run."""
    counts = ViolationCounts.from_violations(violations)
    status = decide(counts.fail, project.risk_score, rules)
    reasons = failure_reasons(counts, project.risk_score, rules) if status == FAIL else ()
    return Verdict(
        status=status,
        total_violations=counts.total,
        fail_violations=counts.fail,
        warn_violations=counts.warn,
        risk_score=project.risk_score,
        risk_category=categorize(project.risk_score),
        failure_reasons=reasons,
    )


def format_score(score: float | None) -> str:
    """Render integral scores without a trailing .0; missing scores as N/A."""
    if score is None:
        return "N/A"
    if float(score).is_integer():
        return str(int(score))
    return str(score)
