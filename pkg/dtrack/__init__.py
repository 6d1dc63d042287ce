"""Dependency-Track SBOM gate runtime primitives."""

from .client import DependencyTrackClient, DependencyTrackError, ProjectNotFoundError, TransportError
from .config import ConfigError, GateConfig, PollSettings, load_poll_settings
from .decision import (
    CRITICAL,
    FAIL,
    HIGH,
    LOW,
    MEDIUM,
    PASS,
    UNKNOWN,
    DecisionRules,
    Verdict,
    ViolationCounts,
    categorize,
    count_by_state,
    decide,
    evaluate,
)
from .models import ProcessingStatus, ProjectRecord, Violation
from .poller import CompletionPoller, PollTimeoutError

__all__ = [
    "CRITICAL",
    "CompletionPoller",
    "ConfigError",
    "DecisionRules",
    "DependencyTrackClient",
    "DependencyTrackError",
    "FAIL",
    "GateConfig",
    "HIGH",
    "LOW",
    "MEDIUM",
    "PASS",
    "PollSettings",
    "PollTimeoutError",
    "ProcessingStatus",
    "ProjectNotFoundError",
    "ProjectRecord",
    "TransportError",
    "UNKNOWN",
    "Verdict",
    "Violation",
    "ViolationCounts",
    "categorize",
    "count_by_state",
    "decide",
    "evaluate",
    "load_poll_settings",
]
