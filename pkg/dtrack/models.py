"""Typed views over Dependency-Track API payloads.

Optional nested fields are resolved here, once, so renderers never have to
walk raw JSON.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

MISSING = "N/A"
MISSING_LICENSE = "Other"


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any, default: str = MISSING) -> str:
    # Collapsed to one line; these values end up in workflow commands.
    if value is None:
        return default
    return " ".join(str(value).split()) or default


def _raw(value: Any, default: str = MISSING) -> str:
    return default if value is None else str(value)


def _score(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return value


@dataclass(frozen=True)
class ProcessingStatus:
    """Data class for Processing Status."""
    processing: bool

    @classmethod
    def from_dict(cls, raw: Any) -> "ProcessingStatus":
        """From dict."""
        # Anything other than an explicit false keeps the poller waiting.
        return cls(processing=_mapping(raw).get("processing") is not False)


@dataclass(frozen=True)
class ProjectRecord:
    """A resolved project. ``risk_score`` is None when the server has none yet."""

    uuid: str
    name: str
    version: str
    risk_score: float | None

    @classmethod
    def from_dict(cls, raw: Any, *, name: str = "", version: str = "") -> "ProjectRecord":
        """From dict."""
        data = _mapping(raw)
        return cls(
            uuid=_text(data.get("uuid"), ""),
            name=_text(data.get("name"), name),
            version=_text(data.get("version"), version),
            risk_score=_score(data.get("lastInheritedRiskScore")),
        )


@dataclass(frozen=True)
class Violation:
    """One policy violation. ``state`` is kept verbatim so counts match exactly."""
    type: str = MISSING
    state: str = MISSING
    component_name: str = MISSING
    component_version: str = MISSING
    license: str = MISSING_LICENSE
    policy: str = MISSING

    @property
    def component(self) -> str:
        """Component."""
        return f"{self.component_name}@{self.component_version}"

    def row(self) -> tuple[str, str, str, str, str]:
        """Display columns: type, state, component@version, license, policy."""
        return (self.type, _text(self.state), self.component, self.license, self.policy)

    @classmethod
    def from_dict(cls, raw: Any) -> "Violation":
        """From dict."""
        data = _mapping(raw)
        component = _mapping(data.get("component"))
        license_ = _mapping(component.get("resolvedLicense"))
        policy = _mapping(_mapping(data.get("policyCondition")).get("policy"))
        state = policy.get("violationState", data.get("violationState"))
        policy_name = policy.get("name", _mapping(data.get("policy")).get("name"))
        return cls(
            type=_text(data.get("type")),
            state=_raw(state),
            component_name=_text(component.get("name")),
            component_version=_text(component.get("version")),
            license=_text(license_.get("name"), MISSING_LICENSE),
            policy=_text(policy_name),
        )
