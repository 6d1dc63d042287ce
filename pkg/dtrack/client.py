from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable
from urllib import error
from urllib import request
from urllib.parse import quote, urlencode

from .models import ProcessingStatus, ProjectRecord, Violation


HttpOpen = Callable[[request.Request, int], object]

API_KEY_HEADER = "X-Api-Key"
DEFAULT_TIMEOUT_SECONDS = 30


class DependencyTrackError(Exception):
    """Base error for Dependency-Track interactions."""


class TransportError(DependencyTrackError):
    """A request failed, returned non-2xx, or returned undecodable JSON."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProjectNotFoundError(DependencyTrackError):
    """Project lookup failed or returned no uuid."""

    def __init__(self, name: str, version: str, detail: str | None = None) -> None:
        message = f"Project ({name}) with version ({version}) could not be found."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.name = name
        self.version = version
        self.detail = detail


@dataclass
class DependencyTrackClient:
    """Thin JSON client for the three endpoints the gate reads."""

    api_url: str
    api_key: str
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    opener: HttpOpen | None = None

    def __post_init__(self) -> None:
        self.api_url = self.api_url.rstrip("/")
        if self.opener is None:
            self.opener = _default_opener

    def _url(self, path: str, query: dict[str, str] | None = None) -> str:
        url = f"{self.api_url}{path}"
        if query:
            url += "?" + urlencode(query)
        return url

    def _get_json(self, path: str, query: dict[str, str] | None = None) -> Any:
        url = self._url(path, query)
        req = request.Request(
            url,
            method="GET",
            headers={API_KEY_HEADER: self.api_key, "Accept": "application/json"},
        )
        opener = self.opener or _default_opener
        try:
            with opener(req, self.timeout_seconds) as response:
                status_code = int(getattr(response, "status", 200))
                raw = response.read()
        except error.HTTPError as exc:
            raise TransportError(
                f"GET {path} failed: HTTP {exc.code}", status_code=int(exc.code)
            ) from exc
        except error.URLError as exc:
            reason = exc.reason if hasattr(exc, "reason") else exc
            raise TransportError(f"GET {path} failed: {reason}") from exc
        except OSError as exc:
            raise TransportError(f"GET {path} failed: {exc}") from exc

        if not 200 <= status_code < 300:
            raise TransportError(f"GET {path} failed: HTTP {status_code}", status_code=status_code)

        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw or "")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransportError(f"GET {path} returned invalid JSON: {exc}", status_code=status_code) from exc

    def fetch_processing_status(self, token: str) -> ProcessingStatus:
        """Fetch processing status for a submitted SBOM token."""
        payload = self._get_json(f"/api/v1/event/token/{quote(token, safe='')}")
        return ProcessingStatus.from_dict(payload)

    def lookup_project(self, name: str, version: str) -> ProjectRecord:
        """Resolve a project by name and version.

        Raises:
            ProjectNotFoundError: lookup failed for any reason, or no uuid came back.
        """
        try:
            payload = self._get_json("/api/v1/project/lookup", {"name": name, "version": version})
        except TransportError as exc:
            raise ProjectNotFoundError(name, version, str(exc)) from exc

        project = ProjectRecord.from_dict(payload, name=name, version=version)
        if not project.uuid:
            raise ProjectNotFoundError(name, version, "response carried no uuid")
        return project

    def fetch_violations(self, project_uuid: str, *, suppressed: bool = False) -> list[Violation]:
        """Fetch policy violations in server order."""
        payload = self._get_json(
            f"/api/v1/violation/project/{quote(project_uuid, safe='')}",
            {"suppressed": "true" if suppressed else "false"},
        )
        if not isinstance(payload, list):
            raise TransportError("violations response is not a list")
        return [Violation.from_dict(item) for item in payload]

    def dashboard_url(self, project_uuid: str) -> str:
        """Dashboard url."""
        return f"{self.api_url}/projects/{project_uuid}/policyViolations"


def _default_opener(req: request.Request, timeout_seconds: int) -> object:
    return request.urlopen(req, timeout=timeout_seconds)
