from __future__ import annotations

import io
import json
from urllib import error
from urllib.parse import parse_qs, urlparse

import pytest

from pkg.dtrack import (
    DependencyTrackClient,
    ProjectNotFoundError,
    TransportError,
    Violation,
    count_by_state,
)
from pkg.dtrack.models import ProcessingStatus, ProjectRecord


class _ContextResponse:
    def __init__(self, status: int, body: str = ""):
        self.status = status
        self._body = body.encode()

    def read(self, _size: int = -1) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *_args):
        return None


class _RecordingOpener:
    def __init__(self, *responses):
        self._responses = list(responses)
        self.requests = []

    def __call__(self, req, timeout):
        self.requests.append((req, timeout))
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def _json(status: int, payload) -> _ContextResponse:
    return _ContextResponse(status, json.dumps(payload))


def _client(opener) -> DependencyTrackClient:
    return DependencyTrackClient(
        api_url="https://dtrack.example.test/",
        api_key="secret-key",
        timeout_seconds=7,
        opener=opener,
    )


def test_processing_status_request_shape():
    opener = _RecordingOpener(_json(200, {"processing": True}))

    status = _client(opener).fetch_processing_status("abc-123")

    assert status == ProcessingStatus(processing=True)
    req, timeout = opener.requests[0]
    assert req.full_url == "https://dtrack.example.test/api/v1/event/token/abc-123"
    assert req.get_method() == "GET"
    assert req.get_header("X-api-key") == "secret-key"
    assert timeout == 7


def test_processing_false_only_when_explicit():
    opener = _RecordingOpener(_json(200, {"processing": False}), _json(200, {}))
    client = _client(opener)
    assert client.fetch_processing_status("t").processing is False
    assert client.fetch_processing_status("t").processing is True


def test_lookup_project_encodes_query_and_maps_fields():
    opener = _RecordingOpener(
        _json(
            200,
            {"uuid": "u-1", "name": "demo app", "version": "1.0&beta", "lastInheritedRiskScore": 55},
        )
    )

    project = _client(opener).lookup_project("demo app", "1.0&beta")

    assert project == ProjectRecord(uuid="u-1", name="demo app", version="1.0&beta", risk_score=55)
    url = urlparse(opener.requests[0][0].full_url)
    assert url.path == "/api/v1/project/lookup"
    assert parse_qs(url.query) == {"name": ["demo app"], "version": ["1.0&beta"]}


def test_lookup_project_without_uuid_is_not_found():
    opener = _RecordingOpener(_json(200, {"name": "demo-app"}))
    with pytest.raises(ProjectNotFoundError) as exc_info:
        _client(opener).lookup_project("demo-app", "1.0")
    assert exc_info.value.name == "demo-app"
    assert exc_info.value.version == "1.0"
    assert "Project (demo-app) with version (1.0) could not be found." in str(exc_info.value)


def test_lookup_project_http_404_is_not_found():
    http_error = error.HTTPError(
        url="https://dtrack.example.test/api/v1/project/lookup",
        code=404,
        msg="not found",
        hdrs=None,
        fp=io.BytesIO(b"The project could not be found."),
    )
    opener = _RecordingOpener(http_error)
    with pytest.raises(ProjectNotFoundError, match="HTTP 404"):
        _client(opener).lookup_project("ghost", "0.0")


def test_lookup_project_invalid_json_is_not_found():
    opener = _RecordingOpener(_ContextResponse(200, "<html>login</html>"))
    with pytest.raises(ProjectNotFoundError, match="invalid JSON"):
        _client(opener).lookup_project("demo-app", "1.0")


def test_fetch_violations_parses_nested_fields_and_defaults():
    payload = [
        {
            "type": "LICENSE",
            "component": {"name": "left-pad", "version": "1.3.0", "resolvedLicense": {"name": "WTFPL"}},
            "policyCondition": {"policy": {"name": "No WTFPL", "violationState": "FAIL"}},
        },
        {"type": "SECURITY", "component": {"name": "lodash"}, "policyCondition": {}},
        {},
    ]
    opener = _RecordingOpener(_json(200, payload))

    violations = _client(opener).fetch_violations("u-1")

    assert violations == [
        Violation("LICENSE", "FAIL", "left-pad", "1.3.0", "WTFPL", "No WTFPL"),
        Violation("SECURITY", "N/A", "lodash", "N/A", "Other", "N/A"),
        Violation(),
    ]
    url = urlparse(opener.requests[0][0].full_url)
    assert url.path == "/api/v1/violation/project/u-1"
    assert parse_qs(url.query) == {"suppressed": ["false"]}


def test_fetch_violations_can_include_suppressed():
    opener = _RecordingOpener(_json(200, []))
    assert _client(opener).fetch_violations("u-1", suppressed=True) == []
    assert "suppressed=true" in opener.requests[0][0].full_url


def test_fetch_violations_rejects_non_list():
    opener = _RecordingOpener(_json(200, {"error": "nope"}))
    with pytest.raises(TransportError, match="not a list"):
        _client(opener).fetch_violations("u-1")


def test_http_error_becomes_transport_error_with_status():
    http_error = error.HTTPError(
        url="https://dtrack.example.test/x", code=401, msg="unauthorized", hdrs=None, fp=io.BytesIO(b"")
    )
    opener = _RecordingOpener(http_error)
    with pytest.raises(TransportError) as exc_info:
        _client(opener).fetch_violations("u-1")
    assert exc_info.value.status_code == 401


def test_connection_failure_becomes_transport_error():
    opener = _RecordingOpener(error.URLError("connection refused"))
    with pytest.raises(TransportError, match="connection refused"):
        _client(opener).fetch_processing_status("t")


def test_non_2xx_response_without_exception_is_transport_error():
    opener = _RecordingOpener(_json(302, {}))
    with pytest.raises(TransportError, match="HTTP 302"):
        _client(opener).fetch_processing_status("t")


def test_dashboard_url_strips_trailing_slash():
    client = _client(_RecordingOpener())
    assert client.dashboard_url("u-1") == "https://dtrack.example.test/projects/u-1/policyViolations"


def test_violation_accepts_flat_state_and_policy():
    violation = Violation.from_dict({"violationState": "WARN", "policy": {"name": "Flat policy"}})
    assert violation.state == "WARN"
    assert violation.policy == "Flat policy"


def test_violation_names_are_collapsed_to_one_line():
    violation = Violation.from_dict(
        {
            "component": {"name": "x\n::stop-commands::tok", "version": " 1.0\r\n"},
            "policyCondition": {"policy": {"name": "Copyleft\n\tpolicy", "violationState": "FAIL"}},
        }
    )
    assert violation.component == "x ::stop-commands::tok@1.0"
    assert violation.policy == "Copyleft policy"
    assert not any("\n" in cell or "\r" in cell for cell in violation.row())


def test_padded_violation_state_is_not_a_fail():
    raw = {"policyCondition": {"policy": {"violationState": " FAIL "}}}
    violations = [Violation.from_dict(raw)]

    assert violations[0].state == " FAIL "
    assert count_by_state(violations, "FAIL") == 0
    assert violations[0].row()[1] == "FAIL"
