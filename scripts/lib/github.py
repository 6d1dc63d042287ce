"""GitHub PR comment utilities.

Provides create-or-update of the gate's PR comment, identified by content
anchors rather than a stored id. The list-then-write sequence is not atomic:
two runs racing on the same PR can both create a comment, and the last
writer wins on update.
"""
from __future__ import annotations

import json
import os
import random
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import Sequence


class CommentPermissionError(Exception):
    """Token lacks pull-requests: write permission."""


class TransientGitHubError(Exception):
    """GitHub API returned a transient error (5xx)."""


def _is_transient_error(stderr: str) -> bool:
    """Check if error is a transient GitHub API error (5xx)."""
    transient_codes = ("502", "503", "504")
    lower_stderr = stderr.lower()
    # Handle both gh CLI format "(http 503)" and raw "HTTP 503" formats
    return any(
        f"(http {code})" in lower_stderr or f"http {code}" in lower_stderr
        for code in transient_codes
    )


def _gh_env(token: str | None) -> dict[str, str] | None:
    if not token:
        return None
    env = os.environ.copy()
    env["GH_TOKEN"] = token
    return env


def _run_gh(
    args: list[str],
    *,
    token: str | None = None,
    check: bool = True,
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> subprocess.CompletedProcess[str]:
    """Run a gh CLI command with retry logic for transient errors.

    Args:
        args: Arguments to pass to gh CLI
        token: GitHub token exported as GH_TOKEN for this call only
        check: Whether to raise on non-zero exit code
        max_retries: Maximum number of retry attempts for transient errors
        base_delay: Base delay in seconds between retries (uses exponential backoff)

    Raises:
        CommentPermissionError: Token lacks pull-requests: write permission
        TransientGitHubError: GitHub API returned 5xx after all retries
        subprocess.CalledProcessError: Other gh CLI failures
    """
    for attempt in range(max_retries):
        result = subprocess.run(
            ["gh", *args], capture_output=True, text=True, check=False, env=_gh_env(token)
        )

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").lower()

        if any(s in stderr for s in ("403", "resource not accessible", "insufficient")):
            raise CommentPermissionError(
                "Unable to post PR comment: token lacks pull-requests: write permission.\n"
                "Add this to your workflow:\n"
                "permissions:\n"
                "  contents: read\n"
                "  pull-requests: write"
            )

        if _is_transient_error(result.stderr or ""):
            if attempt < max_retries - 1:
                delay = base_delay * (2 ** attempt) + random.uniform(0, 0.5)
                print(
                    f"::warning::GitHub API error (attempt {attempt + 1}/{max_retries}), "
                    f"retrying in {delay:.1f}s...",
                    file=sys.stderr,
                )
                time.sleep(delay)
                continue
            raise TransientGitHubError(
                f"GitHub API returned transient error after {max_retries} attempts: "
                f"{result.stderr}"
            )

        if check:
            raise subprocess.CalledProcessError(
                result.returncode, result.args, result.stdout, result.stderr
            )
        return result

    raise RuntimeError("_run_gh retry loop exited unexpectedly")


def matches_anchors(body: object, anchors: Sequence[str]) -> bool:
    """True when ``body`` contains every anchor."""
    text = str(body or "")
    return all(anchor in text for anchor in anchors)


def fetch_comments(
    repo: str,
    pr_number: int,
    *,
    token: str | None = None,
    per_page: int = 100,
    max_pages: int = 20,
    stop_on_anchors: Sequence[str] | None = None,
) -> list[dict]:
    """Fetch issue comments for a PR (paginated).

    Args:
        repo: Repository in owner/repo format
        pr_number: Pull request number
        token: GitHub token for the gh CLI
        per_page: Number of comments per page (max 100)
        max_pages: Maximum number of pages to fetch
        stop_on_anchors: If provided, stop paging once a comment containing
            all anchors has been seen.
    """
    comments: list[dict] = []
    for page in range(1, max_pages + 1):
        endpoint = f"repos/{repo}/issues/{pr_number}/comments?per_page={per_page}&page={page}"
        result = _run_gh(["api", endpoint], token=token)
        try:
            payload = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            break
        if not isinstance(payload, list) or not payload:
            break
        page_comments = [c for c in payload if isinstance(c, dict)]
        comments.extend(page_comments)

        if stop_on_anchors and any(matches_anchors(c.get("body"), stop_on_anchors) for c in page_comments):
            return comments

        if len(payload) < per_page:
            break
    return comments


def find_comment_by_anchors(comments: list[dict], anchors: Sequence[str]) -> int | None:
    """Find the first comment containing every anchor, return its numeric ID."""
    for comment in comments:
        if not matches_anchors(comment.get("body"), anchors):
            continue
        comment_id = comment.get("id")
        if isinstance(comment_id, int) and not isinstance(comment_id, bool):
            return comment_id
    return None


def _write_body(body: str) -> str:
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", suffix=".md", delete=False) as handle:
        handle.write(body)
        return handle.name


def upsert_pr_comment(
    *,
    repo: str,
    pr_number: int,
    anchors: Sequence[str],
    body: str,
    token: str | None = None,
    comments: list[dict] | None = None,
) -> tuple[str, int | None]:
    """Update the first comment matching all anchors, or create one.

    If comments is provided, searches that list instead of fetching from API.
    Returns ``("updated", comment_id)`` or ``("created", None)``.

    Raises:
        CommentPermissionError: Token lacks pull-requests: write permission.
        TransientGitHubError: GitHub API returned 5xx after retries.
        subprocess.CalledProcessError: Other gh CLI failures.
    """
    if not anchors:
        raise ValueError("at least one anchor is required")
    if comments is None:
        comments = fetch_comments(repo, pr_number, token=token, stop_on_anchors=anchors)

    existing_id = find_comment_by_anchors(comments, anchors)
    body_file = _write_body(body)
    try:
        if existing_id is not None:
            _run_gh(
                [
                    "api",
                    f"repos/{repo}/issues/comments/{existing_id}",
                    "-X", "PATCH",
                    "-F", f"body=@{body_file}",
                ],
                token=token,
            )
            return "updated", existing_id
        _run_gh(
            [
                "api",
                f"repos/{repo}/issues/{pr_number}/comments",
                "-F", f"body=@{body_file}",
            ],
            token=token,
        )
        return "created", None
    finally:
        Path(body_file).unlink(missing_ok=True)
