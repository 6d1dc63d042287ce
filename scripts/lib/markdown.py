"""Markdown and HTML helpers for gate reports.

Keep surface area small: status icon, pipe tables, summary HTML fragments.
"""

from __future__ import annotations

import html
from typing import Iterable, Sequence

_STATUS_ICON = {
    "critical": ":bangbang: ",
    "warning": ":warning: ",
    "info": ":small_blue_diamond: ",
}


def status_icon(fail_count: int, warn_count: int) -> str:
    """Heading icon: critical on any FAIL, warning on any WARN, else info."""
    if fail_count > 0:
        return _STATUS_ICON["critical"]
    if warn_count > 0:
        return _STATUS_ICON["warning"]
    return _STATUS_ICON["info"]


def truncate(text: object, *, max_len: int) -> str:
    """Truncate."""
    raw = str(text or "").strip()
    if len(raw) <= max_len:
        return raw
    return raw[: max_len - 1].rstrip() + "…"


def escape_cell(value: object) -> str:
    """Make a value safe inside a pipe-table cell."""
    text = str(value if value is not None else "")
    return text.replace("\\", "\\\\").replace("|", "\\|").replace("\r", " ").replace("\n", " ")


def pipe_table(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> list[str]:
    """Pipe table."""
    lines = [
        "| " + " | ".join(escape_cell(h) for h in headers) + " |",
        "| " + " | ".join("-" * max(len(h), 3) for h in headers) + " |",
    ]
    for row in rows:
        lines.append("| " + " | ".join(escape_cell(cell) for cell in row) + " |")
    return lines


def html_heading(text: str, level: int = 3) -> str:
    """Html heading."""
    level = min(max(level, 1), 6)
    return f"<h{level}>{html.escape(text)}</h{level}>"


def html_list(items: Iterable[str], *, ordered: bool = False) -> str:
    """Html list."""
    tag = "ol" if ordered else "ul"
    body = "".join(f"<li>{html.escape(item)}</li>" for item in items)
    return f"<{tag}>{body}</{tag}>"


def html_table(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    """Html table with a single header row."""
    head = "".join(f"<th>{html.escape(str(h))}</th>" for h in headers)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(str(cell))}</td>" for cell in row) + "</tr>"
        for row in rows
    )
    return f"<table><tr>{head}</tr>{body}</table>"


def html_link(text: str, href: str) -> str:
    """Html link."""
    return f'<a href="{html.escape(href, quote=True)}">{html.escape(text)}</a>'
