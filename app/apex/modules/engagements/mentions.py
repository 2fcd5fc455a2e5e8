"""
@mention markup used by the comment composer: ``@[Display Name](employee:<id>)``.
"""
from __future__ import annotations

import re

from markupsafe import Markup, escape

MENTION_RE = re.compile(r"@\[([^\]]+)\]\(employee:([^)]+)\)")


def extract_mentioned_ids(text: str | None) -> list[int]:
    """Distinct employee ids in order of first mention; non-numeric ids are ignored."""
    ids: list[int] = []
    for _display, raw_id in MENTION_RE.findall(text or ""):
        raw_id = raw_id.strip()
        if not raw_id.isdigit():
            continue
        eid = int(raw_id)
        if eid not in ids:
            ids.append(eid)
    return ids


def to_plain_text(text: str | None) -> str:
    return MENTION_RE.sub(lambda m: f"@{m.group(1)}", text or "")


def to_html(text: str | None) -> str:
    """Escape the comment and render mentions in bold; newlines become <br>."""
    out: list[str] = []
    pos = 0
    for m in MENTION_RE.finditer(text or ""):
        out.append(str(escape(text[pos:m.start()])))
        out.append(str(Markup("<strong>@{}</strong>").format(m.group(1))))
        pos = m.end()
    out.append(str(escape((text or "")[pos:])))
    return "".join(out).replace("\n", "<br>")
