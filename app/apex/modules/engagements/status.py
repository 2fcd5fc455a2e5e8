from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.apex.modules.engagements.kinds import EngagementKind


def open_statuses(s: "Session", kind: "EngagementKind", parent_id: int) -> list:
    model = kind.status_model
    return (
        s.query(model)
        .filter(kind.fk_column(model) == parent_id)
        .filter(model.ended_at.is_(None))
        .all()
    )


def close_open_statuses(s: "Session", kind: "EngagementKind", parent_id: int, *, ended_at: datetime) -> int:
    rows = open_statuses(s, kind, parent_id)
    for row in rows:
        row.ended_at = ended_at
    return len(rows)


def open_status_rows(
    s: "Session",
    kind: "EngagementKind",
    parent_id: int,
    statuses: Iterable[str],
    *,
    started_at: datetime,
) -> list:
    """Insert one open history row per status."""
    rows = []
    for status in statuses:
        row = kind.status_model(status=status, started_at=started_at)
        setattr(row, kind.fk, parent_id)
        s.add(row)
        rows.append(row)
    s.flush()
    return rows


def replace_statuses(
    s: "Session",
    kind: "EngagementKind",
    parent_id: int,
    statuses: Iterable[str],
    *,
    now: datetime,
) -> list:
    """Close the open period(s) and start new one(s) at `now`."""
    close_open_statuses(s, kind, parent_id, ended_at=now)
    return open_status_rows(s, kind, parent_id, statuses, started_at=now)
