from __future__ import annotations

from typing import Any

from flask import g, has_request_context
from sqlalchemy.orm import Session

from app.apex.models import ArchivedRecord
from app.apex.modules.employees.models import Employee


def archive_snapshot(
    s: Session,
    entity_type: str,
    entity_id: int,
    snapshot: dict[str, Any],
    *,
    actor: Employee | None,
) -> ArchivedRecord:
    """Keep a JSON copy of a record that is about to be hard-deleted."""
    rec = ArchivedRecord(
        entity_type=entity_type,
        entity_id=entity_id,
        snapshot=snapshot,
        archived_by_id=actor.id if actor else None,
        request_id=getattr(g, "request_id", None) if has_request_context() else None,
    )
    s.add(rec)
    return rec
