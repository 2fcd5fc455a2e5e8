from __future__ import annotations

from typing import Any

from flask import g, has_request_context
from sqlalchemy.orm import Session

from app.apex.modules.employees.models import Employee
from app.apex.modules.pocs.models import PocActivityLog
from app.apex.modules.projects.models import ProjectActivityLog

_LOG_MODELS = {
    "poc": (PocActivityLog, "poc_id"),
    "project": (ProjectActivityLog, "project_id"),
}


def record_event(
    s: Session,
    *,
    actor: Employee | None,
    action: str,
    entity_type: str,
    entity_id: int,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> PocActivityLog | ProjectActivityLog:
    """
    Append-only activity log entry for a PoC or a Project.
    """
    model, fk = _LOG_MODELS[entity_type]
    rid = request_id or (getattr(g, "request_id", None) if has_request_context() else None)
    ev = model(
        user_id=actor.id if actor else None,
        activity_type=action,
        details=details or {},
        request_id=rid,
    )
    setattr(ev, fk, entity_id)
    s.add(ev)
    return ev
