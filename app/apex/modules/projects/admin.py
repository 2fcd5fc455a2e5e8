from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.apex.db import db_session
from app.apex.modules.engagements.kinds import PROJECT
from app.apex.modules.engagements.serializers import serialize_attachment
from app.apex.modules.engagements.service import upload_attachment
from app.apex.modules.projects.service import (
    create_project,
    delete_project,
    get_project,
    list_projects,
    recent_activity,
    serialize_project,
    serialize_project_row,
    serialize_recent_activity,
    update_project,
)
from app.apex.notifications import send_team_change_notifications
from app.apex.rbac import require_permission
from app.apex.utils import json_body

bp = Blueprint("projects", __name__)


@bp.get("/projects")
def projects_list():
    s = db_session()
    return jsonify([serialize_project_row(p) for p in list_projects(s, g.current_user)])


@bp.get("/projects/<int:project_id>")
def project_detail(project_id: int):
    s = db_session()
    return jsonify(serialize_project(get_project(s, project_id)))


@bp.post("/projects")
@require_permission("project.create")
def projects_create():
    s = db_session()
    project = create_project(s, json_body(), g.current_user)
    s.commit()
    return jsonify(serialize_project(project)), 201


@bp.put("/projects/<int:project_id>")
@require_permission("project.edit")
def projects_update(project_id: int):
    s = db_session()
    project, changes = update_project(s, project_id, json_body(), g.current_user)
    s.commit()

    send_team_change_notifications(PROJECT, project, changes, g.current_user)
    return jsonify(serialize_project(project))


@bp.delete("/projects/<int:project_id>")
@require_permission("project.delete")
def projects_delete(project_id: int):
    s = db_session()
    deleted = delete_project(s, project_id, g.current_user)
    s.commit()
    return jsonify({"message": "Project archived and deleted successfully", "deletedProject": deleted})


@bp.post("/projects/<int:project_id>/attachments")
@require_permission("project.edit")
def project_attachment_upload(project_id: int):
    s = db_session()
    project = get_project(s, project_id)
    att = upload_attachment(
        s, PROJECT, project, request.files.get("file"), request.form.get("description"), g.current_user
    )
    s.commit()
    return jsonify(serialize_attachment(PROJECT, att)), 201


# ---------- Recent activity ----------
@bp.get("/recent-activity/projects")
def projects_recent_activity():
    s = db_session()
    return jsonify([serialize_recent_activity(ev) for ev in recent_activity(s)])
