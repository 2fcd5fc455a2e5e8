from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request, send_file

from app.apex.activity import record_event
from app.apex.db import db_session
from app.apex.errors import NotFound
from app.apex.modules.engagements import service as svc
from app.apex.modules.engagements.kinds import POC, PROJECT, EngagementKind
from app.apex.modules.engagements.serializers import (
    serialize_activity,
    serialize_assignment,
    serialize_comment,
    serialize_status,
)
from app.apex.notifications import send_mention_notifications
from app.apex.rbac import require_permission
from app.apex.storage import StorageError, storage_from_config
from app.apex.utils import iso, json_body, query_int


def make_blueprint(kind: EngagementKind) -> Blueprint:
    """
    Status history, comments, team assignments and activity routes for one engagement kind:
    /<kind>-status-comments, /<kind>-comments, /<kind>-employees, /<kind>-activity-log/<id>.
    """
    bp = Blueprint(f"{kind.name}_subresources", __name__)
    edit_permission = f"{kind.name}.edit"
    prefix = f"/{kind.name}"

    # ---------- Status history ----------
    @bp.get(f"{prefix}-status-comments")
    def status_comments_list():
        parent_id = query_int(kind.id_param, required=True)
        rows = svc.list_status_comments(db_session(), kind, parent_id)
        return jsonify([serialize_status(kind, r) for r in rows])

    @bp.get(f"{prefix}-status-comments/<int:row_id>")
    def status_comment_detail(row_id: int):
        row = svc.get_child(db_session(), kind.status_model, row_id, f"{kind.label} status entry")
        return jsonify(serialize_status(kind, row, include_comments=True))

    @bp.post(f"{prefix}-status-comments")
    @require_permission(edit_permission)
    def status_comments_create():
        s = db_session()
        row = svc.create_status_comment(s, kind, json_body())
        s.commit()
        return jsonify(serialize_status(kind, row)), 201

    @bp.put(f"{prefix}-status-comments/<int:row_id>")
    @require_permission(edit_permission)
    def status_comments_update(row_id: int):
        s = db_session()
        row = svc.get_child(s, kind.status_model, row_id, f"{kind.label} status entry")
        svc.update_status_comment(s, kind, row, json_body())
        s.commit()
        return jsonify(serialize_status(kind, row))

    @bp.delete(f"{prefix}-status-comments/<int:row_id>")
    @require_permission(edit_permission)
    def status_comments_delete(row_id: int):
        s = db_session()
        row = svc.get_child(s, kind.status_model, row_id, f"{kind.label} status entry")
        deleted = serialize_status(kind, row)
        svc.delete_status_comment(s, kind, row)
        s.commit()
        return jsonify({"message": "Status entry deleted successfully", "deletedStatusComment": deleted})

    if kind is PROJECT:

        @bp.get(f"{prefix}-status-comments/active-statuses")
        def active_statuses():
            s = db_session()
            project = svc.get_parent(s, kind, query_int(kind.id_param, required=True))
            return jsonify(
                [
                    {"id": cs.id, "projectId": cs.project_id, "status": cs.status, "createdAt": iso(cs.created_at)}
                    for cs in project.current_statuses
                ]
            )

    # ---------- Comments ----------
    @bp.get(f"{prefix}-comments")
    def comments_list():
        status_comment_id = query_int("statusCommentId", required=True)
        rows = svc.list_comments(db_session(), kind, status_comment_id)
        return jsonify([serialize_comment(kind, c) for c in rows])

    @bp.get(f"{prefix}-comments/<int:comment_id>")
    def comment_detail(comment_id: int):
        comment = svc.get_child(db_session(), kind.comment_model, comment_id, "Comment")
        return jsonify(serialize_comment(kind, comment))

    @bp.post(f"{prefix}-comments")
    @require_permission("comment.add")
    def comments_create():
        s = db_session()
        comment, status_row, mentioned = svc.create_comment(s, kind, json_body())
        s.commit()

        if mentioned:
            send_mention_notifications(
                kind,
                getattr(status_row, kind.name),
                status_row.status,
                comment.comment,
                comment.author,
                mentioned,
            )
        return jsonify(serialize_comment(kind, comment)), 201

    @bp.put(f"{prefix}-comments/<int:comment_id>")
    @require_permission("comment.add")
    def comments_update(comment_id: int):
        s = db_session()
        comment = svc.get_child(s, kind.comment_model, comment_id, "Comment")
        svc.update_comment(s, kind, comment, json_body())
        s.commit()
        return jsonify(serialize_comment(kind, comment))

    @bp.delete(f"{prefix}-comments/<int:comment_id>")
    @require_permission("comment.add")
    def comments_delete(comment_id: int):
        s = db_session()
        comment = svc.get_child(s, kind.comment_model, comment_id, "Comment")
        deleted = serialize_comment(kind, comment)
        s.delete(comment)
        s.commit()
        return jsonify({"message": "Comment deleted successfully", "deletedComment": deleted})

    # ---------- Team assignments ----------
    @bp.get(f"{prefix}-employees")
    def assignments_list():
        rows = svc.list_assignments(
            db_session(),
            kind,
            parent_id=query_int(kind.id_param),
            employee_id=query_int("employeeId"),
        )
        return jsonify([serialize_assignment(kind, r) for r in rows])

    @bp.get(f"{prefix}-employees/<int:row_id>")
    def assignment_detail(row_id: int):
        row = svc.get_child(db_session(), kind.assignment_model, row_id, f"{kind.label} assignment")
        return jsonify(serialize_assignment(kind, row))

    @bp.post(f"{prefix}-employees")
    @require_permission(edit_permission)
    def assignments_create():
        s = db_session()
        row = svc.create_assignment(s, kind, json_body(), g.current_user)
        s.commit()
        return jsonify(serialize_assignment(kind, row)), 201

    @bp.put(f"{prefix}-employees/<int:row_id>")
    @require_permission(edit_permission)
    def assignments_update(row_id: int):
        s = db_session()
        row = svc.get_child(s, kind.assignment_model, row_id, f"{kind.label} assignment")
        svc.update_assignment(s, kind, row, json_body(), g.current_user)
        s.commit()
        return jsonify(serialize_assignment(kind, row))

    @bp.delete(f"{prefix}-employees/<int:row_id>")
    @require_permission(edit_permission)
    def assignments_delete(row_id: int):
        s = db_session()
        row = svc.get_child(s, kind.assignment_model, row_id, f"{kind.label} assignment")
        deleted = serialize_assignment(kind, row)
        svc.delete_assignment(s, kind, row, g.current_user)
        s.commit()
        return jsonify({"message": "Assignment deleted successfully", "deletedAssignment": deleted})

    # ---------- Activity ----------
    @bp.get(f"{prefix}-activity-log/<int:parent_id>")
    def activity_log(parent_id: int):
        s = db_session()
        svc.get_parent(s, kind, parent_id)
        return jsonify([serialize_activity(kind, ev) for ev in svc.list_activity(s, kind, parent_id)])

    return bp


poc_bp = make_blueprint(POC)
project_bp = make_blueprint(PROJECT)

attachments_bp = Blueprint("attachments", __name__)


@attachments_bp.get("/attachments/<attachment_uuid>/download")
def attachment_download(attachment_uuid: str):
    s = db_session()
    kind, att = svc.find_attachment(s, attachment_uuid)
    storage = storage_from_config(current_app.config)
    try:
        fobj = storage.read_stream(att.storage_key)
    except StorageError as e:
        current_app.logger.error("Attachment %s is missing from storage: %s", att.uuid, e)
        raise NotFound("Attachment file not found.") from e

    record_event(
        s,
        actor=g.current_user,
        action="ATTACHMENT_DOWNLOADED",
        entity_type=kind.name,
        entity_id=kind.parent_id_of(att),
        details={"filename": att.original_filename},
    )
    s.commit()
    current_app.logger.info(
        "Attachment download uuid=%s by user_id=%s ip=%s", att.uuid, g.current_user.id, request.remote_addr
    )
    return send_file(
        fobj,
        mimetype=att.mime_type or "application/octet-stream",
        as_attachment=True,
        download_name=att.original_filename,
    )
