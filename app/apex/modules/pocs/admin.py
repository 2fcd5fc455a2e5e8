from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.apex.db import db_session
from app.apex.modules.engagements.kinds import POC
from app.apex.modules.engagements.serializers import serialize_attachment
from app.apex.modules.engagements.service import upload_attachment
from app.apex.modules.pocs.service import (
    approve_poc,
    create_poc,
    delete_poc,
    get_poc,
    list_pocs,
    reject_poc,
    serialize_poc,
    serialize_poc_row,
    update_poc,
)
from app.apex.notifications import (
    send_poc_approval_notifications,
    send_poc_request_notifications,
    send_team_change_notifications,
)
from app.apex.rbac import require_permission
from app.apex.utils import json_body

bp = Blueprint("pocs", __name__)


@bp.get("/pocs")
@require_permission("poc.view")
def pocs_list():
    s = db_session()
    return jsonify([serialize_poc_row(p) for p in list_pocs(s, g.current_user)])


@bp.get("/pocs/<int:poc_id>")
@require_permission("poc.view")
def poc_detail(poc_id: int):
    s = db_session()
    return jsonify(serialize_poc(get_poc(s, poc_id)))


@bp.post("/pocs")
@require_permission("poc.create")
def pocs_create():
    s = db_session()
    poc, presales = create_poc(s, json_body(), g.current_user)
    s.commit()

    send_poc_request_notifications(poc, g.current_user, presales)
    return jsonify(serialize_poc(poc)), 201


@bp.put("/pocs/<int:poc_id>/approve")
@require_permission("poc.approve")
def poc_approve(poc_id: int):
    s = db_session()
    poc, am, lead = approve_poc(s, poc_id, json_body(), g.current_user)
    s.commit()

    if am is not None and lead is not None:
        send_poc_approval_notifications(poc, g.current_user, am, lead)
    else:
        current_app.logger.warning("PoC %s approved without an active AM/TL; no approval emails sent", poc.id)
    return jsonify(serialize_poc(poc))


@bp.put("/pocs/<int:poc_id>/reject")
@require_permission("poc.approve")
def poc_reject(poc_id: int):
    s = db_session()
    poc = reject_poc(s, poc_id, json_body(), g.current_user)
    s.commit()
    return jsonify(serialize_poc(poc))


@bp.put("/pocs/<int:poc_id>")
@require_permission("poc.edit")
def pocs_update(poc_id: int):
    s = db_session()
    poc, changes = update_poc(s, poc_id, json_body(), g.current_user)
    s.commit()

    send_team_change_notifications(POC, poc, changes, g.current_user)
    return jsonify(serialize_poc(poc))


@bp.delete("/pocs/<int:poc_id>")
@require_permission("poc.delete")
def pocs_delete(poc_id: int):
    s = db_session()
    deleted = delete_poc(s, poc_id, g.current_user)
    s.commit()
    return jsonify({"message": "PoC archived and deleted successfully", "deletedPoc": deleted})


@bp.post("/pocs/<int:poc_id>/attachments")
@require_permission("poc.edit")
def poc_attachment_upload(poc_id: int):
    s = db_session()
    poc = get_poc(s, poc_id)
    att = upload_attachment(s, POC, poc, request.files.get("file"), request.form.get("description"), g.current_user)
    s.commit()
    return jsonify(serialize_attachment(POC, att)), 201
