from __future__ import annotations

from flask import Blueprint, g, jsonify

from app.apex.db import db_session
from app.apex.modules.tasks.service import (
    create_task,
    delete_task,
    get_task,
    list_tasks,
    serialize_task,
    update_task,
)
from app.apex.utils import json_body, query_int

bp = Blueprint("tasks", __name__)


@bp.get("/tasks")
def tasks_list():
    project_id = query_int("projectId", required=True)
    return jsonify([serialize_task(t) for t in list_tasks(db_session(), project_id)])


@bp.post("/tasks")
def tasks_create():
    s = db_session()
    task = create_task(s, json_body(), g.current_user)
    s.commit()
    return jsonify(serialize_task(task)), 201


@bp.put("/tasks/<int:task_id>")
def tasks_update(task_id: int):
    s = db_session()
    task = update_task(s, get_task(s, task_id), json_body(), g.current_user)
    s.commit()
    return jsonify({"message": "Task updated successfully", "task": serialize_task(task)})


@bp.delete("/tasks/<int:task_id>")
def tasks_delete(task_id: int):
    s = db_session()
    delete_task(s, get_task(s, task_id), g.current_user)
    s.commit()
    return jsonify({"message": "Task and its subtasks deleted successfully", "id": task_id})
