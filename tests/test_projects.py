"""Projects: create, role-filtered listing, updates, recent activity and delete."""
from conftest import project_payload

from app.apex.db import session_scope
from app.apex.models import ArchivedRecord
from app.apex.modules.projects.service import validate_project_payload


def _activity(client, auth, project_id):
    r = client.get(f"/api/project-activity-log/{project_id}", headers=auth())
    assert r.status_code == 200
    return r.json


class TestValidateProjectPayload:
    def test_missing_fields_listed(self):
        errors = validate_project_payload({"title": "X"})
        assert errors[0].startswith("Missing required fields:")
        assert "Project Manager" in errors[0]

    def test_statuses_checked(self):
        assert validate_project_payload({"statuses": []}, partial=True) == ["Statuses must be a non-empty list."]
        errors = validate_project_payload({"statuses": ["Planning", "Sleeping"]}, partial=True)
        assert errors and errors[0].startswith("Invalid project status(es): Sleeping")


def test_create_project(client, auth, people, make_project):
    project = make_project()
    assert project["projectManagerId"] == people["pm"]
    assert project["accountManagerId"] == people["am"]
    assert project["technicalLeadId"] == people["lead"]
    assert project["projectManager"]["name"] == "Paula Planner"
    assert sorted(project["statuses"]) == ["In Progress", "Planning"]
    assert sorted(st["status"] for st in project["statusHistory"]) == ["In Progress", "Planning"]
    assert project["tasks"] == []
    assert project["createdBy"]["id"] == people["admin"]

    roles = [a["role"] for a in project["teamAssignments"]]
    assert roles == ["Technical Lead", "Account Manager", "Project Manager", "Lead Engineer"]

    events = _activity(client, auth, project["id"])
    types = [ev["activityType"] for ev in events]
    for expected in ("PROJECT_CREATED", "LEAD_ASSIGNED", "FIELD_UPDATED", "STATUS_UPDATED"):
        assert expected in types
    fields = sorted(ev["details"]["field"] for ev in events if ev["activityType"] == "FIELD_UPDATED")
    assert fields == ["Customer", "Start Date", "Target End Date", "Technology"]
    status_event = [ev["details"] for ev in events if ev["activityType"] == "STATUS_UPDATED"][0]
    assert status_event == {"from": "None", "to": "Planning, In Progress"}


def test_create_project_without_technical_lead(client, auth, people, make_project):
    project = make_project(technicalLeadId=None)
    assert project["technicalLeadId"] is None
    types = [ev["activityType"] for ev in _activity(client, auth, project["id"])]
    assert "LEAD_ASSIGNED" not in types


def test_create_project_validation(client, auth, people, customer_id):
    def post(user="admin", **overrides):
        return client.post("/api/projects", json=project_payload(people, customer_id, **overrides), headers=auth(user))

    assert post(statuses=["Sleeping"]).status_code == 400
    assert post(projectManagerId=None).status_code == 400
    assert post(projectManagerId=people["am"]).status_code == 400
    assert post(sourcePocId=999).status_code == 404
    assert post(endDate="2026-01-01").status_code == 400
    assert post(user="lead").status_code == 403
    assert client.get("/api/projects", headers=auth()).json == []


def test_list_projects_by_role(client, auth, make_project):
    project = make_project()

    def visible(user):
        r = client.get("/api/projects", headers=auth(user))
        assert r.status_code == 200
        return [p["id"] for p in r.json]

    for user in ("admin", "pm", "am", "lead", "eng1", "presales"):
        assert visible(user) == [project["id"]], user
    assert visible("eng2") == []

    row = client.get("/api/projects", headers=auth("pm")).json[0]
    assert row["projectManagerName"] == "Paula Planner"
    assert row["teamMemberCount"] == 4
    assert row["statuses"] == ["In Progress", "Planning"]


def test_update_statuses_and_fields(client, auth, make_project):
    project = make_project()
    r = client.put(
        f"/api/projects/{project['id']}",
        json={"statuses": ["UAT"], "technology": ["OpenShift", "Ansible"], "lastComment": "UAT started"},
        headers=auth(),
    )
    assert r.status_code == 200
    body = r.json
    assert body["statuses"] == ["UAT"]
    assert body["technology"] == ["OpenShift", "Ansible"]
    open_rows = [st["status"] for st in body["statusHistory"] if st["endedAt"] is None]
    assert open_rows == ["UAT"]
    assert len(body["statusHistory"]) == 3

    events = _activity(client, auth, project["id"])
    status_events = [ev["details"] for ev in events if ev["activityType"] == "STATUS_UPDATED"]
    assert {"from": "Planning, In Progress", "to": "UAT"} in status_events
    tech = [ev["details"] for ev in events if ev["activityType"] == "FIELD_UPDATED" and ev["details"]["from"] != "None"]
    assert tech == [{"field": "Technology", "from": "OpenShift", "to": "OpenShift, Ansible"}]


def test_update_project_manager(client, auth, people, make_project):
    project = make_project()
    r = client.post(
        "/api/employees",
        json={
            "firstName": "Majed",
            "lastName": "Milestone",
            "email": "majed@taqniyat.com.sa",
            "phoneNumber": "0500000002",
            "workExt": 77,
            "jobTitle": "Project Manager",
            "role": "Project Manager",
            "status": "Active",
            "skills": [],
            "certificates": [],
        },
        headers=auth(),
    )
    assert r.status_code == 201
    new_pm = r.json["id"]

    r = client.put(f"/api/projects/{project['id']}", json={"projectManagerId": new_pm}, headers=auth())
    assert r.status_code == 200
    assert r.json["projectManagerId"] == new_pm
    assert r.json["projectManager"]["name"] == "Majed Milestone"

    events = _activity(client, auth, project["id"])
    pm_events = [ev["details"] for ev in events if ev["activityType"] == "PM_ASSIGNED"]
    assert pm_events == [{"from": "Paula Planner", "to": "Majed Milestone"}]

    assert client.get("/api/projects", headers=auth("pm")).json == []


def test_update_team(client, auth, people, make_project, mail):
    project = make_project()
    r = client.put(
        f"/api/projects/{project['id']}",
        json={
            "teamAssignments": [
                {"employeeId": people["eng1"], "role": "Lead Engineer"},
                {"employeeId": people["eng2"], "role": "Supporting Engineer"},
                # managed-role holders in the list are ignored
                {"employeeId": people["pm"], "role": "Supporting Engineer"},
            ]
        },
        headers=auth(),
    )
    assert r.status_code == 200
    assert len(r.json["teamAssignments"]) == 5
    assert [to for to, _s, _t in mail] == ["eng2@taqniyat.com.sa"]


def test_recent_activity(client, auth, make_project):
    project = make_project()
    r = client.get("/api/recent-activity/projects", headers=auth("eng2"))
    assert r.status_code == 200
    assert r.json
    assert {ev["projectTitle"] for ev in r.json} == {"Core Banking Migration"}
    assert all(ev["projectId"] == project["id"] for ev in r.json)


def test_delete_project(app, client, auth, people, make_project):
    project = make_project()
    r = client.post(
        "/api/tasks",
        json={"projectId": project["id"], "taskName": "Design", "createdBy": people["admin"]},
        headers=auth(),
    )
    assert r.status_code == 201

    assert client.delete(f"/api/projects/{project['id']}", headers=auth("pm")).status_code == 403
    r = client.delete(f"/api/projects/{project['id']}", headers=auth())
    assert r.status_code == 200
    assert r.json["deletedProject"]["tasks"][0]["taskName"] == "Design"

    assert client.get(f"/api/projects/{project['id']}", headers=auth()).status_code == 404
    assert client.delete(f"/api/projects/{project['id']}", headers=auth()).status_code == 404
    assert client.get(f"/api/tasks?projectId={project['id']}", headers=auth()).json == []
    with session_scope(app) as s:
        assert s.query(ArchivedRecord).filter_by(entity_type="project", entity_id=project["id"]).count() == 1
