"""Status history, comments with @mentions, team assignments, activity and attachments."""
import io

import pytest

from app.apex.db import session_scope
from app.apex.modules.employees.models import Employee
from app.apex.modules.engagements.mentions import extract_mentioned_ids, to_html, to_plain_text
from app.apex.modules.engagements.team import TeamMember, diff_team


class TestMentions:
    def test_extracts_distinct_ids_in_order(self):
        text = "@[Sara](employee:7) see @[Tariq](employee:3) and @[Sara](employee:7)"
        assert extract_mentioned_ids(text) == [7, 3]

    def test_ignores_non_numeric_ids(self):
        assert extract_mentioned_ids("@[Bot](employee:abc) @[Sara](employee: 7 )") == [7]
        assert extract_mentioned_ids(None) == []

    def test_plain_text(self):
        assert to_plain_text("ping @[Sara Support](employee:7)!") == "ping @Sara Support!"

    def test_html_escapes_and_bolds(self):
        html = to_html("<b>hi</b> @[Sara & Co](employee:7)\nbye")
        assert html == "&lt;b&gt;hi&lt;/b&gt; <strong>@Sara &amp; Co</strong><br>bye"


class TestDiffTeam:
    def test_added_removed_and_role_changes(self):
        current = {1: "Lead Engineer", 2: "Supporting Engineer", 3: "Supporting Engineer"}
        desired = [
            TeamMember(employee_id=1, role="Supporting Engineer"),
            TeamMember(employee_id=3, role="Supporting Engineer"),
            TeamMember(employee_id=4, role="Lead Engineer"),
        ]
        diff = diff_team(current, desired)
        assert [m.employee_id for m in diff.added] == [4]
        assert diff.removed == [2]
        assert diff.role_changed == [(1, "Lead Engineer", "Supporting Engineer")]

    def test_no_changes(self):
        diff = diff_team({5: "Supporting Engineer"}, [TeamMember(employee_id=5, role="Supporting Engineer")])
        assert diff.is_empty


@pytest.fixture()
def poc(make_poc):
    return make_poc()


def _status_id(client, auth, poc_id):
    r = client.get(f"/api/poc-status-comments?pocId={poc_id}", headers=auth())
    assert r.status_code == 200
    return r.json[0]["id"]


# ---------- Status history ----------
def test_status_history_crud(client, auth, poc):
    r = client.get("/api/poc-status-comments", headers=auth())
    assert r.status_code == 400

    r = client.post(
        "/api/poc-status-comments",
        json={"pocId": poc["id"], "status": "On Hold", "startedAt": "2026-01-10T09:00:00Z"},
        headers=auth("eng1"),
    )
    assert r.status_code == 403

    r = client.post("/api/poc-status-comments", json={"pocId": poc["id"], "status": "On Hold"}, headers=auth("lead"))
    assert r.status_code == 400

    r = client.post(
        "/api/poc-status-comments",
        json={"pocId": 999, "status": "On Hold", "startedAt": "2026-01-10T09:00:00Z"},
        headers=auth("lead"),
    )
    assert r.status_code == 404

    r = client.post(
        "/api/poc-status-comments",
        json={"pocId": poc["id"], "status": "On Hold", "startedAt": "2026-01-10T09:00:00+03:00"},
        headers=auth("lead"),
    )
    assert r.status_code == 201
    row = r.json
    assert row["startedAt"] == "2026-01-10T06:00:00"
    assert row["endedAt"] is None

    url = f"/api/poc-status-comments/{row['id']}"
    assert client.put(url, json={}, headers=auth("lead")).status_code == 400
    assert client.put(url, json={"endedAt": "2026-01-01T00:00:00"}, headers=auth("lead")).status_code == 400

    r = client.put(url, json={"endedAt": "2026-01-12T06:00:00", "status": "Done"}, headers=auth("lead"))
    assert r.status_code == 200
    assert r.json["status"] == "Done"
    assert r.json["endedAt"] == "2026-01-12T06:00:00"

    r = client.get(f"/api/poc-status-comments?pocId={poc['id']}", headers=auth())
    assert len(r.json) == 2

    r = client.delete(url, headers=auth("lead"))
    assert r.status_code == 200
    assert r.json["deletedStatusComment"]["id"] == row["id"]
    assert client.get(url, headers=auth()).status_code == 404


# ---------- Comments ----------
def test_comment_mentions_notify_others(client, auth, people, poc, mail):
    status_id = _status_id(client, auth, poc["id"])
    del mail[:]

    text = (
        f"Blocked on firewall rules, @[Sara Support](employee:{people['eng2']}) "
        f"please check. cc @[Tariq Tech](employee:{people['eng1']})"
    )
    r = client.post(
        "/api/poc-comments",
        json={"statusCommentId": status_id, "authorId": people["eng1"], "comment": text},
        headers=auth("eng1"),
    )
    assert r.status_code == 201
    assert r.json["author"]["id"] == people["eng1"]

    assert len(mail) == 1
    to, subject, body = mail[0]
    assert to == "eng2@taqniyat.com.sa"
    assert subject == "Tariq Tech mentioned you on PoC: Zero Trust Pilot"
    assert "@Sara Support please check" in body

    r = client.get(f"/api/poc-status-comments/{status_id}", headers=auth())
    assert [c["comment"] for c in r.json["comments"]] == [text]


def test_comment_validation_and_edits(client, auth, people, poc):
    status_id = _status_id(client, auth, poc["id"])

    r = client.post("/api/poc-comments", json={"statusCommentId": status_id, "authorId": people["eng1"]}, headers=auth())
    assert r.status_code == 400
    r = client.post(
        "/api/poc-comments", json={"statusCommentId": 999, "authorId": people["eng1"], "comment": "x"}, headers=auth()
    )
    assert r.status_code == 404
    r = client.post("/api/poc-comments", json={"statusCommentId": status_id, "authorId": 999, "comment": "x"}, headers=auth())
    assert r.status_code == 404

    r = client.post(
        "/api/poc-comments",
        json={"statusCommentId": status_id, "authorId": people["lead"], "comment": "First pass done"},
        headers=auth("lead"),
    )
    comment_id = r.json["id"]

    r = client.put(f"/api/poc-comments/{comment_id}", json={"comment": "  "}, headers=auth("lead"))
    assert r.status_code == 400
    r = client.put(f"/api/poc-comments/{comment_id}", json={"comment": "Second pass done"}, headers=auth("lead"))
    assert r.status_code == 200
    assert r.json["comment"] == "Second pass done"
    assert r.json["updatedAt"] is not None

    r = client.get(f"/api/poc-comments?statusCommentId={status_id}", headers=auth())
    assert [c["id"] for c in r.json] == [comment_id]

    # a status entry with comments cannot be removed
    r = client.delete(f"/api/poc-status-comments/{status_id}", headers=auth())
    assert r.status_code == 409

    r = client.delete(f"/api/poc-comments/{comment_id}", headers=auth("lead"))
    assert r.status_code == 200
    assert r.json["deletedComment"]["id"] == comment_id
    assert client.delete(f"/api/poc-status-comments/{status_id}", headers=auth()).status_code == 200


# ---------- Team assignments ----------
def _assignment_id(client, auth, poc_id, employee_id):
    r = client.get(f"/api/poc-employees?pocId={poc_id}&employeeId={employee_id}", headers=auth())
    return [a for a in r.json if a["unassignedAt"] is None][0]["id"]


def test_assignment_rules(client, auth, people, poc):
    def post(employee, role):
        return client.post(
            "/api/poc-employees",
            json={"pocId": poc["id"], "employeeId": people[employee], "role": role},
            headers=auth("lead"),
        )

    assert client.post("/api/poc-employees", json={"pocId": poc["id"]}, headers=auth()).status_code == 400
    # single Lead Engineer per PoC
    assert post("eng2", "Lead Engineer").status_code == 409
    # same employee, same role, still active
    assert post("eng2", "Supporting Engineer").status_code == 409
    # company role must match
    assert post("pm", "Supporting Engineer").status_code == 400
    assert post("eng2", "Technical Lead").status_code == 400
    assert post("eng2", "Project Manager").status_code == 400

    eng1_row = _assignment_id(client, auth, poc["id"], people["eng1"])
    eng2_row = _assignment_id(client, auth, poc["id"], people["eng2"])

    assert client.put(f"/api/poc-employees/{eng2_row}", json={}, headers=auth()).status_code == 400
    r = client.put(f"/api/poc-employees/{eng2_row}", json={"role": "Lead Engineer"}, headers=auth())
    assert r.status_code == 409

    r = client.put(f"/api/poc-employees/{eng1_row}", json={"unassignedAt": "2026-01-20T08:00:00"}, headers=auth())
    assert r.status_code == 200
    assert r.json["unassignedAt"] == "2026-01-20T08:00:00"

    r = client.put(f"/api/poc-employees/{eng2_row}", json={"role": "Lead Engineer"}, headers=auth())
    assert r.status_code == 200
    assert r.json["role"] == "Lead Engineer"

    r = client.get(f"/api/pocs/{poc['id']}", headers=auth())
    roles = {a["employeeId"]: a["role"] for a in r.json["teamAssignments"]}
    assert roles == {
        people["lead"]: "Technical Lead",
        people["am"]: "Account Manager",
        people["eng2"]: "Lead Engineer",
    }


def test_delete_assignments(client, auth, people, poc):
    lead_row = _assignment_id(client, auth, poc["id"], people["lead"])
    r = client.delete(f"/api/poc-employees/{lead_row}", headers=auth())
    assert r.status_code == 400

    eng2_row = _assignment_id(client, auth, poc["id"], people["eng2"])
    r = client.delete(f"/api/poc-employees/{eng2_row}", headers=auth())
    assert r.status_code == 200
    assert r.json["deletedAssignment"]["employeeId"] == people["eng2"]
    assert client.get(f"/api/poc-employees/{eng2_row}", headers=auth()).status_code == 404

    r = client.get(f"/api/poc-activity-log/{poc['id']}", headers=auth())
    unassigned = [ev["details"] for ev in r.json if ev["activityType"] == "TEAM_MEMBER_UNASSIGNED"]
    assert unassigned == [{"member": "Sara Support", "role": "Supporting Engineer"}]


def test_reactivating_assignment_respects_role_slots(app, client, auth, people, poc):
    with session_scope(app) as s:
        other_lead = Employee(
            first_name="Lama", last_name="Leader", email="lama@taqniyat.com.sa", role="Lead", application_role="lead"
        )
        s.add(other_lead)
        s.flush()
        other_lead_id = other_lead.id

    old_lead_row = _assignment_id(client, auth, poc["id"], people["lead"])
    assert client.put(f"/api/pocs/{poc['id']}", json={"leadId": other_lead_id}, headers=auth()).status_code == 200

    r = client.put(f"/api/poc-employees/{old_lead_row}", json={"unassignedAt": None}, headers=auth())
    assert r.status_code == 409

    # Lead Engineer slot: eng2 takes it over, then eng1's old row cannot come back
    eng1_row = _assignment_id(client, auth, poc["id"], people["eng1"])
    eng2_row = _assignment_id(client, auth, poc["id"], people["eng2"])
    client.put(f"/api/poc-employees/{eng1_row}", json={"unassignedAt": "2026-01-20T08:00:00"}, headers=auth())
    assert client.put(f"/api/poc-employees/{eng2_row}", json={"role": "Lead Engineer"}, headers=auth()).status_code == 200
    r = client.put(f"/api/poc-employees/{eng1_row}", json={"unassignedAt": None}, headers=auth())
    assert r.status_code == 409

    r = client.get(f"/api/poc-employees?pocId={poc['id']}", headers=auth())
    active = [a for a in r.json if a["unassignedAt"] is None]
    assert [a["employeeId"] for a in active if a["role"] == "Technical Lead"] == [other_lead_id]
    assert [a["employeeId"] for a in active if a["role"] == "Lead Engineer"] == [people["eng2"]]

    # slot free again
    client.put(f"/api/poc-employees/{eng2_row}", json={"role": "Supporting Engineer"}, headers=auth())
    r = client.put(f"/api/poc-employees/{eng1_row}", json={"unassignedAt": None}, headers=auth())
    assert r.status_code == 200
    assert r.json["unassignedAt"] is None


def test_editing_unassigned_row_logs_no_second_unassign(client, auth, people, poc):
    eng2_row = _assignment_id(client, auth, poc["id"], people["eng2"])
    r = client.put(f"/api/poc-employees/{eng2_row}", json={"unassignedAt": "2026-01-20T08:00:00"}, headers=auth())
    assert r.status_code == 200
    r = client.put(f"/api/poc-employees/{eng2_row}", json={"role": "Lead Engineer"}, headers=auth())
    assert r.status_code == 200
    assert r.json["role"] == "Lead Engineer"

    r = client.get(f"/api/poc-activity-log/{poc['id']}", headers=auth())
    unassigned = [ev["details"] for ev in r.json if ev["activityType"] == "TEAM_MEMBER_UNASSIGNED"]
    assert unassigned == [{"member": "Sara Support", "role": "Supporting Engineer"}]


def test_activity_log_for_missing_parent(client, auth, people):
    assert client.get("/api/poc-activity-log/999", headers=auth()).status_code == 404
    assert client.get("/api/project-activity-log/999", headers=auth()).status_code == 404


# ---------- Attachments ----------
def test_attachment_upload_and_download(client, auth, poc):
    url = f"/api/pocs/{poc['id']}/attachments"
    r = client.post(
        url,
        data={"file": (io.BytesIO(b"hello"), "notes.txt"), "description": "Kickoff notes"},
        content_type="multipart/form-data",
        headers=auth("lead"),
    )
    assert r.status_code == 201
    att = r.json
    assert att["originalFilename"] == "notes.txt"
    assert att["fileSizeBytes"] == 5
    assert att["uploadedBy"]["name"] == "Layla Lead"

    r = client.get(f"/api/attachments/{att['uuid']}/download", headers=auth("eng1"))
    assert r.status_code == 200
    assert r.data == b"hello"
    assert "attachment" in r.headers["Content-Disposition"]
    assert "notes.txt" in r.headers["Content-Disposition"]
    r.close()

    r = client.get(f"/api/pocs/{poc['id']}", headers=auth())
    assert [a["uuid"] for a in r.json["attachments"]] == [att["uuid"]]

    r = client.get(f"/api/poc-activity-log/{poc['id']}", headers=auth())
    types = [ev["activityType"] for ev in r.json]
    assert "ATTACHMENT_UPLOADED" in types
    assert "ATTACHMENT_DOWNLOADED" in types


def test_attachment_validation(client, auth, poc):
    url = f"/api/pocs/{poc['id']}/attachments"
    r = client.post(url, data={"description": "No file"}, content_type="multipart/form-data", headers=auth())
    assert r.status_code == 400
    assert r.json["error"] == "No file uploaded."

    r = client.post(
        url,
        data={"file": (io.BytesIO(b"hello"), "notes.txt")},
        content_type="multipart/form-data",
        headers=auth(),
    )
    assert r.status_code == 400
    assert r.json["error"] == "Description is required."

    r = client.get("/api/attachments/does-not-exist/download", headers=auth())
    assert r.status_code == 404


# ---------- Project flavour ----------
def test_project_active_statuses_and_holders(client, auth, people, make_project):
    project = make_project()
    pid = project["id"]

    r = client.get(f"/api/project-status-comments/active-statuses?projectId={pid}", headers=auth())
    assert r.status_code == 200
    assert sorted(cs["status"] for cs in r.json) == ["In Progress", "Planning"]

    r = client.post(
        "/api/project-employees",
        json={"projectId": pid, "employeeId": people["pm"], "role": "Project Manager"},
        headers=auth(),
    )
    assert r.status_code == 409

    r = client.get(f"/api/project-employees?projectId={pid}&employeeId={people['lead']}", headers=auth())
    lead_row = r.json[0]["id"]
    r = client.put(f"/api/project-employees/{lead_row}", json={"unassignedAt": "2026-04-01T00:00:00"}, headers=auth())
    assert r.status_code == 200
    assert client.get(f"/api/projects/{pid}", headers=auth()).json["technicalLeadId"] is None

    r = client.post(
        "/api/project-employees",
        json={"projectId": pid, "employeeId": people["lead"], "role": "Technical Lead"},
        headers=auth(),
    )
    assert r.status_code == 201
    assert client.get(f"/api/projects/{pid}", headers=auth()).json["technicalLeadId"] == people["lead"]

    r = client.get(f"/api/project-activity-log/{pid}", headers=auth())
    types = [ev["activityType"] for ev in r.json]
    assert "TEAM_MEMBER_UNASSIGNED" in types
    assert "TEAM_MEMBER_ASSIGNED" in types
