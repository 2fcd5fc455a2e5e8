"""PoC lifecycle: request, Presales review, updates, visibility and delete."""
from conftest import poc_payload

from app.apex.db import session_scope
from app.apex.models import ArchivedRecord
from app.apex.modules.employees.models import Employee
from app.apex.modules.pocs.service import validate_poc_payload


def _activity_types(client, auth, poc_id):
    r = client.get(f"/api/poc-activity-log/{poc_id}", headers=auth())
    assert r.status_code == 200
    return [ev["activityType"] for ev in r.json]


class TestValidatePocPayload:
    def test_missing_fields_listed(self):
        errors = validate_poc_payload({"title": "X"})
        assert errors[0].startswith("Missing required fields:")
        assert "Technical Lead" in errors[0]
        assert "Account Manager" in errors[0]

    def test_unknown_status(self):
        errors = validate_poc_payload({"status": "Paused"}, partial=True)
        assert errors and errors[0].startswith("Invalid PoC status 'Paused'")

    def test_technology_must_be_non_empty_list(self):
        assert validate_poc_payload({"technology": []}, partial=True) == ["Technology must be a non-empty list."]
        assert validate_poc_payload({"technology": "Kafka"}, partial=True) == ["Technology must be a non-empty list."]

    def test_flags_must_be_boolean(self):
        assert validate_poc_payload({"isVendorAware": "yes"}, partial=True) == ["isVendorAware must be a boolean."]


def test_create_poc(client, auth, people, make_poc, mail):
    poc = make_poc()
    assert poc["workflowStatus"] == "pending_presales_review"
    assert poc["status"] == "Not Started"
    assert poc["leadId"] == people["lead"]
    assert poc["accountManagerId"] == people["am"]
    assert poc["createdBy"]["id"] == people["am"]
    assert poc["isBudgetAllocated"] is True
    assert poc["isVendorAware"] is False

    roles = [(a["employeeId"], a["role"]) for a in poc["teamAssignments"]]
    assert roles == [
        (people["lead"], "Technical Lead"),
        (people["am"], "Account Manager"),
        (people["eng1"], "Lead Engineer"),
        (people["eng2"], "Supporting Engineer"),
    ]
    assert poc["teamAssignments"][0]["assignedAt"] == "2026-01-05T00:00:00"

    assert [st["status"] for st in poc["statusHistory"]] == ["Not Started"]
    assert poc["statusHistory"][0]["endedAt"] is None

    # requester confirmation + Presales review request
    assert sorted(to for to, _subject, _text in mail) == ["am@taqniyat.com.sa", "presales@taqniyat.com.sa"]
    assert "POC_CREATED" in _activity_types(client, auth, poc["id"])


def test_create_poc_skips_lead_and_am_in_team_list(client, auth, people, make_poc):
    poc = make_poc(
        initialTeamAssignments=[
            {"employeeId": people["lead"], "role": "Supporting Engineer"},
            {"employeeId": people["eng2"], "role": "Supporting Engineer"},
        ]
    )
    assert len(poc["teamAssignments"]) == 3


def test_create_poc_validation(client, auth, people, customer_id):
    def post(**overrides):
        return client.post("/api/pocs", json=poc_payload(people, customer_id, **overrides), headers=auth("am"))

    r = client.post("/api/pocs", json={"title": "Incomplete"}, headers=auth("am"))
    assert r.status_code == 400
    assert r.json["error"].startswith("Missing required fields")

    assert post(status="Paused").status_code == 400
    assert post(endDate="2025-12-31").status_code == 400
    assert post(customerId=999).status_code == 404
    assert post(leadId=999).status_code == 404

    # Technical Lead must be a Lead, team members must be Technical Team
    assert post(leadId=people["eng1"]).status_code == 400
    r = post(initialTeamAssignments=[{"employeeId": people["pm"], "role": "Supporting Engineer"}])
    assert r.status_code == 400

    r = post(
        initialTeamAssignments=[
            {"employeeId": people["eng1"], "role": "Lead Engineer"},
            {"employeeId": people["eng2"], "role": "Lead Engineer"},
        ]
    )
    assert r.status_code == 409

    r = post(initialTeamAssignments=[{"employeeId": people["eng1"], "role": "Technical Lead"}])
    assert r.status_code == 400

    assert client.get("/api/pocs", headers=auth()).json == []


def test_create_poc_needs_permission(client, auth, people, customer_id):
    r = client.post("/api/pocs", json=poc_payload(people, customer_id), headers=auth("lead"))
    assert r.status_code == 403


def test_approve_poc(client, auth, people, make_poc, mail):
    poc = make_poc()
    del mail[:]

    r = client.put(f"/api/pocs/{poc['id']}/approve", json={}, headers=auth("presales"))
    assert r.status_code == 400

    r = client.put(f"/api/pocs/{poc['id']}/approve", json={"description": "Go ahead"}, headers=auth("am"))
    assert r.status_code == 403

    r = client.put(f"/api/pocs/{poc['id']}/approve", json={"description": "Go ahead"}, headers=auth("presales"))
    assert r.status_code == 200
    assert r.json["workflowStatus"] == "active"
    assert r.json["description"] == "Go ahead"
    assert sorted(to for to, _s, _t in mail) == ["am@taqniyat.com.sa", "lead@taqniyat.com.sa"]

    # only pending PoCs can be reviewed
    r = client.put(f"/api/pocs/{poc['id']}/approve", json={"description": "Again"}, headers=auth("presales"))
    assert r.status_code == 404

    r = client.get(f"/api/poc-activity-log/{poc['id']}", headers=auth())
    workflow = [ev["details"] for ev in r.json if ev["activityType"] == "STATUS_UPDATED"]
    assert workflow == [{"field": "Workflow", "from": "pending_presales_review", "to": "active"}]


def test_reject_poc(client, auth, make_poc):
    poc = make_poc()
    r = client.put(f"/api/pocs/{poc['id']}/reject", json={"reason": "No budget"}, headers=auth("presales"))
    assert r.status_code == 200
    assert r.json["workflowStatus"] == "rejected"

    r = client.get("/api/pocs", headers=auth("presales"))
    assert r.json == []


def test_list_visibility_by_role(client, auth, make_poc):
    poc = make_poc()

    def visible(user):
        r = client.get("/api/pocs", headers=auth(user))
        assert r.status_code == 200
        return [p["id"] for p in r.json]

    assert visible("admin") == [poc["id"]]
    assert visible("presales") == [poc["id"]]
    assert visible("am") == [poc["id"]]
    assert visible("lead") == []
    assert visible("eng1") == []

    client.put(f"/api/pocs/{poc['id']}/approve", json={"description": "Approved"}, headers=auth("presales"))
    assert visible("lead") == [poc["id"]]
    assert visible("eng1") == [poc["id"]]
    assert visible("pm") == [poc["id"]]

    row = client.get("/api/pocs", headers=auth("lead")).json[0]
    assert row["leadName"] == "Layla Lead"
    assert row["amName"] == "Adam Manager"
    assert row["customerName"] == "Riyadh Bank"
    assert row["teamMemberCount"] == 4


def test_update_fields_and_status(client, auth, make_poc):
    poc = make_poc()
    r = client.put(
        f"/api/pocs/{poc['id']}",
        json={"title": "Zero Trust Rollout", "status": "In Progress", "lastComment": "Kickoff done"},
        headers=auth("lead"),
    )
    assert r.status_code == 200
    body = r.json
    assert body["title"] == "Zero Trust Rollout"
    assert body["lastComment"] == "Kickoff done"
    history = body["statusHistory"]
    assert [st["status"] for st in history] == ["In Progress", "Not Started"]
    assert history[0]["endedAt"] is None
    assert history[1]["endedAt"] is not None

    r = client.get(f"/api/poc-activity-log/{poc['id']}", headers=auth())
    details = {ev["activityType"]: ev["details"] for ev in r.json if ev["activityType"] != "POC_CREATED"}
    assert details["FIELD_UPDATED"] == {"field": "Title", "from": "Zero Trust Pilot", "to": "Zero Trust Rollout"}
    assert details["STATUS_UPDATED"] == {"from": "Not Started", "to": "In Progress"}


def test_update_validation(client, auth, people, make_poc):
    poc = make_poc()
    url = f"/api/pocs/{poc['id']}"
    assert client.put(url, json={"endDate": "2025-01-01"}, headers=auth()).status_code == 400
    assert client.put(url, json={"startDate": ""}, headers=auth()).status_code == 400
    assert client.put(url, json={"leadId": people["am"]}, headers=auth()).status_code == 400
    assert client.put("/api/pocs/999", json={"title": "Nope"}, headers=auth()).status_code == 404
    assert client.put(url, json={"title": "Nope"}, headers=auth("eng1")).status_code == 403


def test_update_team_notifies_changes(client, auth, people, make_poc, mail):
    poc = make_poc()
    del mail[:]

    r = client.put(
        f"/api/pocs/{poc['id']}",
        json={"teamAssignments": [{"employeeId": people["eng1"], "role": "Supporting Engineer"}]},
        headers=auth("lead"),
    )
    assert r.status_code == 200
    roles = {a["employeeId"]: a["role"] for a in r.json["teamAssignments"]}
    assert roles[people["eng1"]] == "Supporting Engineer"
    assert people["eng2"] not in roles

    subjects = {to: subject for to, subject, _t in mail}
    assert subjects["eng1@taqniyat.com.sa"].startswith("Your role changed on PoC")
    assert subjects["eng2@taqniyat.com.sa"].startswith("You've been unassigned from PoC")

    types = _activity_types(client, auth, poc["id"])
    assert "TEAM_MEMBER_UNASSIGNED" in types
    assert "TEAM_MEMBER_ASSIGNED" in types

    # the unassigned row is kept as history
    r = client.get(f"/api/poc-employees?pocId={poc['id']}&employeeId={people['eng2']}", headers=auth())
    assert len(r.json) == 1
    assert r.json[0]["unassignedAt"] is not None


def test_change_lead(app, client, auth, people, make_poc):
    poc = make_poc()
    with session_scope(app) as s:
        new_lead = Employee(
            first_name="Lama", last_name="Leader", email="lama@taqniyat.com.sa", role="Lead", application_role="lead"
        )
        s.add(new_lead)
        s.flush()
        new_lead_id = new_lead.id

    r = client.put(f"/api/pocs/{poc['id']}", json={"leadId": new_lead_id}, headers=auth())
    assert r.status_code == 200
    assert r.json["leadId"] == new_lead_id
    assert r.json["lead"]["name"] == "Lama Leader"

    r = client.get(f"/api/poc-activity-log/{poc['id']}", headers=auth())
    lead_events = [ev["details"] for ev in r.json if ev["activityType"] == "LEAD_ASSIGNED"]
    assert lead_events == [{"from": "Layla Lead", "to": "Lama Leader"}]


def test_delete_poc_archives_snapshot(app, client, auth, make_poc):
    poc = make_poc()
    assert client.delete(f"/api/pocs/{poc['id']}", headers=auth("am")).status_code == 403

    r = client.delete(f"/api/pocs/{poc['id']}", headers=auth())
    assert r.status_code == 200
    assert r.json["deletedPoc"]["title"] == "Zero Trust Pilot"

    assert client.get(f"/api/pocs/{poc['id']}", headers=auth()).status_code == 404
    assert client.delete(f"/api/pocs/{poc['id']}", headers=auth()).status_code == 404
    assert client.get(f"/api/poc-status-comments?pocId={poc['id']}", headers=auth()).json == []
    with session_scope(app) as s:
        rec = s.query(ArchivedRecord).filter_by(entity_type="poc", entity_id=poc["id"]).one()
        assert len(rec.snapshot["teamAssignments"]) == 4
