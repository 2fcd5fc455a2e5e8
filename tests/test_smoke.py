def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_needs_no_token(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_missing_token_is_unauthorized(client, people):
    r = client.get("/api/pocs")
    assert r.status_code == 401
    assert r.json["error"] == "Unauthorized: No token provided."


def test_invalid_token_is_forbidden(client, people):
    r = client.get("/api/pocs", headers={"Authorization": "Bearer bad-token"})
    assert r.status_code == 403
    assert "Invalid or expired token" in r.json["error"]


def test_unknown_employee_is_not_found(client, people):
    r = client.get("/api/pocs", headers={"Authorization": "Bearer nobody@taqniyat.com.sa"})
    assert r.status_code == 404


def test_user_profile(client, auth):
    r = client.get("/api/auth/user-profile", headers=auth("lead"))
    assert r.status_code == 200
    assert r.json["email"] == "lead@taqniyat.com.sa"
    assert r.json["applicationRole"] == "lead"
    assert r.json["employeeDbRole"] == "Lead"
    assert r.json["name"] == "Layla Lead"


def test_enums(client, auth):
    r = client.get("/api/enums/poc-statuses", headers=auth())
    assert r.status_code == 200
    assert "In Progress" in r.json

    r = client.get("/api/enums/no-such-enum", headers=auth())
    assert r.status_code == 404


def test_permission_denied_for_wrong_role(client, auth):
    r = client.post("/api/employees", json={}, headers=auth("eng1"))
    assert r.status_code == 403
    assert r.json["error"] == "You do not have permission to perform this action."


def test_only_exact_health_paths_skip_auth(client, people):
    assert client.get("/health-admin").status_code == 401
    assert client.get("/healthcheck").status_code == 401
