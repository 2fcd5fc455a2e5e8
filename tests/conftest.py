import pytest

from app.apex import create_app
from app.apex.auth import TokenError
from app.apex.db import get_engine, session_scope
from app.apex.models import Base
from app.apex.modules.customers.models import Customer
from app.apex.modules.employees.models import Employee

# key -> (first, last, company role, application role)
PEOPLE = {
    "admin": ("Ada", "Admin", "Admin", "admin"),
    "lead": ("Layla", "Lead", "Lead", "lead"),
    "am": ("Adam", "Manager", "Account Manager", "account_manager"),
    "eng1": ("Tariq", "Tech", "Technical Team", "technical_team"),
    "eng2": ("Sara", "Support", "Technical Team", "technical_team"),
    "presales": ("Pat", "Presales", "Presales", "presales"),
    "pm": ("Paula", "Planner", "Project Manager", "project_manager"),
}


def email_for(key: str) -> str:
    return f"{key}@taqniyat.com.sa"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    for k in ("SMTP_HOST", "SMTP_USER", "SMTP_PASS", "CORS_ORIGINS", "FIREBASE_CREDENTIALS"):
        monkeypatch.delenv(k, raising=False)

    def fake_verify_token(id_token):
        if id_token == "bad-token":
            raise TokenError("Token expired")
        return {"email": id_token, "uid": f"uid-{id_token}"}

    monkeypatch.setattr("app.apex.auth.verify_token", fake_verify_token)

    flask_app = create_app()
    Base.metadata.create_all(bind=get_engine(flask_app))
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def mail(monkeypatch):
    """Captured outbound emails as (to, subject, text) tuples."""
    sent = []

    def fake_send_email(to, subject, text, html=None):
        sent.append((to, subject, text))
        return True

    monkeypatch.setattr("app.apex.mailer.send_email", fake_send_email)
    return sent


@pytest.fixture()
def people(app):
    """Seed one employee per company role; returns {key: employee id}."""
    ids = {}
    with session_scope(app) as s:
        rows = {}
        for key, (first, last, role, app_role) in PEOPLE.items():
            e = Employee(
                first_name=first,
                last_name=last,
                email=email_for(key),
                job_title=role,
                role=role,
                application_role=app_role,
                skills=[],
                certificates=[],
            )
            s.add(e)
            rows[key] = e
        s.flush()
        ids = {key: e.id for key, e in rows.items()}
    return ids


@pytest.fixture()
def auth(people):
    def headers(key: str = "admin") -> dict:
        return {"Authorization": f"Bearer {email_for(key)}"}

    return headers


@pytest.fixture()
def customer_id(app, people):
    with session_scope(app) as s:
        c = Customer(
            name="Riyadh Bank",
            contact_person="Omar",
            contact_email="omar@example.com",
            contact_phone="0500000000",
            industry="Banking",
            organization_type="Private",
            account_manager_id=people["am"],
        )
        s.add(c)
        s.flush()
        cid = c.id
    return cid


def poc_payload(people, customer_id, **overrides):
    payload = {
        "customerId": customer_id,
        "title": "Zero Trust Pilot",
        "technology": ["Kubernetes", "Istio"],
        "startDate": "2026-01-05",
        "endDate": "2026-02-05",
        "status": "Not Started",
        "leadId": people["lead"],
        "accountManagerId": people["am"],
        "isBudgetAllocated": True,
        "initialTeamAssignments": [
            {"employeeId": people["eng1"], "role": "Lead Engineer"},
            {"employeeId": people["eng2"], "role": "Supporting Engineer"},
        ],
    }
    payload.update(overrides)
    return payload


def project_payload(people, customer_id, **overrides):
    payload = {
        "customerId": customer_id,
        "title": "Core Banking Migration",
        "technology": ["OpenShift"],
        "startDate": "2026-03-01",
        "endDate": "2026-09-30",
        "statuses": ["Planning", "In Progress"],
        "accountManagerId": people["am"],
        "projectManagerId": people["pm"],
        "technicalLeadId": people["lead"],
        "initialTeamAssignments": [{"employeeId": people["eng1"], "role": "Lead Engineer"}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def make_poc(client, auth, people, customer_id):
    def _make(user: str = "am", **overrides) -> dict:
        r = client.post("/api/pocs", json=poc_payload(people, customer_id, **overrides), headers=auth(user))
        assert r.status_code == 201, r.json
        return r.json

    return _make


@pytest.fixture()
def make_project(client, auth, people, customer_id):
    def _make(**overrides) -> dict:
        r = client.post("/api/projects", json=project_payload(people, customer_id, **overrides), headers=auth("admin"))
        assert r.status_code == 201, r.json
        return r.json

    return _make
