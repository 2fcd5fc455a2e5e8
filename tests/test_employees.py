"""Employees, technical profiles and @mention search."""
import pytest

from app.apex.modules.employees.service import is_company_email, level_from_grade, validate_employee_payload


def _employee_payload(**overrides):
    payload = {
        "firstName": "Noura",
        "lastName": "Network",
        "email": "noura@taqniyat.com.sa",
        "phoneNumber": "+966500000001",
        "workExt": "1234",
        "jobTitle": "Network Engineer",
        "role": "Technical Team",
        "status": "Active",
        "location": "Remote",
        "skills": ["BGP", "OSPF"],
        "certificates": "CCNA, CCNP",
    }
    payload.update(overrides)
    return payload


class TestLevelFromGrade:
    """Tests for level_from_grade()"""

    @pytest.mark.parametrize(
        "grade,level",
        [
            ("G1", "Fresh"),
            ("G2", "Junior I"),
            ("G4", "Junior III"),
            ("G5", "Specialist I"),
            ("G6", "Specialist II"),
            ("G8", "Specialist III"),
            ("G9", "Senior I"),
            ("G11", "Senior III"),
            ("G12", "Lead"),
            ("G15", "Senior Technical Manager"),
        ],
    )
    def test_known_grades(self, grade, level):
        assert level_from_grade(grade) == level

    def test_case_and_whitespace(self):
        assert level_from_grade(" g3 ") == "Junior II"

    def test_unknown_grades(self):
        assert level_from_grade("G16") is None
        assert level_from_grade("G0") is None
        assert level_from_grade("Senior") is None
        assert level_from_grade(None) is None


class TestValidateEmployeePayload:
    def test_reports_missing_fields(self):
        errors = validate_employee_payload({"firstName": "A"})
        assert errors[0].startswith("Missing required fields:")
        assert "Last name" in errors[0]

    def test_rejects_outside_domain(self):
        errors = validate_employee_payload(_employee_payload(email="someone@gmail.com"))
        assert errors == ["Email must be a valid @taqniyat.com.sa address."]

    def test_partial_skips_required(self):
        assert validate_employee_payload({"jobTitle": "Architect"}, partial=True) == []

    def test_company_email(self):
        assert is_company_email("a.b@taqniyat.com.sa")
        assert not is_company_email("a.b@taqniyat.com")
        assert not is_company_email(None)


def test_create_technical_employee_gets_default_profile(client, auth):
    r = client.post("/api/employees", json=_employee_payload(), headers=auth())
    assert r.status_code == 201
    body = r.json
    assert body["workExt"] == 1234
    assert body["certificates"] == ["CCNA", "CCNP"]
    assert body["applicationRole"] == "technical_team"
    assert body["technicalProfile"]["grade"] == "G1"
    assert body["technicalProfile"]["level"] == "Fresh"
    assert body["technicalProfile"]["team"] == "Delivery"


def test_create_non_technical_employee_has_no_profile(client, auth):
    r = client.post(
        "/api/employees",
        json=_employee_payload(email="lina@taqniyat.com.sa", role="Presales"),
        headers=auth(),
    )
    assert r.status_code == 201
    assert r.json["technicalProfile"] is None

    r = client.get(f"/api/employees/{r.json['id']}/technical-profile", headers=auth())
    assert r.status_code == 404


def test_create_employee_validation(client, auth):
    r = client.post("/api/employees", json=_employee_payload(email="x@example.com"), headers=auth())
    assert r.status_code == 400
    assert "taqniyat.com.sa" in r.json["error"]

    r = client.post("/api/employees", json=_employee_payload(role="Astronaut"), headers=auth())
    assert r.status_code == 400


def test_duplicate_email_conflicts(client, auth):
    r = client.post("/api/employees", json=_employee_payload(email="eng1@taqniyat.com.sa"), headers=auth())
    assert r.status_code == 409


def test_list_filters_by_role(client, auth, people):
    r = client.get("/api/employees?role=Technical%20Team", headers=auth("eng1"))
    assert r.status_code == 200
    assert sorted(e["id"] for e in r.json) == sorted([people["eng1"], people["eng2"]])


def test_update_employee(client, auth, people):
    r = client.put(
        f"/api/employees/{people['eng2']}",
        json={"jobTitle": "Senior Engineer", "workExt": ""},
        headers=auth(),
    )
    assert r.status_code == 200
    assert r.json["jobTitle"] == "Senior Engineer"
    assert r.json["workExt"] is None

    r = client.put(f"/api/employees/{people['eng2']}", json={"firstName": "  "}, headers=auth())
    assert r.status_code == 400


def test_update_to_technical_role_creates_profile(client, auth, people):
    r = client.put(f"/api/employees/{people['presales']}", json={"role": "Managed Services"}, headers=auth())
    assert r.status_code == 200
    assert r.json["technicalProfile"]["level"] == "Fresh"


def test_technical_profile_grade_sets_level(client, auth, people):
    r = client.put(
        f"/api/employees/{people['eng1']}/technical-profile",
        json={"grade": "g9", "yearsOfExperience": 7, "fieldsCovered": ["Cloud", "Security"]},
        headers=auth(),
    )
    assert r.status_code == 200
    assert r.json["grade"] == "G9"
    assert r.json["level"] == "Senior I"
    assert r.json["fieldsCovered"] == ["Cloud", "Security"]

    r = client.get(f"/api/employees/{people['eng1']}/technical-profile", headers=auth("eng1"))
    assert r.status_code == 200
    assert r.json["yearsOfExperience"] == 7
    assert r.json["employee"]["id"] == people["eng1"]


def test_technical_profile_rejects_bad_values(client, auth, people):
    url = f"/api/employees/{people['eng1']}/technical-profile"
    assert client.put(url, json={"grade": "G42"}, headers=auth()).status_code == 400
    assert client.put(url, json={"yearsOfExperience": -1}, headers=auth()).status_code == 400
    assert client.put(url, json={"unknown": 1}, headers=auth()).status_code == 400


def test_mention_search(client, auth, people):
    r = client.get("/api/employees/search/mentions?q=tar", headers=auth("eng2"))
    assert r.status_code == 200
    assert [m["id"] for m in r.json] == [str(people["eng1"])]
    assert r.json[0]["display"] == "Tariq Tech"

    r = client.get("/api/employees/search/mentions?q=sara%20sup", headers=auth())
    assert [m["id"] for m in r.json] == [str(people["eng2"])]

    r = client.get("/api/employees/search/mentions", headers=auth())
    assert r.status_code == 400


def test_delete_employee(client, auth, people):
    r = client.delete(f"/api/employees/{people['eng2']}", headers=auth())
    assert r.status_code == 200
    assert r.json["deletedEmployee"]["email"] == "eng2@taqniyat.com.sa"

    r = client.get(f"/api/employees/{people['eng2']}", headers=auth())
    assert r.status_code == 404
    assert client.delete(f"/api/employees/{people['eng2']}", headers=auth()).status_code == 404
