import base64
import csv
import io

from fastapi.testclient import TestClient

from app.api.main import app
from conftest import application_row

client = TestClient(app)


def submission(**data):
    body = {
        "full_name": "Asha Verma",
        "email": "asha@example.com",
        "phone": "9876543210",
        "department": "Tech",
        "address": "12 MG Road, Pune",
    }
    body.update(data)
    return {"kind": "individual", "data": body, "files": {}}


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_submit_application_with_document(fake_db):
    payload = submission()
    payload["files"]["resume"] = {
        "name": "my cv.pdf",
        "type": "application/pdf",
        "base64": base64.b64encode(b"%PDF-1.4 resume").decode("ascii"),
    }

    response = client.post("/api/applications", json=payload)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "Pending"

    rows = fake_db.tables["applications"]
    assert len(rows) == 1
    assert rows[0]["form_data"]["full_name"] == "Asha Verma"
    assert rows[0]["documents"]["resume"].startswith("https://storage.test/candidate-documents/")
    assert f"candidate-documents/{body['id']}/resume_my_cv.pdf" in fake_db.uploads


def test_submit_team_application(fake_db):
    payload = {
        "kind": "team",
        "data": {
            "team_name": "Byte Builders",
            "leader_name": "Ravi Kumar",
            "email": "ravi@example.com",
            "track": "Tech",
            "members": ["Meera", "Kiran"],
        },
    }
    response = client.post("/api/applications", json=payload)
    assert response.status_code == 201
    assert fake_db.tables["applications"][0]["kind"] == "team"


def test_submit_rejects_invalid_payloads(fake_db):
    # 1. Bad email
    response = client.post("/api/applications", json=submission(email="nope"))
    assert response.status_code == 422

    # 2. Unknown department
    response = client.post("/api/applications", json=submission(department="Legal"))
    assert response.status_code == 400
    assert "Department must be one of" in response.json()["detail"]

    # 3. File over the size limit
    payload = submission()
    payload["files"]["photo"] = {
        "name": "big.png",
        "type": "image/png",
        "base64": base64.b64encode(b"x" * (5 * 1024 * 1024 + 1)).decode("ascii"),
    }
    response = client.post("/api/applications", json=payload)
    assert response.status_code == 400
    assert "exceeds maximum" in response.json()["detail"]

    # 4. Wrong content type and broken base64
    payload = submission()
    payload["files"]["photo"] = {"name": "a.pdf", "type": "application/pdf", "base64": "JVBERg=="}
    assert client.post("/api/applications", json=payload).status_code == 400
    payload["files"]["photo"] = {"name": "a.png", "type": "image/png", "base64": "***"}
    assert client.post("/api/applications", json=payload).status_code == 400

    assert fake_db.tables.get("applications", []) == []


def test_staff_routes_require_token(fake_db):
    assert client.get("/api/applications").status_code in (401, 403)
    response = client.get("/api/applications", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_non_staff_token_is_forbidden(fake_db):
    from app.services.container import auth_service

    fake_db.tables["users"] = [{
        "id": "6f1c2a3e-0d3b-4c1a-9f55-1a2b3c4d5e6f",
        "email": "student@example.com",
        "role": "student",
    }]
    token = auth_service.generate_token("6f1c2a3e-0d3b-4c1a-9f55-1a2b3c4d5e6f", "student")
    response = client.get("/api/applications", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


def test_list_and_filter_applications(fake_db, staff_user):
    fake_db.tables["applications"] = [
        application_row("Asha Verma", "Tech", created_at="2026-01-10T10:00:00+05:30"),
        application_row("Kiran Rao", "HR", status="Verified", created_at="2026-01-11T10:00:00+05:30"),
    ]

    response = client.get("/api/applications", headers=staff_user["headers"])
    assert response.status_code == 200
    names = [r["full_name"] for r in response.json()]
    assert names == ["Kiran Rao", "Asha Verma"]

    response = client.get("/api/applications?status=Verified", headers=staff_user["headers"])
    assert [r["full_name"] for r in response.json()] == ["Kiran Rao"]

    response = client.get("/api/applications?department=Tech", headers=staff_user["headers"])
    assert [r["full_name"] for r in response.json()] == ["Asha Verma"]


def test_get_update_delete_application(fake_db, staff_user):
    row = application_row("Asha Verma")
    fake_db.tables["applications"] = [row]
    headers = staff_user["headers"]

    response = client.get(f"/api/applications/{row['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["kind"] == "individual"

    response = client.patch(f"/api/applications/{row['id']}/status", json={"status": "Verified"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "Verified"
    assert fake_db.tables["applications"][0]["status"] == "Verified"

    response = client.patch(f"/api/applications/{row['id']}/status", json={"status": "Approved"}, headers=headers)
    assert response.status_code == 422

    response = client.delete(f"/api/applications/{row['id']}", headers=headers)
    assert response.status_code == 200
    assert fake_db.tables["applications"] == []

    assert client.get(f"/api/applications/{row['id']}", headers=headers).status_code == 404
    assert client.delete(f"/api/applications/{row['id']}", headers=headers).status_code == 404
    response = client.patch(f"/api/applications/{row['id']}/status", json={"status": "Rejected"}, headers=headers)
    assert response.status_code == 404


def test_backend_failure_maps_to_502(fake_db, staff_user):
    fake_db.failing.add("applications")
    response = client.get("/api/applications", headers=staff_user["headers"])
    assert response.status_code == 502


def test_export_csv(fake_db, staff_user):
    row = application_row("Asha Verma", "Tech")
    row["documents"] = {"resume": "https://storage.test/candidate-documents/x/resume.pdf"}
    fake_db.tables["applications"] = [row]

    response = client.get("/api/applications/export", headers=staff_user["headers"])

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert rows[0]["full_name"] == "Asha Verma"
    assert rows[0]["doc_resume"].endswith("resume.pdf")


def test_dashboard_summary(fake_db, staff_user):
    fake_db.tables["applications"] = [
        application_row("Asha Verma", "Tech"),
        application_row("Kiran Rao", "HR", status="Verified"),
        application_row("Meera Iyer", "HR", status="Rejected"),
    ]

    response = client.get("/api/dashboard/summary", headers=staff_user["headers"])

    assert response.status_code == 200
    body = response.json()
    assert (body["total"], body["pending"], body["verified"], body["rejected"]) == (3, 1, 1, 1)
    assert body["departments"]["HR"] == 2
    assert body["departments"]["Marketing"] == 0
    assert len(body["recent"]) == 3


def pdf(name):
    return {"name": name, "type": "application/pdf", "base64": base64.b64encode(b"%PDF-1.4 doc").decode("ascii")}


def test_failed_insert_removes_uploaded_documents(fake_db):
    fake_db.failing.add("applications")
    payload = submission()
    payload["files"]["resume"] = pdf("cv.pdf")

    response = client.post("/api/applications", json=payload)

    assert response.status_code == 502
    assert fake_db.uploads == {}


def test_failed_upload_removes_earlier_documents(fake_db):
    fake_db.failing_uploads.add("pan")
    payload = submission()
    payload["files"]["resume"] = pdf("cv.pdf")
    payload["files"]["pan"] = pdf("pan.pdf")

    response = client.post("/api/applications", json=payload)

    assert response.status_code == 502
    assert "PAN Card" in response.json()["detail"]
    assert fake_db.uploads == {}
    assert fake_db.tables.get("applications", []) == []
