import pytest

from tests.conftest import at


def _iso(value):
    return value.isoformat()


@pytest.fixture()
def event_id(client):
    res = client.post("/api/v1/events/", json={
        "title": "Semana Acadêmica",
        "start_at": _iso(at(8)),
        "end_at": _iso(at(18)),
    })
    assert res.status_code == 201, res.text
    return res.json()["id"]


@pytest.fixture()
def session_id(client, event_id):
    res = client.post(f"/api/v1/events/{event_id}/sessions", json={
        "name": "Abertura",
        "start_at": _iso(at(8)),
        "end_at": _iso(at(12)),
        "time_in_start": _iso(at(9)),
        "time_in_end": _iso(at(9, 30)),
        "time_out_start": _iso(at(11)),
        "time_out_end": _iso(at(11, 30)),
    })
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["has_qr_seed"] is True
    return body["id"]


@pytest.fixture()
def student_id(client):
    res = client.post("/api/v1/students/", json={"name": "Ana", "email": "Ana@Example.org"})
    assert res.status_code == 201, res.text
    assert res.json()["email"] == "ana@example.org"
    return res.json()["id"]


def _scan(client, qr, **extra):
    return client.post("/api/v1/scanning/process", json={"qr_data": qr, "organizer_id": "org-1", **extra})


def test_health(client):
    res = client.get("/healthz")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_metrics_exposed(client):
    client.get("/healthz")
    res = client.get("/metrics")
    assert res.status_code == 200


def test_event_crud(client, event_id):
    res = client.get(f"/api/v1/events/{event_id}")
    assert res.status_code == 200
    assert res.json()["title"] == "Semana Acadêmica"

    res = client.put(f"/api/v1/events/{event_id}", json={"venue": "Auditório"})
    assert res.status_code == 200
    assert res.json()["venue"] == "Auditório"

    res = client.put(f"/api/v1/events/{event_id}", json={"end_at": _iso(at(7))})
    assert res.status_code == 400

    assert client.delete(f"/api/v1/events/{event_id}").status_code == 204
    assert client.get(f"/api/v1/events/{event_id}").status_code == 404


def test_session_validation(client, event_id):
    res = client.post(f"/api/v1/events/{event_id}/sessions", json={
        "name": "Sem fim",
        "start_at": _iso(at(8)),
        "end_at": _iso(at(12)),
        "time_in_start": _iso(at(9)),
    })
    assert res.status_code == 422


def test_session_update_and_list(client, event_id, session_id):
    res = client.put(f"/api/v1/events/{event_id}/sessions/{session_id}", json={"name": "Palestra"})
    assert res.status_code == 200
    assert res.json()["name"] == "Palestra"

    res = client.put(f"/api/v1/events/{event_id}/sessions/{session_id}", json={"time_in_end": _iso(at(8, 30))})
    assert res.status_code == 400

    res = client.get(f"/api/v1/events/{event_id}/sessions")
    assert [s["id"] for s in res.json()] == [session_id]


def test_session_reports_qr_seed_without_leaking_it(client, event_id, session_id):
    listed = client.get(f"/api/v1/events/{event_id}/sessions").json()
    assert listed[0]["has_qr_seed"] is True
    assert "qr_seed" not in listed[0]

    res = client.put(f"/api/v1/events/{event_id}/sessions/{session_id}", json={"rotate_qr_seed": True})
    assert res.status_code == 200
    assert res.json()["has_qr_seed"] is True
    assert "qr_seed" not in res.json()


def test_qr_endpoints(client, event_id, session_id, student_id):
    res = client.get(f"/api/v1/events/{event_id}/sessions/{session_id}/qr")
    assert res.status_code == 200
    body = res.json()
    assert body["qr_text"].endswith(f":session:{session_id}:{event_id}")
    assert body["image_data_uri"].startswith("data:image/png;base64,")

    res = client.get(f"/api/v1/students/{student_id}/qr")
    assert res.json()["qr_text"].endswith(f":student:{student_id}")

    assert client.get("/api/v1/students/999/qr").status_code == 404


def test_scan_flow(client, clock, event_id, session_id, student_id):
    qr = client.get(f"/api/v1/events/{event_id}/sessions/{session_id}/qr").json()["qr_text"]

    clock.now = at(9, 15)
    res = _scan(client, qr, student_id=str(student_id))
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["scan_type"] == "time_in"
    assert body["attendance_id"]

    clock.now = at(9, 20)
    body = _scan(client, qr, student_id=str(student_id)).json()
    assert body["success"] is False
    assert body["reason"] == "multiple_time_in_not_allowed"

    clock.now = at(11, 5)
    body = _scan(client, f"DTP:student:{student_id}", session_id=str(session_id)).json()
    assert body["success"] is True
    assert body["scan_type"] == "time_out"

    res = client.get("/api/v1/attendance/", params={"session_id": session_id})
    rows = res.json()
    assert [r["scan_type"] for r in rows] == ["time_out", "time_in"]
    assert rows[0]["student"]["id"] == student_id

    res = client.get(f"/api/v1/attendance/sessions/{session_id}/stats")
    assert res.json()["total_scans"] == 2
    assert res.json()["incomplete_students"] == 0

    res = client.get(f"/api/v1/attendance/students/{student_id}/sessions/{session_id}")
    assert [r["scan_type"] for r in res.json()] == ["time_out", "time_in"]


def test_scan_rejections(client, clock, session_id, student_id):
    clock.now = at(10, 5)
    body = _scan(client, "not a code").json()
    assert body["success"] is False
    assert body["reason"] == "invalid_qr_code"

    body = _scan(client, f"DTP:student:{student_id}", session_id=str(session_id)).json()
    assert body["reason"] == "invalid_time"


def test_scan_request_validation(client):
    assert _scan(client, "").status_code == 422
    res = client.post("/api/v1/scanning/process", json={"qr_data": "x"})
    assert res.status_code == 422


def test_session_windows(client, clock, session_id):
    clock.now = at(9, 10)
    res = client.get(f"/api/v1/scanning/sessions/{session_id}/windows")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "active_time_in"
    assert body["windows"]["time_in"]["is_active"] is True
    assert body["windows"]["time_in"]["time_remaining_minutes"] == 20

    assert client.get("/api/v1/scanning/sessions/999/windows").status_code == 404


def test_duplicate_student_email(client, student_id):
    res = client.post("/api/v1/students/", json={"name": "Outra", "email": "ana@example.org"})
    assert res.status_code == 409
