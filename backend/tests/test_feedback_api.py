from __future__ import annotations


def _submit(client, **overrides):
    body = {
        "name": "Priya",
        "email": "priya@example.com",
        "subject": "Love it",
        "message": "Team registration was smooth.",
    }
    body.update(overrides)
    return client.post("/api/feedback", json=body)


def test_public_submission(client):
    r = _submit(client, category="suggestion")
    assert r.status_code == 201
    assert r.json()["message"] == "Feedback submitted successfully"
    assert isinstance(r.json()["id"], int)


def test_submission_validation(client):
    r = _submit(client, email="nope", subject="")
    assert r.status_code == 400
    assert {"email", "subject"} <= set(r.json()["fieldErrors"])
    assert _submit(client, category="rant").status_code == 400


def test_inbox_is_admin_only(client, student):
    _submit(client)
    assert client.get("/api/feedback").status_code == 401
    assert client.get("/api/feedback", headers=student.headers).status_code == 403


def test_triage_flow(client, admin):
    fid = _submit(client, category="bug").json()["id"]
    _submit(client, email="raj@example.com")

    listed = client.get("/api/feedback", params={"category": "bug"}, headers=admin.headers).json()
    assert [f["id"] for f in listed["feedback"]] == [fid]

    r = client.put(
        f"/api/feedback/{fid}",
        json={"status": "resolved", "priority": "high", "adminNotes": "Fixed in 0.2"},
        headers=admin.headers,
    )
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "resolved" and data["priority"] == "high"
    assert data["resolvedBy"] == admin.id and data["resolvedAt"]
    assert data["adminNotes"] == "Fixed in 0.2"

    stats = client.get("/api/feedback/stats/summary", headers=admin.headers).json()
    assert stats["total"] == 2
    assert {s["_id"]: s["count"] for s in stats["byStatus"]} == {"new": 1, "resolved": 1}

    assert client.put(f"/api/feedback/{fid}", json={"status": "bogus"}, headers=admin.headers).status_code == 400
    assert client.delete(f"/api/feedback/{fid}", headers=admin.headers).status_code == 200
    assert client.get(f"/api/feedback/{fid}", headers=admin.headers).status_code == 404


def test_submission_records_rating_and_signed_in_user(client, admin, student):
    anonymous = _submit(client).json()["id"]
    signed_in = client.post(
        "/api/feedback",
        json={
            "name": "Asha",
            "email": "asha@example.com",
            "subject": "Rating",
            "message": "Could be faster.",
            "rating": 3,
        },
        headers=student.headers,
    ).json()["id"]

    first = client.get(f"/api/feedback/{anonymous}", headers=admin.headers).json()
    assert first["rating"] == 5 and first["userId"] is None
    second = client.get(f"/api/feedback/{signed_in}", headers=admin.headers).json()
    assert second["rating"] == 3 and second["userId"] == student.id

    assert _submit(client, rating=6).status_code == 400
