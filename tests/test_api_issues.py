import pytest

FORM = {
    "title": "Broken streetlight",
    "description": "Dark corner by the park",
    "category": "Lighting",
    "latitude": "40.7128",
    "longitude": "-74.0060",
    "address": "Park Avenue",
}


def _headers(user_id):
    return {"X-User-ID": user_id}


def _create(client, user_id="citizen-1", files=None, **overrides):
    form = dict(FORM, **overrides)
    return client.post("/issues", data=form, files=files, headers=_headers(user_id))


@pytest.fixture
def issue_id(client, citizen):
    response = _create(client)
    assert response.status_code == 201
    return response.json()["data"]["id"]


def test_root_and_health(client):
    assert client.get("/").json()["service"] == "CivicTrack"
    assert client.get("/health").json()["status"] == "healthy"

    db_health = client.get("/health/db").json()
    assert db_health["connected"] is True
    assert db_health["database"] == "mock"


def test_create_issue_envelope(client, citizen):
    response = _create(client)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Issue reported successfully"
    data = body["data"]
    assert data["status"] == "Reported"
    assert data["isVisible"] is True
    assert data["user"] == citizen.user_id
    assert data["location"] == {"longitude": -74.006, "latitude": 40.7128}


def test_create_issue_with_image(client, citizen, media):
    files = [("images", ("pothole.png", b"\x89PNG fake", "image/png"))]
    response = _create(client, files=files)

    assert response.status_code == 201
    assert len(response.json()["data"]["images"]) == 1
    assert len(media.objects) == 1


def test_create_issue_rejects_unsupported_image(client, citizen, media):
    files = [("images", ("notes.txt", b"hello", "text/plain"))]
    response = _create(client, files=files)

    assert response.status_code == 422
    assert response.json()["error"]["field"] == "images"
    assert media.uploads == 0


def test_create_issue_requires_caller(client):
    response = client.post("/issues", data=FORM)
    assert response.status_code == 401
    assert response.json()["error"]["kind"] == "Unauthenticated"


def test_banned_user_is_rejected(client, add_user, db):
    add_user("troll", is_banned=True)
    response = _create(client, user_id="troll")

    assert response.status_code == 403
    assert response.json()["error"]["kind"] == "AuthorizationError"
    assert list(db.collection("issues").stream()) == []


def test_create_issue_validation_error_shape(client, citizen):
    response = _create(client, category="Parks")

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["kind"] == "ValidationError"
    assert error["field"] == "category"


def test_get_issue_counts_views_and_reports_upvote(client, citizen, issue_id):
    client.post(f"/issues/{issue_id}/upvote", headers=_headers(citizen.user_id))

    anonymous = client.get(f"/issues/{issue_id}").json()["data"]
    assert anonymous["views"] == 1
    assert "hasUpvoted" not in anonymous

    mine = client.get(f"/issues/{issue_id}", headers=_headers(citizen.user_id)).json()["data"]
    assert mine["views"] == 2
    assert mine["hasUpvoted"] is True


def test_get_missing_issue(client):
    response = client.get("/issues/nope")
    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": {"kind": "NotFound", "message": "Issue nope not found", "resource": "Issue", "id": "nope"},
    }


def test_upvote_toggles(client, citizen, issue_id):
    first = client.post(f"/issues/{issue_id}/upvote", headers=_headers(citizen.user_id)).json()
    second = client.post(f"/issues/{issue_id}/upvote", headers=_headers(citizen.user_id)).json()

    assert first["message"] == "Upvote added"
    assert first["data"] == {"upvoted": True, "upvotes": 1}
    assert second["message"] == "Upvote removed"
    assert second["data"] == {"upvoted": False, "upvotes": 0}


def test_list_issues_and_pagination(client, citizen):
    for n in range(3):
        _create(client, title=f"Issue {n}")

    body = client.get("/issues", params={"limit": 2}).json()
    assert len(body["data"]["issues"]) == 2
    assert body["data"]["pagination"] == {
        "currentPage": 1,
        "totalPages": 2,
        "totalItems": 3,
        "hasNext": True,
        "hasPrev": False,
    }


def test_list_issues_requires_both_coordinates(client):
    response = client.get("/issues", params={"lat": 40.7})
    assert response.status_code == 422
    assert response.json()["error"]["field"] == "lng"


def test_nearby_issues(client, citizen):
    near = _create(client).json()["data"]["id"]
    _create(client, latitude="41.5")

    body = client.get("/issues/nearby", params={"lat": 40.7128, "lng": -74.0060, "distance": 2000}).json()
    issues = body["data"]["issues"]
    assert [issue["id"] for issue in issues] == [near]
    assert issues[0]["distance"] == 0.0


def test_spam_report_and_auto_hide(client, add_user, issue_id):
    for reporter in ("r1", "r2", "r3"):
        add_user(reporter)
        response = client.post(
            f"/issues/{issue_id}/spam",
            json={"reason": "Spam"},
            headers=_headers(reporter),
        )
        assert response.status_code == 201

    assert response.json()["data"] == {"spamCount": 3, "hidden": True}
    assert client.get("/issues").json()["data"]["pagination"]["totalItems"] == 0


def test_duplicate_spam_report_conflict(client, citizen, issue_id):
    client.post(f"/issues/{issue_id}/spam", json={"reason": "Spam"}, headers=_headers(citizen.user_id))
    response = client.post(f"/issues/{issue_id}/spam", json={"reason": "Spam"}, headers=_headers(citizen.user_id))

    assert response.status_code == 409
    assert response.json()["error"]["kind"] == "Conflict"


def test_status_update_requires_admin(client, citizen, issue_id):
    response = client.patch(
        f"/issues/{issue_id}/status",
        json={"status": "Resolved"},
        headers=_headers(citizen.user_id),
    )
    assert response.status_code == 403


def test_status_update_and_invalid_transition(client, admin, issue_id):
    resolved = client.patch(
        f"/issues/{issue_id}/status",
        json={"status": "Resolved", "note": "Bulb replaced"},
        headers=_headers(admin.user_id),
    )
    assert resolved.status_code == 200
    assert resolved.json()["message"] == "Issue status updated to Resolved"

    response = client.patch(
        f"/issues/{issue_id}/status",
        json={"status": "In Progress"},
        headers=_headers(admin.user_id),
    )
    assert response.status_code == 409
    assert response.json()["error"] == {
        "kind": "InvalidTransition",
        "message": "Invalid status transition from Resolved to In Progress",
        "currentStatus": "Resolved",
        "requestedStatus": "In Progress",
        "allowedTransitions": [],
    }


def test_activity_timeline(client, admin, issue_id):
    client.patch(
        f"/issues/{issue_id}/status",
        json={"status": "In Progress"},
        headers=_headers(admin.user_id),
    )
    records = client.get(f"/issues/{issue_id}/activity").json()["data"]

    assert [record["action"] for record in records] == ["Status changed to In Progress", "Issue created"]
    assert records[0]["metadata"]["previous_status"] == "Reported"


def test_delete_issue(client, citizen, add_user, issue_id):
    add_user("stranger")
    refused = client.delete(f"/issues/{issue_id}", headers=_headers("stranger"))
    assert refused.status_code == 403

    response = client.delete(f"/issues/{issue_id}", headers=_headers(citizen.user_id))
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Issue deleted successfully", "data": None}
    assert client.get(f"/issues/{issue_id}").status_code == 404
