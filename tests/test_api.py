"""HTTP 层端到端测试（TestClient + 内存数据库 + 假支付网关）."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, auth_header
from web.dependencies import limiter

ISSUE_FORM = {
    "title": "Broken streetlight",
    "description": "Dark corner near the school",
    "category": "electricity",
    "location": "Road 7, Uttara",
}


@pytest.fixture
def admin_headers(login):
    return login(ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def staff_account(client, admin_headers, login):
    resp = client.post(
        "/admin/staff",
        json={"name": "Karim", "email": "karim@issuehub.org", "password": "karim-pass", "phone": "01700000000"},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    return {"id": resp.json()["staff"]["user_id"], "headers": login("karim@issuehub.org", "karim-pass")}


def _create_issue(client, headers, **overrides):
    resp = client.post("/issues", data={**ISSUE_FORM, **overrides}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["issue"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_missing_token_is_401_with_error_shape(client):
    resp = client.get("/issues")

    assert resp.status_code == 401
    assert resp.json()["error"] == "Unauthenticated"
    assert "message" in resp.json()


def test_invalid_token_is_401(client):
    resp = client.get("/issues", headers=auth_header("not-a-jwt"))
    assert resp.status_code == 401


def test_register_and_login(client, register, login):
    account = register("Nadia", "nadia@issuehub.org")

    assert account["user"]["role"] == "citizen"
    assert account["user"]["subscription"] == "free"
    assert "password_hash" not in account["user"]

    profile = client.get("/api/profile", headers=login("NADIA@issuehub.org", "password123"))
    assert profile.json()["email"] == "nadia@issuehub.org"


def test_register_duplicate_and_bad_body(client, register):
    register("Nadia", "nadia@issuehub.org")

    dup = client.post("/register", json={"name": "N", "email": "nadia@issuehub.org", "password": "password123"})
    assert dup.status_code == 400
    assert dup.json()["error"] == "InvalidOperation"

    bad = client.post("/register", json={"name": "N", "email": "not-an-email", "password": "password123"})
    assert bad.status_code == 400
    assert bad.json()["error"] == "ValidationError"


def test_register_citizen_with_avatar(client):
    resp = client.post(
        "/register/citizen",
        data={"name": "Rahim", "email": "rahim@issuehub.org", "password": "password123"},
        files={"avatar": ("me.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
    )

    assert resp.status_code == 200, resp.text
    avatar_url = resp.json()["user"]["avatar_url"]
    assert avatar_url.startswith("/uploads/")
    assert client.get(avatar_url).content == b"\x89PNG\r\n\x1a\nfake"


def test_upload_rejects_non_images(client, register):
    citizen = register("Nadia", "nadia@issuehub.org")
    resp = client.post(
        "/issues",
        data=ISSUE_FORM,
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=citizen["headers"],
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "ValidationError"


def test_wrong_password_is_401(client, register):
    register("Nadia", "nadia@issuehub.org")
    resp = client.post("/login", json={"email": "nadia@issuehub.org", "password": "nope"})
    assert resp.status_code == 401


def test_free_quota_over_http(client, register):
    citizen = register("Nadia", "nadia@issuehub.org")
    for n in range(3):
        _create_issue(client, citizen["headers"], title=f"Pothole {n}")

    resp = client.post("/issues", data=ISSUE_FORM, headers=citizen["headers"])

    assert resp.status_code == 403
    assert resp.json()["error"] == "QuotaExceeded"


def test_list_issues_shape_and_paging(client, register):
    citizen = register("Nadia", "nadia@issuehub.org")
    for n in range(3):
        _create_issue(client, citizen["headers"], title=f"Drain {n}")

    body = client.get("/issues", params={"limit": 2, "page": 2}, headers=citizen["headers"]).json()

    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert body["page"] == 2
    assert [i["title"] for i in body["issues"]] == ["Drain 0"]


def test_engagement_endpoints(client, register):
    owner = register("Nadia", "nadia@issuehub.org")
    other = register("Rahim", "rahim@issuehub.org")
    issue = _create_issue(client, owner["headers"])

    upvote = client.post(f"/issues/{issue['id']}/upvote", headers=other["headers"]).json()
    assert (upvote["upvoted"], upvote["upvote_count"]) == (True, 1)

    own = client.post(f"/issues/{issue['id']}/upvote", headers=owner["headers"])
    assert own.status_code == 400

    client.post(f"/issues/{issue['id']}/react", json={"type": "up"}, headers=other["headers"])
    client.post(f"/issues/{issue['id']}/react", json={"type": "down"}, headers=other["headers"])
    client.post(f"/issues/{issue['id']}/comment", json={"text": "Me too"}, headers=other["headers"])

    detail = client.get(f"/issues/{issue['id']}", headers=owner["headers"]).json()
    assert [r["type"] for r in detail["reactions"]] == ["down"]
    assert detail["comments"][0]["name"] == "Rahim"
    assert len(detail["timeline"]) == 1

    empty = client.post(f"/issues/{issue['id']}/comment", json={"text": ""}, headers=other["headers"])
    assert empty.status_code == 400


def test_issue_workflow_over_http(client, register, admin_headers, staff_account):
    citizen = register("Nadia", "nadia@issuehub.org")
    issue = _create_issue(client, citizen["headers"])

    forbidden = client.patch(
        f"/admin/issue/assign/{issue['id']}", json={"staff_id": staff_account["id"]}, headers=citizen["headers"]
    )
    assert forbidden.status_code == 403

    assigned = client.patch(
        f"/admin/issue/assign/{issue['id']}", json={"staff_id": staff_account["id"]}, headers=admin_headers
    ).json()["issue"]
    assert assigned["status"] == "in-progress"
    assert assigned["assigned_staff"] == {"id": staff_account["id"], "name": "Karim"}

    mine = client.get("/staff/issues/my-assigned", headers=staff_account["headers"]).json()
    assert [i["id"] for i in mine["issues"]] == [issue["id"]]

    edit = client.put(f"/issues/{issue['id']}", json={"title": "Too late"}, headers=citizen["headers"])
    assert edit.status_code == 409
    assert edit.json()["error"] == "InvalidTransition"

    resolved = client.patch(
        f"/staff/issue/{issue['id']}/status",
        json={"status": "resolved", "note": "Bulb replaced"},
        headers=staff_account["headers"],
    ).json()["issue"]
    assert resolved["status"] == "resolved"
    assert [t["message"] for t in resolved["timeline"]][-1] == "Bulb replaced"

    latest = client.get("/issues/resolved/latest").json()["issues"]
    assert [i["id"] for i in latest] == [issue["id"]]


def test_admin_reject_and_block(client, register, login, admin_headers):
    citizen = register("Nadia", "nadia@issuehub.org")
    issue = _create_issue(client, citizen["headers"])

    rejected = client.patch(
        f"/admin/issue/reject/{issue['id']}", json={"reason": "Duplicate"}, headers=admin_headers
    ).json()["issue"]
    assert rejected["status"] == "rejected"
    assert rejected["timeline"][-1]["message"] == "Duplicate"

    user_id = citizen["user"]["user_id"]
    assert client.patch(f"/admin/user/block/{user_id}", headers=admin_headers).status_code == 200

    blocked = client.get("/issues", headers=citizen["headers"])
    assert blocked.status_code == 403
    assert blocked.json()["error"] == "AccountBlocked"
    relogin = client.post("/login", json={"email": "nadia@issuehub.org", "password": "password123"})
    assert relogin.status_code == 403

    client.patch(f"/admin/user/unblock/{user_id}", headers=admin_headers)
    assert client.get("/issues", headers=citizen["headers"]).status_code == 200


def test_admin_endpoints_reject_citizens(client, register):
    citizen = register("Nadia", "nadia@issuehub.org")
    for path in ("/admin/users", "/admin/staff", "/admin/payments", "/admin/issues"):
        assert client.get(path, headers=citizen["headers"]).status_code == 403


def test_boost_payment_flow(client, provider, register, admin_headers):
    citizen = register("Nadia", "nadia@issuehub.org")
    issue = _create_issue(client, citizen["headers"])

    created = client.post(
        "/payment/boost/create-session", json={"issue_id": issue["id"]}, headers=citizen["headers"]
    ).json()
    assert created["url"]

    unpaid = client.post("/payment/verify", json={"session_id": created["session_id"]}, headers=citizen["headers"])
    assert unpaid.status_code == 402
    assert unpaid.json()["error"] == "PaymentIncomplete"

    provider.mark_paid(created["session_id"])
    for _ in range(2):
        verified = client.post(
            "/payment/verify", json={"session_id": created["session_id"]}, headers=citizen["headers"]
        )
        assert verified.status_code == 200
        assert verified.json()["success"] is True

    detail = client.get(f"/issues/{issue['id']}", headers=citizen["headers"]).json()
    assert detail["priority"] == "high"
    assert len(detail["timeline"]) == 2

    payments = client.get("/admin/payments", headers=admin_headers).json()["payments"]
    assert [p["session_id"] for p in payments] == [created["session_id"]]


def test_premium_payment_flow(client, provider, register):
    citizen = register("Nadia", "nadia@issuehub.org")

    created = client.post("/payment/premium/create-session", headers=citizen["headers"]).json()
    provider.mark_paid(created["session_id"])
    verified = client.post(
        "/payment/premium/verify", json={"session_id": created["session_id"]}, headers=citizen["headers"]
    )

    assert verified.status_code == 200
    profile = client.get("/api/profile", headers=citizen["headers"]).json()
    assert profile["subscription"] == "premium"

    issue = _create_issue(client, citizen["headers"])
    assert issue["priority"] == "high"


def test_provider_outage_is_503(client, provider, register):
    citizen = register("Nadia", "nadia@issuehub.org")
    created = client.post("/payment/premium/create-session", headers=citizen["headers"]).json()
    provider.unavailable = True

    resp = client.post("/payment/premium/verify", json={"session_id": created["session_id"]}, headers=citizen["headers"])

    assert resp.status_code == 503
    assert resp.json()["error"] == "PaymentProviderUnavailable"


def _uploaded_files(settings):
    return sorted(p.name for p in Path(settings.UPLOAD_DIR).iterdir())


def test_rejected_issue_upload_is_removed(client, settings, register):
    citizen = register("Nadia", "nadia@issuehub.org")
    for n in range(3):
        _create_issue(client, citizen["headers"], title=f"Pothole {n}")

    resp = client.post(
        "/issues",
        data=ISSUE_FORM,
        files={"image": ("pothole.jpg", b"\xff\xd8\xffjpeg", "image/jpeg")},
        headers=citizen["headers"],
    )

    assert resp.status_code == 403
    assert _uploaded_files(settings) == []


def test_failed_registration_avatar_is_removed(client, settings, register):
    register("Nadia", "nadia@issuehub.org")

    resp = client.post(
        "/register/citizen",
        data={"name": "Nadia", "email": "nadia@issuehub.org", "password": "password123"},
        files={"avatar": ("me.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
    )

    assert resp.status_code == 400
    assert _uploaded_files(settings) == []


def test_login_rate_limit_follows_app_settings(settings, provider):
    from web_app import create_app

    limited = settings.model_copy(update={"LOGIN_RATE_LIMIT": "2/minute"})
    app = create_app(limited, payment_provider=provider, configure_logging=False)
    limiter.enabled = True
    limiter.reset()
    try:
        with TestClient(app) as test_client:
            statuses = [
                test_client.post("/login", json={"email": "x@issuehub.org", "password": "nope"}).status_code
                for _ in range(3)
            ]
    finally:
        limiter.reset()

    assert statuses == [401, 401, 429]
