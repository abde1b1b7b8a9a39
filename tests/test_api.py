from claimdesk.extensions import db
from claimdesk.models import Claim, ClaimStatus, utcnow_naive

NEW_CLAIM = {
    "customer_name": "Somchai",
    "car_model": "Vios",
    "car_register": "AB1234",
    "amount": "2500",
    "submit_now": False,
}


def test_requires_login(client, users):
    resp = client.get("/api/claims")
    assert resp.status_code == 401
    assert resp.get_json()["kind"] == "unauthenticated"


def test_login_rejects_bad_password(client, login_as):
    resp = login_as("north", password="wrong-password1")
    assert resp.status_code == 401
    assert resp.get_json()["success"] is False


def test_login_and_me(client, login_as, users, branches):
    resp = login_as("north")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["role"] == "SERVICE_CENTER"

    me = client.get("/api/me").get_json()["data"]
    assert me["identity"] == {
        "user_id": users["north"].id,
        "role": "SERVICE_CENTER",
        "branch_id": branches[0].id,
    }

    client.get("/logout")
    assert client.get("/api/me").status_code == 401


def test_full_claim_flow(client, login_as):
    login_as("north")
    resp = client.post("/api/claims", json=NEW_CLAIM)
    assert resp.status_code == 201
    created = resp.get_json()["data"]
    assert created["status"] == 0
    assert created["claim_no"] == f"CLM-{utcnow_naive().year}-0001"
    claim_id = created["id"]

    resp = client.put(f"/api/claims/{claim_id}", json={"submit_now": True})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == 1

    # branch staff may not approve
    resp = client.post(f"/api/claims/{claim_id}/approve", json={"note": "OK"})
    assert resp.status_code == 403
    assert resp.get_json()["kind"] == "forbidden"

    client.get("/logout")
    login_as("admin")

    resp = client.post(f"/api/claims/{claim_id}/reject", json={})
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "validation"

    resp = client.post(f"/api/claims/{claim_id}/approve", json={"note": "OK"})
    assert resp.status_code == 200
    body = resp.get_json()["data"]
    assert body["status"] == 2
    assert body["status_label"] == "Approved"
    assert [log["action"] for log in body["logs"]][:1] == ["APPROVED"]

    resp = client.post(f"/api/claims/{claim_id}/approve", json={})
    assert resp.status_code == 409
    assert resp.get_json()["kind"] == "conflict"

    resp = client.get(f"/api/claims/{claim_id}/pdf")
    assert resp.status_code == 200
    assert resp.headers["Content-Type"] == "application/pdf"
    assert resp.data.startswith(b"%PDF")


def test_other_branch_gets_forbidden(client, login_as, make_claim):
    claim = make_claim()
    login_as("south")
    resp = client.get(f"/api/claims/{claim.id}")
    assert resp.status_code == 403

    listing = client.get("/api/claims").get_json()["data"]
    assert listing["total"] == 0


def test_list_with_filters_and_paging(client, login_as, make_claim):
    for i in range(3):
        make_claim(customer_name=f"Customer {i}")
    login_as("north")

    data = client.get("/api/claims?page=1&page_size=2&search=customer").get_json()["data"]
    assert data["total"] == 3
    assert data["total_pages"] == 2
    assert len(data["items"]) == 2

    resp = client.get("/api/claims?status=7")
    assert resp.status_code == 400


def test_delete_draft(client, login_as, make_claim):
    claim = make_claim()
    claim_id = claim.id
    login_as("north")

    assert client.delete(f"/api/claims/{claim_id}").status_code == 200
    assert client.get(f"/api/claims/{claim_id}").status_code == 404

    db.session.expire_all()
    assert db.session.get(Claim, claim_id).is_active is False


def test_dashboard_stats(client, login_as, make_claim, ids):
    make_claim()
    make_claim(submit_now=True)
    make_claim(ids["south"])
    login_as("north")

    stats = client.get("/api/dashboard/stats").get_json()["data"]
    assert stats["total"] == 2
    assert stats["draft"] == 1
    assert stats["pending"] == 1


def test_branches_list(client, login_as, branches):
    login_as("north")
    names = [b["name"] for b in client.get("/api/branches").get_json()["data"]]
    assert names == ["Bangkok North", "Bangkok South"]


def test_pdf_for_unapproved_claim_is_conflict(client, login_as, make_claim):
    claim = make_claim()
    login_as("north")
    resp = client.get(f"/api/claims/{claim.id}/pdf")
    assert resp.status_code == 409


def test_invalid_json_body(client, login_as):
    login_as("north")
    resp = client.post("/api/claims", json=["not", "an", "object"])
    assert resp.status_code == 400


def test_admin_user_management(client, login_as, branches):
    login_as("admin")

    resp = client.post(
        "/admin/users",
        json={
            "full_name": "New Tech",
            "email": "Tech@Claimdesk.test",
            "password": "Workshop2026",
            "role": "service_center",
            "branch_id": branches[1].id,
        },
    )
    assert resp.status_code == 201
    assert resp.get_json()["data"]["email"] == "tech@claimdesk.test"

    resp = client.post(
        "/admin/users",
        json={"full_name": "Dup", "email": "tech@claimdesk.test", "password": "Workshop2026", "role": "ADMIN"},
    )
    assert resp.status_code == 409

    resp = client.post(
        "/admin/users",
        json={"full_name": "No Branch", "email": "nb@claimdesk.test", "password": "Workshop2026", "role": "SERVICE_CENTER"},
    )
    assert resp.status_code == 400

    data = client.get("/admin/users?role=SERVICE_CENTER&q=tech").get_json()["data"]
    assert [u["email"] for u in data["items"]] == ["tech@claimdesk.test"]


def test_admin_routes_are_admin_only(client, login_as):
    login_as("north")
    assert client.get("/admin/users").status_code == 403
    assert client.get("/admin/reports/claims.xlsx").status_code == 403


def test_report_download(client, login_as, make_claim):
    make_claim()
    login_as("admin")
    resp = client.get("/admin/reports/claims.xlsx")
    assert resp.status_code == 200
    assert resp.headers["Content-Type"].startswith("application/vnd.openxmlformats")
    assert resp.data[:2] == b"PK"


def test_claim_status_field_is_integer_code(client, login_as, make_claim):
    make_claim(submit_now=True)
    login_as("north")
    item = client.get("/api/claims").get_json()["data"]["items"][0]
    assert item["status"] == int(ClaimStatus.PENDING)
