from datetime import datetime
from decimal import Decimal

from services.auth_service.token_manager import create_access_token
from tests.conftest import TEST_PIN


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# ---------- Auth ----------


def test_login_and_me(client, staff):
    resp = client.post("/api/login", json={"email": staff.manager.email, "pin": TEST_PIN})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["employee"]["role"] == "Manager"

    token = body["data"]["access_token"]
    me = client.get("/api/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["data"]["id"] == staff.manager.id


def test_login_email_is_case_insensitive(client, staff):
    resp = client.post("/api/login", json={"email": staff.packer.email.upper(), "pin": TEST_PIN})
    assert resp.status_code == 200


def test_login_wrong_pin(client, staff):
    resp = client.post("/api/login", json={"email": staff.manager.email, "pin": "9999"})
    assert resp.status_code == 401
    assert resp.json() == {
        "success": False,
        "message": "Invalid email or PIN",
        "error": "InvalidCredentials",
    }


def test_login_inactive_account(client, make_employee):
    inactive = make_employee("Packer", status="inactive")
    resp = client.post("/api/login", json={"email": inactive.email, "pin": TEST_PIN})
    assert resp.status_code == 401
    assert resp.json()["error"] == "InactiveAccount"


def test_requests_need_a_token(client):
    resp = client.get("/api/water-bags/batches")
    assert resp.status_code in (401, 403)
    assert resp.json()["success"] is False


def test_garbage_and_expired_tokens(client, staff):
    resp = client.get("/api/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401

    expired = create_access_token(staff.manager.id, staff.manager.role, expires_minutes=-5)
    resp = client.get("/api/me", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "TokenExpired"


def test_employee_directory(client, staff, headers):
    resp = client.post(
        "/api/employees",
        json={
            "name": "New Packer",
            "email": "new.packer@matsplash.com",
            "role": "packer",
            "pin": "4321",
        },
        headers=headers(staff.admin),
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["role"] == "Packer"

    duplicate = client.post(
        "/api/employees",
        json={"name": "Dup", "email": "new.packer@matsplash.com", "role": "Packer", "pin": "4321"},
        headers=headers(staff.admin),
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "ConflictError"

    forbidden = client.post(
        "/api/employees",
        json={"name": "X", "email": "x@matsplash.com", "role": "Admin", "pin": "4321"},
        headers=headers(staff.packer),
    )
    assert forbidden.status_code == 403

    packers = client.get("/api/water-bags/packers", headers=headers(staff.storekeeper)).json()
    assert len(packers["data"]) == 3

    login = client.post("/api/login", json={"email": "new.packer@matsplash.com", "pin": "4321"})
    assert login.status_code == 200


# ---------- Envelope ----------


def test_request_validation_envelope(client, staff, headers):
    resp = client.post(
        "/api/water-bags/intake",
        json={"loader_id": staff.loader.id, "packer_id": staff.packer.id},
        headers=headers(staff.storekeeper),
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "ValidationError"
    assert "bags_submitted" in body["message"]


def test_domain_error_envelope(client, staff, headers):
    resp = client.post(
        "/api/water-bags/intake",
        json={"loader_id": staff.loader.id, "packer_id": staff.packer.id, "bags_submitted": 0},
        headers=headers(staff.storekeeper),
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "ValidationError"


# ---------- Workflows over HTTP ----------


def test_intake_review_scenario(client, staff, headers):
    sk, mgr = headers(staff.storekeeper), headers(staff.manager)

    batch = client.post(
        "/api/water-bags/batches",
        json={"loader_id": staff.loader.id, "bags_received": 100},
        headers=sk,
    ).json()["data"]
    assert batch["remaining_capacity"] == 100

    assignment = client.post(
        "/api/water-bags/assignments",
        json={"batch_id": batch["id"], "packer_id": staff.packer.id, "bags_assigned": 30},
        headers=sk,
    ).json()["data"]
    assert assignment["status"] == "pending_review"

    no_comment = client.put(
        f"/api/water-bags/assignments/{assignment['id']}/review",
        json={"action": "reject"},
        headers=mgr,
    )
    assert no_comment.status_code == 400

    rejected = client.put(
        f"/api/water-bags/assignments/{assignment['id']}/review",
        json={"action": "reject", "comment": "short count"},
        headers=mgr,
    ).json()["data"]
    assert rejected["status"] == "rejected"

    resubmitted = client.put(
        f"/api/water-bags/assignments/{assignment['id']}/resubmit",
        json={"bags_assigned": 25},
        headers=sk,
    ).json()["data"]
    assert resubmitted["status"] == "pending_review"
    assert resubmitted["bags_assigned"] == 25

    approved = client.put(
        f"/api/water-bags/assignments/{assignment['id']}/review",
        json={"action": "approve"},
        headers=mgr,
    )
    assert approved.json()["data"]["status"] == "approved"

    again = client.put(
        f"/api/water-bags/assignments/{assignment['id']}/review",
        json={"action": "approve"},
        headers=mgr,
    )
    assert again.status_code == 400
    assert again.json()["error"] == "InvalidStateError"

    over = client.post(
        "/api/water-bags/assignments",
        json={"batch_id": batch["id"], "packer_id": staff.packer2.id, "bags_assigned": 76},
        headers=sk,
    )
    assert over.status_code == 400

    listed = client.get(
        f"/api/water-bags/batches/{batch['id']}/assignments", headers=sk,
    ).json()["data"]
    assert [a["packer_name"] for a in listed] == ["Pat Packer"]

    work_log = client.post(
        "/api/water-bags/work-logs",
        json={"assignment_id": assignment["id"], "bags_packed": 25},
        headers=headers(staff.packer),
    )
    assert work_log.status_code == 201

    stats = client.get("/api/water-bags/dashboard-stats", headers=mgr).json()["data"]
    assert stats["approved_assignments"] == 1
    assert stats["pending_work_logs"] == 1


def test_packing_log_scenario(client, staff, headers):
    today = datetime.utcnow().date().isoformat()
    created = client.post(
        "/api/packing-logs",
        json={"packer_id": staff.packer.id, "bags_packed": 50, "packing_date": today},
        headers=headers(staff.storekeeper),
    )
    assert created.status_code == 201
    log_id = created.json()["data"]["id"]

    disputed = client.put(
        f"/api/packing-logs/{log_id}/dispute",
        json={"disputed_bags": 45, "dispute_reason": "miscount"},
        headers=headers(staff.packer),
    ).json()["data"]
    assert disputed["status"] == "disputed"

    queue = client.get("/api/pending-approvals", headers=headers(staff.manager)).json()["data"]
    assert [entry["id"] for entry in queue] == [log_id]

    rejected = client.put(
        f"/api/packing-logs/{log_id}/reject", json={}, headers=headers(staff.manager),
    )
    assert rejected.status_code == 400
    assert rejected.json()["error"] == "ValidationError"

    approved = client.put(
        f"/api/packing-logs/{log_id}/approve",
        json={"final_bags": 45},
        headers=headers(staff.manager),
    ).json()["data"]
    assert approved["status"] == "approved"
    assert approved["bags_packed"] == 45
    assert approved["manager_name"] == "Mo Manager"

    logs = client.get(
        f"/api/packing-logs/{staff.packer.id}", headers=headers(staff.packer),
    ).json()["data"]
    assert logs[0]["bags_packed"] == 45

    stats = client.get("/api/packing-logs/stats", headers=headers(staff.manager)).json()["data"]
    assert stats["approved"] == 1
    assert stats["total_bags_approved"] == 45

    stock = client.get("/api/inventory/current", headers=headers(staff.manager)).json()["data"]
    assert stock["current_stock"] == 45

    deleted = client.delete(f"/api/packing-logs/{log_id}", headers=headers(staff.storekeeper))
    assert deleted.status_code == 400


def test_salary_rate_and_summary_endpoints(client, staff, headers):
    resp = client.put(
        f"/api/salary/rates/{staff.packer.id}",
        json={"rate_amount": "2.50"},
        headers=headers(staff.admin),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["rate_type"] == "per_bag"

    client.put(
        f"/api/salary/rates/{staff.packer.id}",
        json={"rate_amount": "3.00"},
        headers=headers(staff.admin),
    )
    rates = client.get(
        f"/api/salary/rates/{staff.packer.id}", headers=headers(staff.packer),
    ).json()["data"]
    assert len(rates) == 1
    assert Decimal(str(rates[0]["rate_amount"])) == Decimal("3.00")

    summary = client.get(
        f"/api/salary/summary/{staff.packer.id}", headers=headers(staff.packer),
    ).json()["data"]
    assert summary["total_bags"] == 0
    assert summary["employee"]["id"] == staff.packer.id

    bad_month = client.get(
        f"/api/salary/summary/{staff.packer.id}?year=2024&month=0",
        headers=headers(staff.admin),
    )
    assert bad_month.status_code == 400

    bad_year = client.get(
        f"/api/salary/summary/{staff.packer.id}?year=10000&month=1",
        headers=headers(staff.admin),
    )
    assert bad_year.status_code == 400
    assert bad_year.json()["error"] == "ValidationError"

    missing = client.get("/api/salary/summary/9999", headers=headers(staff.admin))
    assert missing.status_code == 404
    assert missing.json()["error"] == "NotFoundError"


def test_driver_sales_endpoints(client, staff, headers):
    rec = headers(staff.receptionist)
    dispatched = client.post(
        "/api/driver-sales/dispatch",
        json={"driver_id": staff.driver.id, "bags_dispatched": 100},
        headers=rec,
    )
    assert dispatched.status_code == 201
    log = dispatched.json()["data"]
    assert Decimal(str(log["expected_revenue"])) == Decimal("25000")

    accounted = client.put(
        f"/api/driver-sales/{log['id']}/account",
        json={
            "bags_sold_270": 40,
            "bags_sold_250": 55,
            "bags_returned": 5,
            "total_revenue": "25000",
        },
        headers=rec,
    ).json()
    assert accounted["data"]["status"] == "accounted"
    assert Decimal(str(accounted["data"]["total_revenue"])) == Decimal("25000")
    assert len(accounted["warnings"]) == 1

    listed = client.get(f"/api/driver-sales/{staff.driver.id}", headers=rec).json()["data"]
    assert listed[0]["id"] == log["id"]

    stock = client.get("/api/inventory/logs", headers=rec).json()["data"]
    assert sorted(entry["operation_type"] for entry in stock) == ["out", "return"]


def test_inventory_adjust_endpoint(client, staff, headers):
    resp = client.post(
        "/api/inventory/adjust",
        json={"bags_added": 120, "notes": "opening count"},
        headers=headers(staff.storekeeper),
    )
    assert resp.status_code == 201

    stats = client.get("/api/inventory/stats", headers=headers(staff.manager)).json()["data"]
    assert stats["current_stock"] == 120
    assert stats["is_low_stock"] is False
    assert stats["recent_movements"][0]["performed_by_name"] == "Sam Store"


def test_bonus_endpoints(client, staff, headers):
    created = client.post(
        "/api/bonuses",
        json={"employee_id": staff.packer.id, "amount": "2500", "reason": "Zero breakages"},
        headers=headers(staff.manager),
    )
    assert created.status_code == 201
    bonus = created.json()["data"]
    assert bonus["status"] == "pending"
    assert bonus["employee_name"] == "Pat Packer"

    forbidden = client.put(
        f"/api/bonuses/{bonus['id']}/approve", headers=headers(staff.manager),
    )
    assert forbidden.status_code == 403
    assert forbidden.json()["error"] == "ForbiddenError"

    rejected = client.put(
        f"/api/bonuses/{bonus['id']}/reject",
        json={"comment": "needs evidence"},
        headers=headers(staff.admin),
    )
    assert rejected.status_code == 200
    assert rejected.json()["data"]["status"] == "rejected"

    resubmitted = client.put(
        f"/api/bonuses/{bonus['id']}",
        json={"reason": "Zero breakages, see shift report"},
        headers=headers(staff.manager),
    )
    assert resubmitted.json()["data"]["status"] == "pending"

    approved = client.put(f"/api/bonuses/{bonus['id']}/approve", headers=headers(staff.admin))
    assert approved.status_code == 200
    assert approved.json()["data"]["approved_by_name"] == "Ada Admin"

    own = client.get("/api/bonuses", headers=headers(staff.packer)).json()["data"]
    assert [b["id"] for b in own] == [bonus["id"]]

    summary = client.get(
        f"/api/salary/summary/{staff.packer.id}", headers=headers(staff.packer),
    ).json()["data"]
    assert Decimal(str(summary["total_bonuses"])) == Decimal("2500")

    locked = client.delete(f"/api/bonuses/{bonus['id']}", headers=headers(staff.manager))
    assert locked.status_code == 400
    assert locked.json()["error"] == "InvalidStateError"
