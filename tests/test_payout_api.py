import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sellerhub.core.security import create_access_token
from sellerhub.services.seller_payout_service import SellerPayoutService
from tests.factories import (
    auth_headers, add_payout, make_eligible_seller, TEST_IBAN,
)


BASE = "/api/v1/payouts"


async def create_payout(db, seller_id):
    today = datetime.now(timezone.utc).date()
    await make_eligible_seller(db, seller_id)
    result = await SellerPayoutService(db).create_payout(seller_id, today - timedelta(days=7), today)
    assert result.success, result.error
    return result.payout


# ==================== Auth ====================

async def test_missing_token(client):
    response = await client.get(f"{BASE}/seller")

    assert response.status_code == 401


async def test_invalid_token(client):
    response = await client.get(f"{BASE}/seller", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


async def test_expired_token(client, seller_id):
    token = create_access_token(seller_id, expires_delta=timedelta(minutes=-5))

    response = await client.get(f"{BASE}/seller", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


async def test_admin_routes_reject_sellers(client, seller_id):
    response = await client.get(f"{BASE}/admin/pending", headers=auth_headers(seller_id))

    assert response.status_code == 403
    assert response.json()["detail"] == "Admin access required"


# ==================== Seller ====================

async def test_seller_list_and_detail(client, db, seller_id):
    payout = await create_payout(db, seller_id)
    headers = auth_headers(seller_id)

    listing = await client.get(f"{BASE}/seller", headers=headers)
    detail = await client.get(f"{BASE}/seller/{payout.id}", headers=headers)

    assert listing.status_code == 200
    body = listing.json()
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 1, "total_pages": 1}
    assert body["items"][0]["payout_number"] == payout.payout_number
    assert body["items"][0]["line_item_count"] == 1

    assert detail.status_code == 200
    detail_body = detail.json()
    assert detail_body["iban_masked"] == "*" * (len(TEST_IBAN) - 4) + TEST_IBAN[-4:]
    assert len(detail_body["line_items"]) == 1
    assert detail_body["events"][0]["event_type"] == "PAYOUT_CREATED"
    assert detail_body["events"][0]["metadata"]["invoice_count"] == 1


async def test_seller_cannot_see_other_sellers_payout(client, db, seller_id):
    payout = await create_payout(db, seller_id)

    response = await client.get(f"{BASE}/seller/{payout.id}", headers=auth_headers(uuid.uuid4()))

    assert response.status_code == 404
    assert response.json()["detail"] == "Payout not found"


async def test_seller_list_validation(client, seller_id):
    headers = auth_headers(seller_id)

    assert (await client.get(f"{BASE}/seller?limit=101", headers=headers)).status_code == 422
    assert (await client.get(f"{BASE}/seller?page=0", headers=headers)).status_code == 422
    assert (await client.get(f"{BASE}/seller?status=approved", headers=headers)).status_code == 422


async def test_seller_history(client, db, seller_id, admin_id):
    payout = await create_payout(db, seller_id)
    await client.post(f"{BASE}/admin/{payout.id}/approve", headers=auth_headers(admin_id, role="admin"))

    response = await client.get(f"{BASE}/seller/{payout.id}/history", headers=auth_headers(seller_id))

    assert response.status_code == 200
    assert [e["event_type"] for e in response.json()] == ["PAYOUT_APPROVED", "PAYOUT_CREATED"]
    assert response.json()[0]["actor_type"] == "admin"


async def test_seller_stats(client, db, seller_id):
    await add_payout(db, seller_id, status="settled", net="250.00")

    response = await client.get(f"{BASE}/seller/stats", headers=auth_headers(seller_id))

    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["total_paid"]) == Decimal("250")
    assert body["payout_count"]["settled"] == 1
    assert body["next_payout"] is None


async def test_seller_eligibility(client, db, seller_id):
    await make_eligible_seller(db, seller_id)

    response = await client.get(f"{BASE}/seller/eligible", headers=auth_headers(seller_id))

    assert response.status_code == 200
    body = response.json()
    assert body["bank_verified"] is True
    assert body["eligible_invoices"] == 1
    assert Decimal(body["eligible_amount"]) == Decimal("500")
    assert body["withdrawal_disabled_reason"] is None


async def test_seller_timeline(client, db, seller_id):
    await make_eligible_seller(db, seller_id)

    response = await client.get(f"{BASE}/seller/timeline?limit=500", headers=auth_headers(seller_id))

    assert response.status_code == 200
    assert [e["status"] for e in response.json()] == ["eligible"]


async def test_seller_settings(client, seller_id):
    headers = auth_headers(seller_id)

    initial = await client.get(f"{BASE}/seller/settings", headers=headers)
    updated = await client.put(
        f"{BASE}/seller/settings",
        headers=headers,
        json={"payout_frequency": "monthly", "payout_day": 15},
    )
    invalid = await client.put(f"{BASE}/seller/settings", headers=headers, json={"hold_period_days": 45})

    assert initial.status_code == 200
    assert initial.json()["payout_frequency"] == "weekly"
    assert updated.status_code == 200
    assert updated.json()["payout_frequency"] == "monthly"
    assert updated.json()["payout_day"] == 15
    assert updated.json()["hold_period_days"] == 7
    assert invalid.status_code == 422


# ==================== Admin ====================

async def test_admin_lifecycle(client, db, seller_id, admin_id):
    payout = await create_payout(db, seller_id)
    admin = auth_headers(admin_id, role="admin")

    pending = await client.get(f"{BASE}/admin/pending", headers=admin)
    approved = await client.post(f"{BASE}/admin/{payout.id}/approve", headers=admin)
    again = await client.post(f"{BASE}/admin/{payout.id}/approve", headers=admin)
    settled = await client.post(
        f"{BASE}/admin/{payout.id}/settle", headers=admin, json={"bank_reference": "TRX-5521"}
    )
    by_status = await client.get(f"{BASE}/admin/status/settled", headers=admin)

    assert [p["id"] for p in pending.json()] == [str(payout.id)]
    assert approved.status_code == 200
    assert approved.json()["status"] == "processing"
    assert approved.json()["initiated_by"] == str(admin_id)
    assert again.status_code == 400
    assert again.json()["detail"] == "Cannot approve payout with status: processing"
    assert settled.status_code == 200
    assert settled.json()["bank_reference"] == "TRX-5521"
    assert [p["id"] for p in by_status.json()] == [str(payout.id)]


async def test_admin_hold_fail_requeue(client, db, seller_id, admin_id):
    payout = await add_payout(db, seller_id)
    admin = auth_headers(admin_id, role="admin")

    held = await client.post(
        f"{BASE}/admin/{payout.id}/hold", headers=admin, json={"reason": "Chargeback investigation"}
    )
    requeued = await client.post(f"{BASE}/admin/{payout.id}/requeue", headers=admin)
    failed = await client.post(
        f"{BASE}/admin/{payout.id}/fail", headers=admin, json={"reason": "Beneficiary bank rejected"}
    )
    held_again = await client.post(
        f"{BASE}/admin/{payout.id}/hold", headers=admin, json={"reason": "Another review"}
    )

    assert held.json()["status"] == "on_hold"
    assert held.json()["hold_reason"] == "Chargeback investigation"
    assert requeued.json()["status"] == "pending"
    assert failed.json()["status"] == "failed"
    assert failed.json()["failure_reason"] == "Beneficiary bank rejected"
    assert held_again.status_code == 200
    assert held_again.json()["status"] == "on_hold"
    assert held_again.json()["hold_reason"] == "Another review"


async def test_admin_request_validation(client, db, seller_id, admin_id):
    payout = await add_payout(db, seller_id)
    admin = auth_headers(admin_id, role="admin")

    short_reason = await client.post(f"{BASE}/admin/{payout.id}/hold", headers=admin, json={"reason": "no"})
    no_reference = await client.post(f"{BASE}/admin/{payout.id}/settle", headers=admin, json={})
    bad_status = await client.get(f"{BASE}/admin/status/approved", headers=admin)

    assert short_reason.status_code == 422
    assert no_reference.status_code == 422
    assert bad_status.status_code == 422


async def test_admin_unknown_payout(client, admin_id):
    admin = auth_headers(admin_id, role="admin")

    response = await client.post(f"{BASE}/admin/{uuid.uuid4()}/approve", headers=admin)

    assert response.status_code == 404
    assert response.json()["detail"] == "Payout not found"


async def test_admin_batch_create(client, db, admin_id):
    auto_seller, manual_seller = uuid.uuid4(), uuid.uuid4()
    await make_eligible_seller(db, auto_seller, auto_payout=True)
    await make_eligible_seller(db, manual_seller, auto_payout=False)
    admin = auth_headers(admin_id, role="admin")

    response = await client.post(f"{BASE}/admin/batch-create", headers=admin, json={"payout_date": "2026-10-19"})
    repeat = await client.post(f"{BASE}/admin/batch-create", headers=admin)

    assert response.status_code == 200
    assert response.json() == {"created": 1, "skipped": 1, "errors": []}
    assert repeat.json() == {"created": 0, "skipped": 2, "errors": []}


# ==================== Health ====================

async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"


async def test_settled_payout_cannot_be_held(client, db, seller_id, admin_id):
    payout = await add_payout(db, seller_id, status="settled")

    response = await client.post(
        f"{BASE}/admin/{payout.id}/hold",
        headers=auth_headers(admin_id, role="admin"),
        json={"reason": "Late chargeback"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot hold payout with status: settled"
