from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import jwt
import pytest
import pytest_asyncio

from core.config import settings
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from main import create_app
from shared.codes import BusinessCode

STUDENT = 1
TEACHER = 500
ADMIN = 900


def _token(user_id: int, role: str = "student", expires_in: int = 3600) -> dict:
    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(db, gateway):
    app = create_app(database=db, payment_gateway=gateway)
    # ASGITransport does not run the lifespan
    app.state.db = db
    app.state.payment_gateway = gateway
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health_reports_database(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == BusinessCode.SUCCESS
    assert body["data"]["database"] == "ok"
    assert body["data"]["payment_gateway"] is True
    assert resp.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_authentication_errors(client):
    resp = await client.get("/api/v1/wallet/me")
    assert resp.status_code == 401
    assert resp.json()["code"] == BusinessCode.UNAUTHORIZED

    resp = await client.get("/api/v1/wallet/me", headers=_token(STUDENT, expires_in=-60))
    assert resp.status_code == 401
    assert resp.json()["code"] == BusinessCode.TOKEN_EXPIRED

    resp = await client.get("/api/v1/wallet/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_routes_require_admin_role(client):
    resp = await client.get("/api/v1/admin/refunds", headers=_token(STUDENT))
    assert resp.status_code == 403
    assert resp.json()["error"]["type"] == "Forbidden"

    resp = await client.get("/api/v1/admin/refunds/stats", headers=_token(ADMIN, "admin"))
    assert resp.status_code == 200
    assert resp.json()["data"]["total"] == 0


@pytest.mark.asyncio
async def test_wallet_routes_require_teacher_role(client, db):
    for path in ("/api/v1/wallet/me", "/api/v1/wallet/me/payouts", "/api/v1/payments/teacher/earnings"):
        resp = await client.get(path, headers=_token(STUDENT))
        assert resp.status_code == 403
        assert resp.json()["error"]["type"] == "Forbidden"

    async with SQLAlchemyUnitOfWork(db.session_factory, readonly=True) as uow:
        assert await uow.wallet_repository.get_by_owner(STUDENT) is None

    resp = await client.get("/api/v1/wallet/me", headers=_token(TEACHER, "teacher"))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_business_errors_map_to_http_status(client):
    headers = _token(STUDENT)
    resp = await client.post("/api/v1/payments/create-intent", json={"package_id": 999}, headers=headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == BusinessCode.NOT_FOUND

    resp = await client.post("/api/v1/payments/create-intent", json={"package_id": 0}, headers=headers)
    assert resp.status_code == 422

    resp = await client.post("/api/v1/payments/cart/create-intent", headers=headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["field"] == "cart"


@pytest.mark.asyncio
async def test_purchase_refund_round_trip(client, seed):
    student, teacher, admin = _token(STUDENT), _token(TEACHER, "teacher"), _token(ADMIN, "admin")
    _, _, package_id = await seed.listing(TEACHER, "80")

    resp = await client.post("/api/v1/cart/items", json={"package_id": package_id}, headers=student)
    assert resp.status_code == 200
    assert resp.json()["data"]["count"] == 1

    resp = await client.post("/api/v1/payments/cart/create-intent", headers=student)
    intent = resp.json()["data"]
    assert Decimal(intent["amount"]) == Decimal("80")

    resp = await client.post(
        "/api/v1/payments/confirm",
        json={"payment_id": intent["payment_id"], "payment_intent_id": intent["payment_intent_id"]},
        headers=student,
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "Payment confirmed"

    wallet = (await client.get("/api/v1/wallet/me", headers=teacher)).json()["data"]
    assert Decimal(wallet["available_balance"]) == Decimal("72")
    earnings = (await client.get("/api/v1/payments/teacher/earnings", headers=teacher)).json()["data"]
    assert earnings["sales"] == 1

    resp = await client.post(
        f"/api/v1/orders/{intent['order_id']}/refund",
        json={"amount": "80", "reason": "wrong course"},
        headers=student,
    )
    refund = resp.json()["data"]
    assert refund["status"] == "PENDING"

    mine = (await client.get("/api/v1/orders/refunds/mine", headers=student)).json()["data"]
    assert [r["id"] for r in mine] == [refund["id"]]

    resp = await client.post(f"/api/v1/admin/refunds/{refund['id']}/approve", headers=admin)
    assert resp.json()["data"]["status"] == "APPROVED"
    resp = await client.post(
        f"/api/v1/admin/refunds/{refund['id']}/complete", json={"admin_notes": "done"}, headers=admin
    )
    assert resp.json()["data"]["status"] == "COMPLETED"

    wallet = (await client.get("/api/v1/wallet/me", headers=teacher)).json()["data"]
    assert Decimal(wallet["available_balance"]) == Decimal("0")
    page = (await client.get("/api/v1/wallet/me/transactions?type=DEBIT", headers=teacher)).json()["data"]
    assert page["total"] == 1

    order = (await client.get(f"/api/v1/orders/{intent['order_id']}", headers=student)).json()["data"]
    assert order["status"] == "REFUNDED"


@pytest.mark.asyncio
async def test_outbox_endpoint(client):
    resp = await client.post("/api/v1/admin/wallet/outbox/process?retry_failed=true", headers=_token(ADMIN, "admin"))
    assert resp.status_code == 200
    assert resp.json()["data"] == {"processed": 0, "succeeded": 0, "failed": 0, "failed_ids": []}


@pytest.mark.asyncio
async def test_payout_round_trip(client, seed):
    student, teacher, admin = _token(STUDENT), _token(TEACHER, "teacher"), _token(ADMIN, "admin")
    _, _, package_id = await seed.listing(TEACHER, "50")
    resp = await client.post("/api/v1/payments/create-intent", json={"package_id": package_id}, headers=student)
    intent = resp.json()["data"]
    await client.post(
        "/api/v1/payments/confirm",
        json={"payment_id": intent["payment_id"], "payment_intent_id": intent["payment_intent_id"]},
        headers=student,
    )

    resp = await client.post(
        "/api/v1/wallet/me/payout-methods",
        json={"type": "BANK_TRANSFER", "label": "Main account", "details": {"iban": "X1"}, "is_default": True},
        headers=teacher,
    )
    method = resp.json()["data"]
    assert method["is_default"] is True

    resp = await client.post("/api/v1/wallet/me/payouts", json={"amount": "100"}, headers=teacher)
    assert resp.status_code == 422
    assert resp.json()["error"]["field"] == "amount"

    resp = await client.post("/api/v1/wallet/me/payouts", json={"amount": "40"}, headers=teacher)
    payout = resp.json()["data"]
    assert payout["method_id"] == method["id"]
    wallet = (await client.get("/api/v1/wallet/me", headers=teacher)).json()["data"]
    assert Decimal(wallet["available_balance"]) == Decimal("5")
    assert Decimal(wallet["pending_payout"]) == Decimal("40")

    resp = await client.get("/api/v1/admin/payouts?status=PENDING", headers=teacher)
    assert resp.status_code == 403
    queue = (await client.get("/api/v1/admin/payouts?status=PENDING", headers=admin)).json()["data"]
    assert [p["id"] for p in queue["items"]] == [payout["id"]]

    resp = await client.post(f"/api/v1/admin/payouts/{payout['id']}/approve", headers=admin)
    assert resp.json()["data"]["status"] == "APPROVED"
    resp = await client.post(
        f"/api/v1/admin/payouts/{payout['id']}/paid", json={"external_reference": "TRX-42"}, headers=admin
    )
    assert resp.json()["data"]["external_reference"] == "TRX-42"

    wallet = (await client.get("/api/v1/wallet/me", headers=teacher)).json()["data"]
    assert Decimal(wallet["available_balance"]) == Decimal("5")
    assert Decimal(wallet["pending_payout"]) == Decimal("0")
    mine = (await client.get("/api/v1/wallet/me/payouts", headers=teacher)).json()["data"]
    assert mine["items"][0]["status"] == "PAID"

    resp = await client.delete(f"/api/v1/wallet/me/payout-methods/{method['id']}", headers=teacher)
    assert resp.status_code == 200
    assert (await client.get("/api/v1/wallet/me/payout-methods", headers=teacher)).json()["data"] == []
