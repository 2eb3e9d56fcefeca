import pytest
import pytest_asyncio
from datetime import date
from aiohttp.test_utils import TestClient, TestServer

from casamia.database.models import Apartment, ApartmentType, Beverage, BeverageCategory, Role
from casamia.main import create_app
from casamia.services.tenant_service import create_tenant
from casamia.services.user_service import create_user


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Admin, worker, a housed tenant and one beverage. Returns their ids."""
    async with session_factory() as session:
        apartment = Apartment(
            unit_number="A101", building="A", floor=1,
            apartment_type=ApartmentType.one_bhk.value, rent=1000,
        )
        cola = Beverage(
            name="Cola", category=BeverageCategory.non_alcoholic.value,
            price=15.0, is_available=True, stock_quantity=10,
        )
        session.add_all([apartment, cola])
        await session.commit()

        admin = await create_user(session, "Admin", "admin@example.com", "admin123", Role.admin.value)
        worker = await create_user(session, "Worker", "worker@example.com", "worker123", Role.worker.value)
        tenant = await create_tenant(
            session, "Tenant", "tenant@example.com", "tenant123",
            apartment_id=apartment.id, send_welcome=False,
        )
        return {
            "admin": admin.id,
            "worker": worker.id,
            "tenant": tenant.id,
            "apartment": apartment.id,
            "cola": cola.id,
        }


@pytest_asyncio.fixture
async def client(session_factory, seeded):
    app = create_app(session_factory=session_factory)
    async with TestClient(TestServer(app)) as client:
        yield client


async def login(client, email, password):
    resp = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status == 200
    body = await resp.json()
    return {"Authorization": f"Bearer {body['data']['token']}"}


@pytest.mark.asyncio
async def test_health_is_public(client):
    resp = await client.get("/api/health")
    assert resp.status == 200
    assert (await resp.json())["data"]["status"] == "ok"


@pytest.mark.asyncio
async def test_login_and_me(client, seeded):
    headers = await login(client, "Tenant@Example.com", "tenant123")

    resp = await client.get("/api/auth/me", headers=headers)

    body = await resp.json()
    assert body["data"]["id"] == seeded["tenant"]
    assert "password_hash" not in body["data"]
    assert body["data"]["tenant_info"]["room_number"] == "A101"


@pytest.mark.asyncio
async def test_wrong_password(client):
    resp = await client.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope"})
    assert resp.status == 401
    assert (await resp.json())["success"] is False


@pytest.mark.asyncio
async def test_token_required(client):
    resp = await client.get("/api/bills")
    assert resp.status == 401

    resp = await client.get("/api/bills", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status == 401


@pytest.mark.asyncio
async def test_tenant_cannot_use_admin_routes(client):
    headers = await login(client, "tenant@example.com", "tenant123")
    resp = await client.get("/api/users", headers=headers)
    assert resp.status == 403


@pytest.mark.asyncio
async def test_validation_errors_name_the_field(client, seeded):
    headers = await login(client, "tenant@example.com", "tenant123")

    resp = await client.post(
        "/api/rooftop/cart/items", headers=headers, json={"beverage_id": seeded["cola"], "quantity": 0}
    )

    assert resp.status == 400
    body = await resp.json()
    assert body["message"] == "Validation failed"
    assert body["errors"][0]["field"] == "quantity"


@pytest.mark.asyncio
async def test_admin_creates_tenant_on_taken_apartment(client, seeded):
    headers = await login(client, "admin@example.com", "admin123")

    resp = await client.post("/api/users", headers=headers, json={
        "name": "Second",
        "email": "second@example.com",
        "password": "second123",
        "role": "tenant",
        "tenant_info": {"apartment_id": seeded["apartment"]},
    })
    assert resp.status == 409

    resp = await client.get("/api/users", headers=headers, params={"search": "second"})
    body = await resp.json()
    assert body["data"] == []
    assert body["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_cart_checkout_and_bill_flow(client, seeded, mailbox):
    tenant = await login(client, "tenant@example.com", "tenant123")
    admin = await login(client, "admin@example.com", "admin123")

    resp = await client.post(
        "/api/rooftop/cart/items", headers=tenant, json={"beverage_id": seeded["cola"], "quantity": 2}
    )
    assert resp.status == 200
    cart = (await resp.json())["data"]
    assert cart["total_amount"] == 30.0

    resp = await client.post("/api/rooftop/cart/checkout", headers=tenant)
    assert resp.status == 200
    assert len((await resp.json())["data"]["consumption"]) == 1

    resp = await client.post("/api/rooftop/cart/checkout", headers=tenant)
    assert resp.status == 400

    today = date.today()
    resp = await client.post("/api/bills", headers=admin, json={
        "tenant_id": seeded["tenant"],
        "billing_period_start": today.replace(day=1).isoformat(),
        "billing_period_end": today.isoformat(),
        "utilities": [{"utility_type": "electricity", "previous_reading": 100, "current_reading": 150, "rate": 2}],
    })
    assert resp.status == 201
    bill = (await resp.json())["data"]
    assert bill["status"] == "draft"
    assert bill["beverage_total"] == 30.0
    assert bill["total_amount"] == 130.0
    bill_id = bill["id"]

    # Draft bills cannot be sent straight away
    resp = await client.post("/api/bills/send", headers=admin, json={"bill_ids": [bill_id]})
    assert resp.status == 409

    resp = await client.post("/api/bills/submit-for-review", headers=admin, json={"bill_ids": [bill_id]})
    assert resp.status == 200
    resp = await client.post(f"/api/bills/{bill_id}/review", headers=admin, json={"action": "approve"})
    assert resp.status == 200
    resp = await client.post("/api/bills/send", headers=admin, json={"bill_ids": [bill_id]})
    assert resp.status == 200
    assert len(mailbox.sent) == 1

    resp = await client.get("/api/bills/me", headers=tenant)
    mine = (await resp.json())["data"]
    assert [b["status"] for b in mine] == ["sent"]

    resp = await client.post(f"/api/bills/{bill_id}/mark-paid", headers=admin, json={"payment_method": "card"})
    assert resp.status == 200
    body = (await resp.json())["data"]
    assert body["bill"]["status"] == "paid"
    assert body["consumption_updated"] == 1

    resp = await client.get("/api/rooftop/consumption", headers=tenant)
    records = (await resp.json())["data"]
    assert records[0]["payment_status"] == "paid"


@pytest.mark.asyncio
async def test_tenant_cannot_read_someone_elses_bill(client, seeded, session_factory):
    async with session_factory() as session:
        other = await create_tenant(session, "Other", "other@example.com", "other123", send_welcome=False)
        other_id = other.id
    admin = await login(client, "admin@example.com", "admin123")
    today = date.today()
    resp = await client.post("/api/bills", headers=admin, json={
        "tenant_id": seeded["tenant"],
        "billing_period_start": today.replace(day=1).isoformat(),
        "billing_period_end": today.isoformat(),
        "additional_charges": [{"description": "Rent", "amount": "1 000,00"}],
    })
    bill = (await resp.json())["data"]
    assert bill["subtotal"] == 1000.0

    other_headers = await login(client, "other@example.com", "other123")
    resp = await client.get(f"/api/bills/{bill['id']}", headers=other_headers)
    assert resp.status == 404


@pytest.mark.asyncio
async def test_maintenance_flow(client, seeded):
    tenant = await login(client, "tenant@example.com", "tenant123")
    admin = await login(client, "admin@example.com", "admin123")
    worker = await login(client, "worker@example.com", "worker123")

    resp = await client.post("/api/maintenance", headers=tenant, json={
        "title": "Leaking tap",
        "description": "Kitchen tap drips all night",
        "category": "Plumbing",
        "priority": "High",
    })
    assert resp.status == 201
    request_id = (await resp.json())["data"]["id"]

    resp = await client.put(
        f"/api/maintenance/{request_id}/assign", headers=admin, json={"worker_id": seeded["worker"]}
    )
    assert resp.status == 200

    resp = await client.get("/api/maintenance", headers=worker)
    assert [r["id"] for r in (await resp.json())["data"]] == [request_id]

    resp = await client.put(f"/api/maintenance/{request_id}/status", headers=worker, json={"status": "Cancelled"})
    assert resp.status == 400

    for status in ("In Progress", "Completed"):
        resp = await client.put(f"/api/maintenance/{request_id}/status", headers=worker, json={"status": status})
        assert resp.status == 200

    resp = await client.post(
        f"/api/maintenance/{request_id}/feedback", headers=tenant, json={"rating": 5, "comment": "Quick fix"}
    )
    assert resp.status == 200
    assert (await resp.json())["data"]["rating"] == 5


@pytest.mark.asyncio
async def test_admin_cannot_deactivate_self(client, seeded):
    admin = await login(client, "admin@example.com", "admin123")
    resp = await client.patch(f"/api/users/{seeded['admin']}/toggle-status", headers=admin)
    assert resp.status == 403


@pytest.mark.asyncio
async def test_unknown_bill_is_404(client):
    admin = await login(client, "admin@example.com", "admin123")
    resp = await client.get("/api/bills/999", headers=admin)
    assert resp.status == 404


@pytest.mark.asyncio
async def test_admin_release_clears_the_tenants_apartment(client, seeded):
    admin = await login(client, "admin@example.com", "admin123")
    tenant = await login(client, "tenant@example.com", "tenant123")

    resp = await client.post(f"/api/apartments/{seeded['apartment']}/release", headers=admin)
    assert resp.status == 200
    assert (await resp.json())["data"]["is_occupied"] is False

    resp = await client.get("/api/auth/me", headers=tenant)
    info = (await resp.json())["data"]["tenant_info"]
    assert info["apartment_id"] is None
    assert info["room_number"] is None
