import pytest
from datetime import date
from sqlalchemy import select, func

from casamia.database.models import Apartment, TenantInfo, User, LeaseStatus
from casamia.errors import ConflictError, NotFoundError
from casamia.services.billing_service import Adjustment, generate_bill
from casamia.services.cart_service import add_item, checkout
from casamia.services.tenant_service import (
    create_tenant, update_tenant, delete_tenant, toggle_tenant_status, get_tenant,
    list_tenants, get_tenant_dashboard
)
from casamia.utils.ui import month_bounds


@pytest.mark.asyncio
async def test_create_tenant_occupies_apartment(async_session, make_apartment, mailbox):
    apartment = await make_apartment("C301")

    tenant = await create_tenant(
        async_session, "Ana", "Ana@Example.com", "secret123", apartment_id=apartment.id, monthly_rent=900
    )

    assert tenant.email == "ana@example.com"
    assert tenant.tenant_info.apartment_id == apartment.id
    assert tenant.tenant_info.room_number == "C301"
    assert apartment.current_tenant_id == tenant.id
    assert len(mailbox.sent) == 1
    assert mailbox.sent[0].to == "ana@example.com"


@pytest.mark.asyncio
async def test_create_tenant_with_taken_apartment_creates_nothing(async_session, make_apartment, make_tenant):
    apartment = await make_apartment("A101")
    first = await make_tenant("first@example.com", apartment_id=apartment.id)
    apartment_id, first_id = apartment.id, first.id

    with pytest.raises(ConflictError):
        await make_tenant("second@example.com", apartment_id=apartment_id)

    count = (await async_session.execute(
        select(func.count(User.id)).where(User.email == "second@example.com")
    )).scalar()
    assert count == 0
    apartment = await async_session.get(Apartment, apartment_id)
    await async_session.refresh(apartment)
    assert apartment.current_tenant_id == first_id


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected(async_session, make_tenant):
    await make_tenant("dup@example.com")
    with pytest.raises(ConflictError):
        await make_tenant("DUP@example.com")


@pytest.mark.asyncio
async def test_update_moves_tenant_between_apartments(async_session, make_apartment, make_tenant):
    old = await make_apartment("A101")
    new = await make_apartment("A102")
    tenant = await make_tenant(apartment_id=old.id)

    tenant = await update_tenant(async_session, tenant.id, {"apartment_id": new.id, "phone": "+15550001"})

    assert tenant.phone == "+15550001"
    assert tenant.tenant_info.apartment_id == new.id
    assert old.current_tenant_id is None
    assert old.is_occupied is False
    assert new.current_tenant_id == tenant.id


@pytest.mark.asyncio
async def test_update_with_past_lease_marks_historical(async_session, make_tenant):
    tenant = await make_tenant()

    tenant = await update_tenant(async_session, tenant.id, {
        "lease_start_date": date(2020, 1, 1),
        "lease_end_date": date(2021, 1, 1),
    })

    assert tenant.tenant_info.lease_status == LeaseStatus.expired.value
    assert tenant.is_historical_record is True
    assert tenant.tenant_info.total_days == 366


@pytest.mark.asyncio
async def test_delete_releases_apartment_and_hides_tenant(async_session, make_apartment, make_tenant):
    apartment = await make_apartment()
    tenant = await make_tenant(apartment_id=apartment.id)

    await delete_tenant(async_session, tenant.id, deleted_by=1)

    assert apartment.is_occupied is False
    assert tenant.is_deleted is True
    assert tenant.tenant_info.lease_status == LeaseStatus.terminated.value
    with pytest.raises(NotFoundError):
        await get_tenant(async_session, tenant.id)
    tenants, total = await list_tenants(async_session)
    assert total == 0
    tenants, total = await list_tenants(async_session, include_deleted=True)
    assert [t.id for t in tenants] == [tenant.id]


@pytest.mark.asyncio
async def test_toggle_deactivates_and_keeps_reference(async_session, make_apartment, make_tenant):
    apartment = await make_apartment()
    tenant = await make_tenant(apartment_id=apartment.id)

    tenant = await toggle_tenant_status(async_session, tenant.id)

    assert tenant.is_active is False
    assert apartment.current_tenant_id is None
    info = await async_session.get(TenantInfo, tenant.id)
    assert info.apartment_id == apartment.id

    tenant = await toggle_tenant_status(async_session, tenant.id)
    assert tenant.is_active is True
    assert apartment.current_tenant_id == tenant.id


@pytest.mark.asyncio
async def test_list_filters_by_apartment(async_session, make_apartment, make_tenant):
    apartment = await make_apartment()
    housed = await make_tenant("housed@example.com", apartment_id=apartment.id)
    await make_tenant("waiting@example.com")

    tenants, total = await list_tenants(async_session, apartment_id=apartment.id)

    assert total == 1
    assert tenants[0].id == housed.id


@pytest.mark.asyncio
async def test_dashboard_totals(async_session, make_apartment, make_tenant, make_beverage, mailbox):
    apartment = await make_apartment()
    tenant = await make_tenant(apartment_id=apartment.id)
    cola = await make_beverage("Cola", price=15.0)
    await add_item(async_session, tenant.id, cola.id, 2)
    await checkout(async_session, tenant.id)
    today = date.today()
    start, end = month_bounds(today.year, today.month)
    await generate_bill(
        async_session, tenant.id, start, end,
        additional_charges=[Adjustment("Rent", 1000)], status="sent"
    )

    dashboard = await get_tenant_dashboard(async_session, tenant.id)

    assert dashboard.apartment.id == apartment.id
    assert dashboard.cart is None
    assert len(dashboard.unpaid_bills) == 1
    assert dashboard.unpaid_total == 1030.0
    assert dashboard.pending_consumption_total == 30.0
