import pytest
from sqlalchemy import select

from casamia.database.models import Apartment, TenantInfo
from casamia.errors import ConflictError, NotFoundError
from casamia.services.occupancy_service import (
    assign_apartment, reassign_apartment, release_apartment, reactivate_tenant
)
from casamia.services.tenant_service import toggle_tenant_status, delete_tenant


async def assert_occupancy_consistent(session):
    apartments = (await session.execute(select(Apartment))).scalars().all()
    for apartment in apartments:
        assert apartment.is_occupied == (apartment.current_tenant_id is not None)


@pytest.mark.asyncio
async def test_second_tenant_cannot_take_occupied_apartment(async_session, make_apartment, make_tenant):
    """A101 goes to T1; assigning it to T2 fails and T1 keeps it"""
    a101 = await make_apartment("A101")
    t1 = await make_tenant("t1@example.com")
    t2 = await make_tenant("t2@example.com")
    apartment_id, t1_id, t2_id = a101.id, t1.id, t2.id

    await assign_apartment(async_session, t1_id, apartment_id)

    with pytest.raises(ConflictError):
        await assign_apartment(async_session, t2_id, apartment_id)

    apartment = await async_session.get(Apartment, apartment_id)
    await async_session.refresh(apartment)
    assert apartment.is_occupied is True
    assert apartment.current_tenant_id == t1_id

    t2_info = await async_session.get(TenantInfo, t2_id)
    await async_session.refresh(t2_info)
    assert t2_info.apartment_id is None
    await assert_occupancy_consistent(async_session)


@pytest.mark.asyncio
async def test_assign_missing_apartment(async_session, make_tenant):
    tenant = await make_tenant()
    with pytest.raises(NotFoundError):
        await assign_apartment(async_session, tenant.id, 999)


@pytest.mark.asyncio
async def test_assign_sets_room_number_and_is_repeatable(async_session, make_apartment, make_tenant):
    apartment = await make_apartment("B202")
    tenant = await make_tenant()

    await assign_apartment(async_session, tenant.id, apartment.id)
    # Assigning the same apartment again is a no-op, not a conflict
    await assign_apartment(async_session, tenant.id, apartment.id)

    info = await async_session.get(TenantInfo, tenant.id)
    assert info.apartment_id == apartment.id
    assert info.room_number == "B202"
    assert apartment.occupied_date is not None


@pytest.mark.asyncio
async def test_reassign_frees_old_apartment(async_session, make_apartment, make_tenant):
    old = await make_apartment("A101")
    new = await make_apartment("A102")
    tenant = await make_tenant(apartment_id=old.id)

    await reassign_apartment(async_session, tenant.id, old.id, new.id)

    assert old.is_occupied is False
    assert old.current_tenant_id is None
    assert old.last_vacated_date is not None
    assert new.current_tenant_id == tenant.id
    info = await async_session.get(TenantInfo, tenant.id)
    assert info.apartment_id == new.id
    assert info.room_number == "A102"


@pytest.mark.asyncio
async def test_reassign_to_taken_apartment_keeps_old_one(async_session, make_apartment, make_tenant):
    old = await make_apartment("A101")
    taken = await make_apartment("A102")
    mover = await make_tenant("mover@example.com", apartment_id=old.id)
    await make_tenant("owner@example.com", apartment_id=taken.id)
    old_id, taken_id, mover_id = old.id, taken.id, mover.id

    with pytest.raises(ConflictError):
        await reassign_apartment(async_session, mover_id, old_id, taken_id)

    old = await async_session.get(Apartment, old_id)
    await async_session.refresh(old)
    assert old.current_tenant_id == mover_id
    await assert_occupancy_consistent(async_session)


@pytest.mark.asyncio
async def test_release_is_unconditional(async_session, make_apartment, make_tenant):
    apartment = await make_apartment()
    tenant = await make_tenant(apartment_id=apartment.id)

    await release_apartment(async_session, apartment.id)
    assert apartment.is_occupied is False
    assert apartment.current_tenant_id is None
    # The holder lets go of the apartment in the same transaction
    info = await async_session.get(TenantInfo, tenant.id)
    assert info.apartment_id is None
    assert info.room_number is None

    # Missing apartment is not an error
    assert await release_apartment(async_session, 12345) is None


@pytest.mark.asyncio
async def test_released_apartment_has_a_single_tenant_after_reassignment(async_session, make_apartment, make_tenant):
    apartment = await make_apartment("A101")
    t1 = await make_tenant("t1@example.com", apartment_id=apartment.id)
    t2 = await make_tenant("t2@example.com")

    await release_apartment(async_session, apartment.id)
    await assign_apartment(async_session, t2.id, apartment.id)

    holders = (await async_session.execute(
        select(TenantInfo.user_id).where(TenantInfo.apartment_id == apartment.id)
    )).scalars().all()
    assert holders == [t2.id]
    assert apartment.current_tenant_id == t2.id
    assert t1.is_active is True
    await assert_occupancy_consistent(async_session)


@pytest.mark.asyncio
async def test_deleted_tenant_cannot_take_an_apartment(async_session, make_apartment, make_tenant):
    apartment = await make_apartment()
    tenant = await make_tenant()
    apartment_id, tenant_id = apartment.id, tenant.id
    await delete_tenant(async_session, tenant_id)

    with pytest.raises(NotFoundError):
        await assign_apartment(async_session, tenant_id, apartment_id)

    apartment = await async_session.get(Apartment, apartment_id)
    await async_session.refresh(apartment)
    assert apartment.is_occupied is False
    assert apartment.current_tenant_id is None


@pytest.mark.asyncio
async def test_inactive_tenant_only_gets_the_reference(async_session, make_apartment, make_tenant):
    apartment = await make_apartment("B202")
    tenant = await make_tenant()
    await toggle_tenant_status(async_session, tenant.id)

    await assign_apartment(async_session, tenant.id, apartment.id)

    assert apartment.is_occupied is False
    info = await async_session.get(TenantInfo, tenant.id)
    assert info.apartment_id == apartment.id
    assert info.room_number == "B202"

    await reactivate_tenant(async_session, tenant.id)
    assert apartment.current_tenant_id == tenant.id
    await assert_occupancy_consistent(async_session)


@pytest.mark.asyncio
async def test_reassign_with_wrong_old_apartment_changes_nothing(async_session, make_apartment, make_tenant):
    a = await make_apartment("A101")
    b = await make_apartment("A102")
    c = await make_apartment("A103")
    other = await make_tenant("other@example.com", apartment_id=a.id)
    mover = await make_tenant("mover@example.com", apartment_id=c.id)
    ids = {"a": a.id, "b": b.id, "c": c.id, "other": other.id, "mover": mover.id}

    with pytest.raises(ConflictError):
        await reassign_apartment(async_session, ids["mover"], ids["a"], ids["b"])

    for key, holder in (("a", ids["other"]), ("b", None), ("c", ids["mover"])):
        apartment = await async_session.get(Apartment, ids[key])
        await async_session.refresh(apartment)
        assert apartment.current_tenant_id == holder
    mover_info = await async_session.get(TenantInfo, ids["mover"])
    await async_session.refresh(mover_info)
    assert mover_info.apartment_id == ids["c"]
    await assert_occupancy_consistent(async_session)


@pytest.mark.asyncio
async def test_reactivation_reclaims_free_apartment(async_session, make_apartment, make_tenant):
    apartment = await make_apartment()
    tenant = await make_tenant(apartment_id=apartment.id)

    await toggle_tenant_status(async_session, tenant.id)
    assert tenant.is_active is False
    assert apartment.is_occupied is False
    # The tenant keeps its reference while inactive
    assert tenant.tenant_info.apartment_id == apartment.id

    user = await reactivate_tenant(async_session, tenant.id)
    assert user.is_active is True
    assert apartment.current_tenant_id == tenant.id
    assert apartment.is_occupied is True


@pytest.mark.asyncio
async def test_reactivation_with_taken_apartment_clears_reference(async_session, make_apartment, make_tenant):
    apartment = await make_apartment()
    first = await make_tenant("first@example.com", apartment_id=apartment.id)
    await toggle_tenant_status(async_session, first.id)

    second = await make_tenant("second@example.com", apartment_id=apartment.id)

    user = await toggle_tenant_status(async_session, first.id)
    assert user.is_active is True
    info = await async_session.get(TenantInfo, first.id)
    assert info.apartment_id is None
    assert info.room_number is None
    assert apartment.current_tenant_id == second.id
    await assert_occupancy_consistent(async_session)
