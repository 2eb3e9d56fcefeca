import logging
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.core import utcnow
from casamia.database.models import Apartment, TenantInfo, User, Role
from casamia.errors import NotFoundError, ConflictError

# The helpers below only stage changes on the session. The public operations at the
# bottom of the module wrap them in a single transaction and commit or roll back
# as a unit; tenant_service composes the helpers into its own transactions.


async def _lock_apartment(session: AsyncSession, apartment_id: int) -> Optional[Apartment]:
    stmt = (
        select(Apartment)
        .where(Apartment.id == apartment_id)
        .with_for_update()  # Row-level lock
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _lock_tenant_info(session: AsyncSession, tenant_id: int) -> TenantInfo:
    """Lock the tenant info row. Soft-deleted tenants are treated as missing."""
    stmt = (
        select(TenantInfo)
        .join(User, User.id == TenantInfo.user_id)
        .where(
            TenantInfo.user_id == tenant_id,
            User.role == Role.tenant.value,
            User.is_deleted == False
        )
        .with_for_update()
    )
    result = await session.execute(stmt)
    tenant_info = result.scalar_one_or_none()
    if not tenant_info:
        raise NotFoundError(f"Tenant ID {tenant_id} not found")
    return tenant_info


async def occupy_apartment(session: AsyncSession, tenant_id: int, apartment_id: int) -> Apartment:
    """
    Mark the apartment as held by the tenant.

    Raises:
        NotFoundError: apartment does not exist
        ConflictError: apartment is held by another tenant
    """
    apartment = await _lock_apartment(session, apartment_id)
    if not apartment:
        raise NotFoundError(f"Apartment ID {apartment_id} not found")

    if apartment.is_occupied and apartment.current_tenant_id != tenant_id:
        raise ConflictError(
            f"Apartment {apartment.unit_number} is already occupied by tenant ID {apartment.current_tenant_id}"
        )

    if apartment.current_tenant_id == tenant_id and apartment.is_occupied:
        logging.info(f"Apartment {apartment.unit_number} already held by tenant {tenant_id}, skipping")
        return apartment

    apartment.is_occupied = True
    apartment.current_tenant_id = tenant_id
    apartment.occupied_date = utcnow()
    await session.flush()
    return apartment


async def vacate_apartment(session: AsyncSession, apartment_id: int) -> Optional[Apartment]:
    """Clear occupancy unconditionally. A missing apartment is logged, not an error."""
    apartment = await _lock_apartment(session, apartment_id)
    if not apartment:
        logging.warning(f"Apartment ID {apartment_id} not found while releasing, nothing to clear")
        return None

    apartment.is_occupied = False
    apartment.current_tenant_id = None
    apartment.last_vacated_date = utcnow()
    await session.flush()
    return apartment


async def move_tenant(session: AsyncSession, tenant_info: TenantInfo, new_apartment_id: Optional[int]) -> None:
    """Stage an apartment change for the tenant: assign, reassign or release."""
    old_apartment_id = tenant_info.apartment_id
    if old_apartment_id == new_apartment_id:
        return

    if new_apartment_id is not None:
        # Check the new apartment before giving up the old one
        apartment = await occupy_apartment(session, tenant_info.user_id, new_apartment_id)
        if not tenant_info.room_number or tenant_info.apartment_id is not None:
            tenant_info.room_number = apartment.unit_number

    if old_apartment_id is not None:
        await vacate_apartment(session, old_apartment_id)

    tenant_info.apartment_id = new_apartment_id
    await session.flush()
    logging.info(f"Tenant {tenant_info.user_id} moved: apartment {old_apartment_id} -> {new_apartment_id}")


# Transactional operations

async def assign_apartment(session: AsyncSession, tenant_id: int, apartment_id: int) -> Apartment:
    """
    Assign an apartment to a tenant. Tenant and apartment writes commit together.

    An inactive tenant only gets the reference; the apartment is claimed when
    the tenant is reactivated.
    """
    try:
        tenant_info = await _lock_tenant_info(session, tenant_id)
        user = await session.get(User, tenant_id)
        if not user.is_active:
            apartment = await session.get(Apartment, apartment_id)
            if not apartment:
                raise NotFoundError(f"Apartment ID {apartment_id} not found")
            tenant_info.apartment_id = apartment_id
            tenant_info.room_number = apartment.unit_number
            await session.commit()
            logging.info(f"Apartment {apartment_id} reserved for inactive tenant {tenant_id}")
            return apartment

        if tenant_info.apartment_id not in (None, apartment_id):
            await move_tenant(session, tenant_info, apartment_id)
        else:
            apartment = await occupy_apartment(session, tenant_id, apartment_id)
            tenant_info.apartment_id = apartment_id
            if not tenant_info.room_number:
                tenant_info.room_number = apartment.unit_number
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logging.info(f"Apartment {apartment_id} assigned to tenant {tenant_id}")
    return await session.get(Apartment, apartment_id)


async def reassign_apartment(
    session: AsyncSession,
    tenant_id: int,
    old_apartment_id: Optional[int],
    new_apartment_id: int
) -> Apartment:
    """
    Move a tenant from one apartment to another in a single transaction.

    Raises:
        ConflictError: old_apartment_id is not the apartment the tenant holds
    """
    try:
        tenant_info = await _lock_tenant_info(session, tenant_id)
        if tenant_info.apartment_id != old_apartment_id:
            raise ConflictError(
                f"Tenant ID {tenant_id} holds apartment {tenant_info.apartment_id}, not {old_apartment_id}"
            )
        if old_apartment_id == new_apartment_id:
            apartment = await occupy_apartment(session, tenant_id, new_apartment_id)
        else:
            await move_tenant(session, tenant_info, new_apartment_id)
            apartment = await session.get(Apartment, new_apartment_id)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logging.info(f"Tenant {tenant_id} reassigned: apartment {old_apartment_id} -> {new_apartment_id}")
    return apartment


async def release_apartment(session: AsyncSession, apartment_id: int) -> Optional[Apartment]:
    """Admin release: the apartment and its holder's reference are cleared together."""
    try:
        apartment = await _lock_apartment(session, apartment_id)
        if apartment and apartment.current_tenant_id is not None:
            stmt = (
                select(TenantInfo)
                .where(TenantInfo.user_id == apartment.current_tenant_id)
                .with_for_update()
            )
            holder = (await session.execute(stmt)).scalar_one_or_none()
            if holder and holder.apartment_id == apartment_id:
                holder.apartment_id = None
                holder.room_number = None
        apartment = await vacate_apartment(session, apartment_id)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    logging.info(f"Apartment {apartment_id} released")
    return apartment


async def reclaim_apartment(session: AsyncSession, tenant_info: TenantInfo) -> bool:
    """
    Stage re-occupation of the tenant's previous apartment.

    Returns True when the apartment was re-assigned. When it is gone or now held
    by someone else the tenant's own reference is cleared instead, so the admin
    can assign a new one later.
    """
    if tenant_info.apartment_id is None:
        return False

    apartment = await _lock_apartment(session, tenant_info.apartment_id)
    if apartment and (not apartment.is_occupied or apartment.current_tenant_id == tenant_info.user_id):
        apartment.is_occupied = True
        apartment.current_tenant_id = tenant_info.user_id
        apartment.occupied_date = utcnow()
        await session.flush()
        return True

    logging.warning(
        f"Apartment {tenant_info.apartment_id} is no longer available for tenant {tenant_info.user_id}, "
        f"clearing the tenant's apartment reference"
    )
    tenant_info.apartment_id = None
    tenant_info.room_number = None
    await session.flush()
    return False


async def reactivate_tenant(session: AsyncSession, tenant_id: int) -> User:
    """Turn a deactivated tenant back on and try to give them their apartment back."""
    try:
        tenant_info = await _lock_tenant_info(session, tenant_id)
        user = await session.get(User, tenant_id)
        user.is_active = True
        kept = await reclaim_apartment(session, tenant_info)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logging.info(f"Tenant {tenant_id} reactivated (apartment kept: {kept})")
    return user
