import logging
from datetime import date
from typing import Optional, List, Tuple, NamedTuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.core import utcnow
from casamia.database.models import (
    User, TenantInfo, Role, LeaseStatus, Apartment, BeverageCart, CartStatus,
    BeverageConsumption, ConsumptionPaymentStatus, UtilityBill, BillStatus
)
from casamia.errors import NotFoundError
from casamia.services.auth_service import hash_password
from casamia.services.notification_service import get_notification_service
from casamia.services.occupancy_service import move_tenant, vacate_apartment, reactivate_tenant
from casamia.services.user_service import ensure_email_available, normalize_email

TENANT_INFO_FIELDS = (
    "room_number", "lease_start_date", "lease_end_date", "monthly_rent",
    "security_deposit", "emergency_contact",
)


class TenantDashboard(NamedTuple):
    """Everything a tenant sees on their home screen"""
    tenant: User
    apartment: Optional[Apartment]
    cart: Optional[BeverageCart]
    unpaid_bills: List[UtilityBill]
    unpaid_total: float
    pending_consumption_total: float


async def get_tenant(session: AsyncSession, tenant_id: int, include_deleted: bool = False) -> User:
    stmt = select(User).where(User.id == tenant_id, User.role == Role.tenant.value)
    if not include_deleted:
        stmt = stmt.where(User.is_deleted == False)
    result = await session.execute(stmt)
    tenant = result.scalar_one_or_none()
    if not tenant or tenant.tenant_info is None:
        raise NotFoundError(f"Tenant ID {tenant_id} not found")
    return tenant


async def list_tenants(
    session: AsyncSession,
    lease_status: Optional[str] = None,
    apartment_id: Optional[int] = None,
    include_deleted: bool = False,
    limit: int = 50,
    offset: int = 0
) -> Tuple[List[User], int]:
    conditions = [User.role == Role.tenant.value]
    if lease_status:
        conditions.append(TenantInfo.lease_status == lease_status)
    if apartment_id:
        conditions.append(TenantInfo.apartment_id == apartment_id)
    if not include_deleted:
        conditions.append(User.is_deleted == False)

    base = select(User).join(TenantInfo, TenantInfo.user_id == User.id).where(*conditions)
    total = (await session.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
    result = await session.execute(base.order_by(User.id).limit(limit).offset(offset))
    return list(result.scalars().all()), total


async def create_tenant(
    session: AsyncSession,
    name: str,
    email: str,
    password: str,
    phone: Optional[str] = None,
    apartment_id: Optional[int] = None,
    room_number: Optional[str] = None,
    lease_start_date: Optional[date] = None,
    lease_end_date: Optional[date] = None,
    monthly_rent: float = 0,
    security_deposit: float = 0,
    emergency_contact: Optional[dict] = None,
    send_welcome: bool = True
) -> User:
    """
    Onboard a tenant.

    The user row, its tenant info and the apartment occupancy are written in one
    transaction: if the apartment is missing or taken nothing is created.
    """
    try:
        await ensure_email_available(session, email)
        tenant = User(
            name=name,
            email=normalize_email(email),
            password_hash=hash_password(password),
            role=Role.tenant.value,
            phone=phone,
        )
        tenant.tenant_info = TenantInfo(
            room_number=room_number,
            lease_start_date=lease_start_date,
            lease_end_date=lease_end_date,
            monthly_rent=monthly_rent,
            security_deposit=security_deposit,
            emergency_contact=emergency_contact,
            lease_history=[],
        )
        session.add(tenant)
        await session.flush()

        if apartment_id is not None:
            await move_tenant(session, tenant.tenant_info, apartment_id)

        _sync_historical_flag(tenant)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logging.info(f"Tenant {tenant.id} created (apartment {apartment_id})")
    if send_welcome:
        await get_notification_service().send_welcome_email(tenant)
    return tenant


async def update_tenant(session: AsyncSession, tenant_id: int, changes: dict) -> User:
    """
    Update profile and lease fields. An `apartment_id` key (including None) moves
    the tenant, releasing the old apartment in the same transaction.
    """
    try:
        tenant = await get_tenant(session, tenant_id)
        tenant_info = tenant.tenant_info

        if changes.get("email"):
            await ensure_email_available(session, changes["email"], exclude_user_id=tenant_id)
            tenant.email = normalize_email(changes["email"])
        for field in ("name", "phone"):
            if field in changes:
                setattr(tenant, field, changes[field])
        for field in TENANT_INFO_FIELDS:
            if field in changes:
                setattr(tenant_info, field, changes[field])

        if "apartment_id" in changes and tenant.is_active:
            await move_tenant(session, tenant_info, changes["apartment_id"])
        elif "apartment_id" in changes:
            # Inactive tenants hold no apartment; remember the reference for reactivation
            tenant_info.apartment_id = changes["apartment_id"]

        # Recompute here as well so the historical flag follows the new dates
        tenant_info.refresh_stay_duration()
        tenant_info.refresh_lease_status()
        _sync_historical_flag(tenant)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logging.info(f"Tenant {tenant_id} updated: {sorted(changes)}")
    return tenant


async def delete_tenant(session: AsyncSession, tenant_id: int, deleted_by: Optional[int] = None) -> User:
    """Soft delete: the record stays for bills, consumption and maintenance history."""
    try:
        tenant = await get_tenant(session, tenant_id)
        tenant_info = tenant.tenant_info
        if tenant_info.apartment_id is not None:
            await release_held_apartment(session, tenant_info)

        tenant.is_active = False
        tenant.is_deleted = True
        tenant.deleted_at = utcnow()
        tenant.deleted_by = deleted_by
        tenant.is_historical_record = True
        tenant_info.lease_status = LeaseStatus.terminated.value
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logging.info(f"Tenant {tenant_id} soft-deleted by {deleted_by}")
    return tenant


async def toggle_tenant_status(session: AsyncSession, tenant_id: int) -> User:
    """
    Deactivate (apartment released, reference kept) or reactivate (apartment
    reclaimed if still free, otherwise the reference is cleared).
    """
    tenant = await get_tenant(session, tenant_id)
    if not tenant.is_active:
        return await reactivate_tenant(session, tenant_id)

    try:
        tenant.is_active = False
        if tenant.tenant_info.apartment_id is not None:
            await release_held_apartment(session, tenant.tenant_info)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logging.info(f"Tenant {tenant_id} deactivated")
    return tenant


async def release_held_apartment(session: AsyncSession, tenant_info: TenantInfo):
    apartment = await session.get(Apartment, tenant_info.apartment_id)
    if apartment is None or apartment.current_tenant_id is None:
        return
    if apartment.current_tenant_id != tenant_info.user_id:
        # Someone else lives there now; leave their occupancy alone
        logging.warning(
            f"Apartment {apartment.id} is held by tenant {apartment.current_tenant_id}, "
            f"not releasing for tenant {tenant_info.user_id}"
        )
        return
    await vacate_apartment(session, tenant_info.apartment_id)


def _sync_historical_flag(tenant: User):
    if tenant.tenant_info.lease_status == LeaseStatus.expired.value:
        tenant.is_historical_record = True


async def get_tenant_dashboard(session: AsyncSession, tenant_id: int) -> TenantDashboard:
    tenant = await get_tenant(session, tenant_id)
    apartment = None
    if tenant.tenant_info.apartment_id:
        apartment = await session.get(Apartment, tenant.tenant_info.apartment_id)

    cart_stmt = select(BeverageCart).where(
        BeverageCart.tenant_id == tenant_id,
        BeverageCart.status == CartStatus.active.value
    )
    cart = (await session.execute(cart_stmt)).scalars().first()

    bills_stmt = (
        select(UtilityBill)
        .where(
            UtilityBill.tenant_id == tenant_id,
            UtilityBill.status.in_([BillStatus.sent.value, BillStatus.overdue.value])
        )
        .order_by(UtilityBill.billing_period_start.desc())
    )
    unpaid_bills = list((await session.execute(bills_stmt)).scalars().all())

    pending_stmt = select(func.coalesce(func.sum(BeverageConsumption.total_amount), 0)).where(
        BeverageConsumption.tenant_id == tenant_id,
        BeverageConsumption.payment_status == ConsumptionPaymentStatus.pending.value
    )
    pending_total = float((await session.execute(pending_stmt)).scalar())

    return TenantDashboard(
        tenant=tenant,
        apartment=apartment,
        cart=cart,
        unpaid_bills=unpaid_bills,
        unpaid_total=round(sum(float(b.total_amount) for b in unpaid_bills), 2),
        pending_consumption_total=round(pending_total, 2),
    )
