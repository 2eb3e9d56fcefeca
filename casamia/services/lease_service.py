import logging
from datetime import date, timedelta
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.core import utcnow
from casamia.database.models import User, TenantInfo, Role, LeaseStatus
from casamia.services.notification_service import get_notification_service
from casamia.services.tenant_service import get_tenant, release_held_apartment


async def update_lease_statuses(session: AsyncSession) -> dict:
    """
    Daily job: recompute lease_status for every tenant that is not deleted.
    Tenants whose lease has expired are flagged as historical records.

    Returns a {status: count} summary of the changes made.
    """
    today = date.today()
    stmt = (
        select(User)
        .join(TenantInfo, TenantInfo.user_id == User.id)
        .where(
            User.role == Role.tenant.value,
            User.is_deleted == False,
            TenantInfo.lease_status != LeaseStatus.terminated.value
        )
    )
    tenants = (await session.execute(stmt)).scalars().all()

    changes = {}
    for tenant in tenants:
        info = tenant.tenant_info
        previous = info.lease_status
        current = info.refresh_lease_status(today)
        if current == LeaseStatus.expired.value and not tenant.is_historical_record:
            tenant.is_historical_record = True
        if current != previous:
            changes[current] = changes.get(current, 0) + 1
            logging.info(f"Tenant {tenant.id} lease: {previous} -> {current}")

    await session.commit()
    return changes


async def archive_tenant(
    session: AsyncSession,
    tenant_id: int,
    reason: str = "Lease ended",
    archived_by: Optional[int] = None
) -> User:
    """
    Close the tenant's current lease: snapshot it into lease_history, release the
    apartment, terminate the lease and deactivate the account.
    """
    try:
        tenant = await get_tenant(session, tenant_id)
        info = tenant.tenant_info
        info.refresh_stay_duration()

        snapshot = {
            "apartment_id": info.apartment_id,
            "room_number": info.room_number,
            "lease_start_date": info.lease_start_date.isoformat() if info.lease_start_date else None,
            "lease_end_date": info.lease_end_date.isoformat() if info.lease_end_date else None,
            "monthly_rent": float(info.monthly_rent or 0),
            "security_deposit": float(info.security_deposit or 0),
            "total_days": info.total_days,
            "total_months": info.total_months,
            "total_years": info.total_years,
            "reason": reason,
            "archived_by": archived_by,
            "archived_at": utcnow().isoformat(),
        }
        # Reassign so the JSON column is written
        info.lease_history = list(info.lease_history or []) + [snapshot]

        if info.apartment_id is not None:
            await release_held_apartment(session, info)
        info.apartment_id = None
        info.lease_status = LeaseStatus.terminated.value
        tenant.is_active = False
        tenant.is_historical_record = True
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logging.info(f"Tenant {tenant_id} archived ({reason}), {len(info.lease_history)} leases in history")
    return tenant


async def send_lease_expiry_warnings(session: AsyncSession, today: Optional[date] = None, days: int = 10) -> int:
    """Email active tenants whose lease ends exactly `days` from today. Returns emails delivered."""
    today = today or date.today()
    target = today + timedelta(days=days)
    stmt = (
        select(User)
        .join(TenantInfo, TenantInfo.user_id == User.id)
        .where(
            User.role == Role.tenant.value,
            User.is_active == True,
            User.is_deleted == False,
            TenantInfo.lease_end_date == target
        )
    )
    tenants = (await session.execute(stmt)).scalars().all()
    logging.info(f"Found {len(tenants)} tenants with leases expiring in {days} days")

    delivered = 0
    notifications = get_notification_service()
    for tenant in tenants:
        if await notifications.send_lease_expiry_warning(tenant, tenant.tenant_info, days):
            delivered += 1
    return delivered
