import logging
from datetime import date
from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.core import utcnow
from casamia.database.models import RooftopReservation, ReservationStatus, TimeSlot
from casamia.errors import NotFoundError, InvalidTransitionError, ServiceError
from casamia.services.tenant_service import get_tenant

# Default opening hours of each slot
SLOT_HOURS = {
    TimeSlot.morning.value: ("06:00", "12:00"),
    TimeSlot.afternoon.value: ("12:00", "17:00"),
    TimeSlot.evening.value: ("17:00", "21:00"),
    TimeSlot.night.value: ("21:00", "24:00"),
    TimeSlot.full_day.value: ("06:00", "24:00"),
}


async def create_reservation(
    session: AsyncSession,
    tenant_id: int,
    reservation_date: date,
    time_slot: str,
    number_of_guests: int,
    purpose: Optional[str] = None,
    special_requests: Optional[str] = None,
    contact_phone: Optional[str] = None,
    time_slot_start: Optional[str] = None,
    time_slot_end: Optional[str] = None
) -> RooftopReservation:
    if reservation_date < date.today():
        raise ServiceError("Reservation date cannot be in the past")
    if not 1 <= number_of_guests <= 20:
        raise ServiceError("Number of guests must be between 1 and 20")

    tenant = await get_tenant(session, tenant_id)
    default_start, default_end = SLOT_HOURS.get(time_slot, (None, None))
    reservation = RooftopReservation(
        tenant_id=tenant_id,
        reservation_date=reservation_date,
        time_slot=time_slot,
        time_slot_start=time_slot_start or default_start,
        time_slot_end=time_slot_end or default_end,
        number_of_guests=number_of_guests,
        purpose=purpose,
        special_requests=special_requests,
        room_number=tenant.tenant_info.room_number,
        contact_phone=contact_phone or tenant.phone,
        status=ReservationStatus.pending.value,
    )
    session.add(reservation)
    await session.commit()
    logging.info(f"Rooftop reservation {reservation.id} created by tenant {tenant_id} for {reservation_date} ({time_slot})")
    return reservation


async def get_reservation(session: AsyncSession, reservation_id: int, tenant_id: Optional[int] = None) -> RooftopReservation:
    """Fetch a reservation; with tenant_id set only that tenant's reservation matches."""
    stmt = select(RooftopReservation).where(RooftopReservation.id == reservation_id)
    if tenant_id is not None:
        stmt = stmt.where(RooftopReservation.tenant_id == tenant_id)
    reservation = (await session.execute(stmt)).scalar_one_or_none()
    if not reservation:
        raise NotFoundError(f"Reservation ID {reservation_id} not found")
    return reservation


async def list_reservations(
    session: AsyncSession,
    tenant_id: Optional[int] = None,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None
) -> List[RooftopReservation]:
    stmt = select(RooftopReservation)
    if tenant_id:
        stmt = stmt.where(RooftopReservation.tenant_id == tenant_id)
    if status:
        stmt = stmt.where(RooftopReservation.status == status)
    if date_from:
        stmt = stmt.where(RooftopReservation.reservation_date >= date_from)
    if date_to:
        stmt = stmt.where(RooftopReservation.reservation_date <= date_to)
    result = await session.execute(stmt.order_by(RooftopReservation.reservation_date.desc(), RooftopReservation.id.desc()))
    return list(result.scalars().all())


async def cancel_reservation(session: AsyncSession, reservation_id: int, tenant_id: int) -> RooftopReservation:
    reservation = await get_reservation(session, reservation_id, tenant_id=tenant_id)
    if reservation.status == ReservationStatus.completed.value:
        raise InvalidTransitionError("Cannot cancel completed reservation")
    reservation.status = ReservationStatus.cancelled.value
    await session.commit()
    return reservation


async def review_reservation(
    session: AsyncSession,
    reservation_id: int,
    status: str,
    reviewer_id: int,
    admin_notes: Optional[str] = None
) -> RooftopReservation:
    if status not in (ReservationStatus.confirmed.value, ReservationStatus.cancelled.value):
        raise ServiceError("Status must be confirmed or cancelled")

    reservation = await get_reservation(session, reservation_id)
    if reservation.status == ReservationStatus.completed.value:
        raise InvalidTransitionError("Completed reservations cannot be reviewed")

    reservation.status = status
    reservation.admin_notes = admin_notes
    reservation.reviewed_by = reviewer_id
    reservation.reviewed_at = utcnow()
    await session.commit()
    logging.info(f"Reservation {reservation_id} {status} by admin {reviewer_id}")
    return reservation
