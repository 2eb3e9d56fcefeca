import logging
from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.models import Apartment
from casamia.errors import NotFoundError, ConflictError

APARTMENT_FIELDS = (
    "unit_number", "building", "floor", "apartment_type", "bedrooms", "bathrooms",
    "area", "rent", "deposit", "amenities", "description",
)


async def _ensure_unit_available(session: AsyncSession, unit_number: str, exclude_id: Optional[int] = None):
    stmt = select(Apartment.id).where(Apartment.unit_number == unit_number)
    if exclude_id is not None:
        stmt = stmt.where(Apartment.id != exclude_id)
    if (await session.execute(stmt)).first():
        raise ConflictError(f"Apartment with unit number {unit_number} already exists")


async def get_apartment(session: AsyncSession, apartment_id: int) -> Apartment:
    apartment = await session.get(Apartment, apartment_id)
    if not apartment:
        raise NotFoundError(f"Apartment ID {apartment_id} not found")
    return apartment


async def list_apartments(
    session: AsyncSession,
    available_only: bool = False,
    building: Optional[str] = None
) -> List[Apartment]:
    stmt = select(Apartment)
    if available_only:
        stmt = stmt.where(Apartment.is_occupied == False)
    if building:
        stmt = stmt.where(Apartment.building == building)
    result = await session.execute(stmt.order_by(Apartment.building, Apartment.unit_number))
    return list(result.scalars().all())


async def create_apartment(session: AsyncSession, data: dict) -> Apartment:
    await _ensure_unit_available(session, data["unit_number"])
    apartment = Apartment(**{k: v for k, v in data.items() if k in APARTMENT_FIELDS})
    session.add(apartment)
    await session.commit()
    logging.info(f"Apartment {apartment.unit_number} created (ID {apartment.id})")
    return apartment


async def update_apartment(session: AsyncSession, apartment_id: int, changes: dict) -> Apartment:
    """Occupancy fields are owned by the occupancy service and cannot be set here."""
    apartment = await get_apartment(session, apartment_id)
    if changes.get("unit_number") and changes["unit_number"] != apartment.unit_number:
        await _ensure_unit_available(session, changes["unit_number"], exclude_id=apartment_id)

    for field in APARTMENT_FIELDS:
        if field in changes:
            setattr(apartment, field, changes[field])
    await session.commit()
    return apartment


async def delete_apartment(session: AsyncSession, apartment_id: int):
    apartment = await get_apartment(session, apartment_id)
    if apartment.is_occupied:
        raise ConflictError(
            f"Apartment {apartment.unit_number} is occupied by tenant ID {apartment.current_tenant_id}. "
            f"Release it before deleting."
        )
    await session.delete(apartment)
    await session.commit()
    logging.info(f"Apartment {apartment_id} deleted")
