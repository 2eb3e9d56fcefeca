import logging
from typing import Optional, List
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.models import Beverage
from casamia.errors import NotFoundError, ConflictError

BEVERAGE_FIELDS = ("name", "category", "price", "description", "is_available", "stock_quantity")


async def _ensure_name_available(session: AsyncSession, name: str, exclude_id: Optional[int] = None):
    stmt = select(Beverage.id).where(func.lower(Beverage.name) == name.strip().lower())
    if exclude_id is not None:
        stmt = stmt.where(Beverage.id != exclude_id)
    if (await session.execute(stmt)).first():
        raise ConflictError(f"Beverage '{name}' already exists")


async def get_beverage(session: AsyncSession, beverage_id: int) -> Beverage:
    beverage = await session.get(Beverage, beverage_id)
    if not beverage:
        raise NotFoundError(f"Beverage ID {beverage_id} not found")
    return beverage


async def list_beverages(
    session: AsyncSession,
    available_only: bool = False,
    category: Optional[str] = None
) -> List[Beverage]:
    stmt = select(Beverage)
    if available_only:
        stmt = stmt.where(Beverage.is_available == True)
    if category:
        stmt = stmt.where(Beverage.category == category)
    result = await session.execute(stmt.order_by(Beverage.category, Beverage.name))
    return list(result.scalars().all())


async def create_beverage(session: AsyncSession, data: dict) -> Beverage:
    await _ensure_name_available(session, data["name"])
    beverage = Beverage(**{k: v for k, v in data.items() if k in BEVERAGE_FIELDS})
    session.add(beverage)
    await session.commit()
    logging.info(f"Beverage '{beverage.name}' created at {beverage.price}")
    return beverage


async def update_beverage(session: AsyncSession, beverage_id: int, changes: dict) -> Beverage:
    """Price changes apply to new cart lines only; existing lines keep their unit price."""
    beverage = await get_beverage(session, beverage_id)
    if changes.get("name"):
        await _ensure_name_available(session, changes["name"], exclude_id=beverage_id)
    for field in BEVERAGE_FIELDS:
        if field in changes:
            setattr(beverage, field, changes[field])
    await session.commit()
    return beverage


async def delete_beverage(session: AsyncSession, beverage_id: int):
    """Retire a beverage. It stays in the table because cart lines and consumption reference it."""
    beverage = await get_beverage(session, beverage_id)
    beverage.is_available = False
    await session.commit()
    logging.info(f"Beverage {beverage_id} retired")
