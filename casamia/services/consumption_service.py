import logging
from datetime import date
from typing import Optional, List, NamedTuple, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.core import utcnow
from casamia.database.models import BeverageConsumption, ConsumptionPaymentStatus
from casamia.errors import NotFoundError, InvalidTransitionError
from casamia.services.billing_service import period_bounds


class BeverageTotal(NamedTuple):
    beverage_name: str
    quantity: int
    amount: float


class ConsumptionStats(NamedTuple):
    """Consumption totals for a tenant or the whole building"""
    total_records: int
    total_quantity: int
    total_amount: float
    by_payment_status: dict  # status -> {"count": int, "amount": float}
    unbilled_amount: float  # Pending and not yet on any bill
    top_beverages: List[BeverageTotal]


def _filters(
    tenant_id: Optional[int] = None,
    payment_status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    included_in_bill: Optional[bool] = None
) -> list:
    conditions = []
    if tenant_id:
        conditions.append(BeverageConsumption.tenant_id == tenant_id)
    if payment_status:
        conditions.append(BeverageConsumption.payment_status == payment_status)
    if included_in_bill is not None:
        conditions.append(BeverageConsumption.included_in_bill == included_in_bill)
    if date_from or date_to:
        start, end = period_bounds(date_from or date(1970, 1, 1), date_to or date(9999, 12, 30))
        conditions.append(BeverageConsumption.consumption_date >= start)
        conditions.append(BeverageConsumption.consumption_date < end)
    return conditions


async def list_consumption(
    session: AsyncSession,
    tenant_id: Optional[int] = None,
    payment_status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    included_in_bill: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0
) -> Tuple[List[BeverageConsumption], int]:
    conditions = _filters(tenant_id, payment_status, date_from, date_to, included_in_bill)
    total = (await session.execute(select(func.count(BeverageConsumption.id)).where(*conditions))).scalar() or 0
    stmt = (
        select(BeverageConsumption)
        .where(*conditions)
        .order_by(BeverageConsumption.consumption_date.desc(), BeverageConsumption.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


async def get_consumption_stats(
    session: AsyncSession,
    tenant_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    top: int = 5
) -> ConsumptionStats:
    conditions = _filters(tenant_id, None, date_from, date_to)

    # 1. Breakdown by payment status
    status_stmt = (
        select(
            BeverageConsumption.payment_status,
            func.count(BeverageConsumption.id),
            func.coalesce(func.sum(BeverageConsumption.quantity), 0),
            func.coalesce(func.sum(BeverageConsumption.total_amount), 0)
        )
        .where(*conditions)
        .group_by(BeverageConsumption.payment_status)
    )
    by_status = {}
    total_records, total_quantity, total_amount = 0, 0, 0.0
    for status, count, quantity, amount in (await session.execute(status_stmt)).all():
        by_status[status] = {"count": count, "amount": round(float(amount), 2)}
        total_records += count
        total_quantity += int(quantity)
        total_amount += float(amount)

    # 2. Pending amount not yet folded into a bill
    unbilled_stmt = select(func.coalesce(func.sum(BeverageConsumption.total_amount), 0)).where(
        *conditions,
        BeverageConsumption.payment_status == ConsumptionPaymentStatus.pending.value,
        BeverageConsumption.included_in_bill == False
    )
    unbilled = float((await session.execute(unbilled_stmt)).scalar())

    # 3. Most consumed beverages
    amount_sum = func.sum(BeverageConsumption.total_amount)
    top_stmt = (
        select(BeverageConsumption.beverage_name, func.sum(BeverageConsumption.quantity), amount_sum)
        .where(*conditions)
        .group_by(BeverageConsumption.beverage_name)
        .order_by(amount_sum.desc())
        .limit(top)
    )
    top_beverages = [
        BeverageTotal(name, int(quantity), round(float(amount), 2))
        for name, quantity, amount in (await session.execute(top_stmt)).all()
    ]

    return ConsumptionStats(
        total_records=total_records,
        total_quantity=total_quantity,
        total_amount=round(total_amount, 2),
        by_payment_status=by_status,
        unbilled_amount=round(unbilled, 2),
        top_beverages=top_beverages,
    )


async def set_payment_status(
    session: AsyncSession,
    consumption_id: int,
    payment_status: str,
    payment_method: Optional[str] = None
) -> BeverageConsumption:
    """
    Settle or cancel a single pending record directly (e.g. paid in cash at the bar).
    Records already on a bill are settled through the bill instead.
    """
    stmt = select(BeverageConsumption).where(BeverageConsumption.id == consumption_id).with_for_update()
    record = (await session.execute(stmt)).scalar_one_or_none()
    if not record:
        raise NotFoundError(f"Consumption record ID {consumption_id} not found")
    if record.payment_status != ConsumptionPaymentStatus.pending.value:
        raise InvalidTransitionError(f"Consumption record {consumption_id} is already {record.payment_status}")
    if record.included_in_bill:
        raise InvalidTransitionError(
            f"Consumption record {consumption_id} is on bill ID {record.utility_bill_id}; settle the bill instead"
        )
    if payment_status not in (ConsumptionPaymentStatus.paid.value, ConsumptionPaymentStatus.cancelled.value):
        raise InvalidTransitionError(f"Cannot move consumption record to {payment_status}")

    record.payment_status = payment_status
    if payment_status == ConsumptionPaymentStatus.paid.value:
        record.paid_at = utcnow()
        if payment_method:
            record.payment_method = payment_method
    await session.commit()
    logging.info(f"Consumption record {consumption_id} marked {payment_status}")
    return record
