import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, List, NamedTuple, Sequence, Callable, Awaitable, TypeVar
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.config import config
from casamia.database.core import utcnow
from casamia.database.models import (
    UtilityBill, BillSequence, BillStatus, BeverageConsumption, ConsumptionPaymentStatus, User
)
from casamia.errors import NotFoundError, ConflictError, InvalidReadingError, InvalidTransitionError, ServiceError
from casamia.services.notification_service import get_notification_service
from casamia.services.tenant_service import get_tenant

MAX_BILL_NUMBER_ATTEMPTS = 10

T = TypeVar("T")


class UtilityReading(NamedTuple):
    """Metered utility line as entered by the admin"""
    utility_type: str
    current_reading: float
    rate: float
    previous_reading: float = 0.0


class Adjustment(NamedTuple):
    """Additional charge or discount line"""
    description: str
    amount: float


class BillStats(NamedTuple):
    total_bills: int
    total_amount: float
    by_status: dict  # status -> {"count": int, "amount": float}


# ========== Calculations ==========

def compute_utility_lines(readings: Sequence[UtilityReading]) -> List[dict]:
    """
    consumption = current - previous, amount = consumption * rate.

    Raises:
        InvalidReadingError: a reading goes backwards or a rate is negative
    """
    lines = []
    for reading in readings:
        consumption = round(float(reading.current_reading) - float(reading.previous_reading), 4)
        if consumption < 0:
            raise InvalidReadingError(
                f"Invalid {reading.utility_type} reading: current ({reading.current_reading}) "
                f"is lower than previous ({reading.previous_reading})"
            )
        if reading.rate < 0:
            raise InvalidReadingError(f"Invalid {reading.utility_type} rate: {reading.rate}")
        lines.append({
            "utility_type": reading.utility_type,
            "previous_reading": float(reading.previous_reading),
            "current_reading": float(reading.current_reading),
            "consumption": consumption,
            "rate": float(reading.rate),
            "amount": round(consumption * float(reading.rate), 2),
        })
    return lines


def adjustment_lines(adjustments: Sequence[Adjustment]) -> List[dict]:
    return [{"description": a.description, "amount": round(float(a.amount), 2)} for a in adjustments]


def apply_totals(bill: UtilityBill):
    """subtotal = utilities + charges - discounts + beverages; total = subtotal + tax"""
    utilities_total = sum(line["amount"] for line in bill.utilities or [])
    charges_total = sum(line["amount"] for line in bill.additional_charges or [])
    discounts_total = sum(line["amount"] for line in bill.discounts or [])
    bill.beverage_total = round(sum(item["total_amount"] for item in bill.beverage_items or []), 2)
    bill.subtotal = round(utilities_total + charges_total - discounts_total + bill.beverage_total, 2)
    bill.total_amount = round(bill.subtotal + float(bill.tax or 0), 2)


def consumption_snapshot(record: BeverageConsumption) -> dict:
    return {
        "consumption_id": record.id,
        "beverage_id": record.beverage_id,
        "beverage_name": record.beverage_name,
        "quantity": record.quantity,
        "unit_price": float(record.unit_price),
        "total_amount": float(record.total_amount),
        "consumption_date": record.consumption_date.isoformat() if record.consumption_date else None,
    }


def period_bounds(period_start: date, period_end: date) -> tuple[datetime, datetime]:
    """Half-open timestamp range covering every day from start through end."""
    start = datetime.combine(period_start, time.min, tzinfo=timezone.utc)
    end = datetime.combine(period_end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return start, end


# ========== Bill numbers ==========

async def _seed_sequence(session: AsyncSession, period: str) -> int:
    """Highest number already issued for the month (bills created before the counter existed)."""
    stmt = select(func.max(UtilityBill.bill_number)).where(UtilityBill.bill_number.like(f"BILL-{period}-%"))
    highest = (await session.execute(stmt)).scalar()
    if not highest:
        return 0
    match = re.search(r"-(\d+)$", highest)
    return int(match.group(1)) if match else 0


async def next_bill_number(session: AsyncSession, now: Optional[datetime] = None) -> str:
    """
    Allocate BILL-{YYYY}{MM}-{seq} from the per-month counter row.

    The counter row is locked for the rest of the transaction, so concurrent
    allocations for the same month queue up behind each other. Two transactions
    racing to create the month's first row collide on the primary key; the
    loser is retried by run_bill_transaction.
    """
    now = now or utcnow()
    period = f"{now.year}{now.month:02d}"

    stmt = select(BillSequence).where(BillSequence.period == period).with_for_update()
    sequence = (await session.execute(stmt)).scalar_one_or_none()
    if sequence is None:
        sequence = BillSequence(period=period, last_value=await _seed_sequence(session, period))
        session.add(sequence)

    sequence.last_value += 1
    await session.flush()
    return f"BILL-{period}-{sequence.last_value:04d}"


def is_bill_number_collision(error: IntegrityError) -> bool:
    """Unique violation on utility_bills.bill_number or on the bill_sequences counter row."""
    message = str(error.orig).lower()
    if "unique" not in message and "duplicate key" not in message:
        return False
    return "bill_number" in message or "bill_sequences" in message


async def run_bill_transaction(session: AsyncSession, work: Callable[[], Awaitable[T]]) -> T:
    """
    Run `work` and commit, retrying the whole transaction on bill number collisions.

    Any other error, other integrity errors included, rolls back and propagates.
    After MAX_BILL_NUMBER_ATTEMPTS collisions the allocation fails with ConflictError.
    """
    for attempt in range(1, MAX_BILL_NUMBER_ATTEMPTS + 1):
        try:
            result = await work()
            await session.commit()
            return result
        except IntegrityError as e:
            await session.rollback()
            if not is_bill_number_collision(e):
                raise
            logging.warning(f"Bill transaction collided (attempt {attempt}/{MAX_BILL_NUMBER_ATTEMPTS}): {e.orig}")
        except Exception:
            await session.rollback()
            raise
    raise ConflictError(f"Could not allocate a unique bill number after {MAX_BILL_NUMBER_ATTEMPTS} attempts")


# ========== Fold-in ==========

async def collect_pending_consumption(
    session: AsyncSession,
    tenant_id: int,
    period_start: date,
    period_end: date
) -> List[BeverageConsumption]:
    """Pending, not-yet-billed consumption inside the period, locked for the caller's transaction."""
    start, end = period_bounds(period_start, period_end)
    stmt = (
        select(BeverageConsumption)
        .where(
            BeverageConsumption.tenant_id == tenant_id,
            BeverageConsumption.payment_status == ConsumptionPaymentStatus.pending.value,
            BeverageConsumption.included_in_bill == False,
            BeverageConsumption.consumption_date >= start,
            BeverageConsumption.consumption_date < end,
        )
        .order_by(BeverageConsumption.consumption_date, BeverageConsumption.id)
        .with_for_update()
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


def link_consumption(bill: UtilityBill, records: Sequence[BeverageConsumption]):
    """Attach records to the bill: snapshot lines on the bill, back-reference on each record."""
    already = {item["consumption_id"] for item in bill.beverage_items or []}
    items = list(bill.beverage_items or [])
    for record in records:
        if record.id in already:
            continue
        items.append(consumption_snapshot(record))
        record.included_in_bill = True
        record.utility_bill_id = bill.id
        record.billing_period_start = bill.billing_period_start
        record.billing_period_end = bill.billing_period_end
    # JSON columns are only written when the attribute is reassigned
    bill.beverage_items = items
    apply_totals(bill)


async def _new_bill(
    session: AsyncSession,
    tenant_id: int,
    apartment_id: int,
    period_start: date,
    period_end: date,
    utilities: List[dict],
    additional_charges: List[dict],
    discounts: List[dict],
    tax: float,
    status: str,
    due_date: Optional[date],
    generated_by: Optional[int],
    admin_notes: Optional[str],
    extra_records: Sequence[BeverageConsumption] = ()
) -> UtilityBill:
    now = utcnow()
    records = await collect_pending_consumption(session, tenant_id, period_start, period_end)
    seen = {r.id for r in records}
    records += [r for r in extra_records if r.id not in seen]

    bill = UtilityBill(
        bill_number=await next_bill_number(session, now),
        tenant_id=tenant_id,
        apartment_id=apartment_id,
        billing_period_start=period_start,
        billing_period_end=period_end,
        utilities=utilities,
        additional_charges=additional_charges,
        discounts=discounts,
        beverage_items=[],
        tax=round(float(tax or 0), 2),
        due_date=due_date or (now.date() + timedelta(days=config.BILL_DUE_DAYS)),
        status=status,
        generated_by=generated_by,
        admin_notes=admin_notes,
        sent_at=now if status == BillStatus.sent.value else None,
    )
    apply_totals(bill)
    session.add(bill)
    await session.flush()  # bill.id for the back-references

    link_consumption(bill, records)
    await session.flush()
    return bill


async def _resolve_apartment_id(session: AsyncSession, tenant_id: int) -> int:
    tenant = await get_tenant(session, tenant_id)
    if tenant.tenant_info.apartment_id is None:
        raise NotFoundError(f"Tenant ID {tenant_id} has no apartment assigned")
    return tenant.tenant_info.apartment_id


async def generate_bill(
    session: AsyncSession,
    tenant_id: int,
    period_start: date,
    period_end: date,
    utilities: Sequence[UtilityReading] = (),
    additional_charges: Sequence[Adjustment] = (),
    discounts: Sequence[Adjustment] = (),
    tax: float = 0.0,
    status: str = BillStatus.draft.value,
    due_date: Optional[date] = None,
    generated_by: Optional[int] = None,
    admin_notes: Optional[str] = None
) -> UtilityBill:
    """
    Generate a utility bill for a tenant and billing period.

    Pending beverage consumption that falls inside the period and is not yet on
    a bill is folded in. The bill row, its number and the consumption
    back-references are written in one transaction.

    Args:
        session: Database session
        tenant_id: Tenant being billed
        period_start: First day of the billing period
        period_end: Last day of the billing period (inclusive)
        utilities: Metered readings
        additional_charges: Lines added to the subtotal
        discounts: Lines subtracted from the subtotal
        tax: Tax amount added on top of the subtotal
        status: "draft" for staged creation, "sent" to email the bill right away

    Returns:
        The committed UtilityBill
    """
    if status not in (BillStatus.draft.value, BillStatus.sent.value):
        raise ServiceError(f"A new bill can only be created as draft or sent, not {status}")
    if period_end < period_start:
        raise ServiceError("Billing period end must not be before its start")

    utility_lines = compute_utility_lines(utilities)
    charge_lines = adjustment_lines(additional_charges)
    discount_lines = adjustment_lines(discounts)
    apartment_id = await _resolve_apartment_id(session, tenant_id)

    async def work() -> UtilityBill:
        return await _new_bill(
            session, tenant_id, apartment_id, period_start, period_end,
            utility_lines, charge_lines, discount_lines, tax, status,
            due_date, generated_by, admin_notes,
        )

    bill = await run_bill_transaction(session, work)
    logging.info(
        f"Bill {bill.bill_number} generated for tenant {tenant_id}: total {bill.total_amount} "
        f"({len(bill.beverage_items)} beverage items, status {bill.status})"
    )

    if bill.status == BillStatus.sent.value:
        await dispatch_bill_email(session, bill)
    return bill


async def fold_into_period_bill(
    session: AsyncSession,
    tenant_id: int,
    apartment_id: int,
    records: Sequence[BeverageConsumption],
    period_start: date,
    period_end: date
) -> UtilityBill:
    """
    Stage `records` onto the tenant's draft bill for the period, creating a draft
    bill when there is none. Nothing is committed here.
    """
    stmt = (
        select(UtilityBill)
        .where(
            UtilityBill.tenant_id == tenant_id,
            UtilityBill.billing_period_start == period_start,
            UtilityBill.billing_period_end == period_end,
            UtilityBill.status == BillStatus.draft.value,
        )
        .order_by(UtilityBill.id)
        .with_for_update()
    )
    bill = (await session.execute(stmt)).scalars().first()

    if bill is None:
        return await _new_bill(
            session, tenant_id, apartment_id, period_start, period_end,
            [], [], [], 0.0, BillStatus.draft.value, None, None,
            "Created by the monthly beverage sweep", extra_records=records,
        )

    pending = await collect_pending_consumption(session, tenant_id, period_start, period_end)
    seen = {r.id for r in pending}
    link_consumption(bill, pending + [r for r in records if r.id not in seen])
    await session.flush()
    return bill


async def update_bill(session: AsyncSession, bill_id: int, changes: dict) -> UtilityBill:
    """Replace readings, adjustments, tax or dates of a draft bill and recompute its totals."""
    bill = await get_bill(session, bill_id, for_update=True)
    if bill.status != BillStatus.draft.value:
        raise InvalidTransitionError(f"Only draft bills can be edited (bill is {bill.status})")

    if "utilities" in changes:
        bill.utilities = compute_utility_lines(changes["utilities"])
    if "additional_charges" in changes:
        bill.additional_charges = adjustment_lines(changes["additional_charges"])
    if "discounts" in changes:
        bill.discounts = adjustment_lines(changes["discounts"])
    if "tax" in changes:
        bill.tax = round(float(changes["tax"] or 0), 2)
    for field in ("due_date", "admin_notes"):
        if field in changes:
            setattr(bill, field, changes[field])

    apply_totals(bill)
    await session.commit()
    logging.info(f"Bill {bill.bill_number} updated: total {bill.total_amount}")
    return bill


async def dispatch_bill_email(session: AsyncSession, bill: UtilityBill) -> bool:
    """Email the bill and record the outcome. A failed send is recorded, never raised."""
    tenant = await session.get(User, bill.tenant_id)
    sent = await get_notification_service().send_bill_email(tenant, bill)
    bill.email_sent = sent
    bill.email_sent_at = utcnow() if sent else None
    await session.commit()
    return sent


# ========== Queries ==========

async def get_bill(session: AsyncSession, bill_id: int, for_update: bool = False) -> UtilityBill:
    stmt = select(UtilityBill).where(UtilityBill.id == bill_id)
    if for_update:
        stmt = stmt.with_for_update()
    bill = (await session.execute(stmt)).scalar_one_or_none()
    if not bill:
        raise NotFoundError(f"Bill ID {bill_id} not found")
    return bill


async def list_bills(
    session: AsyncSession,
    tenant_id: Optional[int] = None,
    status: Optional[str] = None,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
    limit: int = 50,
    offset: int = 0
) -> tuple[List[UtilityBill], int]:
    conditions = []
    if tenant_id:
        conditions.append(UtilityBill.tenant_id == tenant_id)
    if status:
        conditions.append(UtilityBill.status == status)
    if period_start:
        conditions.append(UtilityBill.billing_period_start >= period_start)
    if period_end:
        conditions.append(UtilityBill.billing_period_end <= period_end)

    total = (await session.execute(select(func.count(UtilityBill.id)).where(*conditions))).scalar() or 0
    stmt = (
        select(UtilityBill)
        .where(*conditions)
        .order_by(UtilityBill.billing_period_start.desc(), UtilityBill.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


async def get_bill_stats(session: AsyncSession, tenant_id: Optional[int] = None) -> BillStats:
    stmt = select(
        UtilityBill.status,
        func.count(UtilityBill.id),
        func.coalesce(func.sum(UtilityBill.total_amount), 0)
    ).group_by(UtilityBill.status)
    if tenant_id:
        stmt = stmt.where(UtilityBill.tenant_id == tenant_id)
    rows = (await session.execute(stmt)).all()

    by_status = {
        status: {"count": count, "amount": round(float(amount), 2)}
        for status, count, amount in rows
    }
    return BillStats(
        total_bills=sum(v["count"] for v in by_status.values()),
        total_amount=round(sum(v["amount"] for v in by_status.values()), 2),
        by_status=by_status,
    )
