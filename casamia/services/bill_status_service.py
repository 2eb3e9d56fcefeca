import logging
from datetime import date
from typing import Optional, List, NamedTuple, Sequence
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.core import utcnow
from casamia.database.models import (
    UtilityBill, BillStatus, BeverageConsumption, ConsumptionPaymentStatus, PaymentMethod
)
from casamia.errors import InvalidTransitionError, ServiceError
from casamia.services.billing_service import get_bill, dispatch_bill_email

# Legal moves of the billing state machine. paid and cancelled are terminal.
TRANSITIONS = {
    BillStatus.draft.value: {BillStatus.under_review.value},
    BillStatus.generated.value: {BillStatus.under_review.value},
    BillStatus.under_review.value: {BillStatus.approved.value, BillStatus.draft.value},
    BillStatus.approved.value: {BillStatus.sent.value, BillStatus.paid.value},
    BillStatus.sent.value: {BillStatus.paid.value},
    BillStatus.overdue.value: {BillStatus.paid.value},
    BillStatus.paid.value: set(),
    BillStatus.cancelled.value: set(),
}
TERMINAL = {BillStatus.paid.value, BillStatus.cancelled.value}
# Administrative targets, reachable from any non-terminal state
ADMINISTRATIVE = {BillStatus.overdue.value, BillStatus.cancelled.value}


class SendResult(NamedTuple):
    bill_id: int
    bill_number: str
    email_sent: bool


class PaymentResult(NamedTuple):
    bill: UtilityBill
    consumption_updated: int  # Records moved to paid by this call


def can_transition(current: str, target: str) -> bool:
    if target in ADMINISTRATIVE and current not in TERMINAL:
        return current != target
    return target in TRANSITIONS.get(current, set())


def transition(bill: UtilityBill, target: str):
    if not can_transition(bill.status, target):
        raise InvalidTransitionError(
            f"Bill {bill.bill_number} cannot move from {bill.status} to {target}"
        )
    logging.info(f"Bill {bill.bill_number}: {bill.status} -> {target}")
    bill.status = target


async def _lock_bills(session: AsyncSession, bill_ids: Sequence[int], status: str) -> List[UtilityBill]:
    stmt = (
        select(UtilityBill)
        .where(UtilityBill.id.in_(list(bill_ids)), UtilityBill.status == status)
        .order_by(UtilityBill.id)
        .with_for_update()
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def submit_for_review(session: AsyncSession, bill_ids: Sequence[int]) -> List[UtilityBill]:
    """Move the draft bills among `bill_ids` to under_review. Bills in other states are skipped."""
    bills = await _lock_bills(session, bill_ids, BillStatus.draft.value)
    if not bills:
        raise InvalidTransitionError("No draft bills found to submit for review")
    for bill in bills:
        transition(bill, BillStatus.under_review.value)
    await session.commit()
    return bills


async def review_bill(
    session: AsyncSession,
    bill_id: int,
    action: str,
    reviewer_id: int,
    notes: Optional[str] = None
) -> UtilityBill:
    """
    approve: under_review -> approved, stamps reviewer and approver.
    reject: under_review -> draft, stamps reviewer and clears the approval.
    """
    if action not in ("approve", "reject"):
        raise ServiceError(f"Unknown review action: {action}")

    bill = await get_bill(session, bill_id, for_update=True)
    if bill.status != BillStatus.under_review.value:
        raise InvalidTransitionError(
            f"Bill {bill.bill_number} can only be reviewed while under review (it is {bill.status})"
        )

    now = utcnow()
    bill.reviewed_by = reviewer_id
    bill.reviewed_at = now
    bill.review_notes = notes
    if action == "approve":
        transition(bill, BillStatus.approved.value)
        bill.approved_by = reviewer_id
        bill.approved_at = now
    else:
        transition(bill, BillStatus.draft.value)
        bill.approved_by = None
        bill.approved_at = None

    await session.commit()
    return bill


async def send_bills(session: AsyncSession, bill_ids: Sequence[int]) -> List[SendResult]:
    """
    Send approved bills. Every eligible bill becomes `sent`; the email is
    attempted afterwards and its outcome recorded in email_sent.
    """
    bills = await _lock_bills(session, bill_ids, BillStatus.approved.value)
    if not bills:
        raise InvalidTransitionError("No approved bills found to send")

    now = utcnow()
    for bill in bills:
        transition(bill, BillStatus.sent.value)
        bill.sent_at = now
    await session.commit()

    results = []
    for bill in bills:
        sent = await dispatch_bill_email(session, bill)
        results.append(SendResult(bill.id, bill.bill_number, sent))

    logging.info(f"Sent {len(results)} bills, {sum(r.email_sent for r in results)} emails delivered")
    return results


async def mark_paid(
    session: AsyncSession,
    bill_id: int,
    payment_method: str = PaymentMethod.cash.value
) -> PaymentResult:
    """
    Mark a bill paid and cascade the payment onto every consumption record
    linked to it.

    Calling it again on a paid bill keeps the original paid_at and only
    re-applies the cascade, which touches no already-paid records.
    """
    try:
        bill = await get_bill(session, bill_id, for_update=True)
        now = utcnow()

        if bill.status == BillStatus.paid.value:
            logging.info(f"Bill {bill.bill_number} already paid, re-checking linked consumption")
        else:
            transition(bill, BillStatus.paid.value)
            bill.paid_at = now
            bill.payment_method = payment_method

        result = await session.execute(
            update(BeverageConsumption)
            .where(
                BeverageConsumption.utility_bill_id == bill.id,
                BeverageConsumption.payment_status != ConsumptionPaymentStatus.paid.value
            )
            .values(payment_status=ConsumptionPaymentStatus.paid.value, paid_at=now)
            .execution_options(synchronize_session="fetch")
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logging.info(f"Bill {bill.bill_number} paid via {payment_method}; {result.rowcount} consumption records updated")
    return PaymentResult(bill=bill, consumption_updated=result.rowcount)


async def cancel_bill(session: AsyncSession, bill_id: int, notes: Optional[str] = None) -> UtilityBill:
    """
    Cancel a bill and release its consumption records so a replacement bill can
    pick them up. The beverage snapshot stays on the cancelled bill.
    """
    try:
        bill = await get_bill(session, bill_id, for_update=True)
        transition(bill, BillStatus.cancelled.value)
        if notes:
            bill.admin_notes = notes

        await session.execute(
            update(BeverageConsumption)
            .where(BeverageConsumption.utility_bill_id == bill.id)
            .values(
                included_in_bill=False,
                utility_bill_id=None,
                billing_period_start=None,
                billing_period_end=None,
            )
            .execution_options(synchronize_session="fetch")
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return bill


async def set_overdue(session: AsyncSession, bill_id: int) -> UtilityBill:
    bill = await get_bill(session, bill_id, for_update=True)
    transition(bill, BillStatus.overdue.value)
    await session.commit()
    return bill


async def mark_overdue_bills(session: AsyncSession, today: Optional[date] = None) -> int:
    """Daily job: sent bills past their due date become overdue."""
    today = today or date.today()
    stmt = (
        select(UtilityBill)
        .where(UtilityBill.status == BillStatus.sent.value, UtilityBill.due_date < today)
        .with_for_update()
    )
    bills = list((await session.execute(stmt)).scalars().all())
    for bill in bills:
        transition(bill, BillStatus.overdue.value)
    await session.commit()
    if bills:
        logging.info(f"{len(bills)} bills marked overdue")
    return len(bills)
