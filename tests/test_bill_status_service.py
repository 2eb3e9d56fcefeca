import pytest
from datetime import date, timedelta
from sqlalchemy import select

from casamia.database.models import BeverageConsumption, BillStatus
from casamia.errors import InvalidTransitionError
from casamia.services.billing_service import Adjustment, generate_bill
from casamia.services.bill_status_service import (
    can_transition, submit_for_review, review_bill, send_bills, mark_paid, cancel_bill,
    set_overdue, mark_overdue_bills
)
from casamia.services.cart_service import add_item, checkout


@pytest.fixture
def billed_tenant(async_session, make_apartment, make_tenant, make_beverage):
    """A tenant with two checked-out beverages and a helper that bills them."""
    async def factory(status="draft"):
        apartment = await make_apartment()
        tenant = await make_tenant(apartment_id=apartment.id)
        cola = await make_beverage("Cola", price=12.5)
        await add_item(async_session, tenant.id, cola.id, 2)
        await checkout(async_session, tenant.id)
        today = date.today()
        bill = await generate_bill(
            async_session, tenant.id, today - timedelta(days=40), today + timedelta(days=40),
            additional_charges=[Adjustment("Service fee", 10)], status=status,
        )
        return tenant, bill
    return factory


async def linked_records(session, bill_id):
    stmt = select(BeverageConsumption).where(BeverageConsumption.utility_bill_id == bill_id)
    return (await session.execute(stmt.execution_options(populate_existing=True))).scalars().all()


def test_transition_table():
    assert can_transition("draft", "under_review")
    assert can_transition("under_review", "draft")
    assert can_transition("approved", "paid")
    assert can_transition("overdue", "paid")
    assert can_transition("sent", "cancelled")
    assert not can_transition("draft", "approved")
    assert not can_transition("draft", "sent")
    assert not can_transition("paid", "cancelled")
    assert not can_transition("cancelled", "draft")
    assert not can_transition("draft", "paid")


@pytest.mark.asyncio
async def test_review_workflow(async_session, billed_tenant):
    """Reject sends the bill back to draft; approving a draft is refused"""
    _, bill = await billed_tenant()
    await submit_for_review(async_session, [bill.id])
    assert bill.status == BillStatus.under_review.value

    bill = await review_bill(async_session, bill.id, "reject", reviewer_id=1, notes="Wrong meter")
    assert bill.status == BillStatus.draft.value
    assert bill.reviewed_by == 1
    assert bill.approved_by is None
    assert bill.review_notes == "Wrong meter"

    with pytest.raises(InvalidTransitionError):
        await review_bill(async_session, bill.id, "approve", reviewer_id=1)

    await submit_for_review(async_session, [bill.id])
    bill = await review_bill(async_session, bill.id, "approve", reviewer_id=2)
    assert bill.status == BillStatus.approved.value
    assert bill.approved_by == 2
    assert bill.approved_at is not None


@pytest.mark.asyncio
async def test_submit_requires_a_draft(async_session, billed_tenant):
    _, bill = await billed_tenant(status="sent")
    with pytest.raises(InvalidTransitionError):
        await submit_for_review(async_session, [bill.id])


@pytest.mark.asyncio
async def test_send_only_approved_bills(async_session, billed_tenant, mailbox):
    _, bill = await billed_tenant()
    bill_id = bill.id

    with pytest.raises(InvalidTransitionError):
        await send_bills(async_session, [bill_id])

    await submit_for_review(async_session, [bill_id])
    await review_bill(async_session, bill_id, "approve", reviewer_id=1)
    results = await send_bills(async_session, [bill_id])

    assert len(results) == 1
    assert results[0].email_sent is True
    assert len(mailbox.sent) == 1


@pytest.mark.asyncio
async def test_send_records_email_failure(async_session, billed_tenant, broken_mailbox):
    _, bill = await billed_tenant()
    await submit_for_review(async_session, [bill.id])
    await review_bill(async_session, bill.id, "approve", reviewer_id=1)

    results = await send_bills(async_session, [bill.id])

    assert results[0].email_sent is False
    assert bill.status == BillStatus.sent.value
    assert bill.sent_at is not None
    assert bill.email_sent is False


@pytest.mark.asyncio
async def test_mark_paid_cascades_and_is_idempotent(async_session, billed_tenant):
    _, bill = await billed_tenant(status="sent")

    result = await mark_paid(async_session, bill.id, "card")
    assert result.bill.status == BillStatus.paid.value
    assert result.bill.payment_method == "card"
    assert result.consumption_updated == 1
    paid_at = result.bill.paid_at

    records = await linked_records(async_session, bill.id)
    assert len(records) == 1
    assert all(r.payment_status == "paid" and r.paid_at is not None for r in records)

    again = await mark_paid(async_session, bill.id, "cash")
    assert again.bill.status == BillStatus.paid.value
    assert again.bill.paid_at == paid_at
    assert again.consumption_updated == 0
    records = await linked_records(async_session, bill.id)
    assert all(r.payment_status == "paid" for r in records)


@pytest.mark.asyncio
async def test_mark_paid_from_draft_is_refused(async_session, billed_tenant):
    _, bill = await billed_tenant()
    bill_id = bill.id
    with pytest.raises(InvalidTransitionError):
        await mark_paid(async_session, bill_id)

    records = await linked_records(async_session, bill_id)
    assert all(r.payment_status == "pending" for r in records)


@pytest.mark.asyncio
async def test_cancel_releases_consumption_for_a_new_bill(async_session, billed_tenant):
    tenant, bill = await billed_tenant()
    tenant_id = tenant.id

    cancelled = await cancel_bill(async_session, bill.id, notes="Issued by mistake")
    assert cancelled.status == BillStatus.cancelled.value
    assert await linked_records(async_session, bill.id) == []

    today = date.today()
    replacement = await generate_bill(
        async_session, tenant_id, today - timedelta(days=40), today + timedelta(days=40)
    )
    assert replacement.beverage_total == 25.0
    assert len(await linked_records(async_session, replacement.id)) == 1

    with pytest.raises(InvalidTransitionError):
        await cancel_bill(async_session, cancelled.id)


@pytest.mark.asyncio
async def test_overdue_job_and_payment(async_session, billed_tenant):
    _, bill = await billed_tenant(status="sent")
    bill_id = bill.id
    due = bill.due_date

    assert await mark_overdue_bills(async_session, today=due) == 0
    assert await mark_overdue_bills(async_session, today=due + timedelta(days=1)) == 1
    assert bill.status == BillStatus.overdue.value

    with pytest.raises(InvalidTransitionError):
        await set_overdue(async_session, bill_id)

    result = await mark_paid(async_session, bill_id)
    assert result.bill.status == BillStatus.paid.value
