import pytest
from datetime import date, timedelta

from casamia.database.models import Role
from casamia.errors import InvalidTransitionError, NotFoundError, ServiceError
from casamia.services.leave_service import (
    create_leave_request, list_leave_requests, review_leave_request, get_leave_stats
)
from casamia.services.maintenance_service import (
    create_request, assign_worker, update_worker_status, update_admin_status, submit_feedback, list_requests
)
from casamia.services.reservation_service import (
    create_reservation, cancel_reservation, review_reservation, list_reservations
)


# ========== Rooftop reservations ==========

@pytest.mark.asyncio
async def test_reservation_gets_slot_defaults_and_room(async_session, make_apartment, make_tenant):
    apartment = await make_apartment("R501")
    tenant = await make_tenant(apartment_id=apartment.id, phone="+15550002")

    reservation = await create_reservation(
        async_session, tenant.id, date.today() + timedelta(days=3), "evening", 6, purpose="Birthday"
    )

    assert reservation.status == "pending"
    assert (reservation.time_slot_start, reservation.time_slot_end) == ("17:00", "21:00")
    assert reservation.room_number == "R501"
    assert reservation.contact_phone == "+15550002"


@pytest.mark.asyncio
async def test_reservation_in_the_past_is_rejected(async_session, make_tenant):
    tenant = await make_tenant()
    with pytest.raises(ServiceError):
        await create_reservation(async_session, tenant.id, date.today() - timedelta(days=1), "morning", 2)


@pytest.mark.asyncio
async def test_review_and_cancel_reservation(async_session, make_tenant, make_user):
    tenant = await make_tenant()
    other = await make_tenant("other@example.com")
    admin = await make_user("admin@example.com")
    reservation = await create_reservation(async_session, tenant.id, date.today(), "full-day", 12)

    reservation = await review_reservation(async_session, reservation.id, "confirmed", admin.id, "Enjoy")
    assert reservation.status == "confirmed"
    assert reservation.reviewed_by == admin.id

    with pytest.raises(NotFoundError):
        await cancel_reservation(async_session, reservation.id, other.id)

    reservation = await cancel_reservation(async_session, reservation.id, tenant.id)
    assert reservation.status == "cancelled"
    assert await list_reservations(async_session, status="confirmed") == []


# ========== Maintenance ==========

@pytest.mark.asyncio
async def test_maintenance_needs_an_apartment(async_session, make_tenant):
    tenant = await make_tenant()
    with pytest.raises(ServiceError):
        await create_request(async_session, tenant.id, "Broken light", "Hallway light is out", "Electrical", "Low")


@pytest.mark.asyncio
async def test_maintenance_lifecycle(async_session, make_apartment, make_tenant, make_user):
    apartment = await make_apartment()
    tenant = await make_tenant(apartment_id=apartment.id)
    worker = await make_user("worker@example.com", role=Role.worker.value)
    request = await create_request(async_session, tenant.id, "Leak", "Bathroom sink leaks", "Plumbing", "High")
    assert request.apartment_id == apartment.id

    with pytest.raises(InvalidTransitionError):
        await submit_feedback(async_session, request.id, tenant.id, 4)

    request = await assign_worker(async_session, request.id, worker.id, "Bring a wrench")
    assert request.status == "Assigned"
    assert request.assigned_date is not None

    request = await update_worker_status(
        async_session, request.id, worker.id, "In Progress", work_notes="Replacing washer",
        estimated_completion_time="2 hours"
    )
    started = request.started_date
    assert started is not None
    request = await update_worker_status(async_session, request.id, worker.id, "In Progress")
    assert request.started_date == started

    request = await update_worker_status(async_session, request.id, worker.id, "Completed")
    assert request.completed_date is not None
    assert request.actual_completion_time is not None
    assert request.work_notes == "Replacing washer"

    request = await submit_feedback(async_session, request.id, tenant.id, 5, "Great")
    assert request.rating == 5
    assert request.feedback_submitted_at is not None

    assert [r.id for r in await list_requests(async_session, worker_id=worker.id)] == [request.id]


@pytest.mark.asyncio
async def test_only_the_assigned_worker_updates(async_session, make_apartment, make_tenant, make_user):
    apartment = await make_apartment()
    tenant = await make_tenant(apartment_id=apartment.id)
    worker = await make_user("worker@example.com", role=Role.worker.value)
    stranger = await make_user("stranger@example.com", role=Role.worker.value)
    request = await create_request(async_session, tenant.id, "Paint", "Wall needs paint", "Painting", "Low")
    await assign_worker(async_session, request.id, worker.id)

    with pytest.raises(NotFoundError):
        await update_worker_status(async_session, request.id, stranger.id, "In Progress")
    with pytest.raises(ServiceError):
        await update_worker_status(async_session, request.id, worker.id, "Cancelled")


@pytest.mark.asyncio
async def test_assign_rejects_non_workers(async_session, make_apartment, make_tenant, make_user):
    apartment = await make_apartment()
    tenant = await make_tenant(apartment_id=apartment.id)
    admin = await make_user("admin@example.com")
    inactive = await make_user("idle@example.com", role=Role.worker.value, is_active=False)
    request = await create_request(async_session, tenant.id, "Door", "Door squeaks", "Carpentry", "Low")

    with pytest.raises(NotFoundError):
        await assign_worker(async_session, request.id, admin.id)
    with pytest.raises(ServiceError):
        await assign_worker(async_session, request.id, inactive.id)

    request = await update_admin_status(async_session, request.id, "Cancelled", "Duplicate")
    with pytest.raises(InvalidTransitionError):
        await assign_worker(async_session, request.id, inactive.id)


# ========== Leave ==========

@pytest.mark.asyncio
async def test_leave_days_are_inclusive(async_session, make_user):
    worker = await make_user("worker@example.com", role=Role.worker.value)

    leave = await create_leave_request(
        async_session, worker.id, "Vacation", date(2026, 11, 2), date(2026, 11, 6), "Family trip"
    )

    assert leave.total_days == 5
    assert leave.status == "pending"


@pytest.mark.asyncio
async def test_leave_review_is_final(async_session, make_user):
    worker = await make_user("worker@example.com", role=Role.worker.value)
    admin = await make_user("admin@example.com")
    leave = await create_leave_request(
        async_session, worker.id, "Sick Leave", date(2026, 11, 2), date(2026, 11, 2), "Flu"
    )

    leave = await review_leave_request(async_session, leave.id, "approved", admin.id, "Get well")
    assert leave.reviewed_by == admin.id
    assert leave.review_notes == "Get well"

    with pytest.raises(InvalidTransitionError):
        await review_leave_request(async_session, leave.id, "rejected", admin.id)

    stats = await get_leave_stats(async_session)
    assert stats == {"pending": 0, "approved": 1, "rejected": 0}
    assert len(await list_leave_requests(async_session, worker_id=worker.id, status="approved")) == 1


@pytest.mark.asyncio
async def test_leave_end_before_start(async_session, make_user):
    worker = await make_user("worker@example.com", role=Role.worker.value)
    with pytest.raises(ServiceError):
        await create_leave_request(async_session, worker.id, "Other", date(2026, 11, 5), date(2026, 11, 1), "Oops")
