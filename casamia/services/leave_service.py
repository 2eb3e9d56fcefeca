import logging
from datetime import date
from typing import Optional, List
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.core import utcnow
from casamia.database.models import LeaveRequest, LeaveStatus
from casamia.errors import NotFoundError, InvalidTransitionError, ServiceError


async def create_leave_request(
    session: AsyncSession,
    worker_id: int,
    leave_type: str,
    start_date: date,
    end_date: date,
    reason: str
) -> LeaveRequest:
    if end_date < start_date:
        raise ServiceError("End date must be after start date")

    request = LeaveRequest(
        worker_id=worker_id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        total_days=(end_date - start_date).days + 1,  # Both ends inclusive
        reason=reason,
        status=LeaveStatus.pending.value,
    )
    session.add(request)
    await session.commit()
    logging.info(f"Leave request {request.id} ({request.total_days} days) created by worker {worker_id}")
    return request


async def list_leave_requests(
    session: AsyncSession,
    worker_id: Optional[int] = None,
    status: Optional[str] = None
) -> List[LeaveRequest]:
    stmt = select(LeaveRequest)
    if worker_id:
        stmt = stmt.where(LeaveRequest.worker_id == worker_id)
    if status and status != "all":
        stmt = stmt.where(LeaveRequest.status == status)
    result = await session.execute(stmt.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc()))
    return list(result.scalars().all())


async def review_leave_request(
    session: AsyncSession,
    request_id: int,
    status: str,
    reviewer_id: int,
    review_notes: Optional[str] = None
) -> LeaveRequest:
    if status not in (LeaveStatus.approved.value, LeaveStatus.rejected.value):
        raise ServiceError("Status must be approved or rejected")

    request = await session.get(LeaveRequest, request_id)
    if not request:
        raise NotFoundError(f"Leave request ID {request_id} not found")
    if request.status != LeaveStatus.pending.value:
        raise InvalidTransitionError(f"Leave request is already {request.status}")

    request.status = status
    request.reviewed_by = reviewer_id
    request.reviewed_at = utcnow()
    request.review_notes = review_notes
    await session.commit()
    logging.info(f"Leave request {request_id} {status} by admin {reviewer_id}")
    return request


async def get_leave_stats(session: AsyncSession) -> dict:
    stmt = select(LeaveRequest.status, func.count(LeaveRequest.id)).group_by(LeaveRequest.status)
    counts = {status: count for status, count in (await session.execute(stmt)).all()}
    return {status.value: counts.get(status.value, 0) for status in LeaveStatus}
