import logging
from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.core import utcnow, as_utc
from casamia.database.models import MaintenanceRequest, MaintenanceStatus, User, Role
from casamia.errors import NotFoundError, InvalidTransitionError, ServiceError
from casamia.services.tenant_service import get_tenant

# Statuses a worker may set on a request assigned to them
WORKER_STATUSES = (
    MaintenanceStatus.in_progress.value,
    MaintenanceStatus.completed.value,
)


async def create_request(
    session: AsyncSession,
    tenant_id: int,
    title: str,
    description: str,
    category: str,
    priority: str
) -> MaintenanceRequest:
    tenant = await get_tenant(session, tenant_id)
    if tenant.tenant_info.apartment_id is None:
        raise ServiceError("You need an assigned apartment to submit a maintenance request")

    request = MaintenanceRequest(
        tenant_id=tenant_id,
        apartment_id=tenant.tenant_info.apartment_id,
        title=title,
        description=description,
        category=category,
        priority=priority,
        status=MaintenanceStatus.pending.value,
    )
    session.add(request)
    await session.commit()
    logging.info(f"Maintenance request {request.id} ({priority}) created by tenant {tenant_id}")
    return request


async def get_request(session: AsyncSession, request_id: int) -> MaintenanceRequest:
    request = await session.get(MaintenanceRequest, request_id)
    if not request:
        raise NotFoundError(f"Maintenance request ID {request_id} not found")
    return request


async def list_requests(
    session: AsyncSession,
    tenant_id: Optional[int] = None,
    worker_id: Optional[int] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None
) -> List[MaintenanceRequest]:
    stmt = select(MaintenanceRequest)
    if tenant_id:
        stmt = stmt.where(MaintenanceRequest.tenant_id == tenant_id)
    if worker_id:
        stmt = stmt.where(MaintenanceRequest.assigned_worker_id == worker_id)
    if status:
        stmt = stmt.where(MaintenanceRequest.status == status)
    if priority:
        stmt = stmt.where(MaintenanceRequest.priority == priority)
    if category:
        stmt = stmt.where(MaintenanceRequest.category == category)
    result = await session.execute(stmt.order_by(MaintenanceRequest.created_at.desc(), MaintenanceRequest.id.desc()))
    return list(result.scalars().all())


async def assign_worker(
    session: AsyncSession,
    request_id: int,
    worker_id: int,
    admin_notes: Optional[str] = None
) -> MaintenanceRequest:
    request = await get_request(session, request_id)
    if request.status in (MaintenanceStatus.completed.value, MaintenanceStatus.cancelled.value):
        raise InvalidTransitionError(f"Request is already {request.status}")

    worker = await session.get(User, worker_id)
    if not worker or worker.role != Role.worker.value or worker.is_deleted:
        raise NotFoundError(f"Worker ID {worker_id} not found")
    if not worker.is_active:
        raise ServiceError(f"Worker {worker.name} is not active")

    request.assigned_worker_id = worker_id
    request.assigned_date = utcnow()
    request.status = MaintenanceStatus.assigned.value
    if admin_notes:
        request.admin_notes = admin_notes
    await session.commit()
    logging.info(f"Maintenance request {request_id} assigned to worker {worker_id}")
    return request


async def update_worker_status(
    session: AsyncSession,
    request_id: int,
    worker_id: int,
    status: str,
    work_notes: Optional[str] = None,
    estimated_completion_time: Optional[str] = None
) -> MaintenanceRequest:
    """
    Worker progress update. In Progress stamps the start once; Completed stamps
    the finish and the hours spent since the start.
    """
    if status not in WORKER_STATUSES:
        raise ServiceError(f"Workers can only set status to {', '.join(WORKER_STATUSES)}")

    request = await get_request(session, request_id)
    if request.assigned_worker_id != worker_id:
        raise NotFoundError("Maintenance request not found or not assigned to you")
    if request.status in (MaintenanceStatus.completed.value, MaintenanceStatus.cancelled.value):
        raise InvalidTransitionError(f"Request is already {request.status}")

    now = utcnow()
    request.status = status
    if work_notes:
        request.work_notes = work_notes
    if estimated_completion_time:
        request.estimated_completion_time = estimated_completion_time

    if status == MaintenanceStatus.in_progress.value and not request.started_date:
        request.started_date = now

    if status == MaintenanceStatus.completed.value:
        request.completed_date = now
        started = request.started_date or request.assigned_date
        if started:
            hours = (now - as_utc(started)).total_seconds() / 3600
            request.actual_completion_time = round(hours, 1)

    await session.commit()
    logging.info(f"Maintenance request {request_id} -> {status} by worker {worker_id}")
    return request


async def update_admin_status(
    session: AsyncSession,
    request_id: int,
    status: str,
    admin_notes: Optional[str] = None
) -> MaintenanceRequest:
    request = await get_request(session, request_id)
    request.status = status
    if admin_notes is not None:
        request.admin_notes = admin_notes
    if status == MaintenanceStatus.completed.value and not request.completed_date:
        request.completed_date = utcnow()
    await session.commit()
    return request


async def submit_feedback(
    session: AsyncSession,
    request_id: int,
    tenant_id: int,
    rating: int,
    comment: Optional[str] = None
) -> MaintenanceRequest:
    request = await get_request(session, request_id)
    if request.tenant_id != tenant_id:
        raise NotFoundError(f"Maintenance request ID {request_id} not found")
    if request.status != MaintenanceStatus.completed.value:
        raise InvalidTransitionError("Feedback can only be given on completed requests")
    if not 1 <= rating <= 5:
        raise ServiceError("Rating must be between 1 and 5")

    request.rating = rating
    request.feedback_comment = comment
    request.feedback_submitted_at = utcnow()
    await session.commit()
    return request
