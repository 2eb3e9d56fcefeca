from aiohttp import web

from casamia.database.models import Role
from casamia.errors import NotFoundError
from casamia.schemas.validation import (
    MaintenanceCreate, MaintenanceAssign, WorkerStatusUpdate, AdminStatusUpdate, MaintenanceFeedback
)
from casamia.services import maintenance_service
from casamia.utils.responses import ok, read_json, require_role, path_int

routes = web.RouteTableDef()


@routes.post("/api/maintenance")
async def create_request(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    body = await read_json(request, MaintenanceCreate)
    maintenance = await maintenance_service.create_request(
        request["session"],
        principal.id,
        title=body.title,
        description=body.description,
        category=body.category.value,
        priority=body.priority.value,
    )
    return ok(maintenance.to_dict(), message="Maintenance request submitted", status=201)


@routes.get("/api/maintenance")
async def list_requests(request: web.Request):
    principal = require_role(request)
    filters = {
        "status": request.query.get("status"),
        "priority": request.query.get("priority"),
        "category": request.query.get("category"),
    }
    if principal.role == Role.tenant.value:
        filters["tenant_id"] = principal.id
    elif principal.role == Role.worker.value:
        filters["worker_id"] = principal.id

    requests = await maintenance_service.list_requests(request["session"], **filters)
    return ok([r.to_dict() for r in requests])


@routes.get(r"/api/maintenance/{request_id:\d+}")
async def get_request(request: web.Request):
    principal = require_role(request)
    request_id = path_int(request, "request_id")
    maintenance = await maintenance_service.get_request(request["session"], request_id)

    if principal.role == Role.tenant.value and maintenance.tenant_id != principal.id:
        raise NotFoundError(f"Maintenance request ID {request_id} not found")
    if principal.role == Role.worker.value and maintenance.assigned_worker_id != principal.id:
        raise NotFoundError(f"Maintenance request ID {request_id} not found")
    return ok(maintenance.to_dict())


@routes.put(r"/api/maintenance/{request_id:\d+}/assign")
async def assign_worker(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, MaintenanceAssign)
    maintenance = await maintenance_service.assign_worker(
        request["session"], path_int(request, "request_id"), body.worker_id, body.admin_notes
    )
    return ok(maintenance.to_dict(), message="Worker assigned")


@routes.put(r"/api/maintenance/{request_id:\d+}/status")
async def update_status(request: web.Request):
    principal = require_role(request, Role.admin.value, Role.worker.value)
    session = request["session"]
    request_id = path_int(request, "request_id")

    if principal.role == Role.worker.value:
        body = await read_json(request, WorkerStatusUpdate)
        maintenance = await maintenance_service.update_worker_status(
            session, request_id, principal.id, body.status, body.work_notes, body.estimated_completion_time
        )
    else:
        body = await read_json(request, AdminStatusUpdate)
        maintenance = await maintenance_service.update_admin_status(
            session, request_id, body.status.value, body.admin_notes
        )
    return ok(maintenance.to_dict(), message=f"Status updated to {maintenance.status}")


@routes.post(r"/api/maintenance/{request_id:\d+}/feedback")
async def submit_feedback(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    body = await read_json(request, MaintenanceFeedback)
    maintenance = await maintenance_service.submit_feedback(
        request["session"], path_int(request, "request_id"), principal.id, body.rating, body.comment
    )
    return ok(maintenance.to_dict(), message="Thank you for your feedback")
