from aiohttp import web

from casamia.database.models import Role
from casamia.schemas.validation import LeaveCreate, LeaveReview
from casamia.services import leave_service
from casamia.utils.responses import ok, read_json, require_role, path_int

routes = web.RouteTableDef()


@routes.post("/api/leave")
async def create_leave_request(request: web.Request):
    principal = require_role(request, Role.worker.value)
    body = await read_json(request, LeaveCreate)
    leave = await leave_service.create_leave_request(
        request["session"],
        principal.id,
        leave_type=body.leave_type.value,
        start_date=body.start_date,
        end_date=body.end_date,
        reason=body.reason,
    )
    return ok(leave.to_dict(), message="Leave request submitted", status=201)


@routes.get("/api/leave")
async def list_leave_requests(request: web.Request):
    principal = require_role(request, Role.worker.value, Role.admin.value)
    worker_id = principal.id if principal.role == Role.worker.value else None
    leaves = await leave_service.list_leave_requests(
        request["session"], worker_id=worker_id, status=request.query.get("status")
    )
    return ok([leave.to_dict() for leave in leaves])


@routes.get("/api/leave/stats")
async def leave_stats(request: web.Request):
    require_role(request, Role.admin.value)
    return ok(await leave_service.get_leave_stats(request["session"]))


@routes.put(r"/api/leave/{request_id:\d+}/review")
async def review_leave_request(request: web.Request):
    principal = require_role(request, Role.admin.value)
    body = await read_json(request, LeaveReview)
    leave = await leave_service.review_leave_request(
        request["session"], path_int(request, "request_id"), body.status, principal.id, body.review_notes
    )
    return ok(leave.to_dict(), message=f"Leave request {leave.status}")
