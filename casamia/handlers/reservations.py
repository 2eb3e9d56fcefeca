from aiohttp import web

from casamia.database.models import Role
from casamia.schemas.validation import ReservationCreate, ReservationReview
from casamia.services import reservation_service
from casamia.utils.responses import ok, read_json, require_role, path_int, query_date

routes = web.RouteTableDef()


@routes.post("/api/rooftop/reservations")
async def create_reservation(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    body = await read_json(request, ReservationCreate)
    data = body.model_dump()
    data["time_slot"] = body.time_slot.value
    reservation = await reservation_service.create_reservation(request["session"], principal.id, **data)
    return ok(reservation.to_dict(), message="Reservation request submitted", status=201)


@routes.get("/api/rooftop/reservations")
async def list_reservations(request: web.Request):
    """Tenants see their own reservations, admins see everything with filters."""
    principal = require_role(request, Role.tenant.value, Role.admin.value)
    tenant_id = principal.id if principal.role == Role.tenant.value else None
    reservations = await reservation_service.list_reservations(
        request["session"],
        tenant_id=tenant_id,
        status=request.query.get("status"),
        date_from=query_date(request, "date_from"),
        date_to=query_date(request, "date_to"),
    )
    return ok([r.to_dict() for r in reservations])


@routes.delete(r"/api/rooftop/reservations/{reservation_id:\d+}")
async def cancel_reservation(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    reservation = await reservation_service.cancel_reservation(
        request["session"], path_int(request, "reservation_id"), principal.id
    )
    return ok(reservation.to_dict(), message="Reservation cancelled")


@routes.put(r"/api/rooftop/reservations/{reservation_id:\d+}/review")
async def review_reservation(request: web.Request):
    principal = require_role(request, Role.admin.value)
    body = await read_json(request, ReservationReview)
    reservation = await reservation_service.review_reservation(
        request["session"], path_int(request, "reservation_id"), body.status, principal.id, body.admin_notes
    )
    return ok(reservation.to_dict(), message=f"Reservation {reservation.status}")
