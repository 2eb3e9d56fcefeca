from aiohttp import web

from casamia.database.models import Role
from casamia.schemas.validation import ApartmentAssign, ArchiveRequest
from casamia.services import lease_service, occupancy_service, tenant_service
from casamia.utils.responses import ok, read_json, require_role, path_int, pagination, page_meta, query_bool, query_int

routes = web.RouteTableDef()


@routes.get("/api/tenants")
async def list_tenants(request: web.Request):
    require_role(request, Role.admin.value)
    limit, offset = pagination(request)
    tenants, total = await tenant_service.list_tenants(
        request["session"],
        lease_status=request.query.get("lease_status"),
        apartment_id=query_int(request, "apartment_id"),
        include_deleted=bool(query_bool(request, "include_deleted")),
        limit=limit,
        offset=offset,
    )
    return ok([t.to_dict() for t in tenants], pagination=page_meta(total, limit, offset))


@routes.get("/api/tenants/me/dashboard")
async def my_dashboard(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    dashboard = await tenant_service.get_tenant_dashboard(request["session"], principal.id)
    return ok({
        "tenant": dashboard.tenant.to_dict(),
        "apartment": dashboard.apartment.to_dict() if dashboard.apartment else None,
        "cart": dashboard.cart.to_dict() if dashboard.cart else None,
        "unpaid_bills": [b.to_dict() for b in dashboard.unpaid_bills],
        "unpaid_total": dashboard.unpaid_total,
        "pending_consumption_total": dashboard.pending_consumption_total,
    })


@routes.get(r"/api/tenants/{tenant_id:\d+}")
async def get_tenant(request: web.Request):
    require_role(request, Role.admin.value)
    tenant = await tenant_service.get_tenant(request["session"], path_int(request, "tenant_id"), include_deleted=True)
    return ok(tenant.to_dict())


@routes.post(r"/api/tenants/{tenant_id:\d+}/apartment")
async def assign_apartment(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, ApartmentAssign)
    apartment = await occupancy_service.assign_apartment(
        request["session"], path_int(request, "tenant_id"), body.apartment_id
    )
    return ok(apartment.to_dict(), message=f"Apartment {apartment.unit_number} assigned")


@routes.delete(r"/api/tenants/{tenant_id:\d+}/apartment")
async def release_apartment(request: web.Request):
    require_role(request, Role.admin.value)
    tenant = await tenant_service.update_tenant(
        request["session"], path_int(request, "tenant_id"), {"apartment_id": None}
    )
    return ok(tenant.to_dict(), message="Apartment released")


@routes.post(r"/api/tenants/{tenant_id:\d+}/archive")
async def archive_tenant(request: web.Request):
    principal = require_role(request, Role.admin.value)
    body = await read_json(request, ArchiveRequest)
    tenant = await lease_service.archive_tenant(
        request["session"], path_int(request, "tenant_id"), reason=body.reason, archived_by=principal.id
    )
    return ok(tenant.to_dict(), message="Tenant archived")
