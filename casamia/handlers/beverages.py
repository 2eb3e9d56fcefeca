from aiohttp import web

from casamia.database.models import Role
from casamia.schemas.validation import BeverageCreate, BeverageUpdate
from casamia.services import beverage_service
from casamia.utils.responses import ok, read_json, require_role, path_int, query_bool

routes = web.RouteTableDef()


@routes.get("/api/beverages")
async def list_beverages(request: web.Request):
    principal = require_role(request)
    # Tenants only ever see what they can order
    available_only = principal.role == Role.tenant.value or bool(query_bool(request, "available_only"))
    beverages = await beverage_service.list_beverages(
        request["session"], available_only=available_only, category=request.query.get("category")
    )
    return ok([b.to_dict() for b in beverages])


@routes.get(r"/api/beverages/{beverage_id:\d+}")
async def get_beverage(request: web.Request):
    require_role(request)
    beverage = await beverage_service.get_beverage(request["session"], path_int(request, "beverage_id"))
    return ok(beverage.to_dict())


@routes.post("/api/beverages")
async def create_beverage(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, BeverageCreate)
    beverage = await beverage_service.create_beverage(request["session"], body.model_dump(mode="json"))
    return ok(beverage.to_dict(), message="Beverage created successfully", status=201)


@routes.put(r"/api/beverages/{beverage_id:\d+}")
async def update_beverage(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, BeverageUpdate)
    beverage = await beverage_service.update_beverage(
        request["session"], path_int(request, "beverage_id"), body.model_dump(mode="json", exclude_unset=True)
    )
    return ok(beverage.to_dict(), message="Beverage updated successfully")


@routes.delete(r"/api/beverages/{beverage_id:\d+}")
async def delete_beverage(request: web.Request):
    require_role(request, Role.admin.value)
    await beverage_service.delete_beverage(request["session"], path_int(request, "beverage_id"))
    return ok(message="Beverage removed from the menu")
