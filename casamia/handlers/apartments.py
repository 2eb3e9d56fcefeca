from aiohttp import web

from casamia.database.models import Role
from casamia.schemas.validation import ApartmentCreate, ApartmentUpdate
from casamia.services import apartment_service, occupancy_service
from casamia.utils.responses import ok, read_json, require_role, path_int, query_bool

routes = web.RouteTableDef()


@routes.get("/api/apartments")
async def list_apartments(request: web.Request):
    require_role(request)
    apartments = await apartment_service.list_apartments(
        request["session"],
        available_only=bool(query_bool(request, "available_only")),
        building=request.query.get("building"),
    )
    return ok([a.to_dict() for a in apartments])


@routes.get(r"/api/apartments/{apartment_id:\d+}")
async def get_apartment(request: web.Request):
    require_role(request)
    apartment = await apartment_service.get_apartment(request["session"], path_int(request, "apartment_id"))
    return ok(apartment.to_dict())


@routes.post("/api/apartments")
async def create_apartment(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, ApartmentCreate)
    apartment = await apartment_service.create_apartment(request["session"], body.model_dump(mode="json"))
    return ok(apartment.to_dict(), message="Apartment created successfully", status=201)


@routes.put(r"/api/apartments/{apartment_id:\d+}")
async def update_apartment(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, ApartmentUpdate)
    apartment = await apartment_service.update_apartment(
        request["session"], path_int(request, "apartment_id"), body.model_dump(mode="json", exclude_unset=True)
    )
    return ok(apartment.to_dict(), message="Apartment updated successfully")


@routes.post(r"/api/apartments/{apartment_id:\d+}/release")
async def release_apartment(request: web.Request):
    require_role(request, Role.admin.value)
    apartment = await occupancy_service.release_apartment(request["session"], path_int(request, "apartment_id"))
    return ok(apartment.to_dict() if apartment else None, message="Apartment released")


@routes.delete(r"/api/apartments/{apartment_id:\d+}")
async def delete_apartment(request: web.Request):
    require_role(request, Role.admin.value)
    await apartment_service.delete_apartment(request["session"], path_int(request, "apartment_id"))
    return ok(message="Apartment deleted successfully")
