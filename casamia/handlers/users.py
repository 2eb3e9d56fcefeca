from aiohttp import web

from casamia.database.models import Role
from casamia.schemas.validation import UserCreate, UserUpdate
from casamia.services import tenant_service, user_service
from casamia.utils.responses import ok, read_json, require_role, path_int, pagination, page_meta, query_bool

routes = web.RouteTableDef()


@routes.get("/api/users")
async def list_users(request: web.Request):
    require_role(request, Role.admin.value)
    limit, offset = pagination(request)
    users, total = await user_service.list_users(
        request["session"],
        role=request.query.get("role"),
        is_active=query_bool(request, "is_active"),
        search=request.query.get("search"),
        include_deleted=bool(query_bool(request, "include_deleted")),
        limit=limit,
        offset=offset,
    )
    return ok([u.to_dict() for u in users], pagination=page_meta(total, limit, offset))


@routes.get(r"/api/users/{user_id:\d+}")
async def get_user(request: web.Request):
    require_role(request, Role.admin.value)
    user = await user_service.get_user(request["session"], path_int(request, "user_id"), include_deleted=True)
    return ok(user.to_dict())


@routes.post("/api/users")
async def create_user(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, UserCreate)
    session = request["session"]

    if body.role == Role.tenant:
        info = body.tenant_info.model_dump() if body.tenant_info else {}
        user = await tenant_service.create_tenant(
            session,
            name=body.name,
            email=body.email,
            password=body.password,
            phone=body.phone,
            **info,
        )
    else:
        user = await user_service.create_user(
            session,
            name=body.name,
            email=body.email,
            password=body.password,
            role=body.role.value,
            phone=body.phone,
            worker_info=body.worker_info.model_dump(mode="json") if body.worker_info else None,
        )
    return ok(user.to_dict(), message="User created successfully", status=201)


@routes.put(r"/api/users/{user_id:\d+}")
async def update_user(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, UserUpdate)
    session = request["session"]
    user_id = path_int(request, "user_id")
    user = await user_service.get_user(session, user_id)

    changes = body.model_dump(exclude_unset=True, exclude={"tenant_info", "worker_info"})
    if user.role == Role.tenant.value:
        if body.tenant_info is not None:
            changes.update(body.tenant_info.model_dump(exclude_unset=True))
        user = await tenant_service.update_tenant(session, user_id, changes)
    else:
        if body.worker_info is not None:
            changes["worker_info"] = body.worker_info.model_dump(mode="json")
        user = await user_service.update_user(session, user_id, changes)
    return ok(user.to_dict(), message="User updated successfully")


@routes.patch(r"/api/users/{user_id:\d+}/toggle-status")
async def toggle_status(request: web.Request):
    principal = require_role(request, Role.admin.value)
    session = request["session"]
    user_id = path_int(request, "user_id")
    user = await user_service.get_user(session, user_id)

    if user.role == Role.tenant.value:
        user = await tenant_service.toggle_tenant_status(session, user_id)
    else:
        user = await user_service.toggle_user_status(session, user_id, acting_user_id=principal.id)
    state = "activated" if user.is_active else "deactivated"
    return ok(user.to_dict(), message=f"User {state} successfully")


@routes.delete(r"/api/users/{user_id:\d+}")
async def delete_user(request: web.Request):
    principal = require_role(request, Role.admin.value)
    session = request["session"]
    user_id = path_int(request, "user_id")
    user = await user_service.get_user(session, user_id)

    if user.role == Role.tenant.value:
        await tenant_service.delete_tenant(session, user_id, deleted_by=principal.id)
    else:
        await user_service.delete_user(session, user_id, acting_user_id=principal.id)
    return ok(message="User deleted successfully")
