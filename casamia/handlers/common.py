from aiohttp import web

from casamia.schemas.validation import LoginRequest
from casamia.services.auth_service import authenticate
from casamia.services.user_service import get_user
from casamia.utils.responses import ok, read_json

routes = web.RouteTableDef()


@routes.get("/api/health")
async def health(request: web.Request):
    return ok({"status": "ok"})


@routes.post("/api/auth/login")
async def login(request: web.Request):
    body = await read_json(request, LoginRequest)
    user, token = await authenticate(request["session"], body.email, body.password)
    return ok({"token": token, "user": user.to_dict()}, message="Login successful")


@routes.get("/api/auth/me")
async def me(request: web.Request):
    user = await get_user(request["session"], request["principal"].id)
    return ok(user.to_dict())
