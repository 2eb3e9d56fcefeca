from aiohttp import web

from casamia.errors import AuthenticationError
from casamia.services.auth_service import decode_access_token

PUBLIC_PATHS = {"/api/health", "/api/auth/login"}


@web.middleware
async def auth_middleware(request: web.Request, handler):
    """Decode the Bearer token into request["principal"]. Public routes pass through."""
    if request.path in PUBLIC_PATHS or request.method == "OPTIONS":
        return await handler(request)

    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationError("Access token required")

    request["principal"] = decode_access_token(token.strip())
    return await handler(request)
