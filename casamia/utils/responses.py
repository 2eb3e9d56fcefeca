from datetime import date
from typing import Optional, Type, TypeVar

from aiohttp import web
from pydantic import BaseModel

from casamia.errors import PermissionDeniedError
from casamia.services.auth_service import Principal

M = TypeVar("M", bound=BaseModel)

MAX_PAGE_SIZE = 100


def ok(data=None, message: Optional[str] = None, status: int = 200, **extra) -> web.Response:
    payload = {"success": True}
    if message:
        payload["message"] = message
    if data is not None:
        payload["data"] = data
    payload.update(extra)
    return web.json_response(payload, status=status)


def error_response(message: str, status: int = 400, errors: Optional[list] = None) -> web.Response:
    payload = {"success": False, "message": message}
    if errors:
        payload["errors"] = errors
    return web.json_response(payload, status=status)


def require_role(request: web.Request, *roles: str) -> Principal:
    principal: Principal = request["principal"]
    if roles and principal.role not in roles:
        raise PermissionDeniedError(f"Access denied. Required role: {' or '.join(roles)}")
    return principal


async def read_json(request: web.Request, model: Type[M]) -> M:
    """Parse the body into a pydantic model. An empty body validates as {}."""
    data = await request.json() if request.body_exists else {}
    return model.model_validate(data)


def path_int(request: web.Request, name: str) -> int:
    return int(request.match_info[name])


def pagination(request: web.Request, default_limit: int = 50) -> tuple[int, int]:
    limit = min(int(request.query.get("limit", default_limit)), MAX_PAGE_SIZE)
    page = max(int(request.query.get("page", 1)), 1)
    return limit, (page - 1) * limit


def page_meta(total: int, limit: int, offset: int) -> dict:
    return {
        "total": total,
        "page": offset // limit + 1 if limit else 1,
        "limit": limit,
        "pages": (total + limit - 1) // limit if limit else 1,
    }


def query_date(request: web.Request, name: str) -> Optional[date]:
    value = request.query.get(name)
    return date.fromisoformat(value) if value else None


def query_int(request: web.Request, name: str) -> Optional[int]:
    value = request.query.get(name)
    return int(value) if value else None


def query_bool(request: web.Request, name: str) -> Optional[bool]:
    value = request.query.get(name)
    if value is None:
        return None
    return value.lower() in ("1", "true", "yes")
