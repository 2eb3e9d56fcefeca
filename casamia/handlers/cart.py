from aiohttp import web

from casamia.database.models import Role
from casamia.schemas.validation import CartItemAdd, CartItemUpdate
from casamia.services import cart_service, consumption_service
from casamia.utils.responses import ok, read_json, require_role, path_int, pagination, page_meta, query_date

routes = web.RouteTableDef()


@routes.get("/api/rooftop/cart")
async def get_cart(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    cart = await cart_service.get_active_cart(request["session"], principal.id)
    return ok(cart.to_dict())


@routes.post("/api/rooftop/cart/items")
async def add_item(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    body = await read_json(request, CartItemAdd)
    cart = await cart_service.add_item(request["session"], principal.id, body.beverage_id, body.quantity)
    return ok(cart.to_dict(), message="Item added to cart")


@routes.put(r"/api/rooftop/cart/items/{item_id:\d+}")
async def update_item(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    body = await read_json(request, CartItemUpdate)
    cart = await cart_service.update_item_quantity(
        request["session"], principal.id, path_int(request, "item_id"), body.quantity
    )
    return ok(cart.to_dict(), message="Cart updated")


@routes.delete(r"/api/rooftop/cart/items/{item_id:\d+}")
async def remove_item(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    cart = await cart_service.remove_item(request["session"], principal.id, path_int(request, "item_id"))
    return ok(cart.to_dict(), message="Item removed from cart")


@routes.delete("/api/rooftop/cart")
async def clear_cart(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    cart = await cart_service.clear_cart(request["session"], principal.id)
    return ok(cart.to_dict(), message="Cart cleared")


@routes.post("/api/rooftop/cart/checkout")
async def checkout(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    result = await cart_service.checkout(request["session"], principal.id)
    return ok(
        {"cart": result.cart.to_dict(), "consumption": [r.to_dict() for r in result.records]},
        message=f"Order placed: {len(result.records)} items added to your account",
    )


@routes.get("/api/rooftop/consumption")
async def my_consumption(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    limit, offset = pagination(request)
    records, total = await consumption_service.list_consumption(
        request["session"],
        tenant_id=principal.id,
        payment_status=request.query.get("payment_status"),
        date_from=query_date(request, "date_from"),
        date_to=query_date(request, "date_to"),
        limit=limit,
        offset=offset,
    )
    return ok([r.to_dict() for r in records], pagination=page_meta(total, limit, offset))
