from aiohttp import web

from casamia.database.models import Role
from casamia.schemas.validation import ConsumptionPaymentUpdate
from casamia.services import consumption_service
from casamia.utils.responses import (
    ok, read_json, require_role, path_int, pagination, page_meta, query_bool, query_date, query_int
)

routes = web.RouteTableDef()


@routes.get("/api/consumption")
async def list_consumption(request: web.Request):
    require_role(request, Role.admin.value)
    limit, offset = pagination(request)
    records, total = await consumption_service.list_consumption(
        request["session"],
        tenant_id=query_int(request, "tenant_id"),
        payment_status=request.query.get("payment_status"),
        date_from=query_date(request, "date_from"),
        date_to=query_date(request, "date_to"),
        included_in_bill=query_bool(request, "included_in_bill"),
        limit=limit,
        offset=offset,
    )
    return ok([r.to_dict() for r in records], pagination=page_meta(total, limit, offset))


@routes.get("/api/consumption/stats")
async def consumption_stats(request: web.Request):
    require_role(request, Role.admin.value)
    stats = await consumption_service.get_consumption_stats(
        request["session"],
        tenant_id=query_int(request, "tenant_id"),
        date_from=query_date(request, "date_from"),
        date_to=query_date(request, "date_to"),
    )
    data = stats._asdict()
    data["top_beverages"] = [b._asdict() for b in stats.top_beverages]
    return ok(data)


@routes.patch(r"/api/consumption/{consumption_id:\d+}/payment")
async def set_payment_status(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, ConsumptionPaymentUpdate)
    record = await consumption_service.set_payment_status(
        request["session"],
        path_int(request, "consumption_id"),
        body.payment_status,
        body.payment_method.value if body.payment_method else None,
    )
    return ok(record.to_dict(), message=f"Consumption marked {record.payment_status}")
