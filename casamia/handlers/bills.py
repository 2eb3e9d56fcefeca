from aiohttp import web

from casamia.database.models import Role
from casamia.errors import NotFoundError
from casamia.schemas.validation import (
    BillCreate, BillUpdate, BillIds, BillReview, BillPayment, BillCancel, MonthlySweepRequest
)
from casamia.services import bill_status_service, billing_service, cart_service
from casamia.services.billing_service import UtilityReading, Adjustment
from casamia.utils.responses import (
    ok, read_json, require_role, path_int, pagination, page_meta, query_date, query_int
)

routes = web.RouteTableDef()


def _readings(items) -> list:
    return [
        UtilityReading(
            utility_type=r.utility_type.value,
            current_reading=r.current_reading,
            rate=r.rate,
            previous_reading=r.previous_reading,
        )
        for r in items
    ]


def _adjustments(items) -> list:
    return [Adjustment(a.description, a.amount) for a in items]


@routes.post("/api/bills")
async def generate_bill(request: web.Request):
    principal = require_role(request, Role.admin.value)
    body = await read_json(request, BillCreate)
    bill = await billing_service.generate_bill(
        request["session"],
        tenant_id=body.tenant_id,
        period_start=body.billing_period_start,
        period_end=body.billing_period_end,
        utilities=_readings(body.utilities),
        additional_charges=_adjustments(body.additional_charges),
        discounts=_adjustments(body.discounts),
        tax=body.tax,
        status=body.status,
        due_date=body.due_date,
        generated_by=principal.id,
        admin_notes=body.admin_notes,
    )
    return ok(bill.to_dict(), message=f"Bill {bill.bill_number} generated", status=201)


@routes.get("/api/bills")
async def list_bills(request: web.Request):
    require_role(request, Role.admin.value)
    limit, offset = pagination(request)
    bills, total = await billing_service.list_bills(
        request["session"],
        tenant_id=query_int(request, "tenant_id"),
        status=request.query.get("status"),
        period_start=query_date(request, "period_start"),
        period_end=query_date(request, "period_end"),
        limit=limit,
        offset=offset,
    )
    return ok([b.to_dict() for b in bills], pagination=page_meta(total, limit, offset))


@routes.get("/api/bills/stats")
async def bill_stats(request: web.Request):
    require_role(request, Role.admin.value)
    stats = await billing_service.get_bill_stats(request["session"], tenant_id=query_int(request, "tenant_id"))
    return ok(stats._asdict())


@routes.get("/api/bills/me")
async def my_bills(request: web.Request):
    principal = require_role(request, Role.tenant.value)
    limit, offset = pagination(request)
    bills, total = await billing_service.list_bills(
        request["session"],
        tenant_id=principal.id,
        status=request.query.get("status"),
        limit=limit,
        offset=offset,
    )
    return ok([b.to_dict() for b in bills], pagination=page_meta(total, limit, offset))


@routes.get(r"/api/bills/{bill_id:\d+}")
async def get_bill(request: web.Request):
    principal = require_role(request, Role.admin.value, Role.tenant.value)
    bill_id = path_int(request, "bill_id")
    bill = await billing_service.get_bill(request["session"], bill_id)
    if principal.role == Role.tenant.value and bill.tenant_id != principal.id:
        raise NotFoundError(f"Bill ID {bill_id} not found")
    return ok(bill.to_dict())


@routes.put(r"/api/bills/{bill_id:\d+}")
async def update_bill(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, BillUpdate)
    changes = body.model_dump(exclude_unset=True, exclude={"utilities", "additional_charges", "discounts"})
    if body.utilities is not None:
        changes["utilities"] = _readings(body.utilities)
    if body.additional_charges is not None:
        changes["additional_charges"] = _adjustments(body.additional_charges)
    if body.discounts is not None:
        changes["discounts"] = _adjustments(body.discounts)

    bill = await billing_service.update_bill(request["session"], path_int(request, "bill_id"), changes)
    return ok(bill.to_dict(), message="Bill updated successfully")


@routes.post("/api/bills/submit-for-review")
async def submit_for_review(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, BillIds)
    bills = await bill_status_service.submit_for_review(request["session"], body.bill_ids)
    return ok([b.to_dict() for b in bills], message=f"{len(bills)} bills submitted for review")


@routes.post(r"/api/bills/{bill_id:\d+}/review")
async def review_bill(request: web.Request):
    principal = require_role(request, Role.admin.value)
    body = await read_json(request, BillReview)
    bill = await bill_status_service.review_bill(
        request["session"], path_int(request, "bill_id"), body.action, principal.id, body.notes
    )
    return ok(bill.to_dict(), message=f"Bill {bill.bill_number} {'approved' if body.action == 'approve' else 'sent back to draft'}")


@routes.post("/api/bills/send")
async def send_bills(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, BillIds)
    results = await bill_status_service.send_bills(request["session"], body.bill_ids)
    return ok([r._asdict() for r in results], message=f"{len(results)} bills sent")


@routes.post(r"/api/bills/{bill_id:\d+}/mark-paid")
async def mark_paid(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, BillPayment)
    result = await bill_status_service.mark_paid(
        request["session"], path_int(request, "bill_id"), body.payment_method.value
    )
    return ok(
        {"bill": result.bill.to_dict(), "consumption_updated": result.consumption_updated},
        message=f"Bill {result.bill.bill_number} marked as paid",
    )


@routes.post(r"/api/bills/{bill_id:\d+}/cancel")
async def cancel_bill(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, BillCancel)
    bill = await bill_status_service.cancel_bill(request["session"], path_int(request, "bill_id"), body.notes)
    return ok(bill.to_dict(), message=f"Bill {bill.bill_number} cancelled")


@routes.post("/api/bills/monthly-sweep")
async def monthly_sweep(request: web.Request):
    require_role(request, Role.admin.value)
    body = await read_json(request, MonthlySweepRequest)
    result = await cart_service.monthly_batch_sweep(request["session"], year=body.year, month=body.month)
    return ok(result._asdict(), message=f"{result.carts_billed} carts billed")
