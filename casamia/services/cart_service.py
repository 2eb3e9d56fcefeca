import logging
from datetime import date, datetime, timedelta
from typing import Optional, List, NamedTuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.core import utcnow
from casamia.database.models import (
    BeverageCart, BeverageCartItem, BeverageConsumption, Beverage, CartStatus,
    ConsumptionStatus, ConsumptionPaymentStatus, PaymentMethod, TenantInfo
)
from casamia.errors import NotFoundError, EmptyCartError, UnavailableError, ServiceError
from casamia.services.billing_service import run_bill_transaction, fold_into_period_bill, period_bounds
from casamia.utils.ui import month_bounds


class CheckoutResult(NamedTuple):
    cart: BeverageCart
    records: List[BeverageConsumption]


class SweepResult(NamedTuple):
    carts_billed: int
    records_created: int
    bill_ids: List[int]
    failed_cart_ids: List[int]


async def _lock_tenant(session: AsyncSession, tenant_id: int) -> TenantInfo:
    """Lock the tenant row so cart find-or-create is serialized per tenant."""
    stmt = select(TenantInfo).where(TenantInfo.user_id == tenant_id).with_for_update()
    tenant_info = (await session.execute(stmt)).scalar_one_or_none()
    if not tenant_info:
        raise NotFoundError(f"Tenant ID {tenant_id} not found")
    return tenant_info


async def find_active_cart(session: AsyncSession, tenant_id: int) -> Optional[BeverageCart]:
    stmt = (
        select(BeverageCart)
        .where(BeverageCart.tenant_id == tenant_id, BeverageCart.status == CartStatus.active.value)
        .order_by(BeverageCart.id)
        .with_for_update()
    )
    return (await session.execute(stmt)).scalars().first()


async def get_active_cart(session: AsyncSession, tenant_id: int) -> BeverageCart:
    """The tenant's single active cart, created on first use."""
    await _lock_tenant(session, tenant_id)
    cart = await find_active_cart(session, tenant_id)
    if cart is None:
        cart = BeverageCart(tenant_id=tenant_id, status=CartStatus.active.value, total_amount=0, items=[])
        session.add(cart)
        await session.flush()
        logging.info(f"Created cart {cart.id} for tenant {tenant_id}")
    return cart


async def add_item(session: AsyncSession, tenant_id: int, beverage_id: int, quantity: int) -> BeverageCart:
    """
    Add a beverage to the tenant's cart.

    A beverage already in the cart is merged into its line: the quantities add up
    and the line keeps the unit price it was added with. New lines take the
    current catalog price.
    """
    if quantity < 1:
        raise ServiceError("Quantity must be at least 1")

    beverage = await session.get(Beverage, beverage_id)
    if not beverage:
        raise NotFoundError(f"Beverage ID {beverage_id} not found")
    if not beverage.is_available:
        raise UnavailableError(f"{beverage.name} is currently not available")

    cart = await get_active_cart(session, tenant_id)
    line = next((item for item in cart.items if item.beverage_id == beverage_id), None)
    if line:
        line.quantity += quantity
        line.total_price = round(line.quantity * float(line.unit_price), 2)
    else:
        cart.items.append(BeverageCartItem(
            beverage_id=beverage.id,
            beverage_name=beverage.name,
            quantity=quantity,
            unit_price=float(beverage.price),
            total_price=round(quantity * float(beverage.price), 2),
        ))

    cart.recalculate_total()
    await session.commit()
    return cart


def _find_line(cart: BeverageCart, item_id: int) -> BeverageCartItem:
    line = next((item for item in cart.items if item.id == item_id), None)
    if not line:
        raise NotFoundError(f"Cart item ID {item_id} not found")
    return line


async def update_item_quantity(session: AsyncSession, tenant_id: int, item_id: int, quantity: int) -> BeverageCart:
    """Quantity <= 0 removes the line; otherwise total = quantity * the line's fixed unit price."""
    cart = await get_active_cart(session, tenant_id)
    line = _find_line(cart, item_id)
    if quantity <= 0:
        cart.items.remove(line)
    else:
        line.quantity = quantity
        line.total_price = round(quantity * float(line.unit_price), 2)

    cart.recalculate_total()
    await session.commit()
    return cart


async def remove_item(session: AsyncSession, tenant_id: int, item_id: int) -> BeverageCart:
    cart = await get_active_cart(session, tenant_id)
    cart.items.remove(_find_line(cart, item_id))
    cart.recalculate_total()
    await session.commit()
    return cart


async def clear_cart(session: AsyncSession, tenant_id: int) -> BeverageCart:
    cart = await get_active_cart(session, tenant_id)
    cart.items.clear()
    cart.recalculate_total()
    await session.commit()
    return cart


def build_consumption_records(
    cart: BeverageCart,
    tenant_info: TenantInfo,
    consumed_at: datetime,
    status: str = ConsumptionStatus.consumed.value,
    billed_period: Optional[date] = None
) -> List[BeverageConsumption]:
    """One consumption record per cart line, with the tenant's current room and apartment."""
    records = []
    for line in cart.items:
        records.append(BeverageConsumption(
            tenant_id=cart.tenant_id,
            beverage_id=line.beverage_id,
            beverage_name=line.beverage_name,
            quantity=line.quantity,
            unit_price=float(line.unit_price),
            total_amount=float(line.total_price),
            consumption_date=consumed_at,
            room_number=tenant_info.room_number,
            apartment_id=tenant_info.apartment_id,
            status=status,
            payment_status=ConsumptionPaymentStatus.pending.value,
            payment_method=PaymentMethod.account.value,
            included_in_bill=False,
            billed_in_month=billed_period.month if billed_period else None,
            billed_in_year=billed_period.year if billed_period else None,
        ))
    return records


async def checkout(session: AsyncSession, tenant_id: int) -> CheckoutResult:
    """
    Turn the active cart into consumption records and close it as `ordered`.

    The lines stay on the ordered cart as the record of what was bought.

    Raises:
        EmptyCartError: there is no active cart or it has no lines
    """
    try:
        tenant_info = await _lock_tenant(session, tenant_id)
        cart = await find_active_cart(session, tenant_id)
        if cart is None or not cart.items:
            raise EmptyCartError("Cart is empty")

        now = utcnow()
        records = build_consumption_records(cart, tenant_info, now)
        session.add_all(records)
        cart.recalculate_total()
        cart.status = CartStatus.ordered.value
        cart.ordered_at = now
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logging.info(f"Cart {cart.id} checked out by tenant {tenant_id}: {len(records)} items, total {cart.total_amount}")
    return CheckoutResult(cart=cart, records=records)


def consumed_within(now: datetime, period_start: date, period_end: date) -> datetime:
    """Timestamp for swept records: `now`, pulled into the billed period when a past or future month is swept."""
    start, end = period_bounds(period_start, period_end)
    return min(max(now, start), end - timedelta(microseconds=1))


async def bill_cart(
    session: AsyncSession,
    cart_id: int,
    period_start: date,
    period_end: date
) -> Optional[tuple[Optional[int], int]]:
    """
    Sweep a single active cart: consumption records, cart -> billed, fold into the
    period bill. Runs as one transaction (retried on bill number collisions).

    Returns (bill id, records created), or None when the cart no longer needs
    billing. The bill id is None for a tenant without an apartment; those
    records stay pending and unbilled.
    """
    async def work() -> Optional[tuple[Optional[int], int]]:
        stmt = select(BeverageCart).where(BeverageCart.id == cart_id).with_for_update()
        cart = (await session.execute(stmt)).scalar_one_or_none()
        if cart is None or cart.status != CartStatus.active.value or not cart.items:
            return None

        tenant_info = await _lock_tenant(session, cart.tenant_id)
        now = utcnow()
        records = build_consumption_records(
            cart, tenant_info, consumed_within(now, period_start, period_end),
            status=ConsumptionStatus.billed.value, billed_period=period_start
        )
        session.add_all(records)
        cart.recalculate_total()
        cart.status = CartStatus.billed.value
        cart.billed_at = now
        cart.billing_month = period_start.month
        cart.billing_year = period_start.year
        await session.flush()

        if tenant_info.apartment_id is None:
            logging.warning(f"Tenant {cart.tenant_id} has no apartment, cart {cart.id} consumption left unbilled")
            return None, len(records)

        bill = await fold_into_period_bill(
            session, cart.tenant_id, tenant_info.apartment_id, records, period_start, period_end
        )
        return bill.id, len(records)

    outcome = await run_bill_transaction(session, work)
    if outcome is not None:
        logging.info(f"Cart {cart_id} billed: {outcome[1]} records, bill {outcome[0]}")
    return outcome


async def monthly_batch_sweep(session: AsyncSession, year: Optional[int] = None, month: Optional[int] = None) -> SweepResult:
    """
    Bill every active cart that still has items, whether or not the tenant checked out.

    Each cart is its own transaction; a failing cart is logged and skipped.
    """
    today = date.today()
    period_start, period_end = month_bounds(year or today.year, month or today.month)
    logging.info(f"Running monthly beverage sweep for {period_start:%Y-%m}...")

    stmt = (
        select(BeverageCart.id)
        .where(
            BeverageCart.status == CartStatus.active.value,
            BeverageCart.items.any()
        )
        .order_by(BeverageCart.id)
    )
    cart_ids = list((await session.execute(stmt)).scalars().all())

    billed, records, bill_ids, failed = 0, 0, [], []
    for cart_id in cart_ids:
        try:
            outcome = await bill_cart(session, cart_id, period_start, period_end)
        except Exception as e:
            logging.error(f"Failed to bill cart {cart_id}: {e}")
            failed.append(cart_id)
            continue
        if outcome is None:
            continue
        bill_id, count = outcome
        billed += 1
        records += count
        if bill_id is not None and bill_id not in bill_ids:
            bill_ids.append(bill_id)

    logging.info(f"Monthly sweep done: {billed} carts billed, {len(failed)} failed, {len(bill_ids)} bills touched")
    return SweepResult(carts_billed=billed, records_created=records, bill_ids=bill_ids, failed_cart_ids=failed)
