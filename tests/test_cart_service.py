import pytest
from sqlalchemy import select

from casamia.database.models import BeverageConsumption, CartStatus, ConsumptionStatus
from casamia.errors import EmptyCartError, UnavailableError, NotFoundError
from casamia.services.cart_service import (
    get_active_cart, add_item, update_item_quantity, remove_item, clear_cart, checkout
)
from casamia.services.beverage_service import update_beverage


@pytest.mark.asyncio
async def test_active_cart_is_created_once(async_session, make_tenant):
    tenant = await make_tenant()
    first = await get_active_cart(async_session, tenant.id)
    second = await get_active_cart(async_session, tenant.id)
    assert first.id == second.id
    assert first.status == CartStatus.active.value


@pytest.mark.asyncio
async def test_add_item_merges_at_original_price(async_session, make_tenant, make_beverage):
    """Same beverage twice: one line, quantity summed, priced at the unit price it was added with"""
    tenant = await make_tenant()
    cola = await make_beverage("Cola", price=15.0)

    await add_item(async_session, tenant.id, cola.id, 2)
    await update_beverage(async_session, cola.id, {"price": 20.0})
    cart = await add_item(async_session, tenant.id, cola.id, 3)

    assert len(cart.items) == 1
    line = cart.items[0]
    assert line.quantity == 5
    assert line.unit_price == 15.0
    assert line.total_price == 75.0
    assert cart.total_amount == 75.0


@pytest.mark.asyncio
async def test_new_line_takes_current_catalog_price(async_session, make_tenant, make_beverage):
    tenant = await make_tenant()
    cola = await make_beverage("Cola", price=15.0)
    beer = await make_beverage("Beer", price=30.0)

    await add_item(async_session, tenant.id, cola.id, 1)
    cart = await add_item(async_session, tenant.id, beer.id, 2)

    assert [item.beverage_name for item in cart.items] == ["Cola", "Beer"]
    assert cart.total_amount == 75.0


@pytest.mark.asyncio
async def test_add_unavailable_or_missing_beverage(async_session, make_tenant, make_beverage):
    tenant = await make_tenant()
    retired = await make_beverage("Lemonade", is_available=False)

    with pytest.raises(UnavailableError):
        await add_item(async_session, tenant.id, retired.id, 1)
    with pytest.raises(NotFoundError):
        await add_item(async_session, tenant.id, 999, 1)


@pytest.mark.asyncio
async def test_update_quantity_and_remove(async_session, make_tenant, make_beverage):
    tenant = await make_tenant()
    cola = await make_beverage("Cola", price=15.0)
    beer = await make_beverage("Beer", price=30.0)
    await add_item(async_session, tenant.id, cola.id, 1)
    cart = await add_item(async_session, tenant.id, beer.id, 1)
    cola_line, beer_line = cart.items[0].id, cart.items[1].id

    cart = await update_item_quantity(async_session, tenant.id, cola_line, 4)
    assert cart.items[0].total_price == 60.0
    assert cart.total_amount == 90.0

    # Zero removes the line
    cart = await update_item_quantity(async_session, tenant.id, beer_line, 0)
    assert len(cart.items) == 1
    assert cart.total_amount == 60.0

    cart = await remove_item(async_session, tenant.id, cola_line)
    assert cart.items == []
    assert cart.total_amount == 0

    with pytest.raises(NotFoundError):
        await remove_item(async_session, tenant.id, cola_line)


@pytest.mark.asyncio
async def test_checkout_creates_one_record_per_line(async_session, make_apartment, make_tenant, make_beverage):
    apartment = await make_apartment("C303")
    tenant = await make_tenant(apartment_id=apartment.id)
    cola = await make_beverage("Cola", price=15.0)
    beer = await make_beverage("Beer", price=30.0)
    water = await make_beverage("Water", price=5.0)
    for beverage, quantity in ((cola, 2), (beer, 1), (water, 3)):
        await add_item(async_session, tenant.id, beverage.id, quantity)

    result = await checkout(async_session, tenant.id)

    assert len(result.records) == 3
    assert result.cart.status == CartStatus.ordered.value
    assert result.cart.ordered_at is not None
    assert len(result.cart.items) == 3  # Lines kept as the audit record
    assert round(sum(r.total_amount for r in result.records), 2) == result.cart.total_amount == 75.0

    stored = (await async_session.execute(
        select(BeverageConsumption).where(BeverageConsumption.tenant_id == tenant.id)
    )).scalars().all()
    assert len(stored) == 3
    for record in stored:
        assert record.status == ConsumptionStatus.consumed.value
        assert record.payment_status == "pending"
        assert record.payment_method == "account"
        assert record.included_in_bill is False
        assert record.room_number == "C303"
        assert record.apartment_id == apartment.id

    # Next cart is a fresh one
    cart = await get_active_cart(async_session, tenant.id)
    assert cart.id != result.cart.id
    assert cart.items == []


@pytest.mark.asyncio
async def test_checkout_empty_cart(async_session, make_tenant, make_beverage):
    tenant = await make_tenant()
    cola = await make_beverage()
    tenant_id, cola_id = tenant.id, cola.id

    with pytest.raises(EmptyCartError):
        await checkout(async_session, tenant_id)

    await add_item(async_session, tenant_id, cola_id, 1)
    await clear_cart(async_session, tenant_id)
    with pytest.raises(EmptyCartError):
        await checkout(async_session, tenant_id)
