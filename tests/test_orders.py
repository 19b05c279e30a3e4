import pytest

from shopeasy.models import OrderStatus
from shopeasy.schemas import Payer, PaymentConfirmation
from shopeasy.services import orders as order_service
from shopeasy.services.cart import add_item
from shopeasy.services.checkout import checkout
from shopeasy.shared.utils import NotFoundException


@pytest.fixture
def place_order(db, settings, shipping_address, make_product):
    async def _place(user_id: str = "user-1") -> dict:
        product = await make_product(stock=10)
        await add_item(db, user_id, str(product["_id"]), 1)
        return await checkout(db, user_id, shipping_address, "PayPal", settings)
    return _place


async def test_get_order_hides_other_users_orders(db, place_order):
    order = await place_order("owner")
    oid = str(order["_id"])

    assert (await order_service.get_order(db, oid, "owner"))["_id"] == order["_id"]
    assert (await order_service.get_order(db, oid, "someone", is_admin=True))["_id"] == order["_id"]
    with pytest.raises(NotFoundException):
        await order_service.get_order(db, oid, "someone")
    with pytest.raises(NotFoundException):
        await order_service.get_order(db, "bogus", "owner")


async def test_user_orders_are_newest_first(db, place_order):
    first = await place_order()
    second = await place_order()
    await place_order("other")

    orders = await order_service.list_user_orders(db, "user-1")

    assert [o["_id"] for o in orders] == [second["_id"], first["_id"]]


async def test_admin_listing_is_paginated(db, place_order):
    for _ in range(3):
        await place_order()

    page, count = await order_service.list_all_orders(db, page=2, page_size=2)

    assert count == 3
    assert len(page) == 1


async def test_mark_paid_records_confirmation(db, place_order):
    order = await place_order()
    payment = PaymentConfirmation(
        id="PAY-1", status="COMPLETED", update_time="2024-01-01T00:00:00Z",
        payer=Payer(email_address="buyer@example.com"),
    )

    paid = await order_service.mark_paid(db, order, payment)

    assert paid["is_paid"] is True
    assert paid["paid_at"] is not None
    assert paid["payment_result"] == {
        "id": "PAY-1",
        "status": "COMPLETED",
        "update_time": "2024-01-01T00:00:00Z",
        "email_address": "buyer@example.com",
    }
    assert paid["status"] == "Pending"


async def test_mark_paid_again_overwrites_payload(db, place_order):
    order = await place_order()
    await order_service.mark_paid(db, order, PaymentConfirmation(id="PAY-1", status="PENDING"))

    paid = await order_service.mark_paid(db, order, PaymentConfirmation(id="PAY-1", status="COMPLETED"))

    assert paid["is_paid"] is True
    assert paid["payment_result"]["status"] == "COMPLETED"


async def test_advance_status_to_delivered_sets_delivery_fields(db, place_order):
    order = await place_order()
    oid = str(order["_id"])

    shipped = await order_service.advance_status(db, oid, OrderStatus.SHIPPED)
    assert shipped["status"] == "Shipped"
    assert shipped["is_delivered"] is False

    delivered = await order_service.advance_status(db, oid, OrderStatus.DELIVERED)
    assert delivered["status"] == "Delivered"
    assert delivered["is_delivered"] is True
    assert delivered["delivered_at"] is not None


async def test_advance_status_allows_backward_moves(db, place_order):
    order = await place_order()
    oid = str(order["_id"])
    await order_service.advance_status(db, oid, OrderStatus.DELIVERED)

    reverted = await order_service.advance_status(db, oid, OrderStatus.PENDING)

    assert reverted["status"] == "Pending"
    assert reverted["is_delivered"] is True


async def test_advance_status_unknown_order(db):
    with pytest.raises(NotFoundException):
        await order_service.advance_status(db, "0123456789abcdef01234567", OrderStatus.SHIPPED)
