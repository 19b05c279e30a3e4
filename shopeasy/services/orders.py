"""Order store.

Orders are written once by checkout. Afterwards only two narrow transitions
touch them: payment confirmation and the fulfillment status. The two are
independent axes.
"""
import logging
from typing import List, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from shopeasy.models import OrderDB, OrderStatus, PaymentResultDB
from shopeasy.schemas import PaymentConfirmation
from shopeasy.shared.utils import NotFoundException, str_to_oid, utcnow

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


async def create_order(db: AsyncIOMotorDatabase, order: OrderDB) -> dict:
    result = await db.orders.insert_one(order.to_mongo())
    return await db.orders.find_one({"_id": result.inserted_id})


async def get_order(db: AsyncIOMotorDatabase, order_id: str, user_id: str, is_admin: bool = False) -> dict:
    """Fetch an order visible to the caller; other users' orders look missing."""
    order = await db.orders.find_one({"_id": str_to_oid(order_id, "Order")})
    if not order or (order["user_id"] != user_id and not is_admin):
        raise NotFoundException("Order not found")
    return order


async def list_user_orders(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    cursor = db.orders.find({"user_id": user_id}).sort(NEWEST_FIRST)
    return await cursor.to_list(length=None)


async def list_all_orders(db: AsyncIOMotorDatabase, page: int = 1, page_size: int = 10) -> Tuple[List[dict], int]:
    count = await db.orders.count_documents({})
    cursor = db.orders.find({}).sort(NEWEST_FIRST).skip(page_size * (page - 1)).limit(page_size)
    return await cursor.to_list(length=page_size), count


async def mark_paid(db: AsyncIOMotorDatabase, order: dict, payment: PaymentConfirmation) -> dict:
    """Record the provider's confirmation. Re-confirming overwrites the payload."""
    now = utcnow()
    result = PaymentResultDB(
        id=payment.id,
        status=payment.status,
        update_time=payment.update_time,
        email_address=payment.payer.email_address if payment.payer else None,
    )
    updated = await db.orders.find_one_and_update(
        {"_id": order["_id"]},
        {"$set": {
            "is_paid": True,
            "paid_at": now,
            "payment_result": result.model_dump(),
            "updated_at": now,
        }},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFoundException("Order not found")
    logger.info("Order paid", extra={"order_id": str(order["_id"]), "user_id": order["user_id"]})
    return updated


async def advance_status(db: AsyncIOMotorDatabase, order_id: str, new_status: OrderStatus) -> dict:
    now = utcnow()
    changes = {"status": OrderStatus(new_status).value, "updated_at": now}
    if new_status == OrderStatus.DELIVERED:
        changes["is_delivered"] = True
        changes["delivered_at"] = now

    order = await db.orders.find_one_and_update(
        {"_id": str_to_oid(order_id, "Order")},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if order is None:
        raise NotFoundException("Order not found")
    logger.info("Order status updated", extra={"order_id": order_id})
    return order
