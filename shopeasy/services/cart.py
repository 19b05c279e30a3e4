"""Cart service: one cart document per user, lines keyed by product id.

Stock checks here are advisory; checkout re-validates against live stock.
"""
import logging
from decimal import Decimal
from typing import List

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from shopeasy.models import CartDB, CartItemDB
from shopeasy.services.catalog import get_product
from shopeasy.shared.utils import (
    InsufficientStockException,
    NotFoundException,
    ValidationException,
    to_money,
    utcnow,
)

logger = logging.getLogger(__name__)


def cart_total(items: List[dict]) -> Decimal:
    return sum((to_money(item["price"]) * item["quantity"] for item in items), Decimal("0.00"))


def line_key(product_id: str) -> str:
    """Canonical product id used to key cart lines (ObjectId hex is case-insensitive)."""
    return str(ObjectId(product_id)) if ObjectId.is_valid(product_id) else product_id


async def get_or_create_cart(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    empty = CartDB(user_id=user_id).to_mongo()
    empty.pop("user_id")
    return await db.carts.find_one_and_update(
        {"user_id": user_id},
        {"$setOnInsert": empty},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


async def _save_items(db: AsyncIOMotorDatabase, user_id: str, items: List[dict]) -> dict:
    return await db.carts.find_one_and_update(
        {"user_id": user_id},
        {"$set": {
            "items": items,
            "total_price": float(cart_total(items)),
            "updated_at": utcnow(),
        }},
        return_document=ReturnDocument.AFTER,
    )


def _check_quantity(quantity: int) -> None:
    if quantity < 1:
        raise ValidationException("Quantity must be at least 1")


async def add_item(db: AsyncIOMotorDatabase, user_id: str, product_id: str, quantity: int) -> dict:
    """Add ``quantity`` of a product, merging into an existing line."""
    _check_quantity(quantity)
    product = await get_product(db, product_id)
    product_id = str(product["_id"])
    cart = await get_or_create_cart(db, user_id)

    items = cart.get("items", [])
    line = next((i for i in items if i["product_id"] == product_id), None)
    wanted = quantity + (line["quantity"] if line else 0)
    if wanted > product["stock"]:
        raise InsufficientStockException(product["name"], product["stock"])

    if line:
        line["quantity"] = wanted
    else:
        images = product.get("images") or []
        items.append(CartItemDB(
            product_id=product_id,
            name=product["name"],
            image=images[0] if images else None,
            quantity=quantity,
            price=product["price"],
        ).to_mongo())

    return await _save_items(db, user_id, items)


async def update_item(db: AsyncIOMotorDatabase, user_id: str, product_id: str, quantity: int) -> dict:
    """Replace a line's quantity. Zero or less is rejected, never treated as removal."""
    _check_quantity(quantity)
    product_id = line_key(product_id)
    cart = await db.carts.find_one({"user_id": user_id})
    if not cart:
        raise NotFoundException("Cart not found")

    items = cart.get("items", [])
    line = next((i for i in items if i["product_id"] == product_id), None)
    if line is None:
        raise NotFoundException("Item not found in cart")

    product = await get_product(db, product_id)
    if quantity > product["stock"]:
        raise InsufficientStockException(product["name"], product["stock"])

    line["quantity"] = quantity
    return await _save_items(db, user_id, items)


async def remove_item(db: AsyncIOMotorDatabase, user_id: str, product_id: str) -> dict:
    product_id = line_key(product_id)
    cart = await get_or_create_cart(db, user_id)
    items = [i for i in cart.get("items", []) if i["product_id"] != product_id]
    return await _save_items(db, user_id, items)


async def clear_cart(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    await get_or_create_cart(db, user_id)
    cart = await _save_items(db, user_id, [])
    logger.info("Cart cleared", extra={"user_id": user_id})
    return cart


async def claim_items(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    """Atomically empty the cart and return the lines it held.

    Only one caller can take a given set of lines; a concurrent claim sees an
    empty cart.
    """
    cart = await db.carts.find_one_and_update(
        {"user_id": user_id, "items": {"$ne": []}},
        {"$set": {"items": [], "total_price": 0.0, "updated_at": utcnow()}},
        return_document=ReturnDocument.BEFORE,
    )
    return list(cart.get("items") or []) if cart else []


async def restore_items(db: AsyncIOMotorDatabase, user_id: str, lines: List[dict]) -> dict:
    """Put claimed lines back, merging with anything added since the claim."""
    cart = await get_or_create_cart(db, user_id)
    items = [dict(line) for line in lines]
    for item in cart.get("items", []):
        line = next((i for i in items if i["product_id"] == item["product_id"]), None)
        if line:
            line["quantity"] += item["quantity"]
        else:
            items.append(item)
    return await _save_items(db, user_id, items)
