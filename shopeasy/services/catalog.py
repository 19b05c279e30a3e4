"""Catalog store: product reads, admin CRUD and the stock primitives.

``reserve_stock`` is the only checkout-time writer of ``products.stock``. It
is a single conditional update, so concurrent checkouts for the same product
can never reserve more than what is on the shelf.
"""
import logging
import math
import re
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from shopeasy.images import normalize_image_ref
from shopeasy.models import ProductDB
from shopeasy.schemas import ProductCreate, ProductUpdate
from shopeasy.shared.utils import (
    InsufficientStockException,
    NotFoundException,
    ValidationException,
    str_to_oid,
    utcnow,
)

logger = logging.getLogger(__name__)


def page_count(count: int, page_size: int) -> int:
    return math.ceil(count / page_size) if page_size else 0


async def get_product(db: AsyncIOMotorDatabase, product_id: str) -> dict:
    product = await db.products.find_one({"_id": str_to_oid(product_id, "Product")})
    if not product:
        raise NotFoundException("Product not found")
    return product


async def list_products(
    db: AsyncIOMotorDatabase,
    page: int = 1,
    page_size: int = 10,
    keyword: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> Tuple[List[dict], int]:
    """Newest-first page of products plus the total match count."""
    query: dict = {}
    if keyword:
        pattern = {"$regex": re.escape(keyword), "$options": "i"}
        query["$or"] = [
            {"name": pattern},
            {"description": pattern},
            {"category": pattern},
        ]
    if category:
        query["category"] = category

    price_query = {}
    if min_price is not None:
        price_query["$gte"] = float(min_price)
    if max_price is not None:
        price_query["$lte"] = float(max_price)
    if price_query:
        query["price"] = price_query

    count = await db.products.count_documents(query)
    cursor = (
        db.products.find(query)
        .sort([("created_at", -1), ("_id", -1)])
        .skip(page_size * (page - 1))
        .limit(page_size)
    )
    return await cursor.to_list(length=page_size), count


async def list_featured(db: AsyncIOMotorDatabase, limit: int = 5) -> List[dict]:
    cursor = db.products.find({"featured": True}).sort([("created_at", -1), ("_id", -1)]).limit(limit)
    return await cursor.to_list(length=limit)


async def list_categories(db: AsyncIOMotorDatabase) -> List[str]:
    return sorted(await db.products.distinct("category"))


async def create_product(db: AsyncIOMotorDatabase, data: ProductCreate) -> dict:
    product_db = ProductDB(
        **data.model_dump(exclude={"price", "images"}),
        price=float(data.price),
        images=[normalize_image_ref(ref) for ref in data.images],
    )
    result = await db.products.insert_one(product_db.to_mongo())
    logger.info("Product created", extra={"product_id": str(result.inserted_id)})
    return await db.products.find_one({"_id": result.inserted_id})


async def update_product(db: AsyncIOMotorDatabase, product_id: str, data: ProductUpdate) -> dict:
    oid = str_to_oid(product_id, "Product")
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    if "price" in update_data:
        update_data["price"] = float(update_data["price"])
    if "images" in update_data:
        update_data["images"] = [normalize_image_ref(ref) for ref in update_data["images"]]
    update_data["updated_at"] = utcnow()

    product = await db.products.find_one_and_update(
        {"_id": oid},
        {"$set": update_data},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise NotFoundException("Product not found")
    return product


async def delete_product(db: AsyncIOMotorDatabase, product_id: str) -> None:
    result = await db.products.delete_one({"_id": str_to_oid(product_id, "Product")})
    if result.deleted_count == 0:
        raise NotFoundException("Product not found")
    logger.info("Product removed", extra={"product_id": product_id})


async def reserve_stock(db: AsyncIOMotorDatabase, product_id: str, quantity: int) -> dict:
    """Atomically take ``quantity`` units off the shelf.

    The stock check and the decrement are one conditional update; when the
    filter does not match nothing is written and the product is re-read only
    to build the error.
    """
    if quantity < 1:
        raise ValidationException("Quantity must be at least 1")
    oid = str_to_oid(product_id, "Product")

    product = await db.products.find_one_and_update(
        {"_id": oid, "stock": {"$gte": quantity}},
        {"$inc": {"stock": -quantity}, "$set": {"updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if product is not None:
        return product

    current = await db.products.find_one({"_id": oid}, {"name": 1, "stock": 1})
    if current is None:
        raise NotFoundException("Product not found")
    raise InsufficientStockException(current["name"], current["stock"])


async def release_stock(db: AsyncIOMotorDatabase, product_id: str, quantity: int) -> None:
    """Give back units taken by ``reserve_stock``."""
    await db.products.update_one(
        {"_id": str_to_oid(product_id, "Product")},
        {"$inc": {"stock": quantity}, "$set": {"updated_at": utcnow()}},
    )


async def normalize_stored_images(db: AsyncIOMotorDatabase) -> int:
    """Rewrite stored image references to bare file names; returns the number of products touched."""
    updated = 0
    async for product in db.products.find({}, {"images": 1}):
        images = product.get("images", [])
        normalized = [normalize_image_ref(ref) for ref in images]
        if normalized != images:
            await db.products.update_one({"_id": product["_id"]}, {"$set": {"images": normalized}})
            updated += 1
            logger.info("Normalized product images", extra={"product_id": str(product["_id"])})
    return updated
