#!/usr/bin/env python3
"""Load or wipe the sample catalog, create the admin account, repair image references.

Usage:
    shopeasy-seed --admin-email admin@example.com --admin-password 'S3curePass'
    shopeasy-seed --destroy
    shopeasy-seed --normalize-images

Admin credentials may also come from SHOPEASY_ADMIN_EMAIL / SHOPEASY_ADMIN_PASSWORD.
Nothing is created for the admin when neither is given.
"""
import argparse
import asyncio
import os
import sys
from decimal import Decimal
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from shopeasy.main import create_indexes
from shopeasy.models import UserDB
from shopeasy.schemas import ProductCreate
from shopeasy.services.catalog import create_product, normalize_stored_images
from shopeasy.shared.security_config import validate_password_strength
from shopeasy.shared.utils import get_db_client, get_password_hash, get_settings, utcnow


# --- Colors ---
class Colors:
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def log(msg, color=Colors.ENDC, bold=False):
    prefix = Colors.BOLD if bold else ""
    print(f"{prefix}{color}{msg}{Colors.ENDC}")


PEXELS = "https://images.pexels.com/photos/{0}/pexels-photo-{0}.jpeg?auto=compress&cs=tinysrgb&w=1260&h=750&dpr=1"

SAMPLE_PRODUCTS = [
    {
        "name": "Wireless Bluetooth Headphones",
        "description": "High-quality wireless headphones with noise cancellation and long battery life.",
        "price": Decimal("129.99"), "category": "Electronics", "stock": 50, "featured": True,
        "images": [PEXELS.format(3394650)], "rating": 4.5, "num_reviews": 12,
    },
    {
        "name": "Smartphone X Pro",
        "description": "Latest smartphone with advanced camera system and powerful processor.",
        "price": Decimal("899.99"), "category": "Electronics", "stock": 35, "featured": True,
        "images": [PEXELS.format(404280)], "rating": 4.8, "num_reviews": 24,
    },
    {
        "name": "Casual Cotton T-Shirt",
        "description": "Comfortable cotton t-shirt for everyday wear.",
        "price": Decimal("19.99"), "category": "Clothing", "stock": 100, "featured": False,
        "images": [PEXELS.format(5698851)], "rating": 4.2, "num_reviews": 8,
    },
    {
        "name": "Stainless Steel Water Bottle",
        "description": "Eco-friendly water bottle that keeps drinks cold for 24 hours or hot for 12 hours.",
        "price": Decimal("24.99"), "category": "Home & Kitchen", "stock": 75, "featured": False,
        "images": [PEXELS.format(1342529)], "rating": 4.6, "num_reviews": 15,
    },
    {
        "name": "Fitness Tracker Watch",
        "description": "Smart fitness tracker with heart rate monitor and sleep tracking.",
        "price": Decimal("79.99"), "category": "Electronics", "stock": 40, "featured": True,
        "images": [PEXELS.format(437037)], "rating": 4.4, "num_reviews": 18,
    },
    {
        "name": "Leather Wallet",
        "description": "Genuine leather wallet with multiple card slots and RFID protection.",
        "price": Decimal("39.99"), "category": "Accessories", "stock": 60, "featured": False,
        "images": [PEXELS.format(2079438)], "rating": 4.3, "num_reviews": 10,
    },
    {
        "name": "Portable Bluetooth Speaker",
        "description": "Waterproof portable speaker with 360-degree sound and 20-hour battery life.",
        "price": Decimal("59.99"), "category": "Electronics", "stock": 45, "featured": True,
        "images": [PEXELS.format(1279107)], "rating": 4.7, "num_reviews": 22,
    },
    {
        "name": "Yoga Mat",
        "description": "Non-slip yoga mat with alignment lines for proper positioning.",
        "price": Decimal("29.99"), "category": "Sports & Outdoors", "stock": 55, "featured": False,
        "images": [PEXELS.format(4056535)], "rating": 4.5, "num_reviews": 14,
    },
]


async def seed_catalog(db: AsyncIOMotorDatabase) -> int:
    await db.products.delete_many({})
    for sample in SAMPLE_PRODUCTS:
        data = {k: v for k, v in sample.items() if k not in ("rating", "num_reviews")}
        product = await create_product(db, ProductCreate(**data))
        # Review stats are not writable through the catalog API
        await db.products.update_one(
            {"_id": product["_id"]},
            {"$set": {"rating": sample["rating"], "num_reviews": sample["num_reviews"]}},
        )
    return len(SAMPLE_PRODUCTS)


async def ensure_admin(db: AsyncIOMotorDatabase, email: str, password: str) -> dict:
    """Create the admin account, or promote and re-key an existing one."""
    if not validate_password_strength(password):
        raise ValueError("Admin password must be at least 8 characters and mix upper, lower case and digits")
    email = email.lower()
    now = utcnow()
    admin = UserDB(name="Admin User", email=email, password_hash=get_password_hash(password), role="admin")
    on_insert = admin.to_mongo()
    for key in ("password_hash", "role", "active", "updated_at", "email"):
        on_insert.pop(key)
    await db.users.update_one(
        {"email": email},
        {
            "$set": {"password_hash": admin.password_hash, "role": "admin", "active": True, "updated_at": now},
            "$setOnInsert": on_insert,
        },
        upsert=True,
    )
    return await db.users.find_one({"email": email})


async def destroy(db: AsyncIOMotorDatabase) -> None:
    for name in ("products", "carts", "orders"):
        await db[name].delete_many({})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shopeasy-seed", description="ShopEasy database seeding and maintenance")
    parser.add_argument("--destroy", action="store_true", help="Delete all products, carts and orders")
    parser.add_argument("--normalize-images", action="store_true", help="Rewrite stored image paths to bare file names")
    parser.add_argument("--admin-email", default=os.getenv("SHOPEASY_ADMIN_EMAIL"))
    parser.add_argument("--admin-password", default=os.getenv("SHOPEASY_ADMIN_PASSWORD"))
    return parser


async def run(args: argparse.Namespace) -> None:
    settings = get_settings()
    client = get_db_client(settings.MONGO_URL)
    db = client[settings.MONGO_DB_NAME]
    try:
        await create_indexes(db)
        if args.destroy:
            await destroy(db)
            log("Data destroyed", Colors.WARNING, bold=True)
            return

        if args.normalize_images:
            updated = await normalize_stored_images(db)
            log(f"Image migration complete. Updated {updated} products", Colors.GREEN)
            return

        count = await seed_catalog(db)
        log(f"Imported {count} products", Colors.GREEN)

        if args.admin_email and args.admin_password:
            admin = await ensure_admin(db, args.admin_email, args.admin_password)
            log(f"Admin account ready: {admin['email']}", Colors.GREEN)
        else:
            log("No admin credentials given, skipping admin account", Colors.WARNING)
    finally:
        client.close()


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    log("SHOPEASY SEEDER", Colors.HEADER, bold=True)
    try:
        asyncio.run(run(args))
    except Exception as e:
        log(f"Seeding failed: {e}", Colors.FAIL)
        sys.exit(1)


if __name__ == "__main__":
    main()
