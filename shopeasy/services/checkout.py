"""Checkout: turn a user's cart into an order exactly once, or not at all.

MongoDB gives no multi-document transaction on a standalone node, so the
unit of work is a compensating sequence:

    claim the cart lines       (atomic; a second checkout sees an empty cart)
    validate every line        (no writes)
    reserve stock line by line (conditional update each; undone on failure)
    insert the order           (reservations undone on failure)

A failed checkout leaves no order and no stock decrement, and puts the
claimed lines back in the cart.
The one state that cannot be repaired here is a failure of the compensation
itself; it is logged with ``reconciliation_required`` and surfaced as a 500.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import List, NamedTuple, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from shopeasy.models import OrderDB, OrderItemDB, OrderStatus, ShippingAddressDB
from shopeasy.schemas import ShippingAddressIn
from shopeasy.services.cart import cart_total, claim_items, restore_items
from shopeasy.services.catalog import get_product, release_stock, reserve_stock
from shopeasy.services.orders import create_order
from shopeasy.shared.utils import (
    CENTS,
    EmptyCartException,
    InsufficientStockException,
    ServerErrorException,
    Settings,
)

logger = logging.getLogger(__name__)


class OrderPrices(NamedTuple):
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal


def compute_prices(items_price: Decimal, settings: Settings) -> OrderPrices:
    items_price = items_price.quantize(CENTS, rounding=ROUND_HALF_UP)
    tax_price = (items_price * settings.TAX_RATE).quantize(CENTS, rounding=ROUND_HALF_UP)
    if items_price > settings.FREE_SHIPPING_THRESHOLD:
        shipping_price = Decimal("0.00")
    else:
        shipping_price = settings.SHIPPING_PRICE.quantize(CENTS, rounding=ROUND_HALF_UP)
    return OrderPrices(
        items_price=items_price,
        tax_price=tax_price,
        shipping_price=shipping_price,
        total_price=items_price + tax_price + shipping_price,
    )


async def _validate_lines(db: AsyncIOMotorDatabase, lines: List[dict]) -> List[Tuple[dict, dict]]:
    validated = []
    for line in lines:
        product = await get_product(db, line["product_id"])
        if product["stock"] < line["quantity"]:
            raise InsufficientStockException(product["name"], product["stock"])
        validated.append((line, product))
    return validated


async def _release(db: AsyncIOMotorDatabase, reserved: List[dict], user_id: str) -> None:
    failed = []
    for line in reserved:
        try:
            await release_stock(db, line["product_id"], line["quantity"])
        except Exception:
            failed.append(line["product_id"])
            logger.exception(
                "Failed to release reserved stock",
                extra={"user_id": user_id, "product_id": line["product_id"], "quantity": line["quantity"]},
            )
    if failed:
        logger.error(
            "Checkout compensation incomplete",
            extra={"user_id": user_id, "product_ids": failed, "reconciliation_required": True},
        )
        raise ServerErrorException("Checkout failed and stock could not be restored")


async def _reserve_all(db: AsyncIOMotorDatabase, lines: List[dict], user_id: str) -> None:
    reserved: List[dict] = []
    for line in lines:
        try:
            await reserve_stock(db, line["product_id"], line["quantity"])
        except Exception:
            await _release(db, reserved, user_id)
            raise
        reserved.append(line)


async def _place_order(
    db: AsyncIOMotorDatabase,
    user_id: str,
    lines: List[dict],
    shipping_address: ShippingAddressIn,
    payment_method: str,
    settings: Settings,
) -> dict:
    # Authoritative re-check; the cart's own stock checks were advisory
    validated = await _validate_lines(db, lines)

    # Charge what the cart displayed, not the live catalog price
    prices = compute_prices(cart_total(lines), settings)
    order_items = []
    for line, product in validated:
        images = product.get("images") or []
        order_items.append(OrderItemDB(
            product_id=line["product_id"],
            name=product["name"],
            quantity=line["quantity"],
            price=line["price"],
            image=images[0] if images else line.get("image"),
        ))

    order_db = OrderDB(
        user_id=user_id,
        order_items=order_items,
        shipping_address=ShippingAddressDB(**shipping_address.model_dump()),
        payment_method=payment_method,
        items_price=float(prices.items_price),
        tax_price=float(prices.tax_price),
        shipping_price=float(prices.shipping_price),
        total_price=float(prices.total_price),
        status=OrderStatus.PENDING,
    )

    await _reserve_all(db, lines, user_id)

    try:
        return await create_order(db, order_db)
    except Exception:
        logger.exception("Order insert failed, releasing stock", extra={"user_id": user_id})
        await _release(db, lines, user_id)
        raise ServerErrorException("Could not create order")


async def _restore_cart(db: AsyncIOMotorDatabase, user_id: str, lines: List[dict]) -> None:
    try:
        await restore_items(db, user_id, lines)
    except Exception:
        logger.exception(
            "Cart not restored after failed checkout",
            extra={"user_id": user_id, "product_ids": [line["product_id"] for line in lines]},
        )


async def checkout(
    db: AsyncIOMotorDatabase,
    user_id: str,
    shipping_address: ShippingAddressIn,
    payment_method: str,
    settings: Settings,
) -> dict:
    lines = await claim_items(db, user_id)
    if not lines:
        raise EmptyCartException()

    try:
        order = await _place_order(db, user_id, lines, shipping_address, payment_method, settings)
    except Exception:
        await _restore_cart(db, user_id, lines)
        raise

    logger.info(
        "Order created",
        extra={
            "order_id": str(order["_id"]),
            "user_id": user_id,
            "product_ids": [line["product_id"] for line in lines],
        },
    )
    return order
