from fastapi import APIRouter, Depends, status

from shopeasy.deps import CurrentUser, get_app_settings, get_current_user, get_db
from shopeasy.schemas import CartItemAdd, CartItemUpdate, CartOut, CartResponse
from shopeasy.services import cart as cart_service
from shopeasy.shared.utils import Settings

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartResponse)
async def get_cart(
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    cart = await cart_service.get_or_create_cart(db, user.id)
    return CartResponse(cart=CartOut.from_doc(cart, settings.IMAGE_BASE_URL))


@router.post("", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    item: CartItemAdd,
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    cart = await cart_service.add_item(db, user.id, item.product_id, item.quantity)
    return CartResponse(cart=CartOut.from_doc(cart, settings.IMAGE_BASE_URL))


@router.put("/{product_id}", response_model=CartResponse)
async def update_cart_item(
    product_id: str,
    update: CartItemUpdate,
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    cart = await cart_service.update_item(db, user.id, product_id, update.quantity)
    return CartResponse(cart=CartOut.from_doc(cart, settings.IMAGE_BASE_URL))


@router.delete("/{product_id}", response_model=CartResponse)
async def remove_cart_item(
    product_id: str,
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    cart = await cart_service.remove_item(db, user.id, product_id)
    return CartResponse(cart=CartOut.from_doc(cart, settings.IMAGE_BASE_URL))


@router.delete("", response_model=CartResponse)
async def clear_cart(
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    cart = await cart_service.clear_cart(db, user.id)
    return CartResponse(message="Cart cleared", cart=CartOut.from_doc(cart, settings.IMAGE_BASE_URL))
