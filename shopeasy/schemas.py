from pydantic import EmailStr, Field, field_validator
from typing import Optional, List
from decimal import Decimal
from datetime import datetime

from shopeasy.images import image_url
from shopeasy.models import OrderStatus
from shopeasy.shared.security_config import sanitize_input, validate_password_strength
from shopeasy.shared.utils import APIModel, Money, SuccessResponse, to_money

# --- Addresses ---

class ShippingAddressIn(APIModel):
    address: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=50)
    state: str = Field(..., min_length=1, max_length=50)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=50)

    @field_validator('address', 'city', 'state', 'postal_code', 'country')
    @classmethod
    def not_blank(cls, v):
        v = sanitize_input(v)
        if not v:
            raise ValueError("field cannot be empty")
        return v

class ShippingAddressOut(APIModel):
    address: str
    city: str
    state: str
    postal_code: str
    country: str

class UserAddress(APIModel):
    line1: Optional[str] = Field(None, max_length=100)
    street: Optional[str] = Field(None, max_length=50)
    city: Optional[str] = Field(None, max_length=50)
    state: Optional[str] = Field(None, max_length=50)
    zip_code: Optional[str] = Field(None, pattern=r"^\d{5}(?:[-\s]\d{4})?$")
    country: Optional[str] = Field(None, max_length=50)

    @field_validator('line1', 'street', 'city', 'state', 'country')
    @classmethod
    def sanitize_fields(cls, v):
        return sanitize_input(v)

# --- Cart ---

class CartItemAdd(APIModel):
    product_id: str
    quantity: int = Field(..., gt=0)

class CartItemUpdate(APIModel):
    quantity: int = Field(..., gt=0)

class CartItemOut(APIModel):
    product_id: str
    name: Optional[str] = None
    image: Optional[str] = None
    quantity: int
    price: Money
    line_total: Money

class CartOut(APIModel):
    id: str
    user_id: str
    items: List[CartItemOut]
    total_quantity: int
    total_price: Money
    updated_at: datetime

    @classmethod
    def from_doc(cls, doc: dict, image_base: str) -> "CartOut":
        items = []
        for item in doc.get("items", []):
            price = to_money(item["price"])
            items.append(CartItemOut(
                product_id=item["product_id"],
                name=item.get("name"),
                image=image_url(item.get("image"), image_base),
                quantity=item["quantity"],
                price=price,
                line_total=price * item["quantity"],
            ))
        return cls(
            id=str(doc["_id"]),
            user_id=doc["user_id"],
            items=items,
            total_quantity=sum(i.quantity for i in items),
            total_price=to_money(doc.get("total_price", 0)),
            updated_at=doc["updated_at"],
        )

class CartResponse(SuccessResponse):
    cart: CartOut

# --- Orders ---

class CheckoutRequest(APIModel):
    shipping_address: ShippingAddressIn
    payment_method: str = Field(..., min_length=1, max_length=50)

    @field_validator('payment_method')
    @classmethod
    def sanitize_method(cls, v):
        v = sanitize_input(v)
        if not v:
            raise ValueError("payment method cannot be empty")
        return v

class Payer(APIModel):
    email_address: Optional[EmailStr] = None

class PaymentConfirmation(APIModel):
    """Opaque confirmation payload posted back by the payment provider."""
    id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    update_time: Optional[str] = None
    payer: Optional[Payer] = None

class OrderStatusUpdate(APIModel):
    status: OrderStatus

class OrderItemOut(APIModel):
    product_id: str
    name: str
    quantity: int
    price: Money
    image: Optional[str] = None

class PaymentResultOut(APIModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None
    email_address: Optional[str] = None

class OrderOut(APIModel):
    id: str
    user_id: str
    order_items: List[OrderItemOut]
    shipping_address: ShippingAddressOut
    payment_method: str
    items_price: Money
    tax_price: Money
    shipping_price: Money
    total_price: Money
    is_paid: bool
    paid_at: Optional[datetime] = None
    payment_result: Optional[PaymentResultOut] = None
    status: OrderStatus
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: dict, image_base: str) -> "OrderOut":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data["id"] = str(doc["_id"])
        data["order_items"] = [
            {**item, "price": to_money(item["price"]), "image": image_url(item.get("image"), image_base)}
            for item in doc["order_items"]
        ]
        for field in ("items_price", "tax_price", "shipping_price", "total_price"):
            data[field] = to_money(doc[field])
        return cls.model_validate(data)

class OrderResponse(SuccessResponse):
    order: OrderOut

class OrderListResponse(SuccessResponse):
    orders: List[OrderOut]

class OrderPageResponse(SuccessResponse):
    orders: List[OrderOut]
    page: int
    pages: int
    count: int

# --- Products ---

class ProductCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    price: Decimal = Field(..., ge=0, le=1000000)
    category: str = Field(..., min_length=1, max_length=50)
    stock: int = Field(0, ge=0)
    featured: bool = False
    images: List[str] = Field(default_factory=list)
    seller: Optional[str] = Field(None, max_length=50)

    @field_validator('name', 'description', 'category', 'seller')
    @classmethod
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ProductUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    price: Optional[Decimal] = Field(None, ge=0, le=1000000)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    stock: Optional[int] = Field(None, ge=0)
    featured: Optional[bool] = None
    images: Optional[List[str]] = None
    seller: Optional[str] = Field(None, max_length=50)

    @field_validator('name', 'description', 'category', 'seller')
    @classmethod
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ProductOut(APIModel):
    id: str
    name: str
    description: str
    price: Money
    stock: int
    category: str
    featured: bool
    images: List[str]
    rating: float
    num_reviews: int
    seller: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: dict, image_base: str) -> "ProductOut":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data["id"] = str(doc["_id"])
        data["price"] = to_money(doc["price"])
        data["images"] = [image_url(ref, image_base) for ref in doc.get("images", [])]
        return cls.model_validate(data)

class ProductResponse(SuccessResponse):
    product: ProductOut

class ProductListResponse(SuccessResponse):
    products: List[ProductOut]

class ProductPageResponse(SuccessResponse):
    products: List[ProductOut]
    page: int
    pages: int
    count: int

class CategoriesResponse(SuccessResponse):
    categories: List[str]

# --- Auth & Users ---

class UserRegister(APIModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8)
    phone: Optional[str] = Field(None, pattern=r"^\+?[\d\s-]{10,15}$")
    address: Optional[UserAddress] = None

    @field_validator('password')
    @classmethod
    def password_complexity(cls, v):
        if not validate_password_strength(v):
            raise ValueError('Password must be at least 8 characters long and contain uppercase, lowercase, and numbers')
        return v

    @field_validator('name')
    @classmethod
    def sanitize_name(cls, v):
        return sanitize_input(v)

class UserLogin(APIModel):
    email: EmailStr
    password: str

class RefreshTokenRequest(APIModel):
    refresh_token: str

class ProfileUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=r"^\+?[\d\s-]{10,15}$")
    address: Optional[UserAddress] = None

    @field_validator('name')
    @classmethod
    def sanitize_name(cls, v):
        return sanitize_input(v)

class PasswordUpdate(APIModel):
    current_password: str
    new_password: str = Field(..., min_length=8)

    @field_validator('new_password')
    @classmethod
    def password_complexity(cls, v):
        if not validate_password_strength(v):
            raise ValueError('Password must be at least 8 characters long and contain uppercase, lowercase, and numbers')
        return v

class ForgotPasswordRequest(APIModel):
    email: EmailStr

class ResetPasswordRequest(APIModel):
    password: str = Field(..., min_length=8)

    @field_validator('password')
    @classmethod
    def password_complexity(cls, v):
        if not validate_password_strength(v):
            raise ValueError('Password must be at least 8 characters long and contain uppercase, lowercase, and numbers')
        return v

class RoleUpdate(APIModel):
    role: str = Field(..., pattern="^(user|admin)$")

PRIVATE_USER_FIELDS = ("_id", "password_hash", "password_reset_token", "password_reset_expires")

class UserOut(APIModel):
    id: str
    name: str
    email: EmailStr
    role: str
    phone: Optional[str] = None
    address: Optional[UserAddress] = None
    created_at: datetime

    @classmethod
    def from_doc(cls, doc: dict) -> "UserOut":
        data = {k: v for k, v in doc.items() if k not in PRIVATE_USER_FIELDS}
        data["id"] = str(doc["_id"])
        return cls.model_validate(data)

class UserResponse(SuccessResponse):
    user: UserOut

class UserPageResponse(SuccessResponse):
    users: List[UserOut]
    page: int
    pages: int
    count: int

class TokenResponse(SuccessResponse):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: Optional[UserOut] = None
