from datetime import datetime
from enum import Enum
from typing import Annotated, Optional, List
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from shopeasy.shared.utils import utcnow

# Mongo hands back ObjectId; documents carry it as a plain string
PyObjectId = Annotated[str, BeforeValidator(str)]


class OrderStatus(str, Enum):
    PENDING = "Pending"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"


class MongoModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    def to_mongo(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"id"})


class ProductDB(MongoModel):
    id: Optional[PyObjectId] = Field(None, alias="_id")
    name: str
    description: str
    price: float
    stock: int = 0
    category: str
    featured: bool = False
    images: List[str] = []
    rating: float = 0
    num_reviews: int = 0
    seller: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class CartItemDB(MongoModel):
    product_id: str
    name: Optional[str] = None
    image: Optional[str] = None
    quantity: int
    price: float # Snapshot at add-time


class CartDB(MongoModel):
    id: Optional[PyObjectId] = Field(None, alias="_id")
    user_id: str
    items: List[CartItemDB] = []
    total_price: float = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ShippingAddressDB(MongoModel):
    address: str
    city: str
    state: str
    postal_code: str
    country: str


class OrderItemDB(MongoModel):
    product_id: str
    name: str
    quantity: int
    price: float
    image: Optional[str] = None


class PaymentResultDB(MongoModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None
    email_address: Optional[str] = None


class OrderDB(MongoModel):
    id: Optional[PyObjectId] = Field(None, alias="_id")
    user_id: str
    order_items: List[OrderItemDB]
    shipping_address: ShippingAddressDB
    payment_method: str
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    payment_result: Optional[PaymentResultDB] = None
    status: OrderStatus = OrderStatus.PENDING
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class UserAddressDB(MongoModel):
    line1: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class UserDB(MongoModel):
    id: Optional[PyObjectId] = Field(None, alias="_id")
    name: str
    email: str
    password_hash: str
    role: str = "user" # user | admin
    phone: Optional[str] = None
    address: Optional[UserAddressDB] = None
    active: bool = True
    password_reset_token: Optional[str] = None # sha256 of the emailed token
    password_reset_expires: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
