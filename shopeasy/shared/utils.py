from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Annotated, Optional, Any, List
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorClient
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict
from jose import JWTError, jwt
from bson import ObjectId
from bson.errors import InvalidId
import uuid

# --- Configuration ---
class Settings(BaseSettings):
    PROJECT_NAME: str = "ShopEasy API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"

    MONGO_URL: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "shopeasy"

    SECRET_KEY: str = "secret"
    REFRESH_SECRET_KEY: str = "refresh_secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    PASSWORD_RESET_EXPIRE_MINUTES: int = 10

    # Pricing policy applied at checkout
    TAX_RATE: Decimal = Decimal("0.15")
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("100")
    SHIPPING_PRICE: Decimal = Decimal("10")

    PAGE_SIZE: int = 10
    FEATURED_LIMIT: int = 5
    IMAGE_BASE_URL: str = "/uploads/products"

    CORS_ORIGINS: List[str] = ["http://localhost:5173"]
    RATE_LIMIT_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()

# --- Database ---
def get_db_client(url: str) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(url, tz_aware=True)

def str_to_oid(id: str, label: str = "Resource") -> ObjectId:
    try:
        return ObjectId(id)
    except (InvalidId, TypeError):
        raise NotFoundException(f"{label} not found")

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

# --- Money ---
CENTS = Decimal("0.01")

def to_money(value: Any) -> Decimal:
    """Restore a stored price (float/str/Decimal) as a Decimal rounded to cents."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)

# Decimal internally, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

# --- Authentication ---
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    # Add JTI
    if "jti" not in to_encode:
        to_encode.update({"jti": str(uuid.uuid4())})

    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def create_refresh_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    if "jti" not in to_encode:
        to_encode.update({"jti": str(uuid.uuid4())})

    to_encode.update({"exp": expire, "type": "refresh"})
    return jwt.encode(to_encode, settings.REFRESH_SECRET_KEY, algorithm=settings.ALGORITHM)

def verify_token(token: str, settings: Settings) -> dict:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise UnauthorizedException("Could not validate credentials")
    if payload.get("type") != "access":
        raise UnauthorizedException("Could not validate credentials")
    return payload

def verify_refresh_token(token: str, settings: Settings) -> dict:
    try:
        payload = jwt.decode(token, settings.REFRESH_SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise UnauthorizedException("Invalid refresh token")
    if payload.get("type") != "refresh":
        raise UnauthorizedException("Invalid refresh token")
    return payload

# --- Response Models ---
class APIModel(BaseModel):
    """camelCase on the wire, snake_case (or camelCase) accepted on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class SuccessResponse(APIModel):
    success: bool = True
    message: Optional[str] = None

class ErrorResponse(APIModel):
    success: bool = False
    message: str
    error: Optional[Any] = None

class HealthResponse(BaseModel):
    service: str
    status: str
    timestamp: datetime
    version: str
    database: Optional[str] = None


# --- Exceptions ---
class AppException(HTTPException):
    def __init__(
        self,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        detail: str = "An error occurred",
        headers: Optional[dict] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)

class NotFoundException(AppException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class InsufficientStockException(AppException):
    def __init__(self, product_name: str, available: int):
        self.product_name = product_name
        self.available = available
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Not enough {product_name} in stock. Available: {available}",
        )

class EmptyCartException(AppException):
    def __init__(self, detail: str = "No items in cart"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

class ValidationException(AppException):
    def __init__(self, detail: str = "Invalid input"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

class UnauthorizedException(AppException):
    def __init__(self, detail: str = "Unauthorized"):
         super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"}
        )

class ForbiddenException(AppException):
    def __init__(self, detail: str = "Not authorized as an admin"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class ServerErrorException(AppException):
    def __init__(self, detail: str = "Server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
