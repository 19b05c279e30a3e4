"""User accounts, credentials and token revocation."""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from shopeasy.models import UserAddressDB, UserDB
from shopeasy.schemas import PasswordUpdate, ProfileUpdate, UserRegister
from shopeasy.shared.utils import (
    NotFoundException,
    Settings,
    UnauthorizedException,
    ValidationException,
    create_access_token,
    create_refresh_token,
    get_password_hash,
    str_to_oid,
    utcnow,
    verify_password,
)

logger = logging.getLogger(__name__)


def issue_tokens(user: dict, settings: Settings) -> Tuple[str, str]:
    claims = {"sub": str(user["_id"]), "role": user["role"]}
    return create_access_token(claims, settings), create_refresh_token(claims, settings)


async def register_user(db: AsyncIOMotorDatabase, data: UserRegister) -> dict:
    email = data.email.lower()
    if await db.users.find_one({"email": email}):
        raise ValidationException("User already exists")

    user_db = UserDB(
        name=data.name,
        email=email,
        password_hash=get_password_hash(data.password),
        phone=data.phone,
        address=UserAddressDB(**data.address.model_dump()) if data.address else None,
    )
    try:
        result = await db.users.insert_one(user_db.to_mongo())
    except DuplicateKeyError:
        raise ValidationException("User already exists")
    logger.info("User registered", extra={"user_id": str(result.inserted_id)})
    return await db.users.find_one({"_id": result.inserted_id})


async def authenticate(db: AsyncIOMotorDatabase, email: str, password: str) -> dict:
    user = await db.users.find_one({"email": email.lower()})
    if not user or not user.get("active", True) or not verify_password(password, user["password_hash"]):
        raise UnauthorizedException("Invalid email or password")
    return user


async def get_user(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    user = await db.users.find_one({"_id": str_to_oid(user_id, "User")})
    if not user:
        raise NotFoundException("User not found")
    return user


async def _update_user(db: AsyncIOMotorDatabase, user_id: str, changes: dict) -> dict:
    changes["updated_at"] = utcnow()
    user = await db.users.find_one_and_update(
        {"_id": str_to_oid(user_id, "User")},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise NotFoundException("User not found")
    return user


async def update_profile(db: AsyncIOMotorDatabase, user_id: str, data: ProfileUpdate) -> dict:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    return await _update_user(db, user_id, changes)


async def change_password(db: AsyncIOMotorDatabase, user_id: str, data: PasswordUpdate) -> None:
    user = await get_user(db, user_id)
    if not verify_password(data.current_password, user["password_hash"]):
        raise UnauthorizedException("Current password is incorrect")
    await _update_user(db, user_id, {"password_hash": get_password_hash(data.new_password)})
    logger.info("Password changed", extra={"user_id": user_id})


# --- Password reset ---

def _hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


async def request_password_reset(db: AsyncIOMotorDatabase, email: str, settings: Settings) -> str:
    """Issue a single-use reset token; only its sha256 is stored.

    There is no mail transport, so the raw token is written to the log in
    development and returned to the caller.
    """
    user = await db.users.find_one({"email": email.lower()})
    if not user or not user.get("active", True):
        raise NotFoundException("No user found with that email")

    token = secrets.token_hex(32)
    user_id = str(user["_id"])
    await _update_user(db, user_id, {
        "password_reset_token": _hash_reset_token(token),
        "password_reset_expires": utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    })
    extra = {"user_id": user_id}
    if settings.is_development:
        extra["reset_token"] = token
    logger.info("Password reset requested", extra=extra)
    return token


async def reset_password(db: AsyncIOMotorDatabase, token: str, new_password: str) -> dict:
    user = await db.users.find_one({"password_reset_token": _hash_reset_token(token)})
    expires = user.get("password_reset_expires") if user else None
    if expires is not None and expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    if expires is None or expires <= utcnow():
        raise ValidationException("Token is invalid or has expired")

    user = await db.users.find_one_and_update(
        {"_id": user["_id"], "password_reset_token": user["password_reset_token"]},
        {
            "$set": {"password_hash": get_password_hash(new_password), "updated_at": utcnow()},
            "$unset": {"password_reset_token": "", "password_reset_expires": ""},
        },
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise ValidationException("Token is invalid or has expired")
    logger.info("Password reset", extra={"user_id": str(user["_id"])})
    return user


async def list_users(db: AsyncIOMotorDatabase, page: int = 1, page_size: int = 10) -> Tuple[List[dict], int]:
    count = await db.users.count_documents({})
    cursor = db.users.find({}).sort([("created_at", -1), ("_id", -1)]).skip(page_size * (page - 1)).limit(page_size)
    return await cursor.to_list(length=page_size), count


async def set_role(db: AsyncIOMotorDatabase, user_id: str, role: str) -> dict:
    user = await _update_user(db, user_id, {"role": role})
    logger.info("User role changed", extra={"user_id": user_id})
    return user


async def deactivate_user(db: AsyncIOMotorDatabase, user_id: str) -> None:
    """Soft delete; the account stays for order history but can no longer sign in."""
    await _update_user(db, user_id, {"active": False})
    logger.info("User deactivated", extra={"user_id": user_id})


# --- Revocation ---

async def revoke_token(db: AsyncIOMotorDatabase, payload: dict) -> None:
    if "jti" not in payload:
        return
    exp = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    await db.revoked_tokens.update_one(
        {"jti": payload["jti"]},
        {"$setOnInsert": {"exp": exp}},
        upsert=True,
    )


async def is_token_revoked(db: AsyncIOMotorDatabase, payload: dict) -> bool:
    if "jti" not in payload:
        return False
    return await db.revoked_tokens.find_one({"jti": payload["jti"]}) is not None
