from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from shopeasy.services.identity import get_user, is_token_revoked
from shopeasy.shared.utils import (
    ForbiddenException,
    NotFoundException,
    Settings,
    UnauthorizedException,
    verify_token,
)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    id: str
    email: str
    name: str
    role: str
    token: dict

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_db(request: Request) -> AsyncIOMotorDatabase:
    return request.app.state.mongodb


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> CurrentUser:
    if credentials is None:
        raise UnauthorizedException("Not authorized, no token")

    payload = verify_token(credentials.credentials, settings)
    if await is_token_revoked(db, payload):
        raise UnauthorizedException("Token has been revoked")

    try:
        user = await get_user(db, payload.get("sub", ""))
    except NotFoundException:
        raise UnauthorizedException("Not authorized, user not found")
    if not user.get("active", True):
        raise UnauthorizedException("Account is disabled")

    request.state.user_id = str(user["_id"])
    return CurrentUser(
        id=str(user["_id"]),
        email=user["email"],
        name=user["name"],
        role=user["role"],
        token=payload,
    )


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise ForbiddenException()
    return user
