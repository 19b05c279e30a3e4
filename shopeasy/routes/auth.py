from fastapi import APIRouter, Depends, Request, status

from shopeasy.deps import CurrentUser, get_app_settings, get_current_user, get_db
from shopeasy.schemas import (
    ForgotPasswordRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserLogin,
    UserOut,
    UserRegister,
)
from shopeasy.services import identity
from shopeasy.shared.security_config import limiter
from shopeasy.shared.utils import Settings, SuccessResponse, UnauthorizedException, verify_refresh_token

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserRegister, db=Depends(get_db), settings: Settings = Depends(get_app_settings)):
    user = await identity.register_user(db, data)
    access_token, refresh_token = identity.issue_tokens(user, settings)
    return TokenResponse(
        message="User registered successfully",
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserOut.from_doc(user),
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    credentials: UserLogin,
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    user = await identity.authenticate(db, credentials.email, credentials.password)
    access_token, refresh_token = identity.issue_tokens(user, settings)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token, user=UserOut.from_doc(user))


@router.post("/refresh", response_model=TokenResponse)
async def refresh(data: RefreshTokenRequest, db=Depends(get_db), settings: Settings = Depends(get_app_settings)):
    payload = verify_refresh_token(data.refresh_token, settings)
    if await identity.is_token_revoked(db, payload):
        raise UnauthorizedException("Refresh token has been revoked")

    user = await identity.get_user(db, payload["sub"])
    if not user.get("active", True):
        raise UnauthorizedException("Account is disabled")

    # Rotate: the presented refresh token is single-use
    await identity.revoke_token(db, payload)
    access_token, refresh_token = identity.issue_tokens(user, settings)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    data: RefreshTokenRequest,
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    await identity.revoke_token(db, user.token)
    await identity.revoke_token(db, verify_refresh_token(data.refresh_token, settings))
    return SuccessResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=SuccessResponse)
@limiter.limit("5/minute")
async def forgot_password(
    request: Request,
    data: ForgotPasswordRequest,
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    await identity.request_password_reset(db, data.email, settings)
    return SuccessResponse(message="Password reset token sent to email")


@router.put("/reset-password/{token}", response_model=TokenResponse)
async def reset_password(
    token: str,
    data: ResetPasswordRequest,
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    user = await identity.reset_password(db, token, data.password)
    access_token, refresh_token = identity.issue_tokens(user, settings)
    return TokenResponse(
        message="Password updated successfully",
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserOut.from_doc(user),
    )
