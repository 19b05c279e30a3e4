from fastapi import APIRouter, Depends, Query

from shopeasy.deps import CurrentUser, get_app_settings, get_current_user, get_db, require_admin
from shopeasy.schemas import PasswordUpdate, ProfileUpdate, RoleUpdate, UserOut, UserPageResponse, UserResponse
from shopeasy.services import identity
from shopeasy.services.catalog import page_count
from shopeasy.shared.utils import Settings, SuccessResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def read_profile(user: CurrentUser = Depends(get_current_user), db=Depends(get_db)):
    doc = await identity.get_user(db, user.id)
    return UserResponse(user=UserOut.from_doc(doc))


@router.put("/me", response_model=UserResponse)
async def update_profile(data: ProfileUpdate, user: CurrentUser = Depends(get_current_user), db=Depends(get_db)):
    doc = await identity.update_profile(db, user.id, data)
    return UserResponse(message="Profile updated successfully", user=UserOut.from_doc(doc))


@router.put("/me/password", response_model=SuccessResponse)
async def change_password(data: PasswordUpdate, user: CurrentUser = Depends(get_current_user), db=Depends(get_db)):
    await identity.change_password(db, user.id, data)
    return SuccessResponse(message="Password updated successfully")


@router.delete("/me", response_model=SuccessResponse)
async def delete_account(user: CurrentUser = Depends(get_current_user), db=Depends(get_db)):
    await identity.deactivate_user(db, user.id)
    await identity.revoke_token(db, user.token)
    return SuccessResponse(message="Account deleted")


# --- Admin ---

@router.get("", response_model=UserPageResponse)
async def list_users(
    page: int = Query(1, ge=1),
    _: CurrentUser = Depends(require_admin),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    docs, count = await identity.list_users(db, page, settings.PAGE_SIZE)
    return UserPageResponse(
        users=[UserOut.from_doc(doc) for doc in docs],
        page=page,
        pages=page_count(count, settings.PAGE_SIZE),
        count=count,
    )


@router.get("/{user_id}", response_model=UserResponse)
async def read_user(user_id: str, _: CurrentUser = Depends(require_admin), db=Depends(get_db)):
    return UserResponse(user=UserOut.from_doc(await identity.get_user(db, user_id)))


@router.put("/{user_id}/role", response_model=UserResponse)
async def update_role(user_id: str, data: RoleUpdate, _: CurrentUser = Depends(require_admin), db=Depends(get_db)):
    doc = await identity.set_role(db, user_id, data.role)
    return UserResponse(message="Role updated", user=UserOut.from_doc(doc))


@router.delete("/{user_id}", response_model=SuccessResponse)
async def delete_user(user_id: str, _: CurrentUser = Depends(require_admin), db=Depends(get_db)):
    await identity.deactivate_user(db, user_id)
    return SuccessResponse(message="User removed")
