from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from app.core.exceptions import UnauthorizedError
from app.core.pagination import Page, paginate
from app.deps import ensure_self_or_admin, get_current_user, require_admin
from app.models.user import User
from app.routers.auth import set_session_cookie
from app.services import users as user_service

router = APIRouter()


class NewUser(BaseModel):
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6)
    name: str = ""


class CreateUserRequest(BaseModel):
    user: NewUser


class UserChanges(BaseModel):
    email: str | None = None
    password: str | None = Field(default=None, min_length=6)
    name: str | None = None
    role: str | None = Field(default=None, pattern="^(user|admin)$")


class UpdateUserRequest(BaseModel):
    user: UserChanges


@router.post("")
async def create_user(body: CreateUserRequest, response: Response):
    """Sign up; the new user gets a dedicated deposit address."""
    user = await user_service.create_user(body.user.email, body.user.password, body.user.name)
    token = set_session_cookie(response, user)
    return {"user": user_service.public_user(user), "token": token}


@router.get("")
async def list_users(
    _: User = Depends(require_admin),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    limit, offset = paginate(limit, offset)
    users, total = await user_service.list_users(limit, offset)
    page = Page[dict](
        items=[user_service.public_user(u) for u in users],
        limit=limit,
        offset=offset,
        total=total,
    )
    return page.model_dump()


@router.get("/{user_id}")
async def get_user(user_id: str, user: User = Depends(get_current_user)):
    ensure_self_or_admin(user, user_id)
    target = await user_service.get_user(user_id)
    return {"user": user_service.public_user(target)}


@router.put("/{user_id}")
async def update_user(user_id: str, body: UpdateUserRequest, user: User = Depends(get_current_user)):
    """Update profile. Only admins may change role."""
    ensure_self_or_admin(user, user_id)
    changes = body.user
    if changes.role is not None and user.role != "admin":
        raise UnauthorizedError("Only admins can change a user's role")
    target = await user_service.get_user(user_id)
    target = await user_service.update_user(
        target,
        email=changes.email,
        name=changes.name,
        password=changes.password,
        role=changes.role,
    )
    return {"user": user_service.public_user(target)}


@router.delete("/{user_id}")
async def delete_user(user_id: str, user: User = Depends(get_current_user)):
    """Delete the account; its API token stops validating immediately."""
    ensure_self_or_admin(user, user_id)
    target = await user_service.get_user(user_id)
    await user_service.delete_user(target, actor_id=str(user.id))
    return {"status": "deleted"}