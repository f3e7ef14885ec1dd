from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from app.core.security import SESSION_MAX_AGE, create_session_token
from app.deps import SESSION_COOKIE_NAME, get_current_user
from app.models.user import User
from app.services import users as user_service

router = APIRouter()


class LoginRequest(BaseModel):
    email: str
    password: str


def set_session_cookie(response: Response, user: User) -> str:
    """Issue a session token, set it as httpOnly cookie and return it for Bearer use."""
    token = create_session_token(user_service.session_payload_for_user(user))
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=False,  # set True in prod with HTTPS
        samesite="lax",
        path="/",
    )
    return token


@router.post("/login")
async def login(body: LoginRequest, response: Response):
    """Exchange email and password for a session token."""
    user = await user_service.authenticate(body.email, body.password)
    token = set_session_cookie(response, user)
    return {"user": user_service.public_user(user), "token": token}


@router.get("/me")
async def auth_me(user: User = Depends(get_current_user)):
    """Return current user. Requires session token."""
    return {"user": user_service.public_user(user)}
