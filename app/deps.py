"""Shared FastAPI dependencies."""

from fastapi import Request

from app.core.exceptions import ForbiddenError, NotFoundError, UnauthorizedError
from app.core.security import load_session_token
from app.models.user import User
from app.services import users as user_service
from app.services.settlement import SettlementService, get_settlement_service

SESSION_COOKIE_NAME = "bch_api_session"


def _session_token(request: Request) -> str | None:
    """Bearer token from Authorization header, else the session cookie."""
    auth = request.headers.get("Authorization")
    if auth is not None:
        scheme, _, value = auth.partition(" ")
        if scheme.lower() != "bearer" or not value.strip():
            raise UnauthorizedError("Invalid authorization header")
        return value.strip()
    return request.cookies.get(SESSION_COOKIE_NAME)


def get_current_session(request: Request) -> dict:
    """Dependency: verified session payload, without touching the database."""
    token = _session_token(request)
    if not token:
        raise UnauthorizedError("Not authenticated")
    payload = load_session_token(token)
    if not payload or not payload.get("user_id"):
        raise UnauthorizedError("Invalid or expired session")
    return payload


async def get_current_user(request: Request) -> User:
    """Dependency: load session and return User."""
    payload = get_current_session(request)
    try:
        user = await user_service.get_user(payload["user_id"])
    except NotFoundError as e:
        raise UnauthorizedError("User not found") from e
    if payload.get("session_version") != user.session_version:
        raise UnauthorizedError("Session invalidated")
    return user


async def require_admin(request: Request) -> User:
    """Dependency: require current user to have role admin."""
    user = await get_current_user(request)
    if getattr(user, "role", "user") != "admin":
        raise ForbiddenError("Admin only")
    return user


def ensure_self_or_admin(user: User, target_id: str) -> None:
    """Acting on another user's record requires admin; reported as 401 like a bad token."""
    if str(user.id) != target_id and user.role != "admin":
        raise UnauthorizedError("Not authorized to access this user")


def get_settlement() -> SettlementService:
    return get_settlement_service()
