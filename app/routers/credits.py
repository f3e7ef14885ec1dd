from typing import Literal

from fastapi import APIRouter, Depends, Query

from app.core.pagination import Page, paginate
from app.deps import get_current_user
from app.models.user import User
from app.services import credits as credits_service

router = APIRouter()


@router.get("/balance")
async def credits_balance(user: User = Depends(get_current_user)):
    """Credit as of the last refresh; GET /v1/apitoken/update-credit/{id} checks for new deposits."""
    return {"credit": user.credit, "apiLevel": user.api_level}


@router.get("/ledger")
async def credits_ledger(
    user: User = Depends(get_current_user),
    reason: Literal["deposit", "token_purchase", "refund"] | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Journal of deposits, token purchases and refunds, newest first."""
    limit, offset = paginate(limit, offset)
    entries, total = await credits_service.list_entries(user.id, limit, offset, reason=reason)
    page = Page[dict](
        items=[credits_service.entry_to_dict(e) for e in entries],
        limit=limit,
        offset=offset,
        total=total,
    )
    return page.model_dump()
