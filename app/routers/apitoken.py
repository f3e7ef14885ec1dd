from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from app.deps import ensure_self_or_admin, get_current_user, get_settlement
from app.models.user import User
from app.services.settlement import SettlementService

router = APIRouter()


class NewApiTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_level: int = Field(alias="apiLevel", strict=True)


@router.get("/bchaddr/{user_id}")
async def deposit_address(
    user_id: str,
    user: User = Depends(get_current_user),
    settlement: SettlementService = Depends(get_settlement),
):
    """Deposit address credited to this user."""
    ensure_self_or_admin(user, user_id)
    return {"bchAddr": await settlement.deposit_address(user_id)}


@router.post("/new")
async def new_api_token(
    body: NewApiTokenRequest,
    user: User = Depends(get_current_user),
    settlement: SettlementService = Depends(get_settlement),
):
    """Buy a token at apiLevel, replacing (and refunding) any active one. 402 if credit is too low."""
    token = await settlement.issue_token(str(user.id), body.api_level)
    return {"apiToken": token}


@router.get("/isvalid/{token}")
async def is_valid(token: str, settlement: SettlementService = Depends(get_settlement)):
    """Unauthenticated. apiLevel comes from the stored user record."""
    status = await settlement.validate_token(token)
    return {"isValid": status.is_valid, "apiLevel": status.api_level}


@router.get("/update-credit/{user_id}")
async def update_credit(
    user_id: str,
    user: User = Depends(get_current_user),
    settlement: SettlementService = Depends(get_settlement),
):
    """Check the deposit address for new funds and return the resulting credit."""
    ensure_self_or_admin(user, user_id)
    return await settlement.refresh_credit(user_id)
