"""Read side of the credit journal."""

from beanie import PydanticObjectId

from app.models.credit_ledger import CreditLedgerEntry


async def list_entries(
    user_id: PydanticObjectId,
    limit: int,
    offset: int,
    reason: str | None = None,
) -> tuple[list[CreditLedgerEntry], int]:
    """Ledger entries for user, newest first, with the total matching count."""
    query = CreditLedgerEntry.find(CreditLedgerEntry.user_id == user_id)
    if reason is not None:
        query = query.find(CreditLedgerEntry.reason == reason)
    total = await query.count()
    entries = await query.sort(-CreditLedgerEntry.created_at).skip(offset).limit(limit).to_list()
    return entries, total


def entry_to_dict(e: CreditLedgerEntry) -> dict:
    return {
        "id": str(e.id),
        "amount": e.amount,
        "balanceAfter": e.balance_after,
        "reason": e.reason,
        "referenceType": e.reference_type,
        "referenceId": e.reference_id,
        "createdAt": e.created_at.isoformat(),
    }
