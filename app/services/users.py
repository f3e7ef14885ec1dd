from datetime import datetime

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Inc
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError

from app.core.audit import log_event
from app.core.exceptions import ConflictError, NotFoundError, UnauthorizedError
from app.core.logging import get_logger
from app.core.security import hash_password, verify_password
from app.models.counter import Counter
from app.models.user import User
from app.services.wallet import get_deposit_wallet

log = get_logger(__name__)

HD_INDEX_COUNTER = "hd_index"


async def allocate_hd_index() -> int:
    """Next unused derivation index (0, 1, 2, ...); never handed out twice."""
    for _ in range(3):
        try:
            counter = await Counter.find_one(Counter.name == HD_INDEX_COUNTER).upsert(
                Inc({Counter.value: 1}),
                on_insert=Counter(name=HD_INDEX_COUNTER, value=1),
                response_type=UpdateResponse.NEW_DOCUMENT,
            )
        except DuplicateKeyError:
            # Lost the race to create the counter; it exists now, so increment it.
            continue
        return counter.value - 1
    raise ConflictError("Could not allocate a deposit address index")


async def create_user(email: str, password: str, name: str = "") -> User:
    email = email.strip().lower()
    if await User.find_one(User.email == email):
        raise ConflictError("Email already registered")
    hd_index = await allocate_hd_index()
    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name,
        hd_index=hd_index,
        bch_addr=get_deposit_wallet().address_for(hd_index),
    )
    try:
        await user.insert()
    except DuplicateKeyError as e:
        raise ConflictError("Email already registered") from e
    log.info("user_created", user_id=str(user.id), email=user.email, hd_index=hd_index)
    await log_event(str(user.id), "user_created", str(user.id), {"email": user.email, "hd_index": hd_index})
    return user


async def authenticate(email: str, password: str) -> User:
    user = await User.find_one(User.email == email.strip().lower())
    if not user or not verify_password(password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")
    await user.set({User.last_login_at: datetime.utcnow()})
    log.info("user_login", user_id=str(user.id), email=user.email)
    await log_event(str(user.id), "user_login", str(user.id), {"email": user.email})
    return user


async def get_user(user_id: str) -> User:
    try:
        user = await User.get(PydanticObjectId(user_id))
    except (InvalidId, TypeError):
        user = None
    if not user:
        raise NotFoundError("User not found")
    return user


async def list_users(limit: int, offset: int) -> tuple[list[User], int]:
    users = await User.find_all().sort(+User.created_at).skip(offset).limit(limit).to_list()
    return users, await User.find_all().count()


async def update_user(
    user: User,
    email: str | None = None,
    name: str | None = None,
    password: str | None = None,
    role: str | None = None,
) -> User:
    """
    Profile fields only, written with $set so concurrent settlement writes
    (credit, token) are never overwritten with stale values.
    """
    changes: dict = {}
    if email is not None:
        email = email.strip().lower()
        if email != user.email and await User.find_one(User.email == email):
            raise ConflictError("Email already registered")
        changes["email"] = email
    if name is not None:
        changes["name"] = name
    if password is not None:
        changes["password_hash"] = hash_password(password)
        changes["session_version"] = user.session_version + 1
    if role is not None:
        changes["role"] = role
    if changes:
        changes["updated_at"] = datetime.utcnow()
        await user.set(changes)
        log.info("user_updated", user_id=str(user.id), fields=sorted(changes))
    return user


async def delete_user(user: User, actor_id: str) -> None:
    """Removing the record also invalidates its API token: validation finds no owner."""
    user_id = str(user.id)
    await user.delete()
    log.info("user_deleted", user_id=user_id, actor_id=actor_id)
    await log_event(actor_id, "user_deleted", user_id, {"had_api_token": bool(user.api_token)})


def session_payload_for_user(user: User) -> dict:
    return {"user_id": str(user.id), "session_version": user.session_version}


def public_user(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "bchAddr": user.bch_addr,
        "hdIndex": user.hd_index,
        "credit": user.credit,
        "apiLevel": user.api_level,
        "apiToken": user.api_token,
        "apiTokenExp": user.api_token_exp.isoformat() if user.api_token_exp else None,
    }
