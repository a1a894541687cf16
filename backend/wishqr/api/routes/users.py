import asyncio

from fastapi import APIRouter, Body, Request

from wishqr.api.deps import DbSessionDep, IdentityDep
from wishqr.api.serializers import serialize_user
from wishqr.core.audit import AuditAction, audit_log
from wishqr.core.codes import friend_deep_link, render_qr_data_url
from wishqr.schemas.wishlist import FriendCode, UserSetup, UserSetupResponse
from wishqr.services.users import get_user, setup_user


router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/setup", response_model=UserSetupResponse)
async def setup(
    request: Request,
    identity: IdentityDep,
    db: DbSessionDep,
    payload: UserSetup | None = Body(default=None),
) -> UserSetupResponse:
    """Create the caller's profile after the first sign-in, or return it."""
    user, is_new = await setup_user(db, identity, payload or UserSetup())
    if is_new:
        audit_log(AuditAction.USER_SETUP, request=request, user_id=user.id)
    return UserSetupResponse(user=serialize_user(user), is_new=is_new)


@router.get("/me/qr", response_model=FriendCode)
async def my_friend_code(identity: IdentityDep, db: DbSessionDep) -> FriendCode:
    """Code another user scans to add the caller as a friend."""
    user = await get_user(db, identity.uid)
    deep_link = friend_deep_link(user.id)
    qr_code = await asyncio.to_thread(render_qr_data_url, deep_link)
    return FriendCode(user_id=user.id, deep_link=deep_link, qr_code=qr_code)
