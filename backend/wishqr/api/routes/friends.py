from fastapi import APIRouter, Request

from wishqr.api.deps import FriendsDep, IdentityDep
from wishqr.api.serializers import serialize_friend
from wishqr.core.audit import audit_friend_added
from wishqr.schemas.wishlist import (
    FriendByCode,
    FriendByEmail,
    FriendEnvelope,
    FriendListEnvelope,
)


router = APIRouter(prefix="/api/friends", tags=["friends"])


@router.get("", response_model=FriendListEnvelope)
async def list_friends(identity: IdentityDep, graph: FriendsDep) -> FriendListEnvelope:
    friends = await graph.list_friends(identity.uid)
    return FriendListEnvelope(
        friends=[serialize_friend(user, added_at) for user, added_at in friends]
    )


@router.post("/add-by-email", response_model=FriendEnvelope)
async def add_friend_by_email(
    payload: FriendByEmail,
    request: Request,
    identity: IdentityDep,
    graph: FriendsDep,
) -> FriendEnvelope:
    friend = await graph.add_by_email(identity.uid, payload.email)
    audit_friend_added(request, identity.uid, friend.id, via="email")
    return FriendEnvelope(friend=serialize_friend(friend))


@router.post("/add-by-qr", response_model=FriendEnvelope)
async def add_friend_by_qr(
    payload: FriendByCode,
    request: Request,
    identity: IdentityDep,
    graph: FriendsDep,
) -> FriendEnvelope:
    friend = await graph.add_by_code(identity.uid, payload.friend_id)
    audit_friend_added(request, identity.uid, friend.id, via="qr")
    return FriendEnvelope(friend=serialize_friend(friend))
