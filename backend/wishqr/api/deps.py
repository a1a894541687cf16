from typing import Annotated
import logging

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from wishqr.core.errors import Unauthorized
from wishqr.core.security import Identity, verify_id_token
from wishqr.db.session import get_db
from wishqr.services.friends import FriendGraph
from wishqr.services.wishlists import WishlistManager


DbSessionDep = Annotated[AsyncSession, Depends(get_db)]
logger = logging.getLogger("wishqr.auth")


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.removeprefix("Bearer ").strip()
        return token or None
    return None


async def get_current_identity(request: Request) -> Identity:
    token = _bearer_token(request)
    if not token:
        logger.info(
            "Auth token missing path=%s ip=%s",
            request.url.path,
            request.client.host if request.client else None,
        )
        raise Unauthorized("Missing token")

    try:
        identity = verify_id_token(token)
    except Unauthorized:
        logger.info("Auth token invalid path=%s", request.url.path)
        raise
    logger.debug("get_current_identity: uid=%s path=%s", identity.uid, request.url.path)
    return identity


def get_wishlist_manager(db: DbSessionDep) -> WishlistManager:
    return WishlistManager(db)


def get_friend_graph(db: DbSessionDep) -> FriendGraph:
    return FriendGraph(db)


IdentityDep = Annotated[Identity, Depends(get_current_identity)]
ManagerDep = Annotated[WishlistManager, Depends(get_wishlist_manager)]
FriendsDep = Annotated[FriendGraph, Depends(get_friend_graph)]
