import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wishqr.core.errors import Internal, NotFound
from wishqr.core.security import Identity
from wishqr.models.models import User, utcnow
from wishqr.schemas.wishlist import UserSetup


logger = logging.getLogger("wishqr.users")

DEFAULT_DISPLAY_NAME = "User"


async def setup_user(db: AsyncSession, identity: Identity, payload: UserSetup) -> tuple[User, bool]:
    """Return the caller's profile, creating it on first call."""
    user = await db.get(User, identity.uid)
    if user is not None:
        return user, False

    email = payload.email or identity.email
    display_name = (
        payload.display_name
        or identity.name
        or (email.split("@")[0] if email else None)
        or DEFAULT_DISPLAY_NAME
    )
    user = User(
        id=identity.uid,
        display_name=display_name,
        email=email,
        created_at=utcnow(),
    )
    db.add(user)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("User setup failed uid=%s", identity.uid)
        raise Internal() from exc
    logger.info("User created uid=%s", identity.uid)
    return user, True


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user
