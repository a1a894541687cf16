"""Symmetric friend edges stored as one row per direction."""

from datetime import datetime
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from wishqr.core.errors import Internal, InvalidInput, NotFound
from wishqr.models.models import Friendship, User, utcnow


logger = logging.getLogger("wishqr.friends")


class FriendGraph:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _require_user(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def _friend_ids(self, user_id: str) -> set[str]:
        result = await self.db.execute(
            select(Friendship.friend_id).where(Friendship.user_id == user_id)
        )
        return set(result.scalars().all())

    async def list_friends(self, user_id: str) -> list[tuple[User, datetime]]:
        result = await self.db.execute(
            select(User, Friendship.created_at)
            .join(Friendship, Friendship.friend_id == User.id)
            .where(Friendship.user_id == user_id)
            .order_by(Friendship.created_at.asc())
        )
        return [(user, added_at) for user, added_at in result.all()]

    async def add_by_email(self, user_id: str, email: str | None) -> User:
        """Connect with the user registered under ``email``; repeat calls are no-ops."""
        if not email:
            raise InvalidInput("Email is required")
        await self._require_user(user_id)

        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower()).limit(1)
        )
        friend = result.scalar_one_or_none()
        if friend is None:
            raise NotFound("No user found with this email")
        if friend.id == user_id:
            raise InvalidInput("You cannot add yourself")

        await self._connect(user_id, friend.id)
        return friend

    async def add_by_code(self, user_id: str, friend_id: str | None) -> User:
        """Connect with the user whose friend code was scanned."""
        if not friend_id:
            raise InvalidInput("Friend id is required")
        if friend_id == user_id:
            raise InvalidInput("You cannot add yourself")

        friend = await self.db.get(User, friend_id)
        if friend is None:
            raise NotFound("User not found")
        await self._require_user(user_id)

        if friend_id in await self._friend_ids(user_id):
            raise InvalidInput("Already friends")

        await self._connect(user_id, friend_id)
        return friend

    async def _connect(self, user_id: str, friend_id: str) -> None:
        """Write both directions in a single transaction."""
        now = utcnow()
        existing_forward = friend_id in await self._friend_ids(user_id)
        existing_reverse = user_id in await self._friend_ids(friend_id)
        if not existing_forward:
            self.db.add(Friendship(user_id=user_id, friend_id=friend_id, created_at=now))
        if not existing_reverse:
            self.db.add(Friendship(user_id=friend_id, friend_id=user_id, created_at=now))
        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent request wrote the same edge first.
            await self.db.rollback()
            logger.info("Friend edge already present user=%s friend=%s", user_id, friend_id)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("Friend edge write failed user=%s friend=%s", user_id, friend_id)
            raise Internal() from exc
        else:
            logger.info("Friend edge stored user=%s friend=%s", user_id, friend_id)

    async def repair_asymmetric_edges(self) -> int:
        """Insert the missing reverse row of every one-directional edge."""
        reverse = aliased(Friendship)
        result = await self.db.execute(
            select(Friendship.user_id, Friendship.friend_id, Friendship.created_at)
            .outerjoin(
                reverse,
                (reverse.user_id == Friendship.friend_id)
                & (reverse.friend_id == Friendship.user_id),
            )
            .where(reverse.id.is_(None))
        )
        missing = result.all()
        for user_id, friend_id, created_at in missing:
            self.db.add(Friendship(user_id=friend_id, friend_id=user_id, created_at=created_at))
        if missing:
            try:
                await self.db.commit()
            except SQLAlchemyError as exc:
                await self.db.rollback()
                logger.exception("Friend edge repair failed")
                raise Internal() from exc
            logger.warning("Repaired %d asymmetric friend edges", len(missing))
        return len(missing)
