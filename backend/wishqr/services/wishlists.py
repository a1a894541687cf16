"""Wishlist aggregate: items, running totals and contribution history.

Each mutating operation is one transaction. Item changes and the matching
``total_amount``/``collected_amount`` increments are committed together, and
the increments are evaluated by the database (``column = column + delta``)
so concurrent writers never lose an update.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from wishqr.core.codes import render_qr_data_url, wishlist_deep_link
from wishqr.core.config import settings
from wishqr.core.errors import (
    AlreadyExists,
    Forbidden,
    Internal,
    InvalidAmount,
    NotFound,
    WishlistInactive,
)
from wishqr.models.models import (
    Contribution,
    User,
    Wishlist,
    WishlistItem,
    WishlistState,
    new_id,
    utcnow,
)
from wishqr.schemas.wishlist import (
    CENTS,
    ZERO,
    ContributionCreate,
    ItemCreate,
    ItemUpdate,
    WishlistCreate,
    WishlistPatch,
)


logger = logging.getLogger("wishqr.wishlists")

DEFAULT_OWNER_NAME = "User"


def as_money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS)


@dataclass(frozen=True)
class Reconciliation:
    wishlist: Wishlist
    total_drift: Decimal
    collected_drift: Decimal

    @property
    def repaired(self) -> bool:
        return bool(self.total_drift or self.collected_drift)


class WishlistManager:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── loading & guards ─────────────────────────────────────────────────────

    async def _load(self, wishlist_id: str, *, for_update: bool = False) -> Wishlist | None:
        stmt = (
            select(Wishlist)
            .options(selectinload(Wishlist.items))
            .where(Wishlist.id == wishlist_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _require(self, wishlist_id: str, *, for_update: bool = False) -> Wishlist:
        wishlist = await self._load(wishlist_id, for_update=for_update)
        if wishlist is None:
            raise NotFound("Wishlist not found")
        return wishlist

    async def _require_owned(
        self,
        wishlist_id: str,
        requester_id: str,
        *,
        for_update: bool = False,
    ) -> Wishlist:
        wishlist = await self._require(wishlist_id, for_update=for_update)
        if wishlist.user_id != requester_id:
            logger.info(
                "Ownership check failed wishlist_id=%s requester=%s",
                wishlist_id,
                requester_id,
            )
            raise Forbidden("Access denied")
        return wishlist

    @staticmethod
    def _require_active(wishlist: Wishlist) -> None:
        if wishlist.state is not WishlistState.ACTIVE:
            raise WishlistInactive()

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("Commit failed")
            raise Internal() from exc

    async def _increment(self, wishlist_id: str, **deltas: Decimal) -> None:
        values = {
            name: getattr(Wishlist, name) + delta
            for name, delta in deltas.items()
        }
        try:
            await self.db.execute(
                update(Wishlist)
                .where(Wishlist.id == wishlist_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        except DataError as exc:
            await self.db.rollback()
            logger.warning("Counter out of range wishlist_id=%s deltas=%s", wishlist_id, deltas)
            raise InvalidAmount("Amount out of range") from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("Counter update failed wishlist_id=%s", wishlist_id)
            raise Internal() from exc

    # ── wishlists ────────────────────────────────────────────────────────────

    async def _owner_for_update(self, owner_id: str) -> User | None:
        result = await self.db.execute(
            select(User)
            .where(User.id == owner_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _ensure_no_active_wishlist(self, owner_id: str, user: User | None) -> None:
        active_count = await self.db.scalar(
            select(func.count(Wishlist.id))
            .where(Wishlist.user_id == owner_id)
            .where(Wishlist.is_active.is_(True))
        )
        if (user is not None and user.wishlist_id) or active_count:
            raise AlreadyExists("User already has a wishlist")

    async def create_wishlist(self, owner_id: str, payload: WishlistCreate) -> Wishlist:
        single = settings.single_wishlist_per_user
        if single:
            await self._ensure_no_active_wishlist(owner_id, await self.db.get(User, owner_id))

        wishlist_id = new_id()
        deep_link = wishlist_deep_link(wishlist_id)
        qr_code = await asyncio.to_thread(render_qr_data_url, deep_link)

        user = await self._owner_for_update(owner_id)
        if single:
            try:
                await self._ensure_no_active_wishlist(owner_id, user)
            except AlreadyExists:
                await self.db.rollback()
                raise

        wishlist = Wishlist(
            id=wishlist_id,
            user_id=owner_id,
            exclusive_owner_id=owner_id if single else None,
            name=payload.name,
            description=payload.description,
            total_amount=ZERO,
            collected_amount=ZERO,
            qr_code=qr_code,
            deep_link=deep_link,
            is_active=True,
            created_at=utcnow(),
        )
        self.db.add(wishlist)
        if user is not None and not user.wishlist_id:
            user.wishlist_id = wishlist_id
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.info("Concurrent wishlist create rejected owner=%s", owner_id)
            raise AlreadyExists("User already has a wishlist") from exc
        await self._commit()
        logger.info("Wishlist created id=%s owner=%s", wishlist_id, owner_id)
        return await self._require(wishlist_id)

    async def get_public(self, wishlist_id: str) -> tuple[Wishlist, str]:
        wishlist = await self._require(wishlist_id)
        owner = await self.db.get(User, wishlist.user_id)
        owner_name = owner.display_name if owner and owner.display_name else DEFAULT_OWNER_NAME
        return wishlist, owner_name

    async def get_owned(self, wishlist_id: str, requester_id: str) -> Wishlist:
        return await self._require_owned(wishlist_id, requester_id)

    async def current_wishlist_id(self, requester_id: str) -> str:
        """The wishlist the user's profile points at (single-wishlist routes)."""
        user = await self.db.get(User, requester_id)
        if user is None:
            raise NotFound("User not found")
        if not user.wishlist_id:
            raise NotFound("Wishlist not found")
        return user.wishlist_id

    async def list_mine(self, owner_id: str) -> list[Wishlist]:
        result = await self.db.execute(
            select(Wishlist)
            .options(selectinload(Wishlist.items))
            .where(Wishlist.user_id == owner_id)
        )
        wishlists = [w for w in result.scalars().unique() if w.state is WishlistState.ACTIVE]
        wishlists.sort(key=lambda w: w.created_at, reverse=True)
        return wishlists

    async def update_details(
        self,
        wishlist_id: str,
        requester_id: str,
        patch: WishlistPatch,
    ) -> Wishlist:
        wishlist = await self._require_owned(wishlist_id, requester_id, for_update=True)
        self._require_active(wishlist)
        changes = patch.changes()
        for key, value in changes.items():
            setattr(wishlist, key, value)
        await self._commit()
        logger.info("Wishlist updated id=%s fields=%s", wishlist_id, sorted(changes))
        return await self._require(wishlist_id)

    async def soft_delete(self, wishlist_id: str, requester_id: str) -> Wishlist:
        wishlist = await self._require_owned(wishlist_id, requester_id, for_update=True)
        self._require_active(wishlist)
        wishlist.is_active = False
        wishlist.exclusive_owner_id = None
        wishlist.deleted_at = utcnow()
        user = await self.db.get(User, requester_id)
        if user is not None and user.wishlist_id == wishlist_id:
            user.wishlist_id = None
        await self._commit()
        logger.info("Wishlist soft-deleted id=%s", wishlist_id)
        return await self._require(wishlist_id)

    # ── items ────────────────────────────────────────────────────────────────

    async def add_item(
        self,
        wishlist_id: str,
        requester_id: str,
        payload: ItemCreate,
    ) -> WishlistItem:
        wishlist = await self._require_owned(wishlist_id, requester_id, for_update=True)
        self._require_active(wishlist)

        position = max((item.position for item in wishlist.items), default=-1) + 1
        item = WishlistItem(
            id=new_id(),
            wishlist_id=wishlist_id,
            position=position,
            name=payload.name,
            price=payload.price,
            description=payload.description,
            image_url=payload.image_url,
            collected_amount=ZERO,
            is_completed=False,
            created_at=utcnow(),
        )
        self.db.add(item)
        await self._increment(wishlist_id, total_amount=item.price)
        await self._commit()
        logger.info("Item added wishlist_id=%s item_id=%s price=%s", wishlist_id, item.id, item.price)
        return item

    async def update_item(
        self,
        wishlist_id: str,
        item_id: str,
        requester_id: str,
        payload: ItemUpdate,
    ) -> WishlistItem:
        wishlist = await self._require_owned(wishlist_id, requester_id, for_update=True)
        self._require_active(wishlist)
        item = self._find_item(wishlist, item_id)

        price_difference = payload.price - as_money(item.price)
        item.name = payload.name or item.name
        item.price = payload.price
        item.description = payload.description
        item.image_url = payload.image_url
        await self._increment(wishlist_id, total_amount=price_difference)
        await self._commit()
        logger.info(
            "Item updated wishlist_id=%s item_id=%s price_difference=%s",
            wishlist_id,
            item_id,
            price_difference,
        )
        return item

    async def delete_item(self, wishlist_id: str, item_id: str, requester_id: str) -> None:
        wishlist = await self._require_owned(wishlist_id, requester_id, for_update=True)
        self._require_active(wishlist)
        item = self._find_item(wishlist, item_id)

        await self.db.delete(item)
        await self._increment(
            wishlist_id,
            total_amount=-as_money(item.price),
            collected_amount=-as_money(item.collected_amount),
        )
        await self._commit()
        logger.info("Item deleted wishlist_id=%s item_id=%s", wishlist_id, item_id)

    @staticmethod
    def _find_item(wishlist: Wishlist, item_id: str) -> WishlistItem:
        for item in wishlist.items:
            if item.id == item_id:
                return item
        raise NotFound("Item not found")

    # ── contributions ────────────────────────────────────────────────────────

    async def contribute(self, wishlist_id: str, payload: ContributionCreate) -> Contribution:
        if payload.amount <= 0:
            raise InvalidAmount("Invalid amount")

        wishlist = await self._require(wishlist_id, for_update=True)
        self._require_active(wishlist)

        contribution = Contribution(
            id=new_id(),
            wishlist_id=wishlist_id,
            amount=payload.amount,
            contributor_name=payload.contributor_name,
            message=payload.message,
            created_at=utcnow(),
        )
        self.db.add(contribution)
        await self._increment(wishlist_id, collected_amount=payload.amount)
        await self._commit()
        logger.info(
            "Contribution recorded wishlist_id=%s contribution_id=%s amount=%s",
            wishlist_id,
            contribution.id,
            payload.amount,
        )
        return contribution

    async def list_contributions(self, wishlist_id: str) -> list[Contribution]:
        await self._require(wishlist_id)
        result = await self.db.execute(
            select(Contribution)
            .where(Contribution.wishlist_id == wishlist_id)
            .order_by(Contribution.created_at.desc())
        )
        return list(result.scalars().all())

    # ── drift detection ──────────────────────────────────────────────────────

    async def reconcile(self, wishlist_id: str, requester_id: str | None = None) -> Reconciliation:
        """Recompute both totals from their child records and repair any drift."""
        if requester_id is None:
            wishlist = await self._require(wishlist_id, for_update=True)
        else:
            wishlist = await self._require_owned(wishlist_id, requester_id, for_update=True)

        expected_total = sum((as_money(item.price) for item in wishlist.items), ZERO)
        collected_sum = await self.db.scalar(
            select(func.coalesce(func.sum(Contribution.amount), 0))
            .where(Contribution.wishlist_id == wishlist_id)
        )
        expected_collected = as_money(collected_sum)

        total_drift = as_money(wishlist.total_amount) - expected_total
        collected_drift = as_money(wishlist.collected_amount) - expected_collected
        if total_drift or collected_drift:
            logger.warning(
                "Totals drift repaired wishlist_id=%s total_drift=%s collected_drift=%s",
                wishlist_id,
                total_drift,
                collected_drift,
            )
            await self.db.execute(
                update(Wishlist)
                .where(Wishlist.id == wishlist_id)
                .values(total_amount=expected_total, collected_amount=expected_collected)
                .execution_options(synchronize_session=False)
            )
        await self._commit()

        return Reconciliation(
            wishlist=await self._require(wishlist_id),
            total_drift=total_drift,
            collected_drift=collected_drift,
        )

    async def reconcile_all(self) -> list[Reconciliation]:
        ids = (await self.db.scalars(select(Wishlist.id))).all()
        return [await self.reconcile(wishlist_id) for wishlist_id in ids]
