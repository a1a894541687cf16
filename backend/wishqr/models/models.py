from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as StrEnumBase
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wishqr.db.session import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


MONEY = Numeric(12, 2)


class User(Base):
    __tablename__ = "users"

    # Subject issued by the identity provider.
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), index=True, nullable=True)
    wishlist_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    friendships: Mapped[list["Friendship"]] = relationship(
        back_populates="user",
        foreign_keys="Friendship.user_id",
    )


class Friendship(Base):
    """One direction of a symmetric friend edge."""

    __tablename__ = "friendships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    friend_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped[User] = relationship(back_populates="friendships", foreign_keys=[user_id])
    friend: Mapped[User] = relationship(foreign_keys=[friend_id])

    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="ux_friendships_pair"),
        CheckConstraint("user_id <> friend_id", name="ck_friendships_not_self"),
    )


class WishlistState(str, StrEnumBase):
    ACTIVE = "active"
    DELETED = "deleted"


class Wishlist(Base):
    __tablename__ = "wishlists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    # No foreign key: wishlists may exist before the owner ran user setup.
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    # Set to user_id for the active wishlist in single-wishlist mode, NULL otherwise.
    exclusive_owner_id: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(String(2000), nullable=False, default="")
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    collected_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    qr_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    deep_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["WishlistItem"]] = relationship(
        back_populates="wishlist",
        cascade="all, delete-orphan",
        order_by=lambda: (WishlistItem.position, WishlistItem.created_at),
    )

    @property
    def state(self) -> WishlistState:
        return WishlistState.ACTIVE if self.is_active else WishlistState.DELETED


class WishlistItem(Base):
    __tablename__ = "wishlist_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    wishlist_id: Mapped[str] = mapped_column(ForeignKey("wishlists.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    description: Mapped[str] = mapped_column(String(2000), nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    # Never incremented: contributions target the wishlist, not an item.
    collected_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    wishlist: Mapped[Wishlist] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_wishlist_items_price_non_negative"),
    )


class Contribution(Base):
    __tablename__ = "contributions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    wishlist_id: Mapped[str] = mapped_column(ForeignKey("wishlists.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    contributor_name: Mapped[str] = mapped_column(String(120), nullable=False)
    message: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_contributions_amount_positive"),
    )
