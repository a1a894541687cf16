from wishqr.models.models import Contribution, User, Wishlist, WishlistItem
from wishqr.schemas.wishlist import (
    ContributionPublic,
    FriendPublic,
    ItemPublic,
    UserPublic,
    WishlistPublic,
)
from wishqr.services.wishlists import as_money


def serialize_item(item: WishlistItem) -> ItemPublic:
    return ItemPublic(
        id=item.id,
        name=item.name,
        price=float(as_money(item.price)),
        description=item.description or "",
        image_url=item.image_url,
        collected_amount=float(as_money(item.collected_amount)),
        is_completed=bool(item.is_completed),
        created_at=item.created_at,
    )


def serialize_wishlist(wishlist: Wishlist, owner_name: str | None = None) -> WishlistPublic:
    return WishlistPublic(
        id=wishlist.id,
        user_id=wishlist.user_id,
        name=wishlist.name,
        description=wishlist.description or "",
        items=[serialize_item(item) for item in wishlist.items],
        total_amount=float(as_money(wishlist.total_amount)),
        collected_amount=float(as_money(wishlist.collected_amount)),
        qr_code=wishlist.qr_code,
        deep_link=wishlist.deep_link,
        is_active=wishlist.is_active,
        created_at=wishlist.created_at,
        deleted_at=wishlist.deleted_at,
        owner_name=owner_name,
    )


def serialize_contribution(contribution: Contribution) -> ContributionPublic:
    return ContributionPublic(
        id=contribution.id,
        wishlist_id=contribution.wishlist_id,
        amount=float(as_money(contribution.amount)),
        contributor_name=contribution.contributor_name,
        message=contribution.message or "",
        created_at=contribution.created_at,
    )


def serialize_user(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        display_name=user.display_name,
        email=user.email,
        wishlist_id=user.wishlist_id,
        created_at=user.created_at,
    )


def serialize_friend(user: User, added_at=None) -> FriendPublic:
    return FriendPublic(
        id=user.id,
        display_name=user.display_name,
        email=user.email,
        added_at=added_at,
    )
