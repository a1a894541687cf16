"""Request/response models.

Inputs follow an explicit default-substitution policy instead of rejecting
malformed values: see the ``mode="before"`` validators on each field.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel


CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest value a NUMERIC(12, 2) column holds.
MAX_MONEY = Decimal("9999999999.99")

DEFAULT_WISHLIST_NAME = "My Wishlist"
DEFAULT_ITEM_NAME = "Unnamed item"
DEFAULT_CONTRIBUTOR_NAME = "Anonymous"

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_money(value: Any) -> Decimal:
    """Parse a loosely-typed money value; anything unparseable becomes 0.

    Strings are read up to the first non-numeric character ("12.5 EUR" -> 12.50).
    Values beyond MAX_MONEY do not fit a money column and count as unparseable.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return ZERO
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            return ZERO
        try:
            parsed = Decimal(match.group(0).strip())
        except InvalidOperation:
            return ZERO
    else:
        return ZERO
    if not parsed.is_finite():
        return ZERO
    try:
        parsed = parsed.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return ZERO
    if abs(parsed) > MAX_MONEY:
        return ZERO
    return parsed


def parse_price(value: Any) -> Decimal:
    price = parse_money(value)
    return price if price > 0 else ZERO


def _text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Inputs ────────────────────────────────────────────────────────────────────

class UserSetup(CamelModel):
    display_name: str | None = None
    email: EmailStr | None = None

    @field_validator("display_name", mode="before")
    @classmethod
    def _display_name(cls, value: Any) -> str | None:
        return _text_or_none(value)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: Any) -> str | None:
        return _text_or_none(value)


class WishlistCreate(CamelModel):
    name: str = DEFAULT_WISHLIST_NAME
    description: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> str:
        return _text_or_none(value) or DEFAULT_WISHLIST_NAME

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: Any) -> str:
        return "" if value is None else str(value)


class WishlistPatch(CamelModel):
    """Only keys present in the body are applied; explicit null is stored as ""."""

    name: str | None = None
    description: str | None = None

    @field_validator("name", "description", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)

    def changes(self) -> dict[str, str]:
        return self.model_dump(exclude_unset=True, by_alias=False)


class ItemCreate(CamelModel):
    name: str = DEFAULT_ITEM_NAME
    price: Decimal = ZERO
    description: str = ""
    image_url: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> str:
        return _text_or_none(value) or DEFAULT_ITEM_NAME

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, value: Any) -> Decimal:
        return parse_price(value)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("image_url", mode="before")
    @classmethod
    def _image_url(cls, value: Any) -> str | None:
        return _text_or_none(value)


class ItemUpdate(CamelModel):
    """Full replacement except ``name``, which keeps the previous value when empty."""

    name: str | None = None
    price: Decimal = ZERO
    description: str = ""
    image_url: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> str | None:
        return _text_or_none(value)

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, value: Any) -> Decimal:
        return parse_price(value)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("image_url", mode="before")
    @classmethod
    def _image_url(cls, value: Any) -> str | None:
        return _text_or_none(value)


class ContributionCreate(CamelModel):
    amount: Decimal = ZERO
    contributor_name: str = DEFAULT_CONTRIBUTOR_NAME
    message: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Decimal:
        return parse_money(value)

    @field_validator("contributor_name", mode="before")
    @classmethod
    def _contributor_name(cls, value: Any) -> str:
        return _text_or_none(value) or DEFAULT_CONTRIBUTOR_NAME

    @field_validator("message", mode="before")
    @classmethod
    def _message(cls, value: Any) -> str:
        return "" if value is None else str(value)


class FriendByEmail(CamelModel):
    email: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: Any) -> str | None:
        return _text_or_none(value)


class FriendByCode(CamelModel):
    friend_id: str | None = None

    @field_validator("friend_id", mode="before")
    @classmethod
    def _friend_id(cls, value: Any) -> str | None:
        return _text_or_none(value)


# ── Outputs ───────────────────────────────────────────────────────────────────

class UserPublic(CamelModel):
    id: str
    display_name: str
    email: str | None
    wishlist_id: str | None = None
    created_at: datetime | None = None


class FriendPublic(CamelModel):
    id: str
    display_name: str
    email: str | None
    added_at: datetime | None = None


class ItemPublic(CamelModel):
    id: str
    name: str
    price: float
    description: str
    image_url: str | None
    collected_amount: float
    is_completed: bool
    created_at: datetime


class WishlistPublic(CamelModel):
    id: str
    user_id: str
    name: str
    description: str
    items: list[ItemPublic]
    total_amount: float
    collected_amount: float
    qr_code: str | None
    deep_link: str | None
    is_active: bool
    created_at: datetime
    deleted_at: datetime | None = None
    owner_name: str | None = None


class ContributionPublic(CamelModel):
    id: str
    wishlist_id: str
    amount: float
    contributor_name: str
    message: str
    created_at: datetime


class Drift(CamelModel):
    total_amount: float
    collected_amount: float


class UserSetupResponse(CamelModel):
    user: UserPublic
    is_new: bool


class WishlistEnvelope(CamelModel):
    wishlist: WishlistPublic


class WishlistListEnvelope(CamelModel):
    wishlists: list[WishlistPublic]


class WishlistUpdateEnvelope(CamelModel):
    success: bool = True
    wishlist: WishlistPublic
    message: str = "Wishlist updated"


class ItemEnvelope(CamelModel):
    success: bool = True
    item: ItemPublic
    message: str | None = None


class ContributionEnvelope(CamelModel):
    success: bool = True
    contribution: ContributionPublic
    message: str = "Contribution recorded (simulated)"


class ContributionListEnvelope(CamelModel):
    contributions: list[ContributionPublic]


class ReconcileEnvelope(CamelModel):
    wishlist: WishlistPublic
    drift: Drift


class FriendEnvelope(CamelModel):
    success: bool = True
    friend: FriendPublic
    message: str = "Friend added"


class FriendListEnvelope(CamelModel):
    friends: list[FriendPublic]


class FriendCode(CamelModel):
    user_id: str
    deep_link: str
    qr_code: str


class StatusMessage(CamelModel):
    success: bool = True
    message: str
