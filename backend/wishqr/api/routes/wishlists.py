import logging

from fastapi import APIRouter, Request, status

from wishqr.api.deps import IdentityDep, ManagerDep
from wishqr.api.serializers import serialize_contribution, serialize_item, serialize_wishlist
from wishqr.core.audit import (
    AuditAction,
    audit_contribution,
    audit_item_action,
    audit_wishlist_action,
)
from wishqr.core.rate_limit import check_rate_limit
from wishqr.schemas.wishlist import (
    ContributionCreate,
    ContributionEnvelope,
    ContributionListEnvelope,
    Drift,
    ItemCreate,
    ItemEnvelope,
    ItemUpdate,
    ReconcileEnvelope,
    StatusMessage,
    WishlistCreate,
    WishlistEnvelope,
    WishlistListEnvelope,
    WishlistPatch,
    WishlistUpdateEnvelope,
)
from wishqr.services.wishlists import WishlistManager

logger = logging.getLogger("wishqr.wishlists")

router = APIRouter(prefix="/api", tags=["wishlists"])


# ── Owner: wishlists ──────────────────────────────────────────────────────────

@router.post("/wishlists", response_model=WishlistEnvelope, status_code=status.HTTP_201_CREATED)
async def create_wishlist(
    payload: WishlistCreate,
    request: Request,
    identity: IdentityDep,
    manager: ManagerDep,
) -> WishlistEnvelope:
    wishlist = await manager.create_wishlist(identity.uid, payload)
    audit_wishlist_action(
        AuditAction.WISHLIST_CREATE, request, identity.uid, wishlist.id, {"name": wishlist.name}
    )
    return WishlistEnvelope(wishlist=serialize_wishlist(wishlist))


@router.get("/my-wishlists", response_model=WishlistListEnvelope)
async def list_my_wishlists(identity: IdentityDep, manager: ManagerDep) -> WishlistListEnvelope:
    """Active wishlists owned by the caller, newest first."""
    wishlists = await manager.list_mine(identity.uid)
    logger.info("list_my_wishlists: returned %d wishlists for uid=%s", len(wishlists), identity.uid)
    return WishlistListEnvelope(wishlists=[serialize_wishlist(w) for w in wishlists])


@router.get("/my-wishlists/{wishlist_id}", response_model=WishlistEnvelope)
async def get_my_wishlist_by_id(
    wishlist_id: str,
    identity: IdentityDep,
    manager: ManagerDep,
) -> WishlistEnvelope:
    wishlist = await manager.get_owned(wishlist_id, identity.uid)
    return WishlistEnvelope(wishlist=serialize_wishlist(wishlist))


@router.post("/my-wishlists/{wishlist_id}/reconcile", response_model=ReconcileEnvelope)
async def reconcile_wishlist(
    wishlist_id: str,
    request: Request,
    identity: IdentityDep,
    manager: ManagerDep,
) -> ReconcileEnvelope:
    outcome = await manager.reconcile(wishlist_id, identity.uid)
    audit_wishlist_action(
        AuditAction.WISHLIST_RECONCILE,
        request,
        identity.uid,
        wishlist_id,
        {"repaired": outcome.repaired},
    )
    return ReconcileEnvelope(
        wishlist=serialize_wishlist(outcome.wishlist),
        drift=Drift(
            total_amount=float(outcome.total_drift),
            collected_amount=float(outcome.collected_drift),
        ),
    )


@router.put("/wishlists/{wishlist_id}", response_model=WishlistUpdateEnvelope)
async def update_wishlist(
    wishlist_id: str,
    payload: WishlistPatch,
    request: Request,
    identity: IdentityDep,
    manager: ManagerDep,
) -> WishlistUpdateEnvelope:
    wishlist = await manager.update_details(wishlist_id, identity.uid, payload)
    audit_wishlist_action(
        AuditAction.WISHLIST_UPDATE,
        request,
        identity.uid,
        wishlist_id,
        {"fields": sorted(payload.changes())},
    )
    return WishlistUpdateEnvelope(wishlist=serialize_wishlist(wishlist))


@router.delete("/wishlists/{wishlist_id}", response_model=StatusMessage)
async def delete_wishlist(
    wishlist_id: str,
    request: Request,
    identity: IdentityDep,
    manager: ManagerDep,
) -> StatusMessage:
    await manager.soft_delete(wishlist_id, identity.uid)
    audit_wishlist_action(AuditAction.WISHLIST_DELETE, request, identity.uid, wishlist_id)
    return StatusMessage(message="Wishlist deleted")


# ── Owner: items ──────────────────────────────────────────────────────────────

async def _add_item(
    wishlist_id: str,
    payload: ItemCreate,
    request: Request,
    uid: str,
    manager: WishlistManager,
) -> ItemEnvelope:
    item = await manager.add_item(wishlist_id, uid, payload)
    audit_item_action(
        AuditAction.ITEM_CREATE, request, uid, wishlist_id, item.id, {"price": float(item.price)}
    )
    return ItemEnvelope(item=serialize_item(item), message="Item added")


async def _update_item(
    wishlist_id: str,
    item_id: str,
    payload: ItemUpdate,
    request: Request,
    uid: str,
    manager: WishlistManager,
) -> ItemEnvelope:
    item = await manager.update_item(wishlist_id, item_id, uid, payload)
    audit_item_action(
        AuditAction.ITEM_UPDATE, request, uid, wishlist_id, item_id, {"price": float(item.price)}
    )
    return ItemEnvelope(item=serialize_item(item), message="Item updated")


async def _delete_item(
    wishlist_id: str,
    item_id: str,
    request: Request,
    uid: str,
    manager: WishlistManager,
) -> StatusMessage:
    await manager.delete_item(wishlist_id, item_id, uid)
    audit_item_action(AuditAction.ITEM_DELETE, request, uid, wishlist_id, item_id)
    return StatusMessage(message="Item deleted")


@router.post(
    "/wishlists/{wishlist_id}/items",
    response_model=ItemEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def add_item(
    wishlist_id: str,
    payload: ItemCreate,
    request: Request,
    identity: IdentityDep,
    manager: ManagerDep,
) -> ItemEnvelope:
    return await _add_item(wishlist_id, payload, request, identity.uid, manager)


@router.put("/wishlists/{wishlist_id}/items/{item_id}", response_model=ItemEnvelope)
async def update_item(
    wishlist_id: str,
    item_id: str,
    payload: ItemUpdate,
    request: Request,
    identity: IdentityDep,
    manager: ManagerDep,
) -> ItemEnvelope:
    return await _update_item(wishlist_id, item_id, payload, request, identity.uid, manager)


@router.delete("/wishlists/{wishlist_id}/items/{item_id}", response_model=StatusMessage)
async def delete_item(
    wishlist_id: str,
    item_id: str,
    request: Request,
    identity: IdentityDep,
    manager: ManagerDep,
) -> StatusMessage:
    return await _delete_item(wishlist_id, item_id, request, identity.uid, manager)


# ── Owner: the wishlist referenced by the user profile ────────────────────────

@router.get("/my-wishlist", response_model=WishlistEnvelope)
async def get_current_wishlist(identity: IdentityDep, manager: ManagerDep) -> WishlistEnvelope:
    wishlist_id = await manager.current_wishlist_id(identity.uid)
    wishlist = await manager.get_owned(wishlist_id, identity.uid)
    return WishlistEnvelope(wishlist=serialize_wishlist(wishlist))


@router.post(
    "/my-wishlist/items",
    response_model=ItemEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def add_current_item(
    payload: ItemCreate,
    request: Request,
    identity: IdentityDep,
    manager: ManagerDep,
) -> ItemEnvelope:
    wishlist_id = await manager.current_wishlist_id(identity.uid)
    return await _add_item(wishlist_id, payload, request, identity.uid, manager)


@router.put("/my-wishlist/items/{item_id}", response_model=ItemEnvelope)
async def update_current_item(
    item_id: str,
    payload: ItemUpdate,
    request: Request,
    identity: IdentityDep,
    manager: ManagerDep,
) -> ItemEnvelope:
    wishlist_id = await manager.current_wishlist_id(identity.uid)
    return await _update_item(wishlist_id, item_id, payload, request, identity.uid, manager)


@router.delete("/my-wishlist/items/{item_id}", response_model=StatusMessage)
async def delete_current_item(
    item_id: str,
    request: Request,
    identity: IdentityDep,
    manager: ManagerDep,
) -> StatusMessage:
    wishlist_id = await manager.current_wishlist_id(identity.uid)
    return await _delete_item(wishlist_id, item_id, request, identity.uid, manager)


# ── Public: discovery and gifting ─────────────────────────────────────────────

@router.get("/wishlists/{wishlist_id}", response_model=WishlistEnvelope)
async def get_public_wishlist(wishlist_id: str, manager: ManagerDep) -> WishlistEnvelope:
    """Opened from a scanned code; no authentication."""
    wishlist, owner_name = await manager.get_public(wishlist_id)
    return WishlistEnvelope(wishlist=serialize_wishlist(wishlist, owner_name=owner_name))


@router.post(
    "/wishlists/{wishlist_id}/contribute",
    response_model=ContributionEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def contribute(
    wishlist_id: str,
    payload: ContributionCreate,
    request: Request,
    manager: ManagerDep,
) -> ContributionEnvelope:
    check_rate_limit(request, key_suffix="contribute")
    contribution = await manager.contribute(wishlist_id, payload)
    audit_contribution(request, wishlist_id, contribution.id, float(contribution.amount))
    return ContributionEnvelope(contribution=serialize_contribution(contribution))


@router.get("/wishlists/{wishlist_id}/contributions", response_model=ContributionListEnvelope)
async def list_contributions(wishlist_id: str, manager: ManagerDep) -> ContributionListEnvelope:
    contributions = await manager.list_contributions(wishlist_id)
    return ContributionListEnvelope(
        contributions=[serialize_contribution(c) for c in contributions]
    )
