"""Recompute wishlist totals from items/contributions and repair friend edges.

Usage: python scripts/reconcile_totals.py [--wishlist ID] [--skip-friends]
"""
import argparse
import asyncio

from wishqr.core.logger import configure_logging
from wishqr.db.session import async_session_factory, ensure_schema_ready
from wishqr.services.friends import FriendGraph
from wishqr.services.wishlists import WishlistManager


async def run(wishlist_id: str | None, repair_friends: bool) -> None:
    await ensure_schema_ready()
    async with async_session_factory() as session:
        manager = WishlistManager(session)
        if wishlist_id:
            outcomes = [await manager.reconcile(wishlist_id)]
        else:
            outcomes = await manager.reconcile_all()

        repaired = [o for o in outcomes if o.repaired]
        for outcome in repaired:
            print(
                f"wishlist={outcome.wishlist.id} "
                f"total_drift={outcome.total_drift} collected_drift={outcome.collected_drift}"
            )
        print(f"checked={len(outcomes)} repaired={len(repaired)}")

        if repair_friends:
            edges = await FriendGraph(session).repair_asymmetric_edges()
            print(f"friend_edges_repaired={edges}")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--wishlist", default=None, help="Only reconcile this wishlist id")
    parser.add_argument("--skip-friends", action="store_true")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(run(args.wishlist, not args.skip_friends))


if __name__ == "__main__":
    main()
