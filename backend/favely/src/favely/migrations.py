"""
Data migrations (`favely-migrate`).

Usage
-----
favely-migrate rename-privacy-to-visibility [--yes]
favely-migrate update-list-type
favely-migrate add-user-image-urls [--batch-size 50]
favely-migrate ensure-indexes

Each command runs against the database configured through `BACKEND__*`
settings and prints a short report.
"""

import argparse
import time
from typing import Callable, Dict, List, Optional

from loguru import logger
from pymongo import UpdateOne

from favely.db.mongo_client import MongoConnection
from favely.providers.base import IdentityProvider
from favely.utils.logger import configure_logging

PROD_WAIT_SECONDS = 5
IMAGE_URL_BATCH_SIZE = 50
BATCH_PAUSE_SECONDS = 1.0


def rename_privacy_to_visibility(
    connection: MongoConnection,
    confirmed: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, int]:
    if "prod" in connection.db_name.lower() and not confirmed:
        logger.warning(
            f"  ! [Migrate] Database '{connection.db_name}' looks like production, "
            f"continuing in {PROD_WAIT_SECONDS}s (Ctrl+C to abort)"
        )
        sleep(PROD_WAIT_SECONDS)

    result = connection.lists.update_many(
        {"privacy": {"$exists": True}, "visibility": {"$exists": False}},
        {"$rename": {"privacy": "visibility"}},
    )
    remaining = connection.lists.count_documents({"privacy": {"$exists": True}})
    stats = {"matched": result.matched_count, "modified": result.modified_count, "remaining": remaining}
    logger.info(f"  ✔ [Migrate] privacy -> visibility: {stats}")
    if remaining:
        logger.warning(f"  ! [Migrate] {remaining} lists still carry a `privacy` field")
    return stats


def update_list_type(connection: MongoConnection) -> Dict[str, int]:
    result = connection.lists.update_many({"listType": "bullets"}, {"$set": {"listType": "bullet"}})
    stats = {"matched": result.matched_count, "modified": result.modified_count}
    logger.info(f"  ✔ [Migrate] listType bullets -> bullet: {stats}")
    return stats


def add_user_image_urls(
    connection: MongoConnection,
    identity: IdentityProvider,
    batch_size: int = IMAGE_URL_BATCH_SIZE,
    pause: float = BATCH_PAUSE_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, int]:
    """Copy profile image URLs from the identity provider onto local users, batch by batch."""
    stats = {"total": connection.users.count_documents({}), "updated": 0, "skipped": 0, "batches": 0}
    skip = 0
    while True:
        users: List[dict] = list(
            connection.users.find({}, {"clerkId": 1, "imageUrl": 1}).sort("_id", 1).skip(skip).limit(batch_size)
        )
        if not users:
            break
        skip += len(users)
        stats["batches"] += 1

        fetched = {u.id: u for u in identity.get_user_list([u["clerkId"] for u in users])}
        ops = []
        for user in users:
            identity_user = fetched.get(user["clerkId"])
            if identity_user is None or not identity_user.image_url or identity_user.image_url == user.get("imageUrl"):
                stats["skipped"] += 1
                continue
            ops.append(UpdateOne({"_id": user["_id"]}, {"$set": {"imageUrl": identity_user.image_url}}))
        if ops:
            stats["updated"] += connection.users.bulk_write(ops).modified_count
        logger.info(f"  › [Migrate] Batch {stats['batches']}: {len(ops)} image URLs updated")

        if len(users) < batch_size:
            break
        sleep(pause)

    logger.info(f"  ✔ [Migrate] User image URLs: {stats}")
    return stats


def _cmd_rename(args: argparse.Namespace, connection: MongoConnection, identity: Optional[IdentityProvider]) -> Dict[str, int]:
    return rename_privacy_to_visibility(connection, confirmed=args.yes)


def _cmd_list_type(args: argparse.Namespace, connection: MongoConnection, identity: Optional[IdentityProvider]) -> Dict[str, int]:
    return update_list_type(connection)


def _cmd_image_urls(args: argparse.Namespace, connection: MongoConnection, identity: Optional[IdentityProvider]) -> Dict[str, int]:
    if identity is None:
        from favely.config import get_settings
        from favely.providers.clerk import ClerkIdentityProvider

        identity = ClerkIdentityProvider(get_settings())
    return add_user_image_urls(connection, identity, batch_size=args.batch_size)


def _cmd_indexes(args: argparse.Namespace, connection: MongoConnection, identity: Optional[IdentityProvider]) -> Dict[str, int]:
    connection.ensure_indexes()
    return {}


def main(
    argv: Optional[List[str]] = None,
    connection: Optional[MongoConnection] = None,
    identity: Optional[IdentityProvider] = None,
) -> int:
    p = argparse.ArgumentParser(prog="favely-migrate", description="Favely data migrations")
    sp = p.add_subparsers(dest="cmd", required=True)

    pr = sp.add_parser("rename-privacy-to-visibility", help="Rename the lists' `privacy` field to `visibility`")
    pr.add_argument("--yes", action="store_true", help="Skip the production safety pause")
    pr.set_defaults(func=_cmd_rename)

    pt = sp.add_parser("update-list-type", help="Normalize listType 'bullets' to 'bullet'")
    pt.set_defaults(func=_cmd_list_type)

    pi = sp.add_parser("add-user-image-urls", help="Fill users' imageUrl from the identity provider")
    pi.add_argument("--batch-size", type=int, default=IMAGE_URL_BATCH_SIZE)
    pi.set_defaults(func=_cmd_image_urls)

    px = sp.add_parser("ensure-indexes", help="Create all collection indexes")
    px.set_defaults(func=_cmd_indexes)

    ns = p.parse_args(argv)
    if connection is None:
        configure_logging(app_name="favely", service="migrate")

    owned = connection is None
    connection = connection or MongoConnection()
    try:
        stats = ns.func(ns, connection, identity)
    finally:
        if owned:
            connection.close()
    for key, value in stats.items():
        print(f"{key}: {value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
