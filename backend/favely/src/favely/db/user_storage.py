import re
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Set

from loguru import logger
from pymongo import DESCENDING, UpdateOne
from pymongo.errors import DuplicateKeyError

from favely.db.default_fields import new_user_document
from favely.db.mongo_client import MongoConnection
from favely.utils.retry import retrying
from favely.utils.utils import utcnow


def search_index(username: str, display_name: str) -> str:
    return f"{username or ''} {display_name or ''}".strip().lower()


def name_pattern(query: str) -> dict:
    """Case-insensitive substring match on the given text, regex-escaped."""
    return {"$regex": re.escape(query), "$options": "i"}


class UserStorage:
    """Storage for users, follow relationships and the identity-provider profile cache."""

    def __init__(self, connection: MongoConnection):
        self.connection = connection
        self.retries = connection.settings.db_max_retries
        self.retry_delay = connection.settings.db_initial_retry_delay_ms / 1000.0

    @property
    def users(self):
        return self.connection.users

    @property
    def follows(self):
        return self.connection.follows

    @retrying
    def get_by_clerk_id(self, clerk_id: str) -> Optional[dict]:
        return self.users.find_one({"clerkId": clerk_id})

    @retrying
    def get_by_username(self, username: str) -> Optional[dict]:
        return self.users.find_one({"username": username})

    @retrying
    def get_by_email(self, email: str) -> Optional[dict]:
        return self.users.find_one({"email": email.lower()})

    @retrying
    def get_many_by_clerk_ids(self, clerk_ids: Iterable[str]) -> List[dict]:
        return list(self.users.find({"clerkId": {"$in": list(clerk_ids)}}))

    @retrying
    def all_users(self, skip: int = 0, limit: int = 0) -> List[dict]:
        cursor = self.users.find({}).sort("_id", 1).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def upsert_from_identity(self, identity_user) -> dict:
        """Create or refresh the local user from an identity-provider record."""
        username = identity_user.username or identity_user.id
        display_name = identity_user.display_name
        now = utcnow()
        fields = {
            "username": username,
            "displayName": display_name,
            "imageUrl": identity_user.image_url,
            "searchIndex": search_index(username, display_name),
            "updatedAt": now,
        }
        if identity_user.email:
            fields["email"] = identity_user.email.lower()

        self._release_username(username, identity_user.id)
        existing = self.get_by_clerk_id(identity_user.id)
        if existing is not None:
            self._update(identity_user.id, fields)
            existing.update(fields)
            return existing

        doc = new_user_document(clerkId=identity_user.id, createdAt=now, **fields)
        try:
            self._insert(doc)
        except DuplicateKeyError:
            existing = self.get_by_clerk_id(identity_user.id)
            if existing is not None:
                # lost a race with a concurrent request for the same user
                return existing
            self._release_username(username, identity_user.id)
            self._insert(doc)
        logger.bind(user_id=identity_user.id).info("  › [DB] User created from identity provider")
        return doc

    def _release_username(self, username: str, clerk_id: str) -> None:
        """
        Move `username` away from a local user other than `clerk_id`.

        The identity provider keeps usernames unique, so a different holder
        is a stale copy (renamed or deleted upstream without a webhook). It
        falls back to its clerkId until its own next sync.
        """
        holder = self.get_by_username(username)
        if holder is None or holder.get("clerkId") == clerk_id:
            return
        placeholder = holder["clerkId"]
        self._update(placeholder, {
            "username": placeholder,
            "searchIndex": search_index(placeholder, holder.get("displayName")),
            "updatedAt": utcnow(),
        })
        logger.bind(user_id=placeholder, username=username).warning("  ! [DB] Stale username holder renamed")

    @retrying
    def _insert(self, doc: dict) -> None:
        self.users.insert_one(doc)

    @retrying
    def _update(self, clerk_id: str, fields: dict) -> None:
        self.users.update_one({"clerkId": clerk_id}, {"$set": fields})

    def update_profile(self, clerk_id: str, fields: dict) -> Optional[dict]:
        fields = dict(fields)
        fields["updatedAt"] = utcnow()
        self._update(clerk_id, fields)
        return self.get_by_clerk_id(clerk_id)

    @retrying
    def increment(self, clerk_id: str, field: str, amount: int = 1) -> None:
        self.users.update_one({"clerkId": clerk_id}, {"$inc": {field: amount}})

    @retrying
    def delete(self, clerk_id: str) -> bool:
        result = self.users.delete_one({"clerkId": clerk_id})
        self.connection.user_cache.delete_one({"clerkId": clerk_id})
        return result.deleted_count > 0

    def _search_query(self, query: str, exclude_clerk_id: Optional[str]) -> dict:
        conditions = [{"$or": [{"username": name_pattern(query)}, {"displayName": name_pattern(query)}]}]
        if exclude_clerk_id:
            conditions.append({"clerkId": {"$ne": exclude_clerk_id}})
        return {"$and": conditions}

    @retrying
    def search(self, query: str, exclude_clerk_id: Optional[str] = None, skip: int = 0, limit: int = 10) -> List[dict]:
        projection = {"clerkId": 1, "username": 1, "displayName": 1, "imageUrl": 1}
        cursor = self.users.find(self._search_query(query, exclude_clerk_id), projection).sort("username", 1)
        return list(cursor.skip(skip).limit(limit))

    @retrying
    def count_search(self, query: str, exclude_clerk_id: Optional[str] = None) -> int:
        return self.users.count_documents(self._search_query(query, exclude_clerk_id))

    # Follows

    def follow(self, follower_id: str, following_id: str) -> bool:
        """Create the relationship; counters move only when it is new."""
        created = self._upsert_follow(follower_id, following_id)
        if created:
            self.increment(follower_id, "followingCount", 1)
            self.increment(following_id, "followersCount", 1)
        return created

    @retrying
    def _upsert_follow(self, follower_id: str, following_id: str) -> bool:
        result = self.follows.update_one(
            {"followerId": follower_id, "followingId": following_id},
            {"$setOnInsert": {
                "followerId": follower_id,
                "followingId": following_id,
                "status": "accepted",
                "createdAt": utcnow(),
            }},
            upsert=True,
        )
        return result.upserted_id is not None

    def unfollow(self, follower_id: str, following_id: str) -> bool:
        removed = self._delete_follow(follower_id, following_id)
        if removed:
            self.increment(follower_id, "followingCount", -1)
            self.increment(following_id, "followersCount", -1)
        return removed

    @retrying
    def _delete_follow(self, follower_id: str, following_id: str) -> bool:
        return self.follows.delete_one({"followerId": follower_id, "followingId": following_id}).deleted_count > 0

    @retrying
    def is_following(self, follower_id: str, following_id: str) -> bool:
        return self.follows.count_documents(
            {"followerId": follower_id, "followingId": following_id, "status": "accepted"}
        ) > 0

    @retrying
    def following_ids(self, clerk_id: str, skip: int = 0, limit: int = 0) -> List[dict]:
        cursor = self.follows.find({"followerId": clerk_id, "status": "accepted"}).sort("createdAt", DESCENDING).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    @retrying
    def follower_ids(self, clerk_id: str, skip: int = 0, limit: int = 0) -> List[dict]:
        cursor = self.follows.find({"followingId": clerk_id, "status": "accepted"}).sort("createdAt", DESCENDING).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    @retrying
    def count_following(self, clerk_id: str) -> int:
        return self.follows.count_documents({"followerId": clerk_id, "status": "accepted"})

    @retrying
    def count_followers(self, clerk_id: str) -> int:
        return self.follows.count_documents({"followingId": clerk_id, "status": "accepted"})

    @retrying
    def following_among(self, clerk_id: str, candidate_ids: Iterable[str]) -> Set[str]:
        follows = self.follows.find(
            {"followerId": clerk_id, "followingId": {"$in": list(candidate_ids)}, "status": "accepted"}
        )
        return {f["followingId"] for f in follows}

    def delete_follows_of(self, clerk_id: str) -> None:
        """Remove every relationship touching the user and fix the other side's counters."""
        for follow in self.following_ids(clerk_id):
            self.unfollow(clerk_id, follow["followingId"])
        for follow in self.follower_ids(clerk_id):
            self.unfollow(follow["followerId"], clerk_id)

    # Identity-provider profile cache

    @retrying
    def cached_users(self, clerk_ids: Iterable[str], max_age_seconds: int) -> List[dict]:
        cutoff = utcnow() - timedelta(seconds=max_age_seconds)
        return list(self.connection.user_cache.find({
            "clerkId": {"$in": list(clerk_ids)},
            "lastSynced": {"$gt": cutoff},
        }))

    @retrying
    def store_cached_users(self, entries: List[dict]) -> None:
        if not entries:
            return
        now: datetime = utcnow()
        ops = [
            UpdateOne(
                {"clerkId": entry["clerkId"]},
                {"$set": {**entry, "lastSynced": now}},
                upsert=True,
            )
            for entry in entries
        ]
        self.connection.user_cache.bulk_write(ops)
