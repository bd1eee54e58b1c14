from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from bson import ObjectId
from loguru import logger
from pymongo import ASCENDING, DESCENDING

from favely.db.mongo_client import MongoConnection
from favely.utils.pagination import decode_cursor, split_page
from favely.utils.retry import retrying
from favely.utils.utils import parse_object_id, utcnow

STAT_FIELDS = {"viewCount", "pinCount", "copyCount"}


class ListStorage:
    """
    Storage for list documents and the per-user state attached to them
    (pins and last views).
    """

    def __init__(self, connection: MongoConnection):
        self.connection = connection
        self.retries = connection.settings.db_max_retries
        self.retry_delay = connection.settings.db_initial_retry_delay_ms / 1000.0

    @property
    def lists(self):
        return self.connection.lists

    @retrying
    def insert(self, doc: dict) -> ObjectId:
        now = utcnow()
        doc = dict(doc)
        doc.setdefault("createdAt", now)
        doc["updatedAt"] = now
        result = self.lists.insert_one(doc)
        logger.bind(list_id=str(result.inserted_id)).info("  › [DB] List created")
        return result.inserted_id

    @retrying
    def get(self, list_id) -> Optional[dict]:
        oid = parse_object_id(list_id)
        if oid is None:
            return None
        return self.lists.find_one({"_id": oid})

    @retrying
    def find_page(
        self,
        query: dict,
        cursor: Optional[str] = None,
        limit: int = 20,
        ascending: bool = False,
    ) -> Tuple[List[dict], bool]:
        """
        Fetch one page of lists ordered by `_id` (newest first by default).

        Returns the page and whether more documents follow it.
        """
        if cursor:
            op = "$gt" if ascending else "$lt"
            query = {"$and": [query, {"_id": {op: decode_cursor(cursor)}}]}
        direction = ASCENDING if ascending else DESCENDING
        docs = list(self.lists.find(query).sort("_id", direction).limit(limit + 1))
        return split_page(docs, limit)

    @retrying
    def find(
        self,
        query: dict,
        projection: Optional[dict] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[dict]:
        cursor = self.lists.find(query, projection).sort("_id", DESCENDING)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    @retrying
    def count(self, query: dict) -> int:
        return self.lists.count_documents(query)

    @retrying
    def update_fields(self, list_id: ObjectId, fields: dict, touch_edited: bool = True) -> Optional[dict]:
        now = utcnow()
        update = dict(fields)
        update["updatedAt"] = now
        if touch_edited:
            update["editedAt"] = now
        self.lists.update_one({"_id": list_id}, {"$set": update})
        return self.lists.find_one({"_id": list_id})

    @retrying
    def increment_stat(self, list_id: ObjectId, name: str, amount: int = 1) -> None:
        if name not in STAT_FIELDS:
            raise ValueError(f"Unknown list stat: {name}")
        self.lists.update_one({"_id": list_id}, {"$inc": {f"stats.{name}": amount}})

    @retrying
    def delete(self, list_id: ObjectId) -> bool:
        result = self.lists.delete_one({"_id": list_id})
        if result.deleted_count:
            self.connection.pins.delete_many({"listId": list_id})
            self.connection.list_views.delete_many({"listId": list_id})
            logger.bind(list_id=str(list_id)).info("  › [DB] List deleted")
        return result.deleted_count > 0

    @retrying
    def rewrite_owner_username(self, clerk_id: str, username: str) -> None:
        self.lists.update_many({"owner.clerkId": clerk_id}, {"$set": {"owner.username": username}})

    # Collaborators

    @retrying
    def add_collaborator(self, list_id: ObjectId, collaborator: dict) -> None:
        self.lists.update_one(
            {"_id": list_id},
            {"$push": {"collaborators": collaborator}, "$set": {"updatedAt": utcnow()}},
        )

    @retrying
    def set_collaborator_fields(self, list_id: ObjectId, key: str, fields: dict) -> bool:
        """Update one collaborator in place, matched by clerkId first and then by email."""
        if not key:
            return False
        update = {f"collaborators.$.{name}": value for name, value in fields.items()}
        update["updatedAt"] = utcnow()
        for field, value in _collaborator_keys(key):
            result = self.lists.update_one({"_id": list_id, f"collaborators.{field}": value}, {"$set": update})
            if result.matched_count:
                return True
        return False

    @retrying
    def remove_collaborator(self, list_id: ObjectId, key: str) -> bool:
        if not key:
            return False
        for field, value in _collaborator_keys(key):
            result = self.lists.update_one(
                {"_id": list_id, f"collaborators.{field}": value},
                {"$pull": {"collaborators": {field: value}}, "$set": {"updatedAt": utcnow()}},
            )
            if result.matched_count:
                return True
        return False

    @retrying
    def with_collaborator(self, clerk_id: str, status: str) -> List[dict]:
        return list(
            self.lists.find({"collaborators": {"$elemMatch": {"clerkId": clerk_id, "status": status}}})
            .sort("_id", DESCENDING)
        )

    @retrying
    def email_invites_for(self, email: str) -> List[dict]:
        return list(self.lists.find({"collaborators": {"$elemMatch": {"email": email, "status": "pending"}}}))

    # Pins

    @retrying
    def pin(self, clerk_id: str, list_id: ObjectId) -> bool:
        now = utcnow()
        result = self.connection.pins.update_one(
            {"clerkId": clerk_id, "listId": list_id},
            {"$setOnInsert": {"clerkId": clerk_id, "listId": list_id, "createdAt": now, "lastViewedAt": now}},
            upsert=True,
        )
        return result.upserted_id is not None

    @retrying
    def unpin(self, clerk_id: str, list_id: ObjectId) -> bool:
        result = self.connection.pins.delete_one({"clerkId": clerk_id, "listId": list_id})
        return result.deleted_count > 0

    @retrying
    def pinned_list_ids(self, clerk_id: str) -> List[ObjectId]:
        pins = self.connection.pins.find({"clerkId": clerk_id}, {"listId": 1})
        return [p["listId"] for p in pins]

    @retrying
    def pinned_among(self, clerk_id: str, list_ids: Iterable[ObjectId]) -> Set[ObjectId]:
        pins = self.connection.pins.find({"clerkId": clerk_id, "listId": {"$in": list(list_ids)}}, {"listId": 1})
        return {p["listId"] for p in pins}

    @retrying
    def delete_pins_of(self, clerk_id: str) -> List[ObjectId]:
        list_ids = [p["listId"] for p in self.connection.pins.find({"clerkId": clerk_id}, {"listId": 1})]
        self.connection.pins.delete_many({"clerkId": clerk_id})
        self.connection.list_views.delete_many({"clerkId": clerk_id})
        return list_ids

    # Views

    @retrying
    def record_view(self, clerk_id: str, list_id: ObjectId, access_type: str) -> None:
        self.connection.list_views.update_one(
            {"clerkId": clerk_id, "listId": list_id},
            {"$set": {"lastViewedAt": utcnow(), "accessType": access_type}},
            upsert=True,
        )

    @retrying
    def last_viewed(self, clerk_id: str, list_ids: Iterable[ObjectId]) -> Dict[ObjectId, datetime]:
        views = self.connection.list_views.find({"clerkId": clerk_id, "listId": {"$in": list(list_ids)}})
        return {v["listId"]: v["lastViewedAt"] for v in views}


def _collaborator_keys(key: str) -> List[Tuple[str, str]]:
    return [("clerkId", key), ("email", key.lower())]


def matches_collaborator(collab: dict, key: str) -> bool:
    if not key:
        return False
    if collab.get("clerkId") and collab["clerkId"] == key:
        return True
    email = collab.get("email")
    return bool(email) and email.lower() == key.lower()
