"""
List Service

Business logic for lists: access checks, CRUD, copies, pins, the shared and
collaboration views, and the editor's item operations. Documents leave this
module in their API shape (see `ListService.enhance`).
"""

import copy
from typing import Any, Dict, List, Optional

from loguru import logger

from favely.config import Settings
from favely.db.default_fields import new_list_document
from favely.db.list_storage import ListStorage
from favely.db.user_storage import UserStorage
from favely.errors import ForbiddenError, NotFoundError, UnauthorizedError, ValidationError
from favely.models.list_models import ItemOperation, ItemUpdate, ListCreate, ListUpdate
from favely.services import items as list_items
from favely.services import permissions
from favely.services.user_service import UserService
from favely.utils.pagination import Page, clamp_limit, next_cursor_of
from favely.utils.utils import to_iso

SORT_ORDERS = ("newest", "oldest")


def serialize_collaborator(collab: dict, include_email: bool = True) -> Dict[str, Any]:
    return {
        "clerkId": collab.get("clerkId"),
        "email": collab.get("email") if include_email else None,
        "role": collab.get("role"),
        "status": collab.get("status"),
        "invitedAt": to_iso(collab.get("invitedAt")),
        "acceptedAt": to_iso(collab.get("acceptedAt")),
        "isEmailInvite": bool(collab.get("_isEmailInvite", False)),
    }


class ListService:
    def __init__(self, lists: ListStorage, users: UserStorage, user_service: UserService, settings: Settings):
        self.lists = lists
        self.users = users
        self.user_service = user_service
        self.settings = settings

    # Presentation

    def enhance(self, docs: List[dict], viewer_id: Optional[str]) -> List[Dict[str, Any]]:
        """Turn list documents into API objects with owner profiles and viewer state."""
        if not docs:
            return []
        profiles = self.user_service.owner_profiles(d["owner"]["clerkId"] for d in docs if d.get("owner"))
        list_ids = [d["_id"] for d in docs]
        pinned = self.lists.pinned_among(viewer_id, list_ids) if viewer_id else set()
        viewed = self.lists.last_viewed(viewer_id, list_ids) if viewer_id else {}

        result = []
        for doc in docs:
            owner = doc.get("owner") or {}
            profile = profiles.get(owner.get("clerkId"), {})
            role = permissions.role_of(doc, viewer_id)
            stats = {"viewCount": 0, "pinCount": 0, "copyCount": 0, **(doc.get("stats") or {})}
            result.append({
                "id": str(doc["_id"]),
                "title": doc.get("title"),
                "description": doc.get("description"),
                "category": doc.get("category"),
                "visibility": doc.get("visibility", permissions.PUBLIC),
                "listType": doc.get("listType", "ordered"),
                "owner": {
                    "id": owner.get("clerkId"),
                    "clerkId": owner.get("clerkId"),
                    "username": profile.get("username") or owner.get("username"),
                    "displayName": profile.get("displayName") or owner.get("username"),
                    "imageUrl": profile.get("imageUrl"),
                    "joinedAt": to_iso(owner.get("joinedAt")),
                },
                "items": doc.get("items") or [],
                "stats": stats,
                "collaborators": [
                    serialize_collaborator(c, include_email=role is not None)
                    for c in doc.get("collaborators") or []
                    if role is not None or c.get("status") == permissions.ACCEPTED
                ],
                "createdAt": to_iso(doc.get("createdAt")),
                "updatedAt": to_iso(doc.get("updatedAt")),
                "editedAt": to_iso(doc.get("editedAt")),
                "isPinned": doc["_id"] in pinned,
                "lastViewedAt": to_iso(viewed.get(doc["_id"])),
                "role": role,
            })
        return result

    def enhance_one(self, doc: dict, viewer_id: Optional[str]) -> Dict[str, Any]:
        return self.enhance([doc], viewer_id)[0]

    # Access

    def _readable(self, list_id: str, viewer_id: Optional[str]) -> dict:
        doc = self.lists.get(list_id)
        if doc is None or not permissions.can_view(doc, viewer_id):
            raise NotFoundError("List not found")
        return doc

    def _editable(self, list_id: str, user_id: str) -> dict:
        doc = self._readable(list_id, user_id)
        if not permissions.can_edit(doc, user_id):
            raise ForbiddenError("You do not have permission to edit this list")
        return doc

    def _local_user(self, user_id: str) -> dict:
        user = self.user_service.resolve_user(user_id)
        if user is None:
            raise UnauthorizedError("User not found")
        return user

    # Queries

    def query_lists(
        self,
        query: dict,
        viewer_id: Optional[str],
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
        sort: str = "newest",
    ) -> Page:
        if sort not in SORT_ORDERS:
            raise ValidationError(f"Unknown sort order: {sort}")
        limit = clamp_limit(limit, self.settings.default_page_size, self.settings.max_page_size)
        docs, has_more = self.lists.find_page(query, cursor=cursor, limit=limit, ascending=sort == "oldest")
        return Page(items=self.enhance(docs, viewer_id), next_cursor=next_cursor_of(docs, has_more), has_more=has_more)

    def my_lists(
        self,
        user_id: str,
        category: Optional[str] = None,
        visibility: Optional[str] = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
        sort: str = "newest",
    ) -> Page:
        query: Dict[str, Any] = {"owner.clerkId": user_id}
        if category:
            query["category"] = category
        if visibility:
            query["visibility"] = visibility
        return self.query_lists(query, user_id, cursor, limit, sort)

    def user_lists(
        self,
        username: str,
        viewer_id: Optional[str],
        category: Optional[str] = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
        sort: str = "newest",
    ) -> Page:
        owner = self.user_service.find_by_username(username)
        conditions = [{"owner.clerkId": owner["clerkId"]}, permissions.visible_filter(viewer_id)]
        if category:
            conditions.append({"category": category})
        return self.query_lists({"$and": conditions}, viewer_id, cursor, limit, sort)

    def get_list(self, list_id: str, viewer_id: Optional[str]) -> Dict[str, Any]:
        doc = self._readable(list_id, viewer_id)
        role = permissions.role_of(doc, viewer_id)
        if role != permissions.OWNER:
            self.lists.increment_stat(doc["_id"], "viewCount")
            doc.setdefault("stats", {})
            doc["stats"]["viewCount"] = doc["stats"].get("viewCount", 0) + 1
        # lastViewedAt reports the previous visit
        result = self.enhance_one(doc, viewer_id)
        if viewer_id:
            self.lists.record_view(viewer_id, doc["_id"], role or doc.get("visibility", permissions.PUBLIC))
        return result

    # Mutations

    def create_list(self, user_id: str, payload: ListCreate) -> Dict[str, Any]:
        user = self._local_user(user_id)
        doc = new_list_document(
            title=payload.title.strip(),
            description=payload.description,
            category=payload.category,
            visibility=payload.visibility,
            listType=payload.list_type,
            items=list_items.normalize_items(i.model_dump(by_alias=True) for i in payload.items),
            owner={
                "userId": user.get("_id"),
                "clerkId": user["clerkId"],
                "username": user.get("username"),
                "joinedAt": user.get("createdAt"),
            },
        )
        list_id = self.lists.insert(doc)
        self.users.increment(user_id, "listCount", 1)
        logger.bind(list_id=str(list_id), user_id=user_id).info("✔ [Lists] List created")
        return self.enhance_one(self.lists.get(list_id), user_id)

    def _check_visibility_change(self, doc: dict, user_id: str, visibility: Optional[str]) -> None:
        if visibility is None or visibility == doc.get("visibility"):
            return
        if not permissions.can_change_visibility(doc, user_id):
            raise ForbiddenError("Only the owner can change the list visibility")

    def replace_list(self, list_id: str, user_id: str, payload: ListCreate) -> Dict[str, Any]:
        doc = self._editable(list_id, user_id)
        self._check_visibility_change(doc, user_id, payload.visibility)
        fields = {
            "title": payload.title.strip(),
            "description": payload.description,
            "category": payload.category,
            "visibility": payload.visibility,
            "listType": payload.list_type,
            "items": list_items.normalize_items(i.model_dump(by_alias=True) for i in payload.items),
        }
        updated = self.lists.update_fields(doc["_id"], fields)
        logger.bind(list_id=list_id, user_id=user_id).info("✔ [Lists] List replaced")
        return self.enhance_one(updated, user_id)

    def patch_list(self, list_id: str, user_id: str, payload: ListUpdate) -> Dict[str, Any]:
        doc = self._editable(list_id, user_id)
        fields = payload.model_dump(by_alias=True, exclude_unset=True, exclude={"items"})
        # only the description may be cleared
        fields = {k: v for k, v in fields.items() if v is not None or k == "description"}
        if "title" in fields:
            fields["title"] = fields["title"].strip()
        if payload.items is not None:
            fields["items"] = list_items.normalize_items(i.model_dump(by_alias=True) for i in payload.items)
        if not fields:
            raise ValidationError("No fields to update")
        self._check_visibility_change(doc, user_id, fields.get("visibility"))
        updated = self.lists.update_fields(doc["_id"], fields)
        logger.bind(list_id=list_id, user_id=user_id, fields=sorted(fields)).info("✔ [Lists] List updated")
        return self.enhance_one(updated, user_id)

    def delete_list(self, list_id: str, user_id: str) -> None:
        doc = self._readable(list_id, user_id)
        if not permissions.can_delete(doc, user_id):
            raise ForbiddenError("Only the owner can delete this list")
        if self.lists.delete(doc["_id"]):
            self.users.increment(doc["owner"]["clerkId"], "listCount", -1)
        logger.bind(list_id=list_id, user_id=user_id).info("✔ [Lists] List deleted")

    def copy_list(self, list_id: str, user_id: str) -> Dict[str, Any]:
        original = self._readable(list_id, user_id)
        user = self._local_user(user_id)
        doc = new_list_document(
            title=f"{original.get('title')} (Copy)",
            description=original.get("description"),
            category=original.get("category", "other"),
            visibility=permissions.PRIVATE,
            listType=original.get("listType", "ordered"),
            items=copy.deepcopy(original.get("items") or []),
            owner={
                "userId": user.get("_id"),
                "clerkId": user["clerkId"],
                "username": user.get("username"),
                "joinedAt": user.get("createdAt"),
            },
        )
        new_id = self.lists.insert(doc)
        self.lists.increment_stat(original["_id"], "copyCount")
        self.users.increment(user_id, "listCount", 1)
        logger.bind(list_id=list_id, copy_id=str(new_id), user_id=user_id).info("✔ [Lists] List copied")
        return self.enhance_one(self.lists.get(new_id), user_id)

    # Pins

    def pin_list(self, list_id: str, user_id: str) -> Dict[str, Any]:
        doc = self._readable(list_id, user_id)
        pin_count = (doc.get("stats") or {}).get("pinCount", 0)
        if self.lists.pin(user_id, doc["_id"]):
            self.lists.increment_stat(doc["_id"], "pinCount", 1)
            pin_count += 1
        return {"isPinned": True, "pinCount": pin_count}

    def unpin_list(self, list_id: str, user_id: str) -> Dict[str, Any]:
        doc = self.lists.get(list_id)
        if doc is None:
            raise NotFoundError("List not found")
        pin_count = (doc.get("stats") or {}).get("pinCount", 0)
        if self.lists.unpin(user_id, doc["_id"]):
            self.lists.increment_stat(doc["_id"], "pinCount", -1)
            pin_count = max(0, pin_count - 1)
        return {"isPinned": False, "pinCount": pin_count}

    def pinned_lists(self, user_id: str, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page:
        list_ids = self.lists.pinned_list_ids(user_id)
        query = {"$and": [{"_id": {"$in": list_ids}}, permissions.readable_filter(user_id)]}
        return self.query_lists(query, user_id, cursor, limit)

    def shared_lists(self, user_id: str, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page:
        query = {"$or": [
            {"collaborators": {"$elemMatch": {"clerkId": user_id, "status": permissions.ACCEPTED}}},
            {"owner.clerkId": user_id, "collaborators.0": {"$exists": True}},
        ]}
        return self.query_lists(query, user_id, cursor, limit)

    def collab_lists(self, user_id: str, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page:
        query = {"collaborators": {"$elemMatch": {"clerkId": user_id, "status": permissions.ACCEPTED}}}
        return self.query_lists(query, user_id, cursor, limit)

    def pending_collaborations(self, user_id: str) -> Dict[str, Any]:
        user = self._local_user(user_id)
        docs = {d["_id"]: d for d in self.lists.with_collaborator(user_id, permissions.PENDING)}
        if user.get("email"):
            for doc in self.lists.email_invites_for(user["email"]):
                docs.setdefault(doc["_id"], doc)

        profiles = self.user_service.owner_profiles(d["owner"]["clerkId"] for d in docs.values())
        invitations = []
        for doc in docs.values():
            invite = next((
                c for c in doc.get("collaborators") or []
                if c.get("status") == permissions.PENDING
                and (c.get("clerkId") == user_id or (not c.get("clerkId") and c.get("email") == user.get("email")))
            ), None)
            if invite is None:
                continue
            owner_id = doc["owner"]["clerkId"]
            invitations.append({
                "listId": str(doc["_id"]),
                "title": doc.get("title"),
                "category": doc.get("category"),
                "role": invite.get("role"),
                "invitedAt": to_iso(invite.get("invitedAt")),
                "owner": {"id": owner_id, **profiles.get(owner_id, {"username": doc["owner"].get("username")})},
            })
        return {"invitations": invitations, "total": len(invitations)}

    # Items

    def update_item(self, list_id: str, user_id: str, update: ItemUpdate) -> Dict[str, Any]:
        doc = self._editable(list_id, user_id)
        details = update.model_dump(by_alias=True, exclude_unset=True, exclude={"index"})
        items = list_items.update_item(doc.get("items") or [], update.index, details)
        updated = self.lists.update_fields(doc["_id"], {"items": items})
        logger.bind(list_id=list_id, index=update.index).debug("  › [Lists] Item updated")
        return self.enhance_one(updated, user_id)

    def edit_items(self, list_id: str, user_id: str, operation: ItemOperation) -> Dict[str, Any]:
        doc = self._editable(list_id, user_id)
        params = operation.model_dump(exclude={"op", "item"})
        item = operation.item.model_dump(by_alias=True) if operation.item else None
        items = list_items.apply_operation(doc.get("items") or [], operation.op, item=item, **params)
        updated = self.lists.update_fields(doc["_id"], {"items": items})
        logger.bind(list_id=list_id, op=operation.op).debug("  › [Lists] Item operation applied")
        return self.enhance_one(updated, user_id)
