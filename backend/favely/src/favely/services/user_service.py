from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from favely.config import Settings
from favely.db.list_storage import ListStorage
from favely.db.user_storage import UserStorage
from favely.errors import IdentityProviderError, NotFoundError, UnauthorizedError, ValidationError
from favely.models.user_models import ProfileUpdate
from favely.providers.base import IdentityProvider
from favely.providers.clerk import user_from_payload
from favely.services.permissions import visible_filter
from favely.utils.pagination import offset_page
from favely.utils.utils import to_iso

UNKNOWN_USER = "Unknown User"
USER_SEARCH_LIMIT = 10


def public_user(doc: dict) -> Dict[str, Any]:
    return {
        "id": doc["clerkId"],
        "username": doc.get("username") or "",
        "displayName": doc.get("displayName") or doc.get("username") or "",
        "imageUrl": doc.get("imageUrl") or None,
    }


def strip_at(username: str) -> str:
    return username[1:] if username.startswith("@") else username


class UserService:
    def __init__(
        self,
        users: UserStorage,
        lists: ListStorage,
        identity: IdentityProvider,
        settings: Settings,
    ):
        self.users = users
        self.lists = lists
        self.identity = identity
        self.settings = settings

    def resolve_user(self, user_id: str) -> Optional[dict]:
        """Local user document, created from the identity provider on first sight."""
        doc = self.users.get_by_clerk_id(user_id)
        if doc is not None:
            return doc
        identity_user = self.identity.get_user(user_id)
        if identity_user is None:
            return None
        return self.users.upsert_from_identity(identity_user)

    def require_user(self, user_id: str) -> dict:
        doc = self.resolve_user(user_id)
        if doc is None:
            raise NotFoundError("User not found")
        return doc

    def find_by_username(self, username: str) -> dict:
        username = strip_at(username)
        doc = self.users.get_by_username(username)
        if doc is not None:
            return doc
        identity_user = self.identity.get_user_by_username(username)
        if identity_user is None:
            raise NotFoundError("User not found")
        return self.users.upsert_from_identity(identity_user)

    def me(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        doc = self.resolve_user(user_id)
        if doc is None:
            return None
        return {
            "id": doc["clerkId"],
            "email": doc.get("email") or None,
            "username": doc.get("username"),
            "firstName": None,
            "lastName": None,
            "fullName": doc.get("displayName"),
            "imageUrl": doc.get("imageUrl"),
        }

    def owner_profiles(self, clerk_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """
        Display data for list owners, served from the profile cache.

        Entries older than the cache TTL are refreshed from the identity
        provider in one batch; if the provider is down, the local user
        documents are used instead.
        """
        ids = list(dict.fromkeys(i for i in clerk_ids if i))
        if not ids:
            return {}

        profiles: Dict[str, Dict[str, Any]] = {}
        for entry in self.users.cached_users(ids, self.settings.user_cache_ttl_seconds):
            profiles[entry["clerkId"]] = {
                "username": entry.get("username") or "",
                "displayName": entry.get("displayName") or "",
                "imageUrl": entry.get("imageUrl"),
            }

        missing = [i for i in ids if i not in profiles]
        if missing:
            try:
                fetched = self.identity.get_user_list(missing)
            except IdentityProviderError as e:
                logger.warning(f"  ! [Users] Profile refresh failed, using local users: {e}")
                fetched = []
            entries = [
                {
                    "clerkId": u.id,
                    "username": u.username or "",
                    "displayName": u.display_name,
                    "imageUrl": u.image_url,
                }
                for u in fetched
            ]
            self.users.store_cached_users(entries)
            for entry in entries:
                profiles[entry["clerkId"]] = {k: entry[k] for k in ("username", "displayName", "imageUrl")}

        still_missing = [i for i in ids if i not in profiles]
        if still_missing:
            for doc in self.users.get_many_by_clerk_ids(still_missing):
                profiles[doc["clerkId"]] = {
                    "username": doc.get("username") or "",
                    "displayName": doc.get("displayName") or doc.get("username") or "",
                    "imageUrl": doc.get("imageUrl"),
                }
        return profiles

    def batch_users(self, user_ids: Any) -> List[Dict[str, Any]]:
        if not isinstance(user_ids, list) or not user_ids:
            raise ValidationError("User IDs array is required")
        if not all(isinstance(i, str) and i for i in user_ids):
            raise ValidationError("User IDs must be non-empty strings")
        found = {doc["clerkId"]: doc for doc in self.users.get_many_by_clerk_ids(user_ids)}
        result = []
        for user_id in user_ids:
            doc = found.get(user_id)
            if doc is None:
                result.append({"id": user_id, "username": UNKNOWN_USER, "displayName": UNKNOWN_USER, "imageUrl": None})
            else:
                result.append(public_user(doc))
        return result

    def search_users(self, query: Optional[str], current_user_id: Optional[str]) -> Dict[str, Any]:
        if not query or not query.strip():
            return {"users": []}
        docs = self.users.search(query.strip(), exclude_clerk_id=current_user_id, limit=USER_SEARCH_LIMIT)
        return {"users": [public_user(doc) for doc in docs]}

    # Follows

    def follow(self, user_id: str, username: str) -> Dict[str, Any]:
        follower = self.require_user(user_id)
        target = self.find_by_username(username)
        if target["clerkId"] == follower["clerkId"]:
            raise ValidationError("You cannot follow yourself")
        created = self.users.follow(follower["clerkId"], target["clerkId"])
        if created:
            logger.bind(user_id=user_id, following=target["clerkId"]).info("► [Users] Followed user")
        return {"isFollowing": True, "followersCount": self.users.count_followers(target["clerkId"])}

    def unfollow(self, user_id: str, username: str) -> Dict[str, Any]:
        target = self.find_by_username(username)
        removed = self.users.unfollow(user_id, target["clerkId"])
        if removed:
            logger.bind(user_id=user_id, following=target["clerkId"]).info("► [Users] Unfollowed user")
        return {"isFollowing": False, "followersCount": self.users.count_followers(target["clerkId"])}

    def follow_status(self, viewer_id: Optional[str], username: str) -> Dict[str, Any]:
        target = self.find_by_username(username)
        if not viewer_id:
            return {"isFollowing": False}
        return {"isFollowing": self.users.is_following(viewer_id, target["clerkId"])}

    def followers(self, user_id: str, page: int, limit: int) -> Dict[str, Any]:
        page, limit, skip = offset_page(page, limit, self.settings.max_page_size)
        follows = self.users.follower_ids(user_id, skip=skip, limit=limit)
        total = self.users.count_followers(user_id)
        docs = {d["clerkId"]: d for d in self.users.get_many_by_clerk_ids([f["followerId"] for f in follows])}
        followers = []
        for follow in follows:
            doc = docs.get(follow["followerId"])
            if doc is None:
                continue
            followers.append({
                **public_user(doc),
                "bio": doc.get("bio"),
                "followersCount": doc.get("followersCount", 0),
                "followingCount": doc.get("followingCount", 0),
            })
        return {
            "followers": followers,
            "total": total,
            "page": page,
            "pageSize": limit,
            "hasMore": total > skip + len(follows),
        }

    def following(self, user_id: str, page: int, limit: int) -> Dict[str, Any]:
        page, limit, skip = offset_page(page, limit, self.settings.max_page_size)
        follows = self.users.following_ids(user_id, skip=skip, limit=limit)
        total = self.users.count_following(user_id)
        docs = {d["clerkId"]: d for d in self.users.get_many_by_clerk_ids([f["followingId"] for f in follows])}
        following = [public_user(docs[f["followingId"]]) for f in follows if f["followingId"] in docs]
        return {
            "following": following,
            "total": total,
            "page": page,
            "limit": limit,
            "hasMore": total > skip + len(follows),
        }

    def following_of(self, username: str) -> Dict[str, Any]:
        profile_user = self.find_by_username(username)
        follows = self.users.following_ids(profile_user["clerkId"])
        docs = {d["clerkId"]: d for d in self.users.get_many_by_clerk_ids([f["followingId"] for f in follows])}
        results = []
        for follow in follows:
            doc = docs.get(follow["followingId"])
            results.append({
                "followingId": follow["followingId"],
                "status": follow.get("status", "accepted"),
                "createdAt": to_iso(follow.get("createdAt")),
                "user": public_user(doc) if doc else None,
            })
        return {"results": results, "total": len(results)}

    # Profiles

    def profile(self, username: str, viewer_id: Optional[str]) -> Dict[str, Any]:
        doc = self.find_by_username(username)
        is_self = viewer_id == doc["clerkId"]
        privacy = doc.get("privacySettings") or {}
        result = {
            **public_user(doc),
            "bio": doc.get("bio"),
            "location": doc.get("location"),
            "followersCount": doc.get("followersCount", 0),
            "followingCount": doc.get("followingCount", 0),
            "listCount": self.lists.count({"$and": [{"owner.clerkId": doc["clerkId"]}, visible_filter(viewer_id)]}),
            "createdAt": to_iso(doc.get("createdAt")),
            "isFollowing": bool(viewer_id) and not is_self and self.users.is_following(viewer_id, doc["clerkId"]),
            "isSelf": is_self,
        }
        if is_self or privacy.get("showDateOfBirth", False):
            result["dateOfBirth"] = to_iso(doc.get("dateOfBirth"))
        if is_self or privacy.get("showGender", True):
            result["gender"] = doc.get("gender")
        if is_self or privacy.get("showLivingStatus", True):
            result["livingStatus"] = doc.get("livingStatus")
        if is_self:
            result["privacySettings"] = privacy
        return result

    def update_profile(self, user_id: str, update: ProfileUpdate) -> Dict[str, Any]:
        doc = self.resolve_user(user_id)
        if doc is None:
            raise UnauthorizedError()
        fields = update.model_dump(by_alias=True, exclude_unset=True, exclude={"privacy_settings"})
        if isinstance(fields.get("dateOfBirth"), date):
            dob = fields["dateOfBirth"]
            fields["dateOfBirth"] = datetime(dob.year, dob.month, dob.day)
        if update.privacy_settings is not None:
            for key, value in update.privacy_settings.model_dump(by_alias=True, exclude_none=True).items():
                fields[f"privacySettings.{key}"] = value
        if fields:
            self.users.update_profile(user_id, fields)
        return self.profile(doc["username"], user_id)

    # Identity-provider webhooks

    def sync_from_webhook(self, event_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ctx_logger = logger.bind(event=event_type, user_id=data.get("id"))
        if event_type in ("user.created", "user.updated"):
            identity_user = user_from_payload(data)
            previous = self.users.get_by_clerk_id(identity_user.id)
            doc = self.users.upsert_from_identity(identity_user)
            self.users.store_cached_users([{
                "clerkId": identity_user.id,
                "username": doc.get("username") or "",
                "displayName": doc.get("displayName") or "",
                "imageUrl": doc.get("imageUrl"),
            }])
            if previous is not None and previous.get("username") != doc.get("username"):
                self.lists.rewrite_owner_username(identity_user.id, doc["username"])
            ctx_logger.info("✔ [Users] User synced from identity provider")
            return {"synced": True}

        if event_type == "user.deleted":
            clerk_id = data.get("id")
            if not clerk_id:
                raise ValidationError("Deleted user id is missing")
            self.users.delete_follows_of(clerk_id)
            for list_id in self.lists.delete_pins_of(clerk_id):
                self.lists.increment_stat(list_id, "pinCount", -1)
            self.users.delete(clerk_id)
            ctx_logger.info("✔ [Users] User removed after identity provider deletion")
            return {"deleted": True}

        ctx_logger.debug("  • [Users] Ignoring webhook event")
        return {"ignored": True}
