from typing import Any, Dict, Optional

from loguru import logger

from favely.db.list_storage import ListStorage
from favely.db.user_storage import UserStorage, name_pattern
from favely.errors import ValidationError
from favely.services import permissions
from favely.services.list_service import ListService
from favely.services.user_service import public_user
from favely.utils.pagination import offset_page

SEARCH_TYPES = ("all", "lists", "users")


class SearchService:
    def __init__(self, lists: ListStorage, users: UserStorage, list_service: ListService, max_page_size: int = 100):
        self.lists = lists
        self.users = users
        self.list_service = list_service
        self.max_page_size = max_page_size

    @staticmethod
    def list_query(text: str, viewer_id: Optional[str]) -> dict:
        """Discoverable lists whose title or description contains `text`; unlisted ones never match."""
        return {"$and": [
            permissions.visible_filter(viewer_id),
            {"visibility": {"$ne": permissions.UNLISTED}},
            {"$or": [{"title": name_pattern(text)}, {"description": name_pattern(text)}]},
        ]}

    def search(
        self,
        q: Optional[str],
        type: str = "all",
        page: Optional[int] = 1,
        limit: Optional[int] = 20,
        viewer_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        if type not in SEARCH_TYPES:
            raise ValidationError(f"Unknown search type: {type}")
        page, limit, skip = offset_page(page, limit, self.max_page_size)
        text = (q or "").strip()
        if not text:
            return {"results": [], "total": 0, "page": page, "limit": limit, "hasMore": False}

        results = []
        total = 0
        has_more = False
        if type in ("all", "lists"):
            query = self.list_query(text, viewer_id)
            docs = self.lists.find(query, skip=skip, limit=limit)
            list_total = self.lists.count(query)
            results.extend({"type": "list", **item} for item in self.list_service.enhance(docs, viewer_id))
            total += list_total
            has_more = has_more or list_total > skip + len(docs)
        if type in ("all", "users"):
            docs = self.users.search(text, exclude_clerk_id=viewer_id, skip=skip, limit=limit)
            user_total = self.users.count_search(text, exclude_clerk_id=viewer_id)
            results.extend({"type": "user", **public_user(doc)} for doc in docs)
            total += user_total
            has_more = has_more or user_total > skip + len(docs)

        logger.bind(query=text, type=type, total=total).debug("  › [Search] Search completed")
        return {"results": results, "total": total, "page": page, "limit": limit, "hasMore": has_more}
