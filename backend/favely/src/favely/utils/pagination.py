"""
Cursor pagination helpers.

Pages are fetched as `limit + 1` documents ordered by `_id`; the extra
document only tells whether another page exists. The cursor handed to the
client is the hex `_id` of the last document of the page.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, Sequence, Tuple, TypeVar

from bson import ObjectId
from bson.errors import InvalidId

from favely.errors import InvalidCursorError

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False


def encode_cursor(object_id: ObjectId) -> str:
    return str(object_id)


def decode_cursor(cursor: str) -> ObjectId:
    try:
        return ObjectId(cursor)
    except (InvalidId, TypeError):
        raise InvalidCursorError(cursor)


def clamp_limit(limit: Optional[int], default: int, maximum: int) -> int:
    if limit is None:
        return default
    return max(1, min(int(limit), maximum))


def split_page(docs: Sequence[dict], limit: int) -> Tuple[List[dict], bool]:
    """Apply the N+1 rule to an over-fetched batch."""
    has_more = len(docs) > limit
    return list(docs[:limit]), has_more


def next_cursor_of(docs: Sequence[Any], has_more: bool) -> Optional[str]:
    if not has_more or not docs:
        return None
    return encode_cursor(docs[-1]["_id"])


def offset_page(page: Optional[int], limit: Optional[int], maximum: int, default: int = 20) -> Tuple[int, int, int]:
    """Normalize 1-based page/limit query values; returns (page, limit, skip)."""
    page = max(1, int(page or 1))
    limit = clamp_limit(limit, default, maximum)
    return page, limit, (page - 1) * limit
