from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId


def utcnow() -> datetime:
    """Naive UTC timestamp, the form BSON dates round-trip as."""
    now = datetime.now(timezone.utc)
    return now.replace(tzinfo=None, microsecond=(now.microsecond // 1000) * 1000)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def parse_object_id(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None
