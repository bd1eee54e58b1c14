from .default_fields import list_fields, user_fields
from .mongo_client import MongoConnection, get_connection, set_connection
from .list_storage import ListStorage
from .user_storage import UserStorage

__all__ = [
    "list_fields",
    "user_fields",
    "MongoConnection",
    "get_connection",
    "set_connection",
    "ListStorage",
    "UserStorage",
]
