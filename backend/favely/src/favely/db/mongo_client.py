from typing import Optional

from loguru import logger
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from favely.config import Settings, get_settings

LISTS = "lists"
USERS = "users"
FOLLOWS = "follows"
PINS = "pins"
LIST_VIEWS = "list_views"
USER_CACHE = "user_cache"


class MongoConnection:
    """
    One pooled MongoClient shared by every storage object in the process.

    Scripts can use it as a context manager; the API keeps it open for the
    application lifetime.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[MongoClient] = None):
        self.settings = settings or get_settings()
        self.db_name = self.settings.mongodb_db_name
        self._client = client

    def __connect(self):
        logger.debug(f"  › [DB] Connecting to MongoDB database '{self.db_name}'...")
        self._client = MongoClient(
            self.settings.mongodb_uri,
            maxPoolSize=self.settings.mongodb_max_pool_size,
            minPoolSize=self.settings.mongodb_min_pool_size,
            serverSelectionTimeoutMS=self.settings.mongodb_server_selection_timeout_ms,
            connectTimeoutMS=self.settings.mongodb_connect_timeout_ms,
            socketTimeoutMS=self.settings.mongodb_socket_timeout_ms,
            retryWrites=True,
            w="majority",
        )
        logger.debug("  ✔ [DB] MongoDB client created")

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            self.__connect()
        return self._client

    @property
    def db(self) -> Database:
        return self.client[self.db_name]

    @property
    def lists(self):
        return self.db[LISTS]

    @property
    def users(self):
        return self.db[USERS]

    @property
    def follows(self):
        return self.db[FOLLOWS]

    @property
    def pins(self):
        return self.db[PINS]

    @property
    def list_views(self):
        return self.db[LIST_VIEWS]

    @property
    def user_cache(self):
        return self.db[USER_CACHE]

    def ping(self) -> bool:
        self.client.admin.command("ping")
        return True

    def close(self):
        if self._client is not None:
            self._client.close()
            logger.debug("  • [DB] MongoDB connection closed")
        self._client = None

    def __enter__(self):
        _ = self.client
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def ensure_indexes(self):
        logger.info(f"  › [DB] Ensuring indexes on '{self.db_name}'")
        self.users.create_index([("clerkId", ASCENDING)], unique=True)
        self.users.create_index([("username", ASCENDING)], unique=True)
        self.users.create_index([("email", ASCENDING)], sparse=True)
        self.users.create_index([("createdAt", DESCENDING)])
        self.users.create_index([("username", ASCENDING), ("displayName", ASCENDING)])

        self.lists.create_index([
            ("visibility", ASCENDING),
            ("owner.clerkId", ASCENDING),
            ("collaborators.clerkId", ASCENDING),
            ("collaborators.status", ASCENDING),
        ])
        self.lists.create_index([("owner.clerkId", ASCENDING)])
        self.lists.create_index([("category", ASCENDING)])

        self.follows.create_index([("followerId", ASCENDING), ("followingId", ASCENDING)], unique=True)
        self.follows.create_index([("followingId", ASCENDING)])

        self.pins.create_index([("clerkId", ASCENDING), ("listId", ASCENDING)], unique=True)
        self.list_views.create_index([("clerkId", ASCENDING), ("listId", ASCENDING)], unique=True)
        self.user_cache.create_index([("clerkId", ASCENDING)], unique=True)
        logger.info("  ✔ [DB] Indexes ensured")


_connection: Optional[MongoConnection] = None


def get_connection() -> MongoConnection:
    global _connection
    if _connection is None:
        _connection = MongoConnection()
    return _connection


def set_connection(connection: Optional[MongoConnection]) -> None:
    global _connection
    _connection = connection
