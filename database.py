from contextlib import contextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError
from logging_config import get_logger
from config import config
from constants import Collections
from errors import Conflict, StorageFailure
import certifi

logger = get_logger("database")

uri = config.MONGO_URI
db_name = config.DB_NAME

if uri:
    logger.info(f"MongoDB connection string found: {uri[:20]}...")
else:
    logger.error("MONGO_URI not found in configuration!")

class DatabaseProxy:
    def __init__(self):
        self._client = None
        self._db = None

    def initialize(self):
        if self._client is None:
            if config.ENV == "production":
                self._client = AsyncIOMotorClient(uri, tlsCAFile=certifi.where())
            else:
                self._client = AsyncIOMotorClient(uri, tlsAllowInvalidCertificates=True)
            self._db = self._client[config.DB_NAME]
            logger.info(f"Database collections initialized on DB: {config.DB_NAME}")

    def bind(self, motor_client):
        """Use an already constructed client (tests, maintenance scripts)."""
        self._client = motor_client
        self._db = motor_client[config.DB_NAME]

    def reset(self):
        if self._client is not None:
            self._client.close()
            self._client = None
            self._db = None

    def __getattr__(self, name):
        self.initialize()
        return getattr(self._client, name)

    def __getitem__(self, name):
        self.initialize()
        return self._client[name]


client = DatabaseProxy()

class DBProxy:
    def get_collection(self, name):
        return client[config.DB_NAME][name]

    def __getattr__(self, attr):
        return client[config.DB_NAME][attr]

    def __getitem__(self, key):
        return client[config.DB_NAME][key]

db = DBProxy()

class AsyncCollectionProxy:
    def __init__(self, name):
        self.name = name

    def _get_collection(self):
        # We access the configured db dynamically
        return db.get_collection(self.name)

    def __getattr__(self, attr):
        return getattr(self._get_collection(), attr)

    def __getitem__(self, key):
        return self._get_collection()[key]

users_collection = AsyncCollectionProxy(Collections.USERS)
posts_collection = AsyncCollectionProxy(Collections.POSTS)
messages_collection = AsyncCollectionProxy(Collections.MESSAGES)
groups_collection = AsyncCollectionProxy(Collections.GROUPS)
notifications_collection = AsyncCollectionProxy(Collections.NOTIFICATIONS)
friend_requests_collection = AsyncCollectionProxy(Collections.FRIEND_REQUESTS)
ban_requests_collection = AsyncCollectionProxy(Collections.BAN_REQUESTS)


SortSpec = Sequence[Tuple[str, int]]


@contextmanager
def _storage_errors(operation: str, collection: str):
    try:
        yield
    except PyMongoError as exc:
        logger.error(
            f"Storage operation failed: {operation} on {collection}",
            extra={"data": {"error": str(exc)}}
        )
        raise StorageFailure() from exc


class Store:
    """
    Document store used by every service.

    Documents are addressed by their string ``id``; on insert ``_id`` is set to
    the same value so change-feed ``documentKey`` entries carry the public id.
    Every driver error surfaces as ``StorageFailure``.
    """

    def __init__(self, database=db):
        self._db = database

    async def find_one(self, collection: str, filter: Dict[str, Any], sort: Optional[SortSpec] = None) -> Optional[Dict]:
        with _storage_errors("find_one", collection):
            if sort:
                docs = await self._db[collection].find(filter).sort(list(sort)).limit(1).to_list(1)
                return docs[0] if docs else None
            return await self._db[collection].find_one(filter)

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict]:
        return await self.find_one(collection, {"id": doc_id})

    async def find_many(
        self,
        collection: str,
        filter: Dict[str, Any],
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Dict]:
        with _storage_errors("find_many", collection):
            cursor = self._db[collection].find(filter)
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=limit)

    async def count(self, collection: str, filter: Dict[str, Any]) -> int:
        with _storage_errors("count", collection):
            return await self._db[collection].count_documents(filter)

    async def exists(self, collection: str, filter: Dict[str, Any]) -> bool:
        with _storage_errors("exists", collection):
            return await self._db[collection].find_one(filter, {"_id": 1}) is not None

    async def insert(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        doc.setdefault("_id", doc["id"])
        with _storage_errors("insert", collection):
            try:
                await self._db[collection].insert_one(doc)
            except DuplicateKeyError as exc:
                raise Conflict("Duplicate document") from exc
        return doc

    async def update_by_id(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> Optional[Dict]:
        """Apply a ``$set`` patch and return the post-update document."""
        with _storage_errors("update_by_id", collection):
            return await self._db[collection].find_one_and_update(
                {"id": doc_id},
                {"$set": patch},
                return_document=ReturnDocument.AFTER,
            )

    async def update_one(self, collection: str, filter: Dict[str, Any], update: Dict[str, Any]) -> int:
        """Apply raw update operators; returns the matched count."""
        with _storage_errors("update_one", collection):
            result = await self._db[collection].update_one(filter, update)
            return result.matched_count

    async def update_many(self, collection: str, filter: Dict[str, Any], patch: Dict[str, Any]) -> int:
        with _storage_errors("update_many", collection):
            result = await self._db[collection].update_many(filter, {"$set": patch})
            return result.modified_count

    async def increment_one(
        self,
        collection: str,
        filter: Dict[str, Any],
        increment: Dict[str, int],
        patch: Dict[str, Any],
    ) -> Optional[Dict]:
        """Atomic find-and-increment; returns the post-update document or None when nothing matched."""
        with _storage_errors("increment_one", collection):
            return await self._db[collection].find_one_and_update(
                filter,
                {"$inc": increment, "$set": patch},
                return_document=ReturnDocument.AFTER,
            )

    async def delete_by_id(self, collection: str, doc_id: str) -> bool:
        with _storage_errors("delete_by_id", collection):
            result = await self._db[collection].delete_one({"id": doc_id})
            return result.deleted_count > 0

    async def delete_many(self, collection: str, filter: Dict[str, Any]) -> int:
        with _storage_errors("delete_many", collection):
            result = await self._db[collection].delete_many(filter)
            return result.deleted_count

    async def watch(self, collection: str, operation_types: Optional[List[str]] = None) -> AsyncIterator[Dict]:
        """Yield ``{operation_type, document_key}`` for every change on ``collection``."""
        pipeline = []
        if operation_types:
            pipeline.append({"$match": {"operationType": {"$in": operation_types}}})
        with _storage_errors("watch", collection):
            async with self._db[collection].watch(pipeline) as stream:
                async for change in stream:
                    yield {
                        "operation_type": change.get("operationType"),
                        "document_key": change.get("documentKey") or {},
                    }
