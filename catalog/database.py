"""
MongoDB database utilities for async operations.
Handles connection, indexing, and the collection adapter used by the
repositories and the credential store.
"""

from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import ConnectionFailure

logger = structlog.get_logger(__name__)


def to_object_id(doc_id: Any) -> Optional[ObjectId]:
    """
    Convert a client supplied id to an ObjectId.

    Args:
        doc_id: Id as received from a request or a reference array

    Returns:
        ObjectId, or None if the value is not a valid id
    """
    if isinstance(doc_id, ObjectId):
        return doc_id
    # ObjectId(None) would mint a fresh id
    if not isinstance(doc_id, str):
        return None
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


def from_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of a stored document with ``_id`` exposed as a string ``id``."""
    result = {key: value for key, value in document.items() if key != "_id"}
    result["id"] = str(document["_id"])
    return result


class DocumentCollection:
    """
    Thin adapter over a motor collection.

    Repositories only talk to this interface, which keeps them independent
    of each other and of motor itself.
    """

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection
        self.name = collection.name

    async def find_by_id(self, doc_id: Any) -> Optional[Dict[str, Any]]:
        """
        Get a document by id.

        Args:
            doc_id: Document identifier

        Returns:
            Document with a string ``id``, or None if not found
        """
        object_id = to_object_id(doc_id)
        if object_id is None:
            return None
        document = await self.collection.find_one({"_id": object_id})
        return from_document(document) if document else None

    async def find_one(self, filter_query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Get the first document matching a filter."""
        document = await self.collection.find_one(filter_query)
        return from_document(document) if document else None

    async def find_all(self) -> List[Dict[str, Any]]:
        """Get every document in storage order."""
        cursor = self.collection.find({})
        return [from_document(document) async for document in cursor]

    async def insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new document.

        Args:
            fields: Document fields (without id)

        Returns:
            The stored document including its new id
        """
        document = dict(fields)
        document.pop("id", None)
        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return from_document(document)

    async def replace(self, doc_id: Any, fields: Dict[str, Any]) -> bool:
        """
        Overwrite a document, keeping its id.

        Returns:
            True if a document was matched, False otherwise
        """
        object_id = to_object_id(doc_id)
        if object_id is None:
            return False
        document = {key: value for key, value in fields.items() if key not in ("id", "_id")}
        result = await self.collection.replace_one({"_id": object_id}, document)
        return result.matched_count > 0

    async def set_fields(self, doc_id: Any, fields: Dict[str, Any]) -> bool:
        """Set a subset of fields on a document."""
        object_id = to_object_id(doc_id)
        if object_id is None:
            return False
        result = await self.collection.update_one({"_id": object_id}, {"$set": fields})
        return result.matched_count > 0

    async def delete(self, doc_id: Any) -> bool:
        """
        Delete a document by id.

        Returns:
            True if deleted, False if not found
        """
        object_id = to_object_id(doc_id)
        if object_id is None:
            return False
        result = await self.collection.delete_one({"_id": object_id})
        return result.deleted_count > 0

    async def count(self) -> int:
        return await self.collection.count_documents({})


class MongoDBManager:
    """
    Async MongoDB manager for the catalog.
    Handles connection, indexing and collection access.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        authors_collection: str = "authors",
        books_collection: str = "books",
        users_collection: str = "users",
    ):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            authors_collection: Name of the authors collection
            books_collection: Name of the books collection
            users_collection: Name of the users collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_names = {
            "authors": authors_collection,
            "books": books_collection,
            "users": users_collection,
        }
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """
        Create the indexes the credential store relies on.

        The unique username index is what rejects concurrent duplicate
        registrations.
        """
        try:
            users = self.database[self.collection_names["users"]]
            await users.create_index([("username", ASCENDING)], unique=True)
            await users.create_index("access_token")

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    def get_collection(self, key: str) -> DocumentCollection:
        """
        Get a collection adapter.

        Args:
            key: One of "authors", "books" or "users"
        """
        if self.database is None:
            raise RuntimeError("MongoDB manager is not connected")
        return DocumentCollection(self.database[self.collection_names[key]])

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            counts = {}
            for key in self.collection_names:
                counts[f"{key}_count"] = await self.get_collection(key).count()
            return {"status": "healthy", **counts}
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}
