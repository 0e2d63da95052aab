"""
Pytest configuration and shared fixtures.
"""

import copy
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from api.services import CatalogServices
from catalog.database import to_object_id
from catalog.security import PasswordHasher, SecureRandomStringGenerator


class InMemoryCollection:
    """
    In-memory stand-in for catalog.database.DocumentCollection.

    Documents are kept in insertion order. ``unique_fields`` emulates
    unique indexes.
    """

    def __init__(self, name: str, unique_fields: tuple = ()):
        self.name = name
        self.unique_fields = unique_fields
        self.documents: Dict[ObjectId, Dict[str, Any]] = {}
        self.lookups: List[Any] = []

    @staticmethod
    def _public(object_id: ObjectId, document: Dict[str, Any]) -> Dict[str, Any]:
        result = copy.deepcopy(document)
        result["id"] = str(object_id)
        return result

    async def find_by_id(self, doc_id: Any) -> Optional[Dict[str, Any]]:
        self.lookups.append(doc_id)
        object_id = to_object_id(doc_id)
        if object_id is None or object_id not in self.documents:
            return None
        return self._public(object_id, self.documents[object_id])

    async def find_one(self, filter_query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for object_id, document in self.documents.items():
            if all(document.get(key) == value for key, value in filter_query.items()):
                return self._public(object_id, document)
        return None

    async def find_all(self) -> List[Dict[str, Any]]:
        return [self._public(object_id, document) for object_id, document in self.documents.items()]

    async def insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        document = {key: value for key, value in fields.items() if key != "id"}
        for field in self.unique_fields:
            if any(existing.get(field) == document.get(field) for existing in self.documents.values()):
                raise DuplicateKeyError(f"duplicate key on {field}")
        object_id = ObjectId()
        self.documents[object_id] = copy.deepcopy(document)
        return self._public(object_id, document)

    async def replace(self, doc_id: Any, fields: Dict[str, Any]) -> bool:
        object_id = to_object_id(doc_id)
        if object_id not in self.documents:
            return False
        self.documents[object_id] = copy.deepcopy(
            {key: value for key, value in fields.items() if key not in ("id", "_id")}
        )
        return True

    async def set_fields(self, doc_id: Any, fields: Dict[str, Any]) -> bool:
        object_id = to_object_id(doc_id)
        if object_id not in self.documents:
            return False
        self.documents[object_id].update(copy.deepcopy(fields))
        return True

    async def delete(self, doc_id: Any) -> bool:
        object_id = to_object_id(doc_id)
        if object_id not in self.documents:
            return False
        del self.documents[object_id]
        return True

    async def count(self) -> int:
        return len(self.documents)

    def seed(self, **fields) -> str:
        """Insert a document directly and return its id."""
        object_id = ObjectId()
        self.documents[object_id] = fields
        return str(object_id)


@pytest.fixture
def authors_collection():
    return InMemoryCollection("authors")


@pytest.fixture
def books_collection():
    return InMemoryCollection("books")


@pytest.fixture
def users_collection():
    return InMemoryCollection("users", unique_fields=("username",))


@pytest.fixture
def password_hasher():
    """bcrypt at the lowest cost factor keeps the suite fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def random_generator():
    return SecureRandomStringGenerator()


@pytest.fixture
def catalog_services(authors_collection, books_collection, users_collection,
                     password_hasher, random_generator):
    """Services wired over in-memory collections."""
    return CatalogServices(
        authors=authors_collection,
        books=books_collection,
        users=users_collection,
        hasher=password_hasher,
        random_generator=random_generator,
        token_ttl=1800
    )


@pytest.fixture
def sample_author():
    return {"name": "Ursula K. Le Guin", "birthdate": "1929-10-21", "books": []}


@pytest.fixture
def sample_book():
    return {
        "title": "A Wizard of Earthsea",
        "authors": [],
        "publication_year": 1968,
        "description": "A young mage on Gont."
    }
