"""
Author and Book repositories.

Both repositories follow the same pattern: validate the submitted fields,
check that every referenced id exists in the counterpart collection, then
persist. Reads expand the stored id arrays into summaries of the
referenced documents, silently dropping ids that no longer resolve.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Type

import structlog
from pydantic import BaseModel, ValidationError

from catalog.errors import NotFound, ValidationFailed
from catalog.models import (
    AuthorData, AuthorSummary, AuthorView,
    BookData, BookSummary, BookView, FieldError
)
from catalog.references import DocumentLookup, validate_references_exist

logger = structlog.get_logger(__name__)


def _is_blank(value: Any) -> bool:
    """Required-field check: None, blank strings and empty lists count as missing."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _add_error(errors: Dict[str, List[str]], field: str, message: str) -> None:
    errors.setdefault(field, []).append(message)


class EntityRepository(ABC):
    """
    CRUD persistence for one collection whose documents reference another.

    Subclasses set the input model, the reference field and how a stored
    document is projected for responses.
    """

    entity_name: str = "entity"
    input_model: Type[BaseModel]
    required_fields: Tuple[str, ...] = ()
    reference_field: str = ""

    def __init__(self, collection, counterpart: DocumentLookup):
        """
        Initialize repository.

        Args:
            collection: Collection owning this entity's documents
            counterpart: Lookup over the referenced collection
        """
        self.collection = collection
        self.counterpart = counterpart

    async def list(self) -> List[BaseModel]:
        """Get all entities in storage order, enriched."""
        documents = await self.collection.find_all()
        return [await self._enrich(document) for document in documents]

    async def get(self, entity_id: str) -> BaseModel:
        """
        Get a single entity by id.

        Raises:
            NotFound: If no document has this id
        """
        document = await self.collection.find_by_id(entity_id)
        if document is None:
            raise NotFound(f"{self.entity_name.capitalize()} not found")
        return await self._enrich(document)

    async def create(self, fields: Dict[str, Any]) -> BaseModel:
        """
        Validate and persist a new entity.

        Args:
            fields: Submitted fields

        Returns:
            The stored entity, enriched

        Raises:
            ValidationFailed: If a field rule fails or a reference dangles
        """
        document = await self._validate(fields, f"Failed to create {self.entity_name}")
        stored = await self.collection.insert(document)
        logger.info("Entity created", entity=self.entity_name, entity_id=stored["id"])
        return await self._enrich(stored)

    async def update(self, entity_id: str, fields: Dict[str, Any]) -> BaseModel:
        """
        Merge submitted fields over a stored entity, re-validate and overwrite.

        Raises:
            NotFound: If no document has this id
            ValidationFailed: If the merged field set is invalid
        """
        current = await self.collection.find_by_id(entity_id)
        if current is None:
            raise NotFound(f"{self.entity_name.capitalize()} not found")

        merged = {key: value for key, value in current.items() if key != "id"}
        merged.update(
            {key: value for key, value in fields.items() if key in self.input_model.model_fields}
        )
        document = await self._validate(merged, f"Failed to update {self.entity_name}")

        if not await self.collection.replace(entity_id, document):
            # Deleted between lookup and write
            raise NotFound(f"{self.entity_name.capitalize()} not found")

        logger.info("Entity updated", entity=self.entity_name, entity_id=entity_id)
        document["id"] = entity_id
        return await self._enrich(document)

    async def delete(self, entity_id: str) -> None:
        """
        Hard-delete an entity. References to it elsewhere are left in place.

        Raises:
            NotFound: If no document has this id
        """
        if not await self.collection.delete(entity_id):
            raise NotFound(f"{self.entity_name.capitalize()} not found")
        logger.info("Entity deleted", entity=self.entity_name, entity_id=entity_id)

    async def _validate(self, fields: Dict[str, Any], message: str) -> Dict[str, Any]:
        """
        Run the required-field, type and reference rules.

        All rules run so every problem is reported at once.

        Returns:
            Document ready to be stored

        Raises:
            ValidationFailed: With a mapping of field name to messages
        """
        errors: Dict[str, List[str]] = {}

        for field in self.required_fields:
            if _is_blank(fields.get(field)):
                _add_error(errors, field, f"{field} cannot be blank")

        data: Optional[BaseModel] = None
        try:
            data = self.input_model.model_validate(fields)
        except ValidationError as exc:
            for error in exc.errors():
                field = str(error["loc"][0]) if error["loc"] else "body"
                if field in errors and _is_blank(fields.get(field)):
                    continue
                if error["type"] == "value_error":
                    _add_error(errors, field, str(error["ctx"]["error"]))
                else:
                    _add_error(errors, field, error["msg"])

        references = fields.get(self.reference_field)
        if isinstance(references, list):
            ids = [ref for ref in references if isinstance(ref, str)]
            reference_errors: List[FieldError] = await validate_references_exist(
                self.reference_field, ids, self.counterpart
            )
            for reference_error in reference_errors:
                _add_error(errors, reference_error.field, reference_error.message)

        if errors or data is None:
            logger.info(
                "Entity validation failed",
                entity=self.entity_name,
                fields=sorted(errors.keys())
            )
            raise ValidationFailed(message, errors)

        return data.to_document()

    @abstractmethod
    async def _enrich(self, document: Dict[str, Any]) -> BaseModel:
        """Project a stored document into its response view."""


class AuthorRepository(EntityRepository):
    """Authors, whose ``books`` field references the books collection."""

    entity_name = "author"
    input_model = AuthorData
    required_fields = ("name", "birthdate")
    reference_field = "books"

    async def _enrich(self, document: Dict[str, Any]) -> AuthorView:
        books = []
        for book_id in document.get("books") or []:
            book = await self.counterpart.find_by_id(book_id)
            if book:
                books.append(BookSummary(
                    id=book["id"],
                    title=book.get("title", ""),
                    publication_year=book.get("publication_year"),
                    description=book.get("description"),
                ))
        return AuthorView(
            id=document["id"],
            name=document.get("name", ""),
            birthdate=document.get("birthdate", ""),
            books=books,
        )


class BookRepository(EntityRepository):
    """Books, whose ``authors`` field references the authors collection."""

    entity_name = "book"
    input_model = BookData
    required_fields = ("title", "authors", "publication_year", "description")
    reference_field = "authors"

    async def _enrich(self, document: Dict[str, Any]) -> BookView:
        authors = []
        for author_id in document.get("authors") or []:
            author = await self.counterpart.find_by_id(author_id)
            if author:
                authors.append(AuthorSummary(
                    id=author["id"],
                    name=author.get("name", ""),
                    birthdate=author.get("birthdate"),
                ))
        return BookView(
            id=document["id"],
            title=document.get("title", ""),
            authors=authors,
            publication_year=document.get("publication_year", 0),
            description=document.get("description", ""),
        )
