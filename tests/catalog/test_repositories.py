"""
Unit tests for the Author and Book repositories.
Tests validation, reference checks, enrichment and CRUD edge cases.
"""

import pytest
from bson import ObjectId

from catalog.errors import NotFound, ValidationFailed
from catalog.models import AuthorView, BookView
from catalog.references import DANGLING_REFERENCE_MESSAGE
from catalog.repositories import AuthorRepository, BookRepository, EntityRepository


@pytest.fixture
def author_repository(authors_collection, books_collection):
    return AuthorRepository(authors_collection, books_collection)


@pytest.fixture
def book_repository(books_collection, authors_collection):
    return BookRepository(books_collection, authors_collection)


class TestAuthorCreate:
    """Test cases for AuthorRepository.create."""

    @pytest.mark.asyncio
    async def test_create_with_resolvable_books(self, author_repository, authors_collection,
                                                books_collection, sample_author):
        """Stored books equal the submitted id sequence."""
        first = books_collection.seed(title="First", publication_year=1968, description="d1", authors=[])
        second = books_collection.seed(title="Second", publication_year=1972, description="d2", authors=[])
        sample_author["books"] = [second, first]

        author = await author_repository.create(sample_author)

        assert isinstance(author, AuthorView)
        assert author.name == "Ursula K. Le Guin"
        assert author.birthdate == "1929-10-21"
        assert [book.id for book in author.books] == [second, first]
        assert author.books[0].title == "Second"

        stored = await authors_collection.find_by_id(author.id)
        assert stored["books"] == [second, first]

    @pytest.mark.asyncio
    async def test_create_without_books(self, author_repository, sample_author):
        """Books are optional for authors."""
        del sample_author["books"]

        author = await author_repository.create(sample_author)

        assert author.books == []

    @pytest.mark.asyncio
    async def test_create_with_null_books(self, author_repository, authors_collection,
                                          sample_author):
        """An explicit null books value is stored as an empty list."""
        sample_author["books"] = None

        author = await author_repository.create(sample_author)

        assert author.books == []
        stored = await authors_collection.find_by_id(author.id)
        assert stored["books"] == []

    @pytest.mark.asyncio
    async def test_create_with_dangling_book_persists_nothing(self, author_repository,
                                                             authors_collection, books_collection,
                                                             sample_author):
        """A single missing book id fails the whole create."""
        existing = books_collection.seed(title="First")
        sample_author["books"] = [existing, str(ObjectId())]

        with pytest.raises(ValidationFailed) as exc_info:
            await author_repository.create(sample_author)

        assert exc_info.value.errors == {"books": [DANGLING_REFERENCE_MESSAGE]}
        assert await authors_collection.count() == 0

    @pytest.mark.asyncio
    async def test_required_fields(self, author_repository):
        """Name and birthdate are required; blank strings count as missing."""
        with pytest.raises(ValidationFailed) as exc_info:
            await author_repository.create({"name": "   "})

        errors = exc_info.value.errors
        assert set(errors.keys()) == {"name", "birthdate"}
        assert errors["name"] == ["name cannot be blank"]
        assert errors["birthdate"] == ["birthdate cannot be blank"]

    @pytest.mark.asyncio
    async def test_all_errors_reported_together(self, author_repository):
        """Field rules and reference checks are collected in one failure."""
        with pytest.raises(ValidationFailed) as exc_info:
            await author_repository.create({
                "birthdate": "1929-10-21",
                "books": [str(ObjectId()), str(ObjectId())]
            })

        errors = exc_info.value.errors
        assert errors["name"] == ["name cannot be blank"]
        assert errors["books"] == [DANGLING_REFERENCE_MESSAGE, DANGLING_REFERENCE_MESSAGE]

    @pytest.mark.asyncio
    async def test_invalid_birthdate_format(self, author_repository, sample_author):
        """Birthdates must be written as YYYY-MM-DD."""
        sample_author["birthdate"] = "21/10/1929"

        with pytest.raises(ValidationFailed) as exc_info:
            await author_repository.create(sample_author)

        assert list(exc_info.value.errors.keys()) == ["birthdate"]
        assert "YYYY-MM-DD" in exc_info.value.errors["birthdate"][0]

    @pytest.mark.asyncio
    async def test_non_string_book_ids(self, author_repository, sample_author):
        """Every book reference must be a string."""
        sample_author["books"] = [42]

        with pytest.raises(ValidationFailed) as exc_info:
            await author_repository.create(sample_author)

        assert "books" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_unknown_fields_are_not_stored(self, author_repository, authors_collection,
                                                 sample_author):
        """Only known fields reach the store."""
        sample_author["role"] = "admin"

        author = await author_repository.create(sample_author)

        stored = await authors_collection.find_by_id(author.id)
        assert "role" not in stored


class TestBookCreate:
    """Test cases for BookRepository.create."""

    @pytest.mark.asyncio
    async def test_round_trip_projects_author_summaries(self, book_repository, authors_collection,
                                                         sample_book):
        """Get after create returns author summaries in input order."""
        first = authors_collection.seed(name="First", birthdate="1900-01-01", books=[])
        second = authors_collection.seed(name="Second", birthdate="1950-05-05", books=[])
        sample_book["authors"] = [second, first]

        created = await book_repository.create(sample_book)
        fetched = await book_repository.get(created.id)

        assert isinstance(fetched, BookView)
        assert [author.model_dump() for author in fetched.authors] == [
            {"id": second, "name": "Second", "birthdate": "1950-05-05"},
            {"id": first, "name": "First", "birthdate": "1900-01-01"},
        ]
        assert fetched.publication_year == 1968

    @pytest.mark.asyncio
    async def test_dangling_author_dropped_on_read(self, book_repository, authors_collection,
                                                   sample_book):
        """An author deleted after the book was created is silently dropped."""
        kept = authors_collection.seed(name="Kept", birthdate="1900-01-01")
        removed = authors_collection.seed(name="Removed", birthdate="1900-01-01")
        sample_book["authors"] = [kept, removed]
        created = await book_repository.create(sample_book)

        await authors_collection.delete(removed)
        fetched = await book_repository.get(created.id)

        assert [author.id for author in fetched.authors] == [kept]

    @pytest.mark.asyncio
    async def test_all_fields_required(self, book_repository):
        """Title, authors, publication_year and description are all required."""
        with pytest.raises(ValidationFailed) as exc_info:
            await book_repository.create({})

        assert set(exc_info.value.errors.keys()) == {
            "title", "authors", "publication_year", "description"
        }

    @pytest.mark.asyncio
    async def test_empty_authors_is_missing(self, book_repository, sample_book):
        """An empty authors list does not satisfy the required rule."""
        with pytest.raises(ValidationFailed) as exc_info:
            await book_repository.create(sample_book)

        assert exc_info.value.errors == {"authors": ["authors cannot be blank"]}

    @pytest.mark.asyncio
    async def test_publication_year_must_be_integer(self, book_repository, authors_collection,
                                                    sample_book):
        """Non-numeric years are rejected, numeric strings are coerced."""
        sample_book["authors"] = [authors_collection.seed(name="A", birthdate="1900-01-01")]
        sample_book["publication_year"] = "nineteen"

        with pytest.raises(ValidationFailed) as exc_info:
            await book_repository.create(sample_book)
        assert list(exc_info.value.errors.keys()) == ["publication_year"]

        sample_book["publication_year"] = "1968"
        book = await book_repository.create(sample_book)
        assert book.publication_year == 1968

    @pytest.mark.asyncio
    @pytest.mark.parametrize("year", [True, False])
    async def test_boolean_publication_year_rejected(self, book_repository, authors_collection,
                                                     books_collection, sample_book, year):
        """Booleans are not accepted as years."""
        sample_book["authors"] = [authors_collection.seed(name="A", birthdate="1900-01-01")]
        sample_book["publication_year"] = year

        with pytest.raises(ValidationFailed) as exc_info:
            await book_repository.create(sample_book)

        assert exc_info.value.errors == {
            "publication_year": ["publication_year must be an integer"]
        }
        assert await books_collection.count() == 0

    @pytest.mark.asyncio
    async def test_dangling_author_rejected(self, book_repository, books_collection, sample_book):
        """Books cannot reference missing authors."""
        sample_book["authors"] = [str(ObjectId())]

        with pytest.raises(ValidationFailed) as exc_info:
            await book_repository.create(sample_book)

        assert exc_info.value.errors == {"authors": [DANGLING_REFERENCE_MESSAGE]}
        assert await books_collection.count() == 0


class TestListAndGet:
    """Test cases for list and get."""

    @pytest.mark.asyncio
    async def test_list_keeps_storage_order(self, author_repository, authors_collection,
                                            books_collection):
        """Listing returns documents in storage order with books expanded."""
        book_id = books_collection.seed(title="T", publication_year=2000, description="d")
        first = authors_collection.seed(name="A", birthdate="1900-01-01", books=[book_id, "missing"])
        second = authors_collection.seed(name="B", birthdate="1901-01-01", books=[])

        authors = await author_repository.list()

        assert [author.id for author in authors] == [first, second]
        assert [book.id for book in authors[0].books] == [book_id]

    @pytest.mark.asyncio
    async def test_list_empty(self, book_repository):
        assert await book_repository.list() == []

    @pytest.mark.asyncio
    async def test_get_missing(self, author_repository):
        with pytest.raises(NotFound):
            await author_repository.get(str(ObjectId()))

    @pytest.mark.asyncio
    async def test_get_malformed_id(self, book_repository):
        """Malformed ids are simply not found."""
        with pytest.raises(NotFound):
            await book_repository.get("not-an-object-id")


class TestUpdate:
    """Test cases for update."""

    @pytest.mark.asyncio
    async def test_update_missing(self, author_repository, sample_author):
        with pytest.raises(NotFound):
            await author_repository.update(str(ObjectId()), sample_author)

    @pytest.mark.asyncio
    async def test_update_overwrites(self, author_repository, authors_collection,
                                     books_collection, sample_author):
        """A full update replaces every field."""
        author = await author_repository.create(sample_author)
        book_id = books_collection.seed(title="T", publication_year=2000, description="d")

        updated = await author_repository.update(author.id, {
            "name": "U. K. Le Guin",
            "birthdate": "1929-10-22",
            "books": [book_id]
        })

        assert updated.id == author.id
        assert updated.name == "U. K. Le Guin"
        stored = await authors_collection.find_by_id(author.id)
        assert stored["birthdate"] == "1929-10-22"
        assert stored["books"] == [book_id]

    @pytest.mark.asyncio
    async def test_partial_update_merges(self, author_repository, sample_author):
        """Fields not submitted keep their stored values."""
        author = await author_repository.create(sample_author)

        updated = await author_repository.update(author.id, {"name": "Le Guin"})

        assert updated.name == "Le Guin"
        assert updated.birthdate == "1929-10-21"

    @pytest.mark.asyncio
    async def test_update_revalidates_references(self, book_repository, books_collection,
                                                 authors_collection, sample_book):
        """Updating with a dangling reference fails and leaves the document untouched."""
        author_id = authors_collection.seed(name="A", birthdate="1900-01-01")
        sample_book["authors"] = [author_id]
        book = await book_repository.create(sample_book)

        with pytest.raises(ValidationFailed) as exc_info:
            await book_repository.update(book.id, {"authors": [author_id, str(ObjectId())]})

        assert exc_info.value.errors == {"authors": [DANGLING_REFERENCE_MESSAGE]}
        stored = await books_collection.find_by_id(book.id)
        assert stored["authors"] == [author_id]

    @pytest.mark.asyncio
    async def test_update_blank_required_field(self, author_repository, sample_author):
        """Clearing a required field fails validation."""
        author = await author_repository.create(sample_author)

        with pytest.raises(ValidationFailed) as exc_info:
            await author_repository.update(author.id, {"name": ""})

        assert exc_info.value.errors == {"name": ["name cannot be blank"]}


class TestDelete:
    """Test cases for delete."""

    @pytest.mark.asyncio
    async def test_delete_twice(self, book_repository, authors_collection, sample_book):
        """Second delete of the same id is NotFound."""
        sample_book["authors"] = [authors_collection.seed(name="A", birthdate="1900-01-01")]
        book = await book_repository.create(sample_book)

        await book_repository.delete(book.id)
        with pytest.raises(NotFound):
            await book_repository.delete(book.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, author_repository):
        with pytest.raises(NotFound):
            await author_repository.delete(str(ObjectId()))

    @pytest.mark.asyncio
    async def test_delete_does_not_cascade(self, author_repository, authors_collection,
                                           books_collection, sample_author):
        """Deleting a book leaves its id in the author's stored books."""
        book_id = books_collection.seed(title="T", publication_year=2000, description="d")
        sample_author["books"] = [book_id]
        author = await author_repository.create(sample_author)

        await books_collection.delete(book_id)

        stored = await authors_collection.find_by_id(author.id)
        assert stored["books"] == [book_id]
        fetched = await author_repository.get(author.id)
        assert fetched.books == []


def test_base_repository_requires_enrich(authors_collection, books_collection):
    """The base repository cannot be used without a projection."""
    with pytest.raises(TypeError):
        EntityRepository(authors_collection, books_collection)
