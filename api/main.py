"""
FastAPI main application for the Library Catalog API.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict

import structlog
from fastapi import Body, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import services as service_registry
from api.auth import verify_access_token
from api.config import config as api_config
from api.models import Credentials, ErrorResponse, HealthResponse, SuccessResponse, TokenResponse
from api.services import CatalogServices, get_services
from catalog.database import MongoDBManager
from catalog.errors import CatalogError, InternalError
from catalog.models import UserRecord
from catalog.security import PasswordHasher, SecureRandomStringGenerator
from utilities.config import config
from utilities.logger import setup_logging

# Setup logging
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Library Catalog API")

    db_manager = MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        authors_collection=config.authors_collection,
        books_collection=config.books_collection,
        users_collection=config.users_collection
    )
    try:
        await db_manager.connect()
        service_registry.services = CatalogServices(
            authors=db_manager.get_collection("authors"),
            books=db_manager.get_collection("books"),
            users=db_manager.get_collection("users"),
            hasher=PasswordHasher(rounds=api_config.bcrypt_rounds),
            random_generator=SecureRandomStringGenerator(num_bytes=api_config.token_bytes),
            token_ttl=api_config.access_token_ttl_seconds,
            database=db_manager
        )
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    yield

    logger.info("Shutting down Library Catalog API")
    service_registry.services = None
    await db_manager.disconnect()


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description="""
    REST API for an author and book catalog.

    ## Features

    * **Authors and books**: create, read, update and delete
    * **Reference checks**: every author id on a book and every book id on an author must exist
    * **Authentication**: register or log in to obtain a bearer token valid for 30 minutes

    ## Authentication

    All catalog endpoints require an access token in the Authorization header:

    ```
    Authorization: Bearer your_access_token
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


def _error_response(status_code: int, **fields) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(**fields).model_dump(exclude_none=True),
        headers=headers
    )


# Exception handlers
@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    """Map domain errors to the error envelope."""
    error = getattr(exc, "error", None) if api_config.expose_error_details else None
    return _error_response(
        exc.status_code,
        message=exc.message,
        error=error,
        errors=getattr(exc, "errors", None)
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions (unknown routes, unsupported methods)."""
    return _error_response(exc.status_code, message=str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies with the validation envelope."""
    errors: Dict[str, list] = {}
    for error in exc.errors():
        loc = list(error.get("loc", ()))
        if not loc:
            field = "body"
        elif loc[0] == "body":
            # Malformed JSON reports a character offset instead of a field name
            field = loc[1] if len(loc) > 1 and isinstance(loc[1], str) else "body"
        else:
            field = str(loc[0])
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Invalid request body",
        errors=errors
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="Internal server error",
        error=str(exc) if api_config.expose_error_details else None
    )


def _envelope(status_code: int = status.HTTP_200_OK, **fields) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=SuccessResponse(**fields).model_dump(exclude_none=True)
    )


async def _read_credentials(request: Request) -> Credentials:
    """Read username and password from a JSON or form-encoded body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        data: Any = dict(await request.form())
    else:
        try:
            data = await request.json()
        except ValueError:
            data = {}
    if not isinstance(data, dict):
        data = {}
    try:
        return Credentials.model_validate(data)
    except ValidationError:
        return Credentials()


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    services = service_registry.services
    if services is not None and services.database is not None:
        health_info = await services.database.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        database_status=db_status
    )


# Authentication endpoints
@app.post("/register", response_model=TokenResponse, tags=["Authentication"])
async def register(request: Request):
    """
    Register a new user and return its first access token.

    - **username**: Unique login name
    - **password**: Password, stored as a bcrypt hash
    """
    credentials = await _read_credentials(request)
    try:
        user = await get_services().credentials.register(credentials.username, credentials.password)
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to register user", error=str(e))
        raise InternalError("Failed to register the user", str(e))

    return TokenResponse(message="User registered successfully", access_token=user.access_token)


@app.post("/login", response_model=TokenResponse, tags=["Authentication"])
async def login(request: Request):
    """
    Log in and return a fresh access token. Any previous token stops working.

    - **username**: Login name
    - **password**: Password
    """
    credentials = await _read_credentials(request)
    try:
        user = await get_services().credentials.login(credentials.username, credentials.password)
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to log in user", error=str(e))
        raise InternalError("Failed to log in", str(e))

    return TokenResponse(message="Login successful", access_token=user.access_token)


# Authors endpoints
@app.get("/authors", tags=["Authors"])
async def list_authors(user: UserRecord = Depends(verify_access_token)):
    """List all authors with their books expanded."""
    try:
        authors = await get_services().authors.list()
        return JSONResponse(content=[author.model_dump() for author in authors])
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to list authors", error=str(e))
        raise InternalError("Internal server error while listing authors", str(e))


@app.get("/authors/{author_id}", tags=["Authors"])
async def get_author(author_id: str, user: UserRecord = Depends(verify_access_token)):
    """
    Get a single author.

    - **author_id**: Author identifier
    """
    try:
        author = await get_services().authors.get(author_id)
        return _envelope(data=author.model_dump())
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to get author", author_id=author_id, error=str(e))
        raise InternalError("Internal server error while retrieving the author", str(e))


@app.post("/authors", tags=["Authors"])
async def create_author(
    payload: Dict[str, Any] = Body(...),
    user: UserRecord = Depends(verify_access_token)
):
    """
    Create an author.

    - **name**: Author name (required)
    - **birthdate**: Birth date as YYYY-MM-DD (required)
    - **books**: Ids of existing books
    """
    try:
        author = await get_services().authors.create(payload)
        return _envelope(
            status.HTTP_201_CREATED,
            message="Author created successfully",
            data=author.model_dump()
        )
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to create author", error=str(e))
        raise InternalError("Internal server error while creating the author", str(e))


@app.api_route("/authors/{author_id}", methods=["PUT", "PATCH"], tags=["Authors"])
async def update_author(
    author_id: str,
    payload: Dict[str, Any] = Body(...),
    user: UserRecord = Depends(verify_access_token)
):
    """
    Update an author. Submitted fields are merged over the stored ones.

    - **author_id**: Author identifier
    """
    try:
        author = await get_services().authors.update(author_id, payload)
        return _envelope(message="Author updated successfully", data=author.model_dump())
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to update author", author_id=author_id, error=str(e))
        raise InternalError("Internal server error while updating the author", str(e))


@app.delete("/authors/{author_id}", tags=["Authors"])
async def delete_author(author_id: str, user: UserRecord = Depends(verify_access_token)):
    """
    Delete an author. Books referencing it are left unchanged.

    - **author_id**: Author identifier
    """
    try:
        await get_services().authors.delete(author_id)
        return _envelope(message="Author deleted successfully")
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to delete author", author_id=author_id, error=str(e))
        raise InternalError("Internal server error while deleting the author", str(e))


# Books endpoints
@app.get("/books", tags=["Books"])
async def list_books(user: UserRecord = Depends(verify_access_token)):
    """List all books with their authors expanded."""
    try:
        books = await get_services().books.list()
        return JSONResponse(content=[book.model_dump() for book in books])
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to list books", error=str(e))
        raise InternalError("Internal server error while listing books", str(e))


@app.get("/books/{book_id}", tags=["Books"])
async def get_book(book_id: str, user: UserRecord = Depends(verify_access_token)):
    """
    Get a single book.

    - **book_id**: Book identifier
    """
    try:
        book = await get_services().books.get(book_id)
        return _envelope(data=book.model_dump())
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to get book", book_id=book_id, error=str(e))
        raise InternalError("Internal server error while retrieving the book", str(e))


@app.post("/books", tags=["Books"])
async def create_book(
    payload: Dict[str, Any] = Body(...),
    user: UserRecord = Depends(verify_access_token)
):
    """
    Create a book.

    - **title**: Book title (required)
    - **authors**: Ids of existing authors (required)
    - **publication_year**: Year of publication (required)
    - **description**: Book description (required)
    """
    try:
        book = await get_services().books.create(payload)
        return _envelope(
            status.HTTP_201_CREATED,
            message="Book created successfully",
            data=book.model_dump()
        )
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to create book", error=str(e))
        raise InternalError("Internal server error while creating the book", str(e))


@app.api_route("/books/{book_id}", methods=["PUT", "PATCH"], tags=["Books"])
async def update_book(
    book_id: str,
    payload: Dict[str, Any] = Body(...),
    user: UserRecord = Depends(verify_access_token)
):
    """
    Update a book. Submitted fields are merged over the stored ones.

    - **book_id**: Book identifier
    """
    try:
        book = await get_services().books.update(book_id, payload)
        return _envelope(message="Book updated successfully", data=book.model_dump())
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to update book", book_id=book_id, error=str(e))
        raise InternalError("Internal server error while updating the book", str(e))


@app.delete("/books/{book_id}", tags=["Books"])
async def delete_book(book_id: str, user: UserRecord = Depends(verify_access_token)):
    """
    Delete a book. Authors referencing it are left unchanged.

    - **book_id**: Book identifier
    """
    try:
        await get_services().books.delete(book_id)
        return _envelope(message="Book deleted successfully")
    except CatalogError:
        raise
    except Exception as e:
        logger.error("Failed to delete book", book_id=book_id, error=str(e))
        raise InternalError("Internal server error while deleting the book", str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=config.log_level.lower()
    )
