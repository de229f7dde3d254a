import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import Settings, get_settings
from db import DocumentStore, InMemoryDocumentStore, SqlDocumentStore
from errors import (
    AuthError,
    AuthorizationError,
    DonationServiceError,
    InternalError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from models import utcnow
from routers import auth, donations, requests, users
from security import AuthProvider, SignedTokenAuthProvider
from services.catalog import DonationCatalog
from services.ledger import RequestLedger
from services.profiles import ProfileStore
from storage import InMemoryObjectStore, ObjectStore, S3ObjectStore

logger = logging.getLogger(__name__)

STATUS_CODES = (
    (ValidationError, 400),
    (AuthError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (StorageError, 502),
    (InternalError, 500),
)


def build_document_store(settings: Settings) -> DocumentStore:
    if settings.use_in_memory_backends or not settings.database_url:
        return InMemoryDocumentStore()
    return SqlDocumentStore(settings.database_url)


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.use_in_memory_backends or not settings.s3_bucket:
        return InMemoryObjectStore()
    return S3ObjectStore(
        bucket=settings.s3_bucket,
        region=settings.s3_region or "",
        endpoint=settings.s3_endpoint or "",
        access_key_id=settings.aws_access_key_id or "",
        secret_access_key=settings.aws_secret_access_key or "",
        public_base_url=settings.s3_public_base_url or "",
    )


async def handle_service_error(request: Request, exc: DonationServiceError):
    status_code = 500
    for error_class, code in STATUS_CODES:
        if isinstance(exc, error_class):
            status_code = code
            break
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def create_app(
    settings: Optional[Settings] = None,
    document_store: Optional[DocumentStore] = None,
    object_store: Optional[ObjectStore] = None,
    auth_provider: Optional[AuthProvider] = None,
    clock: Callable = utcnow,
) -> FastAPI:
    """
    Build the API. Clients that are not passed in are built from settings.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    if document_store is None:
        document_store = build_document_store(settings)
    if object_store is None:
        object_store = build_object_store(settings)
    if auth_provider is None:
        auth_provider = SignedTokenAuthProvider(
            settings.secret_key, max_age_seconds=settings.token_max_age_seconds
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        document_store.create_all()
        yield

    app = FastAPI(title="Donation Match", lifespan=lifespan)
    app.state.profiles = ProfileStore(document_store, auth_provider, clock=clock)
    app.state.catalog = DonationCatalog(document_store, object_store, clock=clock)
    app.state.ledger = RequestLedger(document_store, clock=clock)
    app.add_exception_handler(DonationServiceError, handle_service_error)

    @app.get("/")
    def read_root():
        return {"message": "Donation API is running"}

    app.include_router(auth.router)
    app.include_router(users.router, prefix="/users")
    app.include_router(donations.router, prefix="/donations")
    app.include_router(requests.router, prefix="/requests")
    return app


app = create_app()
