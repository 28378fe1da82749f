# product_service/main.py

"""
FastAPI Product Service API.
Manages the product catalogue (create, retrieve, update, delete) and the
images/videos attached to products. Media is stored on local disk or on
Cloudinary; deleting a product also removes the media it references.
"""
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .db import Database
from .errors import (
    MissingFields,
    PayloadTooLarge,
    ProductServiceError,
    UnknownError,
    ValidationFailed,
)
from .media import RESOURCE_TYPES, describe_limit
from .repository import ProductRepository
from .schemas import (
    ErrorResponse,
    FileListResponse,
    MediaDeleteResponse,
    MessageResponse,
    ProductCreatedResponse,
    ProductDetailResponse,
    ProductListResponse,
    ProductResponse,
    ProductUpdatedResponse,
    UploadResponse,
)
from .services import delete_media, delete_product_with_cleanup, store_upload
from .storage import LOCAL_URL_PREFIX, LocalMediaStore, MediaStore, build_media_store

# Room for multipart boundaries and headers around the file itself
MULTIPART_OVERHEAD_BYTES = 1024 * 1024

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Suppress noisy logs from third-party libraries for cleaner output
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)


# -----------------------------
# Dependencies
# -----------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(database: Database = Depends(get_database)):
    """
    Provide a database session for one request; closed after use.
    """
    db = database.session()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> ProductRepository:
    return ProductRepository(db)


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store


async def read_product_payload(request: Request) -> Dict[str, Any]:
    """Accept a JSON object or a urlencoded form as the product body."""
    content_type = request.headers.get("content-type", "")
    payload: Any = None
    if content_type.startswith("application/x-www-form-urlencoded"):
        form = await request.form()
        payload = dict(form)
    else:
        try:
            payload = await request.json()
        except ValueError:
            payload = None
    if not isinstance(payload, dict) or not payload:
        raise MissingFields("Request body is missing.")
    return payload


def _absolute_url(request: Request, reference: str) -> str:
    if reference.startswith("/"):
        return str(request.base_url).rstrip("/") + reference
    return reference


router = APIRouter()
error_responses = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


# --- Root Endpoint ---
@router.get("/", status_code=status.HTTP_200_OK, summary="Root endpoint")
async def read_root():
    return {"message": "Welcome to the Product Service!"}


# --- Health Check Endpoint ---
@router.get("/health", status_code=status.HTTP_200_OK, summary="Health check endpoint")
def health_check(
    database: Database = Depends(get_database),
    store: MediaStore = Depends(get_media_store),
    settings: Settings = Depends(get_settings),
):
    """
    Reports liveness plus the status of the database and media storage.
    Always returns 200; dependency problems show up in the body.
    """
    db_status = "Connected" if database.ping() else "Disconnected"
    return {
        "status": "OK",
        "message": "Server is running successfully",
        "database": db_status,
        "media_storage": store.status(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.app_env,
    }


# -----------------------------
# Product Endpoints
# -----------------------------
@router.get(
    "/products",
    response_model=ProductListResponse,
    responses={500: {"model": ErrorResponse}},
    summary="List all products, newest first",
)
def list_products(repository: ProductRepository = Depends(get_repository)):
    products = repository.list()
    return ProductListResponse(
        count=len(products),
        data=[ProductResponse.model_validate(p) for p in products],
    )


@router.get(
    "/products/{product_id}",
    response_model=ProductDetailResponse,
    responses={**error_responses, 404: {"model": ErrorResponse}},
    summary="Retrieve a product by ID",
)
def get_product(product_id: str, repository: ProductRepository = Depends(get_repository)):
    """
    Returns 400 for a malformed id (checked before querying) and 404 when no
    product has that id.
    """
    logger.info(f"Fetching product with ID: {product_id}")
    product = repository.get(product_id)
    return ProductDetailResponse(data=ProductResponse.model_validate(product))


@router.post(
    "/products",
    response_model=ProductCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses=error_responses,
    summary="Create a new product",
)
def create_product(
    payload: Dict[str, Any] = Depends(read_product_payload),
    repository: ProductRepository = Depends(get_repository),
):
    """
    Creates a product.

    - `product_name`, `price_new`, `brand` and `category` are required.
    - `description`, `image_url` and `video_url` default to empty strings.
    - All violated field rules are reported together.
    """
    logger.info(f"Creating product: {payload.get('product_name')}")
    product = repository.create(payload)
    return ProductCreatedResponse(
        productId=product.id,
        data=ProductResponse.model_validate(product),
    )


@router.put(
    "/products/{product_id}",
    response_model=ProductUpdatedResponse,
    responses={**error_responses, 404: {"model": ErrorResponse}},
    summary="Replace an existing product",
)
def update_product(
    product_id: str,
    payload: Dict[str, Any] = Depends(read_product_payload),
    repository: ProductRepository = Depends(get_repository),
):
    """
    Full replacement: optional fields left out of the body are reset to
    empty strings, not preserved.
    """
    logger.info(f"Updating product with ID: {product_id}")
    product = repository.update(product_id, payload)
    return ProductUpdatedResponse(data=ProductResponse.model_validate(product))


@router.delete(
    "/products/{product_id}",
    response_model=MessageResponse,
    responses={**error_responses, 404: {"model": ErrorResponse}},
    summary="Delete a product and its media",
)
async def delete_product(
    product_id: str,
    repository: ProductRepository = Depends(get_repository),
    store: MediaStore = Depends(get_media_store),
    settings: Settings = Depends(get_settings),
):
    logger.info(f"Attempting to delete product with ID: {product_id}")
    await delete_product_with_cleanup(
        repository, store, product_id, timeout=settings.media_timeout_seconds
    )
    return MessageResponse(message="Product deleted successfully")


# -----------------------------
# Media Endpoints
# -----------------------------
@router.post(
    "/upload",
    response_model=UploadResponse,
    responses=error_responses,
    summary="Upload one image or video",
)
async def upload_file(
    request: Request,
    store: MediaStore = Depends(get_media_store),
    settings: Settings = Depends(get_settings),
):
    """
    Accepts a single multipart file in the `file` field. The returned
    `filePath` is the reference to store in a product's `image_url` or
    `video_url`.
    """
    declared_length = request.headers.get("content-length", "")
    if (
        declared_length.isdigit()
        and int(declared_length) > settings.max_upload_bytes + MULTIPART_OVERHEAD_BYTES
    ):
        raise PayloadTooLarge(
            f"File too large. Maximum size is {describe_limit(settings.max_upload_bytes)}"
        )

    form = await request.form(max_files=1)
    try:
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            if any(isinstance(value, UploadFile) for _, value in form.multi_items()):
                raise ValidationFailed(["Unexpected file field"])
            raise ValidationFailed(["No file uploaded"])

        logger.info(f"Upload request received: {upload.filename} ({upload.content_type})")
        stored = await store_upload(
            store,
            upload,
            max_bytes=settings.max_upload_bytes,
            timeout=settings.media_timeout_seconds,
        )
    finally:
        await form.close()

    return UploadResponse(
        fileName=stored.file_name,
        filePath=stored.reference,
        fileUrl=_absolute_url(request, stored.reference),
        fileType=stored.resource_type,
        mimetype=stored.media_type,
        size=stored.byte_size,
        publicId=stored.public_id,
    )


@router.delete(
    "/upload/{public_id:path}",
    response_model=MediaDeleteResponse,
    responses=error_responses,
    summary="Delete a stored media object",
)
async def delete_uploaded_file(
    public_id: str,
    resource_type: str = Query("image", description="'image' or 'video'"),
    store: MediaStore = Depends(get_media_store),
    settings: Settings = Depends(get_settings),
):
    if resource_type not in RESOURCE_TYPES:
        raise ValidationFailed(["resource_type must be 'image' or 'video'"])
    result = await delete_media(
        store, public_id, resource_type, timeout=settings.media_timeout_seconds
    )
    message = "File deleted successfully" if result == "ok" else "File not found"
    return MediaDeleteResponse(message=message, result=result)


@router.get(
    "/uploads",
    response_model=FileListResponse,
    responses={500: {"model": ErrorResponse}},
    summary="List stored media",
)
async def list_uploaded_files(request: Request, store: MediaStore = Depends(get_media_store)):
    files = await store.list_files()
    for item in files:
        if item.get("url"):
            item["url"] = _absolute_url(request, item["url"])
    return FileListResponse(count=len(files), files=files)


# -----------------------------
# Error Handlers
# -----------------------------
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def handle_service_error(request: Request, exc: ProductServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error(exc.status_code, exc.message)


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else err.get("msg", ""))
    return _error(status.HTTP_400_BAD_REQUEST, "Validation failed: " + ", ".join(messages))


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, UnknownError().message)


# -----------------------------
# FastAPI App Initialization
# -----------------------------
def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    media_store: Optional[MediaStore] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Product Service API",
        description="Manages products and their images/videos",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.database = database or Database(
        settings.database_url, connect_timeout=settings.db_connect_timeout_seconds
    )
    app.state.media_store = media_store or build_media_store(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}")
        return await call_next(request)

    app.add_exception_handler(ProductServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router)

    if isinstance(app.state.media_store, LocalMediaStore):
        app.mount(
            LOCAL_URL_PREFIX,
            StaticFiles(directory=app.state.media_store.upload_dir, check_dir=False),
            name="uploads",
        )

    logger.info(f"Product Service: media storage is {app.state.media_store.status()}")

    @app.on_event("startup")
    async def startup_event():
        """
        Ensures database tables exist, retrying while the database comes up.
        Exits the process if it never becomes reachable.
        """
        db = app.state.database
        max_retries = max(1, settings.db_connect_retries)
        for i in range(max_retries):
            try:
                logger.info(f"Attempting to connect to the database (attempt {i+1}/{max_retries})...")
                await run_in_threadpool(db.connect)
                logger.info("Successfully connected to the database and ensured tables exist.")
                break
            except OperationalError as e:
                logger.warning(f"Failed to connect to the database: {e}")
                if i < max_retries - 1:
                    logger.info(f"Retrying in {settings.db_retry_delay_seconds} seconds...")
                    await asyncio.sleep(settings.db_retry_delay_seconds)
                else:
                    logger.critical(
                        f"Failed to connect to the database after {max_retries} attempts. Exiting application."
                    )
                    sys.exit(1)
            except Exception as e:
                logger.critical(
                    f"An unexpected error occurred during database startup: {e}",
                    exc_info=True,
                )
                sys.exit(1)

        store = app.state.media_store
        if isinstance(store, LocalMediaStore):
            store.ensure_directory()

    @app.on_event("shutdown")
    async def shutdown_event():
        app.state.database.dispose()

    return app


app = create_app()
