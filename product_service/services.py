# product_service/services.py

"""
Operations that span the repository and the media store.

- store_upload: validate one incoming file and hand it to the media store.
- delete_product_with_cleanup: delete a product and reclaim its media.
  Media cleanup is best-effort; only the record deletion decides the outcome.
"""
import asyncio
import logging
import os

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from .errors import (
    PayloadTooLarge,
    TransientBackendFailure,
    UnsupportedMediaType,
    ValidationFailed,
)
from .media import (
    MAX_UPLOAD_BYTES,
    describe_limit,
    normalize_media_type,
    resource_type_for,
    sanitize_filename,
)
from .repository import ProductRepository
from .storage import MediaStore, StoredMedia

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def _measure(file) -> int:
    position = file.tell()
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(position)
    return size


async def store_upload(
    store: MediaStore,
    upload: UploadFile,
    max_bytes: int = MAX_UPLOAD_BYTES,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> StoredMedia:
    """
    Check the declared media type and size, then save the file.
    Rejections happen before anything is written to the store.
    """
    media_type = normalize_media_type(upload.content_type)
    resource_type = resource_type_for(media_type)
    if resource_type is None:
        logger.warning(f"Rejected upload '{upload.filename}' with type '{media_type}'")
        raise UnsupportedMediaType()

    size = upload.size
    if size is None:
        size = await run_in_threadpool(_measure, upload.file)
    if size > max_bytes:
        logger.warning(f"Rejected upload '{upload.filename}': {size} bytes")
        raise PayloadTooLarge(f"File too large. Maximum size is {describe_limit(max_bytes)}")
    if size == 0:
        raise ValidationFailed(["Uploaded file is empty"])

    file_name = sanitize_filename(upload.filename, media_type)
    try:
        stored = await asyncio.wait_for(
            store.save(upload, file_name, media_type, resource_type, max_bytes),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        logger.error(f"Timed out storing upload {file_name}")
        raise TransientBackendFailure("upload file", e)

    logger.info(f"File uploaded: {stored.file_name} ({stored.resource_type}, {stored.byte_size} bytes)")
    return stored


async def delete_media(
    store: MediaStore,
    public_id: str,
    resource_type: str = "image",
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    try:
        return await asyncio.wait_for(store.delete(public_id, resource_type), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise TransientBackendFailure("delete file", e)


async def _reclaim_media(store: MediaStore, reference: str, resource_type: str, timeout: float):
    try:
        public_id = store.reference_to_id(reference)
        if not public_id:
            logger.info(f"No stored {resource_type} id in '{reference}', nothing to clean up.")
            return
        await delete_media(store, public_id, resource_type, timeout)
        logger.info(f"Deleted {resource_type} from media storage: {public_id}")
    except Exception as e:
        logger.warning(f"Error deleting {resource_type} '{reference}' from media storage: {e}")


async def delete_product_with_cleanup(
    repository: ProductRepository,
    store: MediaStore,
    product_id: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> None:
    """
    Delete a product and, best-effort, the media it references.

    A failure while removing media is logged and ignored; the product is
    still deleted.
    """
    product = await run_in_threadpool(repository.get, product_id)

    for reference, resource_type in ((product.image_url, "image"), (product.video_url, "video")):
        if reference:
            await _reclaim_media(store, reference, resource_type, timeout)

    await run_in_threadpool(repository.delete, product.id)
