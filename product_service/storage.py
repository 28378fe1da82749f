# product_service/storage.py

"""
Blob stores for uploaded media.

Two backends share one interface:
- LocalMediaStore writes files under UPLOAD_DIR, served at /uploads.
- CloudinaryMediaStore forwards files to Cloudinary through its SDK.

The Cloudinary SDK is synchronous; its calls run in the thread pool so they
never block the event loop. Callers bound every call with a timeout.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import aiofiles
import aiofiles.os
import cloudinary
import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from .config import Settings
from .errors import InvalidIdentifier, PayloadTooLarge, TransientBackendFailure
from .media import RESOURCE_TYPES, describe_limit, extract_public_id

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
LOCAL_URL_PREFIX = "/uploads"


@dataclass(frozen=True)
class StoredMedia:
    reference: str
    public_id: str
    resource_type: str
    byte_size: int
    file_name: str
    media_type: str


class MediaStore:
    """Interface implemented by every media backend."""

    name = "media store"

    async def save(
        self,
        upload: UploadFile,
        file_name: str,
        media_type: str,
        resource_type: str,
        max_bytes: int,
    ) -> StoredMedia:
        raise NotImplementedError

    async def delete(self, public_id: str, resource_type: str = "image") -> str:
        """Remove a stored object. Returns 'ok' or 'not found'."""
        raise NotImplementedError

    async def list_files(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def reference_to_id(self, reference: str) -> Optional[str]:
        """Map a stored reference back to the id `delete` expects, or None."""
        raise NotImplementedError

    def status(self) -> str:
        return self.name


class LocalMediaStore(MediaStore):
    name = "Local filesystem"

    def __init__(self, upload_dir: str, url_prefix: str = LOCAL_URL_PREFIX):
        self.upload_dir = os.path.abspath(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def ensure_directory(self):
        if not os.path.isdir(self.upload_dir):
            os.makedirs(self.upload_dir, exist_ok=True)
            logger.info(f"Created uploads directory: {self.upload_dir}")

    def _path_for(self, file_name: str) -> str:
        if (
            not file_name
            or file_name.startswith(".")
            or os.path.basename(file_name) != file_name
            or "\\" in file_name
        ):
            raise InvalidIdentifier("Invalid media identifier")
        return os.path.join(self.upload_dir, file_name)

    async def save(self, upload, file_name, media_type, resource_type, max_bytes):
        target = self._path_for(file_name)
        partial = os.path.join(self.upload_dir, f".{file_name}.part")
        written = 0
        saved = False
        try:
            await aiofiles.os.makedirs(self.upload_dir, exist_ok=True)
            await upload.seek(0)
            async with aiofiles.open(partial, "wb") as out:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_bytes:
                        raise PayloadTooLarge(
                            f"File too large. Maximum size is {describe_limit(max_bytes)}"
                        )
                    await out.write(chunk)
            await aiofiles.os.replace(partial, target)
            saved = True
        except OSError as e:
            logger.error(f"Error writing upload {file_name}: {e}", exc_info=True)
            raise TransientBackendFailure("store file", e)
        finally:
            # Also runs when a timeout cancels the write
            if not saved:
                await self._discard(partial)

        logger.info(f"File saved at: {target} ({written} bytes)")
        return StoredMedia(
            reference=f"{self.url_prefix}/{file_name}",
            public_id=file_name,
            resource_type=resource_type,
            byte_size=written,
            file_name=file_name,
            media_type=media_type,
        )

    async def _discard(self, path: str):
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial upload {path}: {e}")

    async def delete(self, public_id, resource_type="image"):
        path = self._path_for(public_id)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.warning(f"Local media {public_id} not found for deletion.")
            return "not found"
        except OSError as e:
            raise TransientBackendFailure("delete file", e)
        logger.info(f"Deleted local media: {public_id}")
        return "ok"

    def _scan(self) -> List[Dict[str, Any]]:
        files = []
        if not os.path.isdir(self.upload_dir):
            return files
        with os.scandir(self.upload_dir) as entries:
            for entry in entries:
                if not entry.is_file() or entry.name.startswith("."):
                    continue
                stats = entry.stat()
                files.append(
                    {
                        "name": entry.name,
                        "url": f"{self.url_prefix}/{entry.name}",
                        "size": stats.st_size,
                        "created": datetime.fromtimestamp(
                            stats.st_ctime, tz=timezone.utc
                        ).isoformat(),
                    }
                )
        return sorted(files, key=lambda f: f["created"], reverse=True)

    async def list_files(self):
        try:
            return await run_in_threadpool(self._scan)
        except OSError as e:
            raise TransientBackendFailure("list files", e)

    def reference_to_id(self, reference):
        """Only the relative references this store hands out map to local files."""
        if not reference or not isinstance(reference, str):
            return None
        try:
            parsed = urlparse(reference)
        except ValueError:
            return None
        if parsed.scheme or parsed.netloc:
            return None
        path = parsed.path
        prefix = self.url_prefix + "/"
        if not path.startswith(prefix):
            return None
        name = path[len(prefix) :]
        if not name or "/" in name or name.startswith("."):
            return None
        return name


class CloudinaryMediaStore(MediaStore):
    name = "Cloudinary"

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = "products"):
        self.folder = folder.strip("/")
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )

    async def save(self, upload, file_name, media_type, resource_type, max_bytes):
        stem = os.path.splitext(file_name)[0]
        await upload.seek(0)
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                upload.file,
                resource_type=resource_type,
                folder=self.folder or None,
                public_id=stem,
                overwrite=False,
            )
        except cloudinary.exceptions.Error as e:
            logger.error(f"Cloudinary upload failed for {file_name}: {e}", exc_info=True)
            raise TransientBackendFailure("upload file", e)

        logger.info(f"Uploaded to Cloudinary: {result.get('public_id')}")
        return StoredMedia(
            reference=result["secure_url"],
            public_id=result["public_id"],
            resource_type=result.get("resource_type", resource_type),
            byte_size=int(result.get("bytes") or 0),
            file_name=file_name,
            media_type=media_type,
        )

    async def delete(self, public_id, resource_type="image"):
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.destroy,
                public_id,
                resource_type=resource_type,
                invalidate=True,
            )
        except cloudinary.exceptions.Error as e:
            raise TransientBackendFailure("delete file", e)
        outcome = result.get("result", "")
        if outcome not in ("ok", "not found"):
            raise TransientBackendFailure(
                "delete file", RuntimeError(f"unexpected result '{outcome}'")
            )
        logger.info(f"Cloudinary destroy {resource_type} {public_id}: {outcome}")
        return outcome

    def _resources(self) -> List[Dict[str, Any]]:
        files = []
        prefix = f"{self.folder}/" if self.folder else None
        for resource_type in RESOURCE_TYPES:
            options = {"type": "upload", "resource_type": resource_type, "max_results": 500}
            if prefix:
                options["prefix"] = prefix
            for resource in cloudinary.api.resources(**options).get("resources", []):
                files.append(
                    {
                        "name": resource["public_id"],
                        "url": resource.get("secure_url"),
                        "size": resource.get("bytes"),
                        "created": resource.get("created_at"),
                    }
                )
        return files

    async def list_files(self):
        try:
            return await run_in_threadpool(self._resources)
        except cloudinary.exceptions.Error as e:
            raise TransientBackendFailure("list files", e)

    def reference_to_id(self, reference):
        return extract_public_id(reference)

    def status(self):
        return "Cloudinary - Configured"


def build_media_store(settings: Settings) -> MediaStore:
    if settings.media_backend == "cloudinary":
        return CloudinaryMediaStore(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
            settings.cloudinary_folder,
        )
    return LocalMediaStore(settings.upload_dir)
