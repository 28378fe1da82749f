# product_service/media.py

"""
Media helpers shared by the upload and cleanup paths: accepted media types,
filename sanitising and mapping a stored media URL back to its blob id.
"""
import logging
import re
import secrets
import time
import unicodedata
from typing import Optional

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 50 * 1024 * 1024
MAX_FILENAME_LENGTH = 100

# Declared media type -> (resource type, canonical extension)
ALLOWED_MEDIA_TYPES = {
    "image/jpeg": ("image", ".jpg"),
    "image/jpg": ("image", ".jpg"),
    "image/png": ("image", ".png"),
    "image/gif": ("image", ".gif"),
    "video/mp4": ("video", ".mp4"),
    "video/quicktime": ("video", ".mov"),
    "video/x-msvideo": ("video", ".avi"),
    "video/avi": ("video", ".avi"),
    "video/webm": ("video", ".webm"),
    "video/x-matroska": ("video", ".mkv"),
}

# Extensions a client may keep for a given canonical extension
EXTENSION_ALIASES = {
    ".jpg": {".jpg", ".jpeg"},
    ".png": {".png"},
    ".gif": {".gif"},
    ".mp4": {".mp4"},
    ".mov": {".mov"},
    ".avi": {".avi"},
    ".webm": {".webm"},
    ".mkv": {".mkv"},
}

RESOURCE_TYPES = ("image", "video")

_VERSION_PREFIX = re.compile(r"^v\d+/")
_EXTENSION_SUFFIX = re.compile(r"\.[^/.]+$")
_ZERO_WIDTH = re.compile("[\u200b\u200c\u200d\u2060\ufeff]")
_DISALLOWED = re.compile(r"[^A-Za-z0-9._-]+")
_UNDERSCORE_RUN = re.compile(r"_{2,}")


def normalize_media_type(content_type: Optional[str]) -> str:
    """Lower-case a Content-Type header and drop parameters like charset."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def describe_limit(max_bytes: int) -> str:
    mebibytes, remainder = divmod(max_bytes, 1024 * 1024)
    if mebibytes and not remainder:
        return f"{mebibytes}MB"
    return f"{max_bytes} bytes"


def resource_type_for(content_type: Optional[str]) -> Optional[str]:
    """'image' or 'video' for an allowed media type, otherwise None."""
    entry = ALLOWED_MEDIA_TYPES.get(normalize_media_type(content_type))
    return entry[0] if entry else None


def extract_public_id(url) -> Optional[str]:
    """
    Map a media-host URL to the object's public id.

    https://res.cloudinary.com/demo/image/upload/v1712/products/shoe.png
    -> "products/shoe"

    Returns None when the URL has no `upload` segment or nothing after it.
    """
    if not url or not isinstance(url, str):
        return None
    try:
        parts = url.split("/")
        if "upload" not in parts:
            return None
        upload_index = parts.index("upload")
        path_after_upload = "/".join(parts[upload_index + 1 :])
        path_after_upload = _VERSION_PREFIX.sub("", path_after_upload, count=1)
        public_id = _EXTENSION_SUFFIX.sub("", path_after_upload)
    except Exception as e:
        logger.warning(f"Could not extract public id from '{url}': {e}")
        return None
    return public_id or None


def _split_extension(name: str):
    dot = name.rfind(".")
    if dot <= 0:
        return name, ""
    return name[:dot], name[dot:].lower()


def sanitize_filename(original_name: Optional[str], content_type: Optional[str]) -> str:
    """
    Build a collision-resistant storage name for an upload.

    "My Photo (1).JPEG" -> "My_Photo_1-1718030000000-9f2c4a1b.jpeg"
    """
    name = unicodedata.normalize("NFKC", original_name or "")
    name = name.replace("\\", "/").rsplit("/", 1)[-1]
    name = _ZERO_WIDTH.sub("", name)
    name = "".join(ch for ch in name if unicodedata.category(ch)[0] != "C")

    base, extension = _split_extension(name)
    canonical = ALLOWED_MEDIA_TYPES.get(normalize_media_type(content_type))
    if canonical:
        allowed = EXTENSION_ALIASES[canonical[1]]
        if extension not in allowed:
            extension = canonical[1]
    elif not re.fullmatch(r"\.[a-z0-9]{1,10}", extension):
        extension = ""

    base = _DISALLOWED.sub("_", base.strip())
    base = _UNDERSCORE_RUN.sub("_", base).strip("._-")
    if not base:
        base = "file"
    base = base[: max(1, MAX_FILENAME_LENGTH - len(extension))].rstrip("._-") or "file"

    unique_suffix = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"
    return f"{base}-{unique_suffix}{extension}"
