"""
Asset storage for uploaded fare-sign images.

Files are written under ``settings.asset_storage_dir`` and served from
``settings.asset_base_url``.
"""

import asyncio
import base64
import binascii
import logging
import uuid
from pathlib import Path
from typing import Optional

from beerank.app.core.config import settings
from beerank.app.core.exceptions import ValidationError

logger = logging.getLogger("beerank.assets")

MAX_ASSET_BYTES = 5 * 1024 * 1024

# Leading bytes -> file extension
IMAGE_SIGNATURES = (
    (b"\xff\xd8\xff", "jpg"),
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
)


def detect_image_extension(data: bytes) -> Optional[str]:
    for signature, extension in IMAGE_SIGNATURES:
        if data.startswith(signature):
            return extension
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


def decode_image(encoded: str) -> bytes:
    """
    Decode a base64 image, accepting an optional ``data:...;base64,`` prefix.

    Raises:
        ValidationError: If the payload is not valid base64
    """
    if encoded.startswith("data:") and "," in encoded:
        encoded = encoded.split(",", 1)[1]
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image must be base64 encoded", error_code="ERR_ASSET_001")


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def upload_asset(data: bytes, storage_dir: Optional[str] = None, base_url: Optional[str] = None) -> str:
    """
    Store an image and return its public URL.

    Args:
        data: Raw image bytes
        storage_dir: Override for settings.asset_storage_dir
        base_url: Override for settings.asset_base_url

    Returns:
        URL of the stored asset

    Raises:
        ValidationError: If the data is empty, too large or not a supported image
    """
    if not data:
        raise ValidationError("Image is empty", error_code="ERR_ASSET_002")
    if len(data) > MAX_ASSET_BYTES:
        raise ValidationError(
            "Image exceeds maximum size",
            error_code="ERR_ASSET_003",
            details={"max_bytes": MAX_ASSET_BYTES, "size": len(data)}
        )

    extension = detect_image_extension(data)
    if extension is None:
        raise ValidationError("Unsupported image format", error_code="ERR_ASSET_004")

    filename = f"signs/{uuid.uuid4().hex}.{extension}"
    path = Path(storage_dir or settings.asset_storage_dir) / filename

    # File I/O off the event loop
    await asyncio.to_thread(_write, path, data)
    logger.info("Stored asset %s (%d bytes)", filename, len(data))

    return f"{(base_url or settings.asset_base_url).rstrip('/')}/{filename}"
