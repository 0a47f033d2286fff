"""Validation helpers for uploaded plant images."""

import base64
import io

from fastapi import HTTPException, UploadFile
from PIL import Image, UnidentifiedImageError

ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/bmp",
}


def normalize_mime_type(content_type: str | None) -> str:
    """Strip MIME parameters (e.g. 'image/png; q=1') and lowercase the type."""
    return (content_type or "").lower().split(";", 1)[0].strip()


def verify_image_bytes(data: bytes) -> str:
    """Return the Pillow format name if `data` decodes as an image.

    Raises:
        ValueError: If the bytes are empty or not a recognizable image.
    """
    if not data:
        raise ValueError("Image data is empty.")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            return img.format or "unknown"
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError(f"Image data could not be decoded: {exc}") from exc


def decode_data_url(data_url: str) -> bytes:
    """Return the raw bytes embedded in a base64 `data:` URL."""
    if not data_url.startswith("data:") or ";base64," not in data_url:
        raise ValueError("Image must be provided as a base64 data URL.")
    _, encoded = data_url.split(";base64,", 1)
    try:
        return base64.b64decode(encoded, validate=True)
    except ValueError as exc:
        raise ValueError("Image data URL is not valid base64.") from exc


def validate_image_file(image_file: UploadFile) -> str:
    """Validate that the upload declares a supported image type and return it."""
    if not image_file.filename:
        raise HTTPException(status_code=400, detail="Image file must have a filename.")
    content_type = normalize_mime_type(image_file.content_type)
    if not content_type:
        raise HTTPException(status_code=415, detail="Missing image content type.")
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=415, detail=f"Unsupported image content type: {image_file.content_type}")
    return content_type


async def read_image_upload(image_file: UploadFile) -> tuple[bytes, str]:
    """Read validated image bytes, ensuring the upload is a non-empty decodable image."""
    content_type = validate_image_file(image_file)
    image_bytes = await image_file.read()
    if not image_bytes:
        raise HTTPException(status_code=400, detail="Uploaded image file is empty.")
    try:
        verify_image_bytes(image_bytes)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return image_bytes, content_type
