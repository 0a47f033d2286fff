"""Utilities to encode plant images and build Responses API input items."""

import base64
import logging
from typing import Any, Dict, List

import aiofiles

from models.image_resource import EncodedPayload, ImageResource
from services.errors import ImageReadError


async def read_image_bytes(image: ImageResource) -> bytes:
    """Return the full binary content of an image resource."""
    if image.data is not None:
        data = image.data
    elif image.path is not None:
        try:
            async with aiofiles.open(image.path, "rb") as f:
                data = await f.read()
        except OSError as exc:
            logging.error("Failed to read image %s: %s", image.path, exc)
            raise ImageReadError(f"Failed to read image '{image.filename}': {exc}") from exc
    else:
        raise ImageReadError(f"Image '{image.filename}' has no content.")

    if not data:
        raise ImageReadError(f"Image '{image.filename}' is empty.")
    return data


async def encode_image(image: ImageResource) -> EncodedPayload:
    """Read an image and base64-encode it for embedding in a JSON request."""
    data = await read_image_bytes(image)
    return EncodedPayload(mime_type=image.mime_type, data_b64=base64.b64encode(data).decode("ascii"))


def build_image_part(payload: EncodedPayload) -> Dict[str, Any]:
    """Return an `input_image` content part carrying the image as a data URL."""
    return {"type": "input_image", "image_url": payload.data_url}


def build_text_part(text: str) -> Dict[str, Any]:
    return {"type": "input_text", "text": text}


def build_analysis_inputs(instruction: str, payload: EncodedPayload) -> List[Dict[str, Any]]:
    """Build the single-message input for a one-shot image analysis."""
    return [
        {
            "type": "message",
            "role": "user",
            "content": [build_text_part(instruction), build_image_part(payload)],
        }
    ]


def build_seed_history(payload: EncodedPayload, framing: str, diagnosis_text: str) -> List[Dict[str, Any]]:
    """Build the two-turn history that primes a follow-up conversation.

    The first turn replays the image with a framing sentence as the user;
    the second replays the diagnosis verbatim as the assistant.
    """
    return [
        {
            "type": "message",
            "role": "user",
            "content": [build_image_part(payload), build_text_part(framing)],
        },
        {"type": "message", "role": "assistant", "content": diagnosis_text},
    ]


def build_user_message(text: str) -> Dict[str, Any]:
    return {"type": "message", "role": "user", "content": [build_text_part(text)]}


def build_assistant_message(text: str) -> Dict[str, Any]:
    return {"type": "message", "role": "assistant", "content": text}
