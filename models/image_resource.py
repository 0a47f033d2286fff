from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class ImageResource:
    """A user-selected plant image.

    Exactly one of `data` or `path` carries the content. The resource is
    never mutated; choosing another file produces a new instance.

    Attributes:
        filename: Original filename as selected by the user.
        mime_type: MIME type of the image (e.g. image/png).
        data: Raw image bytes when the upload is held in memory.
        path: Location on disk when the image is read lazily.
    """

    filename: str
    mime_type: str
    data: Optional[bytes] = None
    path: Optional[Path] = None

    @classmethod
    def from_path(cls, path: Path | str, mime_type: Optional[str] = None) -> "ImageResource":
        """Reference an image file on disk, guessing the MIME type from its name."""
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(filename=path.name, mime_type=mime_type or guessed or "application/octet-stream", path=path)


@dataclass(frozen=True)
class EncodedPayload:
    """Base64 image content paired with its MIME type."""

    mime_type: str
    data_b64: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data_b64}"
