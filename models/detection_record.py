from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class DetectionRecord:
    """In-memory representation of a row in the DETECTION table.

    Attributes:
        id: Primary key (None for new records).
        original_filename: Filename of the analyzed image.
        mime_type: MIME type of the analyzed image.
        result_text: Diagnosis text produced by the AI service.
        created_at: ISO-8601 UTC timestamp set when the row was inserted.
    """

    id: Optional[int]
    original_filename: str
    mime_type: str
    result_text: str
    created_at: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Return the record using the wire field names of the detections API."""
        return {
            "id": str(self.id) if self.id is not None else None,
            "originalFilename": self.original_filename,
            "mimeType": self.mime_type,
            "geminiResult": self.result_text,
            "timestamp": self.created_at,
        }
