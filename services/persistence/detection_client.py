"""HTTP client that forwards diagnosis records to the detections backend."""

import logging
from typing import Any, Dict, Optional

import httpx

from models.diagnosis_record import DiagnosisRecord
from services.errors import PersistRejectedError, PersistUnreachableError

DETECTIONS_PATH = "/api/detections"


def build_detection_payload(record: DiagnosisRecord) -> Dict[str, str]:
    """Serialize a record using the field names the backend expects."""
    return {
        "originalFilename": record.source_image.filename,
        "mimeType": record.source_image.mime_type,
        "geminiResult": record.diagnosis_text,
    }


class DetectionClient:
    """Save diagnosis records with `POST /api/detections`.

    Args:
        base_url: Root URL of the detections backend.
        http_client: Optional shared `httpx.AsyncClient`; one is created
            (and owned) when omitted.
        timeout: Request timeout in seconds for an owned client.
    """

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        if not base_url:
            raise ValueError("Detections backend URL must be provided.")
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{DETECTIONS_PATH}"

    async def save(self, record: DiagnosisRecord) -> str:
        """POST the record and return the id assigned by the backend.

        Raises:
            PersistRejectedError: On a non-success HTTP status.
            PersistUnreachableError: If the backend cannot be reached.
        """
        try:
            response = await self._http.post(self.endpoint, json=build_detection_payload(record))
        except httpx.HTTPError as exc:
            logging.error("Error saving detection result to backend: %s", exc)
            raise PersistUnreachableError(f"Detections backend unreachable: {exc}") from exc

        body = self._json_body(response)
        if not response.is_success:
            message = body.get("error") or response.reason_phrase or f"Backend responded with status {response.status_code}"
            logging.error("Backend rejected detection (%s): %s", response.status_code, message)
            raise PersistRejectedError(response.status_code, message)

        record_id = body.get("id")
        if record_id is None:
            raise PersistRejectedError(response.status_code, "Backend response did not include an id.")
        logging.info("Backend save successful: %s", body.get("message") or record_id)
        return str(record_id)

    @staticmethod
    def _json_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
