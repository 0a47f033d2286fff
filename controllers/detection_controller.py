import logging
from typing import Any, Dict, List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from dal.detection_dal import DetectionDAL
from models.detection_record import DetectionRecord

MISSING_FIELDS_ERROR = "Missing required fields: originalFilename, mimeType, geminiResult"
SAVE_FAILED_ERROR = "Failed to save detection result."


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


async def save_detection(
    request: Request,
    original_filename: Optional[str],
    mime_type: Optional[str],
    result_text: Optional[str],
) -> JSONResponse:
    """Validate and store one detection result.

    Args:
        request: FastAPI Request (used to access app.state.db_initializer).
        original_filename: Filename of the analyzed image.
        mime_type: MIME type of the analyzed image.
        result_text: Diagnosis text produced by the AI service.

    Returns:
        201 with `{message, id}` on success, 400 with `{error}` when a field
        is missing or blank, 500 with `{error}` when storage fails.
    """
    filename, mime, text = _clean(original_filename), _clean(mime_type), _clean(result_text)
    if not filename or not mime or not text:
        return JSONResponse(status_code=400, content={"error": MISSING_FIELDS_ERROR})

    record = DetectionRecord(id=None, original_filename=filename, mime_type=mime, result_text=text)
    try:
        detection_id = await DetectionDAL(request.app.state.db_initializer).create_detection(record)
    except Exception as exc:
        logging.error("Error saving detection result: %s", exc)
        return JSONResponse(status_code=500, content={"error": SAVE_FAILED_ERROR})

    logging.info("Detection written with ID: %s", detection_id)
    return JSONResponse(
        status_code=201,
        content={"message": "Detection result saved successfully!", "id": str(detection_id)},
    )


async def list_detections(request: Request, limit: int, offset: int) -> List[Dict[str, Any]]:
    records = await DetectionDAL(request.app.state.db_initializer).list_detections(limit=limit, offset=offset)
    return [record.to_payload() for record in records]


async def get_detection(request: Request, detection_id: int) -> JSONResponse:
    """Return one stored detection, or 404 with `{error}` when unknown."""
    record = await DetectionDAL(request.app.state.db_initializer).get_detection_by_id(detection_id)
    if record is None:
        return JSONResponse(status_code=404, content={"error": f"Detection {detection_id} not found"})
    return JSONResponse(content=record.to_payload())
