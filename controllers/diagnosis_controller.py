import asyncio
import logging
from typing import Any, Dict

from fastapi import HTTPException, Request, UploadFile

from models.diagnosis_record import DiagnosisRecord
from models.image_resource import ImageResource
from services.diagnosis.analysis_client import AnalysisClient
from services.errors import AnalysisError, ImageReadError, PersistError
from services.persistence.detection_client import DetectionClient
from utils.media_validation import read_image_upload


def _record_payload(record: DiagnosisRecord) -> Dict[str, Any]:
    return {
        "diagnosis_id": record.record_id,
        "filename": record.source_image.filename,
        "mime_type": record.source_image.mime_type,
        "diagnosis": record.diagnosis_text,
        "created_at": record.created_at.isoformat(),
    }


async def persist_record(state: Any, record: DiagnosisRecord) -> None:
    """Save `record` to the detections backend and track the outcome.

    Failures are logged and recorded only; the diagnosis already shown to
    the user and the chat bound to it are left untouched.
    """
    client: DetectionClient = state.detection_client
    try:
        detection_id = await client.save(record)
    except PersistError as exc:
        logging.error("Error saving detection result for record %s: %s", record.record_id, exc)
        state.persist_status[record.record_id] = {"status": "failed", "error": str(exc)}
        return
    state.persist_status[record.record_id] = {"status": "saved", "id": detection_id}


def schedule_persist(state: Any, record: DiagnosisRecord) -> asyncio.Task:
    """Start a fire-and-forget save of `record`."""
    state.persist_status[record.record_id] = {"status": "pending"}
    task = asyncio.create_task(persist_record(state, record))
    state.background_tasks.add(task)
    task.add_done_callback(state.background_tasks.discard)
    return task


async def diagnose_upload(request: Request, file: UploadFile) -> Dict[str, Any]:
    """Handle an image upload: validate, diagnose, rebind the chat, and persist.

    Args:
        request: FastAPI Request object (used to access app.state for shared services).
        file: Uploaded plant image.

    Returns:
        A dict containing: diagnosis_id, filename, mime_type, diagnosis, created_at.

    Raises:
        HTTPException(400/415) for invalid uploads, HTTPException(502) when
        the AI service fails to produce a diagnosis.
    """
    image_bytes, mime_type = await read_image_upload(file)
    image = ImageResource(filename=file.filename, mime_type=mime_type, data=image_bytes)

    state = request.app.state
    state.latest_diagnosis = None
    state.chat_controller.on_new_image()

    analysis_client: AnalysisClient = state.analysis_client
    try:
        record = await analysis_client.diagnose(image)
    except ImageReadError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except AnalysisError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    state.latest_diagnosis = record
    schedule_persist(state, record)
    await state.chat_controller.on_new_diagnosis(record)
    return _record_payload(record)


async def latest_diagnosis(request: Request) -> Dict[str, Any]:
    """Return the most recent diagnosis together with its persistence status."""
    state = request.app.state
    record: DiagnosisRecord | None = state.latest_diagnosis
    if record is None:
        raise HTTPException(status_code=404, detail="No diagnosis yet")
    result = _record_payload(record)
    result["persistence"] = state.persist_status.get(record.record_id, {"status": "unknown"})
    return result
