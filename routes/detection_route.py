"""FastAPI routes of the detections backend."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from controllers.detection_controller import get_detection, list_detections, save_detection

router = APIRouter(prefix="/api/detections", tags=["detections"])


class DetectionPayload(BaseModel):
    originalFilename: Optional[str] = None
    mimeType: Optional[str] = None
    geminiResult: Optional[str] = None


@router.post("")
async def post_detection(request: Request, payload: DetectionPayload):
    """Save a diagnosis produced by the client application."""
    return await save_detection(request, payload.originalFilename, payload.mimeType, payload.geminiResult)


@router.get("")
async def get_detections(
    request: Request,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    try:
        return await list_detections(request, limit, offset)
    except Exception as exc:
        logging.error("Error listing detection results: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Failed to list detection results."})


@router.get("/{detection_id}")
async def get_detection_route(request: Request, detection_id: int):
    try:
        return await get_detection(request, detection_id)
    except Exception as exc:
        logging.error("Error loading detection %s: %s", detection_id, exc)
        return JSONResponse(status_code=500, content={"error": "Failed to load detection result."})
