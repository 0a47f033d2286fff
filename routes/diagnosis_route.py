from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from controllers.diagnosis_controller import diagnose_upload, latest_diagnosis

router = APIRouter(prefix="/diagnoses", tags=["diagnoses"])


@router.post("")
async def post_diagnosis(request: Request, file: UploadFile = File(...)):
    """Upload a plant image and return its disease diagnosis."""
    try:
        return await diagnose_upload(request, file)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/latest")
async def get_latest_diagnosis(request: Request):
    """Return the latest diagnosis and whether it reached the backend."""
    try:
        return await latest_diagnosis(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
