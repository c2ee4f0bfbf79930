# jobboard/api/v1/uploads.py
"""
Resume and profile-picture uploads.
- POST /upload/resume (pdf) and /upload/profile (jpg/png), multipart field ``file``
- Files go through services.storage (S3/R2 when configured, else local disk)
- GET /host/{folder}/{name} streams a stored file back
"""
import asyncio
import logging
import mimetypes
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile

from jobboard.api.v1.auth import get_current_user
from jobboard.api.v1.schemas import UploadOut
from jobboard.core.config import settings
from jobboard.db.documents import User
from jobboard.services import storage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])

ALLOWED_SUFFIXES = {
    "resume": {".pdf"},
    "profile": {".jpg", ".jpeg", ".png"},
}
UPLOAD_MESSAGES = {
    "resume": "File uploaded successfully",
    "profile": "Profile image uploaded successfully",
}


async def _upload(folder: str, file: UploadFile) -> dict:
    suffix = Path(file.filename or "").suffix.lower()
    if suffix not in ALLOWED_SUFFIXES[folder]:
        raise HTTPException(status_code=400, detail="Invalid format")

    data = await file.read()
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    try:
        name = await storage.store_file(file, folder, data=data)
    except OSError as exc:
        logger.exception("Storing %s upload failed", folder)
        raise HTTPException(status_code=500, detail="Error while uploading") from exc
    return {"message": UPLOAD_MESSAGES[folder], "url": f"/host/{folder}/{name}"}


@router.post("/upload/resume", response_model=UploadOut)
async def upload_resume(file: UploadFile = File(...), _: User = Depends(get_current_user)):
    return await _upload("resume", file)


@router.post("/upload/profile", response_model=UploadOut)
async def upload_profile(file: UploadFile = File(...), _: User = Depends(get_current_user)):
    return await _upload("profile", file)


@router.get("/host/{folder}/{name}")
async def serve_file(folder: str, name: str):
    if folder not in storage.FOLDERS:
        raise HTTPException(status_code=404, detail="File not found")
    loop = asyncio.get_event_loop()
    # boto3 / file reads are blocking
    data = await loop.run_in_executor(None, storage.download_to_bytes, folder, name)
    if data is None:
        raise HTTPException(status_code=404, detail="File not found")
    media_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)
