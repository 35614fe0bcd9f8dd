"""
Upload API endpoint - stores a video for later broadcast
"""
from fastapi import APIRouter, Depends, File, UploadFile
from typing import Optional
from dependencies import get_upload_service
from services.upload_service import UploadService
from utils.error_handlers import handle_api_errors
from constants import HTTPStatus
from schemas import UploadResponse
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/upload", response_model=UploadResponse, status_code=HTTPStatus.CREATED)
@handle_api_errors("Upload")
def upload_video(
    video: Optional[UploadFile] = File(None),
    upload_service: UploadService = Depends(get_upload_service)
):
    """
    Store a single uploaded video (multipart field ``video``).

    Returns:
        Absolute server path to pass as ``videoPath`` when starting a stream

    Raises:
        HTTPException: 400 if no file was uploaded
    """
    filename = video.filename if video else None
    stream = video.file if video else None
    stored = upload_service.save(filename, stream)
    return UploadResponse(serverPath=str(stored))
