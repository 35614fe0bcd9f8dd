"""
Streams API endpoints - start, stop and list looped broadcasts
"""
from fastapi import APIRouter, Depends
from typing import List
from dependencies import get_stream_supervisor
from services.stream_supervisor import StreamSupervisor
from utils.error_handlers import handle_api_errors
from utils.logging_utils import set_logging_context
from constants import HTTPStatus
from schemas import (
    StartStreamRequest,
    StartStreamResponse,
    StopStreamResponse,
    StreamDetail,
    StreamListResponse,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stream/start", response_model=StartStreamResponse, status_code=HTTPStatus.ACCEPTED)
@handle_api_errors("Stream start")
async def start_stream(
    request: StartStreamRequest,
    supervisor: StreamSupervisor = Depends(get_stream_supervisor)
):
    """
    Start looping an uploaded video to one or more platforms.

    Returns as soon as ffmpeg is launched; the broadcast runs until stopped.

    Raises:
        HTTPException: 400 on missing path/keys, 502 if the process fails to start
    """
    set_logging_context(operation="stream_start")
    stream_id = await supervisor.start_stream(request.videoPath, request.to_destinations())
    return StartStreamResponse(
        message="Streaming process started successfully!",
        streamId=stream_id
    )


@router.post("/stream/stop/{stream_id}", response_model=StopStreamResponse)
@handle_api_errors("Stream stop")
async def stop_stream(
    stream_id: str,
    supervisor: StreamSupervisor = Depends(get_stream_supervisor)
):
    """
    Stop a broadcast.

    Unknown or already-stopped streams are reported with ``alreadyStopped``
    rather than as an error, so repeated stops are harmless.
    """
    set_logging_context(operation="stream_stop", stream_id=stream_id)
    result = await supervisor.stop_stream(stream_id)
    return StopStreamResponse(
        streamId=stream_id,
        alreadyStopped=result.already_stopped,
        message=result.message
    )


@router.get("/streams", response_model=StreamListResponse)
@handle_api_errors("List streams")
async def list_streams(supervisor: StreamSupervisor = Depends(get_stream_supervisor)):
    """Ids of all broadcasts that are starting or running"""
    stream_ids: List[str] = await supervisor.list_streams()
    return StreamListResponse(streamIds=stream_ids, activeStreams=stream_ids)


@router.get("/streams/{stream_id}", response_model=StreamDetail)
@handle_api_errors("Get stream")
def get_stream(stream_id: str, supervisor: StreamSupervisor = Depends(get_stream_supervisor)):
    """
    Details for one registered broadcast

    Raises:
        HTTPException: 404 if the stream is not registered
    """
    job = supervisor.get_stream(stream_id)
    return StreamDetail(
        streamId=job.id,
        state=job.state.value,
        sourcePath=job.source_path,
        platforms=job.platforms,
        createdAt=job.created_at,
        stopRequested=job.stop_requested,
        pid=job.handle.pid if job.handle else None,
        externalName=job.handle.external_name if job.handle else None
    )
