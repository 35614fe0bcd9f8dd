"""
Dependency injection providers for FastAPI.

This module provides factory functions for the process backend, the stream
supervisor and the upload service. Routes only depend on these providers, so
tests swap implementations through ``app.dependency_overrides``.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from config.stream_config import StreamConfig, load_stream_config
from constants import BackendKind
from database import get_db
from exceptions import ConfigurationError
from services.interfaces import IProcessBackend
from services.stream_supervisor import StreamSupervisor
from services.upload_service import UploadService
from utils.ffmpeg_helper import get_ffmpeg_path
from workers.ffmpeg_runner import FfmpegProcessBackend
from workers.pm2_client import Pm2Client
from workers.pm2_runner import Pm2ProcessBackend


def create_process_backend(config: StreamConfig) -> IProcessBackend:
    """
    Factory function for the configured process backend.

    Args:
        config: Resolved stream configuration

    Returns:
        IProcessBackend implementation

    Raises:
        ConfigurationError: If the backend kind is unknown
    """
    if config.backend is BackendKind.DIRECT:
        return FfmpegProcessBackend()
    if config.backend is BackendKind.PM2:
        return Pm2ProcessBackend(
            client=Pm2Client(pm2_path=config.pm2_path),
            naming=config.naming,
            poll_interval=config.exit_poll_interval,
        )
    raise ConfigurationError(f"Unsupported stream backend: {config.backend}")


def create_stream_supervisor(config: StreamConfig) -> StreamSupervisor:
    """
    Factory function for the stream supervisor.

    Args:
        config: Resolved stream configuration

    Returns:
        StreamSupervisor wired to the configured backend
    """
    return StreamSupervisor(
        backend=create_process_backend(config),
        ffmpeg_path=get_ffmpeg_path(config.ffmpeg_path),
        reconcile_interval=config.reconcile_interval,
        stop_grace_seconds=config.stop_grace_seconds,
    )


def get_stream_supervisor(request: Request) -> StreamSupervisor:
    """The supervisor created at startup (see main.lifespan)."""
    return request.app.state.supervisor


def get_upload_service(db: Session = Depends(get_db)) -> UploadService:
    """
    Factory function for UploadService instances.

    Args:
        db: Database session (injected)

    Returns:
        UploadService writing to the configured upload directory
    """
    return UploadService(load_stream_config(db).upload_path)
