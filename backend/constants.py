"""
Application-wide constants and configuration keys.

This module centralizes all magic strings and numbers used throughout the application
to improve maintainability and reduce duplication.
"""
from enum import Enum


class Platform(str, Enum):
    """
    Supported live-streaming platforms.

    Each platform owns the RTMP ingest URL template its stream key is appended to.
    """

    YOUTUBE = 'youtube'
    FACEBOOK = 'facebook'
    TWITCH = 'twitch'

    @classmethod
    def ingest_template(cls, platform: 'Platform') -> str:
        """Get the ingest URL template for a platform"""
        templates = {
            cls.YOUTUBE: "rtmp://a.rtmp.youtube.com/live2/{key}",
            cls.FACEBOOK: "rtmp://live-api-s.facebook.com:443/rtmp/{key}",
            cls.TWITCH: "rtmp://live.twitch.tv/app/{key}",
        }
        return templates[platform]

    @classmethod
    def values(cls) -> list[str]:
        return [p.value for p in cls]


class BackendKind(str, Enum):
    """Process backends the supervisor can run on"""

    DIRECT = 'direct'  # Supervisor owns the ffmpeg subprocess
    PM2 = 'pm2'        # Jobs are delegated to a PM2 daemon


class ServerConfig:
    """Server configuration constants"""

    HOST = "0.0.0.0"  # Listen on all interfaces by default
    PORT = 3000  # Same port the original frontend talks to


class SettingKeys:
    """Database setting keys used throughout the application"""

    # Supervisor
    STREAM_BACKEND = "stream_backend"
    RECONCILE_INTERVAL = "reconcile_interval"
    EXIT_POLL_INTERVAL = "exit_poll_interval"
    STOP_GRACE_SECONDS = "stop_grace_seconds"

    # Binaries
    FFMPEG_PATH = "ffmpeg_path"
    PM2_PATH = "pm2_path"

    # PM2 job tagging
    PM2_NAMESPACE = "pm2_namespace"
    PM2_JOB_PREFIX = "pm2_job_prefix"

    # Storage
    UPLOAD_PATH = "upload_path"

    # Network Configuration
    SERVER_HOST = "server_host"


class SupervisorDefaults:
    """Default values for the stream supervisor"""

    BACKEND = BackendKind.DIRECT.value
    RECONCILE_INTERVAL_SECONDS = 15.0  # Self-healing pass over the registry
    EXIT_POLL_INTERVAL_SECONDS = 2.0   # PM2 exit observation poll
    STOP_GRACE_SECONDS = 10.0          # Re-kill jobs stuck in STOPPING after this long
    PM2_PATH = "pm2"
    PM2_NAMESPACE = "streamflow"
    PM2_JOB_PREFIX = "streamflow-"


class BroadcastDefaults:
    """ffmpeg options used for every broadcast"""

    LOOP_FOREVER = "-1"
    OUTPUT_FORMAT = "flv"
    VIDEO_CODEC = "copy"
    AUDIO_CODEC = "copy"
    LOG_LEVEL = "warning"


class UploadConfig:
    """Upload handling constants"""

    FORM_FIELD = "video"
    CHUNK_SIZE = 1024 * 1024  # 1MB copy buffer


class HTTPStatus:
    """HTTP status codes used throughout the application"""

    # Success
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204

    # Client Errors
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422

    # Server Errors
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
