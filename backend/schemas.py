from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime

from constants import Platform, SettingKeys, BackendKind
from domain.value_objects.destination import Destination
from domain.value_objects.external_name import SAFE_TOKEN
from exceptions import InvalidInputError


# Stream Schemas
class DestinationIn(BaseModel):
    platform: str
    key: str = ''


class StartStreamRequest(BaseModel):
    """
    Start request.

    Accepts an explicit ``destinations`` list and the original frontend's
    ``youtubeKey`` / ``facebookKey`` fields; both are merged in that order.
    """
    videoPath: Optional[str] = None
    destinations: List[DestinationIn] = Field(default_factory=list)
    youtubeKey: Optional[str] = None
    facebookKey: Optional[str] = None

    def to_destinations(self) -> List[Destination]:
        """
        Raises:
            InvalidInputError: If a platform is not supported
        """
        raw = [(d.platform, d.key) for d in self.destinations]
        if self.youtubeKey:
            raw.append((Platform.YOUTUBE.value, self.youtubeKey))
        if self.facebookKey:
            raw.append((Platform.FACEBOOK.value, self.facebookKey))

        destinations = []
        for platform, key in raw:
            try:
                destinations.append(Destination(platform=platform, key=key or ''))
            except ValueError as e:
                raise InvalidInputError(str(e), {"platform": platform})
        return destinations


class StartStreamResponse(BaseModel):
    message: str
    streamId: str


class StopStreamResponse(BaseModel):
    ok: bool = True
    streamId: str
    alreadyStopped: bool = False
    message: str


class StreamListResponse(BaseModel):
    streamIds: List[str]
    activeStreams: List[str]  # Alias for the original frontend


class StreamDetail(BaseModel):
    """Stream keys are never returned"""
    streamId: str
    state: str
    sourcePath: str
    platforms: List[str]
    createdAt: datetime
    stopRequested: bool
    pid: Optional[int] = None
    externalName: Optional[str] = None


class UploadResponse(BaseModel):
    serverPath: str


# Settings Schemas
class SettingBase(BaseModel):
    key: str
    value: str

    @field_validator('value')
    @classmethod
    def validate_value(cls, v, info):
        """Validate setting values based on key"""
        key = info.data.get('key', '')

        if key == SettingKeys.STREAM_BACKEND:
            allowed = [b.value for b in BackendKind]
            if v.strip().lower() not in allowed:
                raise ValueError(f"stream_backend must be one of {', '.join(allowed)}")
            return v.strip().lower()

        elif key in [SettingKeys.RECONCILE_INTERVAL, SettingKeys.EXIT_POLL_INTERVAL, SettingKeys.STOP_GRACE_SECONDS]:
            try:
                number = float(v)
            except ValueError:
                raise ValueError(f'{key} must be a number')
            if number <= 0:
                raise ValueError(f'{key} must be greater than zero')

        elif key in [SettingKeys.PM2_NAMESPACE, SettingKeys.PM2_JOB_PREFIX]:
            if not SAFE_TOKEN.match(v.strip()):
                raise ValueError(f'{key} may only contain letters, digits, "_" and "-"')
            return v.strip()

        return v


class Setting(SettingBase):
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
