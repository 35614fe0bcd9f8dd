"""
Stream Supervisor Configuration

Builds the supervisor configuration from the settings table, with
STREAMFLOW_<KEY> environment variables taking precedence so a deployment can
pin the backend without touching the database.

The backend is chosen once at startup; changing ``stream_backend`` through the
settings API takes effect on the next restart.
"""
import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from sqlalchemy.orm import Session

from constants import BackendKind, SettingKeys, SupervisorDefaults
from domain.value_objects.external_name import ExternalJobNaming
from exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "STREAMFLOW_"


@dataclass(frozen=True)
class StreamConfig:
    """Resolved supervisor configuration"""

    backend: BackendKind
    upload_path: Path
    ffmpeg_path: str = ''
    pm2_path: str = SupervisorDefaults.PM2_PATH
    pm2_namespace: str = SupervisorDefaults.PM2_NAMESPACE
    pm2_job_prefix: str = SupervisorDefaults.PM2_JOB_PREFIX
    reconcile_interval: float = SupervisorDefaults.RECONCILE_INTERVAL_SECONDS
    exit_poll_interval: float = SupervisorDefaults.EXIT_POLL_INTERVAL_SECONDS
    stop_grace_seconds: float = SupervisorDefaults.STOP_GRACE_SECONDS

    @property
    def naming(self) -> ExternalJobNaming:
        return ExternalJobNaming(prefix=self.pm2_job_prefix, namespace=self.pm2_namespace)


def _read_settings(db: Optional[Session]) -> Dict[str, str]:
    """Load settings rows into a dict (empty when no session is given)."""
    if db is None:
        return {}
    from models import Setting

    return {s.key: s.value for s in db.query(Setting).all()}


def _env_overrides(keys) -> Dict[str, str]:
    overrides = {}
    for key in keys:
        value = os.getenv(ENV_PREFIX + key.upper())
        if value is not None:
            overrides[key] = value
    return overrides


def _positive_float(values: Dict[str, str], key: str, default: float) -> float:
    raw = values.get(key)
    if raw is None or str(raw).strip() == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"Setting '{key}' must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"Setting '{key}' must be greater than zero, got {raw!r}")
    return value


def load_stream_config(db: Optional[Session] = None) -> StreamConfig:
    """
    Resolve the supervisor configuration.

    Args:
        db: Optional database session to read stored settings from

    Returns:
        StreamConfig

    Raises:
        ConfigurationError: If a value is invalid
    """
    keys = [
        SettingKeys.STREAM_BACKEND,
        SettingKeys.FFMPEG_PATH,
        SettingKeys.PM2_PATH,
        SettingKeys.PM2_NAMESPACE,
        SettingKeys.PM2_JOB_PREFIX,
        SettingKeys.UPLOAD_PATH,
        SettingKeys.RECONCILE_INTERVAL,
        SettingKeys.EXIT_POLL_INTERVAL,
        SettingKeys.STOP_GRACE_SECONDS,
    ]
    values = _read_settings(db)
    values.update(_env_overrides(keys))

    backend_raw = (values.get(SettingKeys.STREAM_BACKEND) or SupervisorDefaults.BACKEND).strip().lower()
    try:
        backend = BackendKind(backend_raw)
    except ValueError:
        raise ConfigurationError(
            f"Unknown stream backend {backend_raw!r} "
            f"(expected one of {', '.join(b.value for b in BackendKind)})"
        )

    upload_raw = values.get(SettingKeys.UPLOAD_PATH)
    if not upload_raw or not upload_raw.strip():
        from database import DATA_DIR
        upload_raw = str(DATA_DIR / 'uploads')

    config = StreamConfig(
        backend=backend,
        upload_path=Path(upload_raw).expanduser(),
        ffmpeg_path=(values.get(SettingKeys.FFMPEG_PATH) or '').strip(),
        pm2_path=(values.get(SettingKeys.PM2_PATH) or SupervisorDefaults.PM2_PATH).strip(),
        pm2_namespace=(values.get(SettingKeys.PM2_NAMESPACE) or SupervisorDefaults.PM2_NAMESPACE).strip(),
        pm2_job_prefix=(values.get(SettingKeys.PM2_JOB_PREFIX) or SupervisorDefaults.PM2_JOB_PREFIX).strip(),
        reconcile_interval=_positive_float(
            values, SettingKeys.RECONCILE_INTERVAL, SupervisorDefaults.RECONCILE_INTERVAL_SECONDS
        ),
        exit_poll_interval=_positive_float(
            values, SettingKeys.EXIT_POLL_INTERVAL, SupervisorDefaults.EXIT_POLL_INTERVAL_SECONDS
        ),
        stop_grace_seconds=_positive_float(
            values, SettingKeys.STOP_GRACE_SECONDS, SupervisorDefaults.STOP_GRACE_SECONDS
        ),
    )

    # Fail early on a namespace/prefix PM2 would not round-trip
    try:
        config.naming
    except ValueError as e:
        raise ConfigurationError(str(e))

    logger.info(f"Stream backend: {config.backend.value}")
    return config
