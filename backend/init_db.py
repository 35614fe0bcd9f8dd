from database import engine, Base, SessionLocal, DATA_DIR
from models import Setting
from constants import SettingKeys, SupervisorDefaults, ServerConfig
import logging

logger = logging.getLogger(__name__)


def default_settings() -> dict:
    """Default values seeded into the settings table on first start"""
    return {
        SettingKeys.STREAM_BACKEND: SupervisorDefaults.BACKEND,
        SettingKeys.RECONCILE_INTERVAL: str(SupervisorDefaults.RECONCILE_INTERVAL_SECONDS),
        SettingKeys.EXIT_POLL_INTERVAL: str(SupervisorDefaults.EXIT_POLL_INTERVAL_SECONDS),
        SettingKeys.STOP_GRACE_SECONDS: str(SupervisorDefaults.STOP_GRACE_SECONDS),
        # Empty means: bundled binary, then PATH
        SettingKeys.FFMPEG_PATH: '',
        SettingKeys.PM2_PATH: SupervisorDefaults.PM2_PATH,
        SettingKeys.PM2_NAMESPACE: SupervisorDefaults.PM2_NAMESPACE,
        SettingKeys.PM2_JOB_PREFIX: SupervisorDefaults.PM2_JOB_PREFIX,
        SettingKeys.UPLOAD_PATH: str(DATA_DIR / 'uploads'),
        SettingKeys.SERVER_HOST: ServerConfig.HOST,
    }


def init_database(bind=None):
    """Create all tables and insert default settings"""
    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    db = SessionLocal(bind=bind)
    try:
        inserted = 0
        for key, value in default_settings().items():
            existing = db.query(Setting).filter(Setting.key == key).first()
            if not existing:
                db.add(Setting(key=key, value=value))
                inserted += 1

        db.commit()
        if inserted:
            logger.info(f"Seeded {inserted} default setting(s)")
    except Exception as e:
        logger.error(f"Error initializing settings: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()
