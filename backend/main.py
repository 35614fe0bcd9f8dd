from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from database import SessionLocal, DATA_DIR
from init_db import init_database
from api import settings, streams, uploads
from config.stream_config import load_stream_config
from dependencies import create_stream_supervisor
import asyncio
import logging
from logging.handlers import RotatingFileHandler
import sys

# Configure logging with rotating file handler
LOG_DIR = DATA_DIR / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)
LOG_FILE = LOG_DIR / "backend.log"

# Create formatters and handlers
log_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

# File handler with rotation (10MB per file, keep 5 backups)
file_handler = RotatingFileHandler(
    LOG_FILE,
    maxBytes=10 * 1024 * 1024,  # 10MB
    backupCount=5,
    encoding='utf-8'
)
file_handler.setFormatter(log_formatter)
file_handler.setLevel(logging.INFO)

# Console handler
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(log_formatter)
console_handler.setLevel(logging.INFO)

# Configure root logger
root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)
root_logger.addHandler(file_handler)
root_logger.addHandler(console_handler)

logger = logging.getLogger(__name__)
logger.info(f"Logging initialized: {LOG_FILE}")

# Global task references
_supervisor_task = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown"""
    global _supervisor_task

    # Startup
    init_database()

    db = SessionLocal()
    try:
        config = load_stream_config(db)
    finally:
        db.close()

    supervisor = create_stream_supervisor(config)
    app.state.supervisor = supervisor
    app.state.stream_config = config
    logger.info(f"Uploaded videos will be saved to: {config.upload_path}")

    # Start reconcile loop in background
    _supervisor_task = asyncio.create_task(supervisor.start())
    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Stopping background services...")
    await supervisor.stop()
    if _supervisor_task and not _supervisor_task.done():
        _supervisor_task.cancel()
        try:
            await _supervisor_task
        except asyncio.CancelledError:
            logger.info("Supervisor task cancelled successfully")

    await supervisor.shutdown()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="StreamFlow API",
    description="Loop uploaded videos to live-streaming platforms",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS - the frontend runs on a different port
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(uploads.router, prefix="/api", tags=["uploads"])
app.include_router(streams.router, prefix="/api", tags=["streams"])
app.include_router(settings.router, prefix="/api", tags=["settings"])


@app.get("/api/health")
def health_check():
    """Health check endpoint"""
    supervisor = getattr(app.state, "supervisor", None)
    return {
        "status": "ok",
        "service": "StreamFlow API",
        "version": "1.0.0",
        "backend": supervisor.backend.name if supervisor else None,
        "registered_streams": len(supervisor.registry) if supervisor else 0,
    }


if __name__ == "__main__":
    import uvicorn
    from constants import ServerConfig, SettingKeys
    from models import Setting

    # Read bind host from database settings, fall back to ServerConfig.HOST
    def get_bind_host() -> str:
        try:
            db = SessionLocal()
            setting = db.query(Setting).filter(Setting.key == SettingKeys.SERVER_HOST).first()
            db.close()
            if setting and setting.value:
                return setting.value
        except Exception as e:
            logger.warning(f"Could not read bind host from settings: {e}")
        return ServerConfig.HOST

    bind_host = get_bind_host()
    logger.info(f"🚀 StreamFlow Backend is live on http://{bind_host}:{ServerConfig.PORT}")
    uvicorn.run(app, host=bind_host, port=ServerConfig.PORT)
