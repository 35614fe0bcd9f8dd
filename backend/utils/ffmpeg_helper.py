"""
FFmpeg Binary Helper

Resolves the ffmpeg binary used for broadcasts.
Handles configured paths, bundled binaries (development and PyInstaller) and PATH.
"""
import shutil
import sys
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def get_bundled_binary_path(binary_name: str) -> Optional[str]:
    """
    Get path to a bundled binary if one ships with the application.

    Args:
        binary_name: e.g. 'ffmpeg'

    Returns:
        Absolute path to the binary, or None when it is not bundled
    """
    if getattr(sys, 'frozen', False):
        # Running as PyInstaller bundle
        base_path = Path(sys._MEIPASS)
    else:
        # Running in development
        base_path = Path(__file__).parent.parent.parent
    binary_path = base_path / 'ffmpeg_bins' / binary_name

    if binary_path.is_file():
        logger.debug(f"Found bundled {binary_name}: {binary_path}")
        return str(binary_path)
    return None


def get_ffmpeg_path(configured: Optional[str] = None) -> str:
    """
    Resolve the ffmpeg binary.

    Order: configured path, bundled binary, PATH lookup. Falls back to the
    bare name so a missing binary surfaces as a spawn failure, not here.
    """
    if configured and configured.strip():
        return configured.strip()

    bundled = get_bundled_binary_path('ffmpeg')
    if bundled:
        return bundled

    found = shutil.which('ffmpeg')
    if found:
        logger.info(f"Using ffmpeg from PATH: {found}")
        return found

    logger.warning("ffmpeg not found in bundle or PATH; broadcasts will fail to spawn")
    return 'ffmpeg'
