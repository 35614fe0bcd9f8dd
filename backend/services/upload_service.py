"""
Upload storage for broadcast source files.
"""
import shutil
import time
from pathlib import Path
from typing import BinaryIO, Optional
import logging

from constants import UploadConfig
from exceptions import ConfigurationError, ValidationError
from services.path_validator import path_validator

logger = logging.getLogger(__name__)

MAX_NAME_ATTEMPTS = 100


class UploadService:
    """Stores uploaded videos under the configured upload directory"""

    def __init__(self, upload_dir: Path):
        ok, error, resolved = path_validator.ensure_directory(str(upload_dir))
        if not ok:
            raise ConfigurationError(f"Upload directory unusable: {error}")
        self.upload_dir = resolved

    def build_filename(self, original_name: Optional[str], attempt: int = 0) -> str:
        """``<epoch ms>-<sanitized original name>``, with ``-<attempt>`` after the timestamp on retries"""
        stamp = str(int(time.time() * 1000))
        if attempt:
            stamp = f"{stamp}-{attempt}"
        return f"{stamp}-{path_validator.sanitize_filename(original_name or '')}"

    def _reserve(self, original_name: str) -> Path:
        # Exclusive create, so two uploads of the same name never share a target
        for attempt in range(MAX_NAME_ATTEMPTS):
            target = self.upload_dir / self.build_filename(original_name, attempt)
            try:
                with open(target, 'xb'):
                    pass
            except FileExistsError:
                continue
            return target
        raise FileExistsError(f"No free upload name for {original_name!r} in {self.upload_dir}")

    def save(self, original_name: Optional[str], stream: BinaryIO) -> Path:
        """
        Copy an uploaded file to disk.

        Returns:
            Absolute path of the stored file

        Raises:
            ValidationError: If nothing was uploaded
        """
        if stream is None or not original_name:
            raise ValidationError("No file uploaded.", {UploadConfig.FORM_FIELD: "missing"})

        target = self._reserve(original_name)
        partial = target.with_name(target.name + '.part')
        try:
            with open(partial, 'wb') as out:
                shutil.copyfileobj(stream, out, UploadConfig.CHUNK_SIZE)
            partial.replace(target)
        except Exception:
            partial.unlink(missing_ok=True)
            target.unlink(missing_ok=True)
            raise

        size = target.stat().st_size
        if size == 0:
            target.unlink(missing_ok=True)
            raise ValidationError("Uploaded file is empty.", {UploadConfig.FORM_FIELD: "empty"})

        logger.info(f"Stored upload {original_name!r} as {target} ({size} bytes)")
        return target
