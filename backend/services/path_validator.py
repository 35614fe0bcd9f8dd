"""
Path validation service - checks media files and upload directories
"""
import re
from pathlib import Path
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class PathValidator:
    """Validates file system paths used by uploads and broadcasts"""

    @staticmethod
    def validate_media_file(path_str: str) -> Tuple[bool, Optional[str]]:
        """
        Validate a media file exists and is readable

        Args:
            path_str: Path string to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        try:
            if not path_str or not str(path_str).strip():
                return False, "File path is empty"

            path = Path(path_str).expanduser()

            if not path.exists():
                return False, f"File does not exist: {path}"

            if not path.is_file():
                return False, f"Path is not a file: {path}"

            # Touch the first byte only; uploads can be several GB
            try:
                with open(path, 'rb') as f:
                    f.read(1)
            except OSError as e:
                return False, f"File is not readable: {path} - {str(e)}"

            return True, None

        except Exception as e:
            return False, f"Path validation error: {str(e)}"

    @staticmethod
    def ensure_directory(path_str: str) -> Tuple[bool, Optional[str], Optional[Path]]:
        """
        Ensure a directory exists and is writable, creating if necessary

        Args:
            path_str: Directory path string

        Returns:
            Tuple of (success, error_message, resolved_path)
        """
        try:
            if not path_str or not str(path_str).strip():
                return False, "Directory path is empty", None

            path = Path(path_str).expanduser().resolve()

            # Create directory if it doesn't exist
            path.mkdir(parents=True, exist_ok=True)

            # Test write access
            test_file = path / '.write_test'
            try:
                test_file.write_text('test')
                test_file.unlink()
            except Exception as e:
                return False, f"Directory is not writable: {path} - {str(e)}", path

            return True, None, path

        except Exception as e:
            return False, f"Failed to create/access directory: {str(e)}", None

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """
        Reduce a client-supplied filename to a safe basename.

        Whitespace becomes ``_``, directory components are dropped and anything
        outside ``[A-Za-z0-9._-]`` is replaced.
        """
        name = (filename or '').replace('\\', '/').split('/')[-1]
        name = re.sub(r"\s", "_", name)
        name = _UNSAFE_CHARS.sub("_", name).lstrip('.')
        return name or "upload"


# Global singleton
path_validator = PathValidator()
