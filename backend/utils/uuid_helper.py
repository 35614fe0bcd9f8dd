"""
UUID generation helper for the application.

Provides consistent identifier generation for broadcast jobs.
"""
import uuid

STREAM_ID_PREFIX = "stream_"


def generate_stream_id() -> str:
    """
    Generate a new stream identifier.

    Returns:
        str: ``stream_`` followed by 32 hex characters (UUID4)
    """
    return f"{STREAM_ID_PREFIX}{uuid.uuid4().hex}"
