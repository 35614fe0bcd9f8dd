"""
Broadcast command construction.

Builds the ffmpeg argument vector that loops an uploaded file forever and
pushes it, without re-encoding, to every destination in one process.
"""
from typing import Iterable, List

from constants import BroadcastDefaults
from domain.value_objects.destination import Destination
from exceptions import InvalidInputError


def usable_destinations(destinations: Iterable[Destination]) -> List[Destination]:
    """Destinations that carry a stream key, in request order."""
    return [d for d in (destinations or []) if d.has_key()]


def build_broadcast_command(
    ffmpeg_path: str,
    source_path: str,
    destinations: Iterable[Destination],
) -> List[str]:
    """
    Build the broadcast command as a list of arguments.

    Every value (path, URL, key) stays a separate argument, so nothing
    passes through a shell.

    Args:
        ffmpeg_path: ffmpeg binary to run
        source_path: Uploaded media file
        destinations: Ingest targets; entries without a key are skipped

    Returns:
        Argument vector, binary first

    Raises:
        InvalidInputError: If the source path is empty or no destination has a key
    """
    if not source_path or not str(source_path).strip():
        raise InvalidInputError("Server video path is required", {"videoPath": "missing"})

    targets = usable_destinations(destinations)
    if not targets:
        raise InvalidInputError(
            "At least one destination with a stream key is required",
            {"destinations": "empty"},
        )

    argv = [
        ffmpeg_path or 'ffmpeg',
        '-hide_banner',
        '-nostdin',
        '-nostats',
        '-loglevel', BroadcastDefaults.LOG_LEVEL,
        '-stream_loop', BroadcastDefaults.LOOP_FOREVER,
        '-re',
        '-i', str(source_path),
    ]

    # Output options only bind to the next output, so repeat them per target
    for destination in targets:
        argv += [
            '-map', '0:v?',
            '-map', '0:a?',
            '-c:v', BroadcastDefaults.VIDEO_CODEC,
            '-c:a', BroadcastDefaults.AUDIO_CODEC,
            '-f', BroadcastDefaults.OUTPUT_FORMAT,
            destination.ingest_url(),
        ]

    return argv
