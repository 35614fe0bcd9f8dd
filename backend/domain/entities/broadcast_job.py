"""
BroadcastJob Entity

One uploaded video being looped to its destinations.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Tuple

from domain.entities.process_handle import ProcessHandle
from domain.value_objects.destination import Destination
from domain.value_objects.stream_state import StreamState


@dataclass
class BroadcastJob:
    """
    Registry entry for a broadcast.

    ``destinations`` is fixed at creation. State changes go through the
    StreamRegistry, which serializes them per job.
    """

    id: str
    source_path: str
    destinations: Tuple[Destination, ...]
    state: StreamState = StreamState.STARTING
    handle: Optional[ProcessHandle] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    stopping_since: Optional[datetime] = None
    exit_code: Optional[int] = None
    stop_requested: bool = False

    def __post_init__(self):
        self.destinations = tuple(self.destinations)
        if not self.destinations:
            raise ValueError("A broadcast job needs at least one destination")

    @property
    def platforms(self) -> list[str]:
        return [d.platform.value for d in self.destinations]

    def snapshot(self) -> "BroadcastJob":
        """Detached copy for callers outside the registry (handle not shared)."""
        handle = None
        if self.handle is not None:
            handle = ProcessHandle(
                stream_id=self.handle.stream_id,
                pid=self.handle.pid,
                external_name=self.handle.external_name,
                started_at=self.handle.started_at,
            )
        return replace(self, handle=handle)
