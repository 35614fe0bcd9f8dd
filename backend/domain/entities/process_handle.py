"""
ProcessHandle Entity

Reference to the thing actually doing the broadcast: an owned OS subprocess
or a named job in an external process manager. Backends subclass it to keep
their private state next to the public fields.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class ProcessHandle:
    """
    Handle owned by exactly one BroadcastJob.

    Only the registry entry of that job and the backend that created the
    handle may touch it.
    """

    stream_id: str
    pid: Optional[int] = None
    external_name: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.utcnow)

    def describe(self) -> str:
        """Short human-readable description for logs."""
        if self.external_name:
            return f"job {self.external_name}"
        return f"pid {self.pid}"
