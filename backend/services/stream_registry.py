"""
Stream Registry

Single source of truth for the broadcasts the supervisor is running.

One lock guards the map itself; each entry carries its own lock so state
changes on one stream never wait on another. Removal happens only through
``finalize``, which takes the entry lock and flags the entry, so a stop, an
exit observer and a reconciliation pass racing on the same stream remove it
exactly once.
"""
import threading
from datetime import datetime
from typing import Dict, List, Optional

from domain.entities.broadcast_job import BroadcastJob
from domain.entities.process_handle import ProcessHandle
from domain.value_objects.stream_state import StreamState
from exceptions import StreamConflictError
import logging

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("job", "lock", "removed")

    def __init__(self, job: BroadcastJob):
        self.job = job
        self.lock = threading.Lock()
        self.removed = False


class StreamRegistry:
    """Thread-safe map of stream id -> BroadcastJob"""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, stream_id: str) -> bool:
        with self._lock:
            return stream_id in self._entries

    def _entry(self, stream_id: str) -> Optional[_Entry]:
        with self._lock:
            return self._entries.get(stream_id)

    def register(self, job: BroadcastJob) -> None:
        """
        Insert a new job.

        Raises:
            StreamConflictError: If the id is already registered
        """
        with self._lock:
            if job.id in self._entries:
                raise StreamConflictError(job.id)
            self._entries[job.id] = _Entry(job)
        logger.debug(f"[{job.id}] registered ({job.state.value})")

    def get(self, stream_id: str) -> Optional[BroadcastJob]:
        """Detached snapshot of a job, or None."""
        entry = self._entry(stream_id)
        if entry is None:
            return None
        with entry.lock:
            if entry.removed:
                return None
            return entry.job.snapshot()

    def get_handle(self, stream_id: str) -> Optional[ProcessHandle]:
        """The job's process handle, for the supervisor and its backend only."""
        entry = self._entry(stream_id)
        if entry is None:
            return None
        with entry.lock:
            return None if entry.removed else entry.job.handle

    def attach_handle(self, stream_id: str, handle: ProcessHandle) -> bool:
        """Record the handle returned by the backend. False if the job is gone."""
        entry = self._entry(stream_id)
        if entry is None:
            return False
        with entry.lock:
            if entry.removed:
                return False
            entry.job.handle = handle
            return True

    def transition(self, stream_id: str, new_state: StreamState) -> bool:
        """
        Move a job to a new state.

        TERMINATED is reached only through ``finalize``.

        Returns:
            True if the transition happened, False if the job is gone or the
            transition is not allowed from its current state
        """
        if new_state is StreamState.TERMINATED:
            raise ValueError("Use finalize() to terminate a job")
        entry = self._entry(stream_id)
        if entry is None:
            return False
        with entry.lock:
            if entry.removed:
                return False
            job = entry.job
            if not job.state.can_transition_to(new_state):
                logger.debug(f"[{stream_id}] refused transition {job.state.value} -> {new_state.value}")
                return False
            job.state = new_state
            if new_state is StreamState.STOPPING:
                job.stopping_since = datetime.utcnow()
            logger.debug(f"[{stream_id}] -> {new_state.value}")
            return True

    def request_stop(self, stream_id: str) -> Optional[StreamState]:
        """
        Record a stop request and move RUNNING jobs to STOPPING atomically.

        Returns:
            The state the job was in before the request, or None if absent.
            STARTING jobs only get ``stop_requested`` set; the supervisor acts
            on it once the spawn finishes.
        """
        entry = self._entry(stream_id)
        if entry is None:
            return None
        with entry.lock:
            if entry.removed:
                return None
            job = entry.job
            previous = job.state
            job.stop_requested = True
            if previous is StreamState.RUNNING:
                job.state = StreamState.STOPPING
                job.stopping_since = datetime.utcnow()
            return previous

    def finalize(self, stream_id: str, exit_code: Optional[int] = None) -> Optional[BroadcastJob]:
        """
        Mark a job TERMINATED and remove it.

        Returns:
            The removed job (with its handle) for the caller that actually
            removed it; None for every other caller
        """
        entry = self._entry(stream_id)
        if entry is None:
            return None
        with entry.lock:
            if entry.removed:
                return None
            entry.removed = True
            entry.job.state = StreamState.TERMINATED
            entry.job.exit_code = exit_code
            job = entry.job
        with self._lock:
            if self._entries.get(stream_id) is entry:
                del self._entries[stream_id]
        logger.debug(f"[{stream_id}] finalized (exit code {exit_code})")
        return job

    def active_ids(self) -> List[str]:
        """Ids of jobs in STARTING or RUNNING, in registration order."""
        return [job.id for job in self.snapshot() if job.state.is_active()]

    def ids_in_state(self, state: StreamState) -> List[str]:
        return [job.id for job in self.snapshot() if job.state is state]

    def snapshot(self) -> List[BroadcastJob]:
        """Detached copies of all registered jobs."""
        with self._lock:
            entries = list(self._entries.values())
        jobs = []
        for entry in entries:
            with entry.lock:
                if not entry.removed:
                    jobs.append(entry.job.snapshot())
        return jobs
