"""
Stream Supervisor

Starts, stops and lists looped broadcasts on top of a process backend.

- start_stream: validate, register STARTING, spawn, RUNNING, watch for exit
- stop_stream: STOPPING + kill; the exit observer removes the job
- list_streams: STARTING/RUNNING ids (merged with the backend's own listing
  when it keeps one)
- reconcile: periodic pass that finalizes jobs whose process vanished and
  re-kills jobs stuck in STOPPING
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from domain.entities.broadcast_job import BroadcastJob
from domain.entities.process_handle import ProcessHandle
from domain.value_objects.destination import Destination
from domain.value_objects.stream_state import StreamState
from exceptions import (
    ExternalManagerError,
    InvalidInputError,
    NotFoundError,
    SpawnError,
    StreamConflictError,
)
from services.command_builder import build_broadcast_command, usable_destinations
from services.interfaces import IProcessBackend
from services.path_validator import path_validator
from services.stream_registry import StreamRegistry
from utils.logging_utils import StructuredLogger, logging_context
from utils.uuid_helper import generate_stream_id

logger = StructuredLogger(__name__)


@dataclass(frozen=True)
class StopResult:
    """Outcome of a stop request; every variant is a success for the caller"""

    stream_id: str
    already_stopped: bool = False
    already_stopping: bool = False

    @property
    def message(self) -> str:
        if self.already_stopped:
            return f"Stream {self.stream_id} not found or already stopped."
        if self.already_stopping:
            return f"Stream {self.stream_id} is already stopping."
        return f"Stream {self.stream_id} stopped successfully."


class StreamSupervisor:
    """Owns the registry and every exit observer task"""

    def __init__(
        self,
        backend: IProcessBackend,
        registry: Optional[StreamRegistry] = None,
        ffmpeg_path: str = 'ffmpeg',
        reconcile_interval: float = 15.0,
        stop_grace_seconds: float = 10.0,
        validate_source: bool = True,
    ):
        self.backend = backend
        self.registry = registry or StreamRegistry()
        self.ffmpeg_path = ffmpeg_path
        self.reconcile_interval = reconcile_interval
        self.stop_grace_seconds = stop_grace_seconds
        self.validate_source = validate_source
        self._watchers: Dict[str, asyncio.Task] = {}
        self.running = False

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    async def start_stream(self, source_path: str, destinations: Iterable[Destination]) -> str:
        """
        Start looping ``source_path`` to ``destinations``.

        Returns as soon as the process is launched.

        Raises:
            InvalidInputError: Missing/unreadable source or no usable destination
            SpawnError: The backend could not launch the broadcast
        """
        destinations = list(destinations or [])
        argv_template = build_broadcast_command(self.ffmpeg_path, source_path, destinations)

        if self.validate_source:
            valid, error = path_validator.validate_media_file(source_path)
            if not valid:
                raise InvalidInputError(error, {"videoPath": "unreadable"})

        job = self._register(source_path, usable_destinations(destinations))
        stream_id = job.id
        logger.info(
            f"[{stream_id}] Starting broadcast to {', '.join(job.platforms)}",
            extra={"stream_id": stream_id, "backend": self.backend.name},
        )

        try:
            handle = await self.backend.spawn(stream_id, argv_template)
        except SpawnError:
            self.registry.finalize(stream_id)
            raise
        except asyncio.CancelledError:
            self.registry.finalize(stream_id)
            raise
        except Exception as e:
            self.registry.finalize(stream_id)
            logger.error(f"[{stream_id}] Unexpected spawn failure: {e}", exc_info=True)
            raise SpawnError(stream_id, str(e)) from e

        self.registry.attach_handle(stream_id, handle)
        self.registry.transition(stream_id, StreamState.RUNNING)
        self._watchers[stream_id] = asyncio.create_task(
            self._observe_exit(stream_id, handle), name=f"exit-observer-{stream_id}"
        )

        # A stop that arrived while we were spawning
        current = self.registry.get(stream_id)
        if current is not None and current.stop_requested:
            logger.info(f"[{stream_id}] Stop was requested during start; stopping now")
            await self.stop_stream(stream_id)

        return stream_id

    def _register(self, source_path: str, destinations: List[Destination]) -> BroadcastJob:
        while True:
            job = BroadcastJob(
                id=generate_stream_id(),
                source_path=str(source_path),
                destinations=tuple(destinations),
            )
            try:
                self.registry.register(job)
                return job
            except StreamConflictError:
                logger.warning(f"Stream id collision on {job.id}; regenerating")

    # ------------------------------------------------------------------
    # Stop
    # ------------------------------------------------------------------

    async def stop_stream(self, stream_id: str) -> StopResult:
        """
        Send a forceful stop to a broadcast. Never raises for unknown ids.

        The job is removed later by its exit observer (or the reconciler),
        not by this call.
        """
        previous = self.registry.request_stop(stream_id)

        if previous is None:
            return await self._stop_unregistered(stream_id)

        if previous is StreamState.STARTING:
            # start_stream picks up stop_requested once the spawn completes
            logger.info(f"[{stream_id}] Stop requested while starting")
            return StopResult(stream_id, already_stopping=True)

        if previous in (StreamState.STOPPING, StreamState.TERMINATED):
            return StopResult(stream_id, already_stopping=True)

        handle = self.registry.get_handle(stream_id)
        if handle is None:
            return StopResult(stream_id, already_stopped=True)

        logger.info(f"[{stream_id}] Stop request received. Killing {handle.describe()}.")
        try:
            await self.backend.terminate(handle)
        except ExternalManagerError as e:
            # Job stays STOPPING; the reconciler retries the kill
            logger.warning(f"[{stream_id}] Stop could not be delivered: {e.message}")
        return StopResult(stream_id)

    async def _stop_unregistered(self, stream_id: str) -> StopResult:
        try:
            if await self.backend.terminate_unowned(stream_id):
                return StopResult(stream_id)
        except ExternalManagerError as e:
            logger.warning(f"[{stream_id}] Could not check process manager for unknown stream: {e.message}")
        return StopResult(stream_id, already_stopped=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_streams(self) -> List[str]:
        """Ids of broadcasts in STARTING or RUNNING"""
        local_active = self.registry.active_ids()
        try:
            external = await self.backend.list_active()
        except ExternalManagerError as e:
            logger.warning(f"Process manager listing failed, using registry view: {e.message}")
            return local_active

        if external is None:
            return local_active

        stopping = set(self.registry.ids_in_state(StreamState.STOPPING))
        merged = list(local_active)
        seen = set(merged)
        for stream_id in external:
            if stream_id not in seen and stream_id not in stopping:
                merged.append(stream_id)
                seen.add(stream_id)
        return merged

    def get_stream(self, stream_id: str) -> BroadcastJob:
        """
        Raises:
            NotFoundError: If the stream is not registered
        """
        job = self.registry.get(stream_id)
        if job is None:
            raise NotFoundError(stream_id)
        return job

    # ------------------------------------------------------------------
    # Exit observation
    # ------------------------------------------------------------------

    async def _observe_exit(self, stream_id: str, handle: ProcessHandle):
        # Observers outlive the request that created them
        with logging_context(operation="exit_observer", stream_id=stream_id):
            await self._watch(stream_id, handle)

    async def _watch(self, stream_id: str, handle: ProcessHandle):
        try:
            exit_code = await self.backend.wait(handle)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Leave the job registered; reconcile() decides from the backend state
            logger.error(f"[{stream_id}] Exit observation failed: {e}", exc_info=True)
            self._watchers.pop(stream_id, None)
            return
        await self._finalize(stream_id, handle, exit_code)

    async def _finalize(self, stream_id: str, handle: ProcessHandle, exit_code: Optional[int]):
        job = self.registry.finalize(stream_id, exit_code)
        watcher = self._watchers.pop(stream_id, None)
        if watcher is not None and watcher is not asyncio.current_task() and not watcher.done():
            watcher.cancel()
        if job is None:
            return

        if job.stop_requested:
            logger.info(f"[{stream_id}] Broadcast stopped (exit code {exit_code})")
        else:
            logger.warning(f"[{stream_id}] Broadcast exited on its own (exit code {exit_code})")

        try:
            await self.backend.release(handle)
        except Exception as e:
            logger.warning(f"[{stream_id}] Backend cleanup failed: {e}")

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self) -> int:
        """
        Compare every registered job with the backend.

        Returns:
            Number of jobs finalized because their process was gone
        """
        finalized = 0
        now = datetime.utcnow()
        for job in self.registry.snapshot():
            handle = self.registry.get_handle(job.id)
            if handle is None:
                continue  # still spawning

            try:
                alive = await self.backend.is_alive(handle)
            except ExternalManagerError as e:
                logger.warning(f"[{job.id}] Reconcile skipped, backend unavailable: {e.message}")
                continue

            if not alive:
                logger.info(f"[{job.id}] Reconcile: process gone, finalizing {job.state.value} job")
                await self._finalize(job.id, handle, None)
                finalized += 1
                continue

            if job.state is StreamState.STOPPING and job.stopping_since is not None:
                if (now - job.stopping_since).total_seconds() >= self.stop_grace_seconds:
                    logger.warning(f"[{job.id}] Still alive after stop; killing again")
                    try:
                        await self.backend.terminate(handle)
                    except ExternalManagerError as e:
                        logger.warning(f"[{job.id}] Re-kill failed: {e.message}")

            if job.id not in self._watchers:
                # Observer died earlier; watch again
                self._watchers[job.id] = asyncio.create_task(
                    self._observe_exit(job.id, handle), name=f"exit-observer-{job.id}"
                )

        return finalized

    async def start(self):
        """Run the reconcile loop until stop() is called"""
        self.running = True
        logger.info(f"Stream supervisor started (backend={self.backend.name}, reconcile every {self.reconcile_interval}s)")
        while self.running:
            try:
                await asyncio.sleep(self.reconcile_interval)
                if not self.running:
                    break
                with logging_context(operation="reconcile"):
                    await self.reconcile()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Reconcile error: {e}", exc_info=True)

    async def stop(self):
        """Stop the reconcile loop"""
        self.running = False

    async def shutdown(self):
        """
        Stop the loop, kill broadcasts the server owns and cancel observers.

        Delegated broadcasts keep running in the external manager.
        """
        await self.stop()
        if self.backend.owns_processes:
            stuck = self.registry.ids_in_state(StreamState.STOPPING)
            for stream_id in self.registry.active_ids():
                await self.stop_stream(stream_id)
            for stream_id in stuck:
                handle = self.registry.get_handle(stream_id)
                if handle is None:
                    continue
                try:
                    await self.backend.terminate(handle)
                except ExternalManagerError as e:
                    logger.warning(f"[{stream_id}] Kill on shutdown failed: {e.message}")
            watchers = list(self._watchers.values())
            if watchers:
                await asyncio.wait(watchers, timeout=5)

        for task in list(self._watchers.values()):
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._watchers.values(), return_exceptions=True)
        self._watchers.clear()
        logger.info("Stream supervisor stopped")
