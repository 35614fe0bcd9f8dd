import asyncio
from dataclasses import dataclass
from typing import List, Optional
import logging

from domain.entities.process_handle import ProcessHandle
from domain.value_objects.external_name import ExternalJobNaming
from exceptions import ExternalManagerError, SpawnError
from services.interfaces import IProcessBackend
from workers.pm2_client import Pm2Client, Pm2Process

logger = logging.getLogger(__name__)


@dataclass
class Pm2Handle(ProcessHandle):
    """Handle for a job delegated to PM2 (identified by name, not pid)"""
    pass


class Pm2ProcessBackend(IProcessBackend):
    """
    Delegated backend: broadcasts run as PM2 jobs.

    PM2's own bookkeeping is authoritative and only eventually consistent with
    ours, so "stop of a job PM2 no longer knows" counts as success. Exit
    observation polls ``pm2 jlist`` because PM2 offers no exit callback over
    the CLI.
    """

    name = "pm2"
    owns_processes = False

    def __init__(self, client: Pm2Client, naming: ExternalJobNaming, poll_interval: float = 2.0):
        self.client = client
        self.naming = naming
        self.poll_interval = poll_interval

    async def _find(self, external_name: str) -> Optional[Pm2Process]:
        for proc in await self.client.list():
            if proc.name == external_name and proc.namespace == self.naming.namespace:
                return proc
        return None

    async def spawn(self, stream_id: str, argv: List[str]) -> Pm2Handle:
        external_name = self.naming.external_name(stream_id)

        try:
            # PM2 restarts a job when started under an existing name
            if await self._find(external_name) is not None:
                raise SpawnError(stream_id, f"PM2 already has a job named {external_name}")
        except ExternalManagerError as e:
            raise SpawnError(stream_id, f"PM2 could not start {external_name}: {e.message}") from e

        try:
            await self.client.start(external_name, argv, self.naming.namespace)
            proc = await self._find(external_name)
        except ExternalManagerError as e:
            # A timed-out start or failed lookup may still leave the job running
            await self._discard(stream_id, external_name)
            raise SpawnError(stream_id, f"PM2 could not start {external_name}: {e.message}") from e
        except asyncio.CancelledError:
            await self._discard(stream_id, external_name)
            raise

        pid = proc.pid if proc else None
        logger.info(f"[{stream_id}] Delegated to PM2 as {external_name} (pid {pid})")
        return Pm2Handle(stream_id=stream_id, pid=pid, external_name=external_name)

    async def _discard(self, stream_id: str, external_name: str):
        """Best-effort stop and delete of a job whose spawn did not complete"""
        for command in (self.client.stop, self.client.delete):
            try:
                await command(external_name)
            except ExternalManagerError as e:
                logger.warning(f"[{stream_id}] Cleanup of PM2 job {external_name} failed: {e.message}")

    async def terminate(self, handle: Pm2Handle) -> None:
        found = await self.client.stop(handle.external_name)
        if not found:
            logger.info(f"[{handle.stream_id}] PM2 job {handle.external_name} already gone")

    async def wait(self, handle: Pm2Handle) -> Optional[int]:
        while True:
            try:
                proc = await self._find(handle.external_name)
            except ExternalManagerError as e:
                # Keep observing; the reconciler covers a manager that stays down
                logger.warning(f"[{handle.stream_id}] PM2 poll failed: {e.message}")
            else:
                if proc is None:
                    return None
                if not proc.is_active:
                    return proc.exit_code
            await asyncio.sleep(self.poll_interval)

    async def is_alive(self, handle: Pm2Handle) -> bool:
        proc = await self._find(handle.external_name)
        return proc is not None and proc.is_active

    async def release(self, handle: Pm2Handle) -> None:
        try:
            await self.client.delete(handle.external_name)
        except ExternalManagerError as e:
            logger.warning(f"[{handle.stream_id}] Could not delete PM2 job {handle.external_name}: {e.message}")

    async def list_active(self) -> List[str]:
        stream_ids = []
        for proc in await self.client.list():
            stream_id = self.naming.parse_stream_id(proc.name, proc.namespace)
            if stream_id and proc.is_active:
                stream_ids.append(stream_id)
        return stream_ids

    async def terminate_unowned(self, stream_id: str) -> bool:
        try:
            external_name = self.naming.external_name(stream_id)
        except ValueError:
            return False
        proc = await self._find(external_name)
        if proc is None:
            return False
        await self.client.stop(external_name)
        await self.client.delete(external_name)
        logger.info(f"[{stream_id}] Stopped unregistered PM2 job {external_name}")
        return proc.is_active
