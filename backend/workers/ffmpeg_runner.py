import asyncio
import re
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional
import logging

from domain.entities.process_handle import ProcessHandle
from exceptions import SpawnError
from services.interfaces import IProcessBackend

logger = logging.getLogger(__name__)

STDERR_CHUNK_SIZE = 4096
STDERR_MAX_LINE = 16 * 1024
STDERR_TAIL_LINES = 20
LINE_BREAK = re.compile(rb'[\r\n]+')


@dataclass
class FfmpegHandle(ProcessHandle):
    """Handle for an ffmpeg child process owned by this server"""

    process: Optional[asyncio.subprocess.Process] = field(default=None, repr=False)
    stderr_task: Optional[asyncio.Task] = field(default=None, repr=False)


class FfmpegProcessBackend(IProcessBackend):
    """
    Direct backend: the supervisor owns each ffmpeg subprocess.

    ffmpeg writes its progress to stderr; the pipe is drained continuously
    (and logged under the stream id) so a long broadcast never blocks on a
    full pipe buffer.
    """

    name = "direct"
    owns_processes = True

    async def spawn(self, stream_id: str, argv: List[str]) -> FfmpegHandle:
        cmd = [str(arg) for arg in argv]
        logger.info(f"[{stream_id}] Launching {cmd[0]} with {len(cmd) - 1} arguments")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            raise SpawnError(stream_id, f"Could not launch {cmd[0]}: {e}") from e

        handle = FfmpegHandle(stream_id=stream_id, pid=process.pid, process=process)
        handle.stderr_task = asyncio.create_task(self._drain_stderr(stream_id, process))
        logger.info(f"[{stream_id}] ffmpeg running as pid {process.pid}")
        return handle

    async def _drain_stderr(self, stream_id: str, process: asyncio.subprocess.Process) -> List[str]:
        """
        Log ffmpeg stderr line by line; keep the tail for exit diagnostics.

        Reads fixed-size chunks instead of readline(): progress lines end in
        '\\r' only, and a line longer than the reader limit would otherwise
        stop the drain and leave ffmpeg blocked on a full pipe.
        """
        tail: List[str] = []
        if process.stderr is None:
            return tail

        def record(raw: bytes):
            decoded_line = raw.decode(errors='replace').strip()
            if not decoded_line:
                return
            logger.debug(f"[{stream_id}] FFMPEG STDERR: {decoded_line}")
            tail.append(decoded_line)
            if len(tail) > STDERR_TAIL_LINES:
                tail.pop(0)

        pending = b''
        while True:
            chunk = await process.stderr.read(STDERR_CHUNK_SIZE)
            if not chunk:
                break
            *lines, pending = LINE_BREAK.split(pending + chunk)
            if len(pending) > STDERR_MAX_LINE:
                # No separator in sight; flush what we have as one line
                lines.append(pending)
                pending = b''
            for line in lines:
                record(line)
        record(pending)
        return tail

    async def terminate(self, handle: FfmpegHandle) -> None:
        process = handle.process
        if process is None or process.returncode is not None:
            return
        try:
            process.kill()
            logger.info(f"[{handle.stream_id}] Sent SIGKILL to pid {process.pid}")
        except ProcessLookupError:
            # Exited between the returncode check and the signal
            logger.debug(f"[{handle.stream_id}] pid {process.pid} already gone")

    async def wait(self, handle: FfmpegHandle) -> Optional[int]:
        process = handle.process
        if process is None:
            return None
        returncode = await process.wait()

        tail: List[str] = []
        if handle.stderr_task is not None:
            try:
                tail = await handle.stderr_task
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug(f"[{handle.stream_id}] stderr reader failed: {e}")

        if returncode not in (0, -9) and tail:
            logger.warning(f"[{handle.stream_id}] ffmpeg exited with code {returncode}: {tail[-1]}")
        return returncode

    async def is_alive(self, handle: FfmpegHandle) -> bool:
        return handle.process is not None and handle.process.returncode is None

    async def release(self, handle: FfmpegHandle) -> None:
        if handle.stderr_task is not None and not handle.stderr_task.done():
            handle.stderr_task.cancel()
