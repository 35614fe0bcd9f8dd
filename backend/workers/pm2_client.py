"""
PM2 CLI client

Thin async wrapper over the ``pm2`` command line: start, stop, delete and
``jlist``. Every argument is passed as its own argv entry.
"""
import asyncio
import json
from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging

from exceptions import ExternalManagerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pm2Process:
    """One entry of ``pm2 jlist``"""

    name: str
    status: str
    namespace: Optional[str] = None
    pid: Optional[int] = None
    exit_code: Optional[int] = None

    ACTIVE_STATUSES = ('online', 'launching')

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES

    @classmethod
    def from_jlist(cls, raw: dict) -> "Pm2Process":
        env = raw.get('pm2_env') or {}
        exit_code = env.get('exit_code')
        return cls(
            name=str(raw.get('name', '')),
            status=str(env.get('status', 'unknown')),
            namespace=env.get('namespace'),
            pid=raw.get('pid') or None,
            exit_code=exit_code if isinstance(exit_code, int) else None,
        )


class Pm2Client:
    def __init__(self, pm2_path: str = 'pm2', timeout: float = 30.0):
        self.pm2_path = pm2_path
        self.timeout = timeout

    async def _run(self, args: List[str]) -> Tuple[int, str, str]:
        """Run a pm2 subcommand and capture its output

        Raises:
            ExternalManagerError: If pm2 cannot be executed or times out
        """
        cmd = [self.pm2_path] + [str(arg) for arg in args]
        command_name = args[0] if args else ''
        logger.debug(f"Running pm2 {command_name}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExternalManagerError(command_name, f"Could not execute {self.pm2_path}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            raise ExternalManagerError(command_name, f"pm2 {command_name} timed out after {self.timeout}s")

        return process.returncode, stdout.decode(errors='replace'), stderr.decode(errors='replace')

    @staticmethod
    def _is_not_found(stdout: str, stderr: str) -> bool:
        text = f"{stdout}\n{stderr}".lower()
        return 'not found' in text

    async def start(self, name: str, argv: List[str], namespace: str) -> None:
        """Start ``argv`` as a PM2 job that is not restarted when it exits"""
        if not argv:
            raise ValueError("argv must not be empty")
        args = [
            'start', argv[0],
            '--name', name,
            '--namespace', namespace,
            '--no-autorestart',
            '--interpreter', 'none',
        ]
        if len(argv) > 1:
            args += ['--'] + list(argv[1:])

        returncode, stdout, stderr = await self._run(args)
        if returncode != 0:
            raise ExternalManagerError(
                'start', (stderr or stdout).strip() or f"pm2 start failed with code {returncode}", returncode
            )
        logger.info(f"PM2 job {name} started in namespace {namespace}")

    async def stop(self, name: str) -> bool:
        """
        Stop a job.

        Returns:
            False when PM2 does not know the job (already gone)
        """
        returncode, stdout, stderr = await self._run(['stop', name])
        if returncode == 0:
            return True
        if self._is_not_found(stdout, stderr):
            return False
        raise ExternalManagerError('stop', (stderr or stdout).strip(), returncode)

    async def delete(self, name: str) -> bool:
        """
        Remove a job from PM2's process list.

        Returns:
            False when PM2 does not know the job
        """
        returncode, stdout, stderr = await self._run(['delete', name])
        if returncode == 0:
            return True
        if self._is_not_found(stdout, stderr):
            return False
        raise ExternalManagerError('delete', (stderr or stdout).strip(), returncode)

    async def list(self) -> List[Pm2Process]:
        """All jobs known to the PM2 daemon"""
        returncode, stdout, stderr = await self._run(['jlist'])
        if returncode != 0:
            raise ExternalManagerError('jlist', (stderr or stdout).strip(), returncode)
        return [Pm2Process.from_jlist(raw) for raw in self._parse_jlist(stdout)]

    @staticmethod
    def _parse_jlist(stdout: str) -> list:
        """Parse jlist output, tolerating banner lines PM2 prints before the JSON"""
        text = stdout.strip()
        if not text:
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            start = text.find('[')
            if start < 0:
                raise ExternalManagerError('jlist', "pm2 jlist returned no JSON")
            try:
                data = json.loads(text[start:])
            except json.JSONDecodeError as e:
                raise ExternalManagerError('jlist', f"Could not parse pm2 jlist output: {e}") from e
        if not isinstance(data, list):
            raise ExternalManagerError('jlist', "pm2 jlist did not return a list")
        return data
