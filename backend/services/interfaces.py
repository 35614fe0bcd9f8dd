"""
Service Interfaces

Abstract base classes for the process backends the stream supervisor runs on.
The supervisor only talks to this interface, so the direct subprocess backend
and the PM2 backend are interchangeable (and replaceable by fakes in tests).
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from domain.entities.process_handle import ProcessHandle


class IProcessBackend(ABC):
    """
    Capability set {spawn, terminate, observe, list} over broadcast processes.
    """

    #: Short name reported by the health endpoint
    name: str = "abstract"

    #: True when broadcasts die with the server (they are our children) and
    #: must be killed on shutdown
    owns_processes: bool = True

    @abstractmethod
    async def spawn(self, stream_id: str, argv: List[str]) -> ProcessHandle:
        """
        Launch a broadcast.

        Args:
            stream_id: Identifier of the job being started
            argv: Command as a list of discrete arguments

        Returns:
            Handle for the running process

        Raises:
            SpawnError: If the process (or external job) could not be launched
        """
        pass

    @abstractmethod
    async def terminate(self, handle: ProcessHandle) -> None:
        """
        Forcefully stop a broadcast. Returns once the signal has been dispatched;
        does not wait for the exit. Stopping an already-finished process is not an error.

        Raises:
            ExternalManagerError: If the external manager rejected the command
        """
        pass

    @abstractmethod
    async def wait(self, handle: ProcessHandle) -> Optional[int]:
        """
        Block until the broadcast has ended.

        Returns:
            Exit code when known, otherwise None
        """
        pass

    @abstractmethod
    async def is_alive(self, handle: ProcessHandle) -> bool:
        """
        Check whether the broadcast is still running.

        Raises:
            ExternalManagerError: If the state could not be determined
        """
        pass

    async def release(self, handle: ProcessHandle) -> None:
        """Free backend resources after the broadcast ended."""
        return None

    async def list_active(self) -> Optional[List[str]]:
        """
        Stream ids the backend itself reports as running.

        Returns:
            None when the backend keeps no listing of its own and the
            registry is authoritative

        Raises:
            ExternalManagerError: If the listing query failed
        """
        return None

    async def terminate_unowned(self, stream_id: str) -> bool:
        """
        Stop a broadcast that the registry does not know about (for example
        one started before a server restart).

        Returns:
            True when a matching broadcast was found and stopped
        """
        return False
