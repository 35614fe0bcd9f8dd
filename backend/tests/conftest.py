import os
import sys
import tempfile
from pathlib import Path

# Keep the settings database and logs out of the user's home directory
os.environ.setdefault("STREAMFLOW_DATA_DIR", tempfile.mkdtemp(prefix="streamflow-tests-"))

# Add backend directory to Python path FIRST
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Now import after path is set
import asyncio
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from models import Base
from constants import Platform
from domain.entities.process_handle import ProcessHandle
from domain.value_objects.destination import Destination
from exceptions import SpawnError
from services.interfaces import IProcessBackend


class FakeBackend(IProcessBackend):
    """
    In-memory process backend.

    Each spawned "process" is an asyncio.Event; tests end it with exit()
    (a crash) or through terminate() (a kill).
    """

    name = "fake"
    owns_processes = True

    def __init__(self):
        self.fail_spawn = False
        self.ignore_kill = False
        self.spawn_gate: Optional[asyncio.Event] = None
        self.external: Optional[List[str]] = None
        self.list_error: Optional[Exception] = None
        self.spawned: Dict[str, List[str]] = {}
        self.terminated: List[str] = []
        self.released: List[str] = []
        self.unowned_stopped: List[str] = []
        self._events: Dict[str, asyncio.Event] = {}
        self._codes: Dict[str, Optional[int]] = {}
        self._vanished = set()
        self._next_pid = 1000

    async def spawn(self, stream_id: str, argv: List[str]) -> ProcessHandle:
        if self.spawn_gate is not None:
            await self.spawn_gate.wait()
        if self.fail_spawn:
            raise SpawnError(stream_id, "ffmpeg: not found")
        self.spawned[stream_id] = list(argv)
        self._events[stream_id] = asyncio.Event()
        self._next_pid += 1
        return ProcessHandle(stream_id=stream_id, pid=self._next_pid)

    def exit(self, stream_id: str, code: Optional[int]):
        """End a process as if it exited by itself"""
        self._codes[stream_id] = code
        self._events[stream_id].set()

    def vanish(self, stream_id: str):
        """Process is gone but its observer is never told"""
        self._vanished.add(stream_id)

    async def terminate(self, handle: ProcessHandle) -> None:
        self.terminated.append(handle.stream_id)
        if not self.ignore_kill:
            self.exit(handle.stream_id, -9)

    async def wait(self, handle: ProcessHandle) -> Optional[int]:
        await self._events[handle.stream_id].wait()
        return self._codes.get(handle.stream_id)

    async def is_alive(self, handle: ProcessHandle) -> bool:
        stream_id = handle.stream_id
        return not self._events[stream_id].is_set() and stream_id not in self._vanished

    async def release(self, handle: ProcessHandle) -> None:
        self.released.append(handle.stream_id)

    async def list_active(self) -> Optional[List[str]]:
        if self.list_error is not None:
            raise self.list_error
        return None if self.external is None else list(self.external)

    async def terminate_unowned(self, stream_id: str) -> bool:
        if self.external and stream_id in self.external:
            self.external.remove(stream_id)
            self.unowned_stopped.append(stream_id)
            return True
        return False


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01):
    """Poll ``predicate`` on the running loop until it holds"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def db_session():
    """Create in-memory database for testing"""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def media_file(tmp_path):
    """A small readable file standing in for an uploaded video"""
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return str(path)


@pytest.fixture
def destinations():
    return [
        Destination(platform=Platform.YOUTUBE, key="yt-key"),
        Destination(platform=Platform.FACEBOOK, key="fb-key"),
    ]
