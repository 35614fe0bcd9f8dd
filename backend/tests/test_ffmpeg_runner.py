"""
Tests for the direct subprocess backend.

These spawn real (short-lived) child processes; a Python interpreter or a
shell script stands in for ffmpeg.
"""

import asyncio
import signal
import sys

import pytest

from conftest import wait_until
from exceptions import SpawnError
from services.stream_supervisor import StreamSupervisor
from workers.ffmpeg_runner import FfmpegProcessBackend

posix_only = pytest.mark.skipif(sys.platform == 'win32', reason="uses POSIX signals and shell scripts")


def python_argv(code: str):
    return [sys.executable, '-c', code]


@pytest.fixture
def backend():
    return FfmpegProcessBackend()


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Executable that ignores its arguments and keeps running like a broadcast"""
    script = tmp_path / 'ffmpeg'
    script.write_text('#!/bin/sh\nexec sleep 30\n')
    script.chmod(0o755)
    return str(script)


@pytest.fixture
def crashing_ffmpeg(tmp_path):
    script = tmp_path / 'ffmpeg-crash'
    script.write_text('#!/bin/sh\necho "Connection refused" >&2\nexit 1\n')
    script.chmod(0o755)
    return str(script)


class TestFfmpegProcessBackend:

    @posix_only
    @pytest.mark.asyncio
    async def test_kill_running_process(self, backend):
        handle = await backend.spawn('stream_a', python_argv('import time; time.sleep(30)'))

        assert handle.pid
        assert await backend.is_alive(handle)

        await backend.terminate(handle)
        returncode = await backend.wait(handle)

        assert returncode == -signal.SIGKILL
        assert not await backend.is_alive(handle)
        await backend.release(handle)

    @pytest.mark.asyncio
    async def test_exit_code_and_stderr_tail(self, backend):
        handle = await backend.spawn(
            'stream_b', python_argv('import sys; sys.stderr.write("rtmp: broken pipe\\n"); sys.exit(3)')
        )

        assert await backend.wait(handle) == 3
        assert handle.stderr_task.result() == ['rtmp: broken pipe']

    @pytest.mark.asyncio
    async def test_carriage_return_progress_does_not_stall(self, backend):
        # ~2 MB of ffmpeg-style progress with no newline at all
        code = (
            "import sys\n"
            "for i in range(20000):\n"
            "    sys.stderr.write('frame=%06d fps=25 q=-1.0 size=1024kB time=00:00:01.00 bitrate=2500kbits/s speed=1x   \\r' % i)\n"
            "sys.stderr.flush()\n"
        )
        handle = await backend.spawn('stream_e', python_argv(code))

        assert await asyncio.wait_for(backend.wait(handle), timeout=20) == 0
        tail = handle.stderr_task.result()
        assert len(tail) == 20
        assert tail[-1].startswith('frame=019999')

    @pytest.mark.asyncio
    async def test_overlong_line_keeps_draining(self, backend):
        code = "import sys; sys.stderr.write('x' * 200000); sys.stderr.write('\\nrtmp: broken pipe\\n'); sys.exit(1)"
        handle = await backend.spawn('stream_f', python_argv(code))

        assert await asyncio.wait_for(backend.wait(handle), timeout=20) == 1
        assert handle.stderr_task.result()[-1] == 'rtmp: broken pipe'

    @posix_only
    @pytest.mark.asyncio
    async def test_kill_while_progress_is_streaming(self, backend):
        code = (
            "import sys, time\n"
            "while True:\n"
            "    sys.stderr.write('frame=1 fps=25 speed=1x\\r')\n"
            "    sys.stderr.flush()\n"
            "    time.sleep(0.001)\n"
        )
        handle = await backend.spawn('stream_g', python_argv(code))
        await asyncio.sleep(0.3)

        await backend.terminate(handle)

        assert await asyncio.wait_for(backend.wait(handle), timeout=10) == -signal.SIGKILL
        await backend.release(handle)

    @pytest.mark.asyncio
    async def test_terminate_after_exit_is_noop(self, backend):
        handle = await backend.spawn('stream_c', python_argv('pass'))
        await backend.wait(handle)

        await backend.terminate(handle)

    @pytest.mark.asyncio
    async def test_missing_binary(self, backend, tmp_path):
        with pytest.raises(SpawnError) as exc_info:
            await backend.spawn('stream_d', [str(tmp_path / 'no-such-ffmpeg'), '-i', 'clip.mp4'])

        assert exc_info.value.details == {'stream_id': 'stream_d'}


@posix_only
class TestSupervisorWithRealProcesses:

    @pytest.mark.asyncio
    async def test_start_stop_end_to_end(self, fake_ffmpeg, media_file, destinations):
        supervisor = StreamSupervisor(FfmpegProcessBackend(), ffmpeg_path=fake_ffmpeg)

        stream_id = await supervisor.start_stream(media_file, destinations)
        assert await supervisor.list_streams() == [stream_id]
        assert supervisor.get_stream(stream_id).handle.pid

        result = await supervisor.stop_stream(stream_id)
        assert not result.already_stopped

        await wait_until(lambda: stream_id not in supervisor.registry, timeout=5)
        assert await supervisor.list_streams() == []
        assert (await supervisor.stop_stream(stream_id)).already_stopped
        await supervisor.shutdown()

    @pytest.mark.asyncio
    async def test_crashing_process_is_removed(self, crashing_ffmpeg, media_file, destinations):
        supervisor = StreamSupervisor(FfmpegProcessBackend(), ffmpeg_path=crashing_ffmpeg)

        stream_id = await supervisor.start_stream(media_file, destinations)

        await wait_until(lambda: stream_id not in supervisor.registry, timeout=5)
        assert await supervisor.list_streams() == []
        await supervisor.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_kills_children(self, fake_ffmpeg, media_file, destinations):
        supervisor = StreamSupervisor(FfmpegProcessBackend(), ffmpeg_path=fake_ffmpeg)
        stream_id = await supervisor.start_stream(media_file, destinations)
        handle = supervisor.registry.get_handle(stream_id)

        await supervisor.shutdown()

        assert handle.process.returncode == -signal.SIGKILL
        assert len(supervisor.registry) == 0
