"""Tests for the thread-safe stream registry."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from domain.entities.broadcast_job import BroadcastJob
from domain.entities.process_handle import ProcessHandle
from domain.value_objects.destination import Destination
from domain.value_objects.stream_state import StreamState
from exceptions import StreamConflictError
from services.stream_registry import StreamRegistry


def make_job(stream_id: str) -> BroadcastJob:
    return BroadcastJob(
        id=stream_id,
        source_path='/srv/uploads/clip.mp4',
        destinations=[Destination(platform='youtube', key='k')],
    )


@pytest.fixture
def registry():
    return StreamRegistry()


class TestRegistration:

    def test_register_and_get(self, registry):
        registry.register(make_job('stream_a'))

        job = registry.get('stream_a')
        assert job.state is StreamState.STARTING
        assert 'stream_a' in registry
        assert len(registry) == 1

    def test_duplicate_id_rejected(self, registry):
        registry.register(make_job('stream_a'))
        with pytest.raises(StreamConflictError):
            registry.register(make_job('stream_a'))

    def test_get_returns_copy(self, registry):
        registry.register(make_job('stream_a'))
        registry.get('stream_a').state = StreamState.STOPPING
        assert registry.get('stream_a').state is StreamState.STARTING

    def test_parallel_registration(self, registry):
        ids = [f'stream_{i}' for i in range(1000)]
        with ThreadPoolExecutor(max_workers=32) as pool:
            list(pool.map(lambda i: registry.register(make_job(i)), ids))

        assert len(registry) == 1000
        assert sorted(registry.active_ids()) == sorted(ids)


class TestTransitions:

    def test_running_then_stop_request(self, registry):
        registry.register(make_job('stream_a'))
        assert registry.transition('stream_a', StreamState.RUNNING)

        previous = registry.request_stop('stream_a')

        job = registry.get('stream_a')
        assert previous is StreamState.RUNNING
        assert job.state is StreamState.STOPPING
        assert job.stop_requested
        assert job.stopping_since is not None
        assert registry.active_ids() == []
        assert registry.ids_in_state(StreamState.STOPPING) == ['stream_a']

    def test_stop_request_while_starting_only_flags(self, registry):
        registry.register(make_job('stream_a'))

        assert registry.request_stop('stream_a') is StreamState.STARTING
        job = registry.get('stream_a')
        assert job.state is StreamState.STARTING
        assert job.stop_requested

    def test_invalid_transition_refused(self, registry):
        registry.register(make_job('stream_a'))
        assert not registry.transition('stream_a', StreamState.STOPPING)
        assert registry.get('stream_a').state is StreamState.STARTING

    def test_terminated_only_through_finalize(self, registry):
        registry.register(make_job('stream_a'))
        with pytest.raises(ValueError):
            registry.transition('stream_a', StreamState.TERMINATED)

    def test_unknown_ids(self, registry):
        assert registry.get('stream_missing') is None
        assert registry.request_stop('stream_missing') is None
        assert not registry.transition('stream_missing', StreamState.RUNNING)
        assert not registry.attach_handle('stream_missing', ProcessHandle(stream_id='stream_missing'))


class TestFinalize:

    def test_finalize_removes(self, registry):
        registry.register(make_job('stream_a'))
        registry.attach_handle('stream_a', ProcessHandle(stream_id='stream_a', pid=7))

        job = registry.finalize('stream_a', exit_code=1)

        assert job.state is StreamState.TERMINATED
        assert job.exit_code == 1
        assert job.handle.pid == 7
        assert 'stream_a' not in registry
        assert registry.get_handle('stream_a') is None

    def test_finalize_exactly_once_under_contention(self, registry):
        registry.register(make_job('stream_a'))
        registry.transition('stream_a', StreamState.RUNNING)

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(lambda _: registry.finalize('stream_a'), range(64)))

        assert sum(1 for r in results if r is not None) == 1
        assert len(registry) == 0

    def test_id_reusable_after_finalize(self, registry):
        registry.register(make_job('stream_a'))
        registry.finalize('stream_a')
        registry.register(make_job('stream_a'))
        assert registry.get('stream_a').state is StreamState.STARTING
