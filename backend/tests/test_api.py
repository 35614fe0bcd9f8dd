"""
HTTP tests for the stream, upload and settings routes.

The routers are mounted on a bare app so no lifespan (real database, real
ffmpeg) runs; the supervisor sits on the in-memory backend.
"""

import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api import settings, streams, uploads
from conftest import FakeBackend
from database import get_db
from dependencies import get_upload_service
from init_db import init_database
from services.stream_supervisor import StreamSupervisor
from services.upload_service import UploadService


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend, db_session, tmp_path):
    app = FastAPI()
    app.include_router(uploads.router, prefix="/api")
    app.include_router(streams.router, prefix="/api")
    app.include_router(settings.router, prefix="/api")
    app.state.supervisor = StreamSupervisor(backend)

    init_database(bind=db_session.get_bind())

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_upload_service] = lambda: UploadService(tmp_path / 'uploads')

    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(app.state.supervisor.shutdown)


def wait_for_listing(client, expected, timeout=2.0):
    deadline = time.monotonic() + timeout
    while True:
        body = client.get('/api/streams').json()
        if body['streamIds'] == expected:
            return body
        if time.monotonic() > deadline:
            raise AssertionError(f"streams still {body['streamIds']}")
        time.sleep(0.01)


class TestStreamRoutes:

    def test_start_with_destinations(self, client, backend, media_file):
        response = client.post('/api/stream/start', json={
            'videoPath': media_file,
            'destinations': [{'platform': 'twitch', 'key': 'live_123'}],
        })

        assert response.status_code == 202
        body = response.json()
        assert body['message'] == 'Streaming process started successfully!'
        assert body['streamId'].startswith('stream_')
        assert 'rtmp://live.twitch.tv/app/live_123' in backend.spawned[body['streamId']]

    def test_start_with_legacy_key_fields(self, client, backend, media_file):
        response = client.post('/api/stream/start', json={
            'videoPath': media_file,
            'youtubeKey': 'yt',
            'facebookKey': '',
        })

        assert response.status_code == 202
        argv = backend.spawned[response.json()['streamId']]
        assert 'rtmp://a.rtmp.youtube.com/live2/yt' in argv
        assert not any('facebook' in arg for arg in argv)

    def test_start_rejects_missing_path(self, client, backend):
        response = client.post('/api/stream/start', json={'youtubeKey': 'yt'})

        assert response.status_code == 400
        assert response.json()['detail'] == 'Server video path is required'
        assert backend.spawned == {}

    def test_start_rejects_missing_keys(self, client, media_file):
        response = client.post('/api/stream/start', json={'videoPath': media_file})
        assert response.status_code == 400

    def test_start_rejects_unknown_platform(self, client, media_file):
        response = client.post('/api/stream/start', json={
            'videoPath': media_file,
            'destinations': [{'platform': 'myspace', 'key': 'k'}],
        })
        assert response.status_code == 400
        assert 'Unsupported platform' in response.json()['detail']

    def test_spawn_failure_is_bad_gateway(self, client, backend, media_file):
        backend.fail_spawn = True
        response = client.post('/api/stream/start', json={'videoPath': media_file, 'youtubeKey': 'yt'})

        assert response.status_code == 502
        assert client.get('/api/streams').json()['streamIds'] == []

    def test_start_list_stop(self, client, media_file):
        stream_id = client.post(
            '/api/stream/start', json={'videoPath': media_file, 'youtubeKey': 'yt'}
        ).json()['streamId']

        listing = client.get('/api/streams').json()
        assert listing == {'streamIds': [stream_id], 'activeStreams': [stream_id]}

        response = client.post(f'/api/stream/stop/{stream_id}')
        assert response.status_code == 200
        assert response.json()['alreadyStopped'] is False

        wait_for_listing(client, [])

        again = client.post(f'/api/stream/stop/{stream_id}')
        assert again.status_code == 200
        assert again.json()['alreadyStopped'] is True

    def test_stream_detail(self, client, media_file):
        stream_id = client.post(
            '/api/stream/start', json={'videoPath': media_file, 'youtubeKey': 'secret-key'}
        ).json()['streamId']

        response = client.get(f'/api/streams/{stream_id}')

        assert response.status_code == 200
        body = response.json()
        assert body['state'] == 'RUNNING'
        assert body['platforms'] == ['youtube']
        assert body['pid'] is not None
        assert 'secret-key' not in response.text

    def test_unknown_stream_detail(self, client):
        assert client.get('/api/streams/stream_nope').status_code == 404


class TestUploadRoute:

    def test_upload_stores_file(self, client, tmp_path):
        response = client.post(
            '/api/upload',
            files={'video': ('my holiday clip.mp4', b'\x00\x01\x02', 'video/mp4')},
        )

        assert response.status_code == 201
        server_path = response.json()['serverPath']
        assert server_path.endswith('-my_holiday_clip.mp4')
        with open(server_path, 'rb') as stored:
            assert stored.read() == b'\x00\x01\x02'

    def test_upload_without_file(self, client):
        response = client.post('/api/upload')

        assert response.status_code == 400
        assert response.json()['detail'] == 'No file uploaded.'

    def test_uploaded_file_can_be_streamed(self, client, backend):
        server_path = client.post(
            '/api/upload', files={'video': ('clip.mp4', b'data', 'video/mp4')}
        ).json()['serverPath']

        response = client.post('/api/stream/start', json={'videoPath': server_path, 'youtubeKey': 'yt'})

        assert response.status_code == 202
        assert server_path in backend.spawned[response.json()['streamId']]


class TestSettingsRoutes:

    def test_defaults_seeded(self, client):
        keys = {s['key'] for s in client.get('/api/settings').json()}
        assert {'stream_backend', 'pm2_namespace', 'pm2_job_prefix', 'upload_path'} <= keys

    def test_switch_backend(self, client):
        response = client.put('/api/settings/stream_backend', json={'key': 'stream_backend', 'value': 'PM2'})

        assert response.status_code == 200
        assert client.get('/api/settings/stream_backend').json()['value'] == 'pm2'

    def test_invalid_values_rejected(self, client):
        bad_backend = client.put('/api/settings/stream_backend', json={'key': 'stream_backend', 'value': 'docker'})
        bad_interval = client.put(
            '/api/settings/reconcile_interval', json={'key': 'reconcile_interval', 'value': '-1'}
        )

        assert bad_backend.status_code == 422
        assert bad_interval.status_code == 422

        for key, value in [('pm2_namespace', 'my ns'), ('pm2_job_prefix', 'a/b'), ('pm2_namespace', '')]:
            response = client.put(f'/api/settings/{key}', json={'key': key, 'value': value})
            assert response.status_code == 422, (key, value)

    def test_pm2_naming_values_stored_trimmed(self, client):
        response = client.put('/api/settings/pm2_job_prefix', json={'key': 'pm2_job_prefix', 'value': ' cast-'})

        assert response.status_code == 200
        assert client.get('/api/settings/pm2_job_prefix').json()['value'] == 'cast-'

    def test_key_mismatch(self, client):
        response = client.put('/api/settings/ffmpeg_path', json={'key': 'pm2_path', 'value': '/usr/bin/pm2'})
        assert response.status_code == 400

    def test_unknown_setting(self, client):
        assert client.get('/api/settings/nope').status_code == 404
