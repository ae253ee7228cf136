"""Test fixtures — file-backed queue, fake connectivity, mocked uploader, API client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from mediasync.main import create_app
from mediasync.services import (
    get_capture_service,
    get_connectivity,
    get_reconciler,
    get_upload_queue,
    get_visibility,
)
from mediasync.services.capture import CaptureService
from mediasync.services.connectivity import HttpConnectivityMonitor
from mediasync.services.reconciler import SyncReconciler
from mediasync.services.signals import Signal
from mediasync.services.upload_queue import UploadQueue


class FakeConnectivity:
    """Connectivity observer driven by the test."""

    def __init__(self, online: bool = True):
        self.online = online
        self._changes: Signal[bool] = Signal("fake-connectivity")

    def is_online(self) -> bool:
        return self.online

    def subscribe(self, callback):
        return self._changes.subscribe(callback)

    def set_online(self, online: bool) -> None:
        self.online = online
        self._changes.emit(online)

    @property
    def subscriber_count(self) -> int:
        return len(self._changes)


@pytest.fixture
def queue_paths(tmp_path):
    return {
        "database_path": tmp_path / "queue" / "mediasync.db",
        "spool_dir": tmp_path / "queue" / "spool",
    }


@pytest_asyncio.fixture
async def queue(queue_paths):
    """Initialized queue backed by a temporary SQLite file."""
    q = UploadQueue(**queue_paths)
    await q.initialize()
    yield q
    await q.close()


@pytest.fixture
def connectivity():
    return FakeConnectivity(online=True)


@pytest.fixture
def visibility():
    return Signal("visibility")


@pytest.fixture
def uploader():
    """Uploader double; every upload succeeds unless a test overrides it."""
    mock = MagicMock()
    mock.upload = AsyncMock(return_value=201)
    return mock


@pytest_asyncio.fixture
async def reconciler(queue, uploader, connectivity, visibility):
    r = SyncReconciler(
        queue=queue,
        uploader=uploader,
        connectivity=connectivity,
        visibility=visibility,
        sync_interval=120,
        max_retries=10,
        upload_timeout=90.0,
    )
    yield r
    await r.stop()


@pytest_asyncio.fixture
async def client(queue, uploader, visibility):
    """Async test client with service dependencies overridden."""
    monitor = HttpConnectivityMonitor(health_url="http://server.test/api/health")
    sync = SyncReconciler(queue=queue, uploader=uploader, connectivity=monitor, visibility=visibility)
    capture = CaptureService(queue, uploader, monitor, retry_delay=0)

    app = create_app()
    app.dependency_overrides[get_upload_queue] = lambda: queue
    app.dependency_overrides[get_reconciler] = lambda: sync
    app.dependency_overrides[get_capture_service] = lambda: capture
    app.dependency_overrides[get_connectivity] = lambda: monitor
    app.dependency_overrides[get_visibility] = lambda: visibility

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
