"""Tests for the local agent API."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from mediasync.exceptions import QueueStorageError

DEST = "/api/inspections/42/uploads"


async def _queue_capture(client: AsyncClient, owner_id: int = 42, content: bytes = b"photo") -> str:
    resp = await client.post(
        "/api/uploads",
        data={"owner_id": str(owner_id), "destination": DEST, "defer": "true"},
        files={"file": ("front.jpg", content, "image/jpeg")},
    )
    assert resp.status_code == 200
    return resp.json()["queued_id"]


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["service"] == "mediasync"
        assert "version" in data

    @pytest.mark.asyncio
    async def test_ping(self, client: AsyncClient):
        resp = await client.get("/api/ping")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestUploads:
    @pytest.mark.asyncio
    async def test_submit_uploads_immediately(self, client: AsyncClient, uploader, queue):
        resp = await client.post(
            "/api/uploads",
            data={"owner_id": "42", "destination": DEST},
            files={"file": ("front.jpg", b"photo", "image/jpeg")},
        )

        assert resp.status_code == 200
        assert resp.json()["uploaded"] is True
        uploader.upload.assert_awaited_once()
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, client: AsyncClient):
        resp = await client.post(
            "/api/uploads",
            data={"owner_id": "42", "destination": DEST},
            files={"file": ("empty.jpg", b"", "image/jpeg")},
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_list_and_count_by_owner(self, client: AsyncClient):
        queued_id = await _queue_capture(client, owner_id=42)
        await _queue_capture(client, owner_id=7)

        resp = await client.get("/api/uploads", params={"owner_id": 42})
        items = resp.json()
        assert [i["id"] for i in items] == [queued_id]
        assert items[0]["filename"] == "front.jpg"
        assert items[0]["content_type"] == "image/jpeg"
        assert items[0]["attempt_count"] == 0
        assert "payload" not in items[0]

        resp = await client.get("/api/uploads/count", params={"owner_id": 42})
        assert resp.json() == {"pending": 1, "owner_id": 42}

        resp = await client.get("/api/uploads/count")
        assert resp.json()["pending"] == 2

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, client: AsyncClient, queue):
        queued_id = await _queue_capture(client)

        assert (await client.delete(f"/api/uploads/{queued_id}")).status_code == 204
        assert (await client.delete(f"/api/uploads/{queued_id}")).status_code == 204
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_requeue(self, client: AsyncClient, queue):
        queued_id = await _queue_capture(client)

        resp = await client.post(f"/api/uploads/{queued_id}/requeue")

        assert resp.status_code == 200
        new_id = resp.json()["id"]
        assert new_id != queued_id
        assert [i.id for i in await queue.list_all()] == [new_id]

    @pytest.mark.asyncio
    async def test_requeue_unknown_returns_404(self, client: AsyncClient):
        resp = await client.post("/api/uploads/nope/requeue")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_purge_exhausted(self, client: AsyncClient, queue):
        queued_id = await _queue_capture(client)
        for _ in range(10):
            await queue.record_failure(queued_id, "boom")

        resp = await client.delete("/api/uploads/exhausted", params={"owner_id": 42})

        assert resp.json() == {"purged": 1}
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient):
        await _queue_capture(client)

        resp = await client.get("/api/uploads/stats")

        assert resp.status_code == 200
        data = resp.json()
        assert data["pending"] == 1
        assert data["exhausted"] == 0
        assert data["spool_files"] == 1

    @pytest.mark.asyncio
    async def test_storage_error_returns_503(self, client: AsyncClient, queue):
        queue.count = AsyncMock(side_effect=QueueStorageError("database disk image is malformed", operation="count"))

        resp = await client.get("/api/uploads/count")

        assert resp.status_code == 503
        assert resp.json()["error_code"] == "QueueStorageError"


class TestSync:
    @pytest.mark.asyncio
    async def test_sync_now(self, client: AsyncClient, queue):
        await _queue_capture(client)

        resp = await client.post("/api/sync")

        assert resp.status_code == 200
        assert resp.json()["succeeded"] == 1
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_status(self, client: AsyncClient):
        await _queue_capture(client)
        await client.post("/api/sync/connectivity", json={"online": False})
        await client.post("/api/sync")

        resp = await client.get("/api/sync/status")

        data = resp.json()
        assert data["state"] == "stopped"
        assert data["online"] is False
        assert data["pending_uploads"] == 1
        assert data["last_status"]["type"] == "offline"

    @pytest.mark.asyncio
    async def test_connectivity_event(self, client: AsyncClient):
        resp = await client.post("/api/sync/connectivity", json={"online": False})
        assert resp.status_code == 202
        assert resp.json()["state"] == "offline"

    @pytest.mark.asyncio
    async def test_visibility_event_reaches_subscribers(self, client: AsyncClient, visibility):
        seen = []
        visibility.subscribe(seen.append)

        resp = await client.post("/api/sync/visibility", json={"visible": True})

        assert resp.status_code == 202
        assert seen == [True]
