"""健康检查测试

测试内容：
1. GET /health 返回 200 + ok
2. GET /ready 正常时返回 200 + checks 结构
3. GET /ready 事件日志不可用时返回 503
4. 未启用事件日志时 journal 为 disabled
"""

import shutil
import sqlite3
from types import SimpleNamespace
from unittest.mock import AsyncMock

from batchkeeper.core.store import BatchStores
from httpx import AsyncClient


class TestHealthCheck:
    async def test_health_returns_200(self, client: AsyncClient):
        resp = await client.get("/health")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_response_carries_request_id(self, client: AsyncClient):
        resp = await client.get("/health")

        assert resp.headers.get("X-Request-ID")

    async def test_ready_returns_checks(self, client: AsyncClient):
        resp = await client.get("/ready")

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ready"
        assert data["checks"]["journal"] == "ok"
        assert data["checks"]["output_dir"] == "ok"
        assert "disk_space_mb" in data["checks"]

    async def test_ready_journal_disabled(self, client: AsyncClient, test_app):
        test_app.state.stores = BatchStores()

        resp = await client.get("/ready")

        assert resp.status_code == 200
        assert resp.json()["checks"]["journal"] == "disabled"

    async def test_ready_journal_unavailable(self, client: AsyncClient, test_app):
        test_app.state.stores = SimpleNamespace(
            journal=SimpleNamespace(
                ping=AsyncMock(side_effect=sqlite3.OperationalError("database is locked"))
            )
        )

        resp = await client.get("/ready")

        assert resp.status_code == 503
        data = resp.json()
        assert data["status"] == "not_ready"
        assert data["checks"]["journal"].startswith("error")

    async def test_ready_output_dir_missing(self, client: AsyncClient, test_app):
        shutil.rmtree(test_app.state.config.output_dir)

        resp = await client.get("/ready")

        assert resp.status_code == 503
        assert resp.json()["checks"]["output_dir"].startswith("error")
