"""gateway 测试配置 -- httpx AsyncClient + 手动初始化的 app.state"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from batchkeeper.core.config import SessionConfig
from batchkeeper.core.session import BatchSession
from batchkeeper.core.store import create_batch_stores
from httpx import ASGITransport, AsyncClient

_ENV_KEYS = ("BATCHKEEPER_OUTPUT_DIR", "BATCHKEEPER_JOURNAL_PATH")


@pytest_asyncio.fixture
async def test_app(tmp_path: Path, collaborators):
    """创建测试用 FastAPI app，绕过 lifespan 手动初始化会话与 Store"""
    os.environ["BATCHKEEPER_OUTPUT_DIR"] = str(tmp_path / "batches")
    os.environ["BATCHKEEPER_JOURNAL_PATH"] = str(tmp_path / "sqlite" / "journal.db")

    from batchkeeper.gateway.main import create_app

    app = create_app(collaborators)

    config = SessionConfig(
        output_dir=tmp_path / "batches",
        journal_path=str(tmp_path / "sqlite" / "journal.db"),
        verification_timeout_s=0.5,
    )
    config.output_dir.mkdir(parents=True, exist_ok=True)
    stores = await create_batch_stores(config.journal_path)
    app.state.config = config
    app.state.stores = stores
    app.state.session = BatchSession(collaborators, stores, config)
    app.state.background_runs = set()

    yield app

    await stores.close()
    for key in _ENV_KEYS:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac
