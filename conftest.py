"""全局 pytest 配置 -- 协作方 mock、Store 组、批次构造 fixture"""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from batchkeeper.core.collaborators import Collaborators
from batchkeeper.core.config import SessionConfig
from batchkeeper.core.models import TaskBatch
from batchkeeper.core.store import BatchStores, create_batch_stores


@pytest.fixture
def collaborators() -> Collaborators:
    """默认全部成功的协作方（AsyncMock，可在测试内改写行为）"""
    return Collaborators(
        executor=SimpleNamespace(execute=AsyncMock(return_value={"success": True})),
        validator=SimpleNamespace(check=AsyncMock(return_value={"canProceed": True})),
        verifier=SimpleNamespace(
            verify=AsyncMock(return_value={"verified": True, "message": "looks good"})
        ),
        rollback_recorder=SimpleNamespace(record=AsyncMock(return_value=None)),
        view_switcher=SimpleNamespace(switch_to=AsyncMock(return_value=None)),
    )


@pytest.fixture
def stores() -> BatchStores:
    """不启用事件日志的 Store 组"""
    return BatchStores()


@pytest_asyncio.fixture
async def journal_stores(tmp_path: Path) -> AsyncGenerator[BatchStores, None]:
    """启用临时 SQLite 事件日志的 Store 组"""
    group = await create_batch_stores(str(tmp_path / "sqlite" / "journal.db"))
    yield group
    await group.close()


@pytest.fixture
def session_config(tmp_path: Path) -> SessionConfig:
    """指向临时目录的 Session 配置"""
    return SessionConfig(
        output_dir=tmp_path / "batches",
        journal_path=str(tmp_path / "sqlite" / "journal.db"),
        verification_timeout_s=0.5,
    )


@pytest.fixture
def make_batch(tmp_path: Path) -> Callable[..., TaskBatch]:
    """批次工厂：按操作名列表构造批次，状态/日志文件位于临时目录"""

    def _make(operations: list[str], **batch_fields: Any) -> TaskBatch:
        tasks = [
            {"id": index + 1, "operation": operation, "parameters": {"n": index}}
            for index, operation in enumerate(operations)
        ]
        document: dict[str, Any] = {
            "batchId": "test-batch",
            "name": "Test Batch",
            "tasks": tasks,
            "statePath": str(tmp_path / "state.json"),
            "logPath": str(tmp_path / "run.log"),
        }
        document.update(batch_fields)
        return TaskBatch.model_validate(document)

    return _make
