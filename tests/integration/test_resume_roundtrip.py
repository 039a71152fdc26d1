"""暂停 -> 落盘 -> 新会话恢复 -> 跑完

验证跨进程恢复：状态文件中的 status / retryCount / result 原样恢复，
已完成任务不会被再次执行。
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock

from batchkeeper.core.models import TaskStatus
from batchkeeper.core.session import BatchSession
from batchkeeper.core.store import BatchStores, create_batch_stores


async def test_resume_continues_where_paused(collaborators, session_config, tmp_path: Path):
    attempts = {"flaky": 0}

    async def execute(operation, parameters):
        if operation == "flaky":
            attempts["flaky"] += 1
            if attempts["flaky"] == 1:
                return {"success": False, "error": "transient"}
        return {"success": True, "resourceId": parameters["n"]}

    collaborators.executor.execute = AsyncMock(side_effect=execute)

    first = BatchSession(collaborators, BatchStores(), session_config)
    created = await first.create_batch(
        {
            "checkpointEvery": 100,
            "tasks": [
                {"operation": "createA", "parameters": {"n": 1}},
                {"operation": "flaky", "maxRetries": 2, "parameters": {"n": 2}},
                {"operation": "createC", "parameters": {"n": 3}},
            ],
        }
    )
    await first.execute_next()
    await first.execute_next()
    paused = await first.pause()
    assert paused.success is True

    saved = json.loads(Path(created.state_path).read_text(encoding="utf-8"))
    assert [t["status"] for t in saved["tasks"]] == ["Completed", "Pending", "Pending"]
    assert saved["tasks"][1]["retryCount"] == 1
    before = first.status()

    # 新会话、新 Store 组
    second = BatchSession(collaborators, BatchStores(), session_config)
    resumed = await second.resume_batch(created.state_path)
    assert resumed.success is True
    assert resumed.batch_id == created.batch_id

    after = second.status()
    assert [(t.id, t.status, t.retry_count) for t in after.tasks] == [
        (t.id, t.status, t.retry_count) for t in before.tasks
    ]
    assert second.batch.tasks[0].result == first.batch.tasks[0].result
    assert second.batch.tasks[0].result["resourceId"] == 1

    outcome = await second.run_all()

    assert outcome.batch_complete is True
    assert outcome.tasks_executed == 2
    assert [t.status for t in second.batch.tasks] == [TaskStatus.COMPLETED] * 3
    executed = [call.args[0] for call in collaborators.executor.execute.await_args_list]
    assert executed == ["createA", "flaky", "flaky", "createC"]


async def test_resume_journal_continues_sequence(collaborators, session_config, tmp_path: Path):
    """同一事件日志库中，恢复后的事件 seq 接续递增"""
    journal_path = str(tmp_path / "sqlite" / "journal.db")

    stores = await create_batch_stores(journal_path)
    first = BatchSession(collaborators, stores, session_config)
    created = await first.create_batch({"tasks": [{"operation": "a"}, {"operation": "b"}]})
    await first.execute_next()
    await first.pause()
    await stores.close()

    stores = await create_batch_stores(journal_path)
    try:
        second = BatchSession(collaborators, stores, session_config)
        await second.resume_batch(created.state_path)
        await second.run_all()

        events = await stores.journal.list_events(created.batch_id)
        seqs = [e.seq for e in events]
        assert seqs == list(range(1, len(seqs) + 1))
        assert [e.type for e in events].count("BATCH_LOADED") == 2
    finally:
        await stores.close()
