"""事件日志 SQLite 实现

事件表 append-only：只允许插入，不允许更新或删除。
seq 同一批次内严格单调递增。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.enums import EventType
from ..models.event import BatchEvent

# events 表 DDL
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS batch_events (
    event_id    TEXT PRIMARY KEY,
    batch_id    TEXT NOT NULL,
    task_id     INTEGER,
    seq         INTEGER NOT NULL,
    ts          TEXT NOT NULL,
    type        TEXT NOT NULL,
    payload     TEXT NOT NULL DEFAULT '{}'
);
"""

_EVENTS_INDEXES = [
    # 批次内事件序号唯一约束（确保 seq 严格单调递增）
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_batch_events_seq ON batch_events(batch_id, seq);",
    "CREATE INDEX IF NOT EXISTS idx_batch_events_task ON batch_events(batch_id, task_id);",
]


async def init_journal(conn: aiosqlite.Connection) -> None:
    """初始化事件日志库：设置 PRAGMA + 创建表 + 创建索引"""
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_EVENTS_DDL)
    for idx_sql in _EVENTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


class SqliteEventJournal:
    """EventJournal 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_event(self, event: BatchEvent) -> None:
        """追加事件并提交"""
        try:
            await self._conn.execute(
                """
                INSERT INTO batch_events (event_id, batch_id, task_id, seq, ts, type, payload)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.event_id,
                    event.batch_id,
                    event.task_id,
                    event.seq,
                    event.ts.isoformat(),
                    event.type.value,
                    json.dumps(event.payload, ensure_ascii=False),
                ),
            )
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise

    async def get_next_seq(self, batch_id: str) -> int:
        """获取批次内下一个 seq（MAX+1）"""
        cursor = await self._conn.execute(
            "SELECT COALESCE(MAX(seq), 0) FROM batch_events WHERE batch_id = ?",
            (batch_id,),
        )
        row = await cursor.fetchone()
        return (row[0] if row else 0) + 1

    async def list_events(
        self,
        batch_id: str,
        task_id: int | None = None,
    ) -> list[BatchEvent]:
        """查询批次事件，按 seq 正序"""
        if task_id is None:
            cursor = await self._conn.execute(
                "SELECT * FROM batch_events WHERE batch_id = ? ORDER BY seq ASC",
                (batch_id,),
            )
        else:
            cursor = await self._conn.execute(
                """
                SELECT * FROM batch_events
                WHERE batch_id = ? AND task_id = ?
                ORDER BY seq ASC
                """,
                (batch_id, task_id),
            )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def ping(self) -> bool:
        """连通性检查（供 /ready 使用）"""
        cursor = await self._conn.execute("SELECT 1")
        row = await cursor.fetchone()
        return row is not None

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> BatchEvent:
        """将数据库行转换为 BatchEvent 模型"""
        payload = json.loads(row[6]) if row[6] else {}
        return BatchEvent(
            event_id=row[0],
            batch_id=row[1],
            task_id=row[2],
            seq=row[3],
            ts=datetime.fromisoformat(row[4]),
            type=EventType(row[5]),
            payload=payload,
        )
