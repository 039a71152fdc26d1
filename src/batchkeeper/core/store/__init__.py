"""batchkeeper Core Store -- 状态文件 / 运行日志 / 事件日志

提供工厂函数创建 Store 实例组；事件日志可选，启用时共享同一个数据库连接。
"""

from pathlib import Path

import aiosqlite

from .journal import SqliteEventJournal, init_journal
from .run_log import RunLog, format_log_line
from .state_file import JsonStateStore


class BatchStores:
    """Store 实例组"""

    def __init__(self, conn: aiosqlite.Connection | None = None) -> None:
        self.conn = conn
        self.state_store = JsonStateStore()
        self.run_log = RunLog()
        self.journal = SqliteEventJournal(conn) if conn is not None else None

    async def close(self) -> None:
        """关闭事件日志连接（如有）"""
        if self.conn is not None:
            await self.conn.close()
            self.conn = None
            self.journal = None


async def create_batch_stores(journal_path: str | None = None) -> BatchStores:
    """创建 Store 实例组

    Args:
        journal_path: 事件日志库路径；None 表示不启用事件日志

    Returns:
        BatchStores 实例
    """
    if journal_path is None:
        return BatchStores()

    # 确保数据库目录存在
    Path(journal_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(journal_path)
    conn.row_factory = aiosqlite.Row
    await init_journal(conn)

    return BatchStores(conn=conn)


__all__ = [
    "BatchStores",
    "create_batch_stores",
    "JsonStateStore",
    "RunLog",
    "format_log_line",
    "SqliteEventJournal",
    "init_journal",
]
