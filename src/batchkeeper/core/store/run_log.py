"""运行日志 -- 每个批次一份的人类可读文本日志

行格式: [YYYY-MM-DD HH:MM:SS] <message>
无法编码的字符按反斜杠转义写入；追加失败只记录 debug 日志，从不影响批次执行。
"""

from datetime import datetime
from pathlib import Path

import structlog

from ..config import LOG_TIMESTAMP_FORMAT
from ..models.batch import TaskBatch

log = structlog.get_logger()


def format_log_line(message: str, now: datetime | None = None) -> str:
    """格式化一行运行日志（含换行符）"""
    stamp = (now or datetime.now()).strftime(LOG_TIMESTAMP_FORMAT)
    return f"[{stamp}] {message}\n"


class RunLog:
    """批次运行日志写入器"""

    async def append(self, batch: TaskBatch, message: str) -> None:
        """向 batch.log_path 追加一行；未设置路径时为空操作"""
        if not batch.log_path:
            return
        try:
            log_path = Path(batch.log_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with log_path.open("a", encoding="utf-8", errors="backslashreplace") as f:
                f.write(format_log_line(message))
        except (OSError, ValueError) as e:
            log.debug("run_log_append_failed", path=batch.log_path, error=str(e))
