"""状态文件存储 -- 批次快照的 JSON 读写

快照包含批次全部字段（camelCase、显式 null、枚举为字符串、ISO-8601 时间戳）。
写入先落到同目录临时文件再 os.replace 覆盖，写入中断不会破坏上一份快照。
"""

import contextlib
import json
import os
from pathlib import Path

import structlog
from pydantic import ValidationError

from ..exceptions import InvalidBatchError, PersistenceError
from ..models.batch import TaskBatch

log = structlog.get_logger()


class JsonStateStore:
    """批次状态文件存储"""

    async def save(self, batch: TaskBatch) -> None:
        """保存批次快照到 batch.state_path

        未设置 state_path 时为空操作。

        Raises:
            PersistenceError: 文件写入或编码失败
        """
        if not batch.state_path:
            return

        target = Path(batch.state_path)
        tmp_path = target.with_name(f"{target.name}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(batch.to_document(), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            os.replace(tmp_path, target)
        except (OSError, ValueError, TypeError) as e:
            # 序列化或编码失败（如孤立代理字符）同样视为落盘失败，清理残留临时文件
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise PersistenceError(str(target), e) from e

        log.debug(
            "batch_state_saved",
            batch_id=batch.batch_id,
            path=str(target),
            current_task_index=batch.current_task_index,
        )

    async def load(self, path: str | Path) -> TaskBatch:
        """读取批次文档（定义文件与状态文件格式相同）

        任务状态按文件原样恢复，不做任何重置。

        Raises:
            InvalidBatchError: 文件不存在、无法解析或不含任务
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise InvalidBatchError(f"File not found: {file_path}")

        try:
            document = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidBatchError(f"Invalid batch file: {e}") from e

        if not isinstance(document, dict):
            raise InvalidBatchError("Invalid batch file or no tasks defined")

        try:
            batch = TaskBatch.model_validate(document)
        except ValidationError as e:
            raise InvalidBatchError(f"Invalid batch file: {e}") from e

        if not batch.tasks:
            raise InvalidBatchError("Invalid batch file or no tasks defined")

        return batch
