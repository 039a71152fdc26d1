"""TaskBatch 数据模型

有序任务集合 + 批次级策略（错误策略、落盘节奏）+ 推导统计。
统计字段只通过属性计算，从不写入状态文件。
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from ulid import ULID

from ..config import DEFAULT_BATCH_NAME, DEFAULT_CHECKPOINT_EVERY
from .enums import ErrorStrategy, TaskStatus, parse_enum_value
from .results import BatchProgress
from .task import BatchTask


def _new_batch_id() -> str:
    return str(ULID())


def _utc_now() -> datetime:
    return datetime.now(UTC)


class TaskBatch(BaseModel):
    """任务批次

    tasks 的插入顺序即执行顺序；current_task_index 记录最近一次派发的位置，
    仅用于恢复提示，派发始终按顺序扫描第一个 Pending 任务。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    batch_id: str = Field(default_factory=_new_batch_id, description="批次唯一标识")
    name: str = Field(default=DEFAULT_BATCH_NAME, description="批次名称")
    description: str | None = Field(default=None, description="批次描述")
    created_at: datetime = Field(default_factory=_utc_now, description="创建时间")
    started_at: datetime | None = Field(default=None, description="首次开始运行时间")
    completed_at: datetime | None = Field(default=None, description="完成时间")
    on_error: ErrorStrategy = Field(
        default=ErrorStrategy.LOG_AND_CONTINUE, description="重试耗尽后的错误策略"
    )
    checkpoint_every: int = Field(
        default=DEFAULT_CHECKPOINT_EVERY, ge=1, description="每 N 个任务位置落盘一次"
    )
    tasks: list[BatchTask] = Field(default_factory=list, description="有序任务列表")
    current_task_index: int = Field(default=0, ge=0, description="最近派发任务的下标")
    log_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("logPath", "logFilePath", "log_path"),
        serialization_alias="logPath",
        description="运行日志文件路径",
    )
    state_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("statePath", "stateFilePath", "state_path"),
        serialization_alias="statePath",
        description="状态快照文件路径",
    )

    @field_validator("batch_id", mode="before")
    @classmethod
    def _generate_missing_id(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return _new_batch_id()
        return value

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, value: Any) -> Any:
        return DEFAULT_BATCH_NAME if value is None else value

    @field_validator("on_error", mode="before")
    @classmethod
    def _parse_strategy(cls, value: Any) -> Any:
        if value is None:
            return ErrorStrategy.LOG_AND_CONTINUE
        return parse_enum_value(ErrorStrategy, value)

    @field_validator("tasks", mode="before")
    @classmethod
    def _null_tasks(cls, value: Any) -> Any:
        return [] if value is None else value

    # ---- 推导统计 ----

    def _count(self, status: TaskStatus) -> int:
        return sum(1 for task in self.tasks if task.status == status)

    @property
    def total_tasks(self) -> int:
        return len(self.tasks)

    @property
    def completed_tasks(self) -> int:
        return self._count(TaskStatus.COMPLETED)

    @property
    def failed_tasks(self) -> int:
        return self._count(TaskStatus.FAILED)

    @property
    def skipped_tasks(self) -> int:
        return self._count(TaskStatus.SKIPPED)

    @property
    def pending_tasks(self) -> int:
        return self._count(TaskStatus.PENDING)

    @property
    def in_progress_tasks(self) -> int:
        return self._count(TaskStatus.IN_PROGRESS)

    @property
    def progress_percent(self) -> float:
        if not self.tasks:
            return 0.0
        done = self.completed_tasks + self.failed_tasks + self.skipped_tasks
        return done / self.total_tasks * 100

    def progress(self) -> BatchProgress:
        """构建当前进度快照"""
        return BatchProgress(
            current=self.current_task_index + 1,
            total=self.total_tasks,
            completed=self.completed_tasks,
            failed=self.failed_tasks,
            skipped=self.skipped_tasks,
            pending=self.pending_tasks,
            percent=self.progress_percent,
        )

    # ---- 任务查找与 ID 管理 ----

    def next_pending(self) -> tuple[int, BatchTask] | None:
        """按列表顺序返回第一个 Pending 任务及其下标"""
        for index, task in enumerate(self.tasks):
            if task.status == TaskStatus.PENDING:
                return index, task
        return None

    def find_task(self, task_id: int) -> BatchTask | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def renumber_tasks(self) -> None:
        """按列表顺序重新分配 ID 1..N（仅用于新建批次）"""
        for index, task in enumerate(self.tasks):
            task.id = index + 1

    def assign_missing_ids(self) -> None:
        """为未指定 ID（0）的任务分配 位置+1"""
        for index, task in enumerate(self.tasks):
            if task.id == 0:
                task.id = index + 1

    def validate_task_ids(self) -> None:
        """校验任务 ID 恰为 1..N 的一个排列

        Raises:
            ValueError: ID 缺失、重复或越界
        """
        ids = sorted(task.id for task in self.tasks)
        expected = list(range(1, self.total_tasks + 1))
        if ids != expected:
            raise ValueError(
                f"Task ids must be a permutation of 1..{self.total_tasks}, got {ids}"
            )

    def to_document(self) -> dict[str, Any]:
        """序列化为状态文件文档（camelCase、显式 null、枚举为字符串）"""
        return self.model_dump(mode="json", by_alias=True)
