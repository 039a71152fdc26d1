"""Session 公开操作的结构化响应

所有响应都携带显式 success 标志；失败时 error 为可读描述，
error_code 为 BatchError.code（或 INTERNAL_ERROR）。
"""

from typing import Any

from pydantic import BaseModel, Field

from .enums import BatchState, TaskPhase, TaskStatus


class BatchProgress(BaseModel):
    """批次进度快照"""

    current: int = Field(description="最近派发任务的序号（1 起）")
    total: int
    completed: int
    failed: int
    skipped: int
    pending: int
    percent: float


class VerificationSummary(BaseModel):
    """校验结论摘要"""

    verified: bool | None = None
    message: str | None = None


class SessionResponse(BaseModel):
    """Session 响应基类"""

    success: bool
    error: str | None = Field(default=None, description="失败原因")
    error_code: str | None = Field(default=None, description="错误分类码")
    message: str | None = Field(default=None, description="面向用户的说明")


class BatchLoadedResponse(SessionResponse):
    """create / load / resume 响应"""

    batch_id: str | None = None
    batch_name: str | None = None
    total_tasks: int = 0
    pending_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    progress_percent: float = 0.0
    current_task_index: int = 0
    log_path: str | None = None
    state_path: str | None = None


class TaskRunResult(SessionResponse):
    """单次派发结果

    batch_complete=True 时表示没有待执行任务，task_* 字段为空。
    """

    batch_complete: bool = False
    task_id: int | None = None
    task_name: str | None = None
    operation: str | None = None
    status: TaskStatus | None = None
    phase: TaskPhase | None = None
    duration_seconds: float = 0.0
    error_message: str | None = None
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    retry_scheduled: bool = False
    verification: VerificationSummary | None = None
    batch_progress: BatchProgress | None = None
    batch_paused: bool = False
    result: dict[str, Any] | None = None


class RunAllResult(SessionResponse):
    """run_all 循环结果"""

    batch_complete: bool = False
    tasks_executed: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    skipped_tasks: int = 0
    pending_tasks: int = 0
    was_paused: bool = False
    log_path: str | None = None
    state_path: str | None = None
    results: list[TaskRunResult] = Field(default_factory=list)


class PauseResponse(SessionResponse):
    """pause 响应"""

    progress: BatchProgress | None = None
    state_path: str | None = None


class TaskSummary(BaseModel):
    """状态查询中的单任务摘要"""

    id: int
    name: str | None
    operation: str
    status: TaskStatus
    duration_seconds: float
    retry_count: int
    error_message: str | None
    verified: bool | None


class BatchStatus(SessionResponse):
    """status 快照；Idle 时 has_batch=False"""

    has_batch: bool = False
    batch_id: str | None = None
    batch_name: str | None = None
    state: BatchState = BatchState.IDLE
    is_running: bool = False
    is_paused: bool = False
    progress: BatchProgress | None = None
    tasks: list[TaskSummary] = Field(default_factory=list)
