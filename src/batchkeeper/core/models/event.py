"""BatchEvent 事件日志模型

事件表 append-only，seq 在同一批次内严格单调递增。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import EventType, TaskStatus


class BatchEvent(BaseModel):
    """批次事件"""

    event_id: str = Field(description="唯一标识，ULID 格式")
    batch_id: str = Field(description="所属批次")
    task_id: int | None = Field(default=None, description="关联任务，批次级事件为空")
    seq: int = Field(ge=1, description="批次内序号")
    ts: datetime = Field(description="事件时间")
    type: EventType = Field(description="事件类型")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化载荷")


class StateTransitionPayload(BaseModel):
    """STATE_TRANSITION 事件 payload"""

    from_status: TaskStatus
    to_status: TaskStatus
    reason: str = Field(default="")


class PreflightRejectedPayload(BaseModel):
    """PREFLIGHT_REJECTED 事件 payload"""

    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class RollbackRecordedPayload(BaseModel):
    """ROLLBACK_RECORDED 事件 payload"""

    operation_type: str
    affected_count: int


class VerificationPayload(BaseModel):
    """VERIFICATION_RECORDED 事件 payload"""

    verified: bool | None
    message: str


class ErrorPayload(BaseModel):
    """ERROR 事件 payload"""

    error_type: str
    error_message: str
