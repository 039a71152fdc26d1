"""batchkeeper Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .batch import TaskBatch
from .contracts import Identifier, OperationResult, PreflightReport, VerificationOutcome
from .definition import BatchDefinition
from .enums import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    BatchState,
    ErrorStrategy,
    EventType,
    TaskPhase,
    TaskStatus,
    validate_transition,
)
from .event import (
    BatchEvent,
    ErrorPayload,
    PreflightRejectedPayload,
    RollbackRecordedPayload,
    StateTransitionPayload,
    VerificationPayload,
)
from .results import (
    BatchLoadedResponse,
    BatchProgress,
    BatchStatus,
    PauseResponse,
    RunAllResult,
    SessionResponse,
    TaskRunResult,
    TaskSummary,
    VerificationSummary,
)
from .task import BatchTask

__all__ = [
    # 枚举
    "TaskStatus",
    "ErrorStrategy",
    "BatchState",
    "TaskPhase",
    "EventType",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # 批次 / 任务
    "TaskBatch",
    "BatchDefinition",
    "BatchTask",
    # 协作方文档
    "Identifier",
    "PreflightReport",
    "OperationResult",
    "VerificationOutcome",
    # 事件
    "BatchEvent",
    "StateTransitionPayload",
    "PreflightRejectedPayload",
    "RollbackRecordedPayload",
    "VerificationPayload",
    "ErrorPayload",
    # 响应
    "SessionResponse",
    "BatchLoadedResponse",
    "TaskRunResult",
    "RunAllResult",
    "PauseResponse",
    "BatchProgress",
    "BatchStatus",
    "TaskSummary",
    "VerificationSummary",
]
