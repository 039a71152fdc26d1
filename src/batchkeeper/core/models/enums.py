"""枚举定义

包含 TaskStatus 状态机、ErrorStrategy 错误策略、BatchState 批次状态、
TaskPhase 结果阶段、EventType 事件类型，以及 VALID_TRANSITIONS
合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"

    # 终态
    COMPLETED = "Completed"
    FAILED = "Failed"
    SKIPPED = "Skipped"


# 合法状态流转；IN_PROGRESS -> PENDING 为重试回队
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.PENDING,
    },
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
    TaskStatus.SKIPPED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
    TaskStatus.SKIPPED,
}


class ErrorStrategy(StrEnum):
    """批次级错误策略 -- 任务重试耗尽后的处理方式

    重试次数只由任务的 max_retries 决定；RETRY_ONCE 仅作为兼容的策略名保留。
    """

    STOP_ON_ERROR = "StopOnError"
    LOG_AND_CONTINUE = "LogAndContinue"
    RETRY_ONCE = "RetryOnce"
    SKIP_AND_CONTINUE = "SkipAndContinue"


class BatchState(StrEnum):
    """批次运行状态（由 is_running / is_paused / completed_at 推导）"""

    IDLE = "Idle"
    READY = "Ready"
    RUNNING = "Running"
    PAUSED = "Paused"
    COMPLETE = "Complete"


class TaskPhase(StrEnum):
    """单次派发结果产生于流水线的哪个阶段"""

    PREFLIGHT = "preflight"
    EXECUTE = "execute"
    EXCEPTION = "exception"


class EventType(StrEnum):
    """事件日志类型"""

    BATCH_LOADED = "BATCH_LOADED"
    BATCH_STARTED = "BATCH_STARTED"
    BATCH_PAUSED = "BATCH_PAUSED"
    BATCH_COMPLETED = "BATCH_COMPLETED"
    STATE_TRANSITION = "STATE_TRANSITION"
    PREFLIGHT_REJECTED = "PREFLIGHT_REJECTED"
    ROLLBACK_RECORDED = "ROLLBACK_RECORDED"
    VERIFICATION_RECORDED = "VERIFICATION_RECORDED"
    ERROR = "ERROR"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed


def parse_enum_value(enum_cls: type[StrEnum], value: object) -> object:
    """大小写不敏感地将字符串映射为枚举成员

    无法匹配时原样返回，交由 pydantic 报告校验错误。
    """
    if isinstance(value, str) and not isinstance(value, enum_cls):
        normalized = value.strip().replace("_", "").lower()
        for member in enum_cls:
            if member.value.lower() == normalized:
                return member
    return value
