"""BatchTask 数据模型

批次中的单个工作单元：操作名 + 参数 + 重试策略 + 生命周期字段。
状态只能经 transition_to() 按 VALID_TRANSITIONS 流转；
反序列化（load/resume）是唯一直接写入 status 的途径。
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..config import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_SECONDS
from ..exceptions import InvalidTransitionError
from .contracts import Identifier
from .enums import TaskStatus, parse_enum_value, validate_transition


class BatchTask(BaseModel):
    """批次任务

    文档字段使用 camelCase（id / operation / retryCount / ...），
    同时兼容旧定义文件中的 method / viewIdToSwitch。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int = Field(default=0, ge=0, description="批次内唯一 ID，0 表示待分配")
    name: str | None = Field(default=None, description="显示名称")
    description: str | None = Field(default=None, description="显示描述")
    operation: str = Field(
        min_length=1,
        validation_alias=AliasChoices("operation", "method"),
        serialization_alias="operation",
        description="外部操作标识",
    )
    parameters: dict[str, Any] = Field(default_factory=dict, description="原样透传的参数文档")

    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    result: dict[str, Any] | None = Field(default=None, description="最近一次执行结果")
    error_message: str | None = Field(default=None, description="失败原因")
    start_time: datetime | None = Field(default=None, description="最近一次开始时间")
    end_time: datetime | None = Field(default=None, description="最近一次结束时间")

    retry_count: int = Field(default=0, ge=0, description="已重试次数")
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0, description="最大重试次数")
    timeout_seconds: int = Field(
        default=DEFAULT_TIMEOUT_SECONDS, ge=1, description="建议超时（秒），核心不强制"
    )

    switch_to_view_after: bool = Field(default=True, description="成功后是否切换视图")
    view_target: Identifier | None = Field(
        default=None,
        validation_alias=AliasChoices("viewTarget", "viewIdToSwitch", "view_target"),
        serialization_alias="viewTarget",
        description="成功后切换的目标引用",
    )

    verified: bool | None = Field(default=None, description="校验结果，None 表示未定")
    verification_message: str | None = Field(default=None, description="校验说明")

    @field_validator("operation", mode="before")
    @classmethod
    def _strip_operation(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("parameters", mode="before")
    @classmethod
    def _null_parameters(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> Any:
        return parse_enum_value(TaskStatus, value)

    @property
    def duration_seconds(self) -> float:
        """最近一次执行耗时（秒），任一时间戳缺失时为 0"""
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def display_name(self) -> str:
        return self.name or self.operation

    def transition_to(self, new_status: TaskStatus) -> None:
        """按状态机推进任务状态

        Raises:
            InvalidTransitionError: 流转不在 VALID_TRANSITIONS 中
        """
        if not validate_transition(self.status, new_status):
            raise InvalidTransitionError(
                f"Task {self.id} cannot transition from {self.status} to {new_status}"
            )
        self.status = new_status
