"""外部协作方 Protocol 接口定义

核心不知道任何操作的语义：执行、预检、校验、回滚记录、视图切换
全部经由以下接口交给外部系统。使用 Python Protocol 实现结构化子类型。

执行/预检/校验可以返回 pydantic 模型，也可以返回等价的 dict 文档。
"""

from typing import Any, Protocol

from .models.contracts import Identifier, OperationResult, PreflightReport, VerificationOutcome
from .models.event import BatchEvent


class OperationExecutor(Protocol):
    """操作执行接口"""

    async def execute(
        self,
        operation: str,
        parameters: dict[str, Any],
    ) -> OperationResult | dict[str, Any]:
        """执行一个命名操作，返回操作结果文档"""
        ...


class PreflightValidator(Protocol):
    """预检接口 -- 在不产生副作用的前提下判断操作是否可行"""

    async def check(
        self,
        operation: str,
        parameters: dict[str, Any],
    ) -> PreflightReport | dict[str, Any]:
        """返回预检报告"""
        ...


class ResultVerifier(Protocol):
    """结果校验接口 -- 确认外部效果确实发生"""

    async def verify(
        self,
        operation: str,
        parameters: dict[str, Any],
        result: OperationResult,
    ) -> VerificationOutcome | dict[str, Any]:
        """返回校验结论

        result 是执行器返回值校验后的 OperationResult（保留全部额外字段），
        result.to_document() 与落盘到任务上的 result 文档一致。
        """
        ...


class RollbackRecorder(Protocol):
    """回滚数据记录接口"""

    async def record(
        self,
        operation_type: str,
        affected_ids: list[Identifier],
        parameters: dict[str, Any],
    ) -> None:
        """记录受影响资源，供外部撤销使用"""
        ...


class ViewSwitcher(Protocol):
    """成功后的视图切换钩子（可选）"""

    async def switch_to(self, target: Identifier) -> None:
        """切换到目标视图"""
        ...


class EventJournal(Protocol):
    """事件日志接口

    事件表 append-only：只允许插入，不允许更新或删除。
    """

    async def append_event(self, event: BatchEvent) -> None:
        """追加事件并提交"""
        ...

    async def get_next_seq(self, batch_id: str) -> int:
        """获取批次内下一个事件序号"""
        ...

    async def list_events(
        self,
        batch_id: str,
        task_id: int | None = None,
    ) -> list[BatchEvent]:
        """查询批次事件，可按任务筛选"""
        ...
