"""Echo 协作方适配器

不接触任何外部系统的协作方实现：
- OperationRegistry: 操作名 -> 异步处理函数的注册表
- EchoOperationExecutor: 回声执行器，所有操作都成功
- AllowAllValidator / AcceptingVerifier: 永远放行 / 永远确认
- LoggingRollbackRecorder: 仅把回滚数据写入进程日志并留存在内存
- NoopViewSwitcher: 忽略视图切换

dry-run 与测试统一使用这些适配器。
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from .models.contracts import Identifier, OperationResult, PreflightReport, VerificationOutcome

log = structlog.get_logger()

OperationHandler = Callable[[dict[str, Any]], Awaitable[OperationResult | dict[str, Any]]]


class OperationRegistry:
    """操作注册表 -- 按操作名路由到处理函数

    未注册的操作不抛异常，而是返回 success=False 的结果，
    交由执行器按普通失败处理（计入重试）。
    """

    def __init__(self) -> None:
        self._handlers: dict[str, OperationHandler] = {}

    def register(self, operation: str, handler: OperationHandler) -> None:
        """注册操作处理函数，同名覆盖"""
        self._handlers[operation] = handler

    def has(self, operation: str) -> bool:
        return operation in self._handlers

    def list_operations(self) -> list[str]:
        return sorted(self._handlers)

    async def execute(
        self,
        operation: str,
        parameters: dict[str, Any],
    ) -> OperationResult | dict[str, Any]:
        handler = self._handlers.get(operation)
        if handler is None:
            log.warning("operation_not_registered", operation=operation)
            return OperationResult(success=False, error=f"Unknown operation: {operation}")
        return await handler(parameters)


class EchoOperationExecutor:
    """回声执行器

    返回 success=True，并把操作名与参数原样带回。
    """

    async def execute(
        self,
        operation: str,
        parameters: dict[str, Any],
    ) -> OperationResult:
        # 模拟少量延迟
        await asyncio.sleep(0.001)
        return OperationResult(success=True, operation=operation, echo=dict(parameters))


class AllowAllValidator:
    async def check(self, operation: str, parameters: dict[str, Any]) -> PreflightReport:
        return PreflightReport(can_proceed=True)


class AcceptingVerifier:
    async def verify(
        self,
        operation: str,
        parameters: dict[str, Any],
        result: OperationResult,
    ) -> VerificationOutcome:
        return VerificationOutcome(verified=True, message=f"{operation} accepted")


class LoggingRollbackRecorder:
    """回滚记录器 -- 写进程日志，并按调用顺序保留记录"""

    def __init__(self) -> None:
        self.records: list[tuple[str, list[Identifier]]] = []

    async def record(
        self,
        operation_type: str,
        affected_ids: list[Identifier],
        parameters: dict[str, Any],
    ) -> None:
        self.records.append((operation_type, list(affected_ids)))
        log.info(
            "rollback_data_recorded",
            operation_type=operation_type,
            affected_count=len(affected_ids),
        )


class NoopViewSwitcher:
    async def switch_to(self, target: Identifier) -> None:
        log.debug("view_switch_ignored", target=target)
