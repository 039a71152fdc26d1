"""BatchExecutor -- 单批次任务流水线

每次 execute_next() 只派发一个任务：
    Pending -> InProgress -> 预检 -> 执行 -> (回滚记录, 限时校验) -> Completed
                                          \\-> 失败: 重试回队 或 Failed

任务边界内的任何异常都被捕获并记为 Failed，不会向外传播。
状态文件、运行日志、事件日志的写入失败只记录日志，从不中断批次。
"""

import asyncio
from datetime import UTC, datetime
from typing import Any

import structlog
from ulid import ULID

from .collaborators import Collaborators
from .config import VERIFICATION_TIMEOUT_S
from .exceptions import BatchPausedError, PersistenceError
from .models.batch import TaskBatch
from .models.contracts import OperationResult, PreflightReport, VerificationOutcome
from .models.enums import ErrorStrategy, EventType, TaskPhase, TaskStatus
from .models.event import (
    BatchEvent,
    ErrorPayload,
    PreflightRejectedPayload,
    RollbackRecordedPayload,
    StateTransitionPayload,
    VerificationPayload,
)
from .models.results import TaskRunResult, VerificationSummary
from .models.task import BatchTask
from .store import BatchStores

log = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(UTC)


def rollback_operation_type(operation: str) -> str:
    """操作名以 delete 开头视为删除，其余视为创建"""
    return "delete" if operation.startswith("delete") else "create"


class BatchExecutor:
    """单批次执行器

    同一时刻最多一个任务处于 InProgress；调用方负责串行化 execute_next()。
    """

    def __init__(
        self,
        batch: TaskBatch,
        collaborators: Collaborators,
        stores: BatchStores,
        verification_timeout_s: float = VERIFICATION_TIMEOUT_S,
    ) -> None:
        self.batch = batch
        self.is_paused = False
        self._collaborators = collaborators
        self._stores = stores
        self._verification_timeout_s = verification_timeout_s
        # 超时后被放弃的校验任务，保留引用直到其结束
        self._abandoned_verifications: set[asyncio.Task] = set()
        # 取 seq 与插入整体串行（批次内 seq 唯一）
        self._journal_lock = asyncio.Lock()

    # ---- 公开操作 ----

    async def execute_next(self) -> TaskRunResult:
        """派发列表中第一个 Pending 任务

        没有 Pending 任务时标记批次完成并返回 batch_complete=True。

        Raises:
            BatchPausedError: 批次已暂停
        """
        if self.is_paused:
            raise BatchPausedError()

        found = self.batch.next_pending()
        if found is None:
            return await self.finish_batch()

        index, task = found
        self.batch.current_task_index = index

        try:
            result = await self._run_task(task)
        except Exception as e:
            result = await self._handle_task_exception(task, e)
        else:
            if index % self.batch.checkpoint_every == 0:
                await self.checkpoint()

        result.batch_progress = self.batch.progress()
        result.batch_paused = self.is_paused
        return result

    async def finish_batch(self) -> TaskRunResult:
        """没有待执行任务：标记完成时间并落盘"""
        if self.batch.completed_at is None:
            self.batch.completed_at = _utc_now()
            await self.record_event(
                EventType.BATCH_COMPLETED,
                payload={
                    "completed": self.batch.completed_tasks,
                    "failed": self.batch.failed_tasks,
                    "skipped": self.batch.skipped_tasks,
                },
            )
            log.info(
                "batch_completed",
                batch_id=self.batch.batch_id,
                completed=self.batch.completed_tasks,
                failed=self.batch.failed_tasks,
            )
        await self.checkpoint()
        return TaskRunResult(
            success=True,
            batch_complete=True,
            message="All tasks completed",
            batch_progress=self.batch.progress(),
            batch_paused=self.is_paused,
        )

    async def checkpoint(self) -> bool:
        """保存状态快照；失败时只记录日志

        Returns:
            True 如果保存成功
        """
        try:
            await self._stores.state_store.save(self.batch)
        except PersistenceError as e:
            log.error(
                "batch_state_save_failed",
                batch_id=self.batch.batch_id,
                path=e.path,
                error=str(e.original_error),
            )
            await self.write_log(f"Error saving state: {e.original_error}")
            return False
        return True

    async def write_log(self, message: str) -> None:
        """追加一行运行日志"""
        await self._stores.run_log.append(self.batch, message)

    async def record_event(
        self,
        event_type: EventType,
        task_id: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """写入事件日志（未启用时跳过，失败只记录日志）"""
        journal = self._stores.journal
        if journal is None:
            return
        try:
            async with self._journal_lock:
                seq = await journal.get_next_seq(self.batch.batch_id)
                await journal.append_event(
                    BatchEvent(
                        event_id=str(ULID()),
                        batch_id=self.batch.batch_id,
                        task_id=task_id,
                        seq=seq,
                        ts=_utc_now(),
                        type=event_type,
                        payload=payload or {},
                    )
                )
        except Exception as e:
            log.warning(
                "journal_append_failed",
                batch_id=self.batch.batch_id,
                event_type=event_type,
                error=str(e),
            )

    # ---- 流水线 ----

    async def _run_task(self, task: BatchTask) -> TaskRunResult:
        await self._transition(task, TaskStatus.IN_PROGRESS, reason="dispatch")
        task.start_time = _utc_now()
        task.end_time = None
        await self.write_log(f"[{task.id}] Starting: {task.display_name}")
        log.info(
            "task_started",
            batch_id=self.batch.batch_id,
            task_id=task.id,
            operation=task.operation,
            attempt=task.retry_count + 1,
        )

        # 预检
        raw_report = await self._collaborators.validator.check(task.operation, task.parameters)
        report = PreflightReport.model_validate(raw_report)
        if not report.can_proceed:
            return await self._reject_preflight(task, report)

        for warning in report.warnings:
            await self.write_log(f"[{task.id}] Warning: {warning}")

        # 执行
        raw_result = await self._collaborators.executor.execute(task.operation, task.parameters)
        op_result = OperationResult.model_validate(raw_result)
        task.result = op_result.to_document()
        task.end_time = _utc_now()

        if op_result.success:
            await self._complete_task(task, op_result)
        else:
            await self._fail_task(task, op_result.error or "Unknown error")

        return self._build_result(task, TaskPhase.EXECUTE)

    async def _reject_preflight(self, task: BatchTask, report: PreflightReport) -> TaskRunResult:
        """预检拒绝：直接 Failed，不执行、不重试、不触发错误策略"""
        issues = report.issues or ["Pre-flight check failed"]
        task.error_message = f"Pre-flight failed: {'; '.join(issues)}"
        task.end_time = _utc_now()
        await self._transition(task, TaskStatus.FAILED, reason="preflight_rejected")

        await self.write_log(f"[{task.id}] Pre-flight FAILED: {task.error_message}")
        if report.suggestions:
            await self.write_log(f"[{task.id}] Suggestions: {'; '.join(report.suggestions)}")
        await self.record_event(
            EventType.PREFLIGHT_REJECTED,
            task_id=task.id,
            payload=PreflightRejectedPayload(
                issues=issues, suggestions=report.suggestions
            ).model_dump(),
        )
        log.warning(
            "task_preflight_rejected",
            batch_id=self.batch.batch_id,
            task_id=task.id,
            issues=issues,
        )

        result = self._build_result(task, TaskPhase.PREFLIGHT)
        result.issues = issues
        result.suggestions = list(report.suggestions)
        return result

    async def _complete_task(self, task: BatchTask, op_result: OperationResult) -> None:
        await self._record_rollback(task, op_result)
        await self._verify(task, op_result)

        await self._transition(task, TaskStatus.COMPLETED, reason="operation_succeeded")
        await self.write_log(f"[{task.id}] Completed in {task.duration_seconds:.1f}s")
        log.info(
            "task_completed",
            batch_id=self.batch.batch_id,
            task_id=task.id,
            duration_seconds=task.duration_seconds,
            verified=task.verified,
        )

        switcher = self._collaborators.view_switcher
        if task.switch_to_view_after and task.view_target is not None and switcher is not None:
            try:
                await switcher.switch_to(task.view_target)
            except Exception as e:
                log.debug("view_switch_failed", task_id=task.id, error=str(e))

    async def _fail_task(self, task: BatchTask, error: str) -> None:
        task.error_message = error

        if task.retry_count < task.max_retries:
            task.retry_count += 1
            await self._transition(task, TaskStatus.PENDING, reason="retry")
            await self.write_log(
                f"[{task.id}] Failed, retrying ({task.retry_count}/{task.max_retries}): {error}"
            )
            log.warning(
                "task_retry_scheduled",
                batch_id=self.batch.batch_id,
                task_id=task.id,
                retry_count=task.retry_count,
                max_retries=task.max_retries,
                error=error,
            )
            return

        await self._transition(task, TaskStatus.FAILED, reason="retries_exhausted")
        await self.write_log(f"[{task.id}] Failed: {error}")
        log.warning(
            "task_failed",
            batch_id=self.batch.batch_id,
            task_id=task.id,
            error=error,
        )
        self._apply_error_strategy(task)

    async def _handle_task_exception(self, task: BatchTask, exc: Exception) -> TaskRunResult:
        """任务边界：未预期异常统一记为 Failed 并强制落盘"""
        message = str(exc) or type(exc).__name__
        if task.status == TaskStatus.IN_PROGRESS:
            task.error_message = message
            task.end_time = _utc_now()
            await self._transition(task, TaskStatus.FAILED, reason="exception")

        await self.write_log(f"[{task.id}] Exception: {message}")
        await self.record_event(
            EventType.ERROR,
            task_id=task.id,
            payload=ErrorPayload(
                error_type=type(exc).__name__, error_message=message
            ).model_dump(),
        )
        log.error(
            "task_exception",
            batch_id=self.batch.batch_id,
            task_id=task.id,
            error_type=type(exc).__name__,
            error=message,
            exc_info=True,
        )
        self._apply_error_strategy(task)
        await self.checkpoint()

        result = self._build_result(task, TaskPhase.EXCEPTION)
        result.error = message
        return result

    def _apply_error_strategy(self, task: BatchTask) -> None:
        # 只有 StopOnError 影响运行控制，其余策略继续下一个任务
        if self.batch.on_error == ErrorStrategy.STOP_ON_ERROR:
            self.is_paused = True
            log.info(
                "batch_paused_on_error",
                batch_id=self.batch.batch_id,
                task_id=task.id,
            )

    # ---- 成功路径的附属步骤 ----

    async def _record_rollback(self, task: BatchTask, op_result: OperationResult) -> None:
        affected_ids = op_result.affected_ids()
        if not affected_ids:
            return

        operation_type = rollback_operation_type(task.operation)
        try:
            await self._collaborators.rollback_recorder.record(
                operation_type, affected_ids, task.parameters
            )
        except Exception as e:
            await self.write_log(f"[{task.id}] Warning: Failed to record for rollback: {e}")
            log.warning("rollback_record_failed", task_id=task.id, error=str(e))
            return

        await self.write_log(f"[{task.id}] Recorded {len(affected_ids)} elements for rollback")
        await self.record_event(
            EventType.ROLLBACK_RECORDED,
            task_id=task.id,
            payload=RollbackRecordedPayload(
                operation_type=operation_type, affected_count=len(affected_ids)
            ).model_dump(),
        )

    async def _verify(self, task: BatchTask, op_result: OperationResult) -> None:
        """限时校验；超时或异常时 verified 记为 None，任务照常完成"""
        verify_task = asyncio.create_task(
            self._collaborators.verifier.verify(task.operation, task.parameters, op_result)
        )
        done, _ = await asyncio.wait({verify_task}, timeout=self._verification_timeout_s)

        if verify_task not in done:
            verify_task.cancel()
            self._abandoned_verifications.add(verify_task)
            verify_task.add_done_callback(self._abandoned_verifications.discard)
            task.verified = None
            task.verification_message = "Verification timed out"
            await self.write_log(f"[{task.id}] Verification timed out")
        else:
            try:
                outcome = VerificationOutcome.model_validate(verify_task.result())
            except Exception as e:
                task.verified = None
                task.verification_message = f"Verification error: {e}"
                await self.write_log(f"[{task.id}] Verification error: {e}")
            else:
                task.verified = outcome.verified
                task.verification_message = outcome.message
                if outcome.verified:
                    await self.write_log(f"[{task.id}] Verified: {outcome.message}")
                else:
                    await self.write_log(f"[{task.id}] Verification WARNING: {outcome.message}")

        await self.record_event(
            EventType.VERIFICATION_RECORDED,
            task_id=task.id,
            payload=VerificationPayload(
                verified=task.verified, message=task.verification_message or ""
            ).model_dump(),
        )

    # ---- 辅助 ----

    async def _transition(self, task: BatchTask, to_status: TaskStatus, reason: str) -> None:
        from_status = task.status
        task.transition_to(to_status)
        log.debug(
            "task_status_changed",
            batch_id=self.batch.batch_id,
            task_id=task.id,
            from_status=from_status,
            to_status=to_status,
        )
        await self.record_event(
            EventType.STATE_TRANSITION,
            task_id=task.id,
            payload=StateTransitionPayload(
                from_status=from_status, to_status=to_status, reason=reason
            ).model_dump(mode="json"),
        )

    def _build_result(self, task: BatchTask, phase: TaskPhase) -> TaskRunResult:
        verification = None
        if task.verified is not None or task.verification_message is not None:
            verification = VerificationSummary(
                verified=task.verified, message=task.verification_message
            )
        return TaskRunResult(
            success=task.status == TaskStatus.COMPLETED,
            error=task.error_message if task.status != TaskStatus.COMPLETED else None,
            task_id=task.id,
            task_name=task.name,
            operation=task.operation,
            status=task.status,
            phase=phase,
            duration_seconds=task.duration_seconds,
            error_message=task.error_message,
            retry_scheduled=task.status == TaskStatus.PENDING,
            verification=verification,
            result=task.result,
        )
