"""BatchSession -- 批次会话控制器

调用方显式持有的会话对象（Gateway 放在 app.state 上），同一时刻只管理一个批次。
公开方法从不抛异常：BatchError 转换为 success=False + error_code，
未预期异常记录日志后以 INTERNAL_ERROR 返回。
"""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError

from .collaborators import Collaborators
from .config import SessionConfig, load_session_config
from .exceptions import (
    AlreadyRunningError,
    BatchError,
    BatchPausedError,
    InvalidArgumentError,
    InvalidBatchError,
    NoBatchLoadedError,
)
from .executor import BatchExecutor
from .models.batch import TaskBatch
from .models.definition import BatchDefinition
from .models.enums import BatchState, EventType, TaskStatus
from .models.results import (
    BatchLoadedResponse,
    BatchStatus,
    PauseResponse,
    RunAllResult,
    SessionResponse,
    TaskRunResult,
    TaskSummary,
)
from .store import BatchStores

log = structlog.get_logger()

INTERNAL_ERROR_CODE = "INTERNAL_ERROR"

R = TypeVar("R", bound=SessionResponse)


class BatchSession:
    """批次会话

    持有当前执行器与运行标志；asyncio.Lock 保证任意时刻只有一个任务在派发。
    """

    def __init__(
        self,
        collaborators: Collaborators,
        stores: BatchStores,
        config: SessionConfig | None = None,
    ) -> None:
        self._collaborators = collaborators
        self._stores = stores
        self._config = config or load_session_config()
        self._executor: BatchExecutor | None = None
        self._dispatch_lock = asyncio.Lock()
        self.is_running = False

    @property
    def batch(self) -> TaskBatch | None:
        return self._executor.batch if self._executor is not None else None

    @property
    def is_paused(self) -> bool:
        return self._executor is not None and self._executor.is_paused

    @property
    def state(self) -> BatchState:
        """由运行标志与批次内容推导的批次状态"""
        batch = self.batch
        if batch is None:
            return BatchState.IDLE
        if self.is_running:
            return BatchState.RUNNING
        if batch.completed_at is not None and batch.pending_tasks == 0:
            return BatchState.COMPLETE
        if self.is_paused:
            return BatchState.PAUSED
        return BatchState.READY

    # ---- 加载 ----

    async def create_batch(
        self, definition: BatchDefinition | dict[str, Any]
    ) -> BatchLoadedResponse:
        """从内联定义创建批次（ID 重新编号为 1..N）"""
        try:
            return await self._create_batch(definition)
        except Exception as e:
            return self._error_response(BatchLoadedResponse, "create_batch", e)

    async def load_batch(self, path: str | Path | None) -> BatchLoadedResponse:
        """从定义文件加载批次"""
        try:
            return await self._load_batch(path)
        except Exception as e:
            return self._error_response(BatchLoadedResponse, "load_batch", e)

    async def resume_batch(self, state_path: str | Path | None) -> BatchLoadedResponse:
        """从状态文件恢复批次（任务状态按原样恢复）"""
        try:
            return await self._resume_batch(state_path)
        except Exception as e:
            return self._error_response(BatchLoadedResponse, "resume_batch", e)

    async def _create_batch(self, definition: BatchDefinition | dict[str, Any]) -> BatchLoadedResponse:
        self._ensure_not_running()

        if not isinstance(definition, BatchDefinition):
            try:
                definition = BatchDefinition.model_validate(definition)
            except ValidationError as e:
                raise InvalidArgumentError(f"Invalid batch definition: {e}") from e

        if not definition.tasks:
            raise InvalidArgumentError("tasks array is required and must not be empty")

        document = definition.model_dump(
            by_alias=True, exclude_none=True, exclude={"output_dir"}
        )
        try:
            batch = TaskBatch.model_validate(document)
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid batch definition: {e}") from e
        batch.renumber_tasks()

        output_dir = Path(definition.output_dir) if definition.output_dir else self._config.output_dir
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InvalidArgumentError(f"Cannot create output directory {output_dir}: {e}") from e
        batch.log_path = str(output_dir / f"batch_{batch.batch_id}_log.txt")
        batch.state_path = str(output_dir / f"batch_{batch.batch_id}_state.json")

        await self._install(batch, source="created")
        return self._loaded_response(
            batch, f"Created batch with {batch.total_tasks} tasks. Ready to execute."
        )

    async def _load_batch(self, path: str | Path | None) -> BatchLoadedResponse:
        self._ensure_not_running()
        if not path:
            raise InvalidArgumentError("filePath is required")

        batch = await self._stores.state_store.load(path)
        batch.assign_missing_ids()
        self._validate_ids(batch)

        directory = Path(path).parent
        if not batch.log_path:
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            batch.log_path = str(directory / f"batch_log_{stamp}.txt")
        if not batch.state_path:
            batch.state_path = str(directory / f"batch_state_{batch.batch_id}.json")

        await self._install(batch, source="loaded")
        return self._loaded_response(
            batch, f"Loaded batch with {batch.total_tasks} tasks. Ready to execute."
        )

    async def _resume_batch(self, state_path: str | Path | None) -> BatchLoadedResponse:
        self._ensure_not_running()
        if not state_path:
            raise InvalidArgumentError("stateFilePath is required")

        batch = await self._stores.state_store.load(state_path)
        self._validate_ids(batch)

        # 中断的 InProgress 任务视为未完成的尝试，回队但保留 retry_count
        for task in batch.tasks:
            if task.status == TaskStatus.IN_PROGRESS:
                task.transition_to(TaskStatus.PENDING)
                log.info(
                    "interrupted_task_requeued",
                    batch_id=batch.batch_id,
                    task_id=task.id,
                    retry_count=task.retry_count,
                )

        if not batch.state_path:
            batch.state_path = str(state_path)

        await self._install(batch, source="resumed")
        return self._loaded_response(
            batch,
            f"Resumed batch at task {batch.current_task_index + 1} of {batch.total_tasks}",
        )

    # ---- 执行控制 ----

    async def execute_next(self) -> TaskRunResult:
        """派发下一个 Pending 任务"""
        try:
            executor = self._require_executor()
            if executor.is_paused:
                raise BatchPausedError()
            async with self._dispatch_lock:
                return await executor.execute_next()
        except Exception as e:
            return self._error_response(TaskRunResult, "execute_next", e)

    async def run_all(self) -> RunAllResult:
        """逐个派发直到没有 Pending 任务或批次被暂停"""
        try:
            return await self._run_all()
        except Exception as e:
            return self._error_response(RunAllResult, "run_all", e)

    async def _run_all(self) -> RunAllResult:
        executor = self._require_executor()
        if self.is_running:
            raise AlreadyRunningError()

        self.is_running = True
        executor.is_paused = False
        batch = executor.batch
        try:
            if batch.started_at is None:
                batch.started_at = datetime.now(UTC)
            await executor.record_event(
                EventType.BATCH_STARTED, payload={"pending": batch.pending_tasks}
            )
            await executor.write_log(f"=== Starting batch: {batch.name} ===")
            await executor.write_log(f"Total tasks: {batch.total_tasks}")
            log.info(
                "batch_run_started",
                batch_id=batch.batch_id,
                total=batch.total_tasks,
                pending=batch.pending_tasks,
            )

            results: list[TaskRunResult] = []
            while True:
                async with self._dispatch_lock:
                    if executor.is_paused or batch.next_pending() is None:
                        break
                    results.append(await executor.execute_next())
                # 让出事件循环，使 pause / status 请求得以处理
                await asyncio.sleep(0)

            complete = batch.pending_tasks == 0
            if complete:
                await executor.finish_batch()
            else:
                await executor.checkpoint()

            await executor.write_log("=== Batch finished ===")
            await executor.write_log(
                f"Executed: {len(results)}, Completed: {batch.completed_tasks}, "
                f"Failed: {batch.failed_tasks}"
            )
            log.info(
                "batch_run_finished",
                batch_id=batch.batch_id,
                executed=len(results),
                complete=complete,
                paused=executor.is_paused,
            )

            return RunAllResult(
                success=True,
                batch_complete=complete,
                tasks_executed=len(results),
                completed_tasks=batch.completed_tasks,
                failed_tasks=batch.failed_tasks,
                skipped_tasks=batch.skipped_tasks,
                pending_tasks=batch.pending_tasks,
                was_paused=executor.is_paused,
                log_path=batch.log_path,
                state_path=batch.state_path,
                results=results,
            )
        finally:
            self.is_running = False

    async def pause(self) -> PauseResponse:
        """暂停批次：当前任务结束后不再派发，并立即落盘"""
        try:
            executor = self._require_executor()
            executor.is_paused = True
            await executor.checkpoint()
            await executor.record_event(
                EventType.BATCH_PAUSED,
                payload={"current_task_index": executor.batch.current_task_index},
            )
            log.info(
                "batch_paused",
                batch_id=executor.batch.batch_id,
                current_task_index=executor.batch.current_task_index,
            )
            return PauseResponse(
                success=True,
                message="Batch paused",
                progress=executor.batch.progress(),
                state_path=executor.batch.state_path,
            )
        except Exception as e:
            return self._error_response(PauseResponse, "pause", e)

    def status(self) -> BatchStatus:
        """当前批次状态快照"""
        batch = self.batch
        if batch is None:
            return BatchStatus(success=True, has_batch=False, message="No batch loaded")

        return BatchStatus(
            success=True,
            has_batch=True,
            batch_id=batch.batch_id,
            batch_name=batch.name,
            state=self.state,
            is_running=self.is_running,
            is_paused=self.is_paused,
            progress=batch.progress(),
            tasks=[
                TaskSummary(
                    id=task.id,
                    name=task.name,
                    operation=task.operation,
                    status=task.status,
                    duration_seconds=task.duration_seconds,
                    retry_count=task.retry_count,
                    error_message=task.error_message,
                    verified=task.verified,
                )
                for task in batch.tasks
            ],
        )

    # ---- 辅助 ----

    def _require_executor(self) -> BatchExecutor:
        if self._executor is None:
            raise NoBatchLoadedError()
        return self._executor

    def _ensure_not_running(self) -> None:
        if self.is_running:
            raise AlreadyRunningError()

    @staticmethod
    def _validate_ids(batch: TaskBatch) -> None:
        try:
            batch.validate_task_ids()
        except ValueError as e:
            raise InvalidBatchError(str(e)) from e

    async def _install(self, batch: TaskBatch, source: str) -> None:
        """以新批次替换当前执行器"""
        self._executor = BatchExecutor(
            batch,
            self._collaborators,
            self._stores,
            verification_timeout_s=self._config.verification_timeout_s,
        )
        await self._executor.record_event(
            EventType.BATCH_LOADED,
            payload={"source": source, "total": batch.total_tasks},
        )
        log.info(
            "batch_installed",
            batch_id=batch.batch_id,
            source=source,
            total=batch.total_tasks,
            pending=batch.pending_tasks,
        )

    @staticmethod
    def _loaded_response(batch: TaskBatch, message: str) -> BatchLoadedResponse:
        return BatchLoadedResponse(
            success=True,
            message=message,
            batch_id=batch.batch_id,
            batch_name=batch.name,
            total_tasks=batch.total_tasks,
            pending_tasks=batch.pending_tasks,
            completed_tasks=batch.completed_tasks,
            failed_tasks=batch.failed_tasks,
            progress_percent=batch.progress_percent,
            current_task_index=batch.current_task_index,
            log_path=batch.log_path,
            state_path=batch.state_path,
        )

    @staticmethod
    def _error_response(
        response_cls: type[R], operation: str, exc: Exception
    ) -> R:
        if isinstance(exc, BatchError):
            log.info(
                "session_operation_rejected",
                operation=operation,
                code=exc.code,
                error=exc.message,
            )
            return response_cls(success=False, error=exc.message, error_code=exc.code)

        log.error(
            "session_operation_failed",
            operation=operation,
            error_type=type(exc).__name__,
            error=str(exc),
            exc_info=True,
        )
        return response_cls(
            success=False,
            error=str(exc) or type(exc).__name__,
            error_code=INTERNAL_ERROR_CODE,
        )
