"""批次控制路由

POST /api/batch            内联定义创建批次
POST /api/batch/load       从定义文件加载
POST /api/batch/resume     从状态文件恢复
POST /api/batch/next       派发下一个任务
POST /api/batch/run        执行全部剩余任务（wait=false 时后台运行，返回 202）
POST /api/batch/pause      暂停
GET  /api/batch/status     状态快照
GET  /api/batch/events     事件日志

失败统一返回 {"error": {"code", "message"}}：
- 400: 输入错误 / 批次文件无效
- 404: 未加载批次
- 409: 批次运行中 / 已暂停
"""

import asyncio
from typing import Any

import structlog
from batchkeeper.core.exceptions import AlreadyRunningError, NoBatchLoadedError
from batchkeeper.core.models.results import SessionResponse
from batchkeeper.core.session import BatchSession
from batchkeeper.core.store import BatchStores
from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import AliasChoices, BaseModel, Field
from starlette.responses import JSONResponse

from ..deps import get_session, get_stores

log = structlog.get_logger()

router = APIRouter(prefix="/api/batch")

_HTTP_STATUS_BY_CODE: dict[str, int] = {
    "INVALID_ARGUMENT": 400,
    "INVALID_BATCH": 400,
    "NO_BATCH_LOADED": 404,
    "ALREADY_RUNNING": 409,
    "BATCH_PAUSED": 409,
    "INVALID_TRANSITION": 409,
}


class LoadRequest(BaseModel):
    """加载请求体"""

    path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("path", "filePath", "file_path"),
        description="批次定义文件路径",
    )


class ResumeRequest(BaseModel):
    """恢复请求体"""

    state_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("state_path", "stateFilePath", "statePath"),
        description="状态文件路径",
    )


class RunStartedResponse(BaseModel):
    """后台运行已启动"""

    batch_id: str
    status: str = "started"


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def _respond(response: SessionResponse, success_status: int = 200) -> JSONResponse:
    """Session 响应 -> HTTP 响应

    error_code 非空表示操作被拒绝；任务本身失败（success=False 但无 error_code）
    仍是一次成功的派发，返回 200。
    """
    if response.error_code is not None:
        return _error(
            _HTTP_STATUS_BY_CODE.get(response.error_code, 500),
            response.error_code,
            response.error or "",
        )
    return JSONResponse(status_code=success_status, content=response.model_dump(mode="json"))


@router.post("")
async def create_batch(
    definition: dict[str, Any] = Body(...),
    session: BatchSession = Depends(get_session),
):
    """从内联定义创建批次"""
    return _respond(await session.create_batch(definition), success_status=201)


@router.post("/load")
async def load_batch(body: LoadRequest, session: BatchSession = Depends(get_session)):
    """从定义文件加载批次"""
    return _respond(await session.load_batch(body.path))


@router.post("/resume")
async def resume_batch(body: ResumeRequest, session: BatchSession = Depends(get_session)):
    """从状态文件恢复批次"""
    return _respond(await session.resume_batch(body.state_path))


@router.post("/next")
async def execute_next(session: BatchSession = Depends(get_session)):
    """派发下一个 Pending 任务"""
    return _respond(await session.execute_next())


@router.post("/run")
async def run_all(
    request: Request,
    wait: bool = Query(default=True, description="false 时后台运行并立即返回 202"),
    session: BatchSession = Depends(get_session),
):
    """执行全部剩余任务"""
    if wait:
        return _respond(await session.run_all())

    batch = session.batch
    if batch is None:
        err = NoBatchLoadedError()
        return _error(404, err.code, err.message)
    if session.is_running:
        err = AlreadyRunningError()
        return _error(409, err.code, err.message)

    # 后台任务引用保存在 app.state 上，直到运行结束
    background_runs: set[asyncio.Task] = request.app.state.background_runs
    run_task = asyncio.create_task(session.run_all())
    background_runs.add(run_task)
    run_task.add_done_callback(background_runs.discard)
    log.info("batch_background_run_started", batch_id=batch.batch_id)

    return JSONResponse(
        status_code=202,
        content=RunStartedResponse(batch_id=batch.batch_id).model_dump(),
    )


@router.post("/pause")
async def pause_batch(session: BatchSession = Depends(get_session)):
    """暂停批次"""
    return _respond(await session.pause())


@router.get("/status")
async def batch_status(session: BatchSession = Depends(get_session)):
    """批次状态快照（未加载批次时 has_batch=false）"""
    return _respond(session.status())


@router.get("/events")
async def batch_events(
    task_id: int | None = Query(default=None, description="按任务筛选"),
    session: BatchSession = Depends(get_session),
    stores: BatchStores = Depends(get_stores),
):
    """当前批次的事件日志，按 seq 正序"""
    batch = session.batch
    if batch is None:
        err = NoBatchLoadedError()
        return _error(404, err.code, err.message)

    if stores.journal is None:
        return {"batch_id": batch.batch_id, "events": []}

    events = await stores.journal.list_events(batch.batch_id, task_id=task_id)
    return {
        "batch_id": batch.batch_id,
        "events": [event.model_dump(mode="json") for event in events],
    }
