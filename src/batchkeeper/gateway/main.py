"""FastAPI 应用主文件

app 创建 + lifespan 管理：Store 初始化/关闭 + BatchSession 初始化 + 路由注册。
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from batchkeeper.core.collaborators import Collaborators, create_echo_collaborators
from batchkeeper.core.config import load_session_config
from batchkeeper.core.session import BatchSession
from batchkeeper.core.store import create_batch_stores
from fastapi import FastAPI

from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .routes import batch, health

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 Store 和会话，关闭时停止后台运行并清理连接"""
    config = load_session_config()
    config.output_dir.mkdir(parents=True, exist_ok=True)
    app.state.config = config

    journal_path = config.journal_path if config.journal_enabled else None
    stores = await create_batch_stores(journal_path)
    app.state.stores = stores

    collaborators: Collaborators = app.state.collaborators
    app.state.session = BatchSession(collaborators, stores, config)
    app.state.background_runs = set()
    log.info(
        "batch_session_initialized",
        output_dir=str(config.output_dir),
        journal_path=journal_path,
    )

    yield

    # 关闭：取消未完成的后台运行，再关闭连接
    runs: set[asyncio.Task] = app.state.background_runs
    for run_task in list(runs):
        run_task.cancel()
    if runs:
        await asyncio.gather(*runs, return_exceptions=True)

    if hasattr(app.state, "stores") and app.state.stores:
        await app.state.stores.close()


def create_app(collaborators: Collaborators | None = None) -> FastAPI:
    """创建 FastAPI 应用实例

    Args:
        collaborators: 外部协作方；缺省使用 Echo 协作方
    """
    app = FastAPI(
        title="batchkeeper Gateway",
        version="0.1.0",
        description="可恢复、带检查点的批次任务执行服务",
        lifespan=lifespan,
    )
    app.state.collaborators = collaborators or create_echo_collaborators()

    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()

    # 注册路由
    app.include_router(batch.router, tags=["batch"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（ASGI 入口）
app = create_app()
