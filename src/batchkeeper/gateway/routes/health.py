"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含事件日志库连通性、批次输出目录、磁盘空间。
"""

import shutil
from pathlib import Path

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. journal: 事件日志库连通性（未启用时为 disabled）
    2. output_dir: 批次输出目录可访问性
    3. disk_space_mb: 磁盘剩余空间
    """
    checks = {}
    all_ok = True

    # 1. 事件日志库连通性
    try:
        journal = request.app.state.stores.journal
        if journal is None:
            checks["journal"] = "disabled"
        else:
            await journal.ping()
            checks["journal"] = "ok"
    except Exception as e:
        log.warning("ready_check_failed", check="journal", error=str(e))
        checks["journal"] = f"error: {str(e)}"
        all_ok = False

    # 2. 输出目录检查
    try:
        output_dir = Path(request.app.state.config.output_dir)
        if output_dir.exists() and output_dir.is_dir():
            checks["output_dir"] = "ok"
        else:
            checks["output_dir"] = "error: directory does not exist"
            all_ok = False
    except Exception as e:
        checks["output_dir"] = f"error: {str(e)}"
        all_ok = False

    # 3. 磁盘空间检查
    try:
        disk_usage = shutil.disk_usage("/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except Exception:
        checks["disk_space_mb"] = 0
        all_ok = False

    status_code = 200 if all_ok else 503
    status_text = "ready" if all_ok else "not_ready"

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_text,
            "checks": checks,
        },
    )
