"""依赖注入模块 -- 通过 FastAPI Depends 注入会话与 Store 实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from batchkeeper.core.session import BatchSession
from batchkeeper.core.store import BatchStores
from fastapi import Request


def get_session(request: Request) -> BatchSession:
    """从 app.state 获取 BatchSession 实例"""
    return request.app.state.session


def get_stores(request: Request) -> BatchStores:
    """从 app.state 获取 BatchStores 实例"""
    return request.app.state.stores
