"""配置常量模块 -- 可通过环境变量覆盖

包含数据目录、批次输出目录、事件日志库路径、校验超时等可配置常量，
以及 Session 使用的 SessionConfig 加载函数。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("BATCHKEEPER_DATA_DIR", "data"))


def get_output_dir() -> Path:
    """获取批次日志/状态文件默认输出目录"""
    return Path(
        os.environ.get(
            "BATCHKEEPER_OUTPUT_DIR",
            str(_get_base_dir() / "batches"),
        )
    )


def get_journal_path() -> str:
    """获取事件日志 SQLite 数据库路径"""
    return os.environ.get(
        "BATCHKEEPER_JOURNAL_PATH",
        str(_get_base_dir() / "sqlite" / "journal.db"),
    )


# 单任务默认重试次数
DEFAULT_MAX_RETRIES: int = 1

# 单任务建议超时（秒），核心不强制
DEFAULT_TIMEOUT_SECONDS: int = 120

# 默认每处理 N 个任务落盘一次
DEFAULT_CHECKPOINT_EVERY: int = 5

# 结果校验等待上限（秒）
VERIFICATION_TIMEOUT_S: float = 5.0

# 运行日志行时间戳格式
LOG_TIMESTAMP_FORMAT: str = "%Y-%m-%d %H:%M:%S"

# 未命名批次的默认名称
DEFAULT_BATCH_NAME: str = "Unnamed Batch"


class SessionConfig(BaseModel):
    """Session 运行配置 -- 从环境变量加载

    环境变量:
        BATCHKEEPER_OUTPUT_DIR: 新建批次的日志/状态文件目录
        BATCHKEEPER_JOURNAL_PATH: 事件日志库路径
        BATCHKEEPER_JOURNAL_ENABLED: 是否启用事件日志（默认 true）
        BATCHKEEPER_VERIFICATION_TIMEOUT_S: 结果校验等待上限（秒，默认 5）
    """

    output_dir: Path = Field(default_factory=get_output_dir, description="批次输出目录")
    journal_path: str = Field(default_factory=get_journal_path, description="事件日志库路径")
    journal_enabled: bool = Field(default=True, description="是否写入事件日志")
    verification_timeout_s: float = Field(
        default=VERIFICATION_TIMEOUT_S,
        gt=0,
        description="结果校验等待上限（秒）",
    )


def load_session_config() -> SessionConfig:
    """从环境变量加载 Session 配置

    数值解析失败时记录 warning 并回退默认值，不阻塞启动。
    """
    kwargs: dict = {}

    if val := os.environ.get("BATCHKEEPER_JOURNAL_ENABLED"):
        kwargs["journal_enabled"] = val.strip().lower() not in ("0", "false", "no", "off")

    if val := os.environ.get("BATCHKEEPER_VERIFICATION_TIMEOUT_S"):
        try:
            timeout = float(val)
            if timeout <= 0:
                raise ValueError(val)
            kwargs["verification_timeout_s"] = timeout
        except ValueError:
            log.warning(
                "invalid_verification_timeout_config",
                env_var="BATCHKEEPER_VERIFICATION_TIMEOUT_S",
                value=val,
                fallback=VERIFICATION_TIMEOUT_S,
            )

    return SessionConfig(**kwargs)
