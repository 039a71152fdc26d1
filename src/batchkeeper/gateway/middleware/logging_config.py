"""structlog 配置模块

控制台渲染由 BATCHKEEPER_LOG_FORMAT 决定（dev: 可读输出 / json: 结构化输出）。
设置 BATCHKEEPER_LOG_FILE 时，另以 JSON 行格式追加写入该文件，便于事后按 batch_id 检索。
"""

import logging
import os

import structlog

# 请求/连接级日志过于频繁，统一抬高到 WARNING
_NOISY_LOGGERS = ("aiosqlite", "httpx", "httpcore")


def _build_formatter(renderer: structlog.types.Processor, pre_chain: list) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
        foreign_pre_chain=pre_chain,
    )


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 配置

    Args:
        log_format: "json" 或 "dev"；缺省读取 BATCHKEEPER_LOG_FORMAT（默认 dev）
        log_level: 日志级别名；缺省读取 BATCHKEEPER_LOG_LEVEL（默认 INFO）
    """
    log_format = log_format or os.environ.get("BATCHKEEPER_LOG_FORMAT", "dev")
    log_level = log_level or os.environ.get("BATCHKEEPER_LOG_LEVEL", "INFO")
    log_file = os.environ.get("BATCHKEEPER_LOG_FILE")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    json_renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    console_renderer = (
        json_renderer if log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    handlers: list[logging.Handler] = []
    console = logging.StreamHandler()
    console.setFormatter(_build_formatter(console_renderer, shared_processors))
    handlers.append(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(_build_formatter(json_renderer, shared_processors))
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    for old in root_logger.handlers:
        old.close()
    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
