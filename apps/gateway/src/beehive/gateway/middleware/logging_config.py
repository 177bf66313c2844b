"""structlog 配置模块

BEEHIVE_LOG_FORMAT=dev（默认）使用 ConsoleRenderer，json 输出结构化 JSON；
BEEHIVE_LOG_LEVEL 控制根 logger 级别。
core / github 包的 structlog 日志与 uvicorn 的标准库日志共用同一处理器链。
"""

import logging
import os
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from fastapi import FastAPI

LOG_FORMATS = ("dev", "json")

# 请求级日志由 LoggingMiddleware 输出，uvicorn.access 重复
_QUIET_LOGGERS = ("uvicorn.access",)


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog + 标准库 logging

    Args:
        log_format: "dev" 或 "json"，缺省读取 BEEHIVE_LOG_FORMAT
        log_level: 日志级别名，缺省读取 BEEHIVE_LOG_LEVEL（默认 INFO）
    """
    log_format = (log_format or os.environ.get("BEEHIVE_LOG_FORMAT", "dev")).lower()
    log_level = (log_level or os.environ.get("BEEHIVE_LOG_LEVEL", "INFO")).upper()

    shared_processors = _shared_processors()
    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(
            ensure_ascii=False
        )
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logfire(app: "FastAPI") -> None:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE=true 时启用（需要 LOGFIRE_TOKEN 与 apm extra），
    失败时降级为纯本地日志。
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure(service_name="beehive-gateway")
        logfire.instrument_fastapi(app)
    except Exception as e:
        structlog.get_logger().warning(
            "logfire_init_failed",
            error=str(e),
            message="Logfire 初始化失败，降级为纯本地日志",
        )
