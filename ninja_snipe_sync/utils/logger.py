#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
日志模块，提供日志记录功能。

特性：
- 每次同步生成 run_id，处理设备期间附带 device_id，通过过滤器写入每条日志
- 结构化字段（序列号、资产ID等）以 key=value 或 JSON 形式输出
- 控制台输出和按大小轮转的日志文件
- 日志级别来源：显式参数 > 配置文件 log.level > 环境变量 LOG_LEVEL > INFO
"""

import os
import sys
import json
import logging
import logging.handlers
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, Dict, Any, Iterator

TEXT_LOG_FORMAT = '%(asctime)s [%(levelname)s] [%(name)s:%(lineno)d] [run:%(run_id)s] - %(message)s'
DETAILED_LOG_FORMAT = ('%(asctime)s [%(levelname)s] [%(name)s:%(lineno)d] [%(threadName)s] '
                       '[run:%(run_id)s device:%(device_id)s] - %(message)s')
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LOG_LEVEL_MAP = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL
}

DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5

# 请求细节由客户端自行记录
NOISY_LIBRARIES = ['urllib3', 'requests', 'chardet']

# 结构化字段在 LogRecord 上的属性名
FIELDS_ATTR = 'sync_fields'

_config = None


def set_global_config(config):
    """
    设置全局配置对象，init_default_logging 从中读取 log 部分

    Args:
        config: Config 对象
    """
    global _config
    _config = config


def resolve_log_level(explicit: Optional[str] = None) -> int:
    """
    确定日志级别

    Args:
        explicit: 显式指定的级别名称

    Returns:
        int: logging 级别
    """
    candidates = [explicit]
    if _config is not None:
        candidates.append(_config.get('log.level'))
    candidates.append(os.environ.get('LOG_LEVEL'))

    for candidate in candidates:
        level = LOG_LEVEL_MAP.get(str(candidate or '').upper())
        if level is not None:
            return level
    return logging.INFO


class LogContext:
    """当前同步的日志上下文（run_id、当前设备）"""
    _local = threading.local()

    @classmethod
    def snapshot(cls) -> Dict[str, Any]:
        if not hasattr(cls._local, 'values'):
            cls._local.values = {}
        return cls._local.values

    @classmethod
    def new_run(cls) -> str:
        """
        开始新的同步，之前的上下文全部丢弃

        Returns:
            str: 本次同步的 run_id
        """
        run_id = uuid.uuid4().hex[:12]
        cls._local.values = {'run_id': run_id, 'started_at': datetime.now().isoformat()}
        return run_id

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        return cls.snapshot().get(key, default)

    @classmethod
    @contextmanager
    def device(cls, device_id: Any, serial: Optional[str] = None) -> Iterator[None]:
        """在处理单台设备期间附带 device_id 和序列号"""
        values = cls.snapshot()
        values['device_id'] = device_id
        values['serial'] = serial
        try:
            yield
        finally:
            values.pop('device_id', None)
            values.pop('serial', None)


class RunContextFilter(logging.Filter):
    """为每条日志补充 run_id / device_id 属性，供格式串引用"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = LogContext.get('run_id', '-')
        record.device_id = LogContext.get('device_id', '-')
        return True


class TextFormatter(logging.Formatter):
    """文本格式，结构化字段以 key=value 追加在消息后"""

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        fields = getattr(record, FIELDS_ATTR, None)
        if fields:
            msg = f"{msg} | " + " ".join(f"{k}={v}" for k, v in fields.items())
        return msg


class JsonFormatter(logging.Formatter):
    """每条日志输出一行JSON，包含同步上下文和结构化字段"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'time': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'line': record.lineno,
            'message': record.getMessage(),
        }
        entry.update({k: v for k, v in LogContext.snapshot().items() if v is not None})
        entry.update(getattr(record, FIELDS_ATTR, None) or {})
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logger(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    detailed: bool = False,
    json_format: bool = False
) -> logging.Logger:
    """
    配置根日志记录器，重复调用会替换已有的处理器。

    Args:
        log_level: 日志级别名称
        log_file: 日志文件路径，为空时只输出到控制台
        max_bytes: 单个日志文件最大字节数
        backup_count: 保留的轮转文件数量
        detailed: 文本格式中包含线程和设备信息
        json_format: 输出JSON行

    Returns:
        logging.Logger: 根日志记录器
    """
    root = logging.getLogger()
    root.setLevel(resolve_log_level(log_level))

    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()

    if json_format:
        formatter: logging.Formatter = JsonFormatter(datefmt=LOG_DATE_FORMAT)
    else:
        formatter = TextFormatter(DETAILED_LOG_FORMAT if detailed else TEXT_LOG_FORMAT, LOG_DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
        ))

    context_filter = RunContextFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root.addHandler(handler)

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


def get_logger(name: str, log_level: Optional[str] = None) -> logging.Logger:
    """
    获取指定名称的日志记录器。

    Args:
        name: 日志记录器名称
        log_level: 可选的日志级别

    Returns:
        logging.Logger: 日志记录器
    """
    logger = logging.getLogger(name)
    if log_level and log_level.upper() in LOG_LEVEL_MAP:
        logger.setLevel(LOG_LEVEL_MAP[log_level.upper()])
    return logger


class StructuredLogger:
    """
    附带结构化字段的日志记录器。

    使用示例:
    ```python
    logger = StructuredLogger(__name__)
    logger.info("资产已创建", serial="SN1", asset_id=42)
    ```
    """

    def __init__(self, name: str):
        self.logger = get_logger(name)
        self.name = name

    def _log(self, level: int, message: str, exc_info: bool = False, **fields) -> None:
        if not self.logger.isEnabledFor(level):
            return
        # stacklevel 指向调用方所在行
        self.logger.log(level, message, exc_info=exc_info, extra={FIELDS_ATTR: fields}, stacklevel=3)

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        """记录错误和当前异常堆栈"""
        self._log(logging.ERROR, message, exc_info=True, **kwargs)


def init_default_logging():
    """
    按全局配置的 log 部分初始化日志；没有全局配置时读取 LOG_LEVEL / LOG_FILE 环境变量。
    """
    config = _config

    if config is not None:
        setup_logger(
            log_level=config.get('log.level'),
            log_file=config.get('log.file'),
            max_bytes=int(config.get('log.max_size', 10)) * 1024 * 1024,  # 配置以MB为单位
            backup_count=config.get('log.backup_count', DEFAULT_BACKUP_COUNT),
            json_format=bool(config.get('log.json_format', False)),
            detailed=bool(config.get('log.detailed', False)),
        )
    else:
        setup_logger(log_level=os.environ.get('LOG_LEVEL'), log_file=os.environ.get('LOG_FILE'))
