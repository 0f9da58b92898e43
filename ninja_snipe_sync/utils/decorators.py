#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
装饰器模块：传输层重试和耗时日志。

Snipe-IT 的限流重试由 RequestGate 负责，这里的 retry 只用于 NinjaOne 的连接错误和超时。
"""

import time
import functools
import logging
from typing import Callable, Tuple, Any, Type, Optional, List


def backoff_delays(max_retries: int, retry_interval: float, backoff_factor: float) -> List[float]:
    """
    计算每次重试前的等待时间

    >>> backoff_delays(3, 2, 1.5)
    [2, 3.0, 4.5]
    """
    return [retry_interval * backoff_factor ** attempt for attempt in range(max_retries)]


def retry(
    max_retries: int = 3,
    retry_interval: float = 2,
    backoff_factor: float = 1.5,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    sleep: Optional[Callable[[float], None]] = None
):
    """
    失败时按退避间隔重试，重试用尽后抛出最后一次的异常

    Args:
        max_retries: 最大重试次数（不含首次调用）
        retry_interval: 首次重试前的等待秒数
        backoff_factor: 等待时间的增长因子
        exceptions: 触发重试的异常类型，其他异常直接抛出
        sleep: 等待函数，为空时在调用时使用 time.sleep
    """
    delays = backoff_delays(max_retries, retry_interval, backoff_factor)

    def decorator(func: Callable) -> Callable:
        logger = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            wait = sleep or time.sleep
            for attempt, delay in enumerate(delays, 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    logger.warning(
                        f"{func.__name__} 失败 ({type(e).__name__}: {e})，"
                        f"{delay:g}秒后第 {attempt}/{max_retries} 次重试"
                    )
                    wait(delay)
            try:
                return func(*args, **kwargs)
            except exceptions as e:
                logger.error(f"{func.__name__} 重试 {max_retries} 次后仍失败: {e}")
                raise

        return wrapper

    return decorator


def log_function(level: str = 'INFO', log_args: bool = True):
    """
    记录函数开始、结束和耗时；异常时记录耗时后原样抛出

    Args:
        level: 日志级别名称
        log_args: 是否在开始日志中输出参数（self 除外）
    """
    def decorator(func: Callable) -> Callable:
        logger = logging.getLogger(func.__module__)
        log_level = logging.getLevelName(level.upper())

        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            name = func.__qualname__
            if log_args:
                skip = 1 if '.' in func.__qualname__ else 0
                shown = [repr(arg) for arg in args[skip:]] + [f"{k}={v!r}" for k, v in kwargs.items()]
                logger.log(log_level, f"开始 {name}({', '.join(shown)})")
            else:
                logger.log(log_level, f"开始 {name}")

            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{name} 异常结束，耗时 {time.monotonic() - started:.2f}秒: {e}")
                raise

            logger.log(log_level, f"{name} 结束，耗时 {time.monotonic() - started:.2f}秒")
            return result

        return wrapper

    return decorator
