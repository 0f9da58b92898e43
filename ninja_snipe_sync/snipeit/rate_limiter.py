#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
限流模块 - 串行化所有 Snipe-IT 请求

规则：
- 两次请求之间至少间隔 min_interval 秒，不足时等待剩余时间
- 收到 429 时等待 2 × min_interval 后重试一次，再次 429 抛出 ThrottleError
- last_request_at 只在请求成功发出（非429响应）后更新
"""

import time
from typing import Any, Callable, Optional

from ninja_snipe_sync.utils.exceptions import ThrottleError
from ninja_snipe_sync.utils.logger import get_logger

HTTP_TOO_MANY_REQUESTS = 429
DEFAULT_MIN_INTERVAL = 1.0


class RequestGate:
    """
    请求闸门，一个 SnipeITClient 对应一个实例，读写请求共用

    使用示例:
    ```python
    gate = RequestGate(min_interval=1.0)
    response = gate.call(lambda: session.get(url))
    ```
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        初始化请求闸门

        Args:
            min_interval: 最小请求间隔（秒）
            clock: 单调时钟
            sleep: 等待函数
        """
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self.last_request_at: Optional[float] = None
        self.logger = get_logger(__name__)

    def _wait_for_slot(self) -> None:
        if self.last_request_at is None:
            return
        elapsed = self.clock() - self.last_request_at
        if elapsed < self.min_interval:
            delay = self.min_interval - elapsed
            self.logger.debug(f"限流: 等待 {delay * 1000:.0f}ms 后发送下一个请求")
            self.sleep(delay)

    def call(self, send: Callable[[], Any]) -> Any:
        """
        通过闸门发送请求

        Args:
            send: 发送请求的函数，返回带 status_code 属性的响应

        Returns:
            Any: 非429的响应

        Raises:
            ThrottleError: 重试后仍返回429
        """
        self._wait_for_slot()
        response = send()

        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            backoff = self.min_interval * 2
            self.logger.warning(f"触发 Snipe-IT 限流，等待 {backoff:.1f}秒后重试")
            self.sleep(backoff)
            response = send()
            if response.status_code == HTTP_TOO_MANY_REQUESTS:
                raise ThrottleError(
                    "Snipe-IT 限流重试后仍被拒绝",
                    status_code=HTTP_TOO_MANY_REQUESTS,
                    response=getattr(response, 'text', None)
                )

        self.last_request_at = self.clock()
        return response
