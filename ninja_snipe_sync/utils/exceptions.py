#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
异常模块

同步有两层失败边界：
- 运行级（RUN）：配置错误、NinjaOne 认证失败、预加载失败，整个同步中止，退出码 1
- 设备级（DEVICE）：引用解析或资产写入失败，只记录当前设备，继续下一台，退出码 2

UpstreamError / ThrottleError 本身不区分边界，由抛出位置决定：
获取设备或预加载期间抛出即中止同步，处理单台设备期间抛出则只影响该设备。
"""

import logging
import traceback
from typing import Dict, Any, List, Optional


class NinjaSnipeSyncError(Exception):
    """
    基础异常类

    Args:
        message: 异常消息
        code: 错误代码，如 missing_field、创建
        details: 附加信息（字典），写入日志和同步结果
    """

    def __init__(self, message: str = "", code: str = "", details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'error': type(self).__name__, 'message': self.message}
        if self.code:
            data['code'] = self.code
        if self.details:
            data['details'] = self.details
        return data


class ConfigError(NinjaSnipeSyncError):
    """配置缺失或非法"""


class APIError(NinjaSnipeSyncError):
    """
    远端 API 错误，附带 HTTP 状态码和响应体（JSON 或原始文本）
    """

    def __init__(self, message: str = "", code: str = "", details: Any = None,
                 status_code: Optional[int] = None, response: Any = None):
        super().__init__(message, code, details)
        self.status_code = status_code
        self.response = response

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.status_code is not None:
            data['status_code'] = self.status_code
        return data


class AuthError(APIError):
    """NinjaOne 凭据交换失败"""


class UpstreamError(APIError):
    """非 2xx 响应或传输层错误（429 除外）"""


class ThrottleError(APIError):
    """429 重试一次后仍被限流"""


class SyncError(NinjaSnipeSyncError):
    """单台设备同步失败"""


class ReferenceResolutionError(SyncError):
    """厂商/分类/型号无法查询或创建"""


class ReconciliationError(SyncError):
    """资产创建或更新失败"""


def cause_chain(exc: BaseException) -> List[str]:
    """
    列出异常及其 __cause__ 链，如 ['ReconciliationError', 'UpstreamError']
    """
    chain = []
    current: Optional[BaseException] = exc
    while current is not None and len(chain) < 10:
        chain.append(type(current).__name__)
        current = current.__cause__
    return chain


def handle_exception(exc: Exception, logger: logging.Logger) -> Dict[str, Any]:
    """
    记录异常日志并返回错误信息字典

    项目内异常只记录一行（含错误代码和原因链），堆栈在 DEBUG 级别输出；
    未预期的异常记录完整堆栈。

    Args:
        exc: 异常对象
        logger: 日志记录器

    Returns:
        Dict[str, Any]: 错误信息
    """
    chain = cause_chain(exc)

    if not isinstance(exc, NinjaSnipeSyncError):
        logger.exception(f"{chain[0]}: {exc}")
        return {'error': chain[0], 'message': str(exc)}

    info = exc.to_dict()
    if len(chain) > 1:
        info['cause'] = chain[1:]

    suffix = f" <- {' <- '.join(chain[1:])}" if len(chain) > 1 else ""
    logger.error(f"{chain[0]}[{exc.code or '-'}]{suffix}: {exc.message}")

    if logger.isEnabledFor(logging.DEBUG):
        stack = ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        logger.debug(f"异常堆栈:\n{stack}")
        info['traceback'] = stack.splitlines()

    return info
