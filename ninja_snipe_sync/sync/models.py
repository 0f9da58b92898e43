#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
同步结果数据模型。
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Any, Optional


@dataclass
class DeviceFailure:
    """单台设备的失败记录"""
    device_id: Any
    name: Optional[str]
    serial: Optional[str]
    error_kind: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SyncResult:
    """同步结果数据类"""
    total: int = 0
    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: List[DeviceFailure] = field(default_factory=list)
    duration: float = 0.0
    run_id: str = ""

    @property
    def success(self) -> bool:
        """所有设备均处理成功"""
        return not self.failed

    @property
    def duration_str(self) -> str:
        return f"{self.duration:.2f}秒"

    def record_failure(self, failure: DeviceFailure) -> None:
        self.failed.append(failure)

    def to_dict(self) -> Dict[str, Any]:
        """
        转换为字典。

        Returns:
            Dict[str, Any]: 同步结果字典
        """
        return {
            'run_id': self.run_id,
            'success': self.success,
            'total': self.total,
            'processed': self.processed,
            'created': self.created,
            'updated': self.updated,
            'unchanged': self.unchanged,
            'skipped': self.skipped,
            'failed': [failure.to_dict() for failure in self.failed],
            'duration': round(self.duration, 3),
            'duration_str': self.duration_str,
        }
