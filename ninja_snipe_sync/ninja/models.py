#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
NinjaOne 数据模型模块，定义规范化后的设备结构。
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any, Optional

# 缺失字段的占位值
UNKNOWN = "Unknown"


class NodeClass(str, Enum):
    """NinjaOne 设备角色分类"""
    WINDOWS_SERVER = "WINDOWS_SERVER"
    WINDOWS_WORKSTATION = "WINDOWS_WORKSTATION"
    VMWARE_VM_HOST = "VMWARE_VM_HOST"
    OTHER = "OTHER"

    @classmethod
    def from_raw(cls, value: Optional[str]) -> 'NodeClass':
        """
        将 NinjaOne 原始 nodeClass 转换为枚举，未识别的值一律归为 OTHER

        Args:
            value: 原始 nodeClass 字符串

        Returns:
            NodeClass: 枚举值
        """
        if value and value != cls.OTHER.value:
            try:
                return cls(value)
            except ValueError:
                pass
        return cls.OTHER


@dataclass(frozen=True)
class SystemInfo:
    """设备硬件信息"""
    name: str = UNKNOWN
    manufacturer: str = UNKNOWN
    model: str = UNKNOWN
    serial_number: str = UNKNOWN
    bios_serial_number: str = UNKNOWN
    domain: str = UNKNOWN
    domain_role: str = UNKNOWN
    number_of_processors: int = 0
    total_physical_memory: int = 0  # 字节
    virtual_machine: bool = False
    chassis_type: str = UNKNOWN


@dataclass(frozen=True)
class CanonicalDevice:
    """规范化后的 NinjaOne 设备，生成后不可修改"""
    id: Any
    system_name: Optional[str]
    node_class: NodeClass
    raw_node_class: str = ""
    system: SystemInfo = field(default_factory=SystemInfo)

    @property
    def serial_number(self) -> str:
        return self.system.serial_number

    @property
    def display_name(self) -> str:
        """用于日志的设备名称"""
        return self.system_name or self.system.name or str(self.id)

    def to_dict(self) -> Dict[str, Any]:
        """
        转换为字典。

        Returns:
            Dict[str, Any]: 设备字典
        """
        data = asdict(self)
        data['node_class'] = self.node_class.value
        return data
