#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Snipe-IT 数据模型模块，定义与 Snipe-IT 交互的数据结构。

Snipe-IT 的列表接口返回嵌套对象（如 model.manufacturer.id），
创建/更新接口返回平铺字段（如 manufacturer_id），from_dict 两种格式都接受。
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Any

from ninja_snipe_sync.ninja.models import NodeClass

# nodeClass -> 资产分类名称
CATEGORY_BY_NODE_CLASS = {
    NodeClass.WINDOWS_SERVER: "Windows Servers",
    NodeClass.WINDOWS_WORKSTATION: "Windows Workstations",
    NodeClass.VMWARE_VM_HOST: "VMware Hosts",
}
DEFAULT_CATEGORY_NAME = "Other Hardware"


def category_name_for(node_class: Any) -> str:
    """
    返回 nodeClass 对应的分类名称，未识别的一律为 Other Hardware

    Args:
        node_class: NodeClass 或原始字符串

    Returns:
        str: 分类名称
    """
    if not isinstance(node_class, NodeClass):
        node_class = NodeClass.from_raw(node_class)
    return CATEGORY_BY_NODE_CLASS.get(node_class, DEFAULT_CATEGORY_NAME)


def _related(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _related_id(data: Dict[str, Any], key: str) -> Optional[int]:
    """读取关联对象ID，兼容 {key: {id}} 与 {key_id} 两种格式"""
    nested = _related(data, key)
    if nested.get('id') is not None:
        return nested['id']
    flat = data.get(f"{key}_id")
    if flat is not None:
        return flat
    return None


@dataclass
class Manufacturer:
    """厂商信息数据类"""
    id: Optional[int] = None
    name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Manufacturer':
        return cls(id=data.get('id'), name=data.get('name') or "")


@dataclass
class Category:
    """资产分类数据类"""
    id: Optional[int] = None
    name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Category':
        return cls(id=data.get('id'), name=data.get('name') or "")


@dataclass
class Model:
    """资产型号数据类"""
    id: Optional[int] = None
    name: str = ""
    manufacturer_id: Optional[int] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    model_number: Optional[str] = None

    @property
    def has_associations(self) -> bool:
        """是否包含厂商和分类信息"""
        return self.manufacturer_id is not None and self.category_id is not None

    def needs_update(self, manufacturer_id: Any, category_id: Any) -> bool:
        """
        判断型号的厂商或分类是否与当前解析结果不一致

        Args:
            manufacturer_id: 当前解析的厂商ID
            category_id: 当前解析的分类ID

        Returns:
            bool: 是否需要更新
        """
        return self.manufacturer_id != manufacturer_id or self.category_id != category_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Model':
        """
        从 Snipe-IT 响应创建型号对象。

        Args:
            data: 型号数据，嵌套或平铺格式

        Returns:
            Model: 型号对象
        """
        return cls(
            id=data.get('id'),
            name=data.get('name') or "",
            manufacturer_id=_related_id(data, 'manufacturer'),
            category_id=_related_id(data, 'category'),
            category_name=_related(data, 'category').get('name'),
            model_number=data.get('model_number'),
        )


@dataclass
class Asset:
    """硬件资产数据类"""
    id: Optional[int] = None
    name: Optional[str] = None
    serial: str = ""
    model_id: Optional[int] = None
    manufacturer_id: Optional[int] = None
    model_number: Optional[str] = None
    notes: Optional[str] = None
    custom_fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Asset':
        """
        从 Snipe-IT 硬件记录创建资产对象。

        Args:
            data: 硬件记录

        Returns:
            Asset: 资产对象
        """
        custom_fields = data.get('custom_fields')
        return cls(
            id=data.get('id'),
            name=data.get('name'),
            serial=data.get('serial') or "",
            model_id=_related_id(data, 'model'),
            manufacturer_id=_related_id(data, 'manufacturer'),
            model_number=data.get('model_number'),
            notes=data.get('notes'),
            custom_fields=custom_fields if isinstance(custom_fields, dict) else {},
        )
