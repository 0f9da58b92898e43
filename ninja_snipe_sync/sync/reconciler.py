#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
资产对账模块 - 计算单台设备需要执行的资产操作

plan_asset 不发起任何请求，只根据设备、已解析的型号/厂商和现有资产索引
返回 CreateAsset、PatchAsset 或 NoOp，由 SyncManager 执行。
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Mapping, Optional, Sequence, Tuple, Union

from ninja_snipe_sync.ninja.models import CanonicalDevice, UNKNOWN
from ninja_snipe_sync.snipeit.models import Asset, Manufacturer, Model

# 每次更新都会写入的字段：同步时间戳和硬件信息
ALWAYS_REFRESHED_FIELDS: Tuple[str, ...] = ("custom_fields", "notes")
STRUCTURAL_FIELDS: Tuple[str, ...] = ("name", "model_id", "manufacturer_id", "model_number")

DEFAULT_STATUS_ID = 1
DEFAULT_PROCESSOR_FIELD = "_snipeit_processor_count_1"
DEFAULT_MEMORY_FIELD = "_snipeit_memory_2"

BYTES_PER_GIB = 1024 ** 3


@dataclass(frozen=True)
class AssetSettings:
    """资产写入相关的目标端设置"""
    status_id: int = DEFAULT_STATUS_ID
    processor_field: str = DEFAULT_PROCESSOR_FIELD
    memory_field: str = DEFAULT_MEMORY_FIELD

    @classmethod
    def from_config(cls, snipe_config: Mapping[str, Any]) -> 'AssetSettings':
        custom_fields = snipe_config.get('custom_fields') or {}
        return cls(
            status_id=snipe_config.get('status_id', DEFAULT_STATUS_ID),
            processor_field=custom_fields.get('processor_count', DEFAULT_PROCESSOR_FIELD),
            memory_field=custom_fields.get('memory', DEFAULT_MEMORY_FIELD),
        )


@dataclass(frozen=True)
class CreateAsset:
    payload: Dict[str, Any]


@dataclass(frozen=True)
class PatchAsset:
    asset_id: Any
    changed_fields: Dict[str, Any]
    structural_fields: Tuple[str, ...] = ()

    @property
    def is_structural(self) -> bool:
        """是否包含结构字段变化，否则只是刷新同步时间戳"""
        return bool(self.structural_fields)


@dataclass(frozen=True)
class NoOp:
    asset_id: Any = None
    reason: str = field(default="no changes")


AssetPlan = Union[CreateAsset, PatchAsset, NoOp]


def serial_key(serial: Optional[str]) -> Optional[str]:
    """
    返回用于匹配资产的序列号键

    空序列号和 Unknown 占位值返回 None，不与任何资产匹配。

    Args:
        serial: 原始序列号

    Returns:
        Optional[str]: 规范化的序列号或 None
    """
    if serial is None:
        return None
    key = str(serial).strip().lower()
    if not key or key == UNKNOWN.lower():
        return None
    return key


def memory_gib(total_bytes: Any) -> int:
    """字节数换算为 GiB，四舍五入（0.5 向上）"""
    try:
        value = float(total_bytes or 0)
    except (TypeError, ValueError):
        return 0
    return int(math.floor(value / BYTES_PER_GIB + 0.5))


def format_timestamp(now: datetime) -> str:
    """ISO-8601 UTC 时间，精确到毫秒，以 Z 结尾"""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def sync_notes(device: CanonicalDevice, now: datetime) -> str:
    return (
        f"Last synced from Ninja RMM: {format_timestamp(now)}\n"
        f"Domain: {device.system.domain}\n"
        f"Role: {device.system.domain_role}"
    )


def custom_field_values(device: CanonicalDevice, settings: AssetSettings) -> Dict[str, Any]:
    return {
        settings.processor_field: device.system.number_of_processors,
        settings.memory_field: memory_gib(device.system.total_physical_memory),
    }


def build_asset_payload(
    device: CanonicalDevice,
    model: Model,
    manufacturer: Manufacturer,
    now: datetime,
    settings: AssetSettings = AssetSettings(),
) -> Dict[str, Any]:
    """
    构建新建资产的完整数据

    Args:
        device: 规范化设备
        model: 已解析的型号
        manufacturer: 已解析的厂商
        now: 同步时间
        settings: 资产设置

    Returns:
        Dict[str, Any]: 创建请求体
    """
    return {
        'status_id': settings.status_id,
        'model_id': model.id,
        'name': device.system_name,
        'serial': device.serial_number,
        'manufacturer_id': manufacturer.id,
        'model_number': device.system.model,
        'notes': sync_notes(device, now),
        'custom_fields': custom_field_values(device, settings),
    }


def compute_changed_fields(
    device: CanonicalDevice,
    asset: Asset,
    model: Model,
    manufacturer: Manufacturer,
) -> Dict[str, Any]:
    """
    比较结构字段，返回与现有资产不同的部分

    Args:
        device: 规范化设备
        asset: 现有资产
        model: 已解析的型号
        manufacturer: 已解析的厂商

    Returns:
        Dict[str, Any]: 变化的结构字段
    """
    desired = {
        'name': device.system_name,
        'model_id': model.id,
        'manufacturer_id': manufacturer.id,
        'model_number': device.system.model,
    }
    current = {
        'name': asset.name,
        'model_id': asset.model_id,
        'manufacturer_id': asset.manufacturer_id,
        'model_number': asset.model_number,
    }
    return {key: value for key, value in desired.items() if current[key] != value}


def plan_asset(
    device: CanonicalDevice,
    model: Model,
    manufacturer: Manufacturer,
    existing_assets_by_serial: Mapping[str, Asset],
    now: Optional[datetime] = None,
    always_refreshed: Sequence[str] = ALWAYS_REFRESHED_FIELDS,
    settings: AssetSettings = AssetSettings(),
) -> AssetPlan:
    """
    计算设备对应的资产操作

    Args:
        device: 规范化设备
        model: 已解析的型号
        manufacturer: 已解析的厂商
        existing_assets_by_serial: 以规范化序列号为键的现有资产
        now: 同步时间，默认当前 UTC 时间
        always_refreshed: 每次更新都写入的字段，传入空序列时无变化返回 NoOp
        settings: 资产设置

    Returns:
        AssetPlan: CreateAsset、PatchAsset 或 NoOp
    """
    now = now or datetime.now(timezone.utc)

    key = serial_key(device.serial_number)
    existing = existing_assets_by_serial.get(key) if key is not None else None

    if existing is None:
        return CreateAsset(payload=build_asset_payload(device, model, manufacturer, now, settings))

    changed = compute_changed_fields(device, existing, model, manufacturer)
    structural = tuple(name for name in STRUCTURAL_FIELDS if name in changed)

    refreshed = {
        'custom_fields': lambda: custom_field_values(device, settings),
        'notes': lambda: sync_notes(device, now),
    }
    for name in always_refreshed:
        changed[name] = refreshed[name]()

    if not changed:
        return NoOp(asset_id=existing.id)

    return PatchAsset(asset_id=existing.id, changed_fields=changed, structural_fields=structural)
