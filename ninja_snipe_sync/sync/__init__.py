#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
同步模块 - 处理 NinjaOne 设备与 Snipe-IT 资产的同步

主要功能：
- 解析厂商、分类、型号引用
- 对比设备和现有资产，计算创建/更新操作
- 逐台设备执行并汇总同步结果
"""

from ninja_snipe_sync.sync.models import DeviceFailure, SyncResult
from ninja_snipe_sync.sync.reconciler import (
    ALWAYS_REFRESHED_FIELDS, AssetSettings, CreateAsset, NoOp, PatchAsset, plan_asset, serial_key
)
from ninja_snipe_sync.sync.reference_resolver import PreloadedReferences, ReferenceResolver
from ninja_snipe_sync.sync.sync_manager import SyncManager, run_scheduled_sync

__all__ = [
    'DeviceFailure',
    'SyncResult',
    'ALWAYS_REFRESHED_FIELDS',
    'AssetSettings',
    'CreateAsset',
    'NoOp',
    'PatchAsset',
    'plan_asset',
    'serial_key',
    'PreloadedReferences',
    'ReferenceResolver',
    'SyncManager',
    'run_scheduled_sync',
]
