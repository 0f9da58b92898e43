#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
NinjaOne模块，用于获取设备目录中的设备。

包含以下子模块：
- client: NinjaOne API客户端
- models: 规范化设备数据模型
- device_source: 设备过滤与规范化
"""

from ninja_snipe_sync.ninja.client import NinjaClient
from ninja_snipe_sync.ninja.models import CanonicalDevice, NodeClass, SystemInfo, UNKNOWN
from ninja_snipe_sync.ninja.device_source import DeviceSource, normalize_device, process_devices

__all__ = ['NinjaClient', 'CanonicalDevice', 'NodeClass', 'SystemInfo', 'UNKNOWN',
           'DeviceSource', 'normalize_device', 'process_devices']
