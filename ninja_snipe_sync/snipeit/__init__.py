#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Snipe-IT模块，用于与资产管理系统交互。

包含以下子模块：
- client: Snipe-IT API客户端
- models: Snipe-IT数据模型
- rate_limiter: 请求限流闸门
"""

from ninja_snipe_sync.snipeit.client import SnipeITClient, unwrap_payload
from ninja_snipe_sync.snipeit.models import Asset, Category, Manufacturer, Model, category_name_for
from ninja_snipe_sync.snipeit.rate_limiter import RequestGate

__all__ = ['SnipeITClient', 'unwrap_payload', 'Asset', 'Category', 'Manufacturer', 'Model',
           'category_name_for', 'RequestGate']
