#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Ninja-Snipe-Sync - 将 NinjaOne 设备目录同步到 Snipe-IT 资产管理系统
"""

__version__ = '1.0.0'
